"""Entry point for the api-virtual mock server.

Invoked as::

    api-virtual [--port 4000] [--resources-dir ./resources] [--reload]

Every option falls back to its environment variable: ``PORT``,
``VIRTUAL_RESOURCES_DIR``, ``VIRTUAL_RELOAD``,
``VIRTUAL_RELOAD_INTERVAL_MS`` and ``SWAGGER_ENABLED``.
"""
from __future__ import annotations

import dataclasses
import logging
import os
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape

err_console = Console(stderr=True)


@click.command(name="api-virtual")
@click.option("--host", default=None, help="Bind address (default: HOST or 0.0.0.0)")
@click.option("--port", "-p", type=int, default=None, help="Listen port (default: PORT or 4000)")
@click.option(
    "--resources-dir",
    "-r",
    type=click.Path(file_okay=False),
    default=None,
    help="Resources root (default: VIRTUAL_RESOURCES_DIR or ./resources)",
)
@click.option("--reload/--no-reload", default=None, help="Reload YAML files when they change")
@click.option("--swagger/--no-swagger", default=None, help="Serve Swagger UI pages")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=lambda: os.environ.get("VIRT_LOG_LEVEL", "INFO"),
    show_default="INFO",
    help="Logging level",
)
def main(
    host: str | None,
    port: int | None,
    resources_dir: str | None,
    reload: bool | None,
    swagger: bool | None,
    log_level: str,
) -> None:
    """Serve the virtual APIs described under the resources directory."""
    import uvicorn

    from virt.config import load_env_files
    from virt.errors import VirtError
    from virt.server.app import create_app
    from virt.server.settings import ServerSettings

    load_env_files()
    logging.basicConfig(level=log_level.upper(), format="[api-virtual] %(levelname)s %(name)s: %(message)s")

    settings = ServerSettings.from_env()
    overrides: dict[str, object] = {}
    if host:
        overrides["host"] = host
    if port is not None:
        overrides["port"] = port
    if resources_dir:
        overrides["resources_dir"] = Path(resources_dir).resolve()
    if reload is not None:
        overrides["reload"] = reload
    if swagger is not None:
        overrides["swagger_enabled"] = swagger
    settings = dataclasses.replace(settings, **overrides)

    try:
        app = create_app(settings)
    except VirtError as exc:
        err_console.print(f"[red]Error while loading virtual APIs:[/red] {escape(str(exc))}", highlight=False)
        sys.exit(1)

    uvicorn.run(app, host=settings.host, port=settings.port, log_level=log_level.lower())


if __name__ == "__main__":
    main()
