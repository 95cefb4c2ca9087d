"""CLI entry point for virt-toolkit.

Invoked as::

    shell-virtual [OPTIONS] COMMAND [ARGS]...

or, during development::

    python -m virt.cli.main

Commands
--------
opensearch  Load, inspect, query and export OpenSearch data
mongo       Insert, find, delete and export MongoDB documents
postgres    Create/drop databases, apply schemas and run seeds
parties     Drive the party-management API
simulate    Send a simulation document to the API
env         Show the resolved environment
version     Show version information
"""
from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

import click
from rich.table import Table

from virt.cli._common import console
from virt.cli.mongo import mongo_group
from virt.cli.opensearch import opensearch_group
from virt.cli.parties import parties_group
from virt.cli.postgres import postgres_group
from virt.cli.simulate import simulate_command

PACKAGE_DIR = Path(__file__).resolve().parents[1]


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="virt-toolkit")
@click.option(
    "--env",
    "-e",
    "env_name",
    default=None,
    help="Environment name from the config file (default: VIRT_ENV)",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=lambda: os.environ.get("VIRT_LOG_LEVEL", "WARNING"),
    show_default="WARNING",
    help="Logging level for library diagnostics",
)
def cli(env_name: str | None, log_level: str) -> None:
    """Seed and query virtual environments: OpenSearch, MongoDB, Postgres and the party API."""
    from virt.config import apply_environment, load_env_files

    logging.basicConfig(level=log_level.upper(), format="%(levelname)s %(name)s: %(message)s")
    load_env_files(PACKAGE_DIR)
    apply_environment(env_name)


cli.add_command(opensearch_group)
cli.add_command(mongo_group)
cli.add_command(postgres_group)
cli.add_command(parties_group)
cli.add_command(simulate_command)


# ---------------------------------------------------------------------------
# env / version commands
# ---------------------------------------------------------------------------


@cli.command(name="env")
def env_command() -> None:
    """Show the resolved environment and where it came from."""
    from virt.config import get_config_source_path, resolve_environment

    resolved = resolve_environment()
    source_path = get_config_source_path()
    table = Table(show_header=False, box=None)
    table.add_row("[bold]Environment[/bold]", resolved.env_name)
    table.add_row("Source", resolved.source)
    table.add_row("Config file", str(source_path) if source_path else "-")
    env = resolved.env
    if env is not None:
        table.add_row("API URL", env.api_url or "-")
        table.add_row("Projects dir", env.projects_dir or "-")
        table.add_row("Postgres mode", (env.postgres.mode if env.postgres else None) or "-")
        table.add_row("Database targets", ", ".join(env.databases) if env.databases else "-")
        table.add_row("OpenSearch", (env.opensearch.url if env.opensearch else None) or "-")
        table.add_row("MongoDB", (env.mongo.url if env.mongo else None) or "-")
    console.print(table)


@cli.command(name="version")
def version_command() -> None:
    """Show detailed version information."""
    from virt import __version__

    table = Table(show_header=False, box=None)
    table.add_row("[bold]virt-toolkit[/bold]", f"v{__version__}")
    table.add_row("Python", f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}")
    table.add_row("Platform", sys.platform)
    console.print(table)


if __name__ == "__main__":
    cli()
