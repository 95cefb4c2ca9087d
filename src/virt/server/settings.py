"""Settings for the api-virtual server, read from environment variables."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_PORT = 4000
DEFAULT_HOST = "0.0.0.0"
DEFAULT_RELOAD_INTERVAL_MS = 1000


def _flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() == "true"


def _int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if not raw or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class ServerSettings:
    """Runtime settings for :func:`virt.server.app.create_app`.

    Parameters
    ----------
    resources_dir:
        Root holding ``config.yaml`` and ``apis/<id>/``.
    port, host:
        Listen address used by the ``api-virtual`` command.
    swagger_enabled:
        Serve Swagger UI pages.
    reload:
        Poll YAML files and reload on change.
    reload_interval_ms:
        Poll interval.
    assets_dir:
        Static files served under ``/assets`` when the directory exists.
    """

    resources_dir: Path
    port: int = DEFAULT_PORT
    host: str = DEFAULT_HOST
    swagger_enabled: bool = True
    reload: bool = False
    reload_interval_ms: int = DEFAULT_RELOAD_INTERVAL_MS
    assets_dir: Path | None = None

    @classmethod
    def from_env(cls) -> "ServerSettings":
        resources = os.environ.get("VIRTUAL_RESOURCES_DIR")
        assets = os.environ.get("VIRTUAL_ASSETS_DIR")
        swagger_raw = os.environ.get("SWAGGER_ENABLED") or "true"
        return cls(
            resources_dir=Path(resources).resolve() if resources else Path.cwd() / "resources",
            port=_int("PORT", DEFAULT_PORT),
            host=os.environ.get("HOST") or DEFAULT_HOST,
            swagger_enabled=swagger_raw.strip().lower() != "false",
            reload=_flag("VIRTUAL_RELOAD", False),
            reload_interval_ms=max(_int("VIRTUAL_RELOAD_INTERVAL_MS", DEFAULT_RELOAD_INTERVAL_MS), 50),
            assets_dir=Path(assets).resolve() if assets else Path.cwd() / "public" / "assets",
        )
