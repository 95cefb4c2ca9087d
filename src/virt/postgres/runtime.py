"""Resolve how to reach Postgres: through ``docker compose`` or directly.

Precedence for every setting, highest first: CLI option, database target
(``databases.<target>`` in the environment), the environment's
``postgres`` block, process environment variables, built-in default.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from virt.config import PostgresConfig, resolve_environment
from virt.config.models import PostgresMode

DEFAULT_PORT = 5432


@dataclass(frozen=True)
class PostgresRuntime:
    """Everything needed to run ``psql`` against one server.

    Parameters
    ----------
    mode:
        ``"compose"`` runs ``psql`` inside a compose service;
        ``"direct"`` runs a local ``psql`` against ``host``/``port``.
    service:
        Compose service name.
    user:
        Database user.
    password:
        Password for direct mode, exported as ``PGPASSWORD``.
    host, port:
        Server address for direct mode.
    admin_db:
        Maintenance database used for CREATE/DROP DATABASE.
    compose_dir:
        Directory holding ``docker-compose.yml``.
    ssl:
        When ``True`` direct connections use ``PGSSLMODE=require``.
    """

    mode: PostgresMode
    service: str
    user: str
    password: str | None
    host: str | None
    port: int
    admin_db: str
    compose_dir: str
    ssl: bool | None = None


def _env_int(*names: str) -> int | None:
    for name in names:
        raw = os.environ.get(name)
        if raw and raw.strip():
            try:
                return int(raw)
            except ValueError:
                continue
    return None


def _first(*values: object) -> object:
    for value in values:
        if value is not None:
            return value
    return None


def default_compose_dir() -> str:
    return os.environ.get("COMPOSE_DIR") or str(Path.cwd())


def resolve_postgres_runtime(
    service: str | None = None,
    user: str | None = None,
    admin_db: str | None = None,
    compose_dir: str | None = None,
    target: str | None = None,
    fallback_target: str | None = None,
) -> PostgresRuntime:
    """Build a :class:`PostgresRuntime` from options, config and env vars.

    Parameters
    ----------
    target:
        Name of a ``databases`` entry in the active environment.
    fallback_target:
        Target used when ``target`` is not given; commands pass the
        database name so a target named after it applies automatically.
    """
    env = resolve_environment().env
    cfg: PostgresConfig = (env.postgres if env else None) or PostgresConfig()
    target_name = target or fallback_target
    db_target = PostgresConfig()
    if env and env.databases and target_name:
        db_target = env.databases.get(target_name) or PostgresConfig()

    env_mode = os.environ.get("PG_MODE") or os.environ.get("POSTGRES_MODE")
    mode = _first(db_target.mode, cfg.mode, env_mode) or "compose"

    env_ssl_raw = os.environ.get("POSTGRES_SSL")
    env_ssl = env_ssl_raw.lower() == "true" if env_ssl_raw else None

    return PostgresRuntime(
        mode="direct" if mode == "direct" else "compose",
        service=str(
            _first(service, db_target.service, cfg.service, os.environ.get("POSTGRES_SERVICE"))
            or "postgres"
        ),
        user=str(
            _first(user, db_target.user, cfg.user, os.environ.get("POSTGRES_USER")) or "postgres"
        ),
        password=_first(  # type: ignore[arg-type]
            db_target.password,
            cfg.password,
            os.environ.get("POSTGRES_PASSWORD"),
            os.environ.get("PG_PASSWORD"),
        ),
        host=_first(  # type: ignore[arg-type]
            db_target.host, cfg.host, os.environ.get("POSTGRES_HOST"), os.environ.get("PG_HOST")
        ),
        port=int(
            _first(db_target.port, cfg.port, _env_int("POSTGRES_PORT", "PG_PORT")) or DEFAULT_PORT
        ),
        admin_db=str(
            _first(admin_db, db_target.admin_db, cfg.admin_db, os.environ.get("POSTGRES_ADMIN_DB"))
            or "postgres"
        ),
        compose_dir=str(_first(compose_dir, db_target.compose_dir, cfg.compose_dir) or default_compose_dir()),
        ssl=_first(db_target.ssl, cfg.ssl, env_ssl),  # type: ignore[arg-type]
    )
