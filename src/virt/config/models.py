"""Typed views of the ``virt.config.yaml`` environment blocks.

The raw YAML is permissive; the ``coerce_*`` helpers keep only the keys
they understand and return ``None`` for blocks with nothing usable.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

PostgresMode = Literal["compose", "direct"]


@dataclass(frozen=True)
class PostgresConfig:
    """Connection settings for a Postgres server or database target."""

    mode: PostgresMode | None = None
    service: str | None = None
    user: str | None = None
    password: str | None = None
    host: str | None = None
    port: int | None = None
    admin_db: str | None = None
    compose_dir: str | None = None
    ssl: bool | None = None


@dataclass(frozen=True)
class OpensearchConfig:
    url: str | None = None
    user: str | None = None
    password: str | None = None


@dataclass(frozen=True)
class MongoConfig:
    url: str | None = None
    db: str | None = None


@dataclass(frozen=True)
class EnvironmentConfig:
    """A fully expanded environment from the config file.

    Parameters
    ----------
    name:
        Environment key, e.g. ``"local"``.
    api_url:
        Base URL of the party API for this environment.
    variables:
        Upper-cased variables visible to placeholder expansion.
    postgres:
        Default Postgres settings.
    databases:
        Per-target Postgres overrides keyed by target name.
    opensearch:
        OpenSearch endpoint and credentials.
    mongo:
        MongoDB URI and database.
    projects_dir:
        Directory holding per-project YAML files.
    """

    name: str
    api_url: str | None = None
    variables: dict[str, str] | None = None
    postgres: PostgresConfig | None = None
    databases: dict[str, PostgresConfig] | None = None
    opensearch: OpensearchConfig | None = None
    mongo: MongoConfig | None = None
    projects_dir: str | None = None


@dataclass(frozen=True)
class ResolveResult:
    """Outcome of environment resolution.

    ``source`` is ``"yaml"`` when a config file with an ``environments``
    section was found, otherwise ``"env"`` (plain environment variables).
    """

    source: Literal["yaml", "env"]
    env_name: str
    env: EnvironmentConfig | None = field(default=None)


def _str(raw: dict[str, Any], key: str) -> str | None:
    value = raw.get(key)
    return value if isinstance(value, str) else None


def coerce_postgres_config(raw: Any) -> PostgresConfig | None:
    if not isinstance(raw, dict):
        return None
    values: dict[str, Any] = {}

    mode = raw.get("mode")
    if isinstance(mode, str):
        values["mode"] = "direct" if mode == "direct" else "compose"
    for key, attr in (
        ("service", "service"),
        ("user", "user"),
        ("password", "password"),
        ("host", "host"),
        ("adminDb", "admin_db"),
        ("composeDir", "compose_dir"),
    ):
        value = _str(raw, key)
        if value is not None:
            values[attr] = value

    port = raw.get("port")
    if isinstance(port, bool):
        pass
    elif isinstance(port, int):
        values["port"] = port
    elif isinstance(port, str) and port.strip():
        try:
            values["port"] = int(port.strip())
        except ValueError:
            pass

    ssl = raw.get("ssl")
    if isinstance(ssl, bool):
        values["ssl"] = ssl
    elif isinstance(ssl, str):
        values["ssl"] = ssl.lower() == "true"

    return PostgresConfig(**values) if values else None


def coerce_databases_config(raw: Any) -> dict[str, PostgresConfig] | None:
    if not isinstance(raw, dict):
        return None
    normalized: dict[str, PostgresConfig] = {}
    for key, value in raw.items():
        cfg = coerce_postgres_config(value)
        if cfg is not None:
            normalized[str(key).strip()] = cfg
    return normalized or None


def coerce_opensearch_config(raw: Any) -> OpensearchConfig | None:
    if not isinstance(raw, dict):
        return None
    values = {key: _str(raw, key) for key in ("url", "user", "password")}
    values = {key: value for key, value in values.items() if value is not None}
    return OpensearchConfig(**values) if values else None


def coerce_mongo_config(raw: Any) -> MongoConfig | None:
    if not isinstance(raw, dict):
        return None
    values = {key: _str(raw, key) for key in ("url", "db")}
    values = {key: value for key, value in values.items() if value is not None}
    return MongoConfig(**values) if values else None
