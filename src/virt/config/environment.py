"""Environment resolution from ``virt.config.yaml`` and ``.env`` files.

Usage
-----
::

    from virt.config import resolve_environment

    result = resolve_environment("staging")
    if result.env and result.env.postgres:
        print(result.env.postgres.host)

The config file is looked up in the current working directory and parsed
once per process.  Call :func:`reset_config_cache` when the working
directory or the file changes (tests do this between cases).
"""
from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from virt.config.models import (
    EnvironmentConfig,
    ResolveResult,
    coerce_databases_config,
    coerce_mongo_config,
    coerce_opensearch_config,
    coerce_postgres_config,
)
from virt.errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_FILES: tuple[str, ...] = (
    "virt.config.yaml",
    "virt.config.yml",
    ".virt.yaml",
    ".virt.yml",
    ".env.yaml",
    ".env.yml",
)

_PLACEHOLDER = re.compile(r"\$\{([^}]+)\}")

_UNSET = object()
_cached_config: Any = _UNSET
_cached_path: Path | None = None


def load_env_files(package_dir: Path | None = None) -> Path | None:
    """Load ``./.env`` or, failing that, ``<package_dir>/.env``.

    Existing process variables are never overridden.  Returns the file
    that was loaded, or ``None``.
    """
    candidates = [Path.cwd() / ".env"]
    if package_dir is not None:
        candidates.append(package_dir / ".env")
    for candidate in candidates:
        if candidate.is_file():
            load_dotenv(candidate, override=False)
            logger.debug("Loaded environment file %s", candidate)
            return candidate
    return None


def find_config_path(directory: Path | None = None) -> Path | None:
    base = directory or Path.cwd()
    for name in CONFIG_FILES:
        candidate = base / name
        if candidate.is_file():
            return candidate
    return None


def reset_config_cache() -> None:
    global _cached_config, _cached_path
    _cached_config = _UNSET
    _cached_path = None


def load_yaml_config() -> dict[str, Any] | None:
    """Return the parsed config document, or ``None`` when there is none."""
    global _cached_config, _cached_path
    if _cached_config is not _UNSET:
        return _cached_config

    path = find_config_path()
    _cached_path = path
    if path is None:
        _cached_config = None
        return None

    try:
        parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    logger.debug("Loaded config file %s", path)
    _cached_config = parsed if isinstance(parsed, dict) else None
    return _cached_config


def get_config_source_path() -> Path | None:
    return _cached_path or find_config_path()


def sanitize_variables(record: Any) -> dict[str, str] | None:
    """Upper-case keys and keep only non-blank string values."""
    if not isinstance(record, dict):
        return None
    normalized = {
        str(key).strip().upper(): value
        for key, value in record.items()
        if isinstance(value, str) and value.strip()
    }
    return normalized or None


def expand_placeholders(
    value: str,
    variables: dict[str, str] | None = None,
    fallback: dict[str, str] | None = None,
) -> str:
    """Replace ``${KEY}`` using ``variables``, then ``fallback``, then ``os.environ``.

    Unknown or empty keys leave the placeholder untouched.
    """

    def _replace(match: re.Match[str]) -> str:
        key = match.group(1).strip().upper()
        for source in (variables or {}, fallback or {}, os.environ):
            replacement = source.get(key)
            if isinstance(replacement, str) and replacement:
                return replacement
        return match.group(0)

    return _PLACEHOLDER.sub(_replace, value)


def expand_object(
    value: Any,
    variables: dict[str, str] | None = None,
    fallback: dict[str, str] | None = None,
) -> Any:
    if isinstance(value, str):
        return expand_placeholders(value, variables, fallback)
    if isinstance(value, list):
        return [expand_object(item, variables, fallback) for item in value]
    if isinstance(value, dict):
        return {key: expand_object(item, variables, fallback) for key, item in value.items()}
    return value


def resolve_environment_name(config: dict[str, Any] | None, env_name: str | None = None) -> str:
    if env_name and env_name.strip():
        return env_name.strip()
    from_env = os.environ.get("VIRT_ENV", "")
    if from_env.strip():
        return from_env.strip()
    if config and config.get("default"):
        return str(config["default"])
    environments = (config or {}).get("environments")
    if isinstance(environments, dict) and environments:
        return str(next(iter(environments)))
    return "default"


def resolve_environment(env_name: str | None = None) -> ResolveResult:
    """Resolve the active environment from the config file.

    Parameters
    ----------
    env_name:
        Explicit environment name.  Falls back to ``VIRT_ENV``, the
        ``default`` key, then the first declared environment.

    Returns
    -------
    ResolveResult
        ``env`` is ``None`` when no config exists or the environment is
        not declared in it.
    """
    config = load_yaml_config()
    selected = resolve_environment_name(config, env_name)

    environments = (config or {}).get("environments")
    if not config or not isinstance(environments, dict):
        return ResolveResult(source="env", env_name=selected)

    raw_env = environments.get(selected)
    if not isinstance(raw_env, dict):
        logger.debug("Environment %r not declared in config", selected)
        return ResolveResult(source="yaml", env_name=selected)

    base_variables = sanitize_variables(config.get("variables"))
    env_variables = sanitize_variables(raw_env.get("variables"))
    expanded = expand_object(raw_env, env_variables, base_variables)

    paths = expanded.get("paths") if isinstance(expanded.get("paths"), dict) else {}
    projects_dir = paths.get("projectsDir") or paths.get("workspace")
    api_url = expanded.get("apiUrl")

    return ResolveResult(
        source="yaml",
        env_name=selected,
        env=EnvironmentConfig(
            name=selected,
            api_url=api_url if isinstance(api_url, str) else None,
            variables=env_variables or base_variables,
            postgres=coerce_postgres_config(expanded.get("postgres")),
            databases=coerce_databases_config(expanded.get("databases")),
            opensearch=coerce_opensearch_config(expanded.get("opensearch")),
            mongo=coerce_mongo_config(expanded.get("mongo")),
            projects_dir=projects_dir if isinstance(projects_dir, str) else None,
        ),
    )


def apply_environment(env_name: str | None = None) -> ResolveResult:
    """Resolve ``env_name`` and export ``API_URL``/``PROJECTS_DIR`` when unset."""
    if env_name:
        os.environ["VIRT_ENV"] = str(env_name)
    resolved = resolve_environment(env_name)
    env = resolved.env
    if env is not None:
        if env.api_url and not os.environ.get("API_URL"):
            os.environ["API_URL"] = env.api_url
        if env.projects_dir and not os.environ.get("PROJECTS_DIR"):
            os.environ["PROJECTS_DIR"] = env.projects_dir
    return resolved
