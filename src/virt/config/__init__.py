"""Configuration for virt-toolkit.

Exports the environment resolver and the typed config models.
"""
from __future__ import annotations

from virt.config.environment import (
    CONFIG_FILES,
    apply_environment,
    expand_placeholders,
    get_config_source_path,
    load_env_files,
    reset_config_cache,
    resolve_environment,
)
from virt.config.models import (
    EnvironmentConfig,
    MongoConfig,
    OpensearchConfig,
    PostgresConfig,
    ResolveResult,
)

__all__ = [
    "CONFIG_FILES",
    "apply_environment",
    "expand_placeholders",
    "get_config_source_path",
    "load_env_files",
    "reset_config_cache",
    "resolve_environment",
    "EnvironmentConfig",
    "MongoConfig",
    "OpensearchConfig",
    "PostgresConfig",
    "ResolveResult",
]
