"""virt-toolkit: seed and query virtual environments, and serve mock APIs.

Public API
----------
The stable public surface is everything exported from this module.
Anything inside submodules not re-exported here is considered private
and may change without notice.

Example
-------
::

    import virt

    # Resolve the active environment from virt.config.yaml
    resolved = virt.resolve_environment("local")

    # Compile a YAML seed without touching a database
    plan = virt.plan_seed("seeds/base.yaml", default_db="api_wallet")

    # Build the mock server application
    app = virt.create_app()

    virt.__version__
    '0.1.0'
"""
from __future__ import annotations

import os
from typing import TYPE_CHECKING, Any

__version__: str = "0.1.0"

if TYPE_CHECKING:
    from fastapi import FastAPI

    from virt.config.models import ResolveResult
    from virt.postgres.seed.document import SeedPlan
    from virt.server.settings import ServerSettings


def resolve_environment(env_name: str | None = None) -> "ResolveResult":
    """Resolve the active environment from the config file.

    Parameters
    ----------
    env_name:
        Explicit environment name; falls back to ``VIRT_ENV``, the
        config's ``default`` key, then the first declared environment.
    """
    from virt.config.environment import resolve_environment as _resolve

    return _resolve(env_name)


def load_seed_document(path: str | os.PathLike[str]) -> dict[str, Any]:
    """Read a seed YAML document; an empty file yields ``{}``."""
    from virt.postgres.seed.document import load_seed_document as _load

    return _load(path)


def plan_seed(
    path: str | os.PathLike[str],
    default_db: str = "postgres",
    default_target: str | None = None,
) -> "SeedPlan":
    """Load and compile a seed document into an ordered plan.

    Raises
    ------
    virt.errors.SeedError
        If any table or operation in the document is malformed.
    """
    from virt.postgres.seed import plan_seed as _plan

    return _plan(path, default_db, default_target)


def create_app(settings: "ServerSettings | None" = None) -> "FastAPI":
    """Build the api-virtual FastAPI application."""
    from virt.server.app import create_app as _create

    return _create(settings)


__all__ = [
    "__version__",
    "create_app",
    "load_seed_document",
    "plan_seed",
    "resolve_environment",
]
