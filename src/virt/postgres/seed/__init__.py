"""YAML seed interpreter for Postgres.

Usage
-----
::

    from virt.postgres.seed import plan_seed, render_plan

    plan = plan_seed("seeds/base.yaml", default_db="api_wallet")
    print(render_plan(plan))
"""
from __future__ import annotations

import os

from virt.postgres.seed.document import (
    DatabaseSeed,
    SeedGroup,
    SeedPlan,
    SeedRef,
    SeedStep,
    as_seed_ref,
    compile_seed,
    load_seed_document,
)
from virt.postgres.seed.executor import SeedExecutor, render_plan, render_step
from virt.postgres.seed.templates import SeedEntryRenderer, render_seed_entry
from virt.postgres.seed.variables import apply_seed_variables


def plan_seed(
    path: str | os.PathLike[str],
    default_db: str = "postgres",
    default_target: str | None = None,
) -> SeedPlan:
    """Load and compile the seed document at ``path``."""
    return compile_seed(load_seed_document(path), default_db, default_target)


__all__ = [
    "DatabaseSeed",
    "SeedEntryRenderer",
    "SeedExecutor",
    "SeedGroup",
    "SeedPlan",
    "SeedRef",
    "SeedStep",
    "apply_seed_variables",
    "as_seed_ref",
    "compile_seed",
    "load_seed_document",
    "plan_seed",
    "render_plan",
    "render_seed_entry",
    "render_step",
]
