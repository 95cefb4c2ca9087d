"""Execute or render a compiled :class:`SeedPlan`.

Statements run one at a time, in plan order, through a
:class:`~virt.postgres.runner.PsqlRunner`.  ``ref`` values are looked up
right before the statement that uses them.
"""
from __future__ import annotations

import logging
import re
from collections.abc import Callable
from typing import Any

from virt.errors import SeedRefNotFoundError
from virt.postgres.runner import PsqlRunner
from virt.postgres.seed.document import DatabaseSeed, SeedPlan, SeedRef, SeedStep
from virt.postgres.seed.sql import (
    RefRenderer,
    build_delete_sql,
    build_insert_sql,
    build_ref_select,
    build_update_sql,
    ref_predicates,
)

logger = logging.getLogger(__name__)

_INTEGER = re.compile(r"^-?\d+$")

RunnerFactory = Callable[[str], PsqlRunner]
Echo = Callable[[str], None]


def render_step(step: SeedStep, render_ref: RefRenderer | None = None) -> str:
    """Render one step as SQL."""
    if step.kind in ("insert", "upsert"):
        return build_insert_sql(step.table, step.row or {}, step.upsert_by, render_ref)
    if step.kind == "update":
        return build_update_sql(step.table, step.set_values or {}, step.where or {}, render_ref)
    return build_delete_sql(step.table, step.where or {}, render_ref)


def render_ref_subselect(ref: SeedRef) -> str:
    return f"({build_ref_select(ref.table, ref.where, ref.column)})"


def render_plan(plan: SeedPlan) -> str:
    """Render the whole plan as a SQL script, refs as scalar sub-selects."""
    chunks: list[str] = []
    for database in plan.databases:
        chunks.append(f"-- [{database.label}] database: {database.db} (target: {database.target})")
        if database.is_empty:
            chunks.append("-- no tables/operations")
        for group in database.groups:
            chunks.append(f"-- {group.message}")
            chunks.extend(render_step(step, render_ref_subselect) for step in group.steps)
        chunks.append("")
    return "\n".join(chunks)


def parse_ref_output(output: str) -> Any:
    value = output.strip()
    if _INTEGER.match(value):
        return int(value)
    return value


def resolve_ref(runner: PsqlRunner, db: str, ref: SeedRef) -> Any:
    sql = f"{build_ref_select(ref.table, ref.where, ref.column)};"
    value = runner.query(db, sql).strip()
    if not value:
        raise SeedRefNotFoundError(ref.table, ref_predicates(ref.where))
    logger.debug("Resolved ref %s.%s -> %s", ref.table, ref.column, value)
    return parse_ref_output(value)


def _resolve_mapping(runner: PsqlRunner, db: str, mapping: dict[str, Any] | None) -> dict[str, Any] | None:
    if mapping is None:
        return None
    return {
        key: resolve_ref(runner, db, value) if isinstance(value, SeedRef) else value
        for key, value in mapping.items()
    }


def resolve_step(runner: PsqlRunner, db: str, step: SeedStep) -> SeedStep:
    """Return ``step`` with every ref in row, where and set replaced by its value."""
    return SeedStep(
        kind=step.kind,
        table=step.table,
        row=_resolve_mapping(runner, db, step.row),
        upsert_by=step.upsert_by,
        where=_resolve_mapping(runner, db, step.where),
        set_values=_resolve_mapping(runner, db, step.set_values),
    )


class SeedExecutor:
    """Run a plan database by database.

    Parameters
    ----------
    runner_factory:
        Returns a :class:`PsqlRunner` for a config target name.
    echo:
        Receives human-readable progress lines.
    """

    def __init__(self, runner_factory: RunnerFactory, echo: Echo | None = None) -> None:
        self._runner_factory = runner_factory
        self._echo = echo or logger.info

    def run(self, plan: SeedPlan) -> int:
        """Execute ``plan`` and return the number of statements run."""
        executed = 0
        for database in plan.databases:
            executed += self.run_database(database)
        return executed

    def run_database(self, database: DatabaseSeed) -> int:
        scope = f"[{database.label}] "
        if database.is_empty:
            self._echo(f"{scope}No tables/operations found for {database.db}.")
            return 0

        runner = self._runner_factory(database.target)
        self._echo(f"{scope}Applying YAML seed to {database.db}...")
        executed = 0
        for group in database.groups:
            self._echo(group.message)
            for step in group.steps:
                sql = render_step(resolve_step(runner, database.db, step))
                runner.execute(database.db, sql)
                executed += 1
        self._echo(f"{scope}YAML seed completed on {database.db}.")
        return executed
