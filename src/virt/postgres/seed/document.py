"""Seed document model and compiler.

A seed document is YAML of the form::

    variables: {tenant: acme}
    tables:
      Currency:
        upsertBy: [id]
        rows:
          - {id: USD, name: US Dollar}
    operations:
      - type: update
        table: Party
        where: {identifier: "{{ vars.tenant }}"}
        set: {status: ACTIVE}
    databases:
      wallet:
        db: api_wallet
        target: wallet
        variables: {...}
        tables: {...}
        operations: [...]

:func:`compile_seed` validates the document and turns it into a
:class:`SeedPlan`: one :class:`DatabaseSeed` per target database, each an
ordered list of :class:`SeedGroup` batches of single-row
:class:`SeedStep` statements.  ``ref`` values stay symbolic
(:class:`SeedRef`) until execution, because they may point at rows
inserted earlier in the same plan.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any

import yaml

from virt.errors import SeedError
from virt.files import read_text
from virt.postgres.seed.variables import apply_seed_variables, merge_variables

STEP_KINDS = ("insert", "upsert", "update", "delete")
TABLE_ACTIONS = ("insert", "upsert")


@dataclass(frozen=True)
class SeedRef:
    """A lookup of a single column in another table.

    Written in YAML as ``{ref: {table: Party, where: {identifier: x}, column: id}}``.
    """

    table: str
    where: dict[str, Any]
    column: str = "id"


@dataclass(frozen=True)
class SeedStep:
    """One SQL statement to render and execute.

    ``row`` is set for insert/upsert, ``where`` for update/delete and
    ``set_values`` for update.
    """

    kind: str
    table: str
    row: dict[str, Any] | None = None
    upsert_by: tuple[str, ...] = ()
    where: dict[str, Any] | None = None
    set_values: dict[str, Any] | None = None


@dataclass(frozen=True)
class SeedGroup:
    """Steps that came from one table entry or one operation."""

    message: str
    steps: tuple[SeedStep, ...]


@dataclass(frozen=True)
class DatabaseSeed:
    label: str
    db: str
    target: str
    groups: tuple[SeedGroup, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.groups

    @property
    def statement_count(self) -> int:
        return sum(len(group.steps) for group in self.groups)


@dataclass(frozen=True)
class SeedPlan:
    databases: tuple[DatabaseSeed, ...] = field(default_factory=tuple)

    @property
    def is_empty(self) -> bool:
        return not self.databases


def load_seed_document(path: str | os.PathLike[str]) -> dict[str, Any]:
    """Read a seed YAML file; an empty file yields an empty document."""
    try:
        parsed = yaml.safe_load(read_text(path))
    except yaml.YAMLError as exc:
        raise SeedError(f"Invalid seed YAML: {exc}") from exc
    if parsed is None:
        return {}
    if not isinstance(parsed, dict):
        raise SeedError("Seed file must contain a YAML object.")
    return parsed


# ---------------------------------------------------------------------------
# Refs
# ---------------------------------------------------------------------------


def as_seed_ref(value: Any) -> SeedRef | None:
    """Return a :class:`SeedRef` when ``value`` is a ``{ref: {...}}`` object."""
    if not isinstance(value, dict):
        return None
    ref = value.get("ref")
    if not isinstance(ref, dict) or not ref.get("table") or not isinstance(ref.get("where"), dict):
        return None
    column = ref.get("column") or "id"
    return SeedRef(table=str(ref["table"]), where=dict(ref["where"]), column=str(column))


def _mark_refs(mapping: dict[str, Any]) -> dict[str, Any]:
    marked: dict[str, Any] = {}
    for key, value in mapping.items():
        ref = as_seed_ref(value)
        marked[key] = ref if ref is not None else value
    return marked


def _require_mapping(value: Any, label: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise SeedError(f"{label} must be an object.")
    return value


def _rows(value: Any, label: str) -> list[dict[str, Any]]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise SeedError(f'{label} "rows" must be a list.')
    return [_require_mapping(row, f"{label} row") for row in value]


def _upsert_keys(value: Any, label: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if not isinstance(value, list):
        raise SeedError(f'{label} "upsertBy" must be a list of column names.')
    return tuple(str(item) for item in value)


# ---------------------------------------------------------------------------
# Compilation
# ---------------------------------------------------------------------------


def _upsert_suffix(keys: tuple[str, ...]) -> str:
    return f" (upsert by {', '.join(keys)})" if keys else ""


def compile_tables(tables: Any) -> list[SeedGroup]:
    """Compile a ``tables`` mapping; tables without rows are skipped."""
    if not tables:
        return []
    groups: list[SeedGroup] = []
    for table, config in _require_mapping(tables, '"tables"').items():
        config = config or {}
        if not isinstance(config, dict):
            raise SeedError(f'Table "{table}" must be an object.')
        rows = _rows(config.get("rows"), f'Table "{table}"')
        if not rows:
            continue
        keys = _upsert_keys(config.get("upsertBy"), f'Table "{table}"')
        action = config.get("action") or ("upsert" if keys else "insert")
        if action not in TABLE_ACTIONS:
            raise SeedError(
                f'Invalid table action "{action}" in table "{table}". Use insert or upsert.'
            )
        upsert_by = keys if action == "upsert" else ()
        steps = tuple(
            SeedStep(kind=action, table=str(table), row=_mark_refs(row), upsert_by=upsert_by)
            for row in rows
        )
        groups.append(
            SeedGroup(
                message=f"Seeding {len(rows)} row(s) into {table}{_upsert_suffix(upsert_by)}...",
                steps=steps,
            )
        )
    return groups


def compile_operation(operation: Any) -> SeedGroup:
    op = _require_mapping(operation, "Seed operation")
    table = op.get("table")
    if not table:
        raise SeedError('Seed operation requires "table".')
    table = str(table)
    kind = op.get("type")

    if kind in ("insert", "upsert"):
        rows = _rows(op.get("rows"), f'Operation "{kind}" on {table}')
        if not rows:
            raise SeedError(f'Operation "{kind}" on {table} requires "rows".')
        upsert_by = _upsert_keys(op.get("upsertBy"), f"Operation on {table}") if kind == "upsert" else ()
        return SeedGroup(
            message=f"{kind.upper()} {len(rows)} row(s) into {table}{_upsert_suffix(upsert_by)}...",
            steps=tuple(
                SeedStep(kind=kind, table=table, row=_mark_refs(row), upsert_by=upsert_by)
                for row in rows
            ),
        )

    if kind == "update":
        where, set_values = op.get("where"), op.get("set")
        if not where or not set_values:
            raise SeedError(f'Operation "update" on {table} requires "where" and "set".')
        step = SeedStep(
            kind="update",
            table=table,
            where=_mark_refs(_require_mapping(where, '"where"')),
            set_values=_mark_refs(_require_mapping(set_values, '"set"')),
        )
        return SeedGroup(message=f"UPDATE {table}...", steps=(step,))

    if kind == "delete":
        where = op.get("where")
        if not where:
            raise SeedError(f'Operation "delete" on {table} requires "where".')
        step = SeedStep(kind="delete", table=table, where=_mark_refs(_require_mapping(where, '"where"')))
        return SeedGroup(message=f"DELETE {table}...", steps=(step,))

    raise SeedError(f'Unsupported seed operation type "{kind}".')


def compile_payload(tables: Any, operations: Any, variables: dict[str, Any]) -> tuple[SeedGroup, ...]:
    """Interpolate variables, then compile tables followed by operations."""
    resolved_tables = apply_seed_variables(tables or {}, variables)
    resolved_operations = apply_seed_variables(operations or [], variables)
    if not isinstance(resolved_operations, list):
        raise SeedError('"operations" must be a list.')
    groups = compile_tables(resolved_tables)
    groups.extend(compile_operation(op) for op in resolved_operations)
    return tuple(groups)


def _has_payload(section: dict[str, Any]) -> bool:
    return bool(section.get("tables")) or bool(section.get("operations"))


def compile_seed(
    document: dict[str, Any],
    default_db: str = "postgres",
    default_target: str | None = None,
) -> SeedPlan:
    """Compile a seed document into an ordered :class:`SeedPlan`.

    Parameters
    ----------
    document:
        Parsed seed YAML.
    default_db:
        Database for top-level ``tables``/``operations``.
    default_target:
        Config target for the default payload; defaults to ``default_db``.

    Raises
    ------
    SeedError
        If any table or operation is malformed.  Nothing is executed
        before the whole document has compiled.
    """
    global_variables = document.get("variables") or {}
    if not isinstance(global_variables, dict):
        raise SeedError('"variables" must be an object.')

    databases: list[DatabaseSeed] = []
    if _has_payload(document):
        databases.append(
            DatabaseSeed(
                label="default",
                db=default_db,
                target=default_target or default_db,
                groups=compile_payload(document.get("tables"), document.get("operations"), global_variables),
            )
        )

    scoped = document.get("databases") or {}
    for key, config in _require_mapping(scoped, '"databases"').items():
        config = config or {}
        if not isinstance(config, dict):
            raise SeedError(f'Database entry "{key}" must be an object.')
        variables = merge_variables(global_variables, config.get("variables"))
        databases.append(
            DatabaseSeed(
                label=str(key),
                db=str(config.get("db") or key),
                target=str(config.get("target") or key),
                groups=compile_payload(config.get("tables"), config.get("operations"), variables),
            )
        )

    return SeedPlan(databases=tuple(databases))
