"""SQL rendering for YAML seed statements.

Values are rendered as Postgres literals:

- ``None`` → ``NULL``
- ``bool`` → ``TRUE`` / ``FALSE``
- ``int`` / ``float`` → plain number (non-finite floats are rejected)
- ``date`` / ``datetime`` → quoted ISO-8601 string
- ``{"sql": "now()"}`` → the raw SQL fragment
- other mappings and lists → ``'<json>'::jsonb``
- everything else → a single-quoted string with ``'`` doubled
"""
from __future__ import annotations

import json
import math
from collections.abc import Callable, Mapping, Sequence
from datetime import date, datetime
from typing import Any

from virt.errors import SeedError

RefRenderer = Callable[[Any], str]


def quote_identifier(value: str) -> str:
    return '"' + str(value).replace('"', '""') + '"'


def quote_literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def is_raw_sql(value: Any) -> bool:
    return isinstance(value, dict) and len(value) == 1 and isinstance(value.get("sql"), str)


def to_sql_value(value: Any, render_ref: RefRenderer | None = None) -> str:
    """Render ``value`` as a SQL literal.

    ``render_ref`` handles unresolved ``ref`` objects (dry-run plans); when
    it is ``None`` a ref is rendered like any other mapping.
    """
    from virt.postgres.seed.document import SeedRef

    if value is None:
        return "NULL"
    if isinstance(value, SeedRef):
        if render_ref is None:
            raise SeedError(f"Unresolved seed ref on table {value.table!r}.")
        return render_ref(value)
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            raise SeedError("Invalid number value in seed YAML.")
        return repr(value)
    if isinstance(value, (datetime, date)):
        return quote_literal(value.isoformat())
    if isinstance(value, (dict, list, tuple)):
        if is_raw_sql(value):
            return value["sql"]
        payload = json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)
        return f"{quote_literal(payload)}::jsonb"
    return quote_literal(str(value))


def build_insert_sql(
    table: str,
    row: Mapping[str, Any],
    upsert_by: Sequence[str] = (),
    render_ref: RefRenderer | None = None,
) -> str:
    """Render an INSERT, turning it into an upsert when ``upsert_by`` is set.

    Non-key columns are updated from ``EXCLUDED``; when every column is a
    key the conflict is ignored with ``DO NOTHING``.
    """
    columns = list(row)
    if not columns:
        raise SeedError(f'Seed row for table "{table}" has no columns.')
    column_sql = ", ".join(quote_identifier(col) for col in columns)
    values_sql = ", ".join(to_sql_value(row[col], render_ref) for col in columns)
    sql = f"INSERT INTO {quote_identifier(table)} ({column_sql}) VALUES ({values_sql})"

    if not upsert_by:
        return f"{sql};"

    conflict_sql = ", ".join(quote_identifier(col) for col in upsert_by)
    update_cols = [col for col in columns if col not in upsert_by]
    if not update_cols:
        return f"{sql} ON CONFLICT ({conflict_sql}) DO NOTHING;"
    update_sql = ", ".join(
        f"{quote_identifier(col)} = EXCLUDED.{quote_identifier(col)}" for col in update_cols
    )
    return f"{sql} ON CONFLICT ({conflict_sql}) DO UPDATE SET {update_sql};"


def build_where_sql(
    table: str, where: Mapping[str, Any], render_ref: RefRenderer | None = None
) -> str:
    if not where:
        raise SeedError(f'Operation on table "{table}" requires a non-empty "where" clause.')
    predicates = []
    for column, value in where.items():
        if value is None:
            predicates.append(f"{quote_identifier(column)} IS NULL")
        else:
            predicates.append(f"{quote_identifier(column)} = {to_sql_value(value, render_ref)}")
    return " AND ".join(predicates)


def build_update_sql(
    table: str,
    set_values: Mapping[str, Any],
    where: Mapping[str, Any],
    render_ref: RefRenderer | None = None,
) -> str:
    if not set_values:
        raise SeedError(f'Update operation for "{table}" requires a non-empty "set" object.')
    set_sql = ", ".join(
        f"{quote_identifier(col)} = {to_sql_value(value, render_ref)}" for col, value in set_values.items()
    )
    where_sql = build_where_sql(table, where, render_ref)
    return f"UPDATE {quote_identifier(table)} SET {set_sql} WHERE {where_sql};"


def build_delete_sql(
    table: str, where: Mapping[str, Any], render_ref: RefRenderer | None = None
) -> str:
    return f"DELETE FROM {quote_identifier(table)} WHERE {build_where_sql(table, where, render_ref)};"


def ref_predicates(where: Mapping[str, Any]) -> list[str]:
    return [f"{quote_identifier(col)} = {to_sql_value(value)}" for col, value in where.items()]


def build_ref_select(table: str, where: Mapping[str, Any], column: str = "id") -> str:
    """Render the lookup used to resolve a ``ref`` (without trailing ``;``)."""
    predicates = ref_predicates(where)
    where_sql = f" WHERE {' AND '.join(predicates)}" if predicates else ""
    return f"SELECT {quote_identifier(column)} FROM {quote_identifier(table)}{where_sql} LIMIT 1"
