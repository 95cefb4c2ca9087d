"""Postgres helpers: runtime resolution, ``psql`` runner, schema and seeds."""
from __future__ import annotations

from virt.postgres.runner import PsqlRunner, run_command, run_command_output
from virt.postgres.runtime import PostgresRuntime, resolve_postgres_runtime
from virt.postgres.schema import SchemaApplier, list_schema_files, list_sql_files

__all__ = [
    "PostgresRuntime",
    "PsqlRunner",
    "SchemaApplier",
    "list_schema_files",
    "list_sql_files",
    "resolve_postgres_runtime",
    "run_command",
    "run_command_output",
]
