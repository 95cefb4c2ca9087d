"""Apply ``.sql`` and ``.prisma`` schema files to a database."""
from __future__ import annotations

import logging
import os
from collections.abc import Callable
from pathlib import Path

from virt.errors import InputFileError, PrismaDiffEmptyError
from virt.files import read_text, resolve_path
from virt.postgres.prisma import (
    PrismaCli,
    PrismaSchemaInfo,
    ensure_role_and_grant,
    resolve_prisma_schema_info,
)
from virt.postgres.runner import PsqlRunner

logger = logging.getLogger(__name__)

SCHEMA_EXTENSIONS = (".sql", ".prisma")


def list_schema_files(directory: str | os.PathLike[str]) -> list[Path]:
    """Return the ``.sql``/``.prisma`` files of ``directory`` sorted by name."""
    root = resolve_path(directory)
    if not root.is_dir():
        raise InputFileError(f"Schema directory not found: {root}")
    return sorted(
        (entry for entry in root.iterdir() if entry.is_file() and entry.suffix.lower() in SCHEMA_EXTENSIONS),
        key=lambda entry: entry.name,
    )


def list_sql_files(directory: str | os.PathLike[str]) -> list[Path]:
    root = resolve_path(directory)
    if not root.is_dir():
        raise InputFileError(f"SQL directory not found: {root}")
    return sorted(
        (entry for entry in root.iterdir() if entry.is_file() and entry.suffix.lower() == ".sql"),
        key=lambda entry: entry.name,
    )


class SchemaApplier:
    """Apply schema files through a :class:`PsqlRunner`.

    Parameters
    ----------
    runner:
        Runner bound to the target server.
    prisma:
        Prisma CLI wrapper used for ``.prisma`` files.
    echo:
        Receives progress lines.
    """

    def __init__(
        self,
        runner: PsqlRunner,
        prisma: PrismaCli | None = None,
        echo: Callable[[str], None] | None = None,
    ) -> None:
        self.runner = runner
        self.prisma = prisma or PrismaCli()
        self._echo = echo or logger.info

    def apply(self, db: str, schema_dir: str | None = None, schema_file: str | None = None) -> int:
        """Apply ``schema_file`` or every schema file in ``schema_dir``.

        Returns the number of files applied.
        """
        if schema_file:
            self.apply_file(db, resolve_path(schema_file))
            return 1
        if not schema_dir:
            return 0
        files = list_schema_files(schema_dir)
        if not files:
            self._echo(f"No .sql or .prisma files found in {resolve_path(schema_dir)}.")
            return 0
        for path in files:
            self.apply_file(db, path)
        return len(files)

    def apply_file(self, db: str, path: Path) -> None:
        if path.suffix.lower() == ".prisma":
            self._apply_prisma(db, path)
            return
        self._echo(f"Applying schema file {path}...")
        self.runner.execute(db, read_text(path))
        self._echo("Schema applied.")

    def _ensure_role(self, db: str, info: PrismaSchemaInfo) -> None:
        if info.needs_role and info.user != self.runner.runtime.user:
            self._echo(f'Ensuring role "{info.user}" exists and has privileges on "{db}"...')
            ensure_role_and_grant(self.runner, db, info.user or "", info.password or "")

    def _apply_prisma(self, db: str, path: Path) -> None:
        self._echo(f"Generating SQL from Prisma schema {path}...")
        info = resolve_prisma_schema_info(path, self.runner.runtime, db)
        if info.inferred:
            self._echo(
                f"Prisma DATABASE_URL not set; using inferred URL for diff (env: {info.env_var})."
            )
        try:
            sql = self.prisma.generate_sql(path, info)
        except PrismaDiffEmptyError as exc:
            logger.debug("Prisma diff failed: %s", exc)
            self._echo("Falling back to Prisma db push...")
            self._ensure_role(db, info)
            self.prisma.db_push(path, info)
            self._echo("Schema applied via Prisma db push.")
            return

        if not sql.strip():
            self._echo("No SQL generated from Prisma schema. Nothing to apply.")
            return
        self._ensure_role(db, info)
        self._echo("Applying generated schema...")
        self.runner.execute(db, sql)
        self._echo("Schema applied.")
