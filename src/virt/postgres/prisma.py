"""Turn a Prisma schema into SQL with the Prisma CLI.

``prisma migrate diff --from-empty`` renders the full DDL for a schema.
Some Prisma versions refuse a ``url`` inside the datasource block when a
URL is also passed through the environment, so the CLI always receives a
temporary copy of the schema with that line removed.
"""
from __future__ import annotations

import logging
import os
import re
import tempfile
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import quote, unquote, urlsplit

from virt.errors import ConfigError, PrismaDiffEmptyError
from virt.files import read_text, resolve_path
from virt.postgres.runner import PsqlRunner, run_command_output
from virt.postgres.runtime import DEFAULT_PORT, PostgresRuntime

logger = logging.getLogger(__name__)

_ENV_URL = re.compile(r"""url\s*=\s*env\(\s*["']([^"']+)["']\s*\)""", re.IGNORECASE)
_EXPLICIT_URL = re.compile(r"""url\s*=\s*["']([^"']+)["']\s*""", re.IGNORECASE)
_DATASOURCE_URL = re.compile(r"datasource\s+\w+\s*\{[\s\S]*?\burl\s*=")
_DATASOURCE_URL_LINE = re.compile(r"(datasource\s+\w+\s*\{[\s\S]*?\n)(\s*url\s*=\s*.*\n)")
_SQL_LIKE = re.compile(r"\bcreate\s+table\b|\bcreate\s+index\b|\bcreate\s+type\b", re.IGNORECASE)

CaptureRunner = Callable[..., tuple[str, str]]


@dataclass(frozen=True)
class PrismaSchemaInfo:
    """Datasource connection details for a schema.

    ``inferred`` is true when the URL was built from the Postgres runtime
    because neither an explicit URL nor the referenced env var was set.
    """

    url: str
    env_var: str | None = None
    user: str | None = None
    password: str | None = None
    inferred: bool = False

    @property
    def needs_role(self) -> bool:
        return bool(self.user and self.password)


def parse_database_url(url: str) -> tuple[str | None, str | None]:
    """Return the decoded ``(user, password)`` of a connection URL."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return None, None
    user = unquote(parts.username) if parts.username else None
    password = unquote(parts.password) if parts.password else None
    return user, password


def infer_database_url(runtime: PostgresRuntime, db: str) -> str:
    if runtime.mode == "direct" and not runtime.host:
        raise ConfigError("Missing Postgres host for direct mode.")
    host = (runtime.host or "localhost") if runtime.mode == "direct" else "localhost"
    password = (
        runtime.password
        or os.environ.get("POSTGRES_PASSWORD")
        or os.environ.get("PG_PASSWORD")
        or "postgres"
    )
    return (
        f"postgresql://{quote(runtime.user or 'postgres', safe='')}:{quote(password, safe='')}"
        f"@{host}:{runtime.port or DEFAULT_PORT}/{quote(db, safe='')}?schema=public"
    )


def resolve_prisma_schema_info(schema_path: str | os.PathLike[str], runtime: PostgresRuntime, db: str) -> PrismaSchemaInfo:
    schema = read_text(schema_path)
    env_match = _ENV_URL.search(schema)
    url_match = _EXPLICIT_URL.search(schema)
    env_var = env_match.group(1) if env_match else None

    if url_match:
        return PrismaSchemaInfo(url=url_match.group(1))

    if env_var and os.environ.get(env_var):
        url = os.environ[env_var]
        user, password = parse_database_url(url)
        return PrismaSchemaInfo(url=url, env_var=env_var, user=user, password=password)

    url = infer_database_url(runtime, db)
    user, password = parse_database_url(url)
    return PrismaSchemaInfo(
        url=url, env_var=env_var or "DATABASE_URL", user=user, password=password, inferred=True
    )


@contextmanager
def prepared_schema(schema_path: str | os.PathLike[str]) -> Iterator[Path]:
    """Yield a schema path whose datasource block has no ``url`` line."""
    absolute = resolve_path(schema_path)
    schema = read_text(absolute)
    if not _DATASOURCE_URL.search(schema):
        yield absolute
        return
    sanitized = _DATASOURCE_URL_LINE.sub(r"\1", schema, count=1)
    with tempfile.TemporaryDirectory(prefix="virt-prisma-schema-") as tmp:
        copy = Path(tmp) / "schema.prisma"
        copy.write_text(sanitized, encoding="utf-8")
        yield copy


def role_grant_sql(db: str, user: str, password: str) -> str:
    safe_user = user.replace('"', '""')
    safe_db = db.replace('"', '""')
    safe_password = password.replace("'", "''")
    return (
        "DO $$\n"
        "BEGIN\n"
        f"  IF NOT EXISTS (SELECT 1 FROM pg_roles WHERE rolname = '{safe_user}') THEN\n"
        f"    CREATE ROLE \"{safe_user}\" LOGIN PASSWORD '{safe_password}';\n"
        "  END IF;\n"
        "END$$;\n"
        f'GRANT ALL PRIVILEGES ON DATABASE "{safe_db}" TO "{safe_user}";'
    )


def ensure_role_and_grant(runner: PsqlRunner, db: str, user: str, password: str) -> None:
    """Create ``user`` if missing and grant it every privilege on ``db``."""
    runner.execute(runner.runtime.admin_db, role_grant_sql(db, user, password))


class PrismaCli:
    """Thin wrapper over ``npx --yes prisma``.

    Parameters
    ----------
    run:
        Capturing subprocess function with the signature of
        :func:`~virt.postgres.runner.run_command_output`.
    cwd:
        Working directory for ``npx``; defaults to the current directory.
    """

    def __init__(self, run: CaptureRunner = run_command_output, cwd: str | None = None) -> None:
        self._run = run
        self._cwd = cwd

    def _env(self, info: PrismaSchemaInfo) -> dict[str, str]:
        env = dict(os.environ)
        if info.url:
            env[info.env_var or "DATABASE_URL"] = info.url
        return env

    def _npx(self, args: list[str], info: PrismaSchemaInfo) -> tuple[str, str]:
        return self._run("npx", ["--yes", "prisma", *args], cwd=self._cwd or os.getcwd(), env=self._env(info))

    def generate_sql(self, schema_path: str | os.PathLike[str], info: PrismaSchemaInfo) -> str:
        """Return the DDL that creates ``schema_path`` from an empty database.

        Raises
        ------
        PrismaDiffEmptyError
            When no variant of the diff command produced SQL.
        """
        with prepared_schema(schema_path) as schema, tempfile.TemporaryDirectory(prefix="virt-prisma-") as out:
            output_file = Path(out) / "schema.sql"
            diff = ["migrate", "diff", "--from-empty", "--to-schema", str(schema), "--script"]
            _, output_stderr = self._npx([*diff, "--output", str(output_file)], info)

            if output_file.exists():
                sql = output_file.read_text(encoding="utf-8")
                if sql.strip():
                    return sql
                raise PrismaDiffEmptyError(output_stderr.strip())

            # Older Prisma versions ignore --output for diff --script.
            logger.debug("Prisma wrote no output file; retrying diff on stdout")
            stdout, stderr = self._npx(diff, info)
            if stdout.strip():
                return stdout
            if _SQL_LIKE.search(stderr):
                return stderr
            raise PrismaDiffEmptyError(stderr.strip() or output_stderr.strip())

    def db_push(self, schema_path: str | os.PathLike[str], info: PrismaSchemaInfo) -> None:
        with prepared_schema(schema_path) as schema:
            args = ["db", "push", "--schema", str(schema)]
            if info.url:
                args.extend(["--url", info.url])
            self._npx(args, info)
