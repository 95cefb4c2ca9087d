"""Run SQL through ``psql`` as a subprocess.

In compose mode the SQL is piped into ``docker compose exec -T <service>
psql``; in direct mode a local ``psql`` connects with ``-h``/``-p``.
"""
from __future__ import annotations

import logging
import os
import subprocess
import time
from collections.abc import Callable, Mapping

from virt.errors import CommandError, ConfigError
from virt.postgres.runtime import DEFAULT_PORT, PostgresRuntime

logger = logging.getLogger(__name__)

READY_ATTEMPTS = 30
READY_INTERVAL_SECONDS = 2.0


def run_command_output(
    command: str,
    args: list[str],
    cwd: str | None = None,
    env: Mapping[str, str] | None = None,
    input_text: str | None = None,
    capture: bool = True,
) -> tuple[str, str]:
    """Run ``command args`` and return ``(stdout, stderr)``.

    Stdout is only captured when ``capture`` is true; stderr always is.

    Raises
    ------
    CommandError
        When the executable is missing or exits with a non-zero status.
    """
    logger.debug("Running %s %s (cwd=%s)", command, " ".join(args), cwd)
    try:
        completed = subprocess.run(
            [command, *args],
            cwd=cwd,
            env=dict(env) if env is not None else None,
            input=input_text,
            stdout=subprocess.PIPE if capture else None,
            stderr=subprocess.PIPE,
            text=True,
            check=False,
        )
    except FileNotFoundError as exc:
        raise CommandError(command, args, None, str(exc)) from exc

    if completed.returncode != 0:
        raise CommandError(command, args, completed.returncode, completed.stderr or "")
    if completed.stderr:
        logger.debug("%s stderr: %s", command, completed.stderr.strip())
    return completed.stdout or "", completed.stderr or ""


def run_command(
    command: str,
    args: list[str],
    cwd: str | None = None,
    env: Mapping[str, str] | None = None,
    input_text: str | None = None,
    capture: bool = False,
) -> str:
    """Run ``command args`` and return captured stdout (empty when not captured)."""
    stdout, _ = run_command_output(command, args, cwd, env, input_text, capture)
    return stdout


Runner = Callable[..., str]


def _quote_literal(value: str) -> str:
    return value.replace("'", "''")


def _quote_ident(value: str) -> str:
    return value.replace('"', '""')


class PsqlRunner:
    """Execute SQL against the server described by a :class:`PostgresRuntime`.

    Parameters
    ----------
    runtime:
        Connection settings.
    run:
        Subprocess function with the signature of :func:`run_command`.
    sleep:
        Sleep function used between readiness attempts.
    """

    def __init__(
        self,
        runtime: PostgresRuntime,
        run: Runner = run_command,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.runtime = runtime
        self._run = run
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Low level
    # ------------------------------------------------------------------

    def _compose(self, args: list[str], input_text: str | None = None, capture: bool = False) -> str:
        return self._run(
            "docker",
            ["compose", *args],
            cwd=self.runtime.compose_dir,
            input_text=input_text,
            capture=capture,
        )

    def _direct(self, db: str, sql: str) -> str:
        runtime = self.runtime
        if not runtime.host:
            raise ConfigError("Missing Postgres host for direct mode.")
        env = dict(os.environ)
        env["PGPASSWORD"] = runtime.password or os.environ.get("PGPASSWORD", "")
        if runtime.ssl:
            env["PGSSLMODE"] = "require"
        args = [
            "-h", runtime.host,
            "-p", str(runtime.port or DEFAULT_PORT),
            "-U", runtime.user,
            "-d", db,
            "-t",
            "-c", sql,
        ]
        return self._run("psql", args, env=env, capture=True)

    def execute(self, db: str, sql: str) -> None:
        """Run ``sql`` against ``db``, discarding query output."""
        if self.runtime.mode == "direct":
            self._direct(db, sql)
            return
        self._compose(
            ["exec", "-T", self.runtime.service, "psql", "-U", self.runtime.user, "-d", db, "-f", "/dev/stdin"],
            input_text=sql,
        )

    def query(self, db: str, sql: str) -> str:
        """Run ``sql`` against ``db`` and return unaligned tuples-only output."""
        if self.runtime.mode == "direct":
            return self._direct(db, sql)
        return self._compose(
            ["exec", "-T", self.runtime.service, "psql", "-U", self.runtime.user, "-d", db, "-t", "-A", "-c", sql],
            capture=True,
        )

    # ------------------------------------------------------------------
    # Server / database management
    # ------------------------------------------------------------------

    def wait_until_ready(
        self, attempts: int = READY_ATTEMPTS, interval: float = READY_INTERVAL_SECONDS
    ) -> None:
        """Poll the server until it accepts connections; re-raise the last failure."""
        runtime = self.runtime
        for attempt in range(attempts):
            try:
                if runtime.mode == "direct":
                    self._direct(runtime.admin_db, "select 1;")
                else:
                    self._compose(
                        ["exec", "-T", runtime.service, "pg_isready", "-U", runtime.user, "-d", runtime.admin_db]
                    )
                return
            except CommandError:
                if attempt == attempts - 1:
                    raise
                logger.debug("Postgres not ready (attempt %d/%d)", attempt + 1, attempts)
                self._sleep(interval)

    def database_exists(self, name: str) -> bool:
        output = self.query(
            self.runtime.admin_db,
            f"SELECT 1 FROM pg_database WHERE datname='{_quote_literal(name)}';",
        )
        return output.strip().startswith("1")

    def create_database(self, name: str) -> None:
        self._admin(f'CREATE DATABASE "{_quote_ident(name)}";')

    def drop_database(self, name: str) -> None:
        self._admin(f'DROP DATABASE "{_quote_ident(name)}";')

    def _admin(self, sql: str) -> None:
        if self.runtime.mode == "direct":
            self._direct(self.runtime.admin_db, sql)
            return
        self._compose(
            ["exec", "-T", self.runtime.service, "psql", "-U", self.runtime.user, "-d", self.runtime.admin_db, "-c", sql]
        )
