"""``postgres`` command group."""
from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import click

from virt.cli._common import echo_text, handle_errors, info
from virt.errors import ConfigError, InputFileError

if TYPE_CHECKING:
    from virt.postgres import PsqlRunner


def runtime_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Connection options shared by every ``postgres`` command."""
    options = [
        click.option("--service", "-s", default=None, help="Docker Compose service name (default: postgres)"),
        click.option("--user", "-u", default=None, help="Database user (default: postgres)"),
        click.option("--target", "-t", default=None, help="Database target from config (overrides postgres settings)"),
        click.option("--compose-dir", default=None, help="Directory with docker-compose.yml (default: COMPOSE_DIR or CWD)"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _runner(
    service: str | None,
    user: str | None,
    compose_dir: str | None,
    target: str | None,
    fallback_target: str | None,
    admin_db: str | None = None,
) -> "PsqlRunner":
    from virt.postgres import PsqlRunner, resolve_postgres_runtime

    runtime = resolve_postgres_runtime(
        service=service,
        user=user,
        admin_db=admin_db,
        compose_dir=compose_dir,
        target=target,
        fallback_target=fallback_target,
    )
    return PsqlRunner(runtime)


@click.group(name="postgres")
def postgres_group() -> None:
    """Manage Postgres databases and data seeds."""


# ---------------------------------------------------------------------------
# create-db / drop-db
# ---------------------------------------------------------------------------


@postgres_group.command(name="create-db")
@click.argument("name")
@runtime_options
@click.option("--admin-db", "-a", default=None, help="Admin database name (default: postgres)")
@click.option("--drop", is_flag=True, default=False, help="Drop database before creating it")
@click.option("--yes", "-y", is_flag=True, default=False, help="Skip confirmation for destructive actions")
@click.option("--schema-dir", default=None, help="Directory with .sql or .prisma files to apply")
@click.option("--schema-file", default=None, help="Single .sql or .prisma file to apply")
def create_db_command(
    name: str,
    service: str | None,
    user: str | None,
    target: str | None,
    compose_dir: str | None,
    admin_db: str | None,
    drop: bool,
    yes: bool,
    schema_dir: str | None,
    schema_file: str | None,
) -> None:
    """Create database NAME (optionally dropping it first) and apply schema files."""
    from virt.postgres import SchemaApplier

    with handle_errors("creating database"):
        if drop and not yes:
            raise ConfigError("Use --yes to confirm dropping the database.")
        runner = _runner(service, user, compose_dir, target, name, admin_db)
        runner.wait_until_ready()

        if drop and runner.database_exists(name):
            info(f'Dropping database "{name}"...')
            runner.drop_database(name)

        if runner.database_exists(name):
            info(f'Database "{name}" already exists.')
        else:
            info(f'Creating database "{name}"...')
            runner.create_database(name)
            info(f'Database "{name}" created.')

        SchemaApplier(runner, echo=info).apply(name, schema_dir=schema_dir, schema_file=schema_file)


@postgres_group.command(name="drop-db")
@click.argument("name")
@runtime_options
@click.option("--admin-db", "-a", default=None, help="Admin database name (default: postgres)")
@click.option("--yes", "-y", is_flag=True, default=False, help="Skip confirmation for destructive actions")
def drop_db_command(
    name: str,
    service: str | None,
    user: str | None,
    target: str | None,
    compose_dir: str | None,
    admin_db: str | None,
    yes: bool,
) -> None:
    """Drop database NAME."""
    with handle_errors("dropping database"):
        if not yes:
            raise ConfigError("Use --yes to confirm dropping the database.")
        runner = _runner(service, user, compose_dir, target, name, admin_db)
        runner.wait_until_ready()
        if not runner.database_exists(name):
            info(f'Database "{name}" does not exist.')
            return
        info(f'Dropping database "{name}"...')
        runner.drop_database(name)
        info(f'Database "{name}" dropped.')


# ---------------------------------------------------------------------------
# seed / seed-yaml / seed-entry
# ---------------------------------------------------------------------------


@postgres_group.command(name="seed")
@runtime_options
@click.option("--db", "-d", default="postgres", show_default=True, help="Database name")
@click.option("--sql-file", default=None, help="SQL file to execute")
@click.option("--sql-dir", default=None, help="Directory with .sql files to execute in order")
def seed_command(
    service: str | None,
    user: str | None,
    target: str | None,
    compose_dir: str | None,
    db: str,
    sql_file: str | None,
    sql_dir: str | None,
) -> None:
    """Run SQL seed files against a database."""
    from virt.files import read_text, resolve_path
    from virt.postgres import list_sql_files

    with handle_errors("running seed"):
        if not sql_file and not sql_dir:
            raise InputFileError("Provide --sql-file or --sql-dir.")
        runner = _runner(service, user, compose_dir, target, db)

        if sql_file:
            path = resolve_path(sql_file)
            sql = read_text(path)
            info(f"Seeding {db} from {path}...")
            runner.execute(db, sql)
            info("Seed completed.")
            return

        files = list_sql_files(sql_dir or "")
        if not files:
            info(f"No .sql files found in {resolve_path(sql_dir or '')}.")
            return
        for path in files:
            info(f"Seeding {db} from {path}...")
            runner.execute(db, read_text(path))
        info("Seed completed.")


@postgres_group.command(name="seed-yaml")
@runtime_options
@click.option("--db", "-d", default="postgres", show_default=True, help="Database for top-level tables/operations")
@click.option("--seed", "seed_file", required=True, help="YAML seed file to execute")
@click.option("--dry-run", is_flag=True, default=False, help="Print the compiled SQL instead of executing it")
def seed_yaml_command(
    service: str | None,
    user: str | None,
    target: str | None,
    compose_dir: str | None,
    db: str,
    seed_file: str,
    dry_run: bool,
) -> None:
    """Run a YAML seed document against one or many databases."""
    from virt.files import resolve_path
    from virt.postgres.seed import SeedExecutor, plan_seed, render_plan

    with handle_errors("running YAML seed"):
        plan = plan_seed(seed_file, default_db=db, default_target=target)
        if plan.is_empty:
            info(f"No tables/operations/databases found in seed file {resolve_path(seed_file)}.")
            return
        if dry_run:
            echo_text(render_plan(plan))
            return

        def runner_for(seed_target: str) -> "PsqlRunner":
            return _runner(service, user, compose_dir, seed_target, None)

        executed = SeedExecutor(runner_for, echo=info).run(plan)
        info(f"{executed} statement(s) executed.")


@postgres_group.command(name="seed-entry")
@click.argument("kind", type=click.Choice(["security-users", "wallet-operations"]))
@runtime_options
@click.option("--seed-file", default=None, help="seed-data.yml file (default: SEED_FILE or ./seed-data.yml)")
@click.option("--index", type=int, default=None, help="Entry index (default: SEED_INDEX or 0)")
@click.option("--apply", "apply_sql", is_flag=True, default=False, help="Execute the SQL instead of printing it")
@click.option("--db", "-d", default="postgres", show_default=True, help="Database for --apply")
def seed_entry_command(
    kind: str,
    service: str | None,
    user: str | None,
    target: str | None,
    compose_dir: str | None,
    seed_file: str | None,
    index: int | None,
    apply_sql: bool,
    db: str,
) -> None:
    """Render the template SQL for one entry of a seed-data document."""
    from virt.postgres.seed import render_seed_entry

    with handle_errors("rendering seed entry"):
        sql = render_seed_entry(kind, seed_file, index)
        if not apply_sql:
            echo_text(sql.rstrip("\n"))
            return
        runner = _runner(service, user, compose_dir, target, db)
        info(f"Seeding {db} with {kind} entry...")
        runner.execute(db, sql)
        info("Seed completed.")
