"""Console helpers shared by the command groups."""
from __future__ import annotations

import json
import sys
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from typing import Any, NoReturn

import click
from rich.console import Console
from rich.markup import escape
from rich.syntax import Syntax
from rich.table import Table

console = Console()
err_console = Console(stderr=True)


def echo_text(text: str) -> None:
    """Print ``text`` verbatim (no markup, no wrapping)."""
    console.print(text, markup=False, highlight=False, soft_wrap=True)


def info(message: str) -> None:
    console.print(message, markup=False, highlight=False, soft_wrap=True)


def print_document(text: str, lang: str = "json") -> None:
    """Highlight ``text`` on a terminal; print it raw when piped."""
    if console.is_terminal:
        console.print(Syntax(text, lang, word_wrap=True))
    else:
        echo_text(text)


def print_json(data: Any, compact: bool = False) -> None:
    if compact:
        echo_text(json.dumps(data, separators=(",", ":"), ensure_ascii=False, default=str))
    else:
        print_document(json.dumps(data, indent=2, ensure_ascii=False, default=str), "json")


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, default=str)
    return str(value)


def print_table(rows: Iterable[dict[str, Any]] | Any, title: str | None = None) -> None:
    """Render a list of mappings (or one mapping) as a table."""
    if isinstance(rows, dict):
        rows = [rows]
    rows = list(rows or [])
    if not rows:
        console.print("[dim](no rows)[/dim]")
        return
    columns: list[str] = []
    for row in rows:
        for key in row:
            if key not in columns:
                columns.append(key)
    table = Table(title=title)
    for column in columns:
        table.add_column(str(column))
    for row in rows:
        table.add_row(*(_cell(row.get(column)) for column in columns))
    console.print(table)


def fail(action: str, exc: BaseException | str) -> NoReturn:
    err_console.print(f"[red]Error while {action}:[/red] {escape(str(exc))}", highlight=False)
    sys.exit(1)


def _expected_errors() -> tuple[type[BaseException], ...]:
    import httpx
    from bson.errors import BSONError
    from pymongo.errors import PyMongoError

    from virt.errors import VirtError

    return (VirtError, httpx.HTTPError, PyMongoError, BSONError)


@contextmanager
def handle_errors(action: str) -> Iterator[None]:
    """Turn library errors into a red message on stderr and exit status 1.

    API errors also print the response status, the response payload and
    the payload that was sent.
    """
    from virt.errors import ApiError

    try:
        yield
    except ApiError as exc:
        err_console.print(
            f"[red]API error (status {exc.status_code or 'unknown'}) while {action}:[/red]",
            highlight=False,
        )
        if exc.payload is not None:
            err_console.print(_cell(exc.payload), markup=False, highlight=False)
        if exc.sent_payload is not None:
            err_console.print("Sent payload:", _cell(exc.sent_payload), markup=False, highlight=False)
        sys.exit(1)
    except _expected_errors() as exc:
        fail(action, exc)


def confirm_or_abort(message: str, yes: bool) -> None:
    """Ask for confirmation unless ``yes``; print ``Aborted.`` and exit 0 when declined."""
    if yes:
        return
    if not click.confirm(message, default=False):
        info("Aborted.")
        sys.exit(0)


def split_fields(raw: str | None, default: tuple[str, ...] = ("id", "name", "type", "status")) -> list[str]:
    if not raw:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]
