"""``opensearch`` command group."""
from __future__ import annotations

from typing import TYPE_CHECKING

import click

from virt.cli._common import (
    confirm_or_abort,
    echo_text,
    handle_errors,
    info,
    print_document,
    print_json,
    print_table,
    split_fields,
)

if TYPE_CHECKING:
    from virt.opensearch import OpensearchClient

endpoint_option = click.option(
    "--endpoint",
    "-e",
    default=None,
    help="OpenSearch base URL (default: OPENSEARCH_URL or http://localhost:9200)",
)


def _client(endpoint: str | None) -> "OpensearchClient":
    from virt.opensearch import OpensearchClient, default_auth, default_endpoint

    return OpensearchClient(endpoint or default_endpoint(), auth=default_auth())


@click.group(name="opensearch")
def opensearch_group() -> None:
    """Manage OpenSearch data and indexes."""


# ---------------------------------------------------------------------------
# load / create-index / insert
# ---------------------------------------------------------------------------


@opensearch_group.command(name="load")
@click.argument("file")
@endpoint_option
@click.option("--index", "-i", default=None, help="Target index for JSON/YAML inputs")
@click.option("--dry-run", is_flag=True, default=False, help="Preview the bulk payload without sending it")
def load_command(file: str, endpoint: str | None, index: str | None, dry_run: bool) -> None:
    """Load FILE into OpenSearch with the _bulk API.

    .ndjson/.jsonl files are sent as-is; .json/.yaml documents need --index.
    """
    from virt.opensearch import load_bulk_file

    with handle_errors("loading OpenSearch file"):
        bulk = load_bulk_file(file, index)
        if dry_run:
            info(f"Bulk payload ready ({bulk.count} docs).")
            echo_text(bulk.payload)
            return
        with _client(endpoint) as client:
            response = client.bulk(bulk)
        info(f"Loaded {bulk.count} document(s) into OpenSearch.")
        print_table(
            {key: response.get(key) for key in ("took", "errors")} if isinstance(response, dict) else response
        )


@opensearch_group.command(name="create-index")
@click.argument("name")
@endpoint_option
@click.option("--body", "-b", default=None, help="JSON/YAML file with index settings/mappings")
def create_index_command(name: str, endpoint: str | None, body: str | None) -> None:
    """Create index NAME."""
    from virt.files import load_structured_file

    with handle_errors("creating OpenSearch index"):
        payload = load_structured_file(body) if body else {}
        with _client(endpoint) as client:
            response = client.create_index(name, payload)
        info(f'Index "{name}" created.')
        print_table(response)


@opensearch_group.command(name="insert")
@click.argument("index")
@click.argument("file")
@endpoint_option
@click.option("--id", "doc_id", default=None, help="Document id (optional)")
def insert_command(index: str, file: str, endpoint: str | None, doc_id: str | None) -> None:
    """Insert the single document in FILE into INDEX."""
    from virt.files import load_object_file

    with handle_errors("inserting OpenSearch document"):
        document = load_object_file(file, "Document")
        with _client(endpoint) as client:
            response = client.insert(index, document, doc_id)
        info(f'Inserted document into "{index}".')
        print_table(response)


# ---------------------------------------------------------------------------
# describe-index / list-indices / export-index
# ---------------------------------------------------------------------------


@opensearch_group.command(name="describe-index")
@click.argument("name")
@endpoint_option
@click.option("--mappings", is_flag=True, default=False, help="Fetch mappings only")
@click.option("--settings", is_flag=True, default=False, help="Fetch settings only")
@click.option("--unwrap", is_flag=True, default=False, help="Output only the mappings/settings object")
@click.option("--table", "as_table", is_flag=True, default=False, help="Display mappings as a table")
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice(["pretty", "compact"], case_sensitive=False),
    default="pretty",
    help="JSON output format",
)
def describe_index_command(
    name: str,
    endpoint: str | None,
    mappings: bool,
    settings: bool,
    unwrap: bool,
    as_table: bool,
    output_format: str,
) -> None:
    """Show the mappings and/or settings of index NAME."""
    from virt.opensearch import mapping_rows
    from virt.opensearch import unwrap as unwrap_kind

    with handle_errors("describing OpenSearch index"):
        with _client(endpoint) as client:
            results = client.describe_index(name, mappings=mappings, settings=settings)

        for kind, data in results:
            payload = unwrap_kind(data, name, kind) if unwrap else data
            info(f'Index "{name}" {kind}:')
            if as_table and kind == "mappings":
                mapping = payload if unwrap else unwrap_kind(data, name, "mappings")
                properties = mapping.get("properties") if isinstance(mapping, dict) else None
                if not isinstance(properties, dict):
                    info("No mappings properties found to display.")
                    continue
                print_table(mapping_rows(properties))
                continue
            print_json(payload, compact=output_format.lower() == "compact")


@opensearch_group.command(name="list-indices")
@endpoint_option
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice(["json", "table"], case_sensitive=False),
    default="table",
    help="Output format",
)
def list_indices_command(endpoint: str | None, output_format: str) -> None:
    """List all OpenSearch indices."""
    with handle_errors("listing OpenSearch indices"):
        with _client(endpoint) as client:
            indices = client.list_indices()
        if output_format.lower() == "json":
            print_json(indices)
        else:
            print_table(indices)


@opensearch_group.command(name="export-index")
@click.argument("name")
@endpoint_option
@click.option("--mappings", is_flag=True, default=False, help="Export mappings only")
@click.option("--settings", is_flag=True, default=False, help="Export settings only")
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice(["json", "yaml"], case_sensitive=False),
    default="json",
    help="Output format",
)
@click.option("--output", "-o", default=None, help="Write output to a file instead of stdout")
def export_index_command(
    name: str,
    endpoint: str | None,
    mappings: bool,
    settings: bool,
    output_format: str,
    output: str | None,
) -> None:
    """Export the mappings/settings of index NAME as JSON or YAML."""
    from virt.files import dump_structured, write_output

    with handle_errors("exporting OpenSearch index"):
        with _client(endpoint) as client:
            exported = client.export_index(name, mappings=mappings, settings=settings)
        fmt = output_format.lower()
        content = dump_structured(exported, fmt)
        if output:
            destination = write_output(output, content)
            info(f'Exported index "{name}" to {destination}.')
        else:
            print_document(content, fmt)


# ---------------------------------------------------------------------------
# search
# ---------------------------------------------------------------------------


@opensearch_group.command(name="search")
@click.argument("index")
@endpoint_option
@click.option("--file", "-f", "body_file", default=None, help="JSON/YAML file with the full _search body")
@click.option("--q", "-q", "query", default=None, help="Query string for query_string search")
@click.option("--size", type=int, default=None, help="Number of results to return")
@click.option("--from", "offset", type=int, default=None, help="Result offset")
@click.option("--table", "as_table", is_flag=True, default=False, help="Display hits as a table")
@click.option(
    "--fields",
    default="id,name,type,status",
    show_default=True,
    help="Comma-separated _source fields for table output",
)
def search_command(
    index: str,
    endpoint: str | None,
    body_file: str | None,
    query: str | None,
    size: int | None,
    offset: int | None,
    as_table: bool,
    fields: str,
) -> None:
    """Query INDEX with a body file, a query string, or match_all."""
    from virt.files import load_object_file
    from virt.opensearch import build_search_body, hit_rows

    with handle_errors("querying OpenSearch index"):
        body = load_object_file(body_file, "Search body") if body_file else None
        search_body = build_search_body(body, query, size, offset)
        with _client(endpoint) as client:
            response = client.search(index, search_body)
        if as_table:
            print_table(hit_rows(response, split_fields(fields)))
        else:
            print_json(response)


# ---------------------------------------------------------------------------
# delete / delete-all
# ---------------------------------------------------------------------------


@opensearch_group.command(name="delete")
@click.argument("index")
@click.argument("doc_id", metavar="ID")
@endpoint_option
@click.option("--yes", "-y", is_flag=True, default=False, help="Skip confirmation prompt")
def delete_command(index: str, doc_id: str, endpoint: str | None, yes: bool) -> None:
    """Delete document ID from INDEX."""
    with handle_errors("deleting OpenSearch document"):
        confirm_or_abort(f'Delete document "{doc_id}" from "{index}"?', yes)
        with _client(endpoint) as client:
            response = client.delete_document(index, doc_id)
        info(f'Deleted document "{doc_id}" from "{index}".')
        print_table(response)


@opensearch_group.command(name="delete-all")
@click.argument("index")
@endpoint_option
@click.option("--yes", "-y", is_flag=True, default=False, help="Skip confirmation prompt")
def delete_all_command(index: str, endpoint: str | None, yes: bool) -> None:
    """Delete every document of INDEX (delete by query)."""
    with handle_errors("deleting OpenSearch documents"):
        confirm_or_abort(f'Delete ALL documents from "{index}"? This cannot be undone.', yes)
        with _client(endpoint) as client:
            response = client.delete_all(index)
        info(f'Deleted all documents from "{index}".')
        print_table({key: value for key, value in (response or {}).items() if not isinstance(value, (list, dict))})
