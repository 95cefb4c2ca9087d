"""``mongo`` command group."""
from __future__ import annotations

import click

from virt.cli._common import (
    confirm_or_abort,
    handle_errors,
    info,
    print_document,
    print_json,
    print_table,
    split_fields,
)
from virt.errors import InputFileError

uri_option = click.option(
    "--uri", "-u", default=None, help="MongoDB URI (default: MONGO_URL or mongodb://localhost:27017)"
)
db_option = click.option("--db", "-d", default=None, help="Database name (default: MONGO_DB or virtual)")


def _load_filter(path: str | None) -> dict:
    from virt.files import load_structured_file

    if not path:
        return {}
    data = load_structured_file(path)
    if not isinstance(data, dict):
        raise InputFileError("Filter must be a JSON/YAML object.")
    return data


@click.group(name="mongo")
def mongo_group() -> None:
    """Manage MongoDB collections and documents."""


@mongo_group.command(name="list-collections")
@uri_option
@db_option
def list_collections_command(uri: str | None, db: str | None) -> None:
    """List the collections of the database."""
    from virt.mongo import list_collections, mongo_database, resolve_mongo_target

    with handle_errors("listing MongoDB collections"):
        with mongo_database(resolve_mongo_target(uri, db)) as database:
            rows = list_collections(database)
        print_table(rows)


@mongo_group.command(name="insert")
@click.argument("collection")
@click.argument("file")
@uri_option
@db_option
def insert_command(collection: str, file: str, uri: str | None, db: str | None) -> None:
    """Insert the document (or array of documents) in FILE into COLLECTION."""
    from virt.files import load_structured_file
    from virt.mongo import insert_documents, mongo_database, resolve_mongo_target

    with handle_errors("inserting MongoDB documents"):
        payload = load_structured_file(file)
        with mongo_database(resolve_mongo_target(uri, db)) as database:
            count, inserted_id = insert_documents(database, collection, payload)
        if inserted_id is not None:
            info(f'Inserted 1 document into "{collection}" (id: {inserted_id}).')
        else:
            info(f'Inserted {count} document(s) into "{collection}".')


@mongo_group.command(name="find")
@click.argument("collection")
@uri_option
@db_option
@click.option("--filter", "-f", "filter_file", default=None, help="JSON/YAML file with the query filter")
@click.option("--limit", type=int, default=None, help="Maximum number of documents")
@click.option("--skip", type=int, default=None, help="Number of documents to skip")
@click.option("--sort", default=None, help='Sort as JSON, e.g. \'{"createdAt": -1}\'')
@click.option("--table", "as_table", is_flag=True, default=False, help="Display documents as a table")
@click.option("--fields", default=None, help="Comma-separated fields for table output")
def find_command(
    collection: str,
    uri: str | None,
    db: str | None,
    filter_file: str | None,
    limit: int | None,
    skip: int | None,
    sort: str | None,
    as_table: bool,
    fields: str | None,
) -> None:
    """Find documents in COLLECTION."""
    from virt.mongo import (
        document_rows,
        find_documents,
        mongo_database,
        parse_sort,
        resolve_mongo_target,
        to_plain,
    )

    with handle_errors("querying MongoDB"):
        filter_doc = _load_filter(filter_file)
        sort_doc = parse_sort(sort)
        with mongo_database(resolve_mongo_target(uri, db)) as database:
            docs = find_documents(database, collection, filter_doc, sort_doc, skip, limit)
        if as_table:
            print_table(document_rows(docs, split_fields(fields, ("name", "type", "status"))))
        else:
            print_json(to_plain(docs))


@mongo_group.command(name="delete")
@click.argument("collection")
@click.argument("doc_id", metavar="[ID]", required=False)
@uri_option
@db_option
@click.option("--filter", "-f", "filter_file", default=None, help="JSON/YAML file with the delete filter")
@click.option("--yes", "-y", is_flag=True, default=False, help="Skip confirmation prompt")
def delete_command(
    collection: str,
    doc_id: str | None,
    uri: str | None,
    db: str | None,
    filter_file: str | None,
    yes: bool,
) -> None:
    """Delete one document by ID, or every document matching a filter."""
    from virt.mongo import delete_documents, mongo_database, parse_object_id, resolve_mongo_target

    with handle_errors("deleting MongoDB documents"):
        if doc_id:
            filter_doc = {"_id": parse_object_id(doc_id)}
            prompt = f'Delete document "{doc_id}" from "{collection}"?'
        elif filter_file:
            filter_doc = _load_filter(filter_file)
            prompt = f'Delete documents matching the filter from "{collection}"?'
        else:
            raise InputFileError("Provide an id or a filter to delete.")
        confirm_or_abort(prompt, yes)
        with mongo_database(resolve_mongo_target(uri, db)) as database:
            deleted = delete_documents(database, collection, filter_doc, single=bool(doc_id))
        info(f'Deleted {deleted} document(s) from "{collection}".')


@mongo_group.command(name="export")
@click.argument("collection")
@uri_option
@db_option
@click.option("--filter", "-f", "filter_file", default=None, help="JSON/YAML file with the query filter")
@click.option("--limit", type=int, default=None, help="Maximum number of documents")
@click.option(
    "--type",
    "-t",
    "output_format",
    type=click.Choice(["json", "yaml"], case_sensitive=False),
    default="json",
    help="Output format",
)
@click.option("--output", "-o", default=None, help="Write output to a file instead of stdout")
def export_command(
    collection: str,
    uri: str | None,
    db: str | None,
    filter_file: str | None,
    limit: int | None,
    output_format: str,
    output: str | None,
) -> None:
    """Export documents of COLLECTION as JSON or YAML."""
    from virt.files import dump_structured, write_output
    from virt.mongo import find_documents, mongo_database, resolve_mongo_target, to_plain

    with handle_errors("exporting MongoDB documents"):
        filter_doc = _load_filter(filter_file)
        with mongo_database(resolve_mongo_target(uri, db)) as database:
            docs = find_documents(database, collection, filter_doc, limit=limit)
        fmt = output_format.lower()
        content = dump_structured(to_plain(docs), fmt)
        if output:
            destination = write_output(output, content)
            info(f"Exported {len(docs)} document(s) to {destination}.")
        else:
            print_document(content, fmt)
