"""MongoDB helpers for the ``mongo`` command group."""
from __future__ import annotations

from virt.mongo.client import (
    MongoTarget,
    delete_documents,
    document_rows,
    find_documents,
    insert_documents,
    list_collections,
    mongo_database,
    parse_object_id,
    parse_sort,
    resolve_mongo_target,
    to_bson,
    to_plain,
)

__all__ = [
    "MongoTarget",
    "delete_documents",
    "document_rows",
    "find_documents",
    "insert_documents",
    "list_collections",
    "mongo_database",
    "parse_object_id",
    "parse_sort",
    "resolve_mongo_target",
    "to_bson",
    "to_plain",
]
