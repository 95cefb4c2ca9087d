"""MongoDB helpers built on ``pymongo``.

Every operation opens a short-lived client through :func:`mongo_database`
so the connection is always closed, even when the operation fails.
"""
from __future__ import annotations

import json
import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any

from bson import ObjectId
from pymongo import MongoClient
from pymongo.database import Database

from virt.errors import InputFileError

logger = logging.getLogger(__name__)

DEFAULT_MONGO_URL = "mongodb://localhost:27017"
DEFAULT_MONGO_DB = "virtual"


@dataclass(frozen=True)
class MongoTarget:
    uri: str
    db: str


def resolve_mongo_target(uri: str | None = None, db: str | None = None) -> MongoTarget:
    """Resolve URI and database: explicit value → env var → config → default."""
    from virt.config import resolve_environment

    env = resolve_environment().env
    mongo_cfg = env.mongo if env else None
    return MongoTarget(
        uri=uri
        or os.environ.get("MONGO_URL")
        or (mongo_cfg.url if mongo_cfg else None)
        or DEFAULT_MONGO_URL,
        db=db
        or os.environ.get("MONGO_DB")
        or (mongo_cfg.db if mongo_cfg else None)
        or DEFAULT_MONGO_DB,
    )


@contextmanager
def mongo_database(target: MongoTarget) -> Iterator[Database]:
    client: MongoClient = MongoClient(target.uri)
    logger.debug("Connected to MongoDB database %r", target.db)
    try:
        yield client[target.db]
    finally:
        client.close()


def parse_object_id(value: str) -> ObjectId | str:
    """Return an ``ObjectId`` for 24-character hex ids, else the raw string."""
    if len(value) == 24 and ObjectId.is_valid(value):
        return ObjectId(value)
    return value


def to_bson(value: Any) -> Any:
    """Prepare YAML-loaded data for BSON; bare dates become midnight datetimes."""
    if isinstance(value, date) and not isinstance(value, datetime):
        return datetime.combine(value, time.min)
    if isinstance(value, dict):
        return {key: to_bson(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_bson(item) for item in value]
    return value


def list_collections(db: Database) -> list[dict[str, str]]:
    return [
        {"name": item["name"], "type": item.get("type") or "collection"}
        for item in db.list_collections()
    ]


def insert_documents(db: Database, collection: str, payload: Any) -> tuple[int, Any]:
    """Insert ``payload`` and return ``(count, inserted_id_or_None)``.

    Lists go through ``insert_many``; a single mapping through ``insert_one``.
    """
    target = db[collection]
    if isinstance(payload, list):
        if not payload:
            return 0, None
        result = target.insert_many(to_bson(payload))
        return len(result.inserted_ids), None
    if isinstance(payload, dict):
        result = target.insert_one(to_bson(payload))
        return 1, result.inserted_id
    raise InputFileError("Insert payload must be an object or array of objects.")


def find_documents(
    db: Database,
    collection: str,
    filter_doc: dict[str, Any] | None = None,
    sort: dict[str, int] | None = None,
    skip: int | None = None,
    limit: int | None = None,
) -> list[dict[str, Any]]:
    cursor = db[collection].find(to_bson(filter_doc or {}))
    if sort:
        cursor = cursor.sort(list(sort.items()))
    if skip is not None:
        cursor = cursor.skip(skip)
    if limit is not None:
        cursor = cursor.limit(limit)
    return list(cursor)


def delete_documents(db: Database, collection: str, filter_doc: dict[str, Any], single: bool) -> int:
    target = db[collection]
    filter_doc = to_bson(filter_doc)
    result = target.delete_one(filter_doc) if single else target.delete_many(filter_doc)
    return result.deleted_count or 0


def parse_sort(raw: str | None) -> dict[str, int] | None:
    """Parse a ``--sort`` JSON object such as ``{"createdAt": -1}``."""
    if not raw or not raw.strip():
        return None
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise InputFileError(f"Invalid --sort JSON: {exc}") from exc
    if not isinstance(parsed, dict):
        raise InputFileError("Sort must be a JSON object.")
    return parsed


def to_plain(value: Any) -> Any:
    """Convert BSON-specific values into JSON/YAML friendly ones."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {key: to_plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_plain(item) for item in value]
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    # Decimal128, Binary, UUID, Regex, ...
    return str(value)


def document_rows(docs: list[dict[str, Any]], fields: list[str]) -> list[dict[str, Any]]:
    rows = []
    for doc in docs:
        row: dict[str, Any] = {"_id": str(doc.get("_id"))}
        for name in fields:
            row[name] = to_plain(doc.get(name))
        rows.append(row)
    return rows
