"""Build ``_bulk`` request bodies from NDJSON, JSON or YAML inputs."""
from __future__ import annotations

import json
import os
from dataclasses import dataclass
from typing import Any

from virt.errors import InputFileError
from virt.files import (
    JSON_EXTENSIONS,
    NDJSON_EXTENSIONS,
    YAML_EXTENSIONS,
    parse_structured,
    read_text,
    resolve_path,
)


@dataclass(frozen=True)
class BulkPayload:
    """An NDJSON body ready for ``POST _bulk`` and its document count."""

    payload: str
    count: int


def normalize_bulk_endpoint(endpoint: str) -> str:
    trimmed = endpoint.rstrip("/")
    return trimmed if trimmed.endswith("/_bulk") else f"{trimmed}/_bulk"


def build_bulk_payload(docs: Any, index: str | None) -> BulkPayload:
    """Pair every document with an ``index`` action line.

    Raises
    ------
    InputFileError
        If ``index`` is missing or any document is not a mapping.
    """
    if not index:
        raise InputFileError("Missing required --index for JSON/YAML inputs.")

    items = docs if isinstance(docs, list) else [docs]
    lines: list[str] = []
    for item in items:
        if not isinstance(item, dict):
            raise InputFileError("Each document must be an object.")
        lines.append(json.dumps({"index": {"_index": index}}, separators=(",", ":")))
        lines.append(json.dumps(item, separators=(",", ":"), default=str))
    return BulkPayload(payload="\n".join(lines) + "\n", count=len(items))


def load_bulk_file(path: str | os.PathLike[str], index: str | None = None) -> BulkPayload:
    """Read ``path`` and return the bulk body to send.

    NDJSON files are passed through (a trailing newline is added when
    missing); JSON and YAML documents are converted with ``index``.
    """
    absolute = resolve_path(path)
    ext = absolute.suffix.lower()
    if ext not in NDJSON_EXTENSIONS | JSON_EXTENSIONS | YAML_EXTENSIONS:
        raise InputFileError(
            "Unsupported file type. Use .ndjson, .jsonl, .json, .yaml, or .yml."
        )

    raw = read_text(absolute)
    if ext in NDJSON_EXTENSIONS:
        payload = raw if raw.endswith("\n") else f"{raw}\n"
        lines = [line for line in payload.split("\n") if line.strip()]
        return BulkPayload(payload=payload, count=len(lines) // 2)

    return build_bulk_payload(parse_structured(raw, ext), index)
