"""OpenSearch REST helpers: bulk payloads and the index/document client."""
from __future__ import annotations

from virt.opensearch.bulk import BulkPayload, build_bulk_payload, load_bulk_file, normalize_bulk_endpoint
from virt.opensearch.client import (
    OpensearchClient,
    build_search_body,
    default_auth,
    default_endpoint,
    hit_rows,
    mapping_rows,
    unwrap,
)

__all__ = [
    "BulkPayload",
    "OpensearchClient",
    "build_bulk_payload",
    "build_search_body",
    "default_auth",
    "default_endpoint",
    "hit_rows",
    "load_bulk_file",
    "mapping_rows",
    "normalize_bulk_endpoint",
    "unwrap",
]
