"""Thin REST client for the OpenSearch endpoints used by the CLI.

Usage
-----
::

    from virt.opensearch import OpensearchClient

    with OpensearchClient("http://localhost:9200") as client:
        client.create_index("parties", {"mappings": {...}})
        hits = client.search("parties", {"query": {"match_all": {}}})
"""
from __future__ import annotations

import logging
import os
from typing import Any
from urllib.parse import quote

import httpx

from virt.files import encode_json
from virt.opensearch.bulk import BulkPayload, normalize_bulk_endpoint

logger = logging.getLogger(__name__)

DEFAULT_OPENSEARCH_URL = "http://localhost:9200"
DEFAULT_TIMEOUT = 30.0


def default_endpoint() -> str:
    from virt.config import resolve_environment

    from_env = os.environ.get("OPENSEARCH_URL")
    if from_env:
        return from_env
    env = resolve_environment().env
    if env and env.opensearch and env.opensearch.url:
        return env.opensearch.url
    return DEFAULT_OPENSEARCH_URL


def default_auth() -> tuple[str, str] | None:
    """Return basic-auth credentials from the environment, if any are set."""
    from virt.config import resolve_environment

    user = os.environ.get("OPENSEARCH_USER")
    password = os.environ.get("OPENSEARCH_PASSWORD")
    if user is None and password is None:
        env = resolve_environment().env
        if env and env.opensearch:
            user, password = env.opensearch.user, env.opensearch.password
    if not user and not password:
        return None
    return (user or "", password or "")


def _segment(value: str) -> str:
    return quote(value, safe="")


class OpensearchClient:
    """Synchronous wrapper over the OpenSearch REST API.

    Parameters
    ----------
    endpoint:
        Base URL, e.g. ``http://localhost:9200``.  A trailing slash is ignored.
    auth:
        Optional ``(user, password)`` for basic auth.
    transport:
        Optional ``httpx`` transport; tests pass ``httpx.MockTransport``.
    """

    def __init__(
        self,
        endpoint: str,
        auth: tuple[str, str] | None = None,
        transport: httpx.BaseTransport | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.endpoint = endpoint.rstrip("/")
        self._client = httpx.Client(auth=auth, transport=transport, timeout=timeout)

    def __enter__(self) -> "OpensearchClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        logger.debug("%s %s", method, url)
        response = self._client.request(method, url, **kwargs)
        response.raise_for_status()
        if not response.content:
            return None
        return response.json()

    def _send_json(self, method: str, url: str, body: Any) -> Any:
        return self._request(
            method,
            url,
            content=encode_json(body),
            headers={"content-type": "application/json"},
        )

    def _index_url(self, index: str, suffix: str = "") -> str:
        return f"{self.endpoint}/{_segment(index)}{suffix}"

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def bulk(self, bulk: BulkPayload) -> Any:
        return self._request(
            "POST",
            normalize_bulk_endpoint(self.endpoint),
            content=bulk.payload.encode("utf-8"),
            headers={"content-type": "application/x-ndjson"},
        )

    def insert(self, index: str, document: dict[str, Any], doc_id: str | None = None) -> Any:
        """Index one document; ``PUT`` when ``doc_id`` is given, else ``POST``."""
        if doc_id:
            return self._send_json("PUT", self._index_url(index, f"/_doc/{_segment(doc_id)}"), document)
        return self._send_json("POST", self._index_url(index, "/_doc"), document)

    def delete_document(self, index: str, doc_id: str) -> Any:
        return self._request("DELETE", self._index_url(index, f"/_doc/{_segment(doc_id)}"))

    def delete_all(self, index: str) -> Any:
        return self._request(
            "POST",
            self._index_url(index, "/_delete_by_query"),
            json={"query": {"match_all": {}}},
        )

    def search(self, index: str, body: dict[str, Any]) -> Any:
        return self._send_json("POST", self._index_url(index, "/_search"), body)

    # ------------------------------------------------------------------
    # Indices
    # ------------------------------------------------------------------

    def create_index(self, name: str, body: dict[str, Any] | None = None) -> Any:
        return self._send_json("PUT", self._index_url(name), body or {})

    def list_indices(self) -> Any:
        return self._request("GET", f"{self.endpoint}/_cat/indices", params={"format": "json"})

    def get_mappings(self, name: str) -> Any:
        return self._request("GET", self._index_url(name, "/_mapping"))

    def get_settings(self, name: str) -> Any:
        return self._request("GET", self._index_url(name, "/_settings"))

    def describe_index(
        self, name: str, mappings: bool = False, settings: bool = False
    ) -> list[tuple[str, Any]]:
        """Return ``[(kind, response)]`` for the requested kinds.

        When neither flag is set both mappings and settings are fetched.
        """
        fetch_all = not mappings and not settings
        results: list[tuple[str, Any]] = []
        if mappings or fetch_all:
            results.append(("mappings", self.get_mappings(name)))
        if settings or fetch_all:
            results.append(("settings", self.get_settings(name)))
        return results

    def export_index(
        self, name: str, mappings: bool = False, settings: bool = False
    ) -> dict[str, Any]:
        """Return ``{"mappings": ..., "settings": ...}`` unwrapped from the index key."""
        output: dict[str, Any] = {}
        for kind, data in self.describe_index(name, mappings=mappings, settings=settings):
            output[kind] = unwrap(data, name, kind) or {}
        return output


def unwrap(data: Any, index: str, kind: str) -> Any:
    """Return ``data[index][kind]`` or ``None`` when absent."""
    if not isinstance(data, dict):
        return None
    entry = data.get(index)
    if not isinstance(entry, dict):
        return None
    return entry.get(kind)


def build_search_body(
    body: dict[str, Any] | None = None,
    query: str | None = None,
    size: int | None = None,
    offset: int | None = None,
) -> dict[str, Any]:
    """Assemble a ``_search`` body from a file body, a query string or ``match_all``."""
    if body is not None:
        result = dict(body)
    elif query:
        result = {"query": {"query_string": {"query": query}}}
    else:
        result = {"query": {"match_all": {}}}
    if size is not None:
        result["size"] = size
    if offset is not None:
        result["from"] = offset
    return result


def mapping_rows(properties: Any) -> list[dict[str, str]]:
    """Flatten mapping ``properties`` into ``field``/``type``/``keyword`` rows."""
    if not isinstance(properties, dict):
        return []
    rows = []
    for field_name, definition in properties.items():
        definition = definition if isinstance(definition, dict) else {}
        keyword_def = (definition.get("fields") or {}).get("keyword") or {}
        rows.append(
            {
                "field": field_name,
                "type": str(definition.get("type", "")),
                "keyword": "keyword" if keyword_def.get("type") else "",
            }
        )
    return rows


def hit_rows(response: Any, fields: list[str]) -> list[dict[str, Any]]:
    """Project search hits into ``_id`` plus the requested ``_source`` fields."""
    hits = ((response or {}).get("hits") or {}).get("hits") or []
    rows = []
    for hit in hits:
        source = hit.get("_source") or {}
        row: dict[str, Any] = {"_id": hit.get("_id", "")}
        for name in fields:
            row[name] = source.get(name)
        rows.append(row)
    return rows
