"""JSON client for the party-management HTTP API.

Usage
-----
::

    from virt.api import ApiClient

    with ApiClient("http://localhost:4000") as api:
        party = api.get("/parties/ORG-000001")
        everything = api.fetch_all_paginated("/parties")
"""
from __future__ import annotations

import json
import logging
import os
from typing import Any

import httpx

from virt.errors import ApiError
from virt.files import encode_json

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "http://localhost:4000"
DEFAULT_TIMEOUT = 30.0
MAX_PAGE_SIZE = 100


def resolve_api_base_url(explicit: str | None = None) -> str:
    """Return ``explicit`` or ``API_URL`` or the default, without a trailing slash."""
    base = (explicit or os.environ.get("API_URL") or DEFAULT_API_URL).strip()
    return base[:-1] if base.endswith("/") else base


def _decode(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except json.JSONDecodeError:
        return response.text


class ApiClient:
    """Synchronous JSON client with a fixed base URL.

    Parameters
    ----------
    base_url:
        API root; see :func:`resolve_api_base_url`.
    transport:
        Optional ``httpx`` transport; tests pass ``httpx.MockTransport``.
    timeout:
        Per-request timeout in seconds.
    """

    def __init__(
        self,
        base_url: str | None = None,
        transport: httpx.BaseTransport | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.base_url = resolve_api_base_url(base_url)
        self._client = httpx.Client(
            base_url=self.base_url,
            transport=transport,
            timeout=timeout,
            headers={"Content-Type": "application/json"},
        )

    def __enter__(self) -> "ApiClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        payload: Any = None,
    ) -> Any:
        """Send a request and return the decoded body.

        Raises
        ------
        ApiError
            When the API answers with a 4xx/5xx status.
        """
        logger.debug("%s %s%s params=%s", method, self.base_url, path, params)
        response = self._client.request(
            method,
            path,
            params=params,
            content=encode_json(payload) if payload is not None else None,
        )
        if response.is_error:
            raise ApiError(
                f"API error (status {response.status_code})",
                status_code=response.status_code,
                payload=_decode(response),
                sent_payload=payload,
            )
        return _decode(response)

    def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return self.request("GET", path, params=params)

    def post(self, path: str, payload: Any = None) -> Any:
        return self.request("POST", path, payload=payload)

    def delete(self, path: str) -> Any:
        return self.request("DELETE", path)

    def fetch_all_paginated(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        page_size: int = MAX_PAGE_SIZE,
    ) -> list[Any]:
        """Collect ``data`` from every page of a ``{data, currentPage, totalPages}`` listing."""
        items: list[Any] = []
        page = 1
        while True:
            body = self.get(path, {**(params or {}), "page": page, "pageSize": page_size}) or {}
            items.extend(body.get("data") or [])
            current = int(body.get("currentPage") or page)
            total = int(body.get("totalPages") or 0)
            if total == 0 or current >= total:
                return items
            page = current + 1
