"""Types shared by code handlers."""
from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Union

from starlette.requests import Request


@dataclass
class HandlerContext:
    """What a code handler sees of the incoming request.

    Parameters
    ----------
    params:
        Path parameters.
    query:
        Query parameters; repeated keys become lists.
    body:
        Decoded JSON body, or ``None``.
    resources:
        Shared ``resources`` from ``config.yaml``.
    meta:
        ``now``, ``randomId`` and ``requestId``.
    request:
        The underlying request, for anything else.
    """

    params: dict[str, str]
    query: dict[str, Any]
    body: Any
    resources: dict[str, Any]
    meta: dict[str, str]
    request: Request | None = None

    def template_context(self) -> dict[str, Any]:
        return {
            "params": self.params,
            "query": self.query,
            "body": self.body,
            "resources": self.resources,
            "meta": self.meta,
        }


@dataclass
class HandlerResult:
    status: int = 200
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None


HandlerReturn = Union[HandlerResult, dict, None]
HandlerFn = Callable[[HandlerContext], Union[HandlerReturn, Awaitable[HandlerReturn]]]


def coerce_result(value: Any) -> HandlerResult:
    """Accept a :class:`HandlerResult`, a ``{status, headers, body}`` dict or ``None``."""
    if isinstance(value, HandlerResult):
        return value
    if value is None:
        return HandlerResult(body={"ok": True})
    if isinstance(value, dict):
        return HandlerResult(
            status=int(value.get("status") or 200),
            headers={str(k): str(v) for k, v in (value.get("headers") or {}).items()},
            body=value.get("body"),
        )
    raise TypeError(f"Handler returned unsupported value of type {type(value).__name__}.")
