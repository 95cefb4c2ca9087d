"""Response templating for virtual routes.

``{{ params.id }}`` style tokens are looked up as dotted paths in the
request context and replaced by their text; unknown paths become ``""``
and null values ``"null"``.
Templates may be strings, lists or mappings and are applied recursively.
"""
from __future__ import annotations

import json
import re
import uuid
from datetime import datetime, timezone
from typing import Any

_TOKEN = re.compile(r"{{\s*([^}]+?)\s*}}")
_MISSING = object()


def create_random_id() -> str:
    return uuid.uuid4().hex[:8]


def utc_now_iso() -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a ``Z`` suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_meta(request_id: str | None = None) -> dict[str, str]:
    return {
        "now": utc_now_iso(),
        "randomId": create_random_id(),
        "requestId": request_id or create_random_id(),
    }


def lookup(context: Any, token: str, default: Any = None) -> Any:
    """Walk the dotted ``token`` through ``context``; ``default`` when a step is absent."""
    current = context
    for part in token.split("."):
        if isinstance(current, dict) and part in current:
            current = current[part]
        elif isinstance(current, list) and part.isdigit() and int(part) < len(current):
            current = current[int(part)]
        else:
            return default
    return current


def _as_text(value: Any) -> str:
    if value is _MISSING:
        return ""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"), default=str)
    return str(value)


def interpolate_string(template: str, context: dict[str, Any]) -> str:
    return _TOKEN.sub(lambda found: _as_text(lookup(context, found.group(1), _MISSING)), template)


def apply_template(template: Any, context: dict[str, Any]) -> Any:
    if isinstance(template, str):
        return interpolate_string(template, context)
    if isinstance(template, list):
        return [apply_template(item, context) for item in template]
    if isinstance(template, dict):
        return {key: apply_template(value, context) for key, value in template.items()}
    return template
