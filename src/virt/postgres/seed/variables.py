"""Variable interpolation for seed documents.

Two placeholder syntaxes are accepted: ``{{ vars.path }}`` and the legacy
``${path}``.  A string consisting of a single placeholder is replaced by
the variable's value with its type preserved; placeholders embedded in
longer strings are replaced by the value's text.  Missing variables
become the empty string.
"""
from __future__ import annotations

import json
import re
from typing import Any

_PATH = r"([a-zA-Z0-9_.-]+)"
_EXACT_HANDLEBARS = re.compile(r"^{{\s*vars\." + _PATH + r"\s*}}$")
_EXACT_LEGACY = re.compile(r"^\$\{" + _PATH + r"\}$")
_HANDLEBARS = re.compile(r"{{\s*vars\." + _PATH + r"\s*}}")
_LEGACY = re.compile(r"\$\{" + _PATH + r"\}")

_MISSING = object()


def resolve_var_path(variables: Any, key_path: str) -> Any:
    """Walk ``a.b.c`` through nested mappings (and list indices)."""
    current = variables
    for part in key_path.split("."):
        if isinstance(current, dict):
            current = current.get(part, _MISSING)
        elif isinstance(current, list) and part.isdigit() and int(part) < len(current):
            current = current[int(part)]
        else:
            return _MISSING
        if current is _MISSING:
            return _MISSING
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


def apply_seed_variables(value: Any, variables: dict[str, Any]) -> Any:
    """Return a copy of ``value`` with every placeholder resolved."""
    if isinstance(value, str):
        for pattern in (_EXACT_HANDLEBARS, _EXACT_LEGACY):
            match = pattern.match(value)
            if match:
                resolved = resolve_var_path(variables, match.group(1))
                return "" if resolved is _MISSING else resolved

        def _replace(match: re.Match[str]) -> str:
            return _as_text(resolve_var_path(variables, match.group(1)))

        return _LEGACY.sub(_replace, _HANDLEBARS.sub(_replace, value))

    if isinstance(value, list):
        return [apply_seed_variables(item, variables) for item in value]
    if isinstance(value, dict):
        return {key: apply_seed_variables(item, variables) for key, item in value.items()}
    return value


def merge_variables(*scopes: Any) -> dict[str, Any]:
    """Shallow-merge variable scopes; later scopes win."""
    merged: dict[str, Any] = {}
    for scope in scopes:
        if isinstance(scope, dict):
            merged.update(scope)
    return merged
