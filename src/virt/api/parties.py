"""Party hierarchy operations on top of :class:`~virt.api.client.ApiClient`.

Parties are plain dicts as returned by the API (``id``, ``shortId``,
``name``, ``type``, ``orgId``, ...).  A party with ``orgId`` of ``None``
is a root organization.
"""
from __future__ import annotations

import logging
import os
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from virt.api.client import MAX_PAGE_SIZE, ApiClient
from virt.errors import InputFileError, VirtError
from virt.files import read_party_file, resolve_path, resolve_project_file

logger = logging.getLogger(__name__)

Party = dict[str, Any]
Echo = Callable[[str], None]

MOVE_MODES = ("node", "children", "descendants")
DEFAULT_TREE_DEPTH = 5
DEFAULT_PARTY_FILE = "parties.yaml"

OPTIONAL_PAYLOAD_FIELDS = (
    "alias",
    "aliases",
    "metadata",
    "utm",
    "qrIdentifier",
    "externalIdentifier",
    "status",
    "balance",
    "currency",
)

_UUID = re.compile(r"^[0-9a-fA-F-]{36}$")
_SHORT_ID = re.compile(r"^[A-Z]{3,}-[A-Za-z0-9_-]{6,}$")

TYPE_ICONS = {
    "ORGANIZATION": "🏢",
    "AFFILIATE": "🤝",
    "PLAYER": "🎮",
}


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def validate_identifier(label: str, value: str) -> None:
    if not _UUID.match(value) and not _SHORT_ID.match(value):
        raise VirtError(f"{label} must be a valid UUID or shortId (prefix-XXXXXXXX).")


def parse_positive_int(raw: str | int | None, label: str) -> int:
    try:
        parsed = int(str(raw).strip())
    except (TypeError, ValueError):
        parsed = 0
    if parsed <= 0:
        raise VirtError(f"{label} must be a positive integer.")
    return parsed


def parse_move_mode(mode: str | None) -> str | None:
    if mode is None:
        return None
    normalized = mode.lower()
    if normalized not in MOVE_MODES:
        raise VirtError("Mode must be one of: node, children, descendants.")
    return normalized


def resolve_party_file(file: str | None, project: str | None = None) -> Path:
    """Return the party file, looked up under the project directory when given."""
    if project:
        return resolve_project_file(project, file or DEFAULT_PARTY_FILE)
    if not file:
        raise InputFileError("You must provide a file path or specify --project.")
    return resolve_path(file)


def party_label(party: Party) -> str:
    return f"{party.get('shortId') or '(missing)'} ({party.get('name')})"


def type_icon(party_type: str | None) -> str:
    return TYPE_ICONS.get(party_type or "", "❓")


def build_party_payload(node: dict[str, Any], parent_id: str) -> dict[str, Any]:
    """Build the POST /parties body for a YAML node."""
    payload: dict[str, Any] = {"name": node.get("name"), "type": node.get("type"), "orgId": parent_id}
    for key in OPTIONAL_PAYLOAD_FIELDS:
        if key in node:
            payload[key] = node[key]
    return payload


# ---------------------------------------------------------------------------
# Reset ordering
# ---------------------------------------------------------------------------


def reset_order(parties: list[Party], remove_roots: bool = False) -> list[Party]:
    """Order removable parties so every child is deleted before its parent.

    Roots are kept unless ``remove_roots``.  Parties caught in a cycle are
    left out of the result.
    """
    removable = [party for party in parties if remove_roots or party.get("orgId") is not None]
    by_id = {party["id"]: party for party in parties}
    deletable = {party["id"] for party in removable}

    pending_children: dict[str, int] = {party["id"]: 0 for party in removable}
    for party in parties:
        parent = party.get("orgId")
        if parent in pending_children and party["id"] in deletable:
            pending_children[parent] += 1

    stack = [party["id"] for party in removable if pending_children[party["id"]] == 0]
    seen: set[str] = set()
    order: list[Party] = []
    while stack:
        current = stack.pop()
        if current in seen:
            continue
        seen.add(current)
        party = by_id[current]
        order.append(party)
        parent = party.get("orgId")
        if parent in deletable:
            pending_children[parent] = max(pending_children[parent] - 1, 0)
            if pending_children[parent] == 0:
                stack.append(parent)
    return order


# ---------------------------------------------------------------------------
# Trees
# ---------------------------------------------------------------------------


@dataclass
class PartyTreeNode:
    party: Party
    children: list["PartyTreeNode"] = field(default_factory=list)


def build_party_tree(root: Party, descendants: Iterable[Party], depth: int = DEFAULT_TREE_DEPTH) -> PartyTreeNode:
    """Nest ``descendants`` under ``root``; siblings sorted by name, at most ``depth`` levels."""
    children_of: dict[str, list[Party]] = {}
    for party in [root, *descendants]:
        parent = party.get("orgId")
        if parent:
            children_of.setdefault(parent, []).append(party)
    for siblings in children_of.values():
        siblings.sort(key=lambda party: str(party.get("name") or ""))

    def _children(parent_id: str, level: int) -> list[PartyTreeNode]:
        if level > depth:
            return []
        return [
            PartyTreeNode(child, _children(child["id"], level + 1))
            for child in children_of.get(parent_id, [])
        ]

    return PartyTreeNode(root, _children(root["id"], 1))


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class PartyService:
    """High-level party operations.

    Parameters
    ----------
    api:
        Open :class:`ApiClient`.
    echo:
        Receives progress lines.
    """

    def __init__(self, api: ApiClient, echo: Echo | None = None) -> None:
        self.api = api
        self._echo = echo or logger.info

    def fetch(self, identifier: str) -> Party:
        return self.api.get(f"/parties/{identifier}")

    def fetch_all(self) -> list[Party]:
        return self.api.fetch_all_paginated("/parties")

    def descendants(self, identifier: str) -> list[Party]:
        return self.api.fetch_all_paginated(f"/parties/{identifier}/descendants")

    def ancestors(self, identifier: str) -> list[Party]:
        return self.api.fetch_all_paginated(f"/parties/{identifier}/ancestors")

    def reset(self, remove_roots: bool = False) -> tuple[int, int]:
        """Delete parties leaf-first; return ``(deleted, skipped)``."""
        parties = self.fetch_all()
        if not parties:
            self._echo("No parties found. Nothing to reset.")
            return 0, 0
        removable = [party for party in parties if remove_roots or party.get("orgId") is not None]
        if not removable:
            self._echo("Only root organizations exist. Use --remove-roots to delete them.")
            return 0, 0

        deleted = 0
        for party in reset_order(parties, remove_roots):
            self.api.delete(f"/parties/{party['id']}")
            deleted += 1
            self._echo(f"Deleted {party_label(party)}")

        skipped = len(removable) - deleted
        suffix = f" Skipped {skipped} (probably due to dependency issues)." if skipped > 0 else ""
        self._echo(f"Reset complete. Deleted {deleted} parties.{suffix}")
        return deleted, skipped

    def load(self, path: str | os.PathLike[str], parent: str, dry_run: bool = False) -> int:
        """Create every party of the YAML tree at ``path`` under ``parent``.

        Returns the number of parties created (0 for dry runs).
        """
        document = read_party_file(path)
        parent_party = self.fetch(parent)
        self._echo(f"Loading parties from {path} under {party_label(parent_party)}")

        created = 0

        def _process(parent_id: str, node: dict[str, Any], level: int) -> None:
            nonlocal created
            indent = "  " * level
            current_parent = parent_id
            if dry_run:
                self._echo(
                    f'{indent}Would create party "{node.get("name")}" ({node.get("type")}) under parent {parent_id}'
                )
            else:
                party = self.api.post("/parties", build_party_payload(node, parent_id))
                created += 1
                self._echo(f"{indent}Created {party_label(party)}")
                current_parent = party["id"]
            for child in node.get("children") or []:
                _process(current_parent, child, level + 1)

        for node in document["parties"]:
            _process(parent_party["id"], node, 0)

        if dry_run:
            self._echo("Dry run complete. No changes were sent to the API.")
        else:
            self._echo(f"Finished loading parties. Created {created} records.")
        return created

    def trees(self, identifier: str | None = None, depth: int = DEFAULT_TREE_DEPTH) -> list[PartyTreeNode]:
        """Return the tree under ``identifier``, or one tree per root organization."""
        if identifier is None:
            roots = [party for party in self.fetch_all() if not party.get("orgId")]
            return [
                self.trees(root.get("shortId") or root["id"], depth)[0]
                for root in roots
            ]
        root = self.fetch(identifier)
        return [build_party_tree(root, self.descendants(identifier), depth)]

    def list_page(
        self,
        page: int = 1,
        page_size: int = 25,
        types: Iterable[str] = (),
        status: str | None = None,
    ) -> dict[str, Any]:
        if page_size > MAX_PAGE_SIZE:
            raise VirtError(f"pageSize must be <= {MAX_PAGE_SIZE}.")
        params: dict[str, Any] = {"page": page, "pageSize": page_size}
        type_filter = [item.upper() for item in types]
        if type_filter:
            params["type"] = type_filter
        if status:
            params["status"] = status.upper()
        return self.api.get("/parties", params) or {"data": []}

    def move(
        self,
        identifier: str,
        new_parent: str,
        mode: str | None = None,
        depth: int | None = None,
    ) -> Any:
        validate_identifier("Identifier", identifier)
        validate_identifier("New parent identifier", new_parent)
        if identifier == new_parent:
            raise VirtError("Identifier and new parent must be different.")
        payload: dict[str, Any] = {"newParentId": new_parent}
        normalized = parse_move_mode(mode)
        if normalized:
            payload["mode"] = normalized
        if depth is not None:
            payload["depth"] = parse_positive_int(depth, "depth")
        result = self.api.post(f"/parties/{identifier}/move", payload)
        self._echo(f"Moved {identifier} under {new_parent}.")
        return result


def party_rows(parties: Iterable[Party]) -> list[dict[str, Any]]:
    return [
        {
            "shortId": party.get("shortId") or "(missing)",
            "id": party.get("id"),
            "name": party.get("name"),
            "type": party.get("type"),
            "currency": party.get("currency") or "-",
            "balance": party.get("balance"),
            "parent": party.get("orgId") or "root",
            "status": party.get("status"),
        }
        for party in parties
    ]
