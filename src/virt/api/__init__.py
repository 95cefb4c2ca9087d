"""Client and operations for the party-management API."""
from __future__ import annotations

from virt.api.client import DEFAULT_API_URL, ApiClient, resolve_api_base_url
from virt.api.parties import (
    PartyService,
    PartyTreeNode,
    build_party_payload,
    build_party_tree,
    party_rows,
    reset_order,
    validate_identifier,
)
from virt.api.simulate import load_simulation, run_simulation

__all__ = [
    "DEFAULT_API_URL",
    "ApiClient",
    "PartyService",
    "PartyTreeNode",
    "build_party_payload",
    "build_party_tree",
    "load_simulation",
    "party_rows",
    "reset_order",
    "resolve_api_base_url",
    "run_simulation",
    "validate_identifier",
]
