"""api-virtual: a YAML-driven mock server for OpenAPI-described APIs."""
from __future__ import annotations

from virt.server.app import create_app
from virt.server.loader import RouteDefinition, VirtualApi, VirtualState, load_state
from virt.server.settings import ServerSettings

__all__ = [
    "RouteDefinition",
    "ServerSettings",
    "VirtualApi",
    "VirtualState",
    "create_app",
    "load_state",
]
