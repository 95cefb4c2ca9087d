"""Code handlers for virtual routes.

Importing this package registers the built-in handlers.
"""
from __future__ import annotations

from virt.server.handlers import netwin as _netwin  # noqa: F401
from virt.server.handlers.base import HandlerContext, HandlerFn, HandlerResult, coerce_result
from virt.server.handlers.registry import (
    ENTRYPOINT_GROUP,
    HandlerAlreadyRegisteredError,
    HandlerNotFoundError,
    HandlerRegistry,
    handler_registry,
)

__all__ = [
    "ENTRYPOINT_GROUP",
    "HandlerAlreadyRegisteredError",
    "HandlerContext",
    "HandlerFn",
    "HandlerNotFoundError",
    "HandlerRegistry",
    "HandlerResult",
    "coerce_result",
    "handler_registry",
]
