"""Registry of code handlers for virtual routes.

A route in ``handlers.yaml`` may name a handler instead of a static
response::

    routes:
      - method: GET
        path: /netwin
        handler: netwin

Handlers are callables taking a :class:`~virt.server.handlers.base.HandlerContext`.
They are registered with the decorator, declared as entry-points under
the ``virt.handlers`` group by other packages, or referenced directly as
``"package.module:function"``.

Example
-------
::

    from virt.server.handlers import handler_registry

    @handler_registry.register("echo")
    def echo(ctx):
        return {"status": 200, "body": {"query": ctx.query}}
"""
from __future__ import annotations

import importlib
import importlib.metadata
import logging
from collections.abc import Callable

from virt.server.handlers.base import HandlerFn

logger = logging.getLogger(__name__)

ENTRYPOINT_GROUP = "virt.handlers"


class HandlerNotFoundError(KeyError):
    """Raised when a requested handler name is not in the registry."""

    def __init__(self, name: str, available: list[str]) -> None:
        self.handler_name = name
        self.available = available
        super().__init__(
            f"Handler {name!r} is not registered. "
            f"Available handlers: {', '.join(available) or 'none'}."
        )


class HandlerAlreadyRegisteredError(ValueError):
    """Raised when attempting to register a name that already exists."""

    def __init__(self, name: str) -> None:
        self.handler_name = name
        super().__init__(
            f"Handler {name!r} is already registered. "
            "Use a unique name or deregister the existing entry first."
        )


class HandlerRegistry:
    """Name → callable map for code handlers."""

    def __init__(self) -> None:
        self._handlers: dict[str, HandlerFn] = {}

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, name: str) -> Callable[[HandlerFn], HandlerFn]:
        """Return a decorator that registers the decorated function under ``name``.

        Raises
        ------
        HandlerAlreadyRegisteredError
            If ``name`` is already in use.
        TypeError
            If the decorated object is not callable.
        """

        def decorator(fn: HandlerFn) -> HandlerFn:
            self.register_handler(name, fn)
            return fn

        return decorator

    def register_handler(self, name: str, fn: HandlerFn) -> None:
        if name in self._handlers:
            raise HandlerAlreadyRegisteredError(name)
        if not callable(fn):
            raise TypeError(f"Cannot register {fn!r} under {name!r}: handlers must be callable.")
        self._handlers[name] = fn
        logger.debug("Registered handler %r -> %s", name, getattr(fn, "__qualname__", fn))

    def deregister(self, name: str) -> None:
        if name not in self._handlers:
            raise HandlerNotFoundError(name, self.list_handlers())
        del self._handlers[name]
        logger.debug("Deregistered handler %r", name)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, name: str) -> HandlerFn:
        try:
            return self._handlers[name]
        except KeyError:
            raise HandlerNotFoundError(name, self.list_handlers()) from None

    def resolve(self, reference: str) -> HandlerFn:
        """Return a registered handler, or import ``module:function``.

        Raises
        ------
        HandlerNotFoundError
            If ``reference`` is neither registered nor importable.
        """
        if reference in self._handlers:
            return self._handlers[reference]
        if ":" not in reference:
            raise HandlerNotFoundError(reference, self.list_handlers())
        module_name, _, attr = reference.partition(":")
        try:
            fn = getattr(importlib.import_module(module_name), attr)
        except (ImportError, AttributeError) as exc:
            logger.debug("Cannot import handler %r: %s", reference, exc)
            raise HandlerNotFoundError(reference, self.list_handlers()) from exc
        if not callable(fn):
            raise HandlerNotFoundError(reference, self.list_handlers())
        return fn

    def list_handlers(self) -> list[str]:
        return sorted(self._handlers)

    def __contains__(self, name: object) -> bool:
        return name in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)

    def __repr__(self) -> str:
        return f"HandlerRegistry(handlers={self.list_handlers()})"

    # ------------------------------------------------------------------
    # Entry-point loading
    # ------------------------------------------------------------------

    def load_entrypoints(self, group: str = ENTRYPOINT_GROUP) -> None:
        """Register handlers declared as entry-points in ``group``.

        Already-registered names are skipped, so repeated calls are
        idempotent.  An entry-point that fails to import is logged and
        skipped.

        In a downstream ``pyproject.toml``::

            [project.entry-points."virt.handlers"]
            payouts = "my_mocks.payouts:handler"
        """
        for ep in importlib.metadata.entry_points(group=group):
            if ep.name in self._handlers:
                logger.debug("Entry-point %r already registered; skipping.", ep.name)
                continue
            try:
                fn = ep.load()
            except Exception:
                logger.exception("Failed to load handler entry-point %r from %r; skipping.", ep.name, group)
                continue
            try:
                self.register_handler(ep.name, fn)
            except (HandlerAlreadyRegisteredError, TypeError):
                logger.warning("Entry-point %r loaded but could not be registered; skipping.", ep.name)


handler_registry = HandlerRegistry()
