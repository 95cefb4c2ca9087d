"""Netwin summary mock for the reporting API."""
from __future__ import annotations

from typing import Any

from virt.server.handlers.base import HandlerContext, HandlerResult
from virt.server.handlers.registry import handler_registry


def _single(value: Any) -> Any:
    if isinstance(value, list):
        return value[0] if value else None
    return value


def _as_number(raw: Any) -> int | float | None:
    if raw is None or raw == "":
        return None
    try:
        number = float(raw)
    except (TypeError, ValueError):
        return None
    return int(number) if number.is_integer() else number


@handler_registry.register("netwin")
def netwin(ctx: HandlerContext) -> HandlerResult:
    query = ctx.query
    group_by = _single(query.get("group_by")) or "vertical"
    return HandlerResult(
        status=200,
        body={
            "time_range": {
                "start": _single(query.get("date_in")),
                "end": _single(query.get("date_out")),
            },
            "filters": {
                "chain": _single(query.get("chain")),
                "player_id": _as_number(_single(query.get("player_id"))),
            },
            "data": [
                {
                    "group_key": group_by,
                    "group_by": group_by,
                    "coin_in": 1000,
                    "coin_out": 800,
                    "netwin": 200,
                    "operation_count": 12,
                }
            ],
        },
    )
