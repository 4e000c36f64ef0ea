from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from momentracker.domain.quotes.schemas import LiveEvent, LivePriceState, StreamStatusEvent


def to_client_payload(event: LiveEvent) -> dict[str, Any]:
    if isinstance(event, LivePriceState):
        return build_price_update(event)
    if isinstance(event, StreamStatusEvent):
        return build_system_status(connection_state=event.connection_state, message=event.message)
    return build_system_error(code=event.code, message=event.message)


def build_price_update(state: LivePriceState) -> dict[str, Any]:
    return {
        "type": "price.update",
        "ts": utc_now_iso(),
        "source": "WS",
        "data": {
            "symbol": state.symbol,
            "price": state.last_price,
            "previous_close": state.previous_close,
            "percent_change": state.percent_change,
            "delta": state.delta,
            "trade_ts": to_iso_datetime(state.last_trade_at),
        },
    }


def build_system_status(*, connection_state: str, message: str | None = None) -> dict[str, Any]:
    data: dict[str, Any] = {
        "connection_state": connection_state,
    }
    if message:
        data["message"] = message
    return {
        "type": "system.status",
        "ts": utc_now_iso(),
        "source": "WS",
        "data": data,
    }


def build_system_error(*, code: str, message: str) -> dict[str, Any]:
    return {
        "type": "system.error",
        "ts": utc_now_iso(),
        "source": "WS",
        "data": {
            "code": code,
            "message": message,
        },
    }


def utc_now_iso() -> str:
    return datetime.now(tz=timezone.utc).isoformat().replace("+00:00", "Z")


def to_iso_datetime(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
