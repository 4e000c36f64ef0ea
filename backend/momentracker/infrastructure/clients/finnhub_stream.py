from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
import json
import logging
from typing import Any

import websockets
from websockets.exceptions import ConnectionClosed, InvalidStatus

from momentracker.domain.errors import TransportAuthError
from momentracker.domain.market_time import normalize_symbol
from momentracker.domain.quotes.schemas import TradeTick
from momentracker.infrastructure.clients.payloads import (
    extract_float,
    extract_str,
    extract_value,
    parse_message_payload,
    to_utc_datetime,
)

logger = logging.getLogger(__name__)

STATE_DISCONNECTED = "disconnected"
STATE_CONNECTING = "connecting"
STATE_CONNECTED = "connected"
STATE_AUTH_FAILED = "auth_failed"

_AUTH_REJECTED_HTTP_STATUSES = {401, 403}
_POLICY_VIOLATION_CLOSE_CODE = 1008


class FinnhubTradeStreamClient:
    def __init__(
        self,
        *,
        api_key: str,
        url: str = "wss://ws.finnhub.io",
        on_trades: Callable[[list[TradeTick]], Awaitable[None]] | None = None,
        on_status: Callable[[str, str | None], Awaitable[None]] | None = None,
        reconnect_delay_seconds: float = 3.0,
    ) -> None:
        if not api_key:
            raise ValueError("Finnhub API key is not configured")

        self._api_key = api_key
        self._url = url.rstrip("/")
        self._on_trades = on_trades
        self._on_status = on_status
        self._reconnect_delay = max(0.1, reconnect_delay_seconds)

        self._lock = asyncio.Lock()
        self._desired_symbols: set[str] = set()
        self._active_symbols: set[str] = set()
        self._symbol_event = asyncio.Event()
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self._state = STATE_DISCONNECTED
        self.auth_error: TransportAuthError | None = None

    @property
    def state(self) -> str:
        return self._state

    def set_handlers(
        self,
        *,
        on_trades: Callable[[list[TradeTick]], Awaitable[None]] | None,
        on_status: Callable[[str, str | None], Awaitable[None]] | None,
    ) -> None:
        self._on_trades = on_trades
        self._on_status = on_status

    async def start(self) -> None:
        if self._task is not None and not self._task.done():
            return
        self._stop_event.clear()
        self.auth_error = None
        self._task = asyncio.create_task(self._run_loop())

    async def stop(self) -> None:
        self._stop_event.set()
        self._symbol_event.set()

        task = self._task
        self._task = None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            return

    async def set_symbols(self, symbols: set[str]) -> None:
        normalized = {symbol for symbol in (normalize_symbol(item) for item in symbols) if symbol}
        async with self._lock:
            self._desired_symbols = normalized
        # Picked up on the next (re)connect when the socket is not open yet.
        self._symbol_event.set()

    async def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                await self._set_state(STATE_CONNECTING, None)
                async with websockets.connect(
                    f"{self._url}?token={self._api_key}",
                    ping_interval=20,
                    ping_timeout=20,
                    close_timeout=1,
                    max_size=2 * 1024 * 1024,
                ) as websocket:
                    await self._set_state(STATE_CONNECTED, None)
                    self._active_symbols = set()
                    await self._reconcile_symbols(websocket)

                    while not self._stop_event.is_set():
                        while self._symbol_event.is_set():
                            self._symbol_event.clear()
                            await self._reconcile_symbols(websocket)

                        try:
                            raw = await asyncio.wait_for(websocket.recv(), timeout=1)
                        except asyncio.TimeoutError:
                            continue

                        await self._handle_raw_message(raw)
            except asyncio.CancelledError:
                raise
            except TransportAuthError as exc:
                await self._fail_auth(exc)
                break
            except Exception as exc:
                auth_error = _auth_rejection(exc)
                if auth_error is not None:
                    await self._fail_auth(auth_error)
                    break
                await self._set_state(STATE_DISCONNECTED, str(exc) or exc.__class__.__name__)
                if self._stop_event.is_set():
                    break
                await asyncio.sleep(self._reconnect_delay)

        self._active_symbols = set()
        if self._state != STATE_AUTH_FAILED:
            self._state = STATE_DISCONNECTED

    async def _handle_raw_message(self, raw: str | bytes) -> None:
        ticks: list[TradeTick] = []
        for item in parse_message_payload(raw):
            message_type = extract_str(item, "type").lower()
            if message_type == "trade":
                ticks.extend(parse_trade_ticks(item))
                continue
            if message_type == "error":
                message = extract_str(item, "msg", "message")
                if _looks_like_auth_message(message):
                    raise TransportAuthError(message)
                await self._emit_status("error", message or "upstream stream error")
        if ticks and self._on_trades is not None:
            await self._on_trades(ticks)

    async def _reconcile_symbols(self, websocket: websockets.ClientConnection) -> None:
        async with self._lock:
            desired = set(self._desired_symbols)

        for symbol in sorted(desired.difference(self._active_symbols)):
            await websocket.send(json.dumps({"type": "subscribe", "symbol": symbol}))
        for symbol in sorted(self._active_symbols.difference(desired)):
            await websocket.send(json.dumps({"type": "unsubscribe", "symbol": symbol}))
        self._active_symbols = desired

    async def _fail_auth(self, error: TransportAuthError) -> None:
        self.auth_error = error
        logger.error("Finnhub trade stream rejected credentials: %s", error.detail or error.code)
        await self._set_state(STATE_AUTH_FAILED, error.detail or "upstream auth rejected")

    async def _set_state(self, state: str, message: str | None) -> None:
        self._state = state
        await self._emit_status(state, message)

    async def _emit_status(self, state: str, message: str | None) -> None:
        if self._on_status is None:
            return
        try:
            await self._on_status(state, message)
        except Exception:
            logger.exception("Failed to emit upstream status")


def parse_trade_ticks(message: dict[str, Any]) -> list[TradeTick]:
    data = message.get("data")
    if not isinstance(data, list):
        return []

    ticks: list[TradeTick] = []
    for item in data:
        symbol = normalize_symbol(extract_str(item, "s"))
        price = extract_float(item, "p")
        traded_at = to_utc_datetime(extract_value(item, "t"))
        if symbol is None or price is None or price <= 0 or traded_at is None:
            continue
        ticks.append(
            TradeTick(
                symbol=symbol,
                price=price,
                traded_at=traded_at,
                volume=extract_float(item, "v"),
            )
        )
    return ticks


def _auth_rejection(exc: Exception) -> TransportAuthError | None:
    if isinstance(exc, InvalidStatus) and exc.response.status_code in _AUTH_REJECTED_HTTP_STATUSES:
        return TransportAuthError(f"handshake rejected with HTTP {exc.response.status_code}")
    if isinstance(exc, ConnectionClosed) and exc.rcvd is not None and exc.rcvd.code == _POLICY_VIOLATION_CLOSE_CODE:
        return TransportAuthError(exc.rcvd.reason or "connection closed with policy violation")
    return None


def _looks_like_auth_message(message: str) -> bool:
    lowered = message.lower()
    return "token" in lowered or "unauthorized" in lowered or "api key" in lowered

