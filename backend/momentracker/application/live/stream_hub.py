from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
from typing import Any

from momentracker.application.live.events import build_price_update, to_client_payload
from momentracker.domain.market_time import normalize_symbol
from momentracker.domain.quotes.schemas import LiveEvent, LivePriceState, StreamStatusEvent
from momentracker.infrastructure.streaming.live_price_bus import RedisLivePriceSubscriber

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _ClientConnection:
    symbols: set[str]
    queue: asyncio.Queue[dict[str, Any]]


class LivePriceStreamHub:
    """Per-process fan-out of live price events to WebSocket clients.

    The redis listener starts with the first client and runs until
    ``shutdown``. The last price seen per symbol is replayed to a client
    when it subscribes, so a new subscriber does not wait for the next trade.
    """

    def __init__(
        self,
        *,
        event_subscriber: RedisLivePriceSubscriber | None,
        max_symbols_per_connection: int = 100,
        queue_size: int = 512,
        retry_delay_seconds: float = 1.0,
    ) -> None:
        self._event_subscriber = event_subscriber
        self._max_symbols = max(1, max_symbols_per_connection)
        self._queue_size = max(64, queue_size)
        self._retry_delay = max(0.1, retry_delay_seconds)
        self._lock = asyncio.Lock()
        self._connections: dict[str, _ClientConnection] = {}
        self._latest: dict[str, LivePriceState] = {}
        self._connection_state = "disconnected"
        self._stop_event = asyncio.Event()
        self._listener_task: asyncio.Task[None] | None = None

    def current_connection_state(self) -> str:
        return self._connection_state

    async def register_connection(self, *, connection_id: str) -> asyncio.Queue[dict[str, Any]]:
        queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=self._queue_size)
        async with self._lock:
            self._connections[connection_id] = _ClientConnection(symbols=set(), queue=queue)
        self._ensure_listener()
        return queue

    async def unregister_connection(self, *, connection_id: str) -> None:
        async with self._lock:
            self._connections.pop(connection_id, None)

    async def apply_action(self, *, connection_id: str, action: str, symbols: list[str]) -> set[str]:
        normalized = _normalize_symbols(symbols)
        async with self._lock:
            connection = self._connections.get(connection_id)
            if connection is None:
                raise ValueError("STREAM_CONNECTION_NOT_FOUND")

            if action == "subscribe":
                updated = connection.symbols.union(normalized)
            elif action == "unsubscribe":
                updated = connection.symbols.difference(normalized)
            else:
                raise ValueError("STREAM_INVALID_ACTION")

            if len(updated) > self._max_symbols:
                raise ValueError("STREAM_SUBSCRIPTION_LIMIT_EXCEEDED")

            added = sorted(updated.difference(connection.symbols))
            connection.symbols = updated
            for symbol in added:
                state = self._latest.get(symbol)
                if state is not None:
                    _enqueue_payload(connection.queue, build_price_update(state))
            return set(updated)

    async def handle_event(self, event: LiveEvent) -> None:
        if isinstance(event, StreamStatusEvent):
            self._connection_state = event.connection_state

        if not isinstance(event, LivePriceState):
            payload = to_client_payload(event)
            async with self._lock:
                queues = [connection.queue for connection in self._connections.values()]
            for queue in queues:
                _enqueue_payload(queue, payload)
            return

        payload = build_price_update(event)
        async with self._lock:
            self._latest[event.symbol] = event
            queues = [
                connection.queue
                for connection in self._connections.values()
                if event.symbol in connection.symbols
            ]
        for queue in queues:
            _enqueue_payload(queue, payload)

    async def shutdown(self) -> None:
        async with self._lock:
            self._connections.clear()
        self._stop_event.set()
        listener_task = self._listener_task
        self._listener_task = None
        if listener_task is not None:
            listener_task.cancel()
            await asyncio.gather(listener_task, return_exceptions=True)

    def _ensure_listener(self) -> None:
        if self._event_subscriber is None or self._stop_event.is_set():
            return
        if self._listener_task is None or self._listener_task.done():
            self._listener_task = asyncio.create_task(self._run_listener(self._event_subscriber))

    async def _run_listener(self, subscriber: RedisLivePriceSubscriber) -> None:
        while not self._stop_event.is_set():
            try:
                await subscriber.listen(stop_event=self._stop_event, on_event=self.handle_event)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Live price subscriber crashed, restarting in %.1fs", self._retry_delay)
            else:
                if self._stop_event.is_set():
                    return
                logger.warning("Live price subscriber stopped unexpectedly, restarting")
            self._connection_state = "disconnected"

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._retry_delay)
            except asyncio.TimeoutError:
                continue


def _normalize_symbols(symbols: list[str]) -> set[str]:
    normalized: set[str] = set()
    for raw in symbols:
        if not str(raw).strip():
            continue
        symbol = normalize_symbol(raw)
        if symbol is None:
            raise ValueError("STREAM_SYMBOL_NOT_ALLOWED")
        normalized.add(symbol)
    return normalized


def _enqueue_payload(queue: asyncio.Queue[dict[str, Any]], payload: dict[str, Any]) -> None:
    if queue.full():
        # Slow clients lose the oldest event, not the newest price.
        queue.get_nowait()
    queue.put_nowait(payload)
