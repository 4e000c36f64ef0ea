from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
import logging

from momentracker.application.live.reconciler import LivePriceReconciler
from momentracker.domain.quotes.schemas import SymbolAnchor, TradeTick
from momentracker.infrastructure.clients.finnhub_stream import (
    STATE_AUTH_FAILED,
    STATE_DISCONNECTED,
    FinnhubTradeStreamClient,
)
from momentracker.infrastructure.streaming.live_price_bus import RedisLivePriceBus

logger = logging.getLogger(__name__)


class LivePricePublisher:
    def __init__(
        self,
        *,
        stream_client: FinnhubTradeStreamClient | None,
        reconciler: LivePriceReconciler,
        event_bus: RedisLivePriceBus,
        anchor_source: Callable[[], Awaitable[list[SymbolAnchor]]],
        refresh_interval_seconds: int = 60,
    ) -> None:
        self._stream_client = stream_client
        self._reconciler = reconciler
        self._event_bus = event_bus
        self._anchor_source = anchor_source
        self._refresh_interval = max(1, refresh_interval_seconds)
        self._upstream_running = False
        self._auth_rejected = False

        if self._stream_client is not None:
            self._stream_client.set_handlers(
                on_trades=self._handle_trades,
                on_status=self._handle_upstream_status,
            )

    @property
    def auth_rejected(self) -> bool:
        return self._auth_rejected

    async def run(self, *, stop_event: asyncio.Event) -> None:
        try:
            if self._stream_client is None:
                await self._emit(
                    self._event_bus.publish_error(
                        "STREAM_UPSTREAM_UNAVAILABLE",
                        "finnhub trade stream is not configured",
                    ),
                    "system.error",
                )
                await stop_event.wait()
                return

            while not stop_event.is_set():
                await self.refresh_anchors()
                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=self._refresh_interval)
                except asyncio.TimeoutError:
                    continue
        finally:
            await self.shutdown()

    async def refresh_anchors(self) -> None:
        try:
            anchors = await self._anchor_source()
        except Exception:
            logger.exception("Failed to load tracked symbols, keeping current subscriptions")
            return
        await self.sync_anchors(anchors)

    async def sync_anchors(self, anchors: list[SymbolAnchor]) -> None:
        desired = {anchor.symbol for anchor in anchors}
        current = await self._reconciler.symbols()
        removed = await self._reconciler.unsubscribe(current.difference(desired))
        await self._reconciler.subscribe(anchors)
        if removed:
            await self._emit(self._event_bus.forget_prices(removed), "forget")
        await self._reconcile_upstream()

    async def shutdown(self) -> None:
        if self._stream_client is not None and self._upstream_running:
            await self._stream_client.set_symbols(set())
            await self._stream_client.stop()
        self._upstream_running = False
        await self._event_bus.close()

    async def _reconcile_upstream(self) -> None:
        if self._stream_client is None:
            return

        symbols = {anchor.symbol for anchor in await self._reconciler.desired_subscriptions()}
        if symbols:
            if self._auth_rejected:
                return
            if not self._upstream_running:
                await self._stream_client.start()
                self._upstream_running = True
            await self._stream_client.set_symbols(symbols)
            return

        if self._upstream_running:
            await self._stream_client.set_symbols(set())
            await self._stream_client.stop()
            self._upstream_running = False
            await self._emit(self._event_bus.publish_status("idle"), "system.status")

    async def _handle_trades(self, ticks: list[TradeTick]) -> None:
        for state in await self._reconciler.apply_trades(ticks):
            await self._emit(self._event_bus.publish_price(state), "price.update")

    async def _handle_upstream_status(self, state: str, message: str | None) -> None:
        await self._emit(self._event_bus.publish_status(state, message), "system.status")
        if state == STATE_AUTH_FAILED:
            self._auth_rejected = True
            logger.error("Live price stream stopped: upstream rejected credentials")
            await self._emit(
                self._event_bus.publish_error(
                    "STREAM_AUTH_REJECTED",
                    message or "upstream rejected credentials",
                ),
                "system.error",
            )
            return
        if state == "error":
            await self._emit(
                self._event_bus.publish_error(
                    "STREAM_UPSTREAM_UNAVAILABLE",
                    message or "upstream stream unavailable",
                ),
                "system.error",
            )
            return
        if state == STATE_DISCONNECTED:
            logger.warning("Live price stream disconnected, reconnecting: %s", message)
            return
        logger.debug("Upstream status changed to %s", state)

    async def _emit(self, operation: Awaitable[None], kind: str) -> None:
        # Bus outages must not stop the upstream stream.
        try:
            await operation
        except Exception:
            logger.exception("Failed to publish live price event %s", kind)
