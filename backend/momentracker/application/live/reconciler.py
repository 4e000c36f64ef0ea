from __future__ import annotations

import asyncio
from collections.abc import Iterable

from momentracker.domain.market_time import normalize_symbol, to_utc
from momentracker.domain.quotes.pricing import percent_change
from momentracker.domain.quotes.schemas import LivePriceState, SymbolAnchor, TradeTick


class LivePriceReconciler:
    """Per-session anchor and tick state for subscribed symbols.

    Percent change is always measured against the anchor (previous close)
    given at subscribe time. ``delta`` is the move since the prior tick of
    the same symbol and never feeds the percent change.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._anchors: dict[str, float] = {}
        self._states: dict[str, LivePriceState] = {}

    async def subscribe(self, anchors: Iterable[SymbolAnchor]) -> set[str]:
        added: set[str] = set()
        async with self._lock:
            for anchor in anchors:
                symbol = normalize_symbol(anchor.symbol)
                if symbol is None:
                    continue
                if symbol not in self._anchors:
                    added.add(symbol)
                self._anchors[symbol] = anchor.previous_close
                state = self._states.get(symbol)
                if state is not None and state.previous_close != anchor.previous_close:
                    state.previous_close = anchor.previous_close
                    state.percent_change = percent_change(state.last_price, anchor.previous_close)
        return added

    async def unsubscribe(self, symbols: Iterable[str]) -> set[str]:
        removed: set[str] = set()
        async with self._lock:
            for raw in symbols:
                symbol = normalize_symbol(raw)
                if symbol is None or symbol not in self._anchors:
                    continue
                self._anchors.pop(symbol, None)
                self._states.pop(symbol, None)
                removed.add(symbol)
        return removed

    async def apply_trade(self, tick: TradeTick) -> LivePriceState | None:
        states = await self.apply_trades([tick])
        return states[0] if states else None

    async def apply_trades(self, ticks: Iterable[TradeTick]) -> list[LivePriceState]:
        updated: list[LivePriceState] = []
        async with self._lock:
            for tick in ticks:
                state = self._apply_locked(tick)
                if state is not None:
                    updated.append(state)
        return updated

    async def desired_subscriptions(self) -> list[SymbolAnchor]:
        async with self._lock:
            return [
                SymbolAnchor(symbol=symbol, previous_close=previous_close)
                for symbol, previous_close in sorted(self._anchors.items())
            ]

    async def symbols(self) -> set[str]:
        async with self._lock:
            return set(self._anchors)

    async def snapshot(self) -> dict[str, LivePriceState]:
        async with self._lock:
            return {
                symbol: LivePriceState(
                    symbol=state.symbol,
                    last_price=state.last_price,
                    previous_close=state.previous_close,
                    percent_change=state.percent_change,
                    delta=state.delta,
                    last_trade_at=state.last_trade_at,
                )
                for symbol, state in self._states.items()
            }

    def _apply_locked(self, tick: TradeTick) -> LivePriceState | None:
        symbol = normalize_symbol(tick.symbol)
        if symbol is None or symbol not in self._anchors:
            return None

        anchor = self._anchors[symbol]
        # Without a usable anchor each trade is measured against itself, yielding 0%.
        if anchor <= 0:
            anchor = tick.price

        previous = self._states.get(symbol)
        delta = tick.price - previous.last_price if previous is not None else 0.0
        state = LivePriceState(
            symbol=symbol,
            last_price=tick.price,
            previous_close=anchor,
            percent_change=percent_change(tick.price, anchor),
            delta=round(delta, 4),
            last_trade_at=to_utc(tick.traded_at),
        )
        self._states[symbol] = state
        return state
