from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import replace
import logging

from momentracker.application.quotes.service import QuoteResolutionService
from momentracker.application.trending.service import TrendingApplicationService
from momentracker.domain.dashboard.schemas import DashboardRow
from momentracker.domain.quotes.schemas import LivePriceState, SymbolAnchor

logger = logging.getLogger(__name__)

LivePriceSource = Callable[[list[str]], Awaitable[dict[str, LivePriceState]]]


class DashboardApplicationService:
    def __init__(
        self,
        *,
        trending_service: TrendingApplicationService,
        quote_service: QuoteResolutionService,
        live_price_source: LivePriceSource | None = None,
    ) -> None:
        self._trending_service = trending_service
        self._quote_service = quote_service
        self._live_price_source = live_price_source

    async def build_board(self) -> list[DashboardRow]:
        rows = await self._resolved_rows()
        if not rows or self._live_price_source is None:
            return rows

        try:
            states = await self._live_price_source([row.symbol for row in rows])
        except Exception:
            logger.warning("Live prices unavailable, serving dashboard without them", exc_info=True)
            return rows
        return self.overlay_live_prices(rows, states)

    async def tracked_anchors(self) -> list[SymbolAnchor]:
        rows = await self._resolved_rows()
        return [SymbolAnchor(symbol=row.symbol, previous_close=row.quote.previous_close) for row in rows]

    @staticmethod
    def overlay_live_prices(
        rows: list[DashboardRow],
        states: dict[str, LivePriceState],
    ) -> list[DashboardRow]:
        return [replace(row, live=states.get(row.symbol, row.live)) for row in rows]

    async def _resolved_rows(self) -> list[DashboardRow]:
        retained = await self._trending_service.stable_symbols()
        quotes = await self._quote_service.resolve_many([item.symbol for item in retained])
        quotes_by_symbol = {quote.symbol: quote for quote in quotes}

        rows: list[DashboardRow] = []
        for item in retained:
            quote = quotes_by_symbol.get(item.symbol)
            # Unresolved symbols are left out rather than shown with zero prices.
            if quote is None:
                continue
            rows.append(DashboardRow(symbol=item.symbol, quote=quote, dimensions=item.dimensions))

        if len(rows) < len(retained):
            logger.info("Dashboard omitted %s retained symbols without quotes", len(retained) - len(rows))
        return rows
