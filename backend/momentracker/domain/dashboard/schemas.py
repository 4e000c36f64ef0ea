from __future__ import annotations

from dataclasses import dataclass

from momentracker.domain.quotes.schemas import DailyQuoteRecord, LivePriceState
from momentracker.domain.trending.schemas import TrendingDimensions


@dataclass(slots=True)
class DashboardRow:
    symbol: str
    quote: DailyQuoteRecord
    dimensions: TrendingDimensions | None
    live: LivePriceState | None = None
