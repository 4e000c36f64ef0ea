from __future__ import annotations

from pydantic import BaseModel

from momentracker.api.v1.dto.quotes import DailyQuoteOut, LivePriceOut
from momentracker.api.v1.dto.trending import TrendingDimensionsOut


class DashboardRowOut(BaseModel):
    symbol: str
    quote: DailyQuoteOut
    dimensions: TrendingDimensionsOut | None
    live: LivePriceOut | None = None


class DashboardOut(BaseModel):
    items: list[DashboardRowOut]
