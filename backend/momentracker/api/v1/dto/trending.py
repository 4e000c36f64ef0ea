from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class RealTimeOut(BaseModel):
    rank: int
    rank_delta: int
    score: float
    is_currently_trending: bool
    last_seen: datetime


class SixHourOut(BaseModel):
    avg_score: float
    avg_rank: float
    avg_rank_is_fallback: bool
    snapshot_count: int
    trend: str
    volatility: float


class TwentyFourHourOut(BaseModel):
    avg_score: float
    avg_rank: float
    peak_score: float
    peak_time: datetime
    snapshot_count: int
    consistency: float


class TrendingDimensionsOut(BaseModel):
    symbol: str
    real_time: RealTimeOut
    six_hour: SixHourOut
    twenty_four_hour: TwentyFourHourOut
    keep_symbol: bool
    keep_reason: str


class SymbolDimensionsOut(BaseModel):
    symbol: str
    dimensions: TrendingDimensionsOut | None


class DimensionsListOut(BaseModel):
    items: list[SymbolDimensionsOut]


class SymbolRetentionOut(BaseModel):
    symbol: str
    keep: bool
    reason: str
    dimensions: TrendingDimensionsOut | None


class MarketStatusOut(BaseModel):
    is_open: bool
    session: str
    message: str
    next_open: datetime | None = None
    next_close: datetime | None = None
    last_close: datetime | None = None


class StableSymbolsOut(BaseModel):
    items: list[SymbolRetentionOut]
    market: MarketStatusOut | None = None
