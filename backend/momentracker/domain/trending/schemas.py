from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class TrendDirection(str, Enum):
    UP = "up"
    DOWN = "down"
    STABLE = "stable"


@dataclass(slots=True)
class TrendingFeedItem:
    """One entry of a trending feed poll; rank is the 1-based feed position."""

    symbol: str
    rank: int
    trending_score: float
    watchlist_count: int | None = None


@dataclass(slots=True)
class SentimentCounts:
    bullish: int
    bearish: int
    message_volume: int


@dataclass(slots=True)
class TrendingSnapshot:
    symbol: str
    rank: int
    trending_score: float
    observed_at: datetime
    message_volume: int | None = None
    bullish_count: int | None = None
    bearish_count: int | None = None
    watchlist_count: int | None = None


@dataclass(slots=True)
class RealTimeDimension:
    rank: int
    score: float
    is_currently_trending: bool
    last_seen: datetime
    # Positive when the rank improved since the previous snapshot.
    rank_delta: int = 0


@dataclass(slots=True)
class SixHourDimension:
    avg_score: float
    avg_rank: float
    snapshot_count: int
    trend: TrendDirection
    volatility: float
    # avg_rank falls back to the latest rank when the window holds no snapshot
    avg_rank_is_fallback: bool = False


@dataclass(slots=True)
class TwentyFourHourDimension:
    avg_score: float
    avg_rank: float
    peak_score: float
    peak_time: datetime
    snapshot_count: int
    consistency: float


@dataclass(slots=True)
class TrendingDimensions:
    symbol: str
    real_time: RealTimeDimension
    six_hour: SixHourDimension
    twenty_four_hour: TwentyFourHourDimension
    keep_symbol: bool = False
    keep_reason: str = ""


@dataclass(slots=True, frozen=True)
class RetentionDecision:
    keep: bool
    reason: str


@dataclass(slots=True)
class SymbolRetention:
    """Retention outcome for one symbol; dimensions is None when it has no recent history."""

    symbol: str
    dimensions: TrendingDimensions | None
    keep: bool
    reason: str
