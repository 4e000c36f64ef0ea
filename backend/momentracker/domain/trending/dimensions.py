from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timedelta
import math

from momentracker.domain.market_time import to_utc
from momentracker.domain.trending.schemas import (
    RealTimeDimension,
    SixHourDimension,
    TrendDirection,
    TrendingDimensions,
    TrendingSnapshot,
    TwentyFourHourDimension,
)

TWENTY_FOUR_HOURS = timedelta(hours=24)
SIX_HOURS = timedelta(hours=6)
TREND_UP_RATIO = 1.1
TREND_DOWN_RATIO = 0.9


def population_stddev(values: list[float]) -> float:
    if len(values) < 2:
        return 0.0
    mean = sum(values) / len(values)
    variance = sum((value - mean) ** 2 for value in values) / len(values)
    return math.sqrt(variance)


def classify_trend(*, six_hour_avg_score: float, twenty_four_hour_avg_score: float) -> TrendDirection:
    if six_hour_avg_score > twenty_four_hour_avg_score * TREND_UP_RATIO:
        return TrendDirection.UP
    if six_hour_avg_score < twenty_four_hour_avg_score * TREND_DOWN_RATIO:
        return TrendDirection.DOWN
    return TrendDirection.STABLE


def expected_samples(*, window: timedelta, poll_interval_seconds: int) -> int:
    if poll_interval_seconds < 1:
        raise ValueError("poll interval must be >= 1 second")
    return max(1, int(window.total_seconds()) // poll_interval_seconds)


def compute_dimensions(
    *,
    symbol: str,
    snapshots: Iterable[TrendingSnapshot],
    now: datetime,
    expected_daily_snapshots: int,
    current_symbols: set[str] | None = None,
) -> TrendingDimensions | None:
    """Derive real-time, 6h and 24h statistics for one symbol.

    Only snapshots inside [now - 24h, now] count. Returns None when that
    window is empty so callers can tell "no history" apart from low scores.
    When ``current_symbols`` is given, ``is_currently_trending`` reflects
    membership in that fresh feed poll instead of presence in the window.
    """
    now = to_utc(now)
    window_start = now - TWENTY_FOUR_HOURS
    window = sorted(
        (item for item in snapshots if window_start <= to_utc(item.observed_at) <= now),
        key=lambda item: to_utc(item.observed_at),
    )
    if not window:
        return None

    latest = window[-1]
    rank_delta = window[-2].rank - latest.rank if len(window) > 1 else 0
    is_currently_trending = True if current_symbols is None else symbol in current_symbols

    six_hour_start = now - SIX_HOURS
    recent = [item for item in window if to_utc(item.observed_at) >= six_hour_start]
    recent_scores = [item.trending_score for item in recent]

    day_scores = [item.trending_score for item in window]
    day_avg_score = _mean(day_scores)
    day_avg_rank = _mean([float(item.rank) for item in window])

    if recent:
        six_avg_score = _mean(recent_scores)
        six_avg_rank = _mean([float(item.rank) for item in recent])
        rank_is_fallback = False
    else:
        six_avg_score = 0.0
        six_avg_rank = float(latest.rank)
        rank_is_fallback = True

    peak_score = max(day_scores)
    peak = next(item for item in window if item.trending_score == peak_score)

    consistency = min(100.0, 100.0 * len(window) / max(1, expected_daily_snapshots))

    return TrendingDimensions(
        symbol=symbol,
        real_time=RealTimeDimension(
            rank=latest.rank,
            score=latest.trending_score,
            is_currently_trending=is_currently_trending,
            last_seen=to_utc(latest.observed_at),
            rank_delta=rank_delta,
        ),
        six_hour=SixHourDimension(
            avg_score=six_avg_score,
            avg_rank=six_avg_rank,
            snapshot_count=len(recent),
            trend=classify_trend(
                six_hour_avg_score=six_avg_score,
                twenty_four_hour_avg_score=day_avg_score,
            ),
            volatility=population_stddev(recent_scores),
            avg_rank_is_fallback=rank_is_fallback,
        ),
        twenty_four_hour=TwentyFourHourDimension(
            avg_score=day_avg_score,
            avg_rank=day_avg_rank,
            peak_score=peak_score,
            peak_time=to_utc(peak.observed_at),
            snapshot_count=len(window),
            consistency=consistency,
        ),
    )


def _mean(values: list[float]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)
