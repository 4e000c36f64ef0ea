from __future__ import annotations

from momentracker.domain.market_time import minute_bucket, to_utc
from momentracker.domain.quotes.schemas import DailyQuoteRecord, QuoteSource
from momentracker.domain.trending.schemas import TrendingSnapshot
from momentracker.infrastructure.db.models.quotes import DailyQuoteModel
from momentracker.infrastructure.db.models.trending import TrendingSnapshotModel


def trending_snapshot_to_domain(model: TrendingSnapshotModel) -> TrendingSnapshot:
    return TrendingSnapshot(
        symbol=model.symbol,
        rank=model.rank,
        trending_score=model.trending_score,
        observed_at=to_utc(model.observed_at),
        message_volume=model.message_volume,
        bullish_count=model.bullish_count,
        bearish_count=model.bearish_count,
        watchlist_count=model.watchlist_count,
    )


def trending_snapshot_to_row(snapshot: TrendingSnapshot) -> dict[str, object]:
    return {
        "symbol": snapshot.symbol,
        "rank": snapshot.rank,
        "trending_score": snapshot.trending_score,
        "message_volume": snapshot.message_volume,
        "bullish_count": snapshot.bullish_count,
        "bearish_count": snapshot.bearish_count,
        "watchlist_count": snapshot.watchlist_count,
        "observed_at": to_utc(snapshot.observed_at),
        "observed_minute": minute_bucket(snapshot.observed_at),
    }


def daily_quote_to_domain(model: DailyQuoteModel) -> DailyQuoteRecord:
    return DailyQuoteRecord(
        symbol=model.symbol,
        trade_date=model.trade_date,
        open=model.open,
        high=model.high,
        low=model.low,
        close=model.close,
        volume=model.volume,
        previous_close=model.previous_close,
        percent_change=model.percent_change,
        source=QuoteSource(model.source),
        resolved_at=to_utc(model.resolved_at),
    )


def daily_quote_to_row(record: DailyQuoteRecord) -> dict[str, object]:
    return {
        "symbol": record.symbol,
        "trade_date": record.trade_date,
        "open": record.open,
        "high": record.high,
        "low": record.low,
        "close": record.close,
        "volume": record.volume,
        "previous_close": record.previous_close,
        "percent_change": record.percent_change,
        "source": record.source.value,
        "resolved_at": to_utc(record.resolved_at),
    }
