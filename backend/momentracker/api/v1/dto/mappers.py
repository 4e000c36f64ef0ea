from __future__ import annotations

from momentracker.api.v1.dto.dashboard import DashboardRowOut
from momentracker.api.v1.dto.quotes import DailyQuoteOut, LivePriceOut
from momentracker.api.v1.dto.trending import (
    MarketStatusOut,
    RealTimeOut,
    SixHourOut,
    SymbolRetentionOut,
    TrendingDimensionsOut,
    TwentyFourHourOut,
)
from momentracker.domain.dashboard.schemas import DashboardRow
from momentracker.domain.market_time import MarketStatus
from momentracker.domain.quotes.schemas import DailyQuoteRecord, LivePriceState
from momentracker.domain.trending.schemas import SymbolRetention, TrendingDimensions


def to_trending_dimensions_out(dimensions: TrendingDimensions) -> TrendingDimensionsOut:
    real_time = dimensions.real_time
    six_hour = dimensions.six_hour
    day = dimensions.twenty_four_hour
    return TrendingDimensionsOut(
        symbol=dimensions.symbol,
        real_time=RealTimeOut(
            rank=real_time.rank,
            rank_delta=real_time.rank_delta,
            score=real_time.score,
            is_currently_trending=real_time.is_currently_trending,
            last_seen=real_time.last_seen,
        ),
        six_hour=SixHourOut(
            avg_score=round(six_hour.avg_score, 2),
            avg_rank=round(six_hour.avg_rank, 2),
            avg_rank_is_fallback=six_hour.avg_rank_is_fallback,
            snapshot_count=six_hour.snapshot_count,
            trend=six_hour.trend.value,
            volatility=round(six_hour.volatility, 2),
        ),
        twenty_four_hour=TwentyFourHourOut(
            avg_score=round(day.avg_score, 2),
            avg_rank=round(day.avg_rank, 2),
            peak_score=day.peak_score,
            peak_time=day.peak_time,
            snapshot_count=day.snapshot_count,
            consistency=round(day.consistency, 2),
        ),
        keep_symbol=dimensions.keep_symbol,
        keep_reason=dimensions.keep_reason,
    )


def to_symbol_retention_out(item: SymbolRetention) -> SymbolRetentionOut:
    return SymbolRetentionOut(
        symbol=item.symbol,
        keep=item.keep,
        reason=item.reason,
        dimensions=to_trending_dimensions_out(item.dimensions) if item.dimensions is not None else None,
    )


def to_daily_quote_out(record: DailyQuoteRecord) -> DailyQuoteOut:
    return DailyQuoteOut(
        symbol=record.symbol,
        trade_date=record.trade_date,
        open=record.open,
        high=record.high,
        low=record.low,
        close=record.close,
        volume=record.volume,
        previous_close=record.previous_close,
        percent_change=record.percent_change,
        source=record.source.value,
        resolved_at=record.resolved_at,
    )


def to_live_price_out(state: LivePriceState) -> LivePriceOut:
    return LivePriceOut(
        symbol=state.symbol,
        last_price=state.last_price,
        previous_close=state.previous_close,
        percent_change=state.percent_change,
        delta=state.delta,
        last_trade_at=state.last_trade_at,
    )


def to_dashboard_row_out(row: DashboardRow) -> DashboardRowOut:
    return DashboardRowOut(
        symbol=row.symbol,
        quote=to_daily_quote_out(row.quote),
        dimensions=to_trending_dimensions_out(row.dimensions) if row.dimensions is not None else None,
        live=to_live_price_out(row.live) if row.live is not None else None,
    )


def to_market_status_out(status: MarketStatus) -> MarketStatusOut:
    return MarketStatusOut(
        is_open=status.is_open,
        session=status.session.value,
        message=status.message,
        next_open=status.next_open,
        next_close=status.next_close,
        last_close=status.last_close,
    )
