from __future__ import annotations

from datetime import date, datetime

from momentracker.domain.quotes.schemas import DailyQuoteRecord, Quote, QuoteSource


def percent_change(current: float, previous_close: float | None) -> float:
    """Percent move of ``current`` against the anchor, rounded to 2 decimals.

    A missing or non-positive anchor yields 0.0 instead of dividing by zero.
    Both the quote resolver and the live reconciler go through this function.
    """
    if previous_close is None or previous_close <= 0:
        return 0.0
    return round((current - previous_close) / previous_close * 100, 2)


def is_unknown_symbol_quote(*, price: float, previous_close: float) -> bool:
    return price == 0 and previous_close == 0


def merge_daily_record(
    *,
    existing: DailyQuoteRecord | None,
    quote: Quote,
    trade_date: date,
    resolved_at: datetime,
    source: QuoteSource,
) -> DailyQuoteRecord:
    """Fold a fresh quote into the stored record for the same trading day.

    open is set once, high and low only widen, close and volume take the
    latest value. Non-positive intraday lows are treated as missing.
    """
    quote_low = quote.low if quote.low > 0 else quote.price
    quote_high = max(quote.high, quote.price)

    if existing is None:
        previous_close = quote.previous_close
        return DailyQuoteRecord(
            symbol=quote.symbol,
            trade_date=trade_date,
            open=quote.open if quote.open > 0 else quote.price,
            high=quote_high,
            low=quote_low,
            close=quote.price,
            volume=quote.volume,
            previous_close=previous_close,
            percent_change=percent_change(quote.price, previous_close),
            source=source,
            resolved_at=resolved_at,
        )

    previous_close = quote.previous_close if quote.previous_close > 0 else existing.previous_close
    return DailyQuoteRecord(
        symbol=existing.symbol,
        trade_date=existing.trade_date,
        open=existing.open,
        high=max(existing.high, quote_high),
        low=min(existing.low, quote_low) if existing.low > 0 else quote_low,
        close=quote.price,
        volume=quote.volume,
        previous_close=previous_close,
        percent_change=percent_change(quote.price, previous_close),
        source=source,
        resolved_at=resolved_at,
    )
