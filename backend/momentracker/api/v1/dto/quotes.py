from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel

from momentracker.api.errors import raise_api_error
from momentracker.domain.market_time import normalize_symbols

MAX_SYMBOLS_PER_REQUEST = 50


class DailyQuoteOut(BaseModel):
    symbol: str
    trade_date: date
    open: float
    high: float
    low: float
    close: float
    volume: float
    previous_close: float
    percent_change: float
    source: str
    resolved_at: datetime


class DailyQuotesOut(BaseModel):
    items: list[DailyQuoteOut]


class LivePriceOut(BaseModel):
    symbol: str
    last_price: float
    previous_close: float
    percent_change: float
    delta: float
    last_trade_at: datetime


def parse_symbols_param(symbols: str) -> list[str]:
    raw_symbols = [item for item in symbols.split(",") if item.strip()]
    try:
        parsed = normalize_symbols(raw_symbols)
    except ValueError:
        raise_api_error(
            status_code=400,
            code="SYMBOL_INVALID",
            message="symbols must be 1-10 uppercase letters, digits or dots",
            details={"symbols": symbols},
        )
    if not parsed:
        raise_api_error(status_code=400, code="SYMBOL_REQUIRED", message="at least one symbol is required")
    if len(parsed) > MAX_SYMBOLS_PER_REQUEST:
        raise_api_error(
            status_code=400,
            code="SYMBOL_LIMIT_EXCEEDED",
            message=f"at most {MAX_SYMBOLS_PER_REQUEST} symbols per request",
        )
    return parsed
