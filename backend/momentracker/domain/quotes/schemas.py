from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum


class QuoteSource(str, Enum):
    STORE = "store"
    PROVIDER = "provider"


@dataclass(slots=True)
class Quote:
    symbol: str
    price: float
    open: float
    high: float
    low: float
    previous_close: float
    volume: float
    fetched_at: datetime
    percent_change: float | None = None


@dataclass(slots=True)
class DailyQuoteRecord:
    symbol: str
    trade_date: date
    open: float
    high: float
    low: float
    close: float
    volume: float
    previous_close: float
    percent_change: float
    source: QuoteSource
    resolved_at: datetime


@dataclass(slots=True, frozen=True)
class SymbolAnchor:
    symbol: str
    previous_close: float


@dataclass(slots=True, frozen=True)
class TradeTick:
    symbol: str
    price: float
    traded_at: datetime
    volume: float | None = None


@dataclass(slots=True)
class LivePriceState:
    symbol: str
    last_price: float
    previous_close: float
    percent_change: float
    delta: float
    last_trade_at: datetime


@dataclass(slots=True, frozen=True)
class StreamStatusEvent:
    connection_state: str
    message: str | None = None


@dataclass(slots=True, frozen=True)
class StreamErrorEvent:
    code: str
    message: str


LiveEvent = LivePriceState | StreamStatusEvent | StreamErrorEvent
