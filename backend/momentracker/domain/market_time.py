from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from enum import Enum
import re
from zoneinfo import ZoneInfo

DEFAULT_MARKET_TIMEZONE = "America/New_York"

_SYMBOL_PATTERN = re.compile(r"^[A-Z][A-Z0-9.]{0,9}$")

PRE_MARKET_START = time(4, 0)
REGULAR_OPEN = time(9, 30)
REGULAR_CLOSE = time(16, 0)
AFTER_HOURS_END = time(20, 0)


class MarketSession(str, Enum):
    PRE_MARKET = "pre-market"
    REGULAR = "regular"
    AFTER_HOURS = "after-hours"
    CLOSED = "closed"


@dataclass(slots=True, frozen=True)
class MarketStatus:
    is_open: bool
    session: MarketSession
    message: str
    next_open: datetime | None = None
    next_close: datetime | None = None
    last_close: datetime | None = None


def to_utc(point: datetime) -> datetime:
    if point.tzinfo is None:
        return point.replace(tzinfo=timezone.utc)
    return point.astimezone(timezone.utc)


def market_trade_date(*, point: datetime, market_timezone: str = DEFAULT_MARKET_TIMEZONE) -> date:
    return to_utc(point).astimezone(ZoneInfo(market_timezone)).date()


def minute_bucket(point: datetime) -> datetime:
    return to_utc(point).replace(second=0, microsecond=0)


def normalize_symbol(raw: object) -> str | None:
    symbol = str(raw or "").strip().upper()
    if not symbol or not _SYMBOL_PATTERN.fullmatch(symbol):
        return None
    return symbol


def normalize_symbols(raw_symbols: list[str] | set[str]) -> list[str]:
    unique: list[str] = []
    seen: set[str] = set()
    for raw in raw_symbols:
        symbol = normalize_symbol(raw)
        if symbol is None:
            raise ValueError("SYMBOL_INVALID")
        if symbol in seen:
            continue
        seen.add(symbol)
        unique.append(symbol)
    return unique


def market_session(*, point: datetime, market_timezone: str = DEFAULT_MARKET_TIMEZONE) -> MarketSession:
    local = to_utc(point).astimezone(ZoneInfo(market_timezone))
    if local.weekday() >= 5:
        return MarketSession.CLOSED
    clock = local.time()
    if PRE_MARKET_START <= clock < REGULAR_OPEN:
        return MarketSession.PRE_MARKET
    if REGULAR_OPEN <= clock < REGULAR_CLOSE:
        return MarketSession.REGULAR
    if REGULAR_CLOSE <= clock < AFTER_HOURS_END:
        return MarketSession.AFTER_HOURS
    return MarketSession.CLOSED


def market_status(*, point: datetime, market_timezone: str = DEFAULT_MARKET_TIMEZONE) -> MarketStatus:
    """Regular-session status for US equities at ``point``.

    Exchange holidays are not modelled; every weekday counts as a trading
    day. Returned datetimes are UTC.
    """
    zone = ZoneInfo(market_timezone)
    local = to_utc(point).astimezone(zone)
    session = market_session(point=point, market_timezone=market_timezone)

    if session == MarketSession.REGULAR:
        return MarketStatus(
            is_open=True,
            session=session,
            message="Market Open",
            next_close=_at_local(local.date(), REGULAR_CLOSE, zone),
        )

    next_open_day = local.date()
    if local.weekday() >= 5 or local.time() >= REGULAR_OPEN:
        next_open_day = _next_weekday(next_open_day)
    last_close_day = local.date()
    if local.weekday() >= 5 or local.time() < REGULAR_CLOSE:
        last_close_day = _previous_weekday(last_close_day)

    if local.weekday() >= 5:
        message = "Market Closed - Weekend"
    elif local.time() < REGULAR_OPEN:
        message = "Market Opens at 9:30 AM ET"
    elif next_open_day.weekday() == 0:
        message = "Market Closed - Opens Monday 9:30 AM"
    else:
        message = "Market Closed - Opens Tomorrow 9:30 AM"

    return MarketStatus(
        is_open=False,
        session=session,
        message=message,
        next_open=_at_local(next_open_day, REGULAR_OPEN, zone),
        last_close=_at_local(last_close_day, REGULAR_CLOSE, zone),
    )


def _at_local(day: date, clock: time, zone: ZoneInfo) -> datetime:
    return datetime.combine(day, clock, tzinfo=zone).astimezone(timezone.utc)


def _next_weekday(day: date) -> date:
    day += timedelta(days=1)
    while day.weekday() >= 5:
        day += timedelta(days=1)
    return day


def _previous_weekday(day: date) -> date:
    day -= timedelta(days=1)
    while day.weekday() >= 5:
        day -= timedelta(days=1)
    return day
