from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime, timezone
from typing import Generator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from momentracker.api.deps import get_dashboard_service, get_quote_service, get_trending_service
from momentracker.api.errors import install_api_error_handlers
from momentracker.api.v1.router import api_router
from momentracker.domain.dashboard.schemas import DashboardRow
from momentracker.domain.errors import ProviderRateLimitedError, StorageError
from momentracker.domain.market_time import MarketSession, MarketStatus
from momentracker.domain.quotes.schemas import DailyQuoteRecord, LivePriceState, QuoteSource
from momentracker.domain.trending.retention import (
    REASON_BELOW_THRESHOLDS,
    REASON_CURRENTLY_TRENDING,
    RetentionPolicy,
)
from momentracker.domain.trending.schemas import (
    RealTimeDimension,
    SixHourDimension,
    SymbolRetention,
    TrendDirection,
    TrendingDimensions,
    TwentyFourHourDimension,
)

NOW = datetime(2026, 3, 2, 15, 45, tzinfo=timezone.utc)


def build_dimensions(symbol: str, *, trending: bool = True) -> TrendingDimensions:
    dimensions = TrendingDimensions(
        symbol=symbol,
        real_time=RealTimeDimension(rank=1, score=88.0, is_currently_trending=trending, last_seen=NOW, rank_delta=2),
        six_hour=SixHourDimension(
            avg_score=71.23456,
            avg_rank=2.5,
            snapshot_count=4,
            trend=TrendDirection.UP,
            volatility=3.14159,
        ),
        twenty_four_hour=TwentyFourHourDimension(
            avg_score=55.5,
            avg_rank=4.25,
            peak_score=92.0,
            peak_time=NOW,
            snapshot_count=12,
            consistency=1.666666,
        ),
    )
    return RetentionPolicy().apply(dimensions)


def build_record(symbol: str) -> DailyQuoteRecord:
    return DailyQuoteRecord(
        symbol=symbol,
        trade_date=date(2026, 3, 2),
        open=100.0,
        high=104.0,
        low=99.0,
        close=102.0,
        volume=123456,
        previous_close=100.0,
        percent_change=2.0,
        source=QuoteSource.PROVIDER,
        resolved_at=NOW,
    )


class FakeTrendingService:
    def __init__(self) -> None:
        self.calculate_calls: list[list[str]] = []
        self.fail_with: Exception | None = None

    async def calculate_many(self, symbols: list[str], *, current_symbols=None) -> dict:
        self.calculate_calls.append(symbols)
        return {symbol: (build_dimensions(symbol) if symbol != "NONE" else None) for symbol in symbols}

    async def evaluate_symbols(self, symbols: list[str], *, current_symbols=None) -> list[SymbolRetention]:
        return [
            SymbolRetention(symbol=symbol, dimensions=None, keep=False, reason=REASON_BELOW_THRESHOLDS)
            for symbol in symbols
        ]

    async def stable_symbols(self, *, feed=None) -> list[SymbolRetention]:
        if self.fail_with is not None:
            raise self.fail_with
        dimensions = build_dimensions("NVDA")
        return [SymbolRetention(symbol="NVDA", dimensions=dimensions, keep=True, reason=REASON_CURRENTLY_TRENDING)]

    def market_status(self) -> MarketStatus:
        return MarketStatus(
            is_open=False,
            session=MarketSession.PRE_MARKET,
            message="Market Opens at 9:30 AM ET",
            next_open=datetime(2026, 3, 2, 14, 30, tzinfo=timezone.utc),
            last_close=datetime(2026, 2, 27, 21, 0, tzinfo=timezone.utc),
        )


class FakeQuoteService:
    def __init__(self) -> None:
        self.resolve_many_calls: list[list[str]] = []
        self.history_calls: list[tuple[str, date | None, date | None]] = []

    async def resolve(self, symbol: str) -> DailyQuoteRecord | None:
        if symbol == "ZZZ":
            return None
        if symbol == "DOWN":
            raise StorageError("db down")
        if symbol == "LIMIT":
            raise ProviderRateLimitedError("429")
        return build_record(symbol)

    async def resolve_many(self, symbols: list[str]) -> list[DailyQuoteRecord]:
        self.resolve_many_calls.append(symbols)
        return [build_record(symbol) for symbol in symbols if symbol != "ZZZ"]

    async def list_history(
        self,
        symbol: str,
        *,
        start: date | None = None,
        end: date | None = None,
    ) -> list[DailyQuoteRecord]:
        self.history_calls.append((symbol, start, end))
        if start is not None and end is not None and start > end:
            raise ValueError("DATE_RANGE_INVALID")
        return [
            replace(build_record(symbol), trade_date=date(2026, 2, 27)),
            build_record(symbol),
        ]


class FakeDashboardService:
    async def build_board(self) -> list[DashboardRow]:
        return [
            DashboardRow(symbol="NVDA", quote=build_record("NVDA"), dimensions=build_dimensions("NVDA")),
            DashboardRow(
                symbol="AMD",
                quote=build_record("AMD"),
                dimensions=None,
                live=LivePriceState(
                    symbol="AMD",
                    last_price=104.0,
                    previous_close=100.0,
                    percent_change=4.0,
                    delta=0.5,
                    last_trade_at=NOW,
                ),
            ),
        ]


@pytest.fixture()
def fake_trending_service() -> FakeTrendingService:
    return FakeTrendingService()


@pytest.fixture()
def fake_quote_service() -> FakeQuoteService:
    return FakeQuoteService()


@pytest.fixture()
def client(
    fake_trending_service: FakeTrendingService,
    fake_quote_service: FakeQuoteService,
) -> Generator[TestClient, None, None]:
    application = FastAPI()
    install_api_error_handlers(application)
    application.include_router(api_router, prefix="/api/v1")
    application.dependency_overrides[get_trending_service] = lambda: fake_trending_service
    application.dependency_overrides[get_quote_service] = lambda: fake_quote_service
    application.dependency_overrides[get_dashboard_service] = lambda: FakeDashboardService()

    with TestClient(application) as test_client:
        yield test_client
