from __future__ import annotations

from datetime import date, datetime, timezone

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from momentracker.domain.errors import DuplicateSnapshotError, StorageError
from momentracker.domain.quotes.schemas import DailyQuoteRecord, QuoteSource
from momentracker.domain.trending.schemas import TrendingSnapshot
from momentracker.infrastructure.db.errors import translate_storage_errors
from momentracker.infrastructure.db.mappers import daily_quote_to_row, trending_snapshot_to_row


def test_trending_snapshot_row_carries_minute_bucket() -> None:
    row = trending_snapshot_to_row(
        TrendingSnapshot(
            symbol="NVDA",
            rank=1,
            trending_score=88.0,
            observed_at=datetime(2026, 3, 2, 15, 0, 42, 500, tzinfo=timezone.utc),
        )
    )

    assert row["observed_minute"] == datetime(2026, 3, 2, 15, 0, tzinfo=timezone.utc)
    assert row["observed_at"] == datetime(2026, 3, 2, 15, 0, 42, 500, tzinfo=timezone.utc)
    assert row["bullish_count"] is None


def test_daily_quote_row_stores_source_value() -> None:
    row = daily_quote_to_row(
        DailyQuoteRecord(
            symbol="AAPL",
            trade_date=date(2026, 3, 2),
            open=100.0,
            high=104.0,
            low=99.0,
            close=102.0,
            volume=1000,
            previous_close=100.0,
            percent_change=2.0,
            source=QuoteSource.STORE,
            resolved_at=datetime(2026, 3, 2, 15, 0, tzinfo=timezone.utc),
        )
    )

    assert row["source"] == "store"
    assert row["trade_date"] == date(2026, 3, 2)


def test_translate_storage_errors_maps_integrity_to_duplicate() -> None:
    with pytest.raises(DuplicateSnapshotError):
        with translate_storage_errors():
            raise IntegrityError("INSERT", {}, Exception("duplicate key"))


def test_translate_storage_errors_maps_other_failures_to_storage_error() -> None:
    with pytest.raises(StorageError) as exc_info:
        with translate_storage_errors():
            raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    assert not isinstance(exc_info.value, DuplicateSnapshotError)


def test_translate_storage_errors_can_report_conflicts_as_plain_storage_errors() -> None:
    with pytest.raises(StorageError) as exc_info:
        with translate_storage_errors(duplicate_error=StorageError):
            raise IntegrityError("INSERT", {}, Exception("conflict"))

    assert exc_info.value.code == "STORAGE_UNAVAILABLE"
