from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from momentracker.application.trending.service import TrendingApplicationService
from momentracker.domain.errors import DuplicateSnapshotError, ProviderError
from momentracker.domain.market_time import MarketSession, minute_bucket
from momentracker.domain.trending.retention import (
    REASON_BELOW_THRESHOLDS,
    REASON_CURRENTLY_TRENDING,
    REASON_TWENTY_FOUR_HOUR_INTEREST,
    RetentionPolicy,
)
from momentracker.domain.trending.schemas import SentimentCounts, TrendingFeedItem, TrendingSnapshot

NOW = datetime(2026, 3, 2, 18, 0, 30, tzinfo=timezone.utc)


class FakeTrendingRepository:
    def __init__(self) -> None:
        self.rows: list[TrendingSnapshot] = []
        self.insert_calls = 0
        self.pending_duplicates: set[tuple[str, datetime]] = set()
        self.list_calls: list[str] = []

    def insert_snapshots(self, snapshots: list[TrendingSnapshot]) -> int:
        self.insert_calls += 1
        stored = {(row.symbol, minute_bucket(row.observed_at)) for row in self.rows}
        for snapshot in snapshots:
            if (snapshot.symbol, minute_bucket(snapshot.observed_at)) in stored:
                raise DuplicateSnapshotError(snapshot.symbol)
        self.rows.extend(snapshots)
        return len(snapshots)

    def list_existing_keys(self, keys: set[tuple[str, datetime]]) -> set[tuple[str, datetime]]:
        stored = {(row.symbol, minute_bucket(row.observed_at)) for row in self.rows}
        return {key for key in keys if key in stored}

    def list_snapshots(
        self,
        *,
        symbol: str,
        since: datetime,
        until: datetime | None = None,
        descending: bool = False,
    ) -> list[TrendingSnapshot]:
        self.list_calls.append(symbol)
        rows = [
            row
            for row in self.rows
            if row.symbol == symbol and row.observed_at >= since and (until is None or row.observed_at <= until)
        ]
        return sorted(rows, key=lambda row: row.observed_at, reverse=descending)

    def list_recent_symbols(self, *, since: datetime) -> list[str]:
        return sorted({row.symbol for row in self.rows if row.observed_at >= since})

    def delete_older_than(self, *, cutoff: datetime) -> int:
        before = len(self.rows)
        self.rows = [row for row in self.rows if row.observed_at >= cutoff]
        return before - len(self.rows)


class FakeUoW:
    def __init__(self, *, trending_repo: FakeTrendingRepository) -> None:
        self.trending_repo = trending_repo
        self.quote_repo = None
        self.commits = 0

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        return None

    def commit(self) -> None:
        self.commits += 1

    def rollback(self) -> None:
        return None


class FakeFeedClient:
    def __init__(self, items: list[TrendingFeedItem] | None = None) -> None:
        self.items = items or []
        self.sentiment: dict[str, SentimentCounts | None] = {}
        self.sentiment_failures: set[str] = set()
        self.list_calls = 0

    async def list_trending(self, *, limit: int = 30) -> list[TrendingFeedItem]:
        self.list_calls += 1
        return self.items[:limit]

    async def get_sentiment_counts(self, symbol: str, *, min_messages: int = 10) -> SentimentCounts | None:
        if symbol in self.sentiment_failures:
            raise ProviderError(symbol)
        return self.sentiment.get(symbol)


def _service(
    repo: FakeTrendingRepository,
    feed: FakeFeedClient,
    *,
    verify_current_membership: bool = False,
    collect_sentiment: bool = False,
) -> tuple[TrendingApplicationService, FakeUoW]:
    uow = FakeUoW(trending_repo=repo)
    service = TrendingApplicationService(
        uow_factory=lambda: uow,
        feed_client=feed,
        policy=RetentionPolicy(),
        expected_daily_snapshots=720,
        verify_current_membership=verify_current_membership,
        collect_sentiment=collect_sentiment,
        clock=lambda: NOW,
    )
    return service, uow


def _snapshot(symbol: str, *, hours_ago: float, score: float, rank: int = 1) -> TrendingSnapshot:
    return TrendingSnapshot(
        symbol=symbol,
        rank=rank,
        trending_score=score,
        observed_at=NOW - timedelta(hours=hours_ago),
    )


def test_collect_trending_records_one_snapshot_per_feed_entry() -> None:
    async def scenario() -> None:
        repo = FakeTrendingRepository()
        feed = FakeFeedClient(
            [
                TrendingFeedItem(symbol="NVDA", rank=1, trending_score=88.0, watchlist_count=1200),
                TrendingFeedItem(symbol="AMD", rank=2, trending_score=71.5),
            ]
        )
        service, uow = _service(repo, feed)

        inserted = await service.collect_trending()

        assert inserted == 2
        assert uow.commits == 1
        assert [row.symbol for row in repo.rows] == ["NVDA", "AMD"]
        assert all(row.observed_at == NOW for row in repo.rows)
        assert repo.rows[0].watchlist_count == 1200
        assert repo.rows[0].bullish_count is None

    asyncio.run(scenario())


def test_collect_trending_attaches_sentiment_when_enabled() -> None:
    async def scenario() -> None:
        repo = FakeTrendingRepository()
        feed = FakeFeedClient(
            [
                TrendingFeedItem(symbol="NVDA", rank=1, trending_score=88.0),
                TrendingFeedItem(symbol="AMD", rank=2, trending_score=71.5),
                TrendingFeedItem(symbol="PLTR", rank=3, trending_score=64.0),
            ]
        )
        feed.sentiment["NVDA"] = SentimentCounts(bullish=14, bearish=4, message_volume=30)
        feed.sentiment_failures.add("AMD")
        service, _ = _service(repo, feed, collect_sentiment=True)

        inserted = await service.collect_trending()

        assert inserted == 3
        by_symbol = {row.symbol: row for row in repo.rows}
        assert by_symbol["NVDA"].bullish_count == 14
        assert by_symbol["NVDA"].bearish_count == 4
        assert by_symbol["NVDA"].message_volume == 30
        assert by_symbol["AMD"].bullish_count is None
        assert by_symbol["PLTR"].message_volume is None

    asyncio.run(scenario())


def test_record_snapshots_collapses_same_minute_duplicates_in_batch() -> None:
    async def scenario() -> None:
        repo = FakeTrendingRepository()
        service, _ = _service(repo, FakeFeedClient())

        inserted = await service.record_snapshots(
            [
                TrendingSnapshot(symbol="NVDA", rank=1, trending_score=80.0, observed_at=NOW),
                TrendingSnapshot(symbol="NVDA", rank=2, trending_score=79.0, observed_at=NOW + timedelta(seconds=5)),
            ]
        )

        assert inserted == 1
        assert repo.rows[0].rank == 1

    asyncio.run(scenario())


def test_record_snapshots_retries_without_rows_already_stored() -> None:
    async def scenario() -> None:
        repo = FakeTrendingRepository()
        repo.rows.append(TrendingSnapshot(symbol="NVDA", rank=1, trending_score=80.0, observed_at=NOW))
        service, _ = _service(repo, FakeFeedClient())

        inserted = await service.record_snapshots(
            [
                TrendingSnapshot(symbol="NVDA", rank=1, trending_score=81.0, observed_at=NOW + timedelta(seconds=10)),
                TrendingSnapshot(symbol="AMD", rank=2, trending_score=60.0, observed_at=NOW),
            ]
        )

        assert inserted == 1
        assert repo.insert_calls == 2
        assert sorted(row.symbol for row in repo.rows) == ["AMD", "NVDA"]
        assert [row.trending_score for row in repo.rows if row.symbol == "NVDA"] == [80.0]

    asyncio.run(scenario())


def test_record_snapshots_returns_zero_when_whole_batch_is_stored() -> None:
    async def scenario() -> None:
        repo = FakeTrendingRepository()
        repo.rows.append(TrendingSnapshot(symbol="NVDA", rank=1, trending_score=80.0, observed_at=NOW))
        service, _ = _service(repo, FakeFeedClient())

        inserted = await service.record_snapshots(
            [TrendingSnapshot(symbol="NVDA", rank=1, trending_score=80.0, observed_at=NOW)]
        )

        assert inserted == 0
        assert repo.insert_calls == 1

    asyncio.run(scenario())


def test_calculate_dimensions_returns_none_without_history() -> None:
    async def scenario() -> None:
        service, _ = _service(FakeTrendingRepository(), FakeFeedClient())

        assert await service.calculate_dimensions("NVDA") is None

    asyncio.run(scenario())


def test_calculate_dimensions_applies_retention_policy() -> None:
    async def scenario() -> None:
        repo = FakeTrendingRepository()
        repo.rows.extend(
            [
                _snapshot("NVDA", hours_ago=1, score=90.0),
                _snapshot("NVDA", hours_ago=3, score=70.0),
            ]
        )
        service, _ = _service(repo, FakeFeedClient())

        dimensions = await service.calculate_dimensions("NVDA")

        assert dimensions is not None
        assert dimensions.keep_symbol is True
        assert dimensions.keep_reason == REASON_CURRENTLY_TRENDING
        assert dimensions.six_hour.avg_score == pytest.approx(80.0)

    asyncio.run(scenario())


def test_evaluate_symbols_with_fresh_feed_membership() -> None:
    async def scenario() -> None:
        repo = FakeTrendingRepository()
        repo.rows.extend(
            [
                # A: in the fresh feed.
                _snapshot("A", hours_ago=0.2, score=20.0),
                # B: quiet lately, strong earlier today.
                _snapshot("B", hours_ago=3, score=30.0),
                _snapshot("B", hours_ago=12, score=60.0),
                _snapshot("B", hours_ago=16, score=60.0),
                # C: weak everywhere.
                _snapshot("C", hours_ago=2, score=10.0),
                _snapshot("C", hours_ago=10, score=12.0),
            ]
        )
        service, _ = _service(repo, FakeFeedClient())

        evaluated = await service.evaluate_symbols(["A", "B", "C", "D"], current_symbols={"A"})
        by_symbol = {item.symbol: item for item in evaluated}

        assert by_symbol["A"].keep is True
        assert by_symbol["A"].reason == REASON_CURRENTLY_TRENDING
        assert by_symbol["B"].keep is True
        assert by_symbol["B"].reason == REASON_TWENTY_FOUR_HOUR_INTEREST
        assert by_symbol["C"].keep is False
        assert by_symbol["C"].reason == REASON_BELOW_THRESHOLDS
        assert by_symbol["D"].keep is False
        assert by_symbol["D"].dimensions is None
        assert by_symbol["D"].reason == REASON_BELOW_THRESHOLDS

    asyncio.run(scenario())


def test_stable_symbols_uses_current_feed_as_working_set_by_default() -> None:
    async def scenario() -> None:
        repo = FakeTrendingRepository()
        repo.rows.extend(
            [
                _snapshot("NVDA", hours_ago=1, score=40.0),
                _snapshot("AMD", hours_ago=1, score=75.0),
                _snapshot("GME", hours_ago=1, score=95.0),
            ]
        )
        feed = FakeFeedClient(
            [
                TrendingFeedItem(symbol="NVDA", rank=1, trending_score=40.0),
                TrendingFeedItem(symbol="AMD", rank=2, trending_score=75.0),
            ]
        )
        service, _ = _service(repo, feed)

        retained = await service.stable_symbols()

        assert [item.symbol for item in retained] == ["AMD", "NVDA"]
        assert "GME" not in repo.list_calls

    asyncio.run(scenario())


def test_stable_symbols_with_verification_keeps_recent_momentum_outside_feed() -> None:
    async def scenario() -> None:
        repo = FakeTrendingRepository()
        repo.rows.extend(
            [
                _snapshot("NVDA", hours_ago=0.5, score=20.0),
                _snapshot("GME", hours_ago=2, score=95.0),
                _snapshot("BBBY", hours_ago=5, score=5.0),
            ]
        )
        feed = FakeFeedClient([TrendingFeedItem(symbol="NVDA", rank=1, trending_score=20.0)])
        service, _ = _service(repo, feed, verify_current_membership=True)

        retained = await service.stable_symbols()

        assert [item.symbol for item in retained] == ["GME", "NVDA"]
        assert retained[0].dimensions is not None
        assert retained[0].dimensions.real_time.is_currently_trending is False
        assert retained[1].reason == REASON_CURRENTLY_TRENDING

    asyncio.run(scenario())


def test_prune_snapshots_deletes_rows_older_than_retention() -> None:
    async def scenario() -> None:
        repo = FakeTrendingRepository()
        repo.rows.extend(
            [
                _snapshot("NVDA", hours_ago=1, score=40.0),
                _snapshot("NVDA", hours_ago=24 * 40, score=40.0),
            ]
        )
        service, uow = _service(repo, FakeFeedClient())

        deleted = await service.prune_snapshots(retention_days=30)

        assert deleted == 1
        assert len(repo.rows) == 1
        assert uow.commits == 1
        with pytest.raises(ValueError):
            await service.prune_snapshots(retention_days=0)

    asyncio.run(scenario())


def test_market_status_uses_service_clock_and_timezone() -> None:
    service, _ = _service(FakeTrendingRepository(), FakeFeedClient())

    status = service.market_status()

    assert status.session == MarketSession.REGULAR
    assert status.is_open is True
    assert status.next_close == datetime(2026, 3, 2, 21, 0, tzinfo=timezone.utc)
