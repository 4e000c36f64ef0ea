from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
import logging

from momentracker.application.concurrency import log_failures, run_settled
from momentracker.domain.errors import DuplicateSnapshotError
from momentracker.domain.market_time import (
    DEFAULT_MARKET_TIMEZONE,
    MarketStatus,
    market_status,
    minute_bucket,
    to_utc,
)
from momentracker.domain.trending.dimensions import TWENTY_FOUR_HOURS, compute_dimensions
from momentracker.domain.trending.retention import REASON_BELOW_THRESHOLDS, RetentionPolicy
from momentracker.domain.trending.schemas import (
    SymbolRetention,
    TrendingDimensions,
    TrendingFeedItem,
    TrendingSnapshot,
)
from momentracker.infrastructure.clients.stocktwits import StockTwitsClient
from momentracker.infrastructure.db.uow import SqlAlchemyUnitOfWork

logger = logging.getLogger(__name__)


class TrendingApplicationService:
    def __init__(
        self,
        *,
        uow_factory: Callable[[], SqlAlchemyUnitOfWork],
        feed_client: StockTwitsClient,
        policy: RetentionPolicy,
        expected_daily_snapshots: int,
        feed_limit: int = 30,
        verify_current_membership: bool = False,
        collect_sentiment: bool = False,
        sentiment_min_messages: int = 10,
        max_concurrency: int = 8,
        timeout_seconds: float | None = None,
        market_timezone: str = DEFAULT_MARKET_TIMEZONE,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._uow_factory = uow_factory
        self._feed_client = feed_client
        self._policy = policy
        self._expected_daily_snapshots = max(1, expected_daily_snapshots)
        self._feed_limit = max(1, feed_limit)
        self._verify_current_membership = verify_current_membership
        self._collect_sentiment = collect_sentiment
        self._sentiment_min_messages = sentiment_min_messages
        self._max_concurrency = max(1, max_concurrency)
        self._timeout_seconds = timeout_seconds
        self._market_timezone = market_timezone
        self._clock = clock or (lambda: datetime.now(tz=timezone.utc))

    async def fetch_current_feed(self) -> list[TrendingFeedItem]:
        return await self._feed_client.list_trending(limit=self._feed_limit)

    async def collect_trending(self) -> int:
        feed = await self.fetch_current_feed()
        observed_at = to_utc(self._clock())
        snapshots = [
            TrendingSnapshot(
                symbol=item.symbol,
                rank=item.rank,
                trending_score=item.trending_score,
                observed_at=observed_at,
                watchlist_count=item.watchlist_count,
            )
            for item in feed
        ]
        if self._collect_sentiment:
            await self._attach_sentiment(snapshots)
        inserted = await self.record_snapshots(snapshots)
        logger.info("Recorded %s trending snapshots from %s feed entries", inserted, len(feed))
        return inserted

    async def record_snapshots(self, snapshots: list[TrendingSnapshot]) -> int:
        if not snapshots:
            return 0

        batch = _collapse_minute_duplicates(snapshots)
        try:
            return await asyncio.to_thread(self._insert_snapshots, batch)
        except DuplicateSnapshotError:
            keys = {(item.symbol, minute_bucket(item.observed_at)) for item in batch}
            stored = await asyncio.to_thread(self._existing_keys, keys)
            retry = [item for item in batch if (item.symbol, minute_bucket(item.observed_at)) not in stored]
            logger.warning(
                "Dropped %s trending snapshots already stored for their minute",
                len(batch) - len(retry),
            )
            if not retry:
                return 0
            return await asyncio.to_thread(self._insert_snapshots, retry)

    async def list_snapshots(
        self,
        *,
        symbol: str,
        since: datetime,
        descending: bool = False,
    ) -> list[TrendingSnapshot]:
        return await asyncio.to_thread(self._list_snapshots, symbol, since, None, descending)

    async def calculate_dimensions(
        self,
        symbol: str,
        *,
        current_symbols: set[str] | None = None,
    ) -> TrendingDimensions | None:
        now = to_utc(self._clock())
        snapshots = await asyncio.to_thread(self._list_snapshots, symbol, now - TWENTY_FOUR_HOURS, now, False)
        dimensions = compute_dimensions(
            symbol=symbol,
            snapshots=snapshots,
            now=now,
            expected_daily_snapshots=self._expected_daily_snapshots,
            current_symbols=current_symbols,
        )
        if dimensions is None:
            return None
        return self._policy.apply(dimensions)

    async def calculate_many(
        self,
        symbols: list[str],
        *,
        current_symbols: set[str] | None = None,
    ) -> dict[str, TrendingDimensions | None]:
        async def worker(symbol: str) -> TrendingDimensions | None:
            return await self.calculate_dimensions(symbol, current_symbols=current_symbols)

        results = await run_settled(
            _unique(symbols),
            worker,
            max_concurrency=self._max_concurrency,
            timeout_seconds=self._timeout_seconds,
        )
        log_failures(results, operation="calculate_dimensions")
        return {result.key: result.value for result in results if result.ok}

    async def evaluate_symbols(
        self,
        symbols: list[str],
        *,
        current_symbols: set[str] | None = None,
    ) -> list[SymbolRetention]:
        dimensions_by_symbol = await self.calculate_many(symbols, current_symbols=current_symbols)
        evaluated: list[SymbolRetention] = []
        for symbol, dimensions in dimensions_by_symbol.items():
            if dimensions is None:
                evaluated.append(
                    SymbolRetention(symbol=symbol, dimensions=None, keep=False, reason=REASON_BELOW_THRESHOLDS)
                )
                continue
            evaluated.append(
                SymbolRetention(
                    symbol=symbol,
                    dimensions=dimensions,
                    keep=dimensions.keep_symbol,
                    reason=dimensions.keep_reason,
                )
            )
        return evaluated

    async def stable_symbols(self, *, feed: list[TrendingFeedItem] | None = None) -> list[SymbolRetention]:
        """Retained symbols of the working set, strongest 6h average score first.

        Without membership verification the working set is the current feed
        and presence in the snapshot window counts as currently trending.
        With verification, symbols seen in the last 24h join the working set
        and only symbols of the fresh feed count as currently trending.
        """
        if feed is None:
            feed = await self.fetch_current_feed()
        feed_symbols = [item.symbol for item in feed]

        if self._verify_current_membership:
            since = to_utc(self._clock()) - TWENTY_FOUR_HOURS
            recent = await asyncio.to_thread(self._recent_symbols, since)
            candidates = _unique(feed_symbols + recent)
            evaluated = await self.evaluate_symbols(candidates, current_symbols=set(feed_symbols))
        else:
            evaluated = await self.evaluate_symbols(feed_symbols)

        retained = [item for item in evaluated if item.keep and item.dimensions is not None]
        retained.sort(key=lambda item: item.dimensions.six_hour.avg_score, reverse=True)
        return retained

    def market_status(self) -> MarketStatus:
        return market_status(point=self._clock(), market_timezone=self._market_timezone)

    async def prune_snapshots(self, *, retention_days: int) -> int:
        if retention_days < 1:
            raise ValueError("retention_days must be >= 1")
        cutoff = to_utc(self._clock()) - timedelta(days=retention_days)
        deleted = await asyncio.to_thread(self._delete_older_than, cutoff)
        logger.info("Pruned %s trending snapshots older than %s", deleted, cutoff.isoformat())
        return deleted

    async def _attach_sentiment(self, snapshots: list[TrendingSnapshot]) -> None:
        async def worker(symbol: str):
            return await self._feed_client.get_sentiment_counts(
                symbol,
                min_messages=self._sentiment_min_messages,
            )

        results = await run_settled(
            [item.symbol for item in snapshots],
            worker,
            max_concurrency=self._max_concurrency,
            timeout_seconds=self._timeout_seconds,
        )
        log_failures(results, operation="get_sentiment_counts")
        counts = {result.key: result.value for result in results if result.ok and result.value is not None}
        for snapshot in snapshots:
            sentiment = counts.get(snapshot.symbol)
            if sentiment is None:
                continue
            snapshot.bullish_count = sentiment.bullish
            snapshot.bearish_count = sentiment.bearish
            snapshot.message_volume = sentiment.message_volume

    def _insert_snapshots(self, snapshots: list[TrendingSnapshot]) -> int:
        with self._uow_factory() as uow:
            repo = _require_trending_repo(uow)
            inserted = repo.insert_snapshots(snapshots)
            uow.commit()
        return inserted

    def _existing_keys(self, keys: set[tuple[str, datetime]]) -> set[tuple[str, datetime]]:
        with self._uow_factory() as uow:
            return _require_trending_repo(uow).list_existing_keys(keys)

    def _list_snapshots(
        self,
        symbol: str,
        since: datetime,
        until: datetime | None,
        descending: bool,
    ) -> list[TrendingSnapshot]:
        with self._uow_factory() as uow:
            return _require_trending_repo(uow).list_snapshots(
                symbol=symbol,
                since=since,
                until=until,
                descending=descending,
            )

    def _recent_symbols(self, since: datetime) -> list[str]:
        with self._uow_factory() as uow:
            return _require_trending_repo(uow).list_recent_symbols(since=since)

    def _delete_older_than(self, cutoff: datetime) -> int:
        with self._uow_factory() as uow:
            deleted = _require_trending_repo(uow).delete_older_than(cutoff=cutoff)
            uow.commit()
        return deleted


def _require_trending_repo(uow: SqlAlchemyUnitOfWork):
    if uow.trending_repo is None:
        raise RuntimeError("Trending repository is not configured")
    return uow.trending_repo


def _collapse_minute_duplicates(snapshots: list[TrendingSnapshot]) -> list[TrendingSnapshot]:
    unique: list[TrendingSnapshot] = []
    seen: set[tuple[str, datetime]] = set()
    for snapshot in snapshots:
        key = (snapshot.symbol, minute_bucket(snapshot.observed_at))
        if key in seen:
            continue
        seen.add(key)
        unique.append(snapshot)
    return unique


def _unique(symbols: list[str]) -> list[str]:
    return list(dict.fromkeys(symbols))
