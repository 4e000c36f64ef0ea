from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta, timezone
import logging

from momentracker.application.concurrency import log_failures, run_settled
from momentracker.domain.errors import ProviderError, StorageError
from momentracker.domain.market_time import DEFAULT_MARKET_TIMEZONE, market_trade_date, normalize_symbol, to_utc
from momentracker.domain.quotes.pricing import merge_daily_record
from momentracker.domain.quotes.schemas import DailyQuoteRecord, Quote, QuoteSource
from momentracker.infrastructure.clients.finnhub import FinnhubClient
from momentracker.infrastructure.db.uow import SqlAlchemyUnitOfWork

logger = logging.getLogger(__name__)

MAX_HISTORY_DAYS = 366


@dataclass(slots=True)
class _SymbolLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class QuoteResolutionService:
    """Read-through resolver for today's quote record of a symbol.

    The store is consulted first. A stored record is refreshed with a live
    quote when the provider answers, and returned as stored when it does
    not. On a miss the provider is asked and its answer is written back.
    ``None`` means no data was available, never a zero-priced record.
    """

    def __init__(
        self,
        *,
        uow_factory: Callable[[], SqlAlchemyUnitOfWork],
        quote_client: FinnhubClient | None,
        max_concurrency: int = 8,
        resolve_timeout_seconds: float | None = 15.0,
        market_timezone: str = DEFAULT_MARKET_TIMEZONE,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._uow_factory = uow_factory
        self._quote_client = quote_client
        self._max_concurrency = max(1, max_concurrency)
        self._resolve_timeout_seconds = resolve_timeout_seconds
        self._market_timezone = market_timezone
        self._clock = clock or (lambda: datetime.now(tz=timezone.utc))
        self._symbol_locks: dict[str, _SymbolLock] = {}

    async def resolve(self, symbol: str) -> DailyQuoteRecord | None:
        normalized = normalize_symbol(symbol)
        if normalized is None:
            raise ValueError("SYMBOL_INVALID")
        async with self._locked(normalized):
            return await self._resolve_locked(normalized)

    async def resolve_many(self, symbols: list[str]) -> list[DailyQuoteRecord]:
        unique = list(dict.fromkeys(symbols))
        results = await run_settled(
            unique,
            self.resolve,
            max_concurrency=self._max_concurrency,
            timeout_seconds=self._resolve_timeout_seconds,
        )
        log_failures(results, operation="resolve_quote")
        records = [result.value for result in results if result.ok and result.value is not None]
        logger.info(
            "Resolved %s/%s quotes (%s from store)",
            len(records),
            len(unique),
            sum(1 for record in records if record.source == QuoteSource.STORE),
        )
        return records

    async def list_history(
        self,
        symbol: str,
        *,
        start: date | None = None,
        end: date | None = None,
    ) -> list[DailyQuoteRecord]:
        """Stored daily records of ``symbol`` from ``start`` to ``end`` inclusive, oldest first.

        Reads the store only. ``end`` defaults to today's market date and
        ``start`` to 30 days before ``end``.
        """
        normalized = normalize_symbol(symbol)
        if normalized is None:
            raise ValueError("SYMBOL_INVALID")
        end = end or self._today()
        start = start or end - timedelta(days=30)
        if start > end or (end - start).days > MAX_HISTORY_DAYS:
            raise ValueError("DATE_RANGE_INVALID")
        return await asyncio.to_thread(self._list_daily_quotes, normalized, start, end)

    async def prune_daily_quotes(self, *, keep_days: int) -> int:
        if keep_days < 1:
            raise ValueError("keep_days must be >= 1")
        keep_from = self._today() - timedelta(days=keep_days)
        deleted = await asyncio.to_thread(self._delete_before, keep_from)
        logger.info("Pruned %s daily quote rows before %s", deleted, keep_from.isoformat())
        return deleted

    async def _resolve_locked(self, symbol: str) -> DailyQuoteRecord | None:
        resolved_at = to_utc(self._clock())
        trade_date = market_trade_date(point=resolved_at, market_timezone=self._market_timezone)

        try:
            stored = await asyncio.to_thread(self._get_daily_quote, symbol, trade_date)
        except StorageError:
            logger.warning("Store read failed for %s, falling back to provider", symbol, exc_info=True)
            stored = None

        if stored is not None:
            quote = await self._fetch_quote(symbol)
            if quote is None:
                return replace(stored, source=QuoteSource.STORE)
            refreshed = merge_daily_record(
                existing=stored,
                quote=quote,
                trade_date=trade_date,
                resolved_at=resolved_at,
                source=QuoteSource.STORE,
            )
            return await asyncio.to_thread(self._upsert, refreshed)

        quote = await self._fetch_quote(symbol)
        if quote is None:
            return None
        if quote.previous_close <= 0:
            quote = await self._with_stored_previous_close(quote, trade_date=trade_date)

        created = merge_daily_record(
            existing=None,
            quote=quote,
            trade_date=trade_date,
            resolved_at=resolved_at,
            source=QuoteSource.PROVIDER,
        )
        return await asyncio.to_thread(self._upsert, created)

    async def _fetch_quote(self, symbol: str) -> Quote | None:
        if self._quote_client is None:
            logger.warning("Quote provider is not configured, cannot refresh %s", symbol)
            return None
        try:
            return await self._quote_client.get_quote(symbol)
        except ProviderError as exc:
            logger.warning("Quote provider failed for %s: %s", symbol, exc.code)
            return None

    async def _with_stored_previous_close(self, quote: Quote, *, trade_date: date) -> Quote:
        try:
            prior_close = await asyncio.to_thread(self._get_previous_close, quote.symbol, trade_date)
        except StorageError:
            logger.warning("Could not read prior close for %s", quote.symbol, exc_info=True)
            return quote
        if prior_close is None:
            return quote
        return replace(quote, previous_close=prior_close)

    @asynccontextmanager
    async def _locked(self, symbol: str) -> AsyncIterator[None]:
        # Entries live only while someone holds or waits for the lock.
        entry = self._symbol_locks.setdefault(symbol, _SymbolLock())
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                self._symbol_locks.pop(symbol, None)

    def _today(self) -> date:
        return market_trade_date(point=self._clock(), market_timezone=self._market_timezone)

    def _get_daily_quote(self, symbol: str, trade_date: date) -> DailyQuoteRecord | None:
        with self._uow_factory() as uow:
            return _require_quote_repo(uow).get_daily_quote(symbol=symbol, trade_date=trade_date)

    def _list_daily_quotes(self, symbol: str, start: date, end: date) -> list[DailyQuoteRecord]:
        with self._uow_factory() as uow:
            return _require_quote_repo(uow).list_daily_quotes(symbol=symbol, start=start, end=end)

    def _get_previous_close(self, symbol: str, trade_date: date) -> float | None:
        with self._uow_factory() as uow:
            return _require_quote_repo(uow).get_previous_close(symbol=symbol, before=trade_date)

    def _upsert(self, record: DailyQuoteRecord) -> DailyQuoteRecord:
        with self._uow_factory() as uow:
            stored = _require_quote_repo(uow).upsert_daily_quote(record)
            uow.commit()
        return stored

    def _delete_before(self, trade_date: date) -> int:
        with self._uow_factory() as uow:
            deleted = _require_quote_repo(uow).delete_before(trade_date=trade_date)
            uow.commit()
        return deleted


def _require_quote_repo(uow: SqlAlchemyUnitOfWork):
    if uow.quote_repo is None:
        raise RuntimeError("Quote repository is not configured")
    return uow.quote_repo
