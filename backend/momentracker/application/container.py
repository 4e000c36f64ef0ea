from __future__ import annotations

from functools import lru_cache

from momentracker.application.dashboard.service import DashboardApplicationService
from momentracker.application.live.publisher import LivePricePublisher
from momentracker.application.live.reconciler import LivePriceReconciler
from momentracker.application.live.stream_hub import LivePriceStreamHub
from momentracker.application.quotes.service import QuoteResolutionService
from momentracker.application.trending.service import TrendingApplicationService
from momentracker.core.config import settings
from momentracker.domain.trending.retention import RetentionPolicy
from momentracker.infrastructure.clients.finnhub import FinnhubClient
from momentracker.infrastructure.clients.finnhub_stream import FinnhubTradeStreamClient
from momentracker.infrastructure.clients.stocktwits import StockTwitsClient
from momentracker.infrastructure.db.session import SessionLocal
from momentracker.infrastructure.db.uow import SqlAlchemyUnitOfWork
from momentracker.infrastructure.streaming.live_price_bus import RedisLivePriceBus, RedisLivePriceSubscriber


@lru_cache
def _finnhub_client() -> FinnhubClient | None:
    if not settings.finnhub_api_key:
        return None
    return FinnhubClient(
        settings.finnhub_api_key,
        base_url=settings.finnhub_base_url,
        timeout_seconds=settings.provider_timeout_seconds,
    )


@lru_cache
def _stocktwits_client() -> StockTwitsClient:
    return StockTwitsClient(
        base_url=settings.stocktwits_base_url,
        timeout_seconds=settings.provider_timeout_seconds,
    )


def build_uow() -> SqlAlchemyUnitOfWork:
    return SqlAlchemyUnitOfWork(session_factory=SessionLocal)


def build_retention_policy() -> RetentionPolicy:
    return RetentionPolicy(
        six_hour_min_avg_score=settings.trending_six_hour_min_avg_score,
        twenty_four_hour_min_avg_score=settings.trending_twenty_four_hour_min_avg_score,
    )


def build_trending_service() -> TrendingApplicationService:
    return TrendingApplicationService(
        uow_factory=build_uow,
        feed_client=_stocktwits_client(),
        policy=build_retention_policy(),
        expected_daily_snapshots=settings.expected_daily_snapshots,
        feed_limit=settings.trending_feed_limit,
        verify_current_membership=settings.trending_verify_current_membership,
        collect_sentiment=settings.trending_collect_sentiment,
        sentiment_min_messages=settings.trending_sentiment_min_messages,
        max_concurrency=settings.resolve_max_concurrency,
        timeout_seconds=settings.resolve_timeout_seconds,
        market_timezone=settings.market_timezone,
    )


def build_quote_service() -> QuoteResolutionService:
    return QuoteResolutionService(
        uow_factory=build_uow,
        quote_client=_finnhub_client(),
        max_concurrency=settings.resolve_max_concurrency,
        resolve_timeout_seconds=settings.resolve_timeout_seconds,
        market_timezone=settings.market_timezone,
    )


def build_dashboard_service() -> DashboardApplicationService:
    return DashboardApplicationService(
        trending_service=build_trending_service(),
        quote_service=build_quote_service(),
        live_price_source=_live_price_bus().latest_prices,
    )


@lru_cache
def _finnhub_stream_client() -> FinnhubTradeStreamClient | None:
    if not settings.finnhub_api_key:
        return None
    return FinnhubTradeStreamClient(
        api_key=settings.finnhub_api_key,
        url=settings.finnhub_stream_url,
        reconnect_delay_seconds=settings.live_stream_reconnect_delay_seconds,
    )


@lru_cache
def _live_price_bus() -> RedisLivePriceBus:
    return RedisLivePriceBus(
        redis_url=settings.redis_url,
        channel=settings.live_stream_redis_channel,
        latest_key=settings.live_stream_latest_key,
        latest_ttl_seconds=settings.live_stream_latest_ttl_seconds,
    )


@lru_cache
def _live_price_subscriber() -> RedisLivePriceSubscriber:
    return RedisLivePriceSubscriber(
        redis_url=settings.redis_url,
        channel=settings.live_stream_redis_channel,
    )


@lru_cache
def _live_price_stream_hub() -> LivePriceStreamHub:
    return LivePriceStreamHub(
        event_subscriber=_live_price_subscriber(),
        max_symbols_per_connection=settings.live_stream_max_symbols_per_connection,
        queue_size=settings.live_stream_queue_size,
    )


def build_live_price_stream_hub() -> LivePriceStreamHub:
    return _live_price_stream_hub()


@lru_cache
def _live_price_publisher() -> LivePricePublisher:
    dashboard_service = build_dashboard_service()
    return LivePricePublisher(
        stream_client=_finnhub_stream_client(),
        reconciler=LivePriceReconciler(),
        event_bus=_live_price_bus(),
        anchor_source=dashboard_service.tracked_anchors,
        refresh_interval_seconds=settings.live_stream_refresh_interval_seconds,
    )


def build_live_price_publisher() -> LivePricePublisher:
    return _live_price_publisher()


async def shutdown_live_price_stream_hub() -> None:
    if _live_price_stream_hub.cache_info().currsize > 0:
        await _live_price_stream_hub().shutdown()
        _live_price_stream_hub.cache_clear()
        _live_price_subscriber.cache_clear()
    await _close_live_price_bus()


async def shutdown_live_price_publisher() -> None:
    if _live_price_publisher.cache_info().currsize == 0:
        return
    publisher = _live_price_publisher()
    await publisher.shutdown()
    _live_price_publisher.cache_clear()
    _finnhub_stream_client.cache_clear()
    await _close_live_price_bus()


async def _close_live_price_bus() -> None:
    if _live_price_bus.cache_info().currsize == 0:
        return
    await _live_price_bus().close()
    _live_price_bus.cache_clear()
