from __future__ import annotations

from momentracker.application.container import (
    build_dashboard_service,
    build_live_price_stream_hub,
    build_quote_service,
    build_trending_service,
)
from momentracker.application.dashboard.service import DashboardApplicationService
from momentracker.application.live.stream_hub import LivePriceStreamHub
from momentracker.application.quotes.service import QuoteResolutionService
from momentracker.application.trending.service import TrendingApplicationService


def get_trending_service() -> TrendingApplicationService:
    return build_trending_service()


def get_quote_service() -> QuoteResolutionService:
    return build_quote_service()


def get_dashboard_service() -> DashboardApplicationService:
    return build_dashboard_service()


def get_live_price_stream_hub() -> LivePriceStreamHub:
    return build_live_price_stream_hub()
