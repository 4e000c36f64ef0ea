from __future__ import annotations

import asyncio

from momentracker.application.container import build_quote_service
from momentracker.core.celery_app import celery_app
from momentracker.core.config import settings


@celery_app.task(name="momentracker.tasks.quotes.prune_daily_quotes")
def prune_daily_quotes() -> dict[str, int]:
    service = build_quote_service()
    deleted = asyncio.run(service.prune_daily_quotes(keep_days=settings.quote_retention_days))
    return {"deleted": deleted, "keep_days": settings.quote_retention_days}
