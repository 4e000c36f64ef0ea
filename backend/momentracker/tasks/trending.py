from __future__ import annotations

import asyncio

from momentracker.application.container import build_trending_service
from momentracker.core.celery_app import celery_app
from momentracker.core.config import settings


@celery_app.task(name="momentracker.tasks.trending.collect_trending_snapshots")
def collect_trending_snapshots() -> dict[str, int]:
    service = build_trending_service()
    inserted = asyncio.run(service.collect_trending())
    return {"inserted": inserted}


@celery_app.task(name="momentracker.tasks.trending.prune_trending_snapshots")
def prune_trending_snapshots() -> dict[str, int]:
    service = build_trending_service()
    deleted = asyncio.run(
        service.prune_snapshots(retention_days=settings.trending_snapshot_retention_days)
    )
    return {"deleted": deleted, "retention_days": settings.trending_snapshot_retention_days}
