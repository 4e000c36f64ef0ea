from __future__ import annotations

from datetime import datetime

from sqlalchemy import and_, delete, insert, select
from sqlalchemy.orm import Session

from momentracker.domain.market_time import minute_bucket, to_utc
from momentracker.domain.trending.schemas import TrendingSnapshot
from momentracker.infrastructure.db.errors import translate_storage_errors
from momentracker.infrastructure.db.mappers import trending_snapshot_to_domain, trending_snapshot_to_row
from momentracker.infrastructure.db.models.trending import TrendingSnapshotModel


class SqlAlchemyTrendingRepository:
    def __init__(self, *, session: Session) -> None:
        self._session = session

    def insert_snapshots(self, snapshots: list[TrendingSnapshot]) -> int:
        if not snapshots:
            return 0

        payload = [trending_snapshot_to_row(snapshot) for snapshot in snapshots]
        with translate_storage_errors():
            self._session.execute(insert(TrendingSnapshotModel), payload)
            self._session.flush()
        return len(payload)

    def list_snapshots(
        self,
        *,
        symbol: str,
        since: datetime,
        until: datetime | None = None,
        descending: bool = False,
    ) -> list[TrendingSnapshot]:
        conditions = [
            TrendingSnapshotModel.symbol == symbol,
            TrendingSnapshotModel.observed_at >= to_utc(since),
        ]
        if until is not None:
            conditions.append(TrendingSnapshotModel.observed_at <= to_utc(until))
        order = TrendingSnapshotModel.observed_at.desc() if descending else TrendingSnapshotModel.observed_at.asc()
        stmt = select(TrendingSnapshotModel).where(and_(*conditions)).order_by(order)
        with translate_storage_errors():
            rows = self._session.execute(stmt).scalars().all()
        return [trending_snapshot_to_domain(row) for row in rows]

    def list_existing_keys(self, keys: set[tuple[str, datetime]]) -> set[tuple[str, datetime]]:
        if not keys:
            return set()

        symbols = sorted({symbol for symbol, _ in keys})
        minutes = sorted({minute_bucket(point) for _, point in keys})
        stmt = select(TrendingSnapshotModel.symbol, TrendingSnapshotModel.observed_minute).where(
            and_(
                TrendingSnapshotModel.symbol.in_(symbols),
                TrendingSnapshotModel.observed_minute.in_(minutes),
            )
        )
        with translate_storage_errors():
            rows = self._session.execute(stmt).all()
        stored = {(row[0], minute_bucket(row[1])) for row in rows}
        return {(symbol, minute_bucket(point)) for symbol, point in keys}.intersection(stored)

    def list_recent_symbols(self, *, since: datetime) -> list[str]:
        stmt = (
            select(TrendingSnapshotModel.symbol)
            .where(TrendingSnapshotModel.observed_at >= to_utc(since))
            .distinct()
            .order_by(TrendingSnapshotModel.symbol.asc())
        )
        with translate_storage_errors():
            rows = self._session.execute(stmt).all()
        return [row[0] for row in rows if row and row[0]]

    def delete_older_than(self, *, cutoff: datetime) -> int:
        stmt = delete(TrendingSnapshotModel).where(TrendingSnapshotModel.observed_at < to_utc(cutoff))
        with translate_storage_errors():
            result = self._session.execute(stmt)
        return int(result.rowcount or 0)
