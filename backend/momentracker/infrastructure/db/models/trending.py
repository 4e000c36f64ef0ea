from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Float, Index, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from momentracker.infrastructure.db.base import Base


class TrendingSnapshotModel(Base):
    __tablename__ = "stock_trending_snapshots"

    id: Mapped[int] = mapped_column(primary_key=True)
    symbol: Mapped[str] = mapped_column(String(10), index=True, nullable=False)
    rank: Mapped[int] = mapped_column(Integer, nullable=False)
    trending_score: Mapped[float] = mapped_column(Float, nullable=False)
    message_volume: Mapped[int | None] = mapped_column(Integer, nullable=True)
    bullish_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    bearish_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    watchlist_count: Mapped[int | None] = mapped_column(Integer, nullable=True)

    observed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True, nullable=False)
    observed_minute: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("symbol", "observed_minute", name="uq_stock_trending_snapshots_symbol_minute"),
        Index("ix_stock_trending_snapshots_lookup", "symbol", "observed_at"),
    )
