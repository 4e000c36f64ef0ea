"""trending snapshots and daily quotes

Revision ID: 0001_trending_and_daily_quotes
Revises: None
Create Date: 2026-10-18 00:00:00.000000
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0001_trending_and_daily_quotes"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "stock_trending_snapshots",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("symbol", sa.String(length=10), nullable=False),
        sa.Column("rank", sa.Integer(), nullable=False),
        sa.Column("trending_score", sa.Float(), nullable=False),
        sa.Column("message_volume", sa.Integer(), nullable=True),
        sa.Column("bullish_count", sa.Integer(), nullable=True),
        sa.Column("bearish_count", sa.Integer(), nullable=True),
        sa.Column("watchlist_count", sa.Integer(), nullable=True),
        sa.Column("observed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("observed_minute", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("symbol", "observed_minute", name="uq_stock_trending_snapshots_symbol_minute"),
    )
    op.create_index("ix_stock_trending_snapshots_symbol", "stock_trending_snapshots", ["symbol"], unique=False)
    op.create_index(
        "ix_stock_trending_snapshots_observed_at",
        "stock_trending_snapshots",
        ["observed_at"],
        unique=False,
    )
    op.create_index(
        "ix_stock_trending_snapshots_lookup",
        "stock_trending_snapshots",
        ["symbol", "observed_at"],
        unique=False,
    )

    op.create_table(
        "stock_ohlcv",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("symbol", sa.String(length=10), nullable=False),
        sa.Column("trade_date", sa.Date(), nullable=False),
        sa.Column("open", sa.Float(), nullable=False),
        sa.Column("high", sa.Float(), nullable=False),
        sa.Column("low", sa.Float(), nullable=False),
        sa.Column("close", sa.Float(), nullable=False),
        sa.Column("volume", sa.Float(), nullable=False),
        sa.Column("previous_close", sa.Float(), nullable=False),
        sa.Column("percent_change", sa.Float(), nullable=False),
        sa.Column("source", sa.String(length=16), nullable=False),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("symbol", "trade_date", name="uq_stock_ohlcv_symbol_trade_date"),
    )
    op.create_index("ix_stock_ohlcv_symbol", "stock_ohlcv", ["symbol"], unique=False)
    op.create_index("ix_stock_ohlcv_trade_date", "stock_ohlcv", ["trade_date"], unique=False)
    op.create_index("ix_stock_ohlcv_lookup", "stock_ohlcv", ["symbol", "trade_date"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_stock_ohlcv_lookup", table_name="stock_ohlcv")
    op.drop_index("ix_stock_ohlcv_trade_date", table_name="stock_ohlcv")
    op.drop_index("ix_stock_ohlcv_symbol", table_name="stock_ohlcv")
    op.drop_table("stock_ohlcv")

    op.drop_index("ix_stock_trending_snapshots_lookup", table_name="stock_trending_snapshots")
    op.drop_index("ix_stock_trending_snapshots_observed_at", table_name="stock_trending_snapshots")
    op.drop_index("ix_stock_trending_snapshots_symbol", table_name="stock_trending_snapshots")
    op.drop_table("stock_trending_snapshots")
