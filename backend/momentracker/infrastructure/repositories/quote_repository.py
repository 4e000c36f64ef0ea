from __future__ import annotations

from datetime import date

from sqlalchemy import and_, delete, func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.orm import Session

from momentracker.domain.errors import StorageError
from momentracker.domain.quotes.schemas import DailyQuoteRecord
from momentracker.infrastructure.db.errors import translate_storage_errors
from momentracker.infrastructure.db.mappers import daily_quote_to_domain, daily_quote_to_row
from momentracker.infrastructure.db.models.quotes import DailyQuoteModel


class SqlAlchemyQuoteRepository:
    def __init__(self, *, session: Session) -> None:
        self._session = session

    def get_daily_quote(self, *, symbol: str, trade_date: date) -> DailyQuoteRecord | None:
        stmt = select(DailyQuoteModel).where(
            and_(
                DailyQuoteModel.symbol == symbol,
                DailyQuoteModel.trade_date == trade_date,
            )
        )
        with translate_storage_errors(duplicate_error=StorageError):
            row = self._session.execute(stmt).scalars().first()
        return daily_quote_to_domain(row) if row is not None else None

    def list_daily_quotes(self, *, symbol: str, start: date, end: date) -> list[DailyQuoteRecord]:
        stmt = (
            select(DailyQuoteModel)
            .where(
                and_(
                    DailyQuoteModel.symbol == symbol,
                    DailyQuoteModel.trade_date >= start,
                    DailyQuoteModel.trade_date <= end,
                )
            )
            .order_by(DailyQuoteModel.trade_date.asc())
        )
        with translate_storage_errors(duplicate_error=StorageError):
            rows = self._session.execute(stmt).scalars().all()
        return [daily_quote_to_domain(row) for row in rows]

    def get_previous_close(self, *, symbol: str, before: date) -> float | None:
        stmt = (
            select(DailyQuoteModel.close)
            .where(
                and_(
                    DailyQuoteModel.symbol == symbol,
                    DailyQuoteModel.trade_date < before,
                    DailyQuoteModel.close > 0,
                )
            )
            .order_by(DailyQuoteModel.trade_date.desc())
            .limit(1)
        )
        with translate_storage_errors(duplicate_error=StorageError):
            value = self._session.execute(stmt).scalar_one_or_none()
        return float(value) if value is not None else None

    def upsert_daily_quote(self, record: DailyQuoteRecord) -> DailyQuoteRecord:
        stmt = insert(DailyQuoteModel).values(daily_quote_to_row(record))
        excluded = stmt.excluded
        # Widening happens inside the statement so concurrent writers cannot lose an extreme.
        stmt = stmt.on_conflict_do_update(
            index_elements=["symbol", "trade_date"],
            set_={
                "high": func.greatest(DailyQuoteModel.high, excluded.high),
                "low": func.least(
                    DailyQuoteModel.low,
                    func.coalesce(func.nullif(excluded.low, 0), DailyQuoteModel.low),
                ),
                "close": excluded.close,
                "volume": excluded.volume,
                "previous_close": func.coalesce(
                    func.nullif(excluded.previous_close, 0),
                    DailyQuoteModel.previous_close,
                ),
                "percent_change": excluded.percent_change,
                "source": excluded.source,
                "resolved_at": excluded.resolved_at,
                "updated_at": func.now(),
            },
        ).returning(DailyQuoteModel)
        with translate_storage_errors(duplicate_error=StorageError):
            row = self._session.scalars(stmt, execution_options={"populate_existing": True}).one()
        return daily_quote_to_domain(row)

    def delete_before(self, *, trade_date: date) -> int:
        stmt = delete(DailyQuoteModel).where(DailyQuoteModel.trade_date < trade_date)
        with translate_storage_errors(duplicate_error=StorageError):
            result = self._session.execute(stmt)
        return int(result.rowcount or 0)
