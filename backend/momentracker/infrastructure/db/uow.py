from __future__ import annotations

from typing import Callable

from sqlalchemy.orm import Session

from momentracker.domain.errors import StorageError
from momentracker.infrastructure.db.errors import translate_storage_errors
from momentracker.infrastructure.repositories.quote_repository import SqlAlchemyQuoteRepository
from momentracker.infrastructure.repositories.trending_repository import SqlAlchemyTrendingRepository


class SqlAlchemyUnitOfWork:
    def __init__(self, *, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory
        self.session: Session | None = None
        self.trending_repo: SqlAlchemyTrendingRepository | None = None
        self.quote_repo: SqlAlchemyQuoteRepository | None = None

    def __enter__(self) -> "SqlAlchemyUnitOfWork":
        self.session = self._session_factory()
        self.trending_repo = SqlAlchemyTrendingRepository(session=self.session)
        self.quote_repo = SqlAlchemyQuoteRepository(session=self.session)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self.session is None:
            return
        if exc_type is not None:
            self.session.rollback()
        self.session.close()
        self.session = None
        self.trending_repo = None
        self.quote_repo = None

    def commit(self) -> None:
        if self.session is None:
            raise RuntimeError("Unit of work has no active session")
        with translate_storage_errors():
            self.session.commit()

    def rollback(self) -> None:
        if self.session is None:
            raise RuntimeError("Unit of work has no active session")
        with translate_storage_errors(duplicate_error=StorageError):
            self.session.rollback()
