from momentracker.infrastructure.repositories.quote_repository import SqlAlchemyQuoteRepository
from momentracker.infrastructure.repositories.trending_repository import SqlAlchemyTrendingRepository

__all__ = [
    "SqlAlchemyQuoteRepository",
    "SqlAlchemyTrendingRepository",
]
