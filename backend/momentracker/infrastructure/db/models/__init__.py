from momentracker.infrastructure.db.models.quotes import DailyQuoteModel
from momentracker.infrastructure.db.models.trending import TrendingSnapshotModel

__all__ = [
    "DailyQuoteModel",
    "TrendingSnapshotModel",
]
