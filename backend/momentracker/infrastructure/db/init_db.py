from __future__ import annotations

from momentracker.infrastructure.db.base import Base
from momentracker.infrastructure.db.session import engine

# Ensure models are registered with SQLAlchemy metadata.
from momentracker.infrastructure.db import models  # noqa: F401


def init_db() -> None:
    Base.metadata.create_all(bind=engine)
