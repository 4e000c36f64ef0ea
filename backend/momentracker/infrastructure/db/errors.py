from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from momentracker.domain.errors import DuplicateSnapshotError, StorageError


@contextmanager
def translate_storage_errors(*, duplicate_error: type[StorageError] = DuplicateSnapshotError) -> Iterator[None]:
    try:
        yield
    except IntegrityError as exc:
        raise duplicate_error(str(exc.orig or exc)) from exc
    except SQLAlchemyError as exc:
        raise StorageError(str(exc)) from exc
