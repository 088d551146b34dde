# backend/app/services/storage.py
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..domain.errors import Conflict, StorageError

log = logging.getLogger(__name__)


@contextmanager
def storage_guard(what: str) -> Iterator[None]:
    """
    Re-raise driver/ORM failures as StorageError.

    A failed read must abort the caller; it is never treated as "no rows".
    """
    try:
        yield
    except SQLAlchemyError as e:
        log.error("storage failure during %s: %s", what, type(e).__name__)
        raise StorageError(f"{what} failed") from e


@contextmanager
def transaction(db: Session, what: str) -> Iterator[None]:
    """
    Commit on success, roll back on any failure (including cancellation).

    A uniqueness violation at commit is the losing side of a race and is
    reported as Conflict; any other store failure is StorageError.
    """
    try:
        yield
        with storage_guard(f"{what} commit"):
            try:
                db.commit()
            except IntegrityError as e:
                raise Conflict(f"{what} conflicts with a concurrent change") from e
    except BaseException:
        db.rollback()
        raise
