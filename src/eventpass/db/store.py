"""Key-value document store.

Every collection the services own (sessions, challenges, admins, activities)
is a single JSON document. Reads return a private copy; writes replace the
whole document. ``transaction`` gives a read-modify-write block that holds the
store lock for its duration, so writers inside one process never lose each
other's updates. Writers in separate processes are last-writer-wins.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from threading import RLock
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from eventpass.core.errors import InternalError
from eventpass.models import Document

logger = logging.getLogger(__name__)


class StoreError(InternalError):
    """Raised when the backing database cannot be read or written."""

    default_message = "Storage unavailable"


class DocumentStore:
    """Whole-document persistence over a SQLAlchemy session factory."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory
        self._lock = RLock()

    def get(self, key: str, default: Any = None) -> Any:
        """Return a copy of the document stored under ``key``."""
        with self._lock:
            value = self._load(key)
        return default if value is None else value

    def put(self, key: str, value: Any) -> None:
        """Replace the document stored under ``key``."""
        with self._lock:
            self._save(key, value)

    @contextmanager
    def transaction(
        self,
        key: str,
        default_factory: Callable[[], Any] = dict,
    ) -> Iterator[Any]:
        """Yield the document under ``key`` for in-place mutation.

        The mutated value is written back when the block exits normally and
        differs from what was loaded. An exception inside the block discards
        the changes.
        """
        with self._lock:
            current = self._load(key)
            value = default_factory() if current is None else current
            snapshot = copy.deepcopy(value)
            yield value
            if value != snapshot:
                self._save(key, value)

    def _load(self, key: str) -> Any:
        try:
            with self._session_factory() as db:
                row = db.get(Document, key)
                if row is None:
                    return None
                return copy.deepcopy(row.body)
        except SQLAlchemyError as err:
            logger.error("Failed to load document %s: %s", key, err)
            raise StoreError(f"Failed to load {key}") from err

    def _save(self, key: str, value: Any) -> None:
        try:
            with self._session_factory() as db:
                row = db.get(Document, key)
                if row is None:
                    db.add(Document(key=key, body=copy.deepcopy(value)))
                else:
                    row.body = copy.deepcopy(value)
                db.commit()
        except SQLAlchemyError as err:
            logger.error("Failed to save document %s: %s", key, err)
            raise StoreError(f"Failed to save {key}") from err
