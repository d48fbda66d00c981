"""
Database-backed key/value storage for the local analysis cache.
"""

from __future__ import annotations

from collections.abc import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from competitive.errors import CacheStorageError
from db.models.client_storage_entry import ClientStorageEntry


class SQLAlchemyClientStorage:
    """
    Stores each key as one ``client_storage_entries`` row.

    Every call runs in its own short session and transaction; failures are
    rolled back and re-raised as ``CacheStorageError``.
    """

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def get_item(self, key: str) -> str | None:
        session = self._session_factory()
        try:
            entry = session.get(ClientStorageEntry, key)
            return entry.value if entry is not None else None
        except SQLAlchemyError as exc:
            raise CacheStorageError(f"Cannot read storage key {key!r}: {exc}") from exc
        finally:
            session.close()

    def set_item(self, key: str, value: str) -> None:
        session = self._session_factory()
        try:
            entry = session.get(ClientStorageEntry, key)
            if entry is None:
                session.add(ClientStorageEntry(key=key, value=value))
            else:
                entry.value = value
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise CacheStorageError(f"Cannot write storage key {key!r}: {exc}") from exc
        finally:
            session.close()

    def remove_item(self, key: str) -> None:
        session = self._session_factory()
        try:
            entry = session.get(ClientStorageEntry, key)
            if entry is not None:
                session.delete(entry)
                session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise CacheStorageError(f"Cannot remove storage key {key!r}: {exc}") from exc
        finally:
            session.close()
