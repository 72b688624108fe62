"""
storage.py — Key-value persistent storage for opaque text blobs.

Two backends share one small contract (get / set / delete):
  - SqlKeyValueStorage      rows in the ``kv_store`` table via SQLAlchemy
  - InMemoryKeyValueStorage a plain dict, used by tests and dev tooling

Backend failures are raised as StorageError so that callers can decide
whether to degrade (the assumptions store and contact service always do).
"""

import logging
from typing import Callable, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from jetcharge.models.orm_models import KeyValueRecord

logger = logging.getLogger("jetcharge-storage")


class StorageError(Exception):
    """Raised when the persistence backend cannot read or write a key."""


class KeyValueStorage:
    """Interface for key → text persistence."""

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError

    def contains(self, key: str) -> bool:
        return self.get(key) is not None


class InMemoryKeyValueStorage(KeyValueStorage):
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def snapshot(self) -> Dict[str, str]:
        return dict(self._data)


class SqlKeyValueStorage(KeyValueStorage):
    """
    SQLAlchemy-backed storage. Each call opens a short-lived session and
    commits immediately, so a write is durable once ``set`` returns.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def get(self, key: str) -> Optional[str]:
        try:
            with self._session_factory() as session:
                record = session.get(KeyValueRecord, key)
                return record.value if record is not None else None
        except SQLAlchemyError as e:
            raise StorageError(f"read failed for key '{key}': {e}") from e

    def set(self, key: str, value: str) -> None:
        try:
            with self._session_factory() as session:
                record = session.get(KeyValueRecord, key)
                if record is None:
                    session.add(KeyValueRecord(key=key, value=value))
                else:
                    record.value = value
                session.commit()
        except SQLAlchemyError as e:
            raise StorageError(f"write failed for key '{key}': {e}") from e
        logger.debug("Stored key", extra={"storage_key": key})

    def delete(self, key: str) -> None:
        try:
            with self._session_factory() as session:
                record = session.get(KeyValueRecord, key)
                if record is not None:
                    session.delete(record)
                    session.commit()
        except SQLAlchemyError as e:
            raise StorageError(f"delete failed for key '{key}': {e}") from e
