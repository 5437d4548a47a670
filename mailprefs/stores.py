"""Key-value preference stores.

A store buffers writes until :meth:`KeyValueStore.commit` flushes them. Reads
always see pending writes. Stores are addressed by namespace through a
:class:`StoreProvider`, which keeps callers independent of the backend.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from .prefs_db.operations import read_preference_rows, upsert_preference_rows

logger = logging.getLogger(__name__)


class StorageError(RuntimeError):
    """Raised when a preference store cannot be read."""


class StorageWriteError(StorageError):
    """Raised when pending preference writes cannot be committed."""


class KeyValueStore(ABC):
    """A flat, committable key-value preference bag."""

    namespace: str

    @abstractmethod
    def _committed(self) -> Dict[str, Any]:
        """Return the committed key/value pairs."""

    @abstractmethod
    def _flush(self, pending: Dict[str, Any]) -> None:
        """Durably persist ``pending``."""

    def __init__(self, namespace: str) -> None:
        self.namespace = namespace
        self._pending: Dict[str, Any] = {}

    def get(self, key: str, default: Any = None) -> Any:
        if key in self._pending:
            return self._pending[key]
        return self._committed().get(key, default)

    def contains(self, key: str) -> bool:
        return key in self._pending or key in self._committed()

    def set(self, key: str, value: Any) -> None:
        self._pending[key] = value

    @property
    def has_pending_writes(self) -> bool:
        return bool(self._pending)

    def commit(self) -> None:
        """Flush pending writes; a no-op when nothing is pending."""
        if not self._pending:
            return
        pending = dict(self._pending)
        self._flush(pending)
        self._pending.clear()
        logger.debug("Committed %d key(s) to %s", len(pending), self.namespace)

    def snapshot(self) -> Dict[str, Any]:
        """Return committed values overlaid with pending writes."""
        values = dict(self._committed())
        values.update(self._pending)
        return values


class MemoryKeyValueStore(KeyValueStore):
    """Dict-backed store that records how often it was committed."""

    def __init__(self, namespace: str, values: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(namespace)
        self._data: Dict[str, Any] = dict(values or {})
        self.commit_count = 0
        self.committed_writes = 0

    def _committed(self) -> Dict[str, Any]:
        return self._data

    def _flush(self, pending: Dict[str, Any]) -> None:
        self._data.update(pending)
        self.commit_count += 1
        self.committed_writes += len(pending)

    def committed_values(self) -> Dict[str, Any]:
        """Return a copy of the committed values, ignoring pending writes."""
        return dict(self._data)


class SqlKeyValueStore(KeyValueStore):
    """Store persisted as rows of the ``preferences`` table."""

    def __init__(self, engine: Engine, namespace: str) -> None:
        super().__init__(namespace)
        self.engine = engine
        self._cache: Optional[Dict[str, Any]] = None

    def _committed(self) -> Dict[str, Any]:
        if self._cache is None:
            try:
                with self.engine.connect() as conn:
                    self._cache = read_preference_rows(conn, self.namespace)
            except SQLAlchemyError as exc:
                raise StorageError(
                    f"Failed to read preferences namespace {self.namespace!r}"
                ) from exc
            except ValueError as exc:
                raise StorageError(
                    f"Undecodable value in preferences namespace {self.namespace!r}"
                ) from exc
        return self._cache

    def _flush(self, pending: Dict[str, Any]) -> None:
        try:
            with self.engine.begin() as conn:
                upsert_preference_rows(conn, self.namespace, pending)
        except SQLAlchemyError as exc:
            raise StorageWriteError(
                f"Failed to commit {len(pending)} key(s) to {self.namespace!r}"
            ) from exc
        if self._cache is not None:
            self._cache.update(pending)


class StoreProvider(ABC):
    """Opens stores by namespace."""

    @abstractmethod
    def open(self, namespace: str) -> KeyValueStore:
        """Return a store for ``namespace``."""


class MemoryStoreProvider(StoreProvider):
    """Keeps one in-memory store per namespace for the provider's lifetime."""

    def __init__(self, initial: Optional[Dict[str, Dict[str, Any]]] = None) -> None:
        self.stores: Dict[str, MemoryKeyValueStore] = {}
        for namespace, values in (initial or {}).items():
            self.stores[namespace] = MemoryKeyValueStore(namespace, values)

    def open(self, namespace: str) -> MemoryKeyValueStore:
        store = self.stores.get(namespace)
        if store is None:
            store = MemoryKeyValueStore(namespace)
            self.stores[namespace] = store
        return store

    def dump(self) -> Dict[str, Dict[str, Any]]:
        """Return the committed contents of every non-empty namespace."""
        dumped = {}
        for namespace, store in self.stores.items():
            values = store.committed_values()
            if values:
                dumped[namespace] = values
        return dumped


class SqlStoreProvider(StoreProvider):
    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def open(self, namespace: str) -> SqlKeyValueStore:
        return SqlKeyValueStore(self.engine, namespace)


__all__ = [
    "StorageError",
    "StorageWriteError",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "SqlKeyValueStore",
    "StoreProvider",
    "MemoryStoreProvider",
    "SqlStoreProvider",
]
