"""
competitive/cache.py

Bounded, most-recent-first cache of competitive analysis results.

The cache is one JSON array stored under a single key of a pluggable
key/value storage. Storage and decoding failures are logged and turned into
no-ops so that a broken cache never breaks an analysis request.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from collections.abc import Sequence
from pathlib import Path
from typing import Any, Protocol

from pydantic import ValidationError

from competitive.errors import CacheStorageError
from competitive.identifiers import normalize_analysis_id
from competitive.models import CompetitiveAnalysisResult

logger = logging.getLogger(__name__)

DEFAULT_CACHE_KEY = "competitive_analyses"
DEFAULT_MAX_ENTRIES = 10


class KeyValueStorage(Protocol):
    """
    Minimal string key/value storage used by ``LocalCacheStore``.

    Implementations raise ``CacheStorageError`` (or ``OSError``) on failure.
    """

    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class AnalysisCache(Protocol):
    def list(self) -> list[CompetitiveAnalysisResult]: ...

    def save(self, result: CompetitiveAnalysisResult) -> None: ...

    def delete(self, analysis_id: str | int) -> None: ...

    def clear(self) -> None: ...

    def replace_all(self, results: Sequence[CompetitiveAnalysisResult]) -> None: ...

    def has_history(self) -> bool: ...

    def mark_loaded(self) -> None: ...


class InMemoryStorage:
    """
    Process-local storage; contents are lost on restart.
    """

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._items: dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get_item(self, key: str) -> str | None:
        with self._lock:
            return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            self._items[key] = value

    def remove_item(self, key: str) -> None:
        with self._lock:
            self._items.pop(key, None)


class JSONFileStorage:
    """
    Stores all keys in one JSON object file, replaced atomically on write.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _read_all(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            document = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise CacheStorageError(f"Cannot read cache file {self._path}: {exc}") from exc
        if not isinstance(document, dict):
            raise CacheStorageError(f"Cache file {self._path} does not hold a JSON object.")
        return {str(key): value for key, value in document.items() if isinstance(value, str)}

    def _write_all(self, items: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self._path.name}.", dir=self._path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(items, handle, ensure_ascii=False)
            os.replace(tmp_name, self._path)
        except OSError as exc:
            Path(tmp_name).unlink(missing_ok=True)
            raise CacheStorageError(f"Cannot write cache file {self._path}: {exc}") from exc

    def get_item(self, key: str) -> str | None:
        with self._lock:
            return self._read_all().get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            items = self._read_all()
            items[key] = value
            self._write_all(items)

    def remove_item(self, key: str) -> None:
        with self._lock:
            items = self._read_all()
            if key in items:
                del items[key]
                self._write_all(items)


class LocalCacheStore:
    """Most-recent-first list of analyses kept under one storage key.

    Entries are unique by normalized id and the list never holds more than
    ``max_entries`` items; saving an existing id moves it to the front.
    Concurrent writers are last-writer-wins.

    Args:
        storage: Backing key/value storage.
        key: Storage key holding the JSON array.
        max_entries: Cap applied on every write.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        *,
        key: str = DEFAULT_CACHE_KEY,
        max_entries: int = DEFAULT_MAX_ENTRIES,
    ) -> None:
        self._storage = storage
        self._key = key
        self._max_entries = max(1, max_entries)

    @property
    def max_entries(self) -> int:
        return self._max_entries

    def _read_raw(self) -> list[Any]:
        try:
            raw = self._storage.get_item(self._key)
        except (CacheStorageError, OSError) as exc:
            logger.error("Cache read failed key=%s error=%s", self._key, exc)
            return []
        if raw is None:
            return []
        try:
            document = json.loads(raw)
        except ValueError as exc:
            logger.error("Cache content is not valid JSON key=%s error=%s", self._key, exc)
            return []
        if not isinstance(document, list):
            logger.error("Cache content is not a list key=%s type=%s", self._key, type(document).__name__)
            return []
        return document

    def _write(self, results: Sequence[CompetitiveAnalysisResult]) -> None:
        unique: list[CompetitiveAnalysisResult] = []
        seen: set[str] = set()
        for result in results:
            if result.id in seen:
                continue
            seen.add(result.id)
            unique.append(result)
        payload = json.dumps([result.to_storage() for result in unique[: self._max_entries]], ensure_ascii=False)
        try:
            self._storage.set_item(self._key, payload)
        except (CacheStorageError, OSError) as exc:
            logger.error("Cache write failed key=%s error=%s", self._key, exc)

    def list(self) -> list[CompetitiveAnalysisResult]:
        """
        Return cached analyses, newest first. Invalid entries are skipped.
        """

        results: list[CompetitiveAnalysisResult] = []
        for index, entry in enumerate(self._read_raw()):
            try:
                results.append(CompetitiveAnalysisResult.model_validate(entry))
            except ValidationError as exc:
                logger.warning("Skipping invalid cache entry key=%s index=%s errors=%s", self._key, index, exc.error_count())
        return results

    def get(self, analysis_id: str | int) -> CompetitiveAnalysisResult | None:
        normalized = normalize_analysis_id(analysis_id)
        for result in self.list():
            if result.id == normalized:
                return result
        return None

    def save(self, result: CompetitiveAnalysisResult) -> None:
        remaining = [cached for cached in self.list() if cached.id != result.id]
        self._write([result, *remaining])

    def delete(self, analysis_id: str | int) -> None:
        normalized = normalize_analysis_id(analysis_id)
        current = self.list()
        remaining = [cached for cached in current if cached.id != normalized]
        if len(remaining) != len(current):
            self._write(remaining)

    def replace_all(self, results: Sequence[CompetitiveAnalysisResult]) -> None:
        self._write(list(results))

    def clear(self) -> None:
        try:
            self._storage.remove_item(self._key)
        except (CacheStorageError, OSError) as exc:
            logger.error("Cache clear failed key=%s error=%s", self._key, exc)

    def has_history(self) -> bool:
        """
        Whether anything, even an empty list, was ever written under the cache key.
        """

        try:
            return self._storage.get_item(self._key) is not None
        except (CacheStorageError, OSError) as exc:
            logger.error("Cache read failed key=%s error=%s", self._key, exc)
            return True

    def mark_loaded(self) -> None:
        if not self.has_history():
            self._write([])
