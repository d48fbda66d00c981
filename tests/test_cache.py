"""
tests/test_cache.py

Local cache store semantics over the in-memory and JSON file storages.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from competitive.cache import InMemoryStorage, JSONFileStorage, LocalCacheStore
from competitive.errors import CacheStorageError
from competitive.models import CompetitiveAnalysisResult


def _result(analysis_id: str, url: str = "https://alan.com") -> CompetitiveAnalysisResult:
    return CompetitiveAnalysisResult.degraded(analysis_id=analysis_id, url=url)


class BrokenStorage:
    def get_item(self, key: str) -> str | None:
        raise CacheStorageError("read refused")

    def set_item(self, key: str, value: str) -> None:
        raise CacheStorageError("write refused")

    def remove_item(self, key: str) -> None:
        raise OSError("disk gone")


# ---------------------------------------------------------------------------
# Ordering, uniqueness and cap
# ---------------------------------------------------------------------------


class TestLocalCacheStore:
    def test_empty_cache_lists_nothing(self, memory_cache: LocalCacheStore) -> None:
        assert memory_cache.list() == []

    def test_save_prepends(self, memory_cache: LocalCacheStore) -> None:
        memory_cache.save(_result("1"))
        memory_cache.save(_result("2"))

        assert [result.id for result in memory_cache.list()] == ["2", "1"]

    def test_eleventh_save_evicts_the_oldest(self, memory_cache: LocalCacheStore) -> None:
        for index in range(11):
            memory_cache.save(_result(str(index)))

        ids = [result.id for result in memory_cache.list()]
        assert len(ids) == 10
        assert ids[0] == "10"
        assert "0" not in ids

    def test_resaving_an_id_moves_it_to_front_without_duplicates(self, memory_cache: LocalCacheStore) -> None:
        for analysis_id in ("1", "2", "3"):
            memory_cache.save(_result(analysis_id))

        memory_cache.save(_result("1", url="https://updated.com"))

        cached = memory_cache.list()
        assert [result.id for result in cached] == ["1", "3", "2"]
        assert cached[0].user_site.url == "https://updated.com"

    def test_custom_cap(self) -> None:
        cache = LocalCacheStore(InMemoryStorage(), max_entries=2)
        for analysis_id in ("a", "b", "c"):
            cache.save(_result(analysis_id))

        assert [result.id for result in cache.list()] == ["c", "b"]

    def test_replace_all_dedupes_and_caps(self, memory_cache: LocalCacheStore) -> None:
        results = [_result(str(index % 12)) for index in range(15)]

        memory_cache.replace_all(results)

        ids = [result.id for result in memory_cache.list()]
        assert len(ids) == 10
        assert len(set(ids)) == 10

    def test_delete_is_idempotent_and_normalizes_ids(self, memory_cache: LocalCacheStore) -> None:
        memory_cache.save(_result("3"))
        memory_cache.save(_result("4"))

        memory_cache.delete("comp_3")
        memory_cache.delete("comp_3")
        memory_cache.delete("missing")

        assert [result.id for result in memory_cache.list()] == ["4"]

    def test_get_by_prefixed_id(self, memory_cache: LocalCacheStore) -> None:
        memory_cache.save(_result("9"))

        assert memory_cache.get("comp_9") is not None
        assert memory_cache.get("10") is None

    def test_clear(self, memory_cache: LocalCacheStore) -> None:
        memory_cache.save(_result("1"))
        memory_cache.clear()

        assert memory_cache.list() == []
        assert not memory_cache.has_history()

    def test_history_marker(self, memory_cache: LocalCacheStore) -> None:
        assert not memory_cache.has_history()

        memory_cache.mark_loaded()

        assert memory_cache.has_history()
        assert memory_cache.list() == []

    def test_entries_use_camel_case_storage_form(self) -> None:
        storage = InMemoryStorage()
        LocalCacheStore(storage).save(_result("comp_5"))

        stored = json.loads(storage.get_item("competitive_analyses") or "[]")
        assert stored[0]["id"] == "5"
        assert "userSite" in stored[0]
        assert "userRank" in stored[0]["summary"]


# ---------------------------------------------------------------------------
# Corruption and storage failures
# ---------------------------------------------------------------------------


class TestCacheResilience:
    def test_corrupt_json_reads_as_empty(self, caplog: pytest.LogCaptureFixture) -> None:
        cache = LocalCacheStore(InMemoryStorage({"competitive_analyses": "{not json"}))

        with caplog.at_level(logging.ERROR, logger="competitive.cache"):
            assert cache.list() == []

        assert "not valid JSON" in caplog.text

    def test_non_list_document_reads_as_empty(self) -> None:
        cache = LocalCacheStore(InMemoryStorage({"competitive_analyses": '{"id": "1"}'}))

        assert cache.list() == []

    def test_invalid_entries_are_skipped(self, caplog: pytest.LogCaptureFixture) -> None:
        cache = LocalCacheStore(InMemoryStorage({"competitive_analyses": '[{"id": "1"}, 5, {"no": "id"}]'}))

        with caplog.at_level(logging.WARNING, logger="competitive.cache"):
            cached = cache.list()

        assert [result.id for result in cached] == ["1"]
        assert "Skipping invalid cache entry" in caplog.text

    def test_non_finite_scores_read_as_zero(self) -> None:
        raw = (
            '[{"id": "1", "userSite": {"url": "https://alan.com",'
            ' "report": {"total_score": 1e999, "credibility_authority": {"score": -1e999}}}}]'
        )
        cache = LocalCacheStore(InMemoryStorage({"competitive_analyses": raw}))

        cached = cache.list()

        assert [result.id for result in cached] == ["1"]
        assert cached[0].user_site.report.total_score == 0
        assert cached[0].user_site.report.credibility_authority.score == 0

    def test_save_over_corrupt_content_recovers(self) -> None:
        storage = InMemoryStorage({"competitive_analyses": "garbage"})
        cache = LocalCacheStore(storage)

        cache.save(_result("1"))

        assert [result.id for result in cache.list()] == ["1"]

    def test_storage_failures_are_no_ops(self, caplog: pytest.LogCaptureFixture) -> None:
        cache = LocalCacheStore(BrokenStorage())

        with caplog.at_level(logging.ERROR, logger="competitive.cache"):
            assert cache.list() == []
            cache.save(_result("1"))
            cache.delete("1")
            cache.clear()

        assert "Cache write failed" in caplog.text
        assert "Cache clear failed" in caplog.text


# ---------------------------------------------------------------------------
# JSON file storage
# ---------------------------------------------------------------------------


class TestJSONFileStorage:
    def test_round_trips_values_through_disk(self, tmp_path: Path) -> None:
        storage = JSONFileStorage(tmp_path / "nested" / "cache.json")

        storage.set_item("a", "1")
        storage.set_item("b", "2")
        storage.remove_item("a")

        assert storage.get_item("a") is None
        assert storage.get_item("b") == "2"
        assert json.loads(storage.path.read_text(encoding="utf-8")) == {"b": "2"}

    def test_missing_file_reads_as_empty(self, tmp_path: Path) -> None:
        assert JSONFileStorage(tmp_path / "absent.json").get_item("a") is None

    def test_corrupt_file_raises_storage_error(self, tmp_path: Path) -> None:
        path = tmp_path / "cache.json"
        path.write_text("[1, 2", encoding="utf-8")

        with pytest.raises(CacheStorageError):
            JSONFileStorage(path).get_item("a")

    def test_cache_store_survives_a_new_process(self, tmp_path: Path) -> None:
        path = tmp_path / "cache.json"
        LocalCacheStore(JSONFileStorage(path)).save(_result("comp_77"))

        reopened = LocalCacheStore(JSONFileStorage(path))

        assert [result.id for result in reopened.list()] == ["77"]
        assert not list(tmp_path.glob(".cache.json.*"))
