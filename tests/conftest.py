"""
Shared fixtures: a scripted analysis backend and an in-memory cache.
"""

from __future__ import annotations

from typing import Any

import pytest

from competitive.cache import InMemoryStorage, LocalCacheStore


class FakeBackend:
    """
    Scripted stand-in for the competitors API.

    ``details`` is consumed one item per ``get_analysis`` call; exceptions in
    any scripted slot are raised instead of returned.
    """

    def __init__(
        self,
        *,
        submit: Any = None,
        listing: Any = None,
        details: list[Any] | None = None,
        default_detail: Any = None,
    ) -> None:
        self.submit_response = submit
        self.listing_response = listing
        self.details = list(details or [])
        self.default_detail = default_detail
        self.submit_calls: list[tuple[str, float, int]] = []
        self.get_calls: list[str] = []
        self.list_calls = 0

    @staticmethod
    def _resolve(value: Any) -> Any:
        if isinstance(value, Exception):
            raise value
        return value

    def submit_analysis(self, url: str, *, min_score: float, min_mentions: int) -> Any:
        self.submit_calls.append((url, min_score, min_mentions))
        return self._resolve(self.submit_response)

    def list_analyses(self) -> Any:
        self.list_calls += 1
        return self._resolve(self.listing_response)

    def get_analysis(self, analysis_id: str) -> Any:
        self.get_calls.append(analysis_id)
        item = self.details.pop(0) if self.details else self.default_detail
        return self._resolve(item)


@pytest.fixture()
def fake_backend_cls() -> type[FakeBackend]:
    return FakeBackend


@pytest.fixture()
def memory_cache() -> LocalCacheStore:
    return LocalCacheStore(InMemoryStorage())


def session_payload(
    *,
    session_id: str = "comp_42",
    url: str = "https://www.alan.com",
    enriched: bool = True,
    status: str | None = "completed",
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "session_id": session_id,
        "url": url,
        "created_at": "2024-05-01T10:00:00+00:00",
        "status": status,
        "competitors": [
            {"name": "Leader", "url": "https://leader.com", "average_score": 0.8, "mentions": 4},
            {"name": "Small", "url": "https://www.small.com", "average_score": 0.6, "mentions": 1},
        ],
        "stats": {"models_used": ["gpt-4o"]},
    }
    if enriched:
        payload["mini_llm_results"] = [
            {
                "competitor_url": "https://leader.com",
                "competitor_name": "Leader",
                "llm_analysis": {"opportunites_differenciation": ["Publish pricing comparisons"]},
            }
        ]
    return payload


@pytest.fixture()
def make_session_payload():
    return session_payload
