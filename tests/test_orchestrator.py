"""
tests/test_orchestrator.py

Resilience chain: submission, enrichment polling, write-through, read
fallbacks and in-flight de-duplication. No network; the backend is scripted.
"""

from __future__ import annotations

import logging
import threading
from typing import Any

import pytest

from competitive.cache import LocalCacheStore
from competitive.errors import AnalysisSubmissionError, BackendRequestError, ErrorKind
from competitive.models import IN_PROGRESS_SENTINEL, CompetitiveAnalysisResult
from competitive.orchestrator import (
    AnalysisState,
    CompetitiveAnalysisOrchestrator,
    ResultSource,
    translate_submission_error,
)
from competitive.settings import AnalysisSettings


class SleepRecorder:
    def __init__(self) -> None:
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture()
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture()
def build(memory_cache: LocalCacheStore, sleeper: SleepRecorder):
    def _build(backend: Any, **kwargs: Any) -> CompetitiveAnalysisOrchestrator:
        kwargs.setdefault("static_loader", lambda: [CompetitiveAnalysisResult(id="static-reference")])
        return CompetitiveAnalysisOrchestrator(
            backend,
            memory_cache,
            settings=kwargs.pop("settings", AnalysisSettings()),
            sleep=sleeper,
            **kwargs,
        )

    return _build


# ---------------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------------


class TestSubmission:
    def test_enriched_live_payload_resolves_without_polling(
        self, build, fake_backend_cls, make_session_payload, memory_cache, sleeper
    ) -> None:
        backend = fake_backend_cls(submit=make_session_payload())

        outcome = build(backend).submit("https://www.alan.com")

        assert outcome.state is AnalysisState.RESOLVED
        assert outcome.poll_attempts == 0
        assert outcome.result.id == "42"
        assert backend.submit_calls == [("https://www.alan.com", 0.5, 1)]
        assert backend.get_calls == []
        assert sleeper.calls == []
        assert [result.id for result in memory_cache.list()] == ["42"]

    def test_enrichment_arrives_on_second_poll(
        self, build, fake_backend_cls, make_session_payload, sleeper
    ) -> None:
        backend = fake_backend_cls(
            submit={"analysis_id": "comp_42", "status": "processing"},
            details=[BackendRequestError("busy", status_code=503), [make_session_payload()]],
        )

        outcome = build(backend).submit("https://www.alan.com")

        assert outcome.state is AnalysisState.RESOLVED
        assert outcome.poll_attempts == 2
        assert backend.get_calls == ["42", "42"]
        assert sleeper.calls == [1.5, 1.5]
        assert outcome.result.summary.user_rank == 2

    def test_exhausted_polling_degrades(
        self, build, fake_backend_cls, make_session_payload, memory_cache, sleeper
    ) -> None:
        not_ready = make_session_payload(enriched=False, status="processing")
        backend = fake_backend_cls(submit={"session_id": "comp_42"}, default_detail=not_ready)

        outcome = build(backend).submit("https://www.alan.com")

        assert outcome.state is AnalysisState.DEGRADED
        assert outcome.poll_attempts == 3
        assert sleeper.calls == [1.5, 1.5, 1.5]
        result = outcome.result
        assert result.id == "42"
        assert result.competitors == []
        assert result.user_site.domain == "alan.com"
        assert result.user_site.report.total_score == 0
        assert result.summary.user_rank == 1
        assert result.summary.total_analyzed == 1
        assert result.summary.strengths_vs_competitors == [IN_PROGRESS_SENTINEL]
        assert memory_cache.list()[0].id == "42"

    def test_empty_enrichment_lists_keep_polling(
        self, build, fake_backend_cls, make_session_payload, sleeper
    ) -> None:
        backend = fake_backend_cls(
            submit={"session_id": "comp_42", "mini_llm_results": [], "consolidated_competitors": []},
            details=[{"session_id": "comp_42", "mini_llm_results": []}, [make_session_payload()]],
        )

        outcome = build(backend).submit("https://www.alan.com")

        assert outcome.state is AnalysisState.RESOLVED
        assert outcome.poll_attempts == 2
        assert backend.get_calls == ["42", "42"]
        assert sleeper.calls == [1.5, 1.5]
        assert len(outcome.result.competitors) == 2

    def test_poll_settings_are_honoured(self, build, fake_backend_cls, sleeper) -> None:
        backend = fake_backend_cls(submit={"id": "5"}, default_detail=BackendRequestError("down"))
        settings = AnalysisSettings(poll_attempts=1, poll_interval_seconds=0.25)

        outcome = build(backend, settings=settings).submit("alan.com")

        assert outcome.state is AnalysisState.DEGRADED
        assert sleeper.calls == [0.25]

    def test_payload_without_id_or_enrichment_is_mapped_as_is(self, build, fake_backend_cls) -> None:
        backend = fake_backend_cls(
            submit={
                "user_site": {"url": "https://alan.com", "report": {"score": 70}},
                "competitors": [{"url": "https://b.com", "report": {"score": 90}}],
                "summary": {"userRank": 2, "totalAnalyzed": 2},
            }
        )

        outcome = build(backend).submit("https://alan.com")

        assert outcome.state is AnalysisState.RESOLVED
        assert backend.get_calls == []
        assert outcome.result.summary.user_rank == 2

    def test_blank_url_is_rejected_before_any_request(self, build, fake_backend_cls) -> None:
        backend = fake_backend_cls()

        with pytest.raises(AnalysisSubmissionError) as exc_info:
            build(backend).submit("   ")

        assert exc_info.value.kind is ErrorKind.USER_INPUT
        assert backend.submit_calls == []

    def test_backend_rejection_is_translated_and_not_cached(
        self, build, fake_backend_cls, memory_cache
    ) -> None:
        backend = fake_backend_cls(submit=BackendRequestError("HTTP 422", status_code=422, detail="bad"))

        with pytest.raises(AnalysisSubmissionError) as exc_info:
            build(backend).run_competitive_analysis("https://alan.com")

        assert "Unable to analyze https://alan.com" in exc_info.value.message
        assert exc_info.value.kind is ErrorKind.USER_INPUT
        assert memory_cache.list() == []


class TestInFlightDeduplication:
    def test_concurrent_submissions_share_one_request(
        self, build, memory_cache, make_session_payload
    ) -> None:
        entered = threading.Event()
        release = threading.Event()
        joined = threading.Event()

        class BlockingBackend:
            def __init__(self) -> None:
                self.submit_calls = 0

            def submit_analysis(self, url: str, *, min_score: float, min_mentions: int) -> Any:
                self.submit_calls += 1
                entered.set()
                release.wait(timeout=5)
                return make_session_payload()

            def list_analyses(self) -> Any:
                return []

            def get_analysis(self, analysis_id: str) -> Any:
                return None

        class JoinListener(logging.Handler):
            def emit(self, record: logging.LogRecord) -> None:
                if "analysis_submission_joined" in record.getMessage():
                    joined.set()

        orchestrator_logger = logging.getLogger("competitive.orchestrator")
        listener = JoinListener()
        previous_level = orchestrator_logger.level
        orchestrator_logger.addHandler(listener)
        orchestrator_logger.setLevel(logging.INFO)

        backend = BlockingBackend()
        orchestrator = build(backend)
        outcomes: list[Any] = []

        def _submit(url: str) -> None:
            outcomes.append(orchestrator.submit(url))

        try:
            first = threading.Thread(target=_submit, args=("https://alan.com",))
            second = threading.Thread(target=_submit, args=("HTTPS://alan.com/",))
            first.start()
            assert entered.wait(timeout=5)
            second.start()
            assert joined.wait(timeout=5)
            release.set()
            first.join(timeout=5)
            second.join(timeout=5)
        finally:
            release.set()
            orchestrator_logger.removeHandler(listener)
            orchestrator_logger.setLevel(previous_level)

        assert backend.submit_calls == 1
        assert len(outcomes) == 2
        assert outcomes[0] is outcomes[1]
        assert len(memory_cache.list()) == 1


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


class TestListing:
    def test_live_listing_replaces_the_cache(
        self, build, fake_backend_cls, make_session_payload, memory_cache
    ) -> None:
        memory_cache.save(CompetitiveAnalysisResult.degraded(analysis_id="old", url="https://old.com"))
        backend = fake_backend_cls(listing={"data": [make_session_payload(), make_session_payload(session_id="7")]})

        listing = build(backend).list_competitive_analyses()

        assert listing.source is ResultSource.LIVE
        assert [result.id for result in listing.analyses] == ["42", "7"]
        assert [result.id for result in memory_cache.list()] == ["42", "7"]

    def test_transport_error_falls_back_to_cache(self, build, fake_backend_cls, memory_cache) -> None:
        memory_cache.save(CompetitiveAnalysisResult.degraded(analysis_id="1", url="https://alan.com"))
        backend = fake_backend_cls(listing=BackendRequestError("down", status_code=503))

        listing = build(backend).list_competitive_analyses()

        assert listing.source is ResultSource.CACHE
        assert [result.id for result in listing.analyses] == ["1"]

    def test_unrecognized_shape_falls_back_to_cache(self, build, fake_backend_cls, memory_cache) -> None:
        memory_cache.save(CompetitiveAnalysisResult.degraded(analysis_id="1", url="https://alan.com"))
        backend = fake_backend_cls(listing={"unexpected": True})

        listing = build(backend).list_competitive_analyses()

        assert listing.source is ResultSource.CACHE
        assert len(memory_cache.list()) == 1

    def test_static_dataset_only_on_the_first_empty_load(self, build, fake_backend_cls) -> None:
        backend = fake_backend_cls(listing=BackendRequestError("down"))
        orchestrator = build(backend)

        first = orchestrator.list_competitive_analyses()
        second = orchestrator.list_competitive_analyses()

        assert first.source is ResultSource.STATIC
        assert [result.id for result in first.analyses] == ["static-reference"]
        assert second.source is ResultSource.CACHE
        assert second.analyses == []

    def test_static_fallback_can_be_disabled(self, build, fake_backend_cls) -> None:
        backend = fake_backend_cls(listing=BackendRequestError("down"))
        settings = AnalysisSettings(static_fallback_enabled=False)

        listing = build(backend, settings=settings).list_competitive_analyses()

        assert listing.source is ResultSource.CACHE
        assert listing.analyses == []

    def test_get_competitive_analyses_returns_the_list(self, build, fake_backend_cls, make_session_payload) -> None:
        backend = fake_backend_cls(listing=[make_session_payload()])

        analyses = build(backend).get_competitive_analyses()

        assert [result.id for result in analyses] == ["42"]


class TestDetail:
    def test_fetch_by_prefixed_id_writes_through(
        self, build, fake_backend_cls, make_session_payload, memory_cache
    ) -> None:
        backend = fake_backend_cls(details=[[make_session_payload()]])

        result = build(backend).get_competitive_analysis_by_id("comp_42")

        assert result is not None
        assert result.id == "42"
        assert backend.get_calls == ["42"]
        assert memory_cache.list()[0].id == "42"

    def test_numeric_created_at_keeps_the_session(
        self, build, fake_backend_cls, make_session_payload, memory_cache
    ) -> None:
        payload = make_session_payload()
        payload["created_at"] = 1714557600
        backend = fake_backend_cls(details=[payload])

        result = build(backend).get_competitive_analysis_by_id("comp_42")

        assert result is not None
        assert result.id == "42"
        assert len(result.competitors) == 2
        assert result.timestamp == "2024-05-01T10:00:00+00:00"
        assert [cached.id for cached in memory_cache.list()] == ["42"]

    def test_payload_without_id_takes_requested_id(self, build, fake_backend_cls) -> None:
        backend = fake_backend_cls(details=[{"url": "https://alan.com", "competitors": []}])

        result = build(backend).get_competitive_analysis_by_id("comp_8")

        assert result is not None
        assert result.id == "8"

    def test_transport_error_falls_back_to_cached_entry(self, build, fake_backend_cls, memory_cache) -> None:
        memory_cache.save(CompetitiveAnalysisResult.degraded(analysis_id="comp_5", url="https://alan.com"))
        backend = fake_backend_cls(details=[BackendRequestError("down"), BackendRequestError("down")])
        orchestrator = build(backend)

        assert orchestrator.get_competitive_analysis_by_id("comp_5").id == "5"
        assert orchestrator.get_competitive_analysis_by_id("6") is None

    def test_empty_payload_falls_back_to_cache(self, build, fake_backend_cls) -> None:
        backend = fake_backend_cls(details=[[]])

        assert build(backend).get_competitive_analysis_by_id("5") is None

    def test_delete_is_cache_only_and_idempotent(self, build, fake_backend_cls, memory_cache) -> None:
        memory_cache.save(CompetitiveAnalysisResult.degraded(analysis_id="5", url="https://alan.com"))
        backend = fake_backend_cls()
        orchestrator = build(backend)

        orchestrator.delete_competitive_analysis("comp_5")
        orchestrator.delete_competitive_analysis("comp_5")

        assert memory_cache.list() == []
        assert backend.get_calls == []


# ---------------------------------------------------------------------------
# Error translation
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("error", "fragment", "kind"),
    [
        (BackendRequestError("HTTP 500", status_code=500, detail="Page crashed!"), "incompatible", ErrorKind.USER_INPUT),
        (BackendRequestError("request timeout", detail="timeout"), "too long", ErrorKind.TRANSPORT),
        (BackendRequestError("HTTP 500", status_code=500, detail="net::ERR_BLOCKED_BY_CLIENT"), "anti-bot", ErrorKind.USER_INPUT),
        (BackendRequestError("HTTP 500", status_code=500, detail="net::ERR_NAME_NOT_RESOLVED"), "does not exist", ErrorKind.USER_INPUT),
        (BackendRequestError("HTTP 422", status_code=422), "cannot be processed", ErrorKind.USER_INPUT),
        (BackendRequestError("HTTP 402", status_code=402), "usage limit", ErrorKind.USER_INPUT),
        (BackendRequestError("HTTP 429", status_code=429), "usage limit", ErrorKind.USER_INPUT),
    ],
)
def test_known_submission_failures_get_fixed_messages(
    error: BackendRequestError, fragment: str, kind: ErrorKind
) -> None:
    translated = translate_submission_error(error, "https://alan.com")

    assert fragment in translated.message
    assert translated.kind is kind
    assert translated.status_code == error.status_code


def test_other_failures_surface_backend_detail_or_status() -> None:
    with_detail = translate_submission_error(
        BackendRequestError("HTTP 500", status_code=500, detail="Analysis engine unavailable"), "alan.com"
    )
    without_detail = translate_submission_error(BackendRequestError("HTTP 500", status_code=500), "alan.com")

    assert with_detail.message == "Analysis engine unavailable"
    assert with_detail.kind is ErrorKind.TRANSPORT
    assert without_detail.message == "HTTP error: 500"
