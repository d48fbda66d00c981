"""
competitive/orchestrator.py

Resilience chain for competitive analyses: live fetch, enrichment polling,
local cache fallback and the bundled static fallback.

Submission is the only flow that raises to the caller. Every read flow
degrades to cached (or static) data and logs why.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Mapping
from concurrent.futures import Future
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

from competitive.cache import AnalysisCache
from competitive.domains import extract_domain, normalize_target_url
from competitive.errors import AnalysisSubmissionError, BackendRequestError, ErrorKind
from competitive.identifiers import normalize_analysis_id
from competitive.logging_utils import log_event
from competitive.mapper import extract_analysis_id, has_enrichment, map_listing, map_to_result
from competitive.models import CompetitiveAnalysisResult
from competitive.settings import AnalysisSettings
from competitive.static_data import load_static_analyses

logger = logging.getLogger(__name__)

QUOTA_STATUS_CODES = {402, 403, 429}


class AnalysisState(str, Enum):
    SUBMITTED = "submitted"
    LIVE_FETCH = "live_fetch"
    ENRICHING = "enriching"
    POLL_RETRY = "poll_retry"
    RESOLVED = "resolved"
    DEGRADED = "degraded"


class ResultSource(str, Enum):
    LIVE = "live"
    CACHE = "cache"
    STATIC = "static"


@dataclass(frozen=True)
class SubmissionOutcome:
    """
    Terminal state of one submission with the result handed to the caller.
    """

    state: AnalysisState
    result: CompetitiveAnalysisResult
    poll_attempts: int = 0


@dataclass(frozen=True)
class AnalysisListing:
    source: ResultSource
    analyses: list[CompetitiveAnalysisResult] = field(default_factory=list)


class CompetitorsBackend(Protocol):
    """
    Transport to the analysis backend. Implementations raise
    ``BackendRequestError`` on transport failure or non-2xx status.
    """

    def submit_analysis(self, url: str, *, min_score: float, min_mentions: int) -> Any: ...

    def list_analyses(self) -> Any: ...

    def get_analysis(self, analysis_id: str) -> Any: ...


def translate_submission_error(exc: BackendRequestError, url: str) -> AnalysisSubmissionError:
    """Turn a backend failure on submission into a message fit for end users.

    Known crawler failures (crashed page, timeout, anti-bot block, unknown
    host), unprocessable content and quota refusals get fixed messages.
    Anything else surfaces the backend's own detail, or the HTTP status.
    """
    text = " ".join(part for part in (exc.detail, exc.message) if part)
    lowered = text.lower()
    site = url or "the requested site"

    if "crashed" in lowered:
        return AnalysisSubmissionError(
            f"The site {site} is incompatible with our analyzer. Try another site or contact support.",
            status_code=exc.status_code,
        )
    if "timeout" in lowered or "timed out" in lowered:
        return AnalysisSubmissionError(
            f"The site {site} takes too long to respond. Try again later.",
            kind=ErrorKind.TRANSPORT,
            status_code=exc.status_code,
        )
    if "err_blocked_by_client" in lowered or "blocked" in lowered:
        return AnalysisSubmissionError(
            f"The site {site} blocks our analyzer. It probably uses anti-bot protection.",
            status_code=exc.status_code,
        )
    if "err_name_not_resolved" in lowered or "enotfound" in lowered:
        return AnalysisSubmissionError(
            f"The site {site} is not reachable or does not exist.",
            status_code=exc.status_code,
        )
    if exc.status_code == 422 or "unprocessable entity" in lowered:
        return AnalysisSubmissionError(
            f"Unable to analyze {site}. The site content cannot be processed.",
            status_code=exc.status_code,
        )
    if exc.status_code in QUOTA_STATUS_CODES or "quota" in lowered:
        return AnalysisSubmissionError(
            "You have reached your usage limit. Upgrade to a higher plan.",
            status_code=exc.status_code,
        )

    if exc.detail:
        message = exc.detail
    elif exc.status_code is not None:
        message = f"HTTP error: {exc.status_code}"
    else:
        message = exc.message
    return AnalysisSubmissionError(message, kind=ErrorKind.TRANSPORT, status_code=exc.status_code)


def _first_item(payload: Any) -> Any:
    if isinstance(payload, list):
        return payload[0] if payload else None
    return payload


class CompetitiveAnalysisOrchestrator:
    """Runs submissions and reads against the backend with local fallbacks.

    Concurrent submissions for the same target URL share one execution: late
    callers block on the first caller's future and receive the same result
    or the same exception.

    Args:
        client: Backend transport.
        cache: Local cache receiving every resolved or degraded result.
        settings: Submission and polling parameters.
        sleep: Injected for tests; called before each enrichment poll.
        static_loader: Source of the bundled first-run dataset.
    """

    def __init__(
        self,
        client: CompetitorsBackend,
        cache: AnalysisCache,
        *,
        settings: AnalysisSettings | None = None,
        sleep: Callable[[float], None] = time.sleep,
        static_loader: Callable[[], list[CompetitiveAnalysisResult]] = load_static_analyses,
    ) -> None:
        self._client = client
        self._cache = cache
        self._settings = settings or AnalysisSettings()
        self._sleep = sleep
        self._static_loader = static_loader
        self._in_flight: dict[str, Future[SubmissionOutcome]] = {}
        self._lock = threading.Lock()

    @property
    def cache(self) -> AnalysisCache:
        return self._cache

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def run_competitive_analysis(self, url: str) -> CompetitiveAnalysisResult:
        return self.submit(url).result

    def submit(self, url: str) -> SubmissionOutcome:
        """
        Submit ``url`` for analysis, joining an identical in-flight submission.

        Raises:
            AnalysisSubmissionError: When the URL is empty or the backend
                rejects the submission.
        """

        target = (url or "").strip() if isinstance(url, str) else ""
        if not target:
            raise AnalysisSubmissionError("A site URL is required to run a competitive analysis.")

        key = normalize_target_url(target)
        with self._lock:
            future = self._in_flight.get(key)
            owner = future is None
            if owner:
                future = Future()
                self._in_flight[key] = future

        if not owner:
            log_event(logger, logging.INFO, "analysis_submission_joined", target=key)
            return future.result()

        try:
            outcome = self._execute(target)
        except Exception as exc:
            future.set_exception(exc)
            raise
        else:
            future.set_result(outcome)
            return outcome
        finally:
            with self._lock:
                self._in_flight.pop(key, None)

    def _transition(self, state: AnalysisState, url: str, **fields: Any) -> None:
        log_event(logger, logging.INFO, "analysis_state", state=state, target=extract_domain(url), **fields)

    def _execute(self, url: str) -> SubmissionOutcome:
        self._transition(AnalysisState.SUBMITTED, url)
        self._transition(AnalysisState.LIVE_FETCH, url)
        try:
            payload = self._client.submit_analysis(
                url,
                min_score=self._settings.min_score,
                min_mentions=self._settings.min_mentions,
            )
        except BackendRequestError as exc:
            error = translate_submission_error(exc, url)
            log_event(
                logger,
                logging.WARNING,
                "analysis_submission_failed",
                target=extract_domain(url),
                kind=error.kind,
                status_code=exc.status_code,
            )
            raise error from exc

        live = _first_item(payload)
        if has_enrichment(live):
            return self._finish(AnalysisState.RESOLVED, self._map(live, url), url)

        analysis_id = extract_analysis_id(live)
        if analysis_id is None:
            return self._finish(AnalysisState.RESOLVED, self._map(live, url), url)

        return self._poll_for_enrichment(normalize_analysis_id(analysis_id), url)

    def _poll_for_enrichment(self, analysis_id: str, url: str) -> SubmissionOutcome:
        attempts = max(0, self._settings.poll_attempts)
        for attempt in range(1, attempts + 1):
            self._transition(AnalysisState.ENRICHING, url, analysis_id=analysis_id, attempt=attempt)
            self._sleep(self._settings.poll_interval_seconds)
            try:
                polled = _first_item(self._client.get_analysis(analysis_id))
            except BackendRequestError as exc:
                self._transition(
                    AnalysisState.POLL_RETRY,
                    url,
                    analysis_id=analysis_id,
                    attempt=attempt,
                    status_code=exc.status_code,
                )
                continue

            if has_enrichment(polled):
                result = self._map(polled, url)
                return self._finish(AnalysisState.RESOLVED, result, url, poll_attempts=attempt)

            self._transition(AnalysisState.POLL_RETRY, url, analysis_id=analysis_id, attempt=attempt)

        result = CompetitiveAnalysisResult.degraded(analysis_id=analysis_id, url=url)
        return self._finish(AnalysisState.DEGRADED, result, url, poll_attempts=attempts)

    def _map(self, payload: Any, url: str) -> CompetitiveAnalysisResult:
        return map_to_result(payload, url, default_user_score=self._settings.default_user_score)

    def _finish(
        self,
        state: AnalysisState,
        result: CompetitiveAnalysisResult,
        url: str,
        *,
        poll_attempts: int = 0,
    ) -> SubmissionOutcome:
        self._cache.save(result)
        self._transition(state, url, analysis_id=result.id, poll_attempts=poll_attempts)
        return SubmissionOutcome(state=state, result=result, poll_attempts=poll_attempts)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_competitive_analyses(self) -> AnalysisListing:
        """
        Live listing when available; otherwise cached analyses, or the static
        dataset on the very first load of an empty cache.
        """

        try:
            payload = self._client.list_analyses()
        except BackendRequestError as exc:
            log_event(logger, logging.WARNING, "analysis_listing_fallback", reason="transport", status_code=exc.status_code)
            return self._fallback_listing()

        results = map_listing(payload, default_user_score=self._settings.default_user_score)
        if results is None:
            log_event(logger, logging.WARNING, "analysis_listing_fallback", reason="unrecognized_shape")
            return self._fallback_listing()

        self._cache.replace_all(results)
        return AnalysisListing(source=ResultSource.LIVE, analyses=results)

    def get_competitive_analyses(self) -> list[CompetitiveAnalysisResult]:
        return self.list_competitive_analyses().analyses

    def _fallback_listing(self) -> AnalysisListing:
        cached = self._cache.list()
        if cached:
            return AnalysisListing(source=ResultSource.CACHE, analyses=cached)

        if self._settings.static_fallback_enabled and not self._cache.has_history():
            self._cache.mark_loaded()
            static = self._static_loader()
            log_event(logger, logging.WARNING, "analysis_listing_static", count=len(static))
            return AnalysisListing(source=ResultSource.STATIC, analyses=static)

        return AnalysisListing(source=ResultSource.CACHE, analyses=[])

    def get_competitive_analysis_by_id(self, analysis_id: str | int) -> CompetitiveAnalysisResult | None:
        normalized = normalize_analysis_id(analysis_id)
        if not normalized:
            return None

        try:
            payload = self._client.get_analysis(normalized)
        except BackendRequestError as exc:
            log_event(
                logger,
                logging.WARNING,
                "analysis_detail_fallback",
                analysis_id=normalized,
                reason="transport",
                status_code=exc.status_code,
            )
            return self._cached(normalized)

        item = _first_item(payload)
        if not isinstance(item, Mapping) or not item:
            log_event(logger, logging.WARNING, "analysis_detail_fallback", analysis_id=normalized, reason="empty_payload")
            return self._cached(normalized)

        result = map_to_result(item, default_user_score=self._settings.default_user_score)
        if extract_analysis_id(item) is None:
            result = result.model_copy(update={"id": normalized})
        self._cache.save(result)
        return result

    def _cached(self, analysis_id: str) -> CompetitiveAnalysisResult | None:
        for cached in self._cache.list():
            if cached.id == analysis_id:
                return cached
        return None

    def delete_competitive_analysis(self, analysis_id: str | int) -> None:
        """
        Remove an analysis from the local cache; unknown ids are ignored.
        """

        normalized = normalize_analysis_id(analysis_id)
        self._cache.delete(normalized)
        log_event(logger, logging.INFO, "analysis_deleted", analysis_id=normalized)
