"""
app/connectors/base.py

Shared HTTP mechanics for backend connectors.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any

import requests

from app.config import BackendAPISettings
from competitive.errors import BackendRequestError

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}


def extract_error_detail(response: requests.Response) -> str | None:
    """
    Pull a readable error message out of a JSON error body.

    Looks at ``detail.message``, then ``detail``, then ``message``.
    """

    try:
        body = response.json()
    except ValueError:
        text = (response.text or "").strip()
        return text[:500] or None
    if not isinstance(body, dict):
        return None

    detail = body.get("detail")
    if isinstance(detail, dict) and detail.get("message"):
        return str(detail["message"])
    if isinstance(detail, str) and detail:
        return detail
    if detail and not isinstance(detail, dict):
        return str(detail)
    message = body.get("message")
    if isinstance(message, str) and message:
        return message
    return None


class BaseConnector:
    """
    HTTP client base with JSON decoding and exponential backoff on GET.
    """

    source: str

    def __init__(
        self,
        *,
        source: str,
        http_settings: BackendAPISettings,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.source = source
        self._base_url = http_settings.base_url.rstrip("/")
        self._session = session or requests.Session()
        self._timeout_seconds = http_settings.timeout_seconds
        self._max_retries = http_settings.max_retries
        self._backoff_initial_seconds = http_settings.backoff_initial_seconds
        self._backoff_multiplier = http_settings.backoff_multiplier
        self._sleep = sleep

    def _url(self, path: str) -> str:
        return f"{self._base_url}/{path.lstrip('/')}"

    def _request_json(
        self,
        *,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json_body: Any = None,
        retry: bool = True,
    ) -> Any:
        """
        Execute an HTTP request and return parsed JSON.
        """

        response = self._request(method=method, path=path, params=params, json_body=json_body, retry=retry)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise BackendRequestError(
                f"{self.source}: response was not valid JSON.",
                status_code=response.status_code,
            ) from exc

    def _request(
        self,
        *,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json_body: Any = None,
        retry: bool = True,
    ) -> requests.Response:
        """
        Execute an HTTP request, retrying retryable failures when ``retry`` is set.
        """

        url = self._url(path)
        max_retries = self._max_retries if retry else 0
        last_error = BackendRequestError(f"{self.source}: request failed for {url}.")
        last_cause: Exception | None = None
        for attempt in range(max_retries + 1):
            try:
                response = self._session.request(
                    method=method,
                    url=url,
                    params=params,
                    json=json_body,
                    headers={"Accept": "application/json"},
                    timeout=self._timeout_seconds,
                )
            except requests.Timeout as exc:
                last_error = BackendRequestError(f"{self.source}: request timeout for {url}.", detail="timeout")
                last_cause = exc
            except requests.ConnectionError as exc:
                last_error = BackendRequestError(f"{self.source}: connection failed for {url}.", detail=str(exc))
                last_cause = exc
            except requests.RequestException as exc:
                logger.error(
                    "Connector request error source=%s url=%s error=%s",
                    self.source,
                    url,
                    type(exc).__name__,
                )
                raise BackendRequestError(f"{self.source}: request error for {url}.", detail=str(exc)) from exc
            else:
                if response.ok:
                    return response
                detail = extract_error_detail(response)
                last_error = BackendRequestError(
                    f"{self.source}: HTTP {response.status_code} for {url}.",
                    status_code=response.status_code,
                    detail=detail,
                )
                if response.status_code not in RETRYABLE_STATUS_CODES:
                    logger.error(
                        "Connector request failed source=%s status=%s url=%s detail=%s",
                        self.source,
                        response.status_code,
                        url,
                        detail,
                    )
                    raise last_error

            if attempt >= max_retries:
                break

            backoff_seconds = self._backoff_initial_seconds * (self._backoff_multiplier**attempt)
            logger.warning(
                "Connector request retry source=%s attempt=%s/%s wait_seconds=%.2f url=%s",
                self.source,
                attempt + 1,
                max_retries,
                backoff_seconds,
                url,
            )
            self._sleep(backoff_seconds)

        logger.error(
            "Connector request exhausted retries source=%s method=%s url=%s error=%s",
            self.source,
            method,
            url,
            last_error,
        )
        raise last_error from last_cause
