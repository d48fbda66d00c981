"""
app/connectors/competitors_api.py

Connector for the competitors analysis backend.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any

import requests

from app.config import BackendAPISettings
from app.connectors.base import BaseConnector
from competitive.identifiers import normalize_analysis_id

ANALYZE_PATH = "/api/v1/competitors/analyze"
ANALYSES_PATH = "/api/v3/competitors/"


class CompetitorsAPIConnector(BaseConnector):
    """
    Submits analyses and reads sessions. Cookies ride on the shared session.
    """

    def __init__(
        self,
        *,
        http_settings: BackendAPISettings,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        super().__init__(
            source="competitors_api",
            http_settings=http_settings,
            session=session,
            sleep=sleep,
        )

    def submit_analysis(self, url: str, *, min_score: float, min_mentions: int) -> Any:
        # POST is sent once, never retried
        return self._request_json(
            method="POST",
            path=ANALYZE_PATH,
            json_body={"url": url, "min_score": min_score, "min_mentions": min_mentions},
            retry=False,
        )

    def list_analyses(self) -> Any:
        return self._request_json(method="GET", path=ANALYSES_PATH)

    def get_analysis(self, analysis_id: str) -> Any:
        return self._request_json(method="GET", path=f"{ANALYSES_PATH}{normalize_analysis_id(analysis_id)}")
