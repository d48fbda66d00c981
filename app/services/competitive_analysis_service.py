"""
app/services/competitive_analysis_service.py

Service wiring for competitive analysis submission and retrieval.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path

from app.config import (
    BackendAPISettings,
    CacheSettings,
    get_analysis_settings,
    get_backend_api_settings,
    get_cache_settings,
)
from app.connectors.competitors_api import CompetitorsAPIConnector
from competitive.cache import InMemoryStorage, JSONFileStorage, KeyValueStorage, LocalCacheStore
from competitive.models import CompetitiveAnalysisResult
from competitive.orchestrator import (
    AnalysisListing,
    CompetitiveAnalysisOrchestrator,
    CompetitorsBackend,
)
from competitive.settings import AnalysisSettings
from db.config import PROJECT_ROOT

logger = logging.getLogger(__name__)


def build_storage(settings: CacheSettings) -> KeyValueStorage:
    """
    Instantiate the key/value storage selected by ANALYSIS_CACHE_BACKEND.
    """

    if settings.backend == "memory":
        return InMemoryStorage()
    if settings.backend == "database":
        from db.repositories.client_storage_repository import SQLAlchemyClientStorage
        from db.session import SessionLocal

        return SQLAlchemyClientStorage(SessionLocal)

    path = Path(settings.file_path)
    if not path.is_absolute():
        path = PROJECT_ROOT / path
    return JSONFileStorage(path)


def build_cache(settings: CacheSettings) -> LocalCacheStore:
    return LocalCacheStore(
        build_storage(settings),
        key=settings.key,
        max_entries=settings.max_entries,
    )


class CompetitiveAnalysisService:
    """
    Application entry point for the analysis flows.
    """

    def __init__(
        self,
        *,
        orchestrator: CompetitiveAnalysisOrchestrator | None = None,
        client: CompetitorsBackend | None = None,
        cache: LocalCacheStore | None = None,
        cache_settings: CacheSettings | None = None,
        analysis_settings: AnalysisSettings | None = None,
        backend_settings: BackendAPISettings | None = None,
    ) -> None:
        self._cache_settings = cache_settings or get_cache_settings()
        if orchestrator is None:
            orchestrator = CompetitiveAnalysisOrchestrator(
                client or CompetitorsAPIConnector(http_settings=backend_settings or get_backend_api_settings()),
                cache or build_cache(self._cache_settings),
                settings=analysis_settings or get_analysis_settings(),
            )
        self._orchestrator = orchestrator
        logger.info("Competitive analysis service ready cache_backend=%s", self._cache_settings.backend)

    @property
    def cache_backend(self) -> str:
        return self._cache_settings.backend

    def run_analysis(self, url: str) -> CompetitiveAnalysisResult:
        return self._orchestrator.run_competitive_analysis(url)

    def list_analyses(self) -> AnalysisListing:
        return self._orchestrator.list_competitive_analyses()

    def get_analysis(self, analysis_id: str) -> CompetitiveAnalysisResult | None:
        return self._orchestrator.get_competitive_analysis_by_id(analysis_id)

    def delete_analysis(self, analysis_id: str) -> None:
        self._orchestrator.delete_competitive_analysis(analysis_id)


@lru_cache(maxsize=1)
def get_competitive_analysis_service() -> CompetitiveAnalysisService:
    """
    Build and cache the competitive analysis service.
    """

    return CompetitiveAnalysisService()
