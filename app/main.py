from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import Depends, FastAPI

from app.schemas.competitive_analysis import HealthResponse
from app.services.competitive_analysis_service import (
    CompetitiveAnalysisService,
    get_competitive_analysis_service,
)

_ALLOWED_CACHE_BACKENDS = {"file", "memory", "database"}


def _validate_env() -> None:
    """
    Validate environment variables at startup.

    Raises RuntimeError listing every invalid variable so the operator can
    fix all problems in one restart cycle.

    Rules:
    - COMPETITORS_API_BASE_URL, when set, must be an http(s) URL.
    - ANALYSIS_CACHE_BACKEND must be one of file, memory, database.
    - The database backend requires a database URL.
    """

    from db.config import load_env_files

    load_env_files()

    errors: list[str] = []

    # --- Backend URL ----------------------------------------------------
    base_url = os.getenv("COMPETITORS_API_BASE_URL", "").strip()
    if base_url and not base_url.lower().startswith(("http://", "https://")):
        errors.append(
            f"COMPETITORS_API_BASE_URL='{base_url}' is not an http(s) URL."
        )

    # --- Cache backend --------------------------------------------------
    backend = os.getenv("ANALYSIS_CACHE_BACKEND", "file").strip().lower() or "file"
    if backend not in _ALLOWED_CACHE_BACKENDS:
        errors.append(
            f"ANALYSIS_CACHE_BACKEND='{backend}' is not valid. "
            f"Allowed values: {sorted(_ALLOWED_CACHE_BACKENDS)}."
        )
    elif backend == "database":
        configured = any(
            os.getenv(name, "").strip()
            for name in (
                "ANALYSIS_CACHE_DATABASE_URL",
                "DATABASE_URL",
                "CLOUD_DATABASE_URL",
                "LOCAL_DATABASE_URL",
            )
        )
        if not configured:
            errors.append(
                "ANALYSIS_CACHE_BACKEND=database but no database URL is configured. "
                "Set ANALYSIS_CACHE_DATABASE_URL or DATABASE_URL."
            )

    if errors:
        raise RuntimeError(
            "Startup validation failed: missing or invalid environment variables:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )


def _configure_logging() -> None:
    """
    Configure root logging once for the API process.
    """

    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def _check_schema() -> None:
    """
    Ensure the client storage table exists before serving traffic.

    Does NOT auto-migrate.
    """
    from sqlalchemy import inspect as sa_inspect

    import db.models  # noqa: F401  registers all ORM models on Base.metadata
    from db.base import Base
    from db.session import get_engine

    inspector = sa_inspect(get_engine())
    actual: set[str] = set(inspector.get_table_names())
    expected: set[str] = set(Base.metadata.tables.keys())
    missing = expected - actual

    if missing:
        logging.getLogger(__name__).critical(
            "Schema mismatch: %d table(s) absent from the database: %s. "
            "Run 'alembic upgrade head' and restart.",
            len(missing),
            ", ".join(sorted(missing)),
        )
        raise RuntimeError(
            f"Schema mismatch: {len(missing)} table(s) missing from the database "
            f"({', '.join(sorted(missing))}). Run migrations and restart."
        )


@asynccontextmanager
async def _lifespan(application: FastAPI) -> AsyncIterator[None]:
    """Validate the database schema when the database cache backend is selected."""
    from app.config import get_cache_settings

    uses_database = get_cache_settings().backend == "database"
    if uses_database:
        _check_schema()
        logging.getLogger(__name__).info("Database schema validated")
    try:
        yield
    finally:
        if uses_database:
            from db.session import dispose_engine

            dispose_engine()


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.
    """

    _validate_env()
    _configure_logging()

    application = FastAPI(
        title="Competitive Analysis API",
        version="1.0.0",
        lifespan=_lifespan,
    )

    from app.api.routers import competitive_analysis_router

    application.include_router(competitive_analysis_router)

    @application.get("/health", response_model=HealthResponse)
    def healthcheck(
        service: CompetitiveAnalysisService = Depends(get_competitive_analysis_service),
    ) -> HealthResponse:
        return HealthResponse(status="ok", cache_backend=service.cache_backend)

    return application


app = create_app()
