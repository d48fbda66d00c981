"""
app/config.py

Application-level configuration helpers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from competitive.settings import AnalysisSettings
from db.config import load_env_files

_ALLOWED_CACHE_BACKENDS = {"file", "memory", "database"}


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading app settings.
    """

    load_env_files()


def _get_bool_env(name: str, default: bool) -> bool:
    """
    Read a boolean from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    """
    Read an integer from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    """
    Read a float from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return float(raw_value)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    """
    Read a string from environment variables with fallback.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


@dataclass(frozen=True)
class BackendAPISettings:
    """
    HTTP settings for the competitors analysis backend.
    """

    base_url: str = "http://localhost:8000"
    timeout_seconds: float = 30.0
    max_retries: int = 3
    backoff_initial_seconds: float = 0.5
    backoff_multiplier: float = 2.0


@dataclass(frozen=True)
class CacheSettings:
    """
    Local analysis cache backend selection and bounds.
    """

    backend: str = "file"
    key: str = "competitive_analyses"
    max_entries: int = 10
    file_path: str = ".cache/competitive_analyses.json"


@lru_cache(maxsize=1)
def get_backend_api_settings() -> BackendAPISettings:
    """
    Return backend connector settings from environment variables.
    """

    return BackendAPISettings(
        base_url=_get_str_env("COMPETITORS_API_BASE_URL", "http://localhost:8000").rstrip("/"),
        timeout_seconds=max(1.0, _get_float_env("COMPETITORS_API_TIMEOUT_SECONDS", 30.0)),
        max_retries=max(0, _get_int_env("COMPETITORS_API_MAX_RETRIES", 3)),
        backoff_initial_seconds=max(0.1, _get_float_env("COMPETITORS_API_BACKOFF_INITIAL_SECONDS", 0.5)),
        backoff_multiplier=max(1.0, _get_float_env("COMPETITORS_API_BACKOFF_MULTIPLIER", 2.0)),
    )


@lru_cache(maxsize=1)
def get_analysis_settings() -> AnalysisSettings:
    """
    Return submission, polling and fallback settings from environment variables.
    """

    return AnalysisSettings(
        min_score=min(1.0, max(0.0, _get_float_env("ANALYSIS_MIN_SCORE", 0.5))),
        min_mentions=max(0, _get_int_env("ANALYSIS_MIN_MENTIONS", 1)),
        poll_attempts=max(0, _get_int_env("ENRICHMENT_POLL_ATTEMPTS", 3)),
        poll_interval_seconds=max(0.0, _get_float_env("ENRICHMENT_POLL_INTERVAL_SECONDS", 1.5)),
        default_user_score=min(100, max(0, _get_int_env("DEFAULT_USER_SCORE", 75))),
        static_fallback_enabled=_get_bool_env("STATIC_FALLBACK_ENABLED", True),
    )


@lru_cache(maxsize=1)
def get_cache_settings() -> CacheSettings:
    """
    Return cache settings from environment variables.

    Raises RuntimeError if ANALYSIS_CACHE_BACKEND names an unknown backend.
    """

    backend = _get_str_env("ANALYSIS_CACHE_BACKEND", "file").lower()
    if backend not in _ALLOWED_CACHE_BACKENDS:
        raise RuntimeError(
            f"ANALYSIS_CACHE_BACKEND '{backend}' is not valid. "
            f"Allowed values: {sorted(_ALLOWED_CACHE_BACKENDS)}."
        )
    return CacheSettings(
        backend=backend,
        key=_get_str_env("ANALYSIS_CACHE_KEY", "competitive_analyses"),
        max_entries=max(1, _get_int_env("ANALYSIS_CACHE_MAX_ENTRIES", 10)),
        file_path=_get_str_env("ANALYSIS_CACHE_FILE_PATH", ".cache/competitive_analyses.json"),
    )
