"""
Shared environment-driven database configuration helpers.
"""

from __future__ import annotations

import os
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
_CLOUD_LIKE_ENVIRONMENTS = {"prod", "production", "staging", "cloud"}


def load_env_files() -> None:
    """
    Load simple KEY=VALUE pairs from `.env` and `.env.local` (if present).
    Existing process environment variables are not overwritten.
    """

    for filename in (".env", ".env.local"):
        env_path = PROJECT_ROOT / filename
        if not env_path.is_file():
            continue

        for raw_line in env_path.read_text(encoding="utf-8").splitlines():
            line = raw_line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue

            key, value = line.split("=", 1)
            key = key.removeprefix("export ").strip()
            value = value.strip().strip('"').strip("'")
            if key and key not in os.environ:
                os.environ[key] = value


def normalize_postgres_url(url: str) -> str:
    """
    Rewrite postgres URLs to SQLAlchemy's psycopg (v3) driver form.
    """

    for prefix in ("postgres://", "postgresql://"):
        if url.startswith(prefix):
            return "postgresql+psycopg://" + url[len(prefix):]
    return url


def resolve_database_url() -> str:
    """
    Resolve the cache database URL from the environment.

    Priority:
    1) ANALYSIS_CACHE_DATABASE_URL
    2) DATABASE_URL
    3) CLOUD_DATABASE_URL when ENVIRONMENT is cloud-like, else LOCAL_DATABASE_URL
    """

    load_env_files()

    for name in ("ANALYSIS_CACHE_DATABASE_URL", "DATABASE_URL"):
        value = os.getenv(name, "").strip()
        if value:
            return normalize_postgres_url(value)

    environment = os.getenv("ENVIRONMENT", "local").strip().lower()
    name = "CLOUD_DATABASE_URL" if environment in _CLOUD_LIKE_ENVIRONMENTS else "LOCAL_DATABASE_URL"
    value = os.getenv(name, "").strip()
    if value:
        return normalize_postgres_url(value)

    raise RuntimeError(
        "No database URL configured for ANALYSIS_CACHE_BACKEND=database. Set "
        "ANALYSIS_CACHE_DATABASE_URL or DATABASE_URL, or configure "
        "LOCAL_DATABASE_URL / CLOUD_DATABASE_URL."
    )
