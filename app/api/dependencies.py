"""
app/api/dependencies.py

Shared FastAPI dependencies for request validation.
"""

from __future__ import annotations

from fastapi import HTTPException, Path, status

from competitive.identifiers import normalize_analysis_id

MAX_ANALYSIS_ID_LENGTH = 128


def get_analysis_id(
    analysis_id: str = Path(..., description="Analysis identifier, with or without the vendor prefix"),
) -> str:
    """
    Normalize the path identifier and reject blank or oversized values.
    """

    normalized = normalize_analysis_id(analysis_id)
    if not normalized or len(normalized) > MAX_ANALYSIS_ID_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid analysis identifier.",
        )
    return normalized
