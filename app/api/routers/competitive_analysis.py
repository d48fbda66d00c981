"""
app/api/routers/competitive_analysis.py

Competitive analysis submission and retrieval endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response, status

from app.api.dependencies import get_analysis_id
from app.schemas.competitive_analysis import CompetitiveAnalysisListResponse, CompetitiveAnalysisRequest
from app.services.competitive_analysis_service import (
    CompetitiveAnalysisService,
    get_competitive_analysis_service,
)
from competitive.errors import AnalysisSubmissionError, ErrorKind
from competitive.models import CompetitiveAnalysisResult

router = APIRouter(prefix="/competitive-analyses", tags=["competitive-analysis"])


@router.post(
    "",
    response_model=CompetitiveAnalysisResult,
    response_model_exclude_none=True,
)
def run_competitive_analysis(
    payload: CompetitiveAnalysisRequest,
    service: CompetitiveAnalysisService = Depends(get_competitive_analysis_service),
) -> CompetitiveAnalysisResult:
    """
    Submit a site for analysis and return the reconciled result.
    """

    try:
        return service.run_analysis(payload.url)
    except AnalysisSubmissionError as exc:
        status_code = (
            status.HTTP_400_BAD_REQUEST
            if exc.kind == ErrorKind.USER_INPUT
            else status.HTTP_502_BAD_GATEWAY
        )
        raise HTTPException(status_code=status_code, detail=exc.message) from exc


@router.get("", response_model=CompetitiveAnalysisListResponse, response_model_exclude_none=True)
def list_competitive_analyses(
    service: CompetitiveAnalysisService = Depends(get_competitive_analysis_service),
) -> CompetitiveAnalysisListResponse:
    listing = service.list_analyses()
    return CompetitiveAnalysisListResponse(source=listing.source.value, analyses=listing.analyses)


@router.get(
    "/{analysis_id}",
    response_model=CompetitiveAnalysisResult,
    response_model_exclude_none=True,
)
def get_competitive_analysis(
    analysis_id: str = Depends(get_analysis_id),
    service: CompetitiveAnalysisService = Depends(get_competitive_analysis_service),
) -> CompetitiveAnalysisResult:
    result = service.get_analysis(analysis_id)
    if result is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Competitive analysis '{analysis_id}' not found.",
        )
    return result


@router.delete("/{analysis_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_competitive_analysis(
    analysis_id: str = Depends(get_analysis_id),
    service: CompetitiveAnalysisService = Depends(get_competitive_analysis_service),
) -> Response:
    """
    Remove an analysis from the local cache. Unknown ids succeed silently.
    """

    service.delete_analysis(analysis_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
