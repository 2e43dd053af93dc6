"""
Wingmann Engine - Submissions Router

Endpoints:
    POST /api/submit       - Store a completed questionnaire
    GET  /api/submissions  - Newest-first paginated listing
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from ..core.models import Submission, SubmissionPayload
from ..services.engine import Engine, get_engine
from ..services.query_service import list_submissions

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Submissions"])


class SubmitResponse(BaseModel):
    success: bool
    message: str


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    totalPages: int


class SubmissionListResponse(BaseModel):
    success: bool
    data: list[Submission]
    pagination: Pagination


@router.post("/submit", response_model=SubmitResponse)
async def submit(
    payload: SubmissionPayload,
    engine: Engine = Depends(get_engine),
) -> SubmitResponse:
    """
    Store one submission.

    400 when a group or field is missing, 500 when the store cannot be
    written. Export regeneration failures do not affect the response.
    """
    await engine.submissions.submit(payload)
    return SubmitResponse(success=True, message="Data saved successfully")


@router.get("/submissions", response_model=SubmissionListResponse)
async def get_submissions(
    page: Optional[str] = Query(default=None),
    limit: Optional[str] = Query(default=None),
    engine: Engine = Depends(get_engine),
) -> Any:
    """
    List submissions newest first.

    Non-numeric or non-positive page/limit fall back to 1 and 100.
    """
    records = await engine.store.read_all()
    result = list_submissions(records, page=page, limit=limit)
    return SubmissionListResponse(
        success=True,
        data=result.records,
        pagination=Pagination(**result.pagination()),
    )
