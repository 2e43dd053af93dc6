"""
Wingmann Engine - Download Router

GET /api/download?format=csv|xlsx - all submissions as an attachment.

Guarded by the download key. The file is rendered from the canonical list
at request time, so it is current even when the stored exports are stale.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response

from ..core.errors import NotFoundError
from ..core.security import require_download_key
from ..services.engine import Engine, get_engine
from ..services.exports import CSV_CONTENT_TYPE, XLSX_CONTENT_TYPE, render_csv, render_xlsx

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Download"])

DOWNLOAD_BASENAME = "wingmann_all_submissions"


@router.get("/download", dependencies=[Depends(require_download_key)])
async def download(
    format: Optional[str] = Query(default="csv"),
    engine: Engine = Depends(get_engine),
) -> Response:
    """Any format other than xlsx is served as CSV."""
    records = await engine.store.read_all()
    if not records:
        raise NotFoundError("No submissions found")

    if (format or "").lower() == "xlsx":
        body = render_xlsx(records)
        media_type = XLSX_CONTENT_TYPE
        filename = f"{DOWNLOAD_BASENAME}.xlsx"
    else:
        body = render_csv(records)
        media_type = CSV_CONTENT_TYPE
        filename = f"{DOWNLOAD_BASENAME}.csv"

    logger.info(f"Serving {filename} ({len(records)} submissions)", extra={"count": len(records)})

    return Response(
        content=body,
        media_type=media_type,
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )
