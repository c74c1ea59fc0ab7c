"""
Unauthenticated endpoints. Only read paths live here.
"""

import logging
from fastapi import APIRouter, HTTPException, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import get_db
from routers.rate_limit import rate_limit
from services.report_share import resolve_shared_report

router = APIRouter()
logger = logging.getLogger(__name__)

_public_report_quota = rate_limit(
    "public_report",
    limit=settings.PUBLIC_REPORT_RATE_LIMIT,
    window_seconds=settings.PUBLIC_REPORT_RATE_WINDOW_SECONDS,
)


@router.get("/reports/share/{token}", dependencies=[Depends(_public_report_quota)])
async def get_shared_report(
    token: str,
    db: AsyncSession = Depends(get_db),
):
    """Public report retrieval via share token: 404 unknown, 410 expired or revoked."""
    try:
        return await resolve_shared_report(
            share_token=token,
            db=db,
            max_folder_depth=settings.FOLDER_PATH_MAX_DEPTH,
        )
    except HTTPException:
        raise
    except Exception:
        logger.exception("Failed to resolve shared report token=%s...", token[:6])
        raise HTTPException(status_code=500, detail="Failed to fetch shared report.")
