"""
Router for plan reports and their share links.
"""

import logging
from fastapi import APIRouter, HTTPException, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import get_db
from routers.auth_scope import AuthContext, require_active_user
from services.report import build_plan_report
from services.report_share import (
    create_report_share_link,
    list_report_share_links,
    revoke_report_share_link,
)

router = APIRouter()
logger = logging.getLogger(__name__)


def _share_url(token: str) -> str:
    app_origin = settings.CORS_ORIGINS[0] if settings.CORS_ORIGINS else "http://localhost:5173"
    return f"{app_origin.rstrip('/')}/share/{token}"


@router.post("/plans/{plan_id}/share-links", status_code=201)
async def create_share_link(
    plan_id: str,
    auth: AuthContext = Depends(require_active_user),
    db: AsyncSession = Depends(get_db),
):
    """Create a public share link for a plan report."""
    try:
        payload = await create_report_share_link(
            plan_id=plan_id,
            user_id=auth.user_id,
            db=db,
            expires_days=settings.SHARE_LINK_EXPIRES_DAYS,
            max_attempts=settings.SHARE_LINK_CREATE_MAX_ATTEMPTS,
            token_bytes=settings.SHARE_LINK_TOKEN_BYTES,
        )
        payload["share_url"] = _share_url(payload["token"])
        return payload
    except HTTPException:
        raise
    except Exception:
        logger.exception("Failed to create share link for plan=%s", plan_id)
        raise HTTPException(status_code=500, detail="Failed to create share link.")


@router.get("/plans/{plan_id}/share-links")
async def list_share_links(
    plan_id: str,
    auth: AuthContext = Depends(require_active_user),
    db: AsyncSession = Depends(get_db),
):
    """List every share link of a plan, newest first."""
    try:
        links = await list_report_share_links(plan_id=plan_id, db=db)
        for link in links:
            link["share_url"] = _share_url(link["token"])
        return {"items": links}
    except HTTPException:
        raise
    except Exception:
        logger.exception("Failed to list share links for plan=%s", plan_id)
        raise HTTPException(status_code=500, detail="Failed to list share links.")


@router.post("/share-links/{share_id}/revoke")
async def revoke_share_link(
    share_id: str,
    auth: AuthContext = Depends(require_active_user),
    db: AsyncSession = Depends(get_db),
):
    """Revoke a share link. Already revoked links are returned unchanged."""
    try:
        return await revoke_report_share_link(share_id=share_id, db=db)
    except HTTPException:
        raise
    except Exception:
        logger.exception("Failed to revoke share link=%s (user=%s)", share_id, auth.user_id)
        raise HTTPException(status_code=500, detail="Failed to revoke share link.")


@router.get("/plans/{plan_id}")
async def get_plan_report(
    plan_id: str,
    auth: AuthContext = Depends(require_active_user),
    db: AsyncSession = Depends(get_db),
):
    """Report for the in-app view, same shape as the shared one."""
    try:
        report = await build_plan_report(plan_id, db, max_folder_depth=settings.FOLDER_PATH_MAX_DEPTH)
    except Exception:
        logger.exception("Failed to build report for plan=%s", plan_id)
        raise HTTPException(status_code=500, detail="Failed to fetch report.")
    if report is None:
        raise HTTPException(status_code=404, detail="Plan not found")
    return report
