"""Share-link helpers for plan reports."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from fastapi import HTTPException
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.plan import Plan
from models.report_share_link import ReportShareLink
from services.folder_path import FOLDER_PATH_MAX_DEPTH
from services.report import as_utc, build_plan_report, isoformat_utc
from services.share_token import SHARE_TOKEN_BYTES, generate_share_token

logger = logging.getLogger(__name__)

SHARE_EXPIRES_DAYS = 7
CREATE_MAX_ATTEMPTS = 5


def is_share_link_live(link: ReportShareLink, now: datetime) -> bool:
    """Live iff never revoked and not yet expired."""
    if link.revoked_at is not None:
        return False
    expires_at = as_utc(link.expires_at)
    return expires_at is not None and expires_at > as_utc(now)


def serialize_share_link(link: ReportShareLink, *, include_creator: bool = True) -> Dict[str, Any]:
    payload = {
        "id": link.id,
        "token": link.token,
        "plan_id": link.plan_id,
        "created_at": isoformat_utc(link.created_at),
        "expires_at": isoformat_utc(link.expires_at),
        "revoked_at": isoformat_utc(link.revoked_at),
    }
    if include_creator:
        payload["created_by_user_id"] = link.created_by_user_id
    return payload


async def _require_plan(plan_id: str, db: AsyncSession) -> None:
    result = await db.execute(select(Plan.id).where(Plan.id == plan_id))
    if result.scalar_one_or_none() is None:
        raise HTTPException(status_code=404, detail="Plan not found")


async def _token_in_use(token: str, db: AsyncSession) -> bool:
    result = await db.execute(select(ReportShareLink.id).where(ReportShareLink.token == token))
    return result.scalar_one_or_none() is not None


async def create_report_share_link(
    *,
    plan_id: str,
    user_id: str,
    db: AsyncSession,
    expires_days: int = SHARE_EXPIRES_DAYS,
    max_attempts: int = CREATE_MAX_ATTEMPTS,
    token_bytes: int = SHARE_TOKEN_BYTES,
) -> Dict[str, Any]:
    """Issue a new share link for ``plan_id``.

    Token uniqueness is enforced by the unique index on ``token``. A violation
    caused by a colliding token is retried with a fresh token up to
    ``max_attempts`` times; any other integrity error propagates.
    """
    await _require_plan(plan_id, db)

    max_attempts = max(int(max_attempts), 1)
    for attempt in range(1, max_attempts + 1):
        created_at = datetime.now(timezone.utc)
        token = generate_share_token(token_bytes)
        link = ReportShareLink(
            id=str(uuid.uuid4()),
            token=token,
            plan_id=plan_id,
            created_by_user_id=user_id,
            created_at=created_at,
            expires_at=created_at + timedelta(days=expires_days),
        )
        db.add(link)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            if not await _token_in_use(token, db):
                raise
            logger.warning(
                "Share token collision for plan=%s (attempt %d/%d)", plan_id, attempt, max_attempts
            )
            continue

        logger.info("share_link_created plan=%s share=%s user=%s", plan_id, link.id, user_id)
        return serialize_share_link(link)

    logger.error("Share link creation exhausted %d attempts for plan=%s", max_attempts, plan_id)
    raise HTTPException(status_code=503, detail="Could not allocate a unique share token. Try again.")


async def list_report_share_links(*, plan_id: str, db: AsyncSession) -> List[Dict[str, Any]]:
    """All links for a plan, newest first, including expired and revoked ones."""
    await _require_plan(plan_id, db)
    result = await db.execute(
        select(ReportShareLink)
        .where(ReportShareLink.plan_id == plan_id)
        .order_by(ReportShareLink.created_at.desc(), ReportShareLink.id.desc())
    )
    return [serialize_share_link(link) for link in result.scalars().all()]


async def revoke_report_share_link(
    *,
    share_id: str,
    db: AsyncSession,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Revoke a link. Revoking twice keeps the first ``revoked_at``."""
    result = await db.execute(select(ReportShareLink).where(ReportShareLink.id == share_id))
    link = result.scalar_one_or_none()
    if link is None:
        raise HTTPException(status_code=404, detail="Share link not found")

    revoked_at = now or datetime.now(timezone.utc)
    update_result = await db.execute(
        update(ReportShareLink)
        .where(ReportShareLink.id == share_id, ReportShareLink.revoked_at.is_(None))
        .values(revoked_at=revoked_at)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    await db.refresh(link)

    already_revoked = update_result.rowcount == 0
    payload = serialize_share_link(link)
    payload["already_revoked"] = already_revoked
    if already_revoked:
        payload["message"] = "Share link was already revoked."
    else:
        logger.info("share_link_revoked share=%s plan=%s", link.id, link.plan_id)
    return payload


async def resolve_shared_report(
    *,
    share_token: str,
    db: AsyncSession,
    now: Optional[datetime] = None,
    max_folder_depth: int = FOLDER_PATH_MAX_DEPTH,
) -> Dict[str, Any]:
    """Read-only report lookup by token. Possession of the token is the only credential."""
    token = str(share_token or "").strip()
    if not token:
        raise HTTPException(status_code=422, detail="share_token is required")

    result = await db.execute(select(ReportShareLink).where(ReportShareLink.token == token))
    link = result.scalar_one_or_none()
    if link is None:
        raise HTTPException(status_code=404, detail="Share link not found")

    if not is_share_link_live(link, now or datetime.now(timezone.utc)):
        raise HTTPException(status_code=410, detail="Share link expired or revoked")

    plan = await build_plan_report(link.plan_id, db, max_folder_depth=max_folder_depth)
    if plan is None:
        logger.warning("Share link %s points at missing plan=%s", link.id, link.plan_id)
        raise HTTPException(status_code=410, detail="Shared plan no longer exists")

    return {
        "share": serialize_share_link(link, include_creator=False),
        "plan": plan,
    }
