"""
Service for assembling a plan and its executions into a report payload.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from models.plan import Plan
from models.plan_item import PLAN_ITEM_RESULTS, PlanItem
from models.test_case import TestCase
from services.folder_path import FOLDER_PATH_MAX_DEPTH, FolderPathResolver

logger = logging.getLogger(__name__)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on read)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def isoformat_utc(value: Optional[datetime]) -> Optional[str]:
    normalized = as_utc(value)
    return normalized.isoformat() if normalized else None


def summarize_results(items: Sequence[PlanItem]) -> Dict[str, Any]:
    """Count plan items per result and compute the pass rate."""
    counts = {result: 0 for result in PLAN_ITEM_RESULTS}
    for item in items:
        key = item.result or "NOT_RUN"
        counts[key] = counts.get(key, 0) + 1

    total = len(items)
    pass_rate = round(counts["PASS"] * 100.0 / total, 1) if total else 0.0
    return {"total": total, "counts": counts, "pass_rate": pass_rate}


def _serialize_test_case(test_case: TestCase, folder_path: List[Dict[str, str]]) -> Dict[str, Any]:
    folder = test_case.folder
    return {
        "id": test_case.id,
        "case_number": test_case.case_number,
        "title": test_case.title,
        "description": test_case.description,
        "precondition": test_case.precondition,
        "steps": test_case.steps,
        "expected_result": test_case.expected_result,
        "priority": test_case.priority,
        "folder_id": test_case.folder_id,
        "sequence": test_case.sequence,
        "folder": (
            {"id": folder.id, "name": folder.name, "parent_id": folder.parent_id}
            if folder is not None
            else None
        ),
        "folder_path": folder_path,
    }


def _serialize_item(item: PlanItem, folder_path: List[Dict[str, str]]) -> Dict[str, Any]:
    return {
        "id": item.id,
        "plan_id": item.plan_id,
        "test_case_id": item.test_case_id,
        "order": item.order,
        "result": item.result,
        "assignee": item.assignee,
        "comment": item.comment,
        "defects": item.defects,
        "executed_at": isoformat_utc(item.executed_at),
        "created_at": isoformat_utc(item.created_at),
        "updated_at": isoformat_utc(item.updated_at),
        "test_case": _serialize_test_case(item.test_case, folder_path),
    }


async def load_ordered_plan_items(plan_id: str, db: AsyncSession) -> List[PlanItem]:
    """Plan items by item order, then test case sequence, then item id."""
    result = await db.execute(
        select(PlanItem)
        .join(TestCase, PlanItem.test_case_id == TestCase.id)
        .where(PlanItem.plan_id == plan_id)
        .order_by(PlanItem.order.asc(), TestCase.sequence.asc(), PlanItem.id.asc())
        .options(selectinload(PlanItem.test_case).selectinload(TestCase.folder))
    )
    return list(result.scalars().all())


async def build_plan_report(
    plan_id: str,
    db: AsyncSession,
    *,
    max_folder_depth: int = FOLDER_PATH_MAX_DEPTH,
) -> Optional[Dict[str, Any]]:
    """Return the plan report payload, or None when the plan does not exist."""
    plan_result = await db.execute(select(Plan).where(Plan.id == plan_id))
    plan = plan_result.scalar_one_or_none()
    if plan is None:
        return None

    items = await load_ordered_plan_items(plan_id, db)
    resolver = FolderPathResolver(db, max_depth=max_folder_depth)
    serialized_items = []
    for item in items:
        folder_path = await resolver.path(item.test_case.folder_id)
        serialized_items.append(_serialize_item(item, folder_path))

    return {
        "id": plan.id,
        "name": plan.name,
        "description": plan.description,
        "status": plan.status,
        "created_by_user_id": plan.created_by_user_id,
        "created_at": isoformat_utc(plan.created_at),
        "updated_at": isoformat_utc(plan.updated_at),
        "summary": summarize_results(items),
        "items": serialized_items,
    }
