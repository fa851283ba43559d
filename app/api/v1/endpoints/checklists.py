"""
Mission checklist API endpoints
"""
import logging
from typing import List, Union

from fastapi import APIRouter, Body, Depends, HTTPException, status
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.models import ChecklistItem, Mission
from app.schemas.mission import ChecklistItemIn, ChecklistSnapshot
from app.services.mission_service import build_checklist_rows, checklist_item_to_dict

router = APIRouter()
logger = logging.getLogger(__name__)


async def _ensure_mission(db: AsyncSession, mission_id: int):
    exists = await db.scalar(select(Mission.id).where(Mission.id == mission_id))
    if exists is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Mission not found"
        )


@router.get("/{mission_id}/checklist")
async def get_checklist(
    mission_id: int,
    db: AsyncSession = Depends(get_db),
):
    """
    Get a mission's checklist items in order.
    `requires.rating` mirrors answerType == "rating".
    """
    result = await db.execute(
        select(ChecklistItem)
        .where(ChecklistItem.mission_id == mission_id)
        .order_by(ChecklistItem.order_index, ChecklistItem.id)
    )
    return {"items": [checklist_item_to_dict(row) for row in result.scalars().all()]}


@router.put("/{mission_id}/checklist")
async def save_checklist(
    mission_id: int,
    body: Union[List[ChecklistItemIn], ChecklistSnapshot] = Body(...),
    db: AsyncSession = Depends(get_db),
):
    """
    Replace a mission's checklist with the given snapshot.

    Accepts a list of items or {items: [...]}. Items with blank text are
    dropped; the answer type is derived from the flags.
    """
    await _ensure_mission(db, mission_id)
    items = body if isinstance(body, list) else body.items
    rows = build_checklist_rows(mission_id, items)

    await db.execute(delete(ChecklistItem).where(ChecklistItem.mission_id == mission_id))
    db.add_all(rows)
    await db.flush()

    logger.info(f"Checklist for mission {mission_id} replaced with {len(rows)} items")
    return {"ok": True, "count": len(rows)}
