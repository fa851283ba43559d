"""
Mission API endpoints
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import StorageError
from app.db.session import get_db
from app.models import (
    ChecklistItem,
    Mission,
    MissionAnswer,
    MissionAttachment,
    MissionStatus,
    Organization,
    Submission,
    SubmissionItem,
)
from app.schemas.mission import MissionCreate, MissionUpdate
from app.services.mission_service import (
    DEFAULT_TIME_ON_SITE_MIN,
    build_location,
    derive_status,
    mission_to_dict,
    missions_with_submissions,
)
from app.services.s3_service import S3Service, get_s3_service
from app.utils.time import to_naive_utc, utcnow

router = APIRouter()
logger = logging.getLogger(__name__)

PATCHABLE_FIELDS = (
    "title", "store", "status", "budget", "fee",
    "requires_video", "requires_photos", "time_on_site_min", "template_id",
)
NOT_NULL_FIELDS = {"title", "status", "requires_video", "requires_photos", "time_on_site_min"}


async def _get_mission_or_404(db: AsyncSession, mission_id: int) -> Mission:
    result = await db.execute(select(Mission).where(Mission.id == mission_id))
    mission = result.scalar_one_or_none()
    if not mission:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Mission not found"
        )
    return mission


@router.get("")
async def list_missions(
    org_id: Optional[int] = Query(default=None, alias="orgId"),
    limit: int = Query(default=200, ge=1, le=1000),
    db: AsyncSession = Depends(get_db),
):
    """
    List an org's missions, newest first, with their derived status
    """
    if org_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="orgId is required"
        )

    result = await db.execute(
        select(Mission)
        .where(Mission.org_id == org_id)
        .order_by(Mission.created_at.desc(), Mission.id.desc())
        .limit(limit)
    )
    missions = result.scalars().all()
    submitted = await missions_with_submissions(db, [m.id for m in missions])

    now = utcnow()
    return {
        "ok": True,
        "missions": [
            mission_to_dict(
                m,
                status=derive_status(now, m.starts_at, m.expires_at, m.status, m.id in submitted),
            )
            for m in missions
        ],
    }


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_mission(
    data: MissionCreate,
    org_id: Optional[int] = Query(default=None, alias="orgId"),
    db: AsyncSession = Depends(get_db),
):
    """
    Create a mission. The org comes from ?orgId or the body.
    """
    owner_id = org_id if org_id is not None else data.org_id
    if owner_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="orgId is required"
        )

    org = await db.scalar(select(Organization).where(Organization.id == owner_id))
    if not org:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Organization not found"
        )

    mission = Mission(
        org_id=owner_id,
        title=(data.title or "").strip() or "Untitled Mission",
        store=data.store or None,
        status=MissionStatus.NOW.value if data.status == MissionStatus.NOW.value else MissionStatus.SCHEDULED.value,
        starts_at=to_naive_utc(data.starts_at) or utcnow(),
        expires_at=to_naive_utc(data.expires_at),
        location=build_location(data.location, data.address) if (data.location or data.address) else None,
        budget=data.budget,
        fee=data.fee,
        requires_video=data.requires_video,
        requires_photos=data.requires_photos,
        time_on_site_min=data.time_on_site_min if data.time_on_site_min is not None else DEFAULT_TIME_ON_SITE_MIN,
        template_id=data.template_id,
    )
    db.add(mission)
    await db.flush()
    # cost is computed by the database
    await db.refresh(mission)

    logger.info(f"Mission {mission.id} created for org {owner_id}")
    return mission_to_dict(mission)


@router.get("/{mission_id}")
async def get_mission(
    mission_id: int,
    db: AsyncSession = Depends(get_db),
):
    """Get a mission"""
    mission = await _get_mission_or_404(db, mission_id)
    return {"mission": mission_to_dict(mission)}


@router.put("/{mission_id}")
async def update_mission(
    mission_id: int,
    data: MissionUpdate,
    db: AsyncSession = Depends(get_db),
):
    """
    Update a mission. Only fields present in the body are changed.
    """
    mission = await _get_mission_or_404(db, mission_id)
    fields = data.model_dump(exclude_unset=True)

    for name in PATCHABLE_FIELDS:
        if name not in fields:
            continue
        if fields[name] is None and name in NOT_NULL_FIELDS:
            continue
        setattr(mission, name, fields[name])
    if "starts_at" in fields:
        mission.starts_at = to_naive_utc(data.starts_at)
    if "expires_at" in fields:
        mission.expires_at = to_naive_utc(data.expires_at)
    if "location" in fields or "address" in fields:
        mission.location = build_location(data.location, data.address)

    await db.flush()
    await db.refresh(mission)

    logger.info(f"Mission {mission_id} updated: {', '.join(sorted(fields)) or 'no fields'}")
    return {"ok": True, "mission": mission_to_dict(mission)}


@router.delete("/{mission_id}")
async def delete_mission(
    mission_id: int,
    db: AsyncSession = Depends(get_db),
    storage: S3Service = Depends(get_s3_service),
):
    """
    Delete a mission with its checklist and submissions, then remove its
    media from storage. Storage cleanup failures are logged, not returned.
    """
    mission = await _get_mission_or_404(db, mission_id)
    org_id = mission.org_id

    submission_ids = select(Submission.id).where(Submission.mission_id == mission_id)
    await db.execute(delete(MissionAnswer).where(MissionAnswer.submission_id.in_(submission_ids)))
    await db.execute(delete(SubmissionItem).where(SubmissionItem.submission_id.in_(submission_ids)))
    await db.execute(delete(Submission).where(Submission.mission_id == mission_id))
    await db.execute(delete(ChecklistItem).where(ChecklistItem.mission_id == mission_id))
    await db.execute(delete(MissionAttachment).where(MissionAttachment.mission_id == mission_id))
    await db.execute(delete(Mission).where(Mission.id == mission_id))
    await db.commit()

    for prefix in (f"mission/{mission_id}/", f"{org_id}/{mission_id}/"):
        try:
            storage.delete_prefix(prefix, bucket_name=settings.S3_BUCKET_MEDIA)
        except StorageError as e:
            logger.warning(f"Storage cleanup for mission {mission_id} ({prefix}) failed: {e}")

    logger.info(f"Mission {mission_id} deleted")
    return {"ok": True}
