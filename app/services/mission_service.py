"""
Mission and checklist helpers shared by the mission routes
"""
import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Set

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.checklist import AnswerType, ChecklistItem
from app.models.mission import Mission, MissionStatus
from app.models.submission import Submission, SubmissionStatus
from app.schemas.mission import ChecklistItemIn, LocationIn

logger = logging.getLogger(__name__)

DEFAULT_RADIUS_M = 150
DEFAULT_TIME_ON_SITE_MIN = 10


def derive_status(
    now: datetime,
    starts_at: Optional[datetime],
    expires_at: Optional[datetime],
    explicit_status: Optional[str],
    has_submission: bool,
) -> str:
    """
    Status shown for a mission.

    An explicit Completed wins, then any submitted submission. Otherwise the
    time window decides: inside it is Now, before it is Scheduled. After
    expiry the mission also reads Scheduled; there is no expired state.
    """
    if (explicit_status or "").lower() == MissionStatus.COMPLETED.value.lower():
        return MissionStatus.COMPLETED.value
    if has_submission:
        return MissionStatus.COMPLETED.value

    if starts_at is not None and expires_at is not None:
        if starts_at <= now <= expires_at:
            return MissionStatus.NOW.value
        return MissionStatus.SCHEDULED.value
    if starts_at is not None and now >= starts_at:
        return MissionStatus.NOW.value
    return MissionStatus.SCHEDULED.value


async def missions_with_submissions(db: AsyncSession, mission_ids: Iterable[int]) -> Set[int]:
    """Ids among `mission_ids` that have a submitted submission"""
    ids = list(mission_ids)
    if not ids:
        return set()
    result = await db.execute(
        select(Submission.mission_id)
        .where(
            Submission.mission_id.in_(ids),
            or_(
                Submission.status == SubmissionStatus.SUBMITTED.value,
                Submission.submitted_at.isnot(None),
            ),
        )
        .distinct()
    )
    return set(result.scalars().all())


def build_location(location: Optional[LocationIn], address: Optional[str] = None) -> Dict[str, Any]:
    """Location JSON with a default geofence radius"""
    loc = location or LocationIn()
    out = {
        "address": address or loc.address or "",
        "lat": loc.lat,
        "lng": loc.lng,
        "radiusM": loc.radiusM if loc.radiusM is not None else DEFAULT_RADIUS_M,
    }
    if loc.addressParts:
        out["addressParts"] = loc.addressParts
    return out


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def mission_to_dict(mission: Mission, status: Optional[str] = None) -> Dict[str, Any]:
    """Mission in the wire shape used by the portal"""
    loc = mission.location or {}
    return {
        "id": mission.id,
        "orgId": mission.org_id,
        "title": mission.title or "Untitled Mission",
        "store": mission.store or "",
        "status": status or mission.status or MissionStatus.SCHEDULED.value,
        "startsAt": _iso(mission.starts_at),
        "expiresAt": _iso(mission.expires_at),
        "location": {
            "address": loc.get("address") or "",
            "lat": loc.get("lat"),
            "lng": loc.get("lng"),
            "radiusM": loc.get("radiusM") if loc.get("radiusM") is not None else DEFAULT_RADIUS_M,
        },
        "budget": mission.budget or 0,
        "fee": mission.fee or 0,
        "cost": mission.cost or 0,
        "requiresVideo": bool(mission.requires_video),
        "requiresPhotos": bool(mission.requires_photos),
        "timeOnSiteMin": mission.time_on_site_min,
        "templateId": mission.template_id,
        "createdAt": _iso(mission.created_at),
    }


# ============================================================================
# Checklist snapshots
# ============================================================================

def derive_answer_type(item: ChecklistItemIn) -> str:
    """Precedence: rating > yes_no > any media/timer flag > text"""
    r = item.requires
    if r.rating or (item.answerType or "").lower() == AnswerType.RATING.value:
        return AnswerType.RATING.value
    if item.yesNo:
        return AnswerType.YES_NO.value
    if r.photo or r.video or r.timer:
        return AnswerType.RICH.value
    return AnswerType.TEXT.value


def build_checklist_rows(mission_id: int, items: List[ChecklistItemIn]) -> List[ChecklistItem]:
    """Checklist rows for a snapshot; items with blank text are dropped"""
    rows = []
    for position, item in enumerate(items):
        text = (item.text or "").strip()
        if not text:
            continue
        answer_type = derive_answer_type(item)
        rows.append(ChecklistItem(
            mission_id=mission_id,
            order_index=item.order_index if item.order_index is not None else position,
            text=text,
            answer_type=answer_type,
            yes_no=answer_type == AnswerType.YES_NO.value,
            requires_photo=item.requires.photo,
            requires_video=item.requires.video,
            requires_comment=item.requires.comment,
            requires_timer=item.requires.timer,
        ))
    return rows


def checklist_item_to_dict(row: ChecklistItem) -> Dict[str, Any]:
    return {
        "id": row.id,
        "title": row.text or "",
        "yesNo": bool(row.yes_no),
        "answerType": row.answer_type,
        "requires": {
            "photo": bool(row.requires_photo),
            "video": bool(row.requires_video),
            "comment": bool(row.requires_comment),
            "timer": bool(row.requires_timer),
            "rating": row.answer_type == AnswerType.RATING.value,
        },
        "order_index": row.order_index,
    }
