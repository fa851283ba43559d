"""
Submission intake: stores an agent's checklist answers for a mission
"""
import logging
from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import EntityNotFoundError, InvalidReferenceError
from app.models.checklist import ChecklistItem
from app.models.mission import Mission
from app.models.submission import (
    MissionAnswer,
    MissionAttachment,
    Submission,
    SubmissionItem,
    SubmissionStatus,
)
from app.schemas.submission import AnswerIn, SubmissionCreate
from app.services.answer_normalizer import clamp_rating
from app.utils.time import to_naive_utc, utcnow

logger = logging.getLogger(__name__)


def legacy_answer_type(answer: AnswerIn) -> str:
    """Answer code used by mission_submission_items"""
    if answer.photo_attachment_id is None and answer.order_photo_attachment_id is None:
        return "VIDEO"
    return "PHOTO"


async def _resolve_item_ids(db: AsyncSession, mission_id: int, answers: List[AnswerIn]) -> List:
    """Checklist item id per answer, mapping itemIndex onto the ordered checklist"""
    result = await db.execute(
        select(ChecklistItem.id)
        .where(ChecklistItem.mission_id == mission_id)
        .order_by(ChecklistItem.order_index, ChecklistItem.id)
    )
    ordered = list(result.scalars().all())

    item_ids = []
    for answer in answers:
        item_id = answer.item_id
        if item_id is None and answer.item_index is not None and 0 <= answer.item_index < len(ordered):
            item_id = ordered[answer.item_index]
        item_ids.append(item_id)
    return item_ids


async def _check_attachments(db: AsyncSession, answers: List[AnswerIn]):
    wanted = {att_id for answer in answers for att_id in answer.attachment_ids()}
    if not wanted:
        return
    result = await db.execute(select(MissionAttachment.id).where(MissionAttachment.id.in_(wanted)))
    unknown = wanted - set(result.scalars().all())
    if unknown:
        raise InvalidReferenceError(f"Unknown attachment ids: {', '.join(str(i) for i in sorted(unknown))}")


async def create_submission(db: AsyncSession, data: SubmissionCreate) -> Submission:
    """
    Store a submission with its answers.

    org_id is copied from the mission; the status is always "submitted".
    Each answer becomes a mission_answers row; answers referencing uploaded
    attachments also get a mission_submission_items row.

    Raises:
        EntityNotFoundError: Mission does not exist
        InvalidReferenceError: Unknown attachment ids
    """
    mission = await db.scalar(select(Mission).where(Mission.id == data.mission_id))
    if mission is None:
        raise EntityNotFoundError("Mission not found")

    await _check_attachments(db, data.answers)
    item_ids = await _resolve_item_ids(db, mission.id, data.answers)

    submission = Submission(
        org_id=mission.org_id,
        mission_id=mission.id,
        agent_id=data.agent_id,
        status=SubmissionStatus.SUBMITTED.value,
        started_at=to_naive_utc(data.started_at),
        submitted_at=to_naive_utc(data.submitted_at) or utcnow(),
        comment=data.comment,
        meta_json={
            "gps": data.gps,
            "device": data.device_meta,
            "comment": data.comment,
            "payload": data.model_dump(mode="json", by_alias=True),
        },
    )
    db.add(submission)
    await db.flush()

    for answer, item_id in zip(data.answers, item_ids):
        db.add(MissionAnswer(
            submission_id=submission.id,
            item_id=item_id,
            value_yn=answer.yes_no,
            value_text=answer.text,
            value_number=clamp_rating(answer.rating),
            value_duration_ms=answer.duration_ms,
            media_path=answer.media_path,
            media_type=answer.media_type,
        ))
        if answer.attachment_ids():
            db.add(SubmissionItem(
                submission_id=submission.id,
                mission_id=mission.id,
                checklist_item_id=item_id,
                answer_type=legacy_answer_type(answer),
                photo_attachment_id=answer.photo_attachment_id,
                order_photo_attachment_id=answer.order_photo_attachment_id,
                video_attachment_id=answer.video_attachment_id,
            ))

    await db.flush()
    logger.info(
        f"Submission {submission.id} stored for mission {mission.id} "
        f"(agent {data.agent_id}, {len(data.answers)} answers)"
    )
    return submission
