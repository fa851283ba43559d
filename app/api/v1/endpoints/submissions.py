"""
Submission API endpoints
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import EntityNotFoundError, InvalidReferenceError
from app.db.session import get_db
from app.models import Mission, Submission
from app.schemas.submission import SubmissionCreate, SubmissionCreated
from app.services.submission_service import create_submission

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("", response_model=SubmissionCreated, status_code=status.HTTP_201_CREATED)
async def submit_checklist(
    data: SubmissionCreate,
    db: AsyncSession = Depends(get_db),
):
    """
    Store a field agent's completed checklist.
    The org is taken from the mission, never from the client.
    """
    try:
        submission = await create_submission(db, data)
    except EntityNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )
    except InvalidReferenceError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

    return SubmissionCreated(
        id=submission.id,
        orgId=submission.org_id,
        answersCount=len(data.answers),
    )


@router.get("")
async def list_submissions(
    org_id: Optional[int] = Query(default=None, alias="orgId"),
    limit: int = Query(default=20),
    db: AsyncSession = Depends(get_db),
):
    """
    Latest submissions of an org with their mission titles
    """
    if org_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="orgId is required"
        )

    result = await db.execute(
        select(Submission, Mission.title)
        .join(Mission, Mission.id == Submission.mission_id)
        .where(Submission.org_id == org_id)
        .order_by(Submission.submitted_at.desc().nulls_last(), Submission.id.desc())
        .limit(max(1, min(limit, 100)))
    )

    submissions = [
        {
            "id": sub.id,
            "mission_id": sub.mission_id,
            "mission_title": title,
            "agent_id": sub.agent_id,
            "status": sub.status,
            "submitted_at": sub.submitted_at.isoformat() if sub.submitted_at else None,
        }
        for sub, title in result.all()
    ]
    return {"ok": True, "submissions": submissions}
