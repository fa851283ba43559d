"""
Organization lookup endpoints
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.db.session import get_db
from app.models import Mission, Organization, Report

router = APIRouter()


@router.get("/latest")
async def latest_org(db: AsyncSession = Depends(get_db)):
    """
    Newest organization, used by the portal to pick a default org
    """
    result = await db.execute(
        select(Organization)
        .order_by(Organization.created_at.desc(), Organization.id.desc())
        .limit(1)
    )
    org = result.scalar_one_or_none()
    if not org:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="no orgs yet"
        )

    return {
        "ok": True,
        "org": {
            "id": org.id,
            "name": org.name,
            "created_at": org.created_at.isoformat() if org.created_at else None,
        },
    }


@router.get("/me")
async def current_org(
    org_id: Optional[int] = Query(default=None, alias="orgId"),
    db: AsyncSession = Depends(get_db),
):
    """
    Org the portal should work in.

    Tried in order: ?orgId, DEFAULT_ORG_ID, the org of the most recently
    started mission, the org of the most recently generated report.
    """
    if org_id is not None:
        return {"orgId": org_id, "source": "query"}

    if settings.DEFAULT_ORG_ID is not None:
        return {"orgId": settings.DEFAULT_ORG_ID, "source": "env"}

    mission_org = await db.scalar(
        select(Mission.org_id)
        .order_by(Mission.starts_at.desc().nulls_last(), Mission.id.desc())
        .limit(1)
    )
    if mission_org is not None:
        return {"orgId": mission_org, "source": "missions"}

    report_org = await db.scalar(
        select(Report.org_id)
        .order_by(Report.generated_at.desc().nulls_last(), Report.id.desc())
        .limit(1)
    )
    if report_org is not None:
        return {"orgId": report_org, "source": "reports"}

    raise HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail="org not found; set DEFAULT_ORG_ID"
    )
