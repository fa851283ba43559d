"""
Pydantic schemas for Report endpoints
"""
from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Dict, Any
from datetime import datetime


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


class AutoReportRequest(BaseModel):
    """
    Request to generate a mission report from a submission.
    All ids are optional here so missing ones can be reported together.
    """
    org_id: Optional[int] = Field(default=None, alias="orgId")
    mission_id: Optional[int] = Field(default=None, alias="missionId")
    agent_id: Optional[str] = Field(default=None, alias="agentId")
    submission_id: Optional[int] = Field(default=None, alias="submissionId")

    class Config:
        populate_by_name = True

    @field_validator("org_id", "mission_id", "submission_id", mode="before")
    @classmethod
    def blank_ids(cls, value):
        return _blank_to_none(value)

    @field_validator("agent_id", mode="before")
    @classmethod
    def agent_as_text(cls, value):
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        value = _blank_to_none(value)
        return value.strip() if isinstance(value, str) else value

    def missing_fields(self) -> List[str]:
        """Client-facing names of the absent ids, in request order"""
        fields = [
            ("orgId", self.org_id),
            ("missionId", self.mission_id),
            ("agentId", self.agent_id),
            ("submissionId", self.submission_id),
        ]
        return [name for name, value in fields if value is None]


class BackfillRequest(BaseModel):
    """Request to generate reports for unreported submissions of an org"""
    org_id: Optional[int] = Field(default=None, alias="orgId")
    limit: Optional[int] = None

    class Config:
        populate_by_name = True

    @field_validator("org_id", "limit", mode="before")
    @classmethod
    def blank_values(cls, value):
        return _blank_to_none(value)


class BackfillItem(BaseModel):
    """Outcome for one submission of a backfill run"""
    submissionId: int
    generated: bool
    reportId: Optional[int] = None
    error: Optional[str] = None


class ReportResponse(BaseModel):
    """Report row as listed to clients"""
    id: int
    org_id: int
    mission_id: int
    type: str
    status: str
    generated_at: Optional[datetime] = None
    title: Optional[str] = None
    pdf_url: Optional[str] = None
    kpis: Optional[Dict[str, Any]] = None
    meta: Optional[Dict[str, Any]] = None

    class Config:
        from_attributes = True
