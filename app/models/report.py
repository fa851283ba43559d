"""
Generated mission reports
"""
import enum

from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Text, UniqueConstraint

from app.models.base import Base, TimestampMixin, JSONType


class ReportStatus(str, enum.Enum):
    """Report lifecycle: Generating -> Ready | Failed"""
    GENERATING = "Generating"
    READY = "Ready"
    FAILED = "Failed"


class ReportType(str, enum.Enum):
    """Report kinds"""
    MISSION = "mission"


class Report(Base, TimestampMixin):
    """
    Generated PDF summary for a mission submission.
    At most one row per (org, mission, type); regeneration overwrites it.
    """
    __tablename__ = "reports"
    __table_args__ = (
        UniqueConstraint("org_id", "mission_id", "type", name="uq_reports_org_mission_type"),
    )

    id = Column(Integer, primary_key=True, index=True)
    org_id = Column(Integer, ForeignKey("orgs.id", ondelete="CASCADE"), nullable=False, index=True)
    mission_id = Column(Integer, nullable=False, index=True)
    type = Column(String(50), nullable=False, default=ReportType.MISSION.value)

    status = Column(String(20), nullable=False, default=ReportStatus.GENERATING.value)
    generated_at = Column(DateTime, nullable=True)
    title = Column(String(500), nullable=True)
    pdf_url = Column(Text, nullable=True)

    kpis = Column(JSONType, nullable=True)
    # {submission_id, agent_id, store, address, window_text, pdf_path, error?, ...}
    meta = Column(JSONType, nullable=True)
