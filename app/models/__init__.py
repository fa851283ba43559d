"""
SQLAlchemy models - Import all for Alembic autogenerate
"""
from app.models.base import Base, TimestampMixin, JSONType

# Import all models
from app.models.organization import Organization
from app.models.mission import Mission, MissionStatus
from app.models.checklist import ChecklistItem, AnswerType
from app.models.submission import (
    Submission,
    SubmissionStatus,
    MissionAnswer,
    SubmissionItem,
    MissionAttachment,
)
from app.models.report import Report, ReportStatus, ReportType

# Export all for easy imports
__all__ = [
    "Base",
    "TimestampMixin",
    "JSONType",
    "Organization",
    "Mission",
    "MissionStatus",
    "ChecklistItem",
    "AnswerType",
    "Submission",
    "SubmissionStatus",
    "MissionAnswer",
    "SubmissionItem",
    "MissionAttachment",
    "Report",
    "ReportStatus",
    "ReportType",
]
