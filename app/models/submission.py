"""
Submission models - an agent's completed checklist and its answers

Two historical answer shapes are kept readable:
- mission_answers: one row per answer with an inline media path
- mission_submission_items: one row per answer referencing mission_attachments by id
"""
import enum

from sqlalchemy import Column, Integer, String, Text, Boolean, ForeignKey, Float, DateTime, BigInteger
from sqlalchemy.orm import relationship

from app.models.base import Base, TimestampMixin, JSONType


class SubmissionStatus(str, enum.Enum):
    """Submission status (intake always normalizes to submitted)"""
    SUBMITTED = "submitted"


class Submission(Base, TimestampMixin):
    """
    One agent's completed checklist for a mission
    """
    __tablename__ = "mission_submissions"

    id = Column(Integer, primary_key=True, index=True)
    # Always copied from the mission, never taken from the client
    org_id = Column(Integer, ForeignKey("orgs.id", ondelete="CASCADE"), nullable=False, index=True)
    mission_id = Column(Integer, ForeignKey("missions.id", ondelete="CASCADE"), nullable=False, index=True)
    agent_id = Column(String(255), nullable=False)

    status = Column(String(50), nullable=False, default=SubmissionStatus.SUBMITTED.value)
    started_at = Column(DateTime, nullable=True)
    submitted_at = Column(DateTime, nullable=True)
    comment = Column(Text, nullable=True)

    # Raw payload: {answers, gps, device, comment, ...}
    meta_json = Column(JSONType, nullable=True)

    # Relationships
    mission = relationship("Mission", back_populates="submissions")
    answers = relationship("MissionAnswer", back_populates="submission", passive_deletes=True)
    items = relationship("SubmissionItem", back_populates="submission", passive_deletes=True)


class MissionAnswer(Base, TimestampMixin):
    """
    Answer row with values and an inline media reference
    """
    __tablename__ = "mission_answers"

    id = Column(Integer, primary_key=True, index=True)
    submission_id = Column(Integer, ForeignKey("mission_submissions.id", ondelete="CASCADE"), nullable=False, index=True)
    item_id = Column(Integer, nullable=True)  # checklist item id (item may since be deleted)

    value_yn = Column(Boolean, nullable=True)
    value_text = Column(Text, nullable=True)
    value_number = Column(Float, nullable=True)
    value_duration_ms = Column(BigInteger, nullable=True)

    media_path = Column(String(1000), nullable=True)  # key in the media bucket
    media_type = Column(String(100), nullable=True)  # "photo", "video" or a MIME type

    # Relationships
    submission = relationship("Submission", back_populates="answers")


class SubmissionItem(Base, TimestampMixin):
    """
    Legacy answer row: values plus attachment id references
    """
    __tablename__ = "mission_submission_items"

    id = Column(Integer, primary_key=True, index=True)
    submission_id = Column(Integer, ForeignKey("mission_submissions.id", ondelete="CASCADE"), nullable=False, index=True)
    mission_id = Column(Integer, nullable=True)
    checklist_item_id = Column(Integer, nullable=True)
    answer_type = Column(String(20), nullable=True)  # YN, COMMENT, TIMER, RATING, PHOTO, VIDEO

    yes_no = Column(Boolean, nullable=True)
    comment = Column(Text, nullable=True)
    timer_seconds = Column(Integer, nullable=True)
    rating = Column(Integer, nullable=True)

    photo_attachment_id = Column(Integer, ForeignKey("mission_attachments.id", ondelete="SET NULL"), nullable=True)
    order_photo_attachment_id = Column(Integer, ForeignKey("mission_attachments.id", ondelete="SET NULL"), nullable=True)
    video_attachment_id = Column(Integer, ForeignKey("mission_attachments.id", ondelete="SET NULL"), nullable=True)

    # Relationships
    submission = relationship("Submission", back_populates="items")


class MissionAttachment(Base, TimestampMixin):
    """
    Uploaded media object in the media bucket
    """
    __tablename__ = "mission_attachments"

    id = Column(Integer, primary_key=True, index=True)
    org_id = Column(Integer, nullable=True)
    mission_id = Column(Integer, nullable=True, index=True)
    path = Column(String(1000), nullable=False)
    content_type = Column(String(100), nullable=True)
    size = Column(Integer, nullable=True)
