"""
Mission models - site-visit audit tasks
"""
import enum

from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, Float, DateTime, Computed
from sqlalchemy.orm import relationship

from app.models.base import Base, TimestampMixin, JSONType


class MissionStatus(str, enum.Enum):
    """Mission status as shown to clients (derived at read time)"""
    SCHEDULED = "Scheduled"
    NOW = "Now"
    COMPLETED = "Completed"


class Mission(Base, TimestampMixin):
    """
    A scheduled or live site visit with a checklist.

    `status` only holds an explicit override; the status shown to clients is
    derived from the time window and submissions (see services.mission_service).
    """
    __tablename__ = "missions"

    id = Column(Integer, primary_key=True, index=True)
    org_id = Column(Integer, ForeignKey("orgs.id", ondelete="CASCADE"), nullable=False, index=True)

    title = Column(String(255), nullable=False, default="Untitled Mission")
    store = Column(String(255), nullable=True)
    status = Column(String(20), nullable=False, default=MissionStatus.SCHEDULED.value)

    starts_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=True)

    # {address, lat, lng, radiusM, addressParts?}
    location = Column(JSONType, nullable=True)

    budget = Column(Float, nullable=True)
    fee = Column(Float, nullable=True)
    # Store-computed, never written by the API
    cost = Column(Float, Computed("coalesce(budget, 0) + coalesce(fee, 0)", persisted=True))

    requires_video = Column(Boolean, default=False, nullable=False)
    requires_photos = Column(Boolean, default=False, nullable=False)
    time_on_site_min = Column(Integer, default=10, nullable=False)
    template_id = Column(String(100), nullable=True)

    # Relationships
    organization = relationship("Organization", back_populates="missions")
    checklist_items = relationship(
        "ChecklistItem",
        back_populates="mission",
        order_by="ChecklistItem.order_index",
        passive_deletes=True,
    )
    submissions = relationship("Submission", back_populates="mission", passive_deletes=True)
