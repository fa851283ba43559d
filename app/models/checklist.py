"""
Checklist models - per-mission audit questions
"""
import enum

from sqlalchemy import Column, Integer, Text, Boolean, ForeignKey, String
from sqlalchemy.orm import relationship

from app.models.base import Base, TimestampMixin


class AnswerType(str, enum.Enum):
    """Kind of answer a checklist item expects"""
    TEXT = "text"
    YES_NO = "yes_no"
    RICH = "rich"  # media-bearing
    RATING = "rating"


class ChecklistItem(Base, TimestampMixin):
    """
    One audit question of a mission. The full set is replaced on every save.
    """
    __tablename__ = "mission_checklist_items"

    id = Column(Integer, primary_key=True, index=True)
    mission_id = Column(Integer, ForeignKey("missions.id", ondelete="CASCADE"), nullable=False, index=True)

    order_index = Column(Integer, nullable=False, default=0)
    text = Column(Text, nullable=False)
    answer_type = Column(String(20), nullable=False, default=AnswerType.TEXT.value)
    yes_no = Column(Boolean, default=False, nullable=False)  # true only for yes/no items

    requires_photo = Column(Boolean, default=False, nullable=False)
    requires_video = Column(Boolean, default=False, nullable=False)
    requires_comment = Column(Boolean, default=False, nullable=False)
    requires_timer = Column(Boolean, default=False, nullable=False)

    # Relationships
    mission = relationship("Mission", back_populates="checklist_items")
