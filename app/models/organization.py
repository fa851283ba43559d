"""
Organization model - owner of missions, submissions and reports
"""
from sqlalchemy import Column, Integer, String
from sqlalchemy.orm import relationship

from app.models.base import Base, TimestampMixin


class Organization(Base, TimestampMixin):
    """
    Client organization commissioning mystery-shopping missions
    """
    __tablename__ = "orgs"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)

    # Relationships
    missions = relationship("Mission", back_populates="organization", passive_deletes=True)
