"""
Pydantic schemas for Mission and Checklist endpoints
"""
from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any, Union
from datetime import datetime

from app.models.mission import MissionStatus


Timestamp = Union[datetime, int, float, str]


class LocationIn(BaseModel):
    """Mission location; radiusM is the geofence radius in meters"""
    address: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    radiusM: Optional[float] = None
    addressParts: Optional[Dict[str, Any]] = None


class MissionCreate(BaseModel):
    """Schema for creating a mission"""
    org_id: Optional[int] = Field(default=None, alias="orgId")
    title: Optional[str] = None
    store: Optional[str] = None
    status: Optional[str] = None
    starts_at: Optional[Timestamp] = Field(default=None, alias="startsAt")
    expires_at: Optional[Timestamp] = Field(default=None, alias="expiresAt")
    location: Optional[LocationIn] = None
    address: Optional[str] = None
    budget: Optional[float] = None
    fee: Optional[float] = None
    requires_video: bool = Field(default=False, alias="requiresVideo")
    requires_photos: bool = Field(default=False, alias="requiresPhotos")
    time_on_site_min: Optional[int] = Field(default=None, alias="timeOnSiteMin")
    template_id: Optional[str] = Field(default=None, alias="templateId")

    class Config:
        populate_by_name = True


class MissionUpdate(BaseModel):
    """
    Schema for patching a mission. Omitted fields stay untouched;
    cost is computed by the database and cannot be set.
    """
    title: Optional[str] = None
    store: Optional[str] = None
    status: Optional[MissionStatus] = None
    starts_at: Optional[Timestamp] = Field(default=None, alias="startsAt")
    expires_at: Optional[Timestamp] = Field(default=None, alias="expiresAt")
    location: Optional[LocationIn] = None
    address: Optional[str] = None
    budget: Optional[float] = None
    fee: Optional[float] = None
    requires_video: Optional[bool] = Field(default=None, alias="requiresVideo")
    requires_photos: Optional[bool] = Field(default=None, alias="requiresPhotos")
    time_on_site_min: Optional[int] = Field(default=None, alias="timeOnSiteMin")
    template_id: Optional[str] = Field(default=None, alias="templateId")

    class Config:
        populate_by_name = True
        use_enum_values = True


class ChecklistRequires(BaseModel):
    photo: bool = False
    video: bool = False
    comment: bool = False
    timer: bool = False
    rating: bool = False


class ChecklistItemIn(BaseModel):
    """One item of a checklist snapshot"""
    text: Optional[str] = None
    yesNo: bool = False
    requires: ChecklistRequires = Field(default_factory=ChecklistRequires)
    answerType: Optional[str] = None
    order_index: Optional[int] = None


class ChecklistSnapshot(BaseModel):
    """Checklist save body in its object form"""
    items: List[ChecklistItemIn] = []

