"""
Pydantic schemas for Submission endpoints
"""
from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Dict, Any, Union
from datetime import datetime


class AnswerIn(BaseModel):
    """
    One checklist answer. The item is addressed by id, or by its position
    in the mission checklist.
    """
    item_id: Optional[int] = Field(default=None, alias="itemId")
    item_index: Optional[int] = Field(default=None, alias="itemIndex")
    yes_no: Optional[bool] = Field(default=None, alias="yesNo")
    text: Optional[str] = None
    rating: Optional[Any] = None
    duration_ms: Optional[int] = Field(default=None, alias="durationMs")
    media_path: Optional[str] = Field(default=None, alias="mediaPath")
    media_type: Optional[str] = Field(default=None, alias="mediaType")
    photo_attachment_id: Optional[int] = Field(default=None, alias="photoAttachmentId")
    order_photo_attachment_id: Optional[int] = Field(default=None, alias="orderPhotoAttachmentId")
    video_attachment_id: Optional[int] = Field(default=None, alias="videoAttachmentId")

    class Config:
        populate_by_name = True

    def attachment_ids(self) -> List[int]:
        return [
            att_id
            for att_id in (self.photo_attachment_id, self.order_photo_attachment_id, self.video_attachment_id)
            if att_id is not None
        ]


class SubmissionCreate(BaseModel):
    """Schema for a field agent's submission"""
    mission_id: int = Field(alias="missionId")
    agent_id: str = Field(alias="agentId")
    started_at: Optional[Union[datetime, int, float, str]] = Field(default=None, alias="startedAt")
    submitted_at: Optional[Union[datetime, int, float, str]] = Field(default=None, alias="submittedAt")
    comment: Optional[str] = None
    gps: Optional[Dict[str, Any]] = None
    device_meta: Optional[Dict[str, Any]] = Field(default=None, alias="deviceMeta")
    answers: List[AnswerIn] = []

    class Config:
        populate_by_name = True

    @field_validator("agent_id", mode="before")
    @classmethod
    def agent_as_text(cls, value):
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("agent_id")
    @classmethod
    def agent_required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("agentId is required")
        return value


class SubmissionCreated(BaseModel):
    ok: bool = True
    id: int
    orgId: int
    answersCount: int
