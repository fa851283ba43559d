"""
Mission media upload endpoints
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import StorageError
from app.db.session import get_db
from app.models import MissionAttachment
from app.services.s3_service import S3Service, get_s3_service
from app.utils.media_paths import is_media_type, media_object_path

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("", status_code=status.HTTP_201_CREATED)
async def upload_media(
    file: UploadFile = File(...),
    org_id: int = Form(..., alias="orgId"),
    mission_id: int = Form(..., alias="missionId"),
    kind: str = Form("photo"),
    filename: Optional[str] = Form(None),
    db: AsyncSession = Depends(get_db),
    storage: S3Service = Depends(get_s3_service),
):
    """
    Upload a photo or video for a mission

    - Accepts image/* and video/* only
    - Stores at {org}/{mission}/{photos|videos}/{uuid}__{filename} in the media bucket
    - Registers a mission_attachments row that answers can reference
    """
    name = filename or file.filename or "upload.bin"
    content_type = file.content_type or "application/octet-stream"
    data = await file.read()
    size = len(data)

    logger.info(f"Upload for mission {mission_id}: {name} ({content_type}, {size} bytes)")

    if size == 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Empty file payload"
        )
    if size > settings.MAX_UPLOAD_SIZE:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File exceeds {settings.MAX_UPLOAD_SIZE} bytes"
        )
    if not is_media_type(content_type):
        logger.warning(f"Rejected upload type: {content_type}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only image/* or video/* allowed"
        )

    path = media_object_path(org_id, mission_id, kind, name)
    try:
        storage.upload_bytes(data, path, content_type=content_type, bucket_name=settings.S3_BUCKET_MEDIA)
    except StorageError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )

    attachment = MissionAttachment(
        org_id=org_id,
        mission_id=mission_id,
        path=path,
        content_type=content_type,
        size=size,
    )
    db.add(attachment)
    await db.flush()

    return {
        "ok": True,
        "path": path,
        "url": storage.get_public_url(path, bucket_name=settings.S3_BUCKET_MEDIA),
        "attachmentId": attachment.id,
        "type": content_type,
        "size": size,
    }
