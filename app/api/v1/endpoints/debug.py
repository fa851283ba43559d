"""
Debug and demo endpoints

Mounted only when ENABLE_DEBUG_ROUTES is set; every route answers 404 in
production.
"""
import logging
import time

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import StorageError
from app.db.session import get_db
from app.services.s3_service import S3Service, get_s3_service
from app.utils.demo_data import DemoDataset
from app.utils.seed_data import seed_demo

logger = logging.getLogger(__name__)


def refuse_in_production():
    if settings.ENVIRONMENT == "production":
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Not Found"
        )


router = APIRouter(dependencies=[Depends(refuse_in_production)])


def get_demo_dataset(request: Request) -> DemoDataset:
    """The demo fixture owned by the application object"""
    return request.app.state.demo_dataset


@router.get("/stats")
async def demo_stats(dataset: DemoDataset = Depends(get_demo_dataset)):
    """Totals over the in-memory demo missions"""
    return dataset.stats()


@router.post("/seed-demo")
async def seed_demo_data(db: AsyncSession = Depends(get_db)):
    """
    Insert a demo org, mission, checklist and submission
    """
    created = await seed_demo(db)
    await db.commit()
    logger.info(f"Demo data seeded: {created}")
    return {"ok": True, **created}


@router.get("/storage")
async def storage_check(storage: S3Service = Depends(get_s3_service)):
    """
    Storage round trip: write a small text object to the media bucket,
    return its public URL and list the first 50 keys of the bucket.
    Storage errors are reported in the body.
    """
    bucket = settings.S3_BUCKET_MEDIA
    path = f"test/hello_{int(time.time() * 1000)}.txt"

    upload_error = None
    public_url = None
    try:
        storage.upload_bytes(b"hello from debug route\n", path, content_type="text/plain", bucket_name=bucket)
        public_url = storage.get_public_url(path, bucket_name=bucket)
    except StorageError as e:
        logger.warning(f"Storage check upload failed: {e}")
        upload_error = str(e)

    list_error = None
    keys = []
    try:
        keys = storage.list_objects("", bucket_name=bucket, limit=50)
    except StorageError as e:
        logger.warning(f"Storage check listing failed: {e}")
        list_error = str(e)

    return {
        "ok": upload_error is None and list_error is None,
        "buckets": {"media": bucket, "reports": settings.S3_BUCKET_REPORTS},
        "upload": {"path": path, "error": upload_error},
        "publicUrl": public_url,
        "objects": {"keys": keys, "error": list_error},
    }
