"""
Report API endpoints
Generate mission reports from submissions, list them and open their PDFs
"""
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import ReportError, StorageError
from app.db.session import get_db
from app.models.report import Report, ReportType
from app.schemas.report import AutoReportRequest, BackfillRequest, ReportResponse
from app.services.report_generation import ReportGenerator, backfill_reports
from app.services.report_service import ReportService, get_report_service
from app.services.s3_service import S3Service, get_s3_service

router = APIRouter()
logger = logging.getLogger(__name__)

STORAGE_PREFIXES = ("public/", "storage/", "reports/")


def _error(status_code: int, message: str, stage: Optional[Dict[str, Any]] = None) -> JSONResponse:
    body: Dict[str, Any] = {"ok": False, "error": message}
    if stage is not None:
        body["stage"] = stage
    return JSONResponse(status_code=status_code, content=body, headers={"Cache-Control": "no-store"})


async def _json_body(request: Request) -> Dict[str, Any]:
    """Request body as a dict; unreadable or non-object bodies count as empty"""
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _flag(value: Optional[str]) -> bool:
    return value == "1"


@router.post("/auto")
async def generate_report(
    request: Request,
    dry: Optional[str] = Query(default=None),
    preview: Optional[str] = Query(default=None),
    db: AsyncSession = Depends(get_db),
    storage: S3Service = Depends(get_s3_service),
    renderer: ReportService = Depends(get_report_service),
):
    """
    Generate the PDF report for a submission and record it on the mission.

    Body: {orgId, missionId, agentId, submissionId}

    With ?dry=1 (or ?preview=1) the normalized payload is returned and no
    report row is written.
    """
    body = await _json_body(request)
    try:
        report_request = AutoReportRequest.model_validate(body)
    except ValidationError as e:
        fields = ", ".join(str(err["loc"][0]) for err in e.errors() if err.get("loc"))
        return _error(status.HTTP_400_BAD_REQUEST, f"Invalid fields: {fields}", {"step": "validate"})

    generator = ReportGenerator(db, storage, renderer)
    try:
        result = await generator.generate(report_request, dry_run=_flag(dry) or _flag(preview))
    except ReportError as e:
        if e.status_code >= 500:
            logger.error(f"Report generation failed at {e.stage.get('step')}: {e.message}")
        else:
            logger.info(f"Report request rejected at {e.stage.get('step')}: {e.message}")
        return _error(e.status_code, e.message, e.stage)
    except Exception as e:
        logger.error(f"Unexpected error generating report: {e}", exc_info=True)
        await db.rollback()
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(e) or type(e).__name__, {"step": "unknown"})

    return JSONResponse(content=result.to_response(), headers={"Cache-Control": "no-store"})


@router.post("/backfill")
async def backfill(
    request: Request,
    db: AsyncSession = Depends(get_db),
    storage: S3Service = Depends(get_s3_service),
    renderer: ReportService = Depends(get_report_service),
):
    """
    Generate reports for an org's submitted submissions that have none.

    Body: {orgId, limit?}; limit defaults to 50 and is clamped to 1..500.
    """
    body = await _json_body(request)
    try:
        backfill_request = BackfillRequest.model_validate(body)
    except ValidationError:
        return _error(status.HTTP_400_BAD_REQUEST, "Invalid backfill request", {"step": "start"})
    if backfill_request.org_id is None:
        return _error(status.HTTP_400_BAD_REQUEST, "orgId is required", {"step": "start"})

    generator = ReportGenerator(db, storage, renderer)
    try:
        result = await backfill_reports(db, generator, backfill_request.org_id, backfill_request.limit)
    except SQLAlchemyError as e:
        logger.error(f"Backfill failed for org {backfill_request.org_id}: {e}", exc_info=True)
        await db.rollback()
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to load submissions", {"step": "fetch-submissions"})
    except Exception as e:
        logger.error(f"Unexpected backfill error for org {backfill_request.org_id}: {e}", exc_info=True)
        await db.rollback()
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(e) or type(e).__name__, {"step": "unknown"})

    return JSONResponse(content=result.to_response(), headers={"Cache-Control": "no-store"})


@router.get("")
async def list_reports(
    org_id: Optional[int] = Query(default=None, alias="orgId"),
    limit: int = Query(default=50),
    db: AsyncSession = Depends(get_db),
):
    """List an org's reports, most recently generated first"""
    if org_id is None:
        return _error(status.HTTP_400_BAD_REQUEST, "orgId is required")

    result = await db.execute(
        select(Report)
        .where(Report.org_id == org_id)
        .order_by(Report.generated_at.desc().nulls_last(), Report.id.desc())
        .limit(max(1, min(limit, 100)))
    )
    reports = []
    for row in result.scalars().all():
        item = ReportResponse.model_validate(row).model_dump(mode="json")
        item["meta"] = item["meta"] or {}
        reports.append(item)

    return {"ok": True, "reports": reports}


def normalize_storage_path(raw: str) -> str:
    """Object key in the reports bucket for a stored pdf reference"""
    path = raw.lstrip("/")
    for prefix in STORAGE_PREFIXES:
        if path.startswith(prefix):
            path = path[len(prefix):]
    return path


def _redirect_to_report(report: Report, storage: S3Service):
    meta = report.meta or {}
    raw = meta.get("pdf_path") or report.pdf_url or ""

    if raw.startswith("http://") or raw.startswith("https://"):
        return RedirectResponse(raw, status_code=status.HTTP_302_FOUND)

    path = normalize_storage_path(raw)
    if not path or path.endswith("/"):
        return _error(status.HTTP_400_BAD_REQUEST, "Malformed pdf_url")

    try:
        exists = storage.object_exists(path, bucket_name=settings.S3_BUCKET_REPORTS)
    except StorageError as e:
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(e))
    if not exists:
        return _error(status.HTTP_404_NOT_FOUND, "Report file not found in storage")

    signed = storage.generate_presigned_url(
        path,
        expiration=settings.REPORT_SIGNED_URL_TTL,
        bucket_name=settings.S3_BUCKET_REPORTS,
    )
    if not signed:
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Could not sign report URL")
    return RedirectResponse(signed, status_code=status.HTTP_302_FOUND)


@router.get("/open")
async def open_report(
    id: Optional[int] = Query(default=None),
    report_id: Optional[int] = Query(default=None, alias="reportId"),
    mission_id: Optional[int] = Query(default=None, alias="missionId"),
    org_id: Optional[int] = Query(default=None, alias="orgId"),
    db: AsyncSession = Depends(get_db),
    storage: S3Service = Depends(get_s3_service),
):
    """
    Redirect (302) to a report's PDF.

    The report is found by id/reportId, or by missionId (optionally scoped
    to orgId). Stored paths are signed for REPORT_SIGNED_URL_TTL seconds.
    """
    wanted_id = id if id is not None else report_id
    if wanted_id is None and mission_id is None:
        return _error(status.HTTP_400_BAD_REQUEST, "id, reportId or missionId is required")

    query = select(Report)
    if wanted_id is not None:
        query = query.where(Report.id == wanted_id)
    else:
        query = query.where(Report.mission_id == mission_id, Report.type == ReportType.MISSION.value)
    if org_id is not None:
        query = query.where(Report.org_id == org_id)

    report = (await db.execute(query.limit(1))).scalar_one_or_none()
    if report is None:
        return _error(status.HTTP_404_NOT_FOUND, "Report not found")
    if not report.pdf_url:
        return _error(status.HTTP_404_NOT_FOUND, "Report not ready")

    return _redirect_to_report(report, storage)
