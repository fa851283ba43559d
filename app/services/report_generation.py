"""
Report generation orchestration

A report row is keyed by (org, mission, type) and moves through
Generating -> Ready, or Generating -> Failed once it exists. The row is
written as Generating and committed before rendering, so an interrupted
run stays visible.
"""
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import (
    ReportError,
    MissingFieldsError,
    ResourceNotFoundError,
    ReportStorageError,
    ReportPersistenceError,
    StorageError,
)
from app.models.mission import Mission
from app.models.report import Report, ReportStatus, ReportType
from app.models.submission import Submission, SubmissionStatus
from app.schemas.report import AutoReportRequest, BackfillItem
from app.services.answer_normalizer import media_url_resolver, normalize_submission
from app.services.kpi_service import compute_kpis
from app.services.report_service import ReportPayload, ReportService
from app.utils.time import utcnow

logger = logging.getLogger(__name__)

BACKFILL_DEFAULT_LIMIT = 50
BACKFILL_MAX_LIMIT = 500


def _fmt(value: Optional[datetime]) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value else "-"


def report_storage_path(org_id: int, mission_id: int, epoch_ms: Optional[int] = None) -> str:
    """Object key of a generated report in the reports bucket"""
    if epoch_ms is None:
        epoch_ms = int(time.time() * 1000)
    return f"org_{org_id}/mission_{mission_id}/auto_{epoch_ms}.pdf"


@dataclass
class GenerationResult:
    """Outcome of a successful generation (or dry run)"""
    stage: Dict[str, Any]
    answers_count: int
    items_count: int
    photos_count: int
    report_id: Optional[int] = None
    pdf_url: Optional[str] = None
    payload: Optional[Dict[str, Any]] = None

    def to_response(self) -> Dict[str, Any]:
        body = {
            "ok": True,
            "pdf_url": self.pdf_url,
            "report_id": self.report_id,
            "answersCount": self.answers_count,
            "itemsCount": self.items_count,
            "photosCount": self.photos_count,
            "stage": self.stage,
        }
        if self.payload is not None:
            body["dry"] = True
            body["payload"] = self.payload
        return body


@dataclass
class BackfillResult:
    processed: int = 0
    generated: int = 0
    items: List[BackfillItem] = field(default_factory=list)

    def to_response(self) -> Dict[str, Any]:
        return {
            "ok": True,
            "processed": self.processed,
            "generated": self.generated,
            "items": [item.model_dump(exclude_none=True) for item in self.items],
        }


class ReportGenerator:
    """Builds, stores and records the report for one submission"""

    def __init__(self, db: AsyncSession, storage, renderer: ReportService):
        self.db = db
        self.storage = storage
        self.renderer = renderer

    async def generate(self, request: AutoReportRequest, dry_run: bool = False) -> GenerationResult:
        """
        Generate (or regenerate) the mission report for a submission

        Args:
            request: Org, mission, agent and submission ids
            dry_run: Stop after normalization and return the render payload

        Returns:
            GenerationResult

        Raises:
            ReportError: Subclass matching the failed step
        """
        stage: Dict[str, Any] = {"step": "validate", "submission_id": request.submission_id}

        missing = request.missing_fields()
        if missing:
            raise MissingFieldsError(missing, stage)

        stage["step"] = "fetch-submission"
        submission = await self.db.scalar(
            select(Submission).where(Submission.id == request.submission_id)
        )
        if submission is None or submission.org_id != request.org_id:
            raise ResourceNotFoundError("submission not found", stage)
        if submission.mission_id != request.mission_id:
            stage["submission_mission_id"] = submission.mission_id
            raise ResourceNotFoundError("submission does not belong to mission", stage)
        stage["submitted_at"] = submission.submitted_at.isoformat() if submission.submitted_at else None

        stage["step"] = "fetch-mission"
        mission = await self.db.scalar(select(Mission).where(Mission.id == submission.mission_id))
        if mission is None:
            raise ResourceNotFoundError("mission not found", stage)

        stage["step"] = "normalize-answers"
        normalized = await normalize_submission(self.db, submission, media_url_resolver(self.storage))
        kpis = compute_kpis(normalized.items)
        stage.update(
            answersCount=normalized.answers_count,
            itemsCount=len(normalized.items),
            photosCount=normalized.photos_count,
            kpis=kpis.to_dict(),
        )

        store = mission.store or ""
        address = (mission.location or {}).get("address") or ""
        title = f"Mission Report - {store or mission.title or mission.id}"
        meta = {
            "agent_id": request.agent_id,
            "submission_id": str(submission.id),
            "mission_title": mission.title,
            "store": store,
            "address": address,
            "window_text": f"{_fmt(mission.starts_at)} -> {_fmt(mission.expires_at)}",
            "submitted_at": submission.submitted_at.isoformat() if submission.submitted_at else None,
        }
        payload = ReportPayload(
            title=title,
            mission_title=mission.title or f"Mission {mission.id}",
            store=store or None,
            address=address or None,
            window_text=meta["window_text"],
            agent_id=request.agent_id,
            submitted_at=submission.submitted_at,
            kpis=kpis,
            items=normalized.items,
            gallery_urls=normalized.gallery_urls,
        )

        result = GenerationResult(
            stage=stage,
            answers_count=normalized.answers_count,
            items_count=len(normalized.items),
            photos_count=normalized.photos_count,
        )

        if dry_run:
            stage["step"] = "dry-run"
            result.payload = {
                "title": title,
                "meta": meta,
                "kpis": kpis.to_dict(),
                "items": [item.to_dict() for item in normalized.items],
                "photoUrls": normalized.gallery_urls,
            }
            return result

        stage["step"] = "upsert-report-generating"
        report = await self._claim_report(submission.org_id, mission.id, title, kpis.to_dict(), meta, stage)
        stage["report_id"] = report.id
        result.report_id = report.id
        logger.info(f"Report {report.id} generating for submission {submission.id} (mission {mission.id})")

        try:
            stage["step"] = "render-pdf"
            pdf_bytes = await self.renderer.render(payload)

            stage["step"] = "upload-pdf"
            pdf_path = report_storage_path(submission.org_id, mission.id)
            try:
                self.storage.upload_bytes(
                    pdf_bytes,
                    pdf_path,
                    content_type="application/pdf",
                    bucket_name=settings.S3_BUCKET_REPORTS,
                )
            except StorageError as e:
                raise ReportStorageError(f"upload failed: {e}", stage) from e

            stage["step"] = "public-url"
            pdf_url = self.storage.get_public_url(pdf_path, bucket_name=settings.S3_BUCKET_REPORTS)

            stage["step"] = "upsert-report-ready"
            meta = {**meta, "pdf_path": pdf_path}
            try:
                report.status = ReportStatus.READY.value
                report.generated_at = utcnow()
                report.title = title
                report.pdf_url = pdf_url
                report.kpis = kpis.to_dict()
                report.meta = meta
                await self.db.commit()
            except SQLAlchemyError as e:
                raise ReportPersistenceError(f"report update failed: {e}", stage) from e
        except Exception as e:
            await self._mark_failed(report.id, meta, e, stage)
            if isinstance(e, ReportError):
                raise
            raise ReportError(str(e) or type(e).__name__, stage) from e

        stage["step"] = "done"
        result.pdf_url = pdf_url
        logger.info(f"Report {report.id} ready: {pdf_path}")
        return result

    async def _claim_report(
        self,
        org_id: int,
        mission_id: int,
        title: str,
        kpis: Dict[str, int],
        meta: Dict[str, Any],
        stage: Dict[str, Any],
    ) -> Report:
        """Insert or overwrite the (org, mission, type) row as Generating and commit it"""
        try:
            report = await self.db.scalar(
                select(Report).where(
                    Report.org_id == org_id,
                    Report.mission_id == mission_id,
                    Report.type == ReportType.MISSION.value,
                )
            )
            if report is None:
                report = Report(org_id=org_id, mission_id=mission_id, type=ReportType.MISSION.value)
                self.db.add(report)
            report.status = ReportStatus.GENERATING.value
            report.generated_at = utcnow()
            report.title = title
            report.pdf_url = None
            report.kpis = kpis
            report.meta = meta
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Report upsert failed for mission {mission_id}: {e}", exc_info=True)
            raise ReportPersistenceError(f"reports upsert failed: {e}", stage) from e
        await self.db.refresh(report)
        return report

    async def _mark_failed(self, report_id: int, meta: Dict[str, Any], error: Exception, stage: Dict[str, Any]):
        """Move a claimed row to Failed with the error folded into its meta"""
        message = getattr(error, "message", None) or str(error) or type(error).__name__
        logger.error(
            f"Report {report_id} failed at {stage.get('step')}: {message}",
            exc_info=True,
        )
        try:
            await self.db.rollback()
            report = await self.db.get(Report, report_id)
            if report is None:
                return
            report.status = ReportStatus.FAILED.value
            report.meta = {**meta, "error": message, "failed_step": stage.get("step")}
            await self.db.commit()
        except SQLAlchemyError:
            # The original error is raised by the caller
            logger.error(f"Could not mark report {report_id} as Failed", exc_info=True)


def clamp_backfill_limit(limit: Optional[int]) -> int:
    if limit is None:
        return BACKFILL_DEFAULT_LIMIT
    return max(1, min(BACKFILL_MAX_LIMIT, limit))


async def find_report_for_submission(db: AsyncSession, org_id: int, submission_id: int) -> Optional[int]:
    """Id of a report of the org whose meta records this submission id"""
    report_id = await db.scalar(
        select(Report.id)
        .where(
            Report.org_id == org_id,
            Report.meta["submission_id"].as_string() == str(submission_id),
        )
        .limit(1)
    )
    return report_id


async def backfill_reports(
    db: AsyncSession,
    generator: ReportGenerator,
    org_id: int,
    limit: Optional[int] = None,
) -> BackfillResult:
    """
    Generate reports for submitted submissions that have none yet.

    The newest `limit` submissions are processed one after another. A failure is
    recorded on its own entry and the scan continues.
    """
    result = await db.execute(
        select(Submission)
        .where(
            Submission.org_id == org_id,
            Submission.status == SubmissionStatus.SUBMITTED.value,
        )
        .order_by(Submission.submitted_at.desc().nulls_last(), Submission.id.desc())
        .limit(clamp_backfill_limit(limit))
    )
    # Plain values: a rollback after a failed item expires loaded rows.
    # Oldest first so the newest submission of a mission writes last.
    pending = [
        AutoReportRequest(
            org_id=s.org_id,
            mission_id=s.mission_id,
            agent_id=s.agent_id,
            submission_id=s.id,
        )
        for s in reversed(result.scalars().all())
    ]
    outcome = BackfillResult()

    for request in pending:
        submission_id = request.submission_id
        outcome.processed += 1
        existing_id = await find_report_for_submission(db, org_id, submission_id)
        if existing_id is not None:
            outcome.items.append(BackfillItem(submissionId=submission_id, generated=False, reportId=existing_id))
            continue

        try:
            generated = await generator.generate(request)
        except ReportError as e:
            logger.warning(f"Backfill: submission {submission_id} failed at {e.stage.get('step')}: {e.message}")
            outcome.items.append(BackfillItem(submissionId=submission_id, generated=False, error=e.message))
            continue
        except Exception as e:
            logger.error(f"Backfill: submission {submission_id} failed: {e}", exc_info=True)
            await db.rollback()
            outcome.items.append(
                BackfillItem(submissionId=submission_id, generated=False, error=str(e) or type(e).__name__)
            )
            continue

        outcome.generated += 1
        outcome.items.append(
            BackfillItem(submissionId=submission_id, generated=True, reportId=generated.report_id)
        )

    logger.info(f"Backfill for org {org_id}: {outcome.generated}/{outcome.processed} generated")
    return outcome
