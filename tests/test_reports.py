"""
Report generation tests - orchestration, backfill, listing and opening PDFs
"""
from datetime import timedelta

import pytest
import pytest_asyncio
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from app.models import Mission, MissionAnswer, Report, Submission
from app.models.report import ReportStatus
from app.services import report_generation
from app.utils.time import utcnow


async def add_submission(db, mission, item_ids=None, submitted_at=None, status="submitted", agent_id="agent-7"):
    submission = Submission(
        org_id=mission.org_id,
        mission_id=mission.id,
        agent_id=agent_id,
        status=status,
        submitted_at=submitted_at or utcnow(),
    )
    db.add(submission)
    await db.flush()

    if item_ids:
        db.add_all([
            MissionAnswer(
                submission_id=submission.id,
                item_id=item_ids[0],
                value_yn=True,
                value_text="Friendly",
                media_path="https://img.test/counter.png",
                media_type="photo",
            ),
            MissionAnswer(submission_id=submission.id, item_id=item_ids[1], value_yn=True),
            MissionAnswer(submission_id=submission.id, item_id=item_ids[2], value_number=4),
            MissionAnswer(submission_id=submission.id, item_id=item_ids[3], value_duration_ms=32500),
        ])
    await db.commit()
    return submission


@pytest_asyncio.fixture
async def submission(db_session, mission, checklist_ids):
    return await add_submission(db_session, mission, checklist_ids)


def auto_body(mission, submission, **overrides):
    body = {
        "orgId": mission.org_id,
        "missionId": mission.id,
        "agentId": "agent-7",
        "submissionId": submission.id,
    }
    body.update(overrides)
    return body


async def report_count(db) -> int:
    return await db.scalar(select(func.count()).select_from(Report))


@pytest.mark.reports
class TestAutoReport:
    """POST /reports/auto"""

    @pytest.mark.asyncio
    async def test_generates_ready_report(self, client, db_session, storage, mission, submission):
        response = await client.post("/api/v1/reports/auto", json=auto_body(mission, submission))

        assert response.status_code == 200
        assert response.headers["cache-control"] == "no-store"
        data = response.json()
        assert data["ok"] is True
        assert data["answersCount"] == 4
        assert data["itemsCount"] == 4
        assert data["photosCount"] == 1
        assert data["stage"]["step"] == "done"
        assert data["stage"]["kpis"] == {"overall": 100, "service": 98, "compliance": 99, "speed": 94}
        assert f"org_{mission.org_id}/mission_{mission.id}/auto_" in data["pdf_url"]
        assert data["pdf_url"].endswith(".pdf")

        report = await db_session.get(Report, data["report_id"])
        assert report.status == ReportStatus.READY.value
        assert report.type == "mission"
        assert report.title == "Mission Report - Store #12"
        assert report.pdf_url == data["pdf_url"]
        assert report.generated_at is not None
        assert report.meta["submission_id"] == str(submission.id)
        assert report.meta["agent_id"] == "agent-7"
        assert report.meta["address"] == "Tahrir, Cairo"

        stored = storage.keys("reports")
        assert stored == [report.meta["pdf_path"]]
        assert storage.objects[("reports", stored[0])].startswith(b"%PDF")
        assert storage.content_types[("reports", stored[0])] == "application/pdf"

    @pytest.mark.asyncio
    async def test_missing_agent_id(self, client, db_session, mission, submission):
        body = auto_body(mission, submission)
        del body["agentId"]

        response = await client.post("/api/v1/reports/auto", json=body)

        assert response.status_code == 400
        data = response.json()
        assert data["ok"] is False
        assert data["error"] == "Missing required fields: agentId"
        assert data["stage"]["step"] == "validate"
        assert await report_count(db_session) == 0

    @pytest.mark.asyncio
    async def test_all_fields_missing_listed_in_order(self, client):
        response = await client.post("/api/v1/reports/auto", json={"agentId": ""})

        assert response.status_code == 400
        assert response.json()["error"] == "Missing required fields: orgId, missionId, agentId, submissionId"

    @pytest.mark.asyncio
    async def test_unparseable_body_counts_as_empty(self, client):
        response = await client.post(
            "/api/v1/reports/auto",
            content=b"not json",
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400
        assert response.json()["error"].startswith("Missing required fields: orgId")

    @pytest.mark.asyncio
    async def test_invalid_field_type(self, client, mission, submission):
        response = await client.post(
            "/api/v1/reports/auto",
            json=auto_body(mission, submission, orgId="acme"),
        )
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid fields: orgId"

    @pytest.mark.asyncio
    async def test_regeneration_reuses_row(self, client, db_session, mission, submission):
        first = (await client.post("/api/v1/reports/auto", json=auto_body(mission, submission))).json()
        second = (await client.post("/api/v1/reports/auto", json=auto_body(mission, submission))).json()

        assert first["report_id"] == second["report_id"]
        assert await report_count(db_session) == 1

    @pytest.mark.asyncio
    async def test_unknown_submission(self, client, mission):
        response = await client.post(
            "/api/v1/reports/auto",
            json={"orgId": mission.org_id, "missionId": mission.id, "agentId": "a", "submissionId": 404},
        )
        assert response.status_code == 404
        assert response.json()["error"] == "submission not found"
        assert response.json()["stage"]["step"] == "fetch-submission"

    @pytest.mark.asyncio
    async def test_submission_of_other_org(self, client, mission, submission):
        response = await client.post(
            "/api/v1/reports/auto",
            json=auto_body(mission, submission, orgId=mission.org_id + 1),
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_submission_of_other_mission(self, client, db_session, mission, submission):
        other = Mission(org_id=mission.org_id, title="Other")
        db_session.add(other)
        await db_session.commit()

        response = await client.post(
            "/api/v1/reports/auto",
            json=auto_body(mission, submission, missionId=other.id),
        )

        assert response.status_code == 404
        assert response.json()["error"] == "submission does not belong to mission"
        assert await report_count(db_session) == 0

    @pytest.mark.asyncio
    async def test_storage_failure_marks_failed(self, client, db_session, storage, mission, submission):
        storage.fail_uploads = True

        response = await client.post("/api/v1/reports/auto", json=auto_body(mission, submission))

        assert response.status_code == 500
        data = response.json()
        assert data["ok"] is False
        assert data["stage"]["step"] == "upload-pdf"
        assert "simulated outage" in data["error"]

        report = await db_session.scalar(select(Report))
        assert report.status == ReportStatus.FAILED.value
        assert report.pdf_url is None
        assert report.meta["failed_step"] == "upload-pdf"
        assert "simulated outage" in report.meta["error"]

    @pytest.mark.asyncio
    async def test_final_write_failure_marks_failed(self, client, db_session, storage, mission, submission, monkeypatch):
        real_upload = storage.upload_bytes
        real_commit = db_session.commit
        state = {"uploaded": False, "failed": False}

        def upload_then_arm(*args, **kwargs):
            key = real_upload(*args, **kwargs)
            state["uploaded"] = True
            return key

        async def commit():
            if state["uploaded"] and not state["failed"]:
                state["failed"] = True
                raise SQLAlchemyError("database went away")
            await real_commit()

        monkeypatch.setattr(storage, "upload_bytes", upload_then_arm)
        monkeypatch.setattr(db_session, "commit", commit)

        response = await client.post("/api/v1/reports/auto", json=auto_body(mission, submission))

        assert response.status_code == 500
        data = response.json()
        assert data["ok"] is False
        assert data["stage"]["step"] == "upsert-report-ready"
        assert "database went away" in data["error"]

        report = await db_session.scalar(select(Report))
        assert report.status == ReportStatus.FAILED.value
        assert report.pdf_url is None
        assert report.meta["failed_step"] == "upsert-report-ready"
        assert "database went away" in report.meta["error"]

    @pytest.mark.asyncio
    async def test_dry_run_writes_nothing(self, client, db_session, storage, mission, submission):
        response = await client.post("/api/v1/reports/auto?dry=1", json=auto_body(mission, submission))

        assert response.status_code == 200
        data = response.json()
        assert data["dry"] is True
        assert data["report_id"] is None
        assert data["payload"]["title"] == "Mission Report - Store #12"
        assert data["payload"]["photoUrls"] == ["https://img.test/counter.png"]
        assert [i["title"] for i in data["payload"]["items"]][0] == "Greeting friendly"
        assert await report_count(db_session) == 0
        assert storage.objects == {}

    @pytest.mark.asyncio
    async def test_preview_flag(self, client, db_session, mission, submission):
        response = await client.post("/api/v1/reports/auto?preview=1", json=auto_body(mission, submission))
        assert response.json()["dry"] is True
        assert await report_count(db_session) == 0


@pytest.mark.reports
class TestBackfill:
    """POST /reports/backfill"""

    @pytest.mark.asyncio
    async def test_generates_missing_reports(self, client, db_session, org, mission, checklist_ids):
        now = utcnow()
        other_mission = Mission(org_id=org.id, title="Retail Audit")
        db_session.add(other_mission)
        await db_session.commit()

        first = await add_submission(db_session, mission, checklist_ids, submitted_at=now - timedelta(hours=3))
        second = await add_submission(db_session, other_mission, submitted_at=now - timedelta(hours=2))
        await add_submission(db_session, mission, submitted_at=now, status="draft")

        response = await client.post("/api/v1/reports/backfill", json={"orgId": org.id})

        assert response.status_code == 200
        data = response.json()
        assert data["ok"] is True
        assert data["processed"] == 2
        assert data["generated"] == 2
        assert [item["submissionId"] for item in data["items"]] == [first.id, second.id]
        assert all(item["generated"] for item in data["items"])
        assert await report_count(db_session) == 2

        again = (await client.post("/api/v1/reports/backfill", json={"orgId": org.id})).json()
        assert again["generated"] == 0
        assert [item["generated"] for item in again["items"]] == [False, False]
        assert {item["reportId"] for item in again["items"]} == {i["reportId"] for i in data["items"]}

    @pytest.mark.asyncio
    async def test_failure_recorded_per_item(self, client, db_session, org, mission, checklist_ids):
        now = utcnow()
        orphan = Submission(org_id=org.id, mission_id=9999, agent_id="ghost", submitted_at=now - timedelta(hours=1))
        db_session.add(orphan)
        await db_session.commit()
        good = await add_submission(db_session, mission, checklist_ids, submitted_at=now)

        data = (await client.post("/api/v1/reports/backfill", json={"orgId": org.id, "limit": 10})).json()

        assert data["processed"] == 2
        assert data["generated"] == 1
        failed, ok = data["items"]
        assert failed == {"submissionId": orphan.id, "generated": False, "error": "mission not found"}
        assert ok["submissionId"] == good.id
        assert ok["generated"] is True

    @pytest.mark.asyncio
    async def test_free_form_meta_does_not_stop_scan(self, client, db_session, org, mission, checklist_ids):
        now = utcnow()
        legacy = Submission(
            org_id=org.id,
            mission_id=mission.id,
            agent_id="legacy-app",
            submitted_at=now - timedelta(hours=1),
            meta_json=["legacy"],
        )
        db_session.add(legacy)
        await db_session.commit()
        good = await add_submission(db_session, mission, checklist_ids, submitted_at=now)

        response = await client.post("/api/v1/reports/backfill", json={"orgId": org.id})

        assert response.status_code == 200
        data = response.json()
        assert data["processed"] == 2
        assert data["generated"] == 2
        assert [item["submissionId"] for item in data["items"]] == [legacy.id, good.id]

    @pytest.mark.asyncio
    async def test_unexpected_error_recorded_per_item(self, client, db_session, org, mission, checklist_ids, monkeypatch):
        now = utcnow()
        broken = await add_submission(db_session, mission, checklist_ids, submitted_at=now - timedelta(hours=1))
        good = await add_submission(db_session, mission, checklist_ids, submitted_at=now)
        # The failed item is rolled back, which expires rows loaded in this session
        broken_id, good_id = broken.id, good.id
        real_normalize = report_generation.normalize_submission

        async def normalize(db, submission, resolve_url):
            if submission.id == broken_id:
                raise RuntimeError("corrupt answers")
            return await real_normalize(db, submission, resolve_url)

        monkeypatch.setattr(report_generation, "normalize_submission", normalize)

        response = await client.post("/api/v1/reports/backfill", json={"orgId": org.id})

        assert response.status_code == 200
        data = response.json()
        assert data["processed"] == 2
        assert data["generated"] == 1
        failed, ok = data["items"]
        assert failed == {"submissionId": broken_id, "generated": False, "error": "corrupt answers"}
        assert ok["submissionId"] == good_id
        assert ok["generated"] is True

    @pytest.mark.asyncio
    async def test_limit_takes_newest(self, client, db_session, org, mission, checklist_ids):
        now = utcnow()
        await add_submission(db_session, mission, checklist_ids, submitted_at=now - timedelta(days=1))
        newest = await add_submission(db_session, mission, checklist_ids, submitted_at=now)

        data = (await client.post("/api/v1/reports/backfill", json={"orgId": org.id, "limit": 1})).json()

        assert data["processed"] == 1
        assert data["items"][0]["submissionId"] == newest.id

    @pytest.mark.asyncio
    async def test_requires_org(self, client):
        response = await client.post("/api/v1/reports/backfill", json={})
        assert response.status_code == 400
        assert response.json()["error"] == "orgId is required"


@pytest.mark.reports
class TestListAndOpen:
    """GET /reports and GET /reports/open"""

    @pytest.mark.asyncio
    async def test_list(self, client, mission, submission):
        await client.post("/api/v1/reports/auto", json=auto_body(mission, submission))

        response = await client.get(f"/api/v1/reports?orgId={mission.org_id}")

        assert response.status_code == 200
        reports = response.json()["reports"]
        assert len(reports) == 1
        assert reports[0]["status"] == "Ready"
        assert reports[0]["meta"]["submission_id"] == str(submission.id)

    @pytest.mark.asyncio
    async def test_list_requires_org(self, client):
        response = await client.get("/api/v1/reports")
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_open_signs_stored_path(self, client, mission, submission):
        generated = (await client.post("/api/v1/reports/auto", json=auto_body(mission, submission))).json()

        response = await client.get(f"/api/v1/reports/open?id={generated['report_id']}")

        assert response.status_code == 302
        location = response.headers["location"]
        assert location.startswith(f"https://signed.example.test/reports/org_{mission.org_id}/mission_{mission.id}/")
        assert location.endswith("?expires=3600")

    @pytest.mark.asyncio
    async def test_open_by_mission(self, client, mission, submission):
        await client.post("/api/v1/reports/auto", json=auto_body(mission, submission))

        response = await client.get(f"/api/v1/reports/open?missionId={mission.id}&orgId={mission.org_id}")
        assert response.status_code == 302

    @pytest.mark.asyncio
    async def test_open_external_url_redirects_directly(self, client, db_session, org):
        report = Report(
            org_id=org.id, mission_id=1, status="Ready", pdf_url="https://cdn.test/r.pdf", meta={},
        )
        db_session.add(report)
        await db_session.commit()

        response = await client.get(f"/api/v1/reports/open?reportId={report.id}")

        assert response.status_code == 302
        assert response.headers["location"] == "https://cdn.test/r.pdf"

    @pytest.mark.asyncio
    async def test_open_missing_object(self, client, db_session, org):
        report = Report(org_id=org.id, mission_id=1, status="Ready", pdf_url="public/reports/org_1/gone.pdf")
        db_session.add(report)
        await db_session.commit()

        response = await client.get(f"/api/v1/reports/open?id={report.id}")

        assert response.status_code == 404
        assert response.json()["error"] == "Report file not found in storage"

    @pytest.mark.asyncio
    async def test_open_not_ready(self, client, db_session, org):
        report = Report(org_id=org.id, mission_id=1, status="Generating")
        db_session.add(report)
        await db_session.commit()

        response = await client.get(f"/api/v1/reports/open?id={report.id}")
        assert response.status_code == 404
        assert response.json()["error"] == "Report not ready"

    @pytest.mark.asyncio
    async def test_open_unknown(self, client):
        response = await client.get("/api/v1/reports/open?id=123")
        assert response.status_code == 404
        assert response.json()["error"] == "Report not found"

    @pytest.mark.asyncio
    async def test_open_requires_reference(self, client):
        response = await client.get("/api/v1/reports/open")
        assert response.status_code == 400
