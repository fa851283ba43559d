"""
Submission intake and media upload tests
"""
import pytest
from sqlalchemy import select

from app.models import MissionAnswer, MissionAttachment, Submission, SubmissionItem


@pytest.mark.submissions
class TestSubmissionIntake:
    """POST /submissions"""

    @pytest.mark.asyncio
    async def test_stores_answers(self, client, db_session, mission, checklist_ids):
        response = await client.post(
            "/api/v1/submissions",
            json={
                "missionId": mission.id,
                "agentId": 42,
                "startedAt": "2026-03-02T09:00:00Z",
                "comment": "Busy lunch hour",
                "gps": {"lat": 30.04, "lng": 31.23},
                "deviceMeta": {"platform": "ios"},
                "answers": [
                    {"itemIndex": 0, "yesNo": True, "text": "Smiled"},
                    {"itemId": checklist_ids[2], "rating": 9},
                    {"itemIndex": 3, "durationMs": 185000},
                ],
            },
        )

        assert response.status_code == 201
        data = response.json()
        assert data["ok"] is True
        assert data["orgId"] == mission.org_id
        assert data["answersCount"] == 3

        submission = await db_session.get(Submission, data["id"])
        assert submission.agent_id == "42"
        assert submission.status == "submitted"
        assert submission.submitted_at is not None
        assert submission.meta_json["gps"] == {"lat": 30.04, "lng": 31.23}
        assert submission.meta_json["payload"]["answers"][1]["rating"] == 9

        answers = (await db_session.execute(
            select(MissionAnswer).where(MissionAnswer.submission_id == submission.id).order_by(MissionAnswer.id)
        )).scalars().all()
        assert [a.item_id for a in answers] == [checklist_ids[0], checklist_ids[2], checklist_ids[3]]
        assert answers[0].value_yn is True
        assert answers[1].value_number == 5
        assert answers[2].value_duration_ms == 185000

    @pytest.mark.asyncio
    async def test_attachment_answers_get_legacy_rows(self, client, db_session, mission, checklist_ids):
        attachment = MissionAttachment(
            org_id=mission.org_id, mission_id=mission.id, path="1/1/photos/u__a.jpg", content_type="image/jpeg",
        )
        db_session.add(attachment)
        await db_session.commit()

        response = await client.post(
            "/api/v1/submissions",
            json={
                "missionId": mission.id,
                "agentId": "agent-1",
                "answers": [{"itemId": checklist_ids[1], "yesNo": False, "photoAttachmentId": attachment.id}],
            },
        )

        assert response.status_code == 201
        rows = (await db_session.execute(select(SubmissionItem))).scalars().all()
        assert len(rows) == 1
        assert rows[0].photo_attachment_id == attachment.id
        assert rows[0].checklist_item_id == checklist_ids[1]
        assert rows[0].answer_type == "PHOTO"

    @pytest.mark.asyncio
    async def test_unknown_attachment(self, client, mission):
        response = await client.post(
            "/api/v1/submissions",
            json={"missionId": mission.id, "agentId": "a", "answers": [{"videoAttachmentId": 77}]},
        )
        assert response.status_code == 400
        assert "77" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_unknown_mission(self, client):
        response = await client.post("/api/v1/submissions", json={"missionId": 555, "agentId": "a"})
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_blank_agent_rejected(self, client, mission):
        response = await client.post("/api/v1/submissions", json={"missionId": mission.id, "agentId": "  "})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_list_for_org(self, client, mission):
        await client.post("/api/v1/submissions", json={"missionId": mission.id, "agentId": "a1"})

        response = await client.get(f"/api/v1/submissions?orgId={mission.org_id}")

        assert response.status_code == 200
        submissions = response.json()["submissions"]
        assert len(submissions) == 1
        assert submissions[0]["mission_title"] == "Fast Food Visit"
        assert submissions[0]["agent_id"] == "a1"


@pytest.mark.submissions
class TestUploads:
    """POST /uploads"""

    @pytest.mark.asyncio
    async def test_photo_upload(self, client, db_session, storage, mission):
        response = await client.post(
            "/api/v1/uploads",
            data={"orgId": str(mission.org_id), "missionId": str(mission.id), "kind": "photo"},
            files={"file": ("shelf photo #1.png", b"\x89PNG fake", "image/png")},
        )

        assert response.status_code == 201
        data = response.json()
        prefix = f"{mission.org_id}/{mission.id}/photos/"
        assert data["path"].startswith(prefix)
        assert data["path"].endswith("__shelf_photo__1.png")
        assert data["type"] == "image/png"
        assert data["size"] == 9
        assert data["url"].endswith(data["path"])
        assert storage.object_exists(data["path"], bucket_name="mission-media")

        attachment = await db_session.get(MissionAttachment, data["attachmentId"])
        assert attachment.path == data["path"]

    @pytest.mark.asyncio
    async def test_video_goes_to_videos_folder(self, client, mission):
        response = await client.post(
            "/api/v1/uploads",
            data={"orgId": str(mission.org_id), "missionId": str(mission.id), "kind": "video", "filename": "walk.mp4"},
            files={"file": ("blob", b"\x00\x00\x00\x18ftyp", "video/mp4")},
        )
        assert response.status_code == 201
        assert "/videos/" in response.json()["path"]
        assert response.json()["path"].endswith("__walk.mp4")

    @pytest.mark.asyncio
    async def test_rejects_other_types(self, client, storage, mission):
        response = await client.post(
            "/api/v1/uploads",
            data={"orgId": str(mission.org_id), "missionId": str(mission.id)},
            files={"file": ("notes.txt", b"hello", "text/plain")},
        )
        assert response.status_code == 400
        assert storage.objects == {}

    @pytest.mark.asyncio
    async def test_rejects_empty_file(self, client, mission):
        response = await client.post(
            "/api/v1/uploads",
            data={"orgId": str(mission.org_id), "missionId": str(mission.id)},
            files={"file": ("empty.png", b"", "image/png")},
        )
        assert response.status_code == 400
