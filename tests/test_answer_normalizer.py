"""
Answer normalization tests - value coercion, merging and checklist layout
"""
import math

import pytest

from app.models import MissionAnswer, MissionAttachment, Submission, SubmissionItem
from app.models.checklist import AnswerType
from app.services.answer_normalizer import (
    AttachmentAnswer,
    AttachmentRef,
    ChecklistDefinition,
    InlineMediaAnswer,
    PayloadAnswer,
    clamp_rating,
    gallery_urls,
    is_photo_media,
    ms_to_seconds,
    normalize_items,
    normalize_submission,
    normalize_variant,
)
from app.utils.time import utcnow


def resolve(path):
    if path.startswith("https://"):
        return path
    return f"https://cdn.test/{path}"


@pytest.mark.normalizer
class TestValueCoercion:
    """Rating, duration and media type rules"""

    @pytest.mark.parametrize("raw,expected", [
        (4, 4),
        (7, 5),
        (4.5, 5),
        (1.4, 1),
        (0, None),
        (0.4, None),
        (-3, None),
        ("3", 3),
        ("abc", None),
        (math.nan, None),
        (math.inf, None),
        (True, None),
        (None, None),
    ])
    def test_clamp_rating(self, raw, expected):
        assert clamp_rating(raw) == expected

    def test_duration_rounds_half_up(self):
        assert ms_to_seconds(32500) == 33
        assert ms_to_seconds(32499) == 32
        assert ms_to_seconds(0) == 0
        assert ms_to_seconds(None) is None
        assert ms_to_seconds("soon") is None

    def test_photo_media(self):
        assert is_photo_media("photo")
        assert is_photo_media("image/jpeg")
        assert is_photo_media("IMAGE/PNG")
        assert not is_photo_media("video")
        assert not is_photo_media("video/mp4")
        assert not is_photo_media(None)


@pytest.mark.normalizer
class TestVariants:
    """Each stored answer shape converts to the same raw answer"""

    def test_inline_answer(self):
        raw = normalize_variant(
            InlineMediaAnswer(
                item_id=3,
                value_yn=True,
                value_text="  friendly staff ",
                value_number=9,
                value_duration_ms=32500,
                media_path="1/2/photos/a.jpg",
                media_type="photo",
            ),
            resolve,
        )
        assert raw.item_id == 3
        assert raw.yes_no is True
        assert raw.comment == "friendly staff"
        assert raw.rating == 5
        assert raw.timer_seconds == 33
        assert raw.photo_urls == ["https://cdn.test/1/2/photos/a.jpg"]

    def test_inline_video_is_not_a_photo(self):
        raw = normalize_variant(
            InlineMediaAnswer(item_id=3, media_path="1/2/videos/a.mp4", media_type="video/mp4"),
            resolve,
        )
        assert raw.photo_urls == []

    def test_attachment_answer_keeps_images_only(self):
        raw = normalize_variant(
            AttachmentAnswer(
                checklist_item_id=5,
                timer_seconds=12,
                attachments=[
                    AttachmentRef(path="p/1.jpg", content_type="image/jpeg"),
                    AttachmentRef(path="p/1.jpg", content_type="image/jpeg"),
                    AttachmentRef(path="v/1.mp4", content_type="video/mp4"),
                ],
            ),
            resolve,
        )
        assert raw.item_id == 5
        assert raw.timer_seconds == 12
        assert raw.photo_urls == ["https://cdn.test/p/1.jpg"]

    def test_payload_answer(self):
        answer = PayloadAnswer.from_json(
            {"itemIndex": 1, "yesNo": False, "rating": "2", "timerSec": 4.5, "photos": ["https://x/1.png"]},
            position=0,
        )
        raw = normalize_variant(answer, resolve)
        assert raw.item_index == 1
        assert raw.yes_no is False
        assert raw.rating == 2
        assert raw.timer_seconds == 5
        assert raw.photo_urls == ["https://x/1.png"]

    def test_unknown_shape_is_rejected(self):
        with pytest.raises(TypeError):
            normalize_variant(object(), resolve)


@pytest.mark.normalizer
class TestNormalizeItems:
    """Laying answers against checklist definitions"""

    def definitions(self):
        return [
            ChecklistDefinition(id=20, title="Second", answer_kind=AnswerType.RATING.value, order_index=1),
            ChecklistDefinition(id=10, title="First", answer_kind=AnswerType.YES_NO.value, order_index=0),
        ]

    def test_definitions_in_order_even_unanswered(self):
        items = normalize_items(self.definitions(), [])
        assert [i.title for i in items] == ["First", "Second"]
        assert all(i.yes_no is None and i.rating is None for i in items)
        assert not any(i.synthetic for i in items)

    def test_first_value_wins_and_photos_union(self):
        answers = [
            normalize_variant(InlineMediaAnswer(item_id=10, value_yn=True, media_path="a.jpg", media_type="photo"), resolve),
            normalize_variant(
                AttachmentAnswer(
                    checklist_item_id=10,
                    yes_no=False,
                    comment="late",
                    attachments=[
                        AttachmentRef(path="a.jpg", content_type="image/jpeg"),
                        AttachmentRef(path="b.jpg", content_type="image/jpeg"),
                    ],
                ),
                resolve,
            ),
        ]
        first = normalize_items(self.definitions(), answers)[0]
        assert first.yes_no is True
        assert first.comment == "late"
        assert first.photo_urls == ["https://cdn.test/a.jpg", "https://cdn.test/b.jpg"]

    def test_item_index_maps_onto_definition_order(self):
        answers = [normalize_variant(PayloadAnswer.from_json({"itemIndex": 1, "rating": 4}, 0), resolve)]
        items = normalize_items(self.definitions(), answers)
        assert items[1].item_id == 20
        assert items[1].rating == 4
        assert len(items) == 2

    def test_unmatched_answers_become_synthetic_items(self):
        answers = [
            normalize_variant(InlineMediaAnswer(item_id=99, value_yn=True), resolve),
            normalize_variant(InlineMediaAnswer(item_id=98, value_number=3), resolve),
        ]
        items = normalize_items(self.definitions(), answers)
        assert len(items) == 4
        extra = items[2:]
        assert [i.title for i in extra] == ["Item 99", "Item 98"]
        assert [i.answer_kind for i in extra] == [AnswerType.YES_NO.value, AnswerType.RATING.value]
        assert all(i.synthetic for i in extra)

    def test_payload_text_is_a_comment_not_a_heading(self):
        answers = [
            normalize_variant(PayloadAnswer.from_json({"itemId": 99, "text": "Back door locked"}, 0), resolve),
            normalize_variant(
                PayloadAnswer.from_json({"itemId": 98, "title": "Parking", "text": "Full at noon"}, 1), resolve,
            ),
        ]
        extra = normalize_items(self.definitions(), answers)[2:]
        assert [(i.title, i.comment) for i in extra] == [
            ("Item 99", "Back door locked"),
            ("Parking", "Full at noon"),
        ]

    def test_item_photos_capped_and_gallery_limited(self):
        answers = [
            normalize_variant(
                AttachmentAnswer(
                    checklist_item_id=10,
                    attachments=[AttachmentRef(path=f"{n}.jpg", content_type="image/jpeg") for n in range(5)],
                ),
                resolve,
            ),
            normalize_variant(
                AttachmentAnswer(
                    checklist_item_id=20,
                    attachments=[AttachmentRef(path=f"x{n}.jpg", content_type="image/jpeg") for n in range(4)],
                ),
                resolve,
            ),
        ]
        items = normalize_items(self.definitions(), answers)
        assert len(items[0].photo_urls) == 3
        assert len(items[0].all_photo_urls) == 5
        gallery = gallery_urls(items)
        assert len(gallery) == 6
        assert gallery[0] == "https://cdn.test/0.jpg"
        assert gallery[5] == "https://cdn.test/x0.jpg"


@pytest.mark.normalizer
class TestNormalizeSubmission:
    """Loading every stored shape for a submission"""

    @pytest.mark.asyncio
    async def test_all_shapes_merge(self, db_session, mission, checklist_ids):
        submission = Submission(
            org_id=mission.org_id,
            mission_id=mission.id,
            agent_id="agent-7",
            submitted_at=utcnow(),
            meta_json={"answers": [{"itemIndex": 2, "rating": 4}]},
        )
        db_session.add(submission)
        await db_session.flush()

        item_ids = checklist_ids

        attachment = MissionAttachment(
            org_id=mission.org_id,
            mission_id=mission.id,
            path=f"{mission.org_id}/{mission.id}/photos/u__door.jpg",
            content_type="image/jpeg",
        )
        db_session.add(attachment)
        await db_session.flush()

        db_session.add(MissionAnswer(
            submission_id=submission.id,
            item_id=item_ids[0],
            value_yn=True,
            media_path="https://img.test/counter.png",
            media_type="photo",
        ))
        db_session.add(MissionAnswer(submission_id=submission.id, item_id=item_ids[3], value_duration_ms=32500))
        db_session.add(SubmissionItem(
            submission_id=submission.id,
            mission_id=mission.id,
            checklist_item_id=item_ids[0],
            photo_attachment_id=attachment.id,
        ))
        await db_session.flush()

        normalized = await normalize_submission(db_session, submission, resolve)

        assert normalized.answers_count == 4
        assert [i.title for i in normalized.items] == [
            "Greeting friendly", "Order accurate", "Service quality", "Queue time",
        ]
        first, second, third, fourth = normalized.items
        assert first.yes_no is True
        assert first.photo_urls == [
            "https://img.test/counter.png",
            f"https://cdn.test/{mission.org_id}/{mission.id}/photos/u__door.jpg",
        ]
        assert second.yes_no is None
        assert third.rating == 4
        assert fourth.timer_seconds == 33
        assert normalized.photos_count == 2
        assert normalized.gallery_urls == first.photo_urls
