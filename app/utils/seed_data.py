"""
Seed database with a demo organization, mission, checklist and submission

Usage:
    python -m app.utils.seed_data
"""
import asyncio
import logging
import sys
from datetime import timedelta
from typing import Any, Dict

from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import AsyncSessionLocal
from app.models import (
    ChecklistItem,
    Mission,
    MissionAnswer,
    MissionStatus,
    Organization,
    Submission,
    SubmissionStatus,
)
from app.models.checklist import AnswerType
from app.utils.time import utcnow

logger = logging.getLogger(__name__)


DEMO_CHECKLIST = [
    {"text": "Was the greeting friendly?", "answer_type": AnswerType.YES_NO, "requires_comment": True},
    {"text": "Order accuracy verified", "answer_type": AnswerType.YES_NO, "requires_photo": True},
    {"text": "Overall service quality", "answer_type": AnswerType.RATING},
    {"text": "Queue time", "answer_type": AnswerType.RICH, "requires_timer": True},
]

# (item position, answer values)
DEMO_ANSWERS = [
    (0, {"value_yn": True, "value_text": "Warm welcome at the counter"}),
    (1, {"value_yn": False}),
    (2, {"value_number": 4}),
    (3, {"value_duration_ms": 185000}),
]


async def seed_demo(db: AsyncSession, agent_id: str = "demo-agent") -> Dict[str, Any]:
    """
    Create one demo org with a live mission, its checklist and a submission.
    Always inserts new rows; ids of the created rows are returned.
    """
    now = utcnow()

    org = Organization(name="Demo Organization")
    db.add(org)
    await db.flush()

    mission = Mission(
        org_id=org.id,
        title="Fast Food Mystery Visit",
        store="Demo Store",
        status=MissionStatus.SCHEDULED.value,
        starts_at=now - timedelta(hours=2),
        expires_at=now + timedelta(days=7),
        location={"address": "Tahrir, Cairo", "lat": 30.0444, "lng": 31.2357, "radiusM": 150},
        budget=120,
        fee=30,
        requires_photos=True,
        time_on_site_min=10,
        template_id="tpl-fastfood",
    )
    db.add(mission)
    await db.flush()

    items = []
    for position, entry in enumerate(DEMO_CHECKLIST):
        answer_type = entry["answer_type"].value
        item = ChecklistItem(
            mission_id=mission.id,
            order_index=position,
            text=entry["text"],
            answer_type=answer_type,
            yes_no=answer_type == AnswerType.YES_NO.value,
            requires_photo=entry.get("requires_photo", False),
            requires_comment=entry.get("requires_comment", False),
            requires_timer=entry.get("requires_timer", False),
        )
        db.add(item)
        items.append(item)
    await db.flush()

    submission = Submission(
        org_id=org.id,
        mission_id=mission.id,
        agent_id=agent_id,
        status=SubmissionStatus.SUBMITTED.value,
        started_at=now - timedelta(minutes=25),
        submitted_at=now,
        meta_json={"device": {"platform": "demo"}},
    )
    db.add(submission)
    await db.flush()

    for position, values in DEMO_ANSWERS:
        db.add(MissionAnswer(submission_id=submission.id, item_id=items[position].id, **values))
    await db.flush()

    logger.info(f"Seeded demo org {org.id}, mission {mission.id}, submission {submission.id}")
    return {
        "orgId": org.id,
        "missionId": mission.id,
        "submissionId": submission.id,
        "agentId": agent_id,
        "checklistItems": len(items),
    }


async def main():
    """Main seeding function"""
    print("\n" + "=" * 60)
    print("🌱 SEEDING DEMO DATA: Mystery Shopper Portal")
    print("=" * 60)

    async with AsyncSessionLocal() as db:
        try:
            created = await seed_demo(db)
            await db.commit()

            print("\n✅ DEMO DATA CREATED")
            for key, value in created.items():
                print(f"  • {key}: {value}")
            print()

        except Exception as e:
            print(f"\n❌ ERROR: {e}")
            await db.rollback()
            sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
