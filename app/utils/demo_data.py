"""
In-memory demo dataset for the debug routes

The application creates one DemoDataset at startup and keeps it on
app.state; only the debug router reads it.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from app.models.mission import MissionStatus
from app.utils.time import utcnow


@dataclass
class DemoMission:
    id: str
    title: str
    store: str
    status: str
    starts_at: datetime
    expires_at: datetime
    address: str
    checklist: List[str] = field(default_factory=list)
    budget: float = 0
    fee: float = 0
    completed_at: Optional[datetime] = None

    @property
    def cost(self) -> float:
        return self.budget + self.fee


class DemoDataset:
    """Seeded demo missions with simple aggregate statistics"""

    def __init__(self, now: Optional[datetime] = None):
        self.seeded_at = now or utcnow()
        self.missions: List[DemoMission] = self._seed(self.seeded_at)

    @staticmethod
    def _seed(now: datetime) -> List[DemoMission]:
        week = timedelta(days=7)
        return [
            DemoMission(
                id="MSN-1001",
                title="QSR - Cairo Mall Visit",
                store="Store #12 (Cairo Mall)",
                status=MissionStatus.NOW.value,
                starts_at=now - timedelta(hours=2),
                expires_at=now + week,
                address="Cairo Mall, Cairo",
                checklist=["Queue time", "Order accuracy", "Staff courtesy", "Cleanliness (FOH)"],
                budget=200,
                fee=50,
            ),
            DemoMission(
                id="MSN-1002",
                title="Retail - Shelf Audit",
                store="Store #3 (Heliopolis)",
                status=MissionStatus.SCHEDULED.value,
                starts_at=now + timedelta(hours=26),
                expires_at=now + timedelta(hours=26) + week,
                address="Heliopolis, Cairo",
                checklist=["SKU availability", "Facing", "Pricing", "Promo compliance"],
                budget=120,
                fee=40,
            ),
            DemoMission(
                id="MSN-1003",
                title="Coffee - Mystery Visit",
                store="Store #8 (Zamalek)",
                status=MissionStatus.NOW.value,
                starts_at=now - timedelta(hours=1),
                expires_at=now + timedelta(days=8),
                address="Zamalek, Cairo",
                checklist=["Greeting", "Beverage quality", "Wait time", "Ambiance"],
                budget=60,
                fee=35,
            ),
        ]

    def get(self, mission_id: str) -> Optional[DemoMission]:
        return next((m for m in self.missions if m.id == mission_id), None)

    def complete(self, mission_id: str, at: Optional[datetime] = None) -> DemoMission:
        """Mark a demo mission completed"""
        mission = self.get(mission_id)
        if mission is None:
            raise KeyError(mission_id)
        mission.status = MissionStatus.COMPLETED.value
        mission.completed_at = at or utcnow()
        return mission

    def stats(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Totals over the dataset.

        completed7d counts missions completed in the last seven days;
        onTimePct is the share of completed missions finished before expiry.
        """
        now = now or utcnow()
        completed = [m for m in self.missions if m.status == MissionStatus.COMPLETED.value]
        recent = [m for m in completed if m.completed_at and now - m.completed_at <= timedelta(days=7)]
        on_time = [m for m in completed if m.completed_at and m.completed_at <= m.expires_at]

        return {
            "total": len(self.missions),
            "open": sum(1 for m in self.missions if m.status == MissionStatus.NOW.value),
            "upcoming": sum(1 for m in self.missions if m.status == MissionStatus.SCHEDULED.value),
            "completed7d": len(recent),
            "onTimePct": round(100 * len(on_time) / len(completed)) if completed else 0,
            "budgetTotal": sum(m.cost for m in self.missions),
        }
