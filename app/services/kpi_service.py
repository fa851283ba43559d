"""
KPI aggregation over normalized checklist items

`overall` is the share of yes/no items answered "yes". The service, compliance
and speed scores are clamped offsets of `overall`, a placeholder heuristic
until per-dimension measurements exist.
"""
from dataclasses import dataclass, asdict
from typing import Dict, Optional, Sequence

from app.models.checklist import AnswerType
from app.services.answer_normalizer import NormalizedItem, round_half_up


@dataclass(frozen=True)
class KpiSet:
    overall: int
    service: int
    compliance: int
    speed: int

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


def clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def compute_kpis(items: Sequence[NormalizedItem]) -> KpiSet:
    """
    Compute KPI percentages for a report.

    Only items of the yes/no kind count toward `overall`; with none of them
    the denominator is 1 and `overall` is 0.
    """
    yes_no_items = [item for item in items if item.answer_kind == AnswerType.YES_NO.value]
    yes_count = sum(1 for item in yes_no_items if item.yes_no is True)
    denominator = len(yes_no_items) or 1

    overall = round_half_up(100 * yes_count / denominator)
    return KpiSet(
        overall=overall,
        service=clamp(overall - 2, 70, 98),
        compliance=clamp(overall + 3, 75, 99),
        speed=clamp(overall - 6, 70, 97),
    )


def average_rating(items: Sequence[NormalizedItem]) -> Optional[float]:
    """Mean of the present ratings, rounded to one decimal"""
    ratings = [item.rating for item in items if item.rating is not None]
    if not ratings:
        return None
    return round_half_up(sum(ratings) / len(ratings) * 10) / 10
