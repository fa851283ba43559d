"""
Answer normalization for report generation

Submissions reach us in three shapes:
- inline answers (mission_answers): values plus a media path on the same row
- attachment answers (mission_submission_items): values plus attachment ids
  resolved through mission_attachments
- payload answers (mission_submissions.meta_json["answers"]): the JSON-only
  shape written by early mobile app builds, keyed by itemIndex

Each shape has its own conversion into RawAnswer. The converted answers are
merged per checklist item and then laid against the checklist definitions.
"""
import logging
import math
from dataclasses import dataclass, field, asdict
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.models.checklist import AnswerType, ChecklistItem
from app.models.submission import MissionAnswer, MissionAttachment, Submission, SubmissionItem

logger = logging.getLogger(__name__)

MAX_ITEM_PHOTOS = 3
MAX_GALLERY_PHOTOS = 6

UrlResolver = Callable[[str], Optional[str]]


# ============================================================================
# Value coercion
# ============================================================================

def round_half_up(value: float) -> int:
    """Round .5 away from zero for positives (32.5 -> 33)"""
    return int(math.floor(value + 0.5))


def _finite_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def clamp_rating(value: Any) -> Optional[int]:
    """
    Round a rating and bound it to 1..5.

    Values above the range clamp to 5. Values that round below 1 and
    non-numeric input give None.
    """
    number = _finite_number(value)
    if number is None:
        return None
    rounded = round_half_up(number)
    if rounded < 1:
        return None
    return min(5, rounded)


def ms_to_seconds(value: Any) -> Optional[int]:
    """Duration in milliseconds to whole seconds (32500 -> 33)"""
    number = _finite_number(value)
    if number is None:
        return None
    return round_half_up(number / 1000)


def to_seconds(value: Any) -> Optional[int]:
    number = _finite_number(value)
    if number is None:
        return None
    return round_half_up(number)


def is_photo_media(media_type: Optional[str]) -> bool:
    """Declared type "photo" or any image MIME type"""
    kind = str(media_type or "").strip().lower()
    return kind == "photo" or kind.startswith("image")


def _clean_text(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    text = value.strip()
    return text or None


def _dedupe(urls: Iterable[Optional[str]]) -> List[str]:
    seen = set()
    out = []
    for url in urls:
        if not url or url in seen:
            continue
        seen.add(url)
        out.append(url)
    return out


# ============================================================================
# Input variants
# ============================================================================

@dataclass
class RawAnswer:
    """Answer after shape-specific conversion, before merging"""
    source: str
    item_id: Optional[int] = None
    item_index: Optional[int] = None
    title: Optional[str] = None
    yes_no: Optional[bool] = None
    comment: Optional[str] = None
    rating: Optional[int] = None
    timer_seconds: Optional[int] = None
    photo_urls: List[str] = field(default_factory=list)


@dataclass
class InlineMediaAnswer:
    """mission_answers row"""
    item_id: Optional[int]
    value_yn: Optional[bool] = None
    value_text: Optional[str] = None
    value_number: Optional[float] = None
    value_duration_ms: Optional[int] = None
    media_path: Optional[str] = None
    media_type: Optional[str] = None

    @classmethod
    def from_row(cls, row: MissionAnswer) -> "InlineMediaAnswer":
        return cls(
            item_id=row.item_id,
            value_yn=row.value_yn,
            value_text=row.value_text,
            value_number=row.value_number,
            value_duration_ms=row.value_duration_ms,
            media_path=row.media_path,
            media_type=row.media_type,
        )


@dataclass
class AttachmentRef:
    """mission_attachments row referenced by a legacy answer"""
    path: str
    content_type: Optional[str] = None


@dataclass
class AttachmentAnswer:
    """mission_submission_items row with its attachments resolved"""
    checklist_item_id: Optional[int]
    yes_no: Optional[bool] = None
    comment: Optional[str] = None
    timer_seconds: Optional[int] = None
    rating: Optional[float] = None
    attachments: List[AttachmentRef] = field(default_factory=list)

    @classmethod
    def from_row(cls, row: SubmissionItem, attachments_by_id: Dict[int, MissionAttachment]) -> "AttachmentAnswer":
        refs = []
        for att_id in (row.photo_attachment_id, row.order_photo_attachment_id, row.video_attachment_id):
            att = attachments_by_id.get(att_id) if att_id is not None else None
            if att is not None:
                refs.append(AttachmentRef(path=att.path, content_type=att.content_type))
        return cls(
            checklist_item_id=row.checklist_item_id,
            yes_no=row.yes_no,
            comment=row.comment,
            timer_seconds=row.timer_seconds,
            rating=row.rating,
            attachments=refs,
        )


@dataclass
class PayloadAnswer:
    """Entry of meta_json["answers"] from JSON-only submissions"""
    position: int
    item_id: Optional[int] = None
    item_index: Optional[int] = None
    title: Optional[str] = None
    comment: Optional[str] = None
    yes_no: Optional[bool] = None
    rating: Any = None
    timer_sec: Any = None
    photos: List[str] = field(default_factory=list)

    @classmethod
    def from_json(cls, entry: Dict[str, Any], position: int) -> "PayloadAnswer":
        item_id = entry.get("itemId", entry.get("checklist_item_id"))
        item_index = entry.get("itemIndex")
        yes_no = entry.get("yesNoValue", entry.get("yesNo"))
        photos = entry.get("photos") or entry.get("photoUrls") or []
        return cls(
            position=position,
            item_id=item_id if isinstance(item_id, int) and not isinstance(item_id, bool) else None,
            item_index=item_index if isinstance(item_index, int) and not isinstance(item_index, bool) else None,
            title=_clean_text(entry.get("title")),
            comment=_clean_text(entry.get("comment", entry.get("text"))),
            yes_no=yes_no if isinstance(yes_no, bool) else None,
            rating=entry.get("rating", entry.get("rating_value")),
            timer_sec=entry.get("timerSec", entry.get("timer_seconds")),
            photos=[str(p) for p in photos if p] if isinstance(photos, list) else [],
        )


AnswerVariant = Union[InlineMediaAnswer, AttachmentAnswer, PayloadAnswer]


def normalize_inline_answer(answer: InlineMediaAnswer, resolve_url: UrlResolver) -> RawAnswer:
    photos = []
    path = (answer.media_path or "").strip()
    if path and is_photo_media(answer.media_type):
        photos.append(resolve_url(path))
    return RawAnswer(
        source="inline",
        item_id=answer.item_id,
        yes_no=answer.value_yn,
        comment=_clean_text(answer.value_text),
        rating=clamp_rating(answer.value_number),
        timer_seconds=ms_to_seconds(answer.value_duration_ms),
        photo_urls=_dedupe(photos),
    )


def normalize_attachment_answer(answer: AttachmentAnswer, resolve_url: UrlResolver) -> RawAnswer:
    photos = [
        resolve_url(ref.path.strip())
        for ref in answer.attachments
        if ref.path and ref.path.strip() and is_photo_media(ref.content_type)
    ]
    return RawAnswer(
        source="attachment",
        item_id=answer.checklist_item_id,
        yes_no=answer.yes_no,
        comment=_clean_text(answer.comment),
        rating=clamp_rating(answer.rating),
        timer_seconds=to_seconds(answer.timer_seconds),
        photo_urls=_dedupe(photos),
    )


def normalize_payload_answer(answer: PayloadAnswer) -> RawAnswer:
    return RawAnswer(
        source="payload",
        item_id=answer.item_id,
        item_index=answer.item_index,
        title=_clean_text(answer.title),
        yes_no=answer.yes_no,
        comment=_clean_text(answer.comment),
        rating=clamp_rating(answer.rating),
        timer_seconds=to_seconds(answer.timer_sec),
        photo_urls=_dedupe(answer.photos),
    )


def normalize_variant(answer: AnswerVariant, resolve_url: UrlResolver) -> RawAnswer:
    """Dispatch one input variant to its converter"""
    if isinstance(answer, InlineMediaAnswer):
        return normalize_inline_answer(answer, resolve_url)
    if isinstance(answer, AttachmentAnswer):
        return normalize_attachment_answer(answer, resolve_url)
    if isinstance(answer, PayloadAnswer):
        return normalize_payload_answer(answer)
    raise TypeError(f"Unsupported answer shape: {type(answer).__name__}")


# ============================================================================
# Normalization
# ============================================================================

@dataclass
class ChecklistDefinition:
    """Checklist item as defined on the mission"""
    id: int
    title: str
    answer_kind: str
    order_index: int = 0

    @classmethod
    def from_row(cls, row: ChecklistItem) -> "ChecklistDefinition":
        title = (row.text or "").strip()
        return cls(
            id=row.id,
            title=title or "(untitled)",
            answer_kind=row.answer_type or AnswerType.TEXT.value,
            order_index=row.order_index if row.order_index is not None else 0,
        )


@dataclass
class NormalizedItem:
    """One checklist item as printed on a report"""
    item_id: Optional[int]
    title: str
    answer_kind: str
    yes_no: Optional[bool] = None
    comment: Optional[str] = None
    rating: Optional[int] = None
    timer_seconds: Optional[int] = None
    photo_urls: List[str] = field(default_factory=list)  # first MAX_ITEM_PHOTOS
    all_photo_urls: List[str] = field(default_factory=list)
    synthetic: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _merge(into: RawAnswer, other: RawAnswer) -> None:
    """First non-null value wins, photos are unioned"""
    for name in ("title", "yes_no", "comment", "rating", "timer_seconds"):
        if getattr(into, name) is None:
            setattr(into, name, getattr(other, name))
    into.photo_urls = _dedupe(into.photo_urls + other.photo_urls)


def merge_answers(
    answers: Sequence[RawAnswer],
    definitions: Sequence[ChecklistDefinition],
) -> List[Tuple[Optional[int], RawAnswer]]:
    """
    Merge converted answers per checklist item, keeping first-seen order.

    Payload answers addressed by itemIndex are mapped onto the definition at
    that position.
    """
    ordered_ids = [d.id for d in definitions]
    merged: Dict[Any, RawAnswer] = {}
    keys: List[Any] = []

    for position, answer in enumerate(answers):
        item_id = answer.item_id
        if item_id is None and answer.item_index is not None and 0 <= answer.item_index < len(ordered_ids):
            item_id = ordered_ids[answer.item_index]
        key = ("item", item_id) if item_id is not None else ("orphan", position)

        if key in merged:
            _merge(merged[key], answer)
            continue
        copy = RawAnswer(**{**asdict(answer), "item_id": item_id, "photo_urls": list(answer.photo_urls)})
        merged[key] = copy
        keys.append(key)

    return [(merged[k].item_id, merged[k]) for k in keys]


def _infer_kind(answer: RawAnswer) -> str:
    if answer.rating is not None:
        return AnswerType.RATING.value
    if answer.yes_no is not None:
        return AnswerType.YES_NO.value
    if answer.photo_urls or answer.timer_seconds is not None:
        return AnswerType.RICH.value
    return AnswerType.TEXT.value


def _item_from(answer: Optional[RawAnswer], item_id, title, kind, synthetic=False) -> NormalizedItem:
    if answer is None:
        return NormalizedItem(item_id=item_id, title=title, answer_kind=kind, synthetic=synthetic)
    return NormalizedItem(
        item_id=item_id,
        title=title,
        answer_kind=kind,
        yes_no=answer.yes_no,
        comment=answer.comment,
        rating=answer.rating,
        timer_seconds=answer.timer_seconds,
        photo_urls=answer.photo_urls[:MAX_ITEM_PHOTOS],
        all_photo_urls=list(answer.photo_urls),
        synthetic=synthetic,
    )


def normalize_items(
    definitions: Sequence[ChecklistDefinition],
    answers: Sequence[RawAnswer],
) -> List[NormalizedItem]:
    """
    Lay answers against the checklist definitions.

    Every definition yields an item, answered or not, in order_index order.
    Answers whose item is not defined (deleted since submission) are appended
    as synthetic items in their original order.
    """
    defs = sorted(definitions, key=lambda d: d.order_index)
    merged = merge_answers(answers, defs)
    by_item = {item_id: ans for item_id, ans in merged if item_id is not None}
    defined_ids = {d.id for d in defs}

    items = [_item_from(by_item.get(d.id), d.id, d.title, d.answer_kind) for d in defs]

    for position, (item_id, answer) in enumerate(merged, start=1):
        if item_id is not None and item_id in defined_ids:
            continue
        title = answer.title or (f"Item {item_id}" if item_id is not None else f"Item {len(items) + 1}")
        items.append(_item_from(answer, item_id, title, _infer_kind(answer), synthetic=True))

    return items


def gallery_urls(items: Sequence[NormalizedItem], limit: int = MAX_GALLERY_PHOTOS) -> List[str]:
    """First unique photos across all items, in item order"""
    return _dedupe(url for item in items for url in item.all_photo_urls)[:limit]


# ============================================================================
# Loading
# ============================================================================

@dataclass
class NormalizedSubmission:
    """Everything the report needs about a submission's answers"""
    items: List[NormalizedItem]
    answers_count: int
    gallery_urls: List[str]

    @property
    def photos_count(self) -> int:
        return sum(len(item.all_photo_urls) for item in self.items)


async def load_answer_variants(db: AsyncSession, submission: Submission) -> List[AnswerVariant]:
    """Read every answer shape stored for a submission"""
    variants: List[AnswerVariant] = []

    inline_result = await db.execute(
        select(MissionAnswer)
        .where(MissionAnswer.submission_id == submission.id)
        .order_by(MissionAnswer.created_at, MissionAnswer.id)
    )
    variants.extend(InlineMediaAnswer.from_row(row) for row in inline_result.scalars().all())

    legacy_result = await db.execute(
        select(SubmissionItem)
        .where(SubmissionItem.submission_id == submission.id)
        .order_by(SubmissionItem.id)
    )
    legacy_rows = legacy_result.scalars().all()
    if legacy_rows:
        attachment_ids = {
            att_id
            for row in legacy_rows
            for att_id in (row.photo_attachment_id, row.order_photo_attachment_id, row.video_attachment_id)
            if att_id is not None
        }
        attachments_by_id: Dict[int, MissionAttachment] = {}
        if attachment_ids:
            att_result = await db.execute(
                select(MissionAttachment).where(MissionAttachment.id.in_(attachment_ids))
            )
            attachments_by_id = {att.id: att for att in att_result.scalars().all()}
        variants.extend(AttachmentAnswer.from_row(row, attachments_by_id) for row in legacy_rows)

    meta = submission.meta_json if isinstance(submission.meta_json, dict) else {}
    payload = meta.get("answers")
    if isinstance(payload, list):
        variants.extend(
            PayloadAnswer.from_json(entry, position)
            for position, entry in enumerate(payload)
            if isinstance(entry, dict)
        )

    return variants


async def normalize_submission(
    db: AsyncSession,
    submission: Submission,
    resolve_url: UrlResolver,
) -> NormalizedSubmission:
    """
    Build the normalized checklist for a submission.

    Args:
        db: Database session
        submission: Submission row
        resolve_url: Maps a media bucket path to its public URL

    Returns:
        NormalizedSubmission with items in checklist order
    """
    defs_result = await db.execute(
        select(ChecklistItem)
        .where(ChecklistItem.mission_id == submission.mission_id)
        .order_by(ChecklistItem.order_index, ChecklistItem.id)
    )
    definitions = [ChecklistDefinition.from_row(row) for row in defs_result.scalars().all()]

    variants = await load_answer_variants(db, submission)
    raw_answers = [normalize_variant(v, resolve_url) for v in variants]
    items = normalize_items(definitions, raw_answers)

    logger.debug(
        f"Submission {submission.id}: {len(definitions)} definitions, "
        f"{len(raw_answers)} answers, {len(items)} items"
    )
    return NormalizedSubmission(
        items=items,
        answers_count=len(raw_answers),
        gallery_urls=gallery_urls(items),
    )


def media_url_resolver(storage) -> UrlResolver:
    """Resolver for media-bucket paths; absolute URLs pass through"""
    def resolve(path: str) -> Optional[str]:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return storage.get_public_url(path, bucket_name=settings.S3_BUCKET_MEDIA)
    return resolve
