"""
Object keys for uploaded mission media
"""
import mimetypes
import re
import uuid
from typing import Optional

_UNSAFE = re.compile(r"[^a-zA-Z0-9._-]")


def safe_segment(value) -> str:
    """Path-safe form of a client-supplied name (max 120 chars)"""
    return _UNSAFE.sub("_", str(value or ""))[:120]


def media_kind_folder(kind: Optional[str]) -> str:
    return "videos" if kind == "video" else "photos"


def media_object_path(org_id, mission_id, kind: Optional[str], filename: str, token: Optional[str] = None) -> str:
    """{org}/{mission}/{photos|videos}/{uuid}__{filename}"""
    token = token or str(uuid.uuid4())
    return (
        f"{safe_segment(org_id)}/{safe_segment(mission_id)}/"
        f"{media_kind_folder(kind)}/{token}__{safe_segment(filename)}"
    )


def is_media_type(content_type: Optional[str]) -> bool:
    """Only images and videos are accepted"""
    content_type = (content_type or "").lower()
    return content_type.startswith("image/") or content_type.startswith("video/")


def guess_content_type(filename: str) -> str:
    guessed, _ = mimetypes.guess_type(filename)
    return guessed or "application/octet-stream"
