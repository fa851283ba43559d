"""
Mission template endpoints
"""
from fastapi import APIRouter

from app.utils.templates import MISSION_TEMPLATES

router = APIRouter()


@router.get("")
async def list_templates():
    """Built-in mission templates"""
    return {"templates": MISSION_TEMPLATES}
