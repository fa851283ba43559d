"""
API v1 router
"""
from fastapi import APIRouter

from app.api.v1.endpoints import (
    checklists,
    debug,
    geocode,
    missions,
    orgs,
    reports,
    submissions,
    templates,
    uploads,
)
from app.core.config import settings

api_router = APIRouter()

# Include all endpoint routers
api_router.include_router(missions.router, prefix="/missions", tags=["Missions"])
api_router.include_router(checklists.router, prefix="/missions", tags=["Checklists"])
api_router.include_router(submissions.router, prefix="/submissions", tags=["Submissions"])
api_router.include_router(uploads.router, prefix="/uploads", tags=["Uploads"])
api_router.include_router(reports.router, prefix="/reports", tags=["Reports"])
api_router.include_router(templates.router, prefix="/templates", tags=["Templates"])
api_router.include_router(geocode.router, tags=["Geocoding"])
api_router.include_router(orgs.router, prefix="/orgs", tags=["Organizations"])
if settings.ENABLE_DEBUG_ROUTES:
    api_router.include_router(debug.router, prefix="/debug", tags=["Debug"])


@api_router.get("/")
async def api_root():
    """API v1 root endpoint"""
    return {
        "message": "Mystery Shopper Portal API v1",
        "status": "active",
        "version": "1.0.0",
        "endpoints": {
            "missions": "/missions",
            "submissions": "/submissions",
            "uploads": "/uploads",
            "reports": "/reports",
            "templates": "/templates",
            "geocode": "/geocode",
            "orgs": "/orgs",
            "staticmap": "/staticmap",
            "docs": "/docs",
            "health": "/health"
        }
    }
