"""
Geocoding and static map endpoints backed by Mapbox
"""
import logging
import math
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from app.schemas.geocode import GeocodeRequest, ReverseGeocodeRequest
from app.services.geocoding_service import (
    GeocodingError,
    GeocodingService,
    get_geocoding_service,
)

router = APIRouter()
logger = logging.getLogger(__name__)


def _require_service(service: Optional[GeocodingService]) -> GeocodingService:
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Missing MAPBOX token"
        )
    return service


@router.post("/geocode")
async def geocode(
    data: GeocodeRequest,
    service: Optional[GeocodingService] = Depends(get_geocoding_service),
):
    """
    Resolve an address (plain or structured) to coordinates
    """
    service = _require_service(service)
    address = data.query_text()
    if not address:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Address is empty"
        )

    country = data.address_parts.country if data.address_parts else None
    try:
        result = await service.geocode(address, proximity=data.proximity_dict(), country=country)
    except GeocodingError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=str(e)
        )

    if result is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No result"
        )
    return {"lat": result.lat, "lng": result.lng, "formatted": result.formatted}


@router.post("/revgeocode")
async def reverse_geocode(
    data: ReverseGeocodeRequest,
    service: Optional[GeocodingService] = Depends(get_geocoding_service),
):
    """
    Resolve coordinates to a formatted address and its parts
    """
    service = _require_service(service)
    if data.lat is None or data.lng is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="lat/lng required"
        )

    try:
        result = await service.reverse_geocode(data.lat, data.lng)
    except GeocodingError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=str(e)
        )

    if result is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No result"
        )
    return {"formatted": result.formatted, "addressParts": result.address_parts}


def _coordinate(value: Optional[str]) -> Optional[float]:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


@router.get("/staticmap")
async def static_map(
    lat: Optional[str] = Query(default=None),
    lng: Optional[str] = Query(default=None),
    w: int = Query(default=640),
    h: int = Query(default=320),
    service: Optional[GeocodingService] = Depends(get_geocoding_service),
):
    """
    PNG map preview for a mission location (w clamped to 200..800, h to 150..800)
    """
    lat_value, lng_value = _coordinate(lat), _coordinate(lng)
    if lat_value is None or lng_value is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Bad coords"
        )
    service = _require_service(service)

    try:
        image = await service.static_map(lat_value, lng_value, w, h)
    except GeocodingError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Static map fetch failed: {e}"
        )

    return Response(content=image, media_type="image/png", headers={"Cache-Control": "no-store"})
