"""
Geocoding and static map service wrapping the Mapbox APIs
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple
from urllib.parse import quote

import httpx

from app.core.config import settings

logger = logging.getLogger(__name__)

MAPBOX_PLACES_URL = "https://api.mapbox.com/geocoding/v5/mapbox.places"
FORWARD_TYPES = "address,place,poi,neighborhood,locality"
MAPBOX_STATIC_URL = "https://api.mapbox.com/styles/v1/mapbox"
STATIC_MAP_STYLE = "light-v11"


class GeocodingError(Exception):
    """Provider unreachable or answered with an error"""


@dataclass(frozen=True)
class GeoResult:
    lat: float
    lng: float
    formatted: str
    address_parts: Dict[str, str] = field(default_factory=dict)


def join_address_parts(parts: Optional[Dict[str, Any]]) -> str:
    parts = parts or {}
    keys = ("line1", "city", "region", "postalCode", "country")
    return ", ".join(str(parts[k]).strip() for k in keys if parts.get(k) and str(parts[k]).strip())


def clamp_map_size(width: int, height: int) -> Tuple[int, int]:
    return max(200, min(800, width)), max(150, min(800, height))


class GeocodingService:
    """Async forward and reverse geocoding"""

    def __init__(self, token: str, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._token = token
        self._transport = transport

    async def geocode(
        self,
        address: str,
        proximity: Optional[Dict[str, float]] = None,
        country: Optional[str] = None,
    ) -> Optional[GeoResult]:
        """Best match for an address; None when nothing matches"""
        params = {
            "access_token": self._token,
            "autocomplete": "true",
            "limit": "1",
            "types": FORWARD_TYPES,
        }
        if proximity and proximity.get("lng") is not None and proximity.get("lat") is not None:
            params["proximity"] = f"{proximity['lng']},{proximity['lat']}"
        if country:
            params["country"] = country

        feature = await self._first_feature(quote(address, safe=""), params)
        if feature is None:
            return None
        lng, lat = feature.get("center", [None, None])[:2]
        return GeoResult(lat=lat, lng=lng, formatted=feature.get("place_name", ""))

    async def reverse_geocode(self, lat: float, lng: float) -> Optional[GeoResult]:
        """Address at a point; None when nothing matches"""
        params = {"access_token": self._token, "limit": "1"}
        feature = await self._first_feature(f"{lng},{lat}", params)
        if feature is None:
            return None

        context = {}
        for entry in feature.get("context", []):
            context[str(entry.get("id", "")).split(".")[0]] = entry.get("text", "")
        text = feature.get("text", "")
        number = feature.get("address")
        parts = {
            "line1": f"{number} {text}" if number else text,
            "city": context.get("place") or context.get("locality") or context.get("district") or "",
            "region": context.get("region", ""),
            "postalCode": context.get("postcode", ""),
            "country": context.get("country", ""),
        }
        return GeoResult(lat=lat, lng=lng, formatted=feature.get("place_name", ""), address_parts=parts)

    async def static_map(self, lat: float, lng: float, width: int = 640, height: int = 320) -> bytes:
        """
        PNG map centered on a point with a small red pin

        Width is clamped to 200..800 and height to 150..800 pixels; the
        image is requested at @2x.
        """
        width, height = clamp_map_size(width, height)
        marker = f"pin-s+ff0000({lng},{lat})"
        url = f"{MAPBOX_STATIC_URL}/{STATIC_MAP_STYLE}/static/{marker}/{lng},{lat},15,0/{width}x{height}@2x"
        resp = await self._get(url, {"access_token": self._token})
        return resp.content

    async def _get(self, url: str, params: Dict[str, str]) -> httpx.Response:
        try:
            async with httpx.AsyncClient(timeout=10.0, transport=self._transport) as client:
                resp = await client.get(url, params=params)
                resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.warning(f"Mapbox HTTP error: {exc.response.status_code}")
            raise GeocodingError("Geocoding provider returned an error") from exc
        except httpx.RequestError as exc:
            logger.warning(f"Mapbox request failed: {exc}")
            raise GeocodingError("Geocoding provider unreachable") from exc
        return resp

    async def _first_feature(self, query: str, params: Dict[str, str]) -> Optional[Dict[str, Any]]:
        resp = await self._get(f"{MAPBOX_PLACES_URL}/{query}.json", params)
        try:
            data = resp.json()
        except ValueError as exc:
            logger.warning(f"Mapbox geocoding returned invalid JSON: {exc}")
            raise GeocodingError("Geocoding provider returned invalid data") from exc

        features = data.get("features") or []
        return features[0] if features else None


def get_geocoding_service() -> Optional[GeocodingService]:
    """Service for the configured token; None when geocoding is not configured"""
    if not settings.MAPBOX_TOKEN:
        return None
    return GeocodingService(settings.MAPBOX_TOKEN)
