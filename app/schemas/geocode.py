"""
Geocoding request schemas
"""
import math
from typing import Dict, Optional

from pydantic import BaseModel, Field, field_validator

from app.services.geocoding_service import join_address_parts


class Proximity(BaseModel):
    lat: Optional[float] = None
    lng: Optional[float] = None


class AddressParts(BaseModel):
    line1: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = None
    postal_code: Optional[str] = Field(None, alias="postalCode")
    country: Optional[str] = None

    class Config:
        populate_by_name = True


class GeocodeRequest(BaseModel):
    """Free-text address or structured parts, with an optional bias point"""
    address: Optional[str] = None
    address_parts: Optional[AddressParts] = Field(None, alias="addressParts")
    proximity: Optional[Proximity] = None

    class Config:
        populate_by_name = True

    def query_text(self) -> str:
        if self.address and self.address.strip():
            return self.address.strip()
        if not self.address_parts:
            return ""
        return join_address_parts(self.address_parts.model_dump(by_alias=True))

    def proximity_dict(self) -> Optional[Dict[str, float]]:
        p = self.proximity
        if p is None or p.lat is None or p.lng is None:
            return None
        if not (math.isfinite(p.lat) and math.isfinite(p.lng)):
            return None
        return {"lat": p.lat, "lng": p.lng}


class ReverseGeocodeRequest(BaseModel):
    lat: Optional[float] = None
    lng: Optional[float] = None

    @field_validator("lat", "lng")
    @classmethod
    def finite_only(cls, v):
        if v is not None and not math.isfinite(v):
            return None
        return v
