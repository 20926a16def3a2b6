"""
Location Schemas - geofence checks and reverse geocoding
"""
from typing import Optional
from pydantic import BaseModel, Field


class GeofenceResult(BaseModel):
    within_fence: bool
    distance: float


class LocationCheck(BaseModel):
    """Outcome of testing a point against a shift's allowed locations"""
    allowed: bool
    location_name: Optional[str] = None
    distance: Optional[float] = None
    reason: Optional[str] = None


class LocationValidateRequest(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class LocationValidateResponse(LocationCheck):
    address: str


class ReverseGeocodeResponse(BaseModel):
    latitude: float
    longitude: float
    address: str
