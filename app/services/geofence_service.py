"""
Geofence Service - great-circle distance and allowed-area checks

Pure functions; nothing here touches the database or the network.
"""
import math
from typing import Any, Mapping, Optional, Sequence

from app.core.errors import InvalidShiftConfiguration
from app.schemas.location import GeofenceResult, LocationCheck

EARTH_RADIUS_M = 6371000


def is_valid_coordinate(lat: float, lon: float) -> bool:
    return -90 <= lat <= 90 and -180 <= lon <= 180


def distance_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate distance between two coordinates using Haversine formula

    Returns:
        float: Distance in meters
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lat = math.radians(lat2 - lat1)
    delta_lon = math.radians(lon2 - lon1)

    a = (math.sin(delta_lat / 2) ** 2 +
         math.cos(lat1_rad) * math.cos(lat2_rad) *
         math.sin(delta_lon / 2) ** 2)
    # rounding can push a past 1 for antipodal points
    a = min(1.0, max(0.0, a))
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_M * c


def validate_circle(circle: Mapping[str, Any]) -> None:
    """
    Validate one allowed-location circle

    Raises:
        InvalidShiftConfiguration: non-positive radius or coordinates out of range
    """
    name = circle.get("name")
    radius = circle.get("radius_m")
    if radius is None or radius <= 0:
        raise InvalidShiftConfiguration(
            f"Allowed location '{name}' must have a positive radius",
            details={"location": name, "radius_m": radius}
        )
    if not is_valid_coordinate(circle.get("center_lat", 999), circle.get("center_lon", 999)):
        raise InvalidShiftConfiguration(
            f"Allowed location '{name}' has invalid coordinates",
            details={"location": name}
        )


def is_within_geofence(lat: float, lon: float, circle: Mapping[str, Any]) -> GeofenceResult:
    validate_circle(circle)
    distance = distance_meters(circle["center_lat"], circle["center_lon"], lat, lon)
    return GeofenceResult(within_fence=distance <= circle["radius_m"], distance=distance)


def check_locations(
    lat: float,
    lon: float,
    allowed_locations: Optional[Sequence[Mapping[str, Any]]],
    required: bool
) -> LocationCheck:
    """
    Test a point against a list of circles; inside ANY circle is accepted

    When not allowed, distance is the one to the nearest circle.
    """
    if not required:
        return LocationCheck(allowed=True, reason="Location restriction not required")

    if not allowed_locations:
        return LocationCheck(allowed=False, reason="No allowed locations configured")

    nearest_name = None
    nearest_distance = None
    for circle in allowed_locations:
        result = is_within_geofence(lat, lon, circle)
        if result.within_fence:
            return LocationCheck(
                allowed=True,
                location_name=circle.get("name"),
                distance=round(result.distance)
            )
        if nearest_distance is None or result.distance < nearest_distance:
            nearest_name = circle.get("name")
            nearest_distance = result.distance

    return LocationCheck(
        allowed=False,
        location_name=nearest_name,
        distance=round(nearest_distance),
        reason="Outside all allowed locations"
    )


def check_allowed_locations(lat: float, lon: float, shift, enforced: bool = True) -> LocationCheck:
    """Geofence decision for a shift; `enforced` is the deployment-wide switch"""
    required = bool(enforced and shift is not None and shift.sh_location_required)
    allowed_locations = shift.sh_allowed_locations if shift is not None else None
    return check_locations(lat, lon, allowed_locations, required)
