"""
Location Endpoints - Geofence pre-check and reverse geocoding
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.services.shift_service import ShiftService
from app.services.geocoding_service import GeocodingService
from app.services.geofence_service import check_allowed_locations
from app.schemas import LocationValidateRequest, LocationValidateResponse, ReverseGeocodeResponse, DataResponse
from app.api.deps import require_auth, require_min_role_level, EMPLOYEE_ROLE_LEVEL
from app.core.config import settings
from atams.encryption import encrypt_response_data

router = APIRouter()
shift_service = ShiftService()
geocoding_service = GeocodingService()


@router.post(
    "/validate",
    response_model=DataResponse[LocationValidateResponse],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(EMPLOYEE_ROLE_LEVEL))]
)
def validate_location(
    payload: LocationValidateRequest,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """
    Check whether the given point would pass the geofence for the user's shift

    **Response:**
    - allowed, nearest/matching location name, distance in meters
    - address (coordinate string when geocoding is unavailable)
    """
    shift = shift_service.resolve_shift_for_user(db, current_user["user_id"])
    check = check_allowed_locations(payload.latitude, payload.longitude, shift, enforced=settings.GEOFENCE_ENFORCED)
    address = geocoding_service.describe(payload.latitude, payload.longitude)

    return DataResponse(
        success=True,
        message="Location allowed" if check.allowed else "Location not allowed",
        data=LocationValidateResponse(**check.model_dump(), address=address)
    )


@router.get(
    "/reverse",
    response_model=DataResponse[ReverseGeocodeResponse],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(EMPLOYEE_ROLE_LEVEL))]
)
def reverse_geocode(
    lat: float = Query(..., ge=-90, le=90),
    lon: float = Query(..., ge=-180, le=180),
    current_user: dict = Depends(require_auth)
):
    """
    Resolve coordinates to an address

    **Errors:**
    - 503 EXTERNAL_SERVICE_UNAVAILABLE: geocoder unreachable or timed out
    """
    address = geocoding_service.reverse(lat, lon)

    response = DataResponse(
        success=True,
        message="Address resolved",
        data=ReverseGeocodeResponse(latitude=lat, longitude=lon, address=address)
    )

    return encrypt_response_data(response, settings)
