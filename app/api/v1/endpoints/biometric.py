"""
Biometric Endpoints - Enrollment and standalone verification
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.services.biometric_service import BiometricService
from app.schemas import EnrollRequest, VerifyRequest, EnrollmentStatus, BiometricResult, DataResponse
from app.api.deps import require_auth, require_min_role_level, EMPLOYEE_ROLE_LEVEL
from app.core.config import settings
from atams.encryption import encrypt_response_data

router = APIRouter()
biometric_service = BiometricService()


@router.post(
    "/enroll",
    response_model=DataResponse[EnrollmentStatus],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_min_role_level(EMPLOYEE_ROLE_LEVEL))]
)
async def enroll(
    payload: EnrollRequest,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """
    Store (or replace) the current user's reference face encoding

    **Validation:**
    - encoding must have BIOMETRIC_ENCODING_SIZE finite values
    """
    enrollment = biometric_service.enroll(db, current_user["user_id"], payload.encoding, payload.face_image_url)

    return DataResponse(
        success=True,
        message="Biometric enrollment stored",
        data=enrollment
    )


@router.get(
    "/enrollment/me",
    response_model=DataResponse[EnrollmentStatus],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(EMPLOYEE_ROLE_LEVEL))]
)
async def get_my_enrollment(
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """Enrollment metadata for the current user (the encoding itself is never returned)"""
    enrollment = biometric_service.get_enrollment_status(db, current_user["user_id"])

    response = DataResponse(
        success=True,
        message="Enrollment retrieved successfully",
        data=enrollment
    )

    return encrypt_response_data(response, settings)


@router.post(
    "/verify",
    response_model=DataResponse[BiometricResult],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(EMPLOYEE_ROLE_LEVEL))]
)
def verify(
    payload: VerifyRequest,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """
    Check a sample against the enrolled reference without clocking anything

    **Errors:**
    - 400 NOT_ENROLLED
    - 503 EXTERNAL_SERVICE_UNAVAILABLE
    """
    result = biometric_service.verify_for_user(db, current_user["user_id"], payload.encoding)

    return DataResponse(
        success=True,
        message="Biometric match" if result.is_match else "Biometric mismatch",
        data=result
    )
