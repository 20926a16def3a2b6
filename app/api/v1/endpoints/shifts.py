"""
Shifts Endpoints - CRUD operations for shifts and shift assignment
"""
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session
from typing import Optional

from app.db.session import get_db
from app.services.shift_service import ShiftService
from app.schemas import (
    Shift,
    ShiftCreate,
    ShiftUpdate,
    ShiftAssignment,
    BulkAssignmentRequest,
    BulkAssignmentResult,
    DataResponse,
    PaginationResponse
)
from app.api.deps import require_auth, require_min_role_level, EMPLOYEE_ROLE_LEVEL, ADMIN_ROLE_LEVEL
from app.core.config import settings
from atams.encryption import encrypt_response_data

router = APIRouter()
shift_service = ShiftService()


@router.get(
    "/",
    response_model=PaginationResponse[Shift],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(ADMIN_ROLE_LEVEL))]
)
async def list_shifts(
    search: str = Query("", description="Search shifts by name or code"),
    is_active: Optional[bool] = Query(None, description="Filter by active flag"),
    skip: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(100, ge=1, le=1000, description="Maximum records to return"),
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """
    Get list of shifts with pagination and search

    **Authorization:**
    - Requires role level >= 50 (Admin or above)
    """
    shifts = shift_service.list_shifts(db, search=search, is_active=is_active, skip=skip, limit=limit)
    total = shift_service.count_shifts(db, search=search, is_active=is_active)

    response = PaginationResponse(
        success=True,
        message="Shifts retrieved successfully",
        data=shifts,
        total=total,
        page=skip // limit + 1,
        size=limit,
        pages=(total + limit - 1) // limit
    )

    return encrypt_response_data(response, settings)


@router.get(
    "/me",
    response_model=DataResponse[Shift],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(EMPLOYEE_ROLE_LEVEL))]
)
async def get_my_shift(
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """
    Get the shift that applies to the current user

    **Errors:**
    - 400 NO_SHIFT_ASSIGNED: no assignment and no default shift
    """
    shift = shift_service.get_assigned_shift(db, current_user["user_id"])

    response = DataResponse(
        success=True,
        message="Shift retrieved successfully",
        data=shift
    )

    return encrypt_response_data(response, settings)


@router.get(
    "/{shift_id}",
    response_model=DataResponse[Shift],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(ADMIN_ROLE_LEVEL))]
)
async def get_shift(
    shift_id: int,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """Get single shift by ID"""
    shift = shift_service.get_shift(db, shift_id)

    response = DataResponse(
        success=True,
        message="Shift retrieved successfully",
        data=shift
    )

    return encrypt_response_data(response, settings)


@router.post(
    "/",
    response_model=DataResponse[Shift],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_min_role_level(ADMIN_ROLE_LEVEL))]
)
async def create_shift(
    shift: ShiftCreate,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """
    Create new shift

    **Authorization:**
    - Requires role level >= 50 (Admin or above)

    **Validation:**
    - sh_code: required, unique, max 10 characters (stored upper-case)
    - start and end time must differ; an end before the start is an overnight shift
    - every allowed location needs a positive radius
    """
    new_shift = shift_service.create_shift(db, shift)

    return DataResponse(
        success=True,
        message="Shift created successfully",
        data=new_shift
    )


@router.put(
    "/{shift_id}",
    response_model=DataResponse[Shift],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(ADMIN_ROLE_LEVEL))]
)
async def update_shift(
    shift_id: int,
    shift: ShiftUpdate,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """
    Update existing shift

    **Note:**
    - The merged configuration is validated as a whole
    """
    updated_shift = shift_service.update_shift(db, shift_id, shift)

    return DataResponse(
        success=True,
        message="Shift updated successfully",
        data=updated_shift
    )


@router.delete(
    "/{shift_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_min_role_level(ADMIN_ROLE_LEVEL))]
)
async def delete_shift(
    shift_id: int,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """
    Delete shift

    **Note:**
    - Fails with 409 while sessions or assignments reference the shift
    """
    shift_service.delete_shift(db, shift_id)

    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put(
    "/{shift_id}/assignments/{user_id}",
    response_model=DataResponse[ShiftAssignment],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(ADMIN_ROLE_LEVEL))]
)
async def assign_shift(
    shift_id: int,
    user_id: int,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """Assign a shift to an employee, replacing any previous assignment"""
    assignment = shift_service.assign_shift(db, user_id, shift_id, current_user["user_id"])

    return DataResponse(
        success=True,
        message="Shift assigned successfully",
        data=assignment
    )


@router.post(
    "/assignments/bulk",
    response_model=DataResponse[BulkAssignmentResult],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(ADMIN_ROLE_LEVEL))]
)
async def bulk_assign_shifts(
    payload: BulkAssignmentRequest,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """
    Assign shifts to many employees

    **Note:**
    - Each item succeeds or fails on its own; failures are listed in the result
    """
    result = shift_service.bulk_assign(db, payload.assignments, current_user["user_id"])

    return DataResponse(
        success=True,
        message=f"{result.assigned_count} of {len(payload.assignments)} shifts assigned",
        data=result
    )


@router.delete(
    "/assignments/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_min_role_level(ADMIN_ROLE_LEVEL))]
)
async def remove_shift_assignment(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """Remove an employee's shift assignment; the default shift applies afterwards"""
    shift_service.remove_assignment(db, user_id)

    return Response(status_code=status.HTTP_204_NO_CONTENT)
