"""
Notification Endpoints - In-app notifications of the current user
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.services.notification_service import NotificationService
from app.schemas import Notification, MarkAllReadResult, DataResponse, PaginationResponse
from app.api.deps import require_auth, require_min_role_level, EMPLOYEE_ROLE_LEVEL
from app.core.config import settings
from atams.encryption import encrypt_response_data

router = APIRouter()
notification_service = NotificationService()


@router.get(
    "/me",
    response_model=PaginationResponse[Notification],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(EMPLOYEE_ROLE_LEVEL))]
)
async def get_my_notifications(
    unread_only: bool = Query(False, description="Only unread notifications"),
    limit: int = Query(50, ge=1, le=100, description="Maximum records to return"),
    offset: int = Query(0, ge=0, description="Number of records to skip"),
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """Get current user's notifications, newest first"""
    user_id = current_user["user_id"]
    notifications = notification_service.list_notifications(db, user_id, unread_only, offset, limit)
    total = notification_service.count_notifications(db, user_id, unread_only)

    response = PaginationResponse(
        success=True,
        message="Notifications retrieved successfully",
        data=notifications,
        total=total,
        page=offset // limit + 1,
        size=limit,
        pages=(total + limit - 1) // limit
    )

    return encrypt_response_data(response, settings)


@router.post(
    "/read-all",
    response_model=DataResponse[MarkAllReadResult],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(EMPLOYEE_ROLE_LEVEL))]
)
async def mark_all_as_read(
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    updated = notification_service.mark_all_as_read(db, current_user["user_id"])

    return DataResponse(
        success=True,
        message="Notifications marked as read",
        data=MarkAllReadResult(updated_count=updated)
    )


@router.post(
    "/{notification_id}/read",
    response_model=DataResponse[Notification],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(EMPLOYEE_ROLE_LEVEL))]
)
async def mark_as_read(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """
    Mark one notification as read

    **Errors:**
    - 404: notification does not exist or belongs to another user
    """
    notification = notification_service.mark_as_read(db, current_user["user_id"], notification_id)

    return DataResponse(
        success=True,
        message="Notification marked as read",
        data=notification
    )
