"""
Attendance Endpoints - Clock-in/out, breaks, history and administration
"""
from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy.orm import Session
from typing import Optional
from datetime import date

from app.db.session import get_db
from app.services.attendance_service import AttendanceService
from app.schemas import (
    ClockRequest,
    ClockResponse,
    BreakStartRequest,
    DeviceInfo,
    SessionTodayResponse,
    SessionCorrection,
    ApprovalUpdate,
    ApprovalResult,
    MonthlySummary,
    AttendanceStats,
    AttendanceSession,
    DataResponse,
    PaginationResponse
)
from app.api.deps import require_auth, require_min_role_level, EMPLOYEE_ROLE_LEVEL, ADMIN_ROLE_LEVEL
from app.core.config import settings
from atams.encryption import encrypt_response_data
from atams.exceptions import BadRequestException

router = APIRouter()
attendance_service = AttendanceService()


def _parse_date(value: Optional[str], field: str) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise BadRequestException(f"Invalid {field} format. Use YYYY-MM-DD")


def _with_request_device(payload: ClockRequest, request: Request) -> ClockRequest:
    """Fill device info from the HTTP request when the client did not send it"""
    device = payload.device_info or DeviceInfo()
    updates = {}
    if not device.user_agent:
        updates["user_agent"] = request.headers.get("user-agent")
    if not device.ip_address and request.client is not None:
        updates["ip_address"] = request.client.host
    if updates:
        payload = payload.model_copy(update={"device_info": device.model_copy(update=updates)})
    return payload


@router.post(
    "/clock-in",
    response_model=DataResponse[ClockResponse],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_min_role_level(EMPLOYEE_ROLE_LEVEL))]
)
def clock_in(
    payload: ClockRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """
    Clock in for today

    **Authentication:**
    - Requires valid user authentication (role level >= 1)

    **Process:**
    1. Resolve the employee's shift (assignment or default)
    2. Geofence check against the shift's allowed locations
    3. Biometric check when the shift requires it
    4. Create the session (one per employee per day)

    **Errors:**
    - 400 ALREADY_CLOCKED_IN, OUT_OF_GEOFENCE, BIOMETRIC_MISMATCH, NOT_ENROLLED, NO_SHIFT_ASSIGNED
    - 503 EXTERNAL_SERVICE_UNAVAILABLE: face match service unreachable
    """
    result = attendance_service.clock_in(db, current_user["user_id"], _with_request_device(payload, request))

    return DataResponse(
        success=True,
        message="Clocked in successfully",
        data=result
    )


@router.post(
    "/clock-out",
    response_model=DataResponse[ClockResponse],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(EMPLOYEE_ROLE_LEVEL))]
)
def clock_out(
    payload: ClockRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """
    Clock out of the open session

    **Notes:**
    - An open break is closed at the clock-out time and flagged

    **Errors:**
    - 404 NO_OPEN_SESSION
    - 400 OUT_OF_GEOFENCE, BIOMETRIC_MISMATCH, NOT_ENROLLED
    """
    result = attendance_service.clock_out(db, current_user["user_id"], _with_request_device(payload, request))

    return DataResponse(
        success=True,
        message="Clocked out successfully",
        data=result
    )


@router.post(
    "/breaks/start",
    response_model=DataResponse[ClockResponse],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(EMPLOYEE_ROLE_LEVEL))]
)
def start_break(
    payload: BreakStartRequest,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """
    Start a break

    **Errors:**
    - 404 NO_OPEN_SESSION
    - 400 BREAK_ALREADY_OPEN
    """
    result = attendance_service.start_break(db, current_user["user_id"], payload)

    return DataResponse(
        success=True,
        message="Break started",
        data=result
    )


@router.post(
    "/breaks/end",
    response_model=DataResponse[ClockResponse],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(EMPLOYEE_ROLE_LEVEL))]
)
def end_break(
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """
    End the current break

    **Errors:**
    - 404 NO_OPEN_SESSION, NO_OPEN_BREAK
    """
    result = attendance_service.end_break(db, current_user["user_id"])

    return DataResponse(
        success=True,
        message="Break ended",
        data=result
    )


@router.get(
    "/today",
    response_model=DataResponse[SessionTodayResponse],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(EMPLOYEE_ROLE_LEVEL))]
)
async def get_my_today(
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """
    Get current user's attendance state and session for today

    **Response:**
    - state: no_session, clocked_in, on_break or clocked_out
    - session: null when no session today
    """
    today = attendance_service.get_today(db, current_user["user_id"])

    response = DataResponse(
        success=True,
        message="Today's session retrieved successfully",
        data=today
    )

    return encrypt_response_data(response, settings)


@router.get(
    "/sessions/me",
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(EMPLOYEE_ROLE_LEVEL))]
)
async def get_my_sessions(
    limit: int = Query(50, ge=1, le=100, description="Maximum records to return"),
    offset: int = Query(0, ge=0, description="Number of records to skip"),
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """Get current user's attendance history, newest first"""
    sessions, total = attendance_service.get_my_sessions(db, current_user["user_id"], offset, limit)

    response = PaginationResponse(
        success=True,
        message="Sessions retrieved successfully",
        data=sessions,
        total=total,
        page=offset // limit + 1,
        size=limit,
        pages=(total + limit - 1) // limit
    )

    return encrypt_response_data(response, settings)


@router.get(
    "/events/me",
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(EMPLOYEE_ROLE_LEVEL))]
)
async def get_my_events(
    session_id: Optional[int] = Query(None, description="Only events of this session"),
    limit: int = Query(50, ge=1, le=100, description="Maximum records to return"),
    offset: int = Query(0, ge=0, description="Number of records to skip"),
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """Get current user's attendance events (audit trail)"""
    events, total = attendance_service.get_my_events(db, current_user["user_id"], session_id, offset, limit)

    response = PaginationResponse(
        success=True,
        message="Events retrieved successfully",
        data=events,
        total=total,
        page=offset // limit + 1,
        size=limit,
        pages=(total + limit - 1) // limit
    )

    return encrypt_response_data(response, settings)


@router.get(
    "/summary/me",
    response_model=DataResponse[MonthlySummary],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(EMPLOYEE_ROLE_LEVEL))]
)
async def get_my_monthly_summary(
    month: str = Query(..., pattern=r"^\d{4}-\d{2}$", description="Month in YYYY-MM format"),
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """Monthly totals: days by status, hours worked, breaks and overtime"""
    year, month_number = (int(part) for part in month.split("-"))
    if not 1 <= month_number <= 12:
        raise BadRequestException("Invalid month. Use YYYY-MM")

    summary = attendance_service.get_monthly_summary(db, current_user["user_id"], year, month_number)

    response = DataResponse(
        success=True,
        message="Monthly summary retrieved successfully",
        data=summary
    )

    return encrypt_response_data(response, settings)


@router.get(
    "/sessions",
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(ADMIN_ROLE_LEVEL))]
)
async def get_sessions_admin(
    user_id: Optional[int] = Query(None, description="Filter by user ID"),
    date_from: Optional[str] = Query(None, description="Start date (YYYY-MM-DD)"),
    date_to: Optional[str] = Query(None, description="End date (YYYY-MM-DD)"),
    status: Optional[str] = Query(None, description="Filter by status"),
    approval_status: Optional[str] = Query(None, description="pending, approved or rejected"),
    limit: int = Query(100, ge=1, le=1000, description="Maximum records to return"),
    offset: int = Query(0, ge=0, description="Number of records to skip"),
    sort: str = Query("desc", pattern="^(asc|desc)$", description="Sort order by session date"),
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """
    Get attendance sessions (Admin only)

    **Authentication:**
    - Requires role level >= 50 (Admin or above)
    """
    parsed_date_from = _parse_date(date_from, "date_from")
    parsed_date_to = _parse_date(date_to, "date_to")

    sessions = attendance_service.get_sessions_admin(
        db, user_id, parsed_date_from, parsed_date_to, status, approval_status, offset, limit, sort
    )
    total = attendance_service.count_sessions_admin(
        db, user_id, parsed_date_from, parsed_date_to, status, approval_status
    )

    response = PaginationResponse(
        success=True,
        message="Sessions retrieved successfully",
        data=sessions,
        total=total,
        page=offset // limit + 1,
        size=limit,
        pages=(total + limit - 1) // limit
    )

    return encrypt_response_data(response, settings)


@router.get(
    "/stats",
    response_model=DataResponse[AttendanceStats],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(ADMIN_ROLE_LEVEL))]
)
async def get_attendance_stats(
    date_from: Optional[str] = Query(None, description="Start date (YYYY-MM-DD)"),
    date_to: Optional[str] = Query(None, description="End date (YYYY-MM-DD)"),
    user_id: Optional[int] = Query(None, description="Filter by user ID"),
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """
    Attendance statistics over a date range (Admin only)

    **Returns:**
    - total_records, present_count, late_count, early_departure_count, absent_count
    - average_working_hours over closed sessions
    """
    stats = attendance_service.get_attendance_stats(
        db, _parse_date(date_from, "date_from"), _parse_date(date_to, "date_to"), user_id
    )

    response = DataResponse(
        success=True,
        message="Attendance statistics retrieved successfully",
        data=stats
    )

    return encrypt_response_data(response, settings)


@router.get(
    "/sessions/{session_id}",
    response_model=DataResponse[AttendanceSession],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(ADMIN_ROLE_LEVEL))]
)
async def get_session_admin(
    session_id: int,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """Get one attendance session (Admin only)"""
    session = attendance_service.get_session(db, session_id)

    response = DataResponse(
        success=True,
        message="Session retrieved successfully",
        data=session
    )

    return encrypt_response_data(response, settings)


@router.patch(
    "/sessions/{session_id}",
    response_model=DataResponse[AttendanceSession],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(ADMIN_ROLE_LEVEL))]
)
def correct_session(
    session_id: int,
    payload: SessionCorrection,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """
    Correct an attendance session (Admin only)

    **Notes:**
    - Derived hours, lateness and status are recomputed
    - status_override takes priority over the computed status
    - Every correction is written to the edit log
    """
    session = attendance_service.correct_session(db, session_id, payload, current_user["user_id"])

    return DataResponse(
        success=True,
        message="Session corrected successfully",
        data=session
    )


@router.post(
    "/sessions/approval",
    response_model=DataResponse[ApprovalResult],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(ADMIN_ROLE_LEVEL))]
)
async def bulk_update_approval(
    payload: ApprovalUpdate,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """Set approval status on many sessions at once (Admin only)"""
    result = attendance_service.bulk_update_approval(
        db, payload.session_ids, payload.approval_status, current_user["user_id"]
    )

    return DataResponse(
        success=True,
        message="Approval status updated",
        data=result
    )


@router.delete(
    "/sessions/{session_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_min_role_level(ADMIN_ROLE_LEVEL))]
)
def delete_session(
    session_id: int,
    reason: Optional[str] = Query(None, max_length=500, description="Reason recorded in the edit log"),
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """
    Delete an attendance session (Admin only)

    **Note:**
    - The deleted session is preserved in the edit log
    """
    attendance_service.delete_session(db, session_id, current_user["user_id"], reason)

    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/report/export",
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(ADMIN_ROLE_LEVEL))]
)
async def export_report(
    user_id: Optional[int] = Query(None, description="Filter by user ID"),
    date_from: Optional[str] = Query(None, description="Start date (YYYY-MM-DD)"),
    date_to: Optional[str] = Query(None, description="End date (YYYY-MM-DD)"),
    status: Optional[str] = Query(None, description="Filter by status"),
    approval_status: Optional[str] = Query(None, description="pending, approved or rejected"),
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """Export sessions as CSV (Admin only)"""
    content = attendance_service.export_sessions_csv(
        db,
        user_id,
        _parse_date(date_from, "date_from"),
        _parse_date(date_to, "date_to"),
        status,
        approval_status
    )

    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="attendance_report.csv"'}
    )
