"""
Attendance error kinds and process-level error handlers

Every business-rule failure is an AppException carrying a stable
machine-readable code in ``details["code"]``; the atams exception handler
renders it as ``{"success": false, "message": ..., "details": {...}}``.
"""
from typing import Any, Dict, Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from atams.exceptions import AppException
from atams.logging import get_logger

logger = get_logger(__name__)


class AttendanceError(AppException):
    """Base class for attendance business-rule failures"""
    code = "ATTENDANCE_ERROR"
    http_status = status.HTTP_400_BAD_REQUEST
    default_message = "Attendance action rejected"

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        details = dict(details or {})
        details["code"] = self.code
        super().__init__(message or self.default_message, self.http_status, details)


class AlreadyClockedIn(AttendanceError):
    code = "ALREADY_CLOCKED_IN"
    default_message = "Already clocked in for today"


class NoOpenSession(AttendanceError):
    code = "NO_OPEN_SESSION"
    http_status = status.HTTP_404_NOT_FOUND
    default_message = "No open attendance session"


class BreakAlreadyOpen(AttendanceError):
    code = "BREAK_ALREADY_OPEN"
    default_message = "A break is already in progress"


class NoOpenBreak(AttendanceError):
    code = "NO_OPEN_BREAK"
    http_status = status.HTTP_404_NOT_FOUND
    default_message = "No break in progress"


class OutOfGeofence(AttendanceError):
    code = "OUT_OF_GEOFENCE"
    default_message = "Location is outside the allowed area"


class BiometricMismatch(AttendanceError):
    code = "BIOMETRIC_MISMATCH"
    default_message = "Biometric verification failed"


class NotEnrolled(AttendanceError):
    code = "NOT_ENROLLED"
    default_message = "No biometric enrollment found for this employee"


class ExternalServiceUnavailable(AttendanceError):
    code = "EXTERNAL_SERVICE_UNAVAILABLE"
    http_status = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "External service unavailable"


class InvalidShiftConfiguration(AttendanceError):
    code = "INVALID_SHIFT_CONFIGURATION"
    default_message = "Invalid shift configuration"


class NoShiftAssigned(AttendanceError):
    code = "NO_SHIFT_ASSIGNED"
    default_message = "No shift assigned and no default shift configured"


async def database_error_handler(request: Request, exc: SQLAlchemyError):
    """Storage failures: log with traceback, answer without driver detail"""
    logger.error(
        "Database error",
        exc_info=exc,
        extra={
            'extra_data': {
                'error_type': type(exc).__name__,
                'path': request.url.path,
                'method': request.method
            }
        }
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "message": "Database error occurred",
            "details": {"code": "STORAGE_UNAVAILABLE"}
        }
    )


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(
        "Unhandled exception",
        exc_info=exc,
        extra={
            'extra_data': {
                'error_type': type(exc).__name__,
                'path': request.url.path,
                'method': request.method
            }
        }
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "message": "Internal server error",
            "details": {"code": "INTERNAL_ERROR"}
        }
    )


def setup_error_handlers(app) -> None:
    """
    Replace the atams 500 handlers with ones that do not echo exception text.

    Must run after ``atams.exceptions.setup_exception_handlers`` so these
    registrations win; the IntegrityError (409) and validation (422)
    handlers from atams stay in place.
    """
    app.add_exception_handler(SQLAlchemyError, database_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
