from .shift import (
    Shift,
    ShiftCreate,
    ShiftUpdate,
    ShiftAssignment,
    AllowedLocation,
    BulkAssignmentRequest,
    BulkAssignmentResult
)
from .attendance import (
    AttendanceSession,
    AttendanceBreak,
    AttendanceEvent,
    ClockRequest,
    ClockResponse,
    BreakStartRequest,
    LocationIn,
    DeviceInfo,
    BiometricSample,
    SessionTodayResponse,
    SessionCorrection,
    ApprovalUpdate,
    ApprovalResult,
    MonthlySummary,
    AttendanceStats
)
from .biometric import BiometricResult, EnrollRequest, VerifyRequest, EnrollmentStatus
from .location import (
    GeofenceResult,
    LocationCheck,
    LocationValidateRequest,
    LocationValidateResponse,
    ReverseGeocodeResponse
)
from .notification import Notification, MarkAllReadResult
from .common import DataResponse, PaginationResponse

__all__ = [
    # Shift schemas
    "Shift",
    "ShiftCreate",
    "ShiftUpdate",
    "ShiftAssignment",
    "AllowedLocation",
    "BulkAssignmentRequest",
    "BulkAssignmentResult",
    # Attendance schemas
    "AttendanceSession",
    "AttendanceBreak",
    "AttendanceEvent",
    "ClockRequest",
    "ClockResponse",
    "BreakStartRequest",
    "LocationIn",
    "DeviceInfo",
    "BiometricSample",
    "SessionTodayResponse",
    "SessionCorrection",
    "ApprovalUpdate",
    "ApprovalResult",
    "MonthlySummary",
    "AttendanceStats",
    # Biometric schemas
    "BiometricResult",
    "EnrollRequest",
    "VerifyRequest",
    "EnrollmentStatus",
    # Location schemas
    "GeofenceResult",
    "LocationCheck",
    "LocationValidateRequest",
    "LocationValidateResponse",
    "ReverseGeocodeResponse",
    # Notification schemas
    "Notification",
    "MarkAllReadResult",
    # Common schemas
    "DataResponse",
    "PaginationResponse"
]
