from .shift_repository import ShiftRepository
from .attendance_session_repository import AttendanceSessionRepository
from .attendance_break_repository import AttendanceBreakRepository
from .attendance_event_repository import AttendanceEventRepository
from .biometric_enrollment_repository import BiometricEnrollmentRepository
from .notification_repository import NotificationRepository
from .attendance_edit_log_repository import AttendanceEditLogRepository

__all__ = [
    "ShiftRepository",
    "AttendanceSessionRepository",
    "AttendanceBreakRepository",
    "AttendanceEventRepository",
    "BiometricEnrollmentRepository",
    "NotificationRepository",
    "AttendanceEditLogRepository"
]
