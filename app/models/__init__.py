from .shift import Shift, EmployeeShift
from .attendance_session import AttendanceSession
from .attendance_break import AttendanceBreak
from .attendance_event import AttendanceEvent
from .biometric_enrollment import BiometricEnrollment
from .notification import Notification
from .attendance_edit_log import AttendanceEditLog

__all__ = [
    "Shift",
    "EmployeeShift",
    "AttendanceSession",
    "AttendanceBreak",
    "AttendanceEvent",
    "BiometricEnrollment",
    "Notification",
    "AttendanceEditLog"
]
