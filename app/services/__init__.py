from .shift_service import ShiftService
from .biometric_service import BiometricService
from .geocoding_service import GeocodingService
from .notification_service import NotificationService, NotificationEvent
from .attendance_service import AttendanceService

__all__ = [
    "ShiftService",
    "BiometricService",
    "GeocodingService",
    "NotificationService",
    "NotificationEvent",
    "AttendanceService"
]
