from typing import Optional

from atams import AtamsBaseSettings


class Settings(AtamsBaseSettings):
    """
    Application Settings

    Inherits from AtamsBaseSettings which includes:
    - DATABASE_URL (required)
    - ATLAS_SSO_URL, ATLAS_APP_CODE, ATLAS_ENCRYPTION_KEY, ATLAS_ENCRYPTION_IV
    - ENCRYPTION_ENABLED, ENCRYPTION_KEY, ENCRYPTION_IV (response encryption)
    - LOGGING_ENABLED, LOG_LEVEL, LOG_TO_FILE, LOG_FILE_PATH
    - CORS_ORIGINS, CORS_ALLOW_CREDENTIALS, CORS_ALLOW_METHODS, CORS_ALLOW_HEADERS
    - RATE_LIMIT_ENABLED, RATE_LIMIT_REQUESTS, RATE_LIMIT_WINDOW
    - DEBUG

    All settings can be overridden via .env file or by redefining them here.
    """
    APP_NAME: str = "HRIS Attendance"
    APP_VERSION: str = "1.0.0"

    # Create missing tables on startup (schema is otherwise managed outside the app)
    DB_CREATE_TABLES: bool = False

    # Calendar day of a session is taken in this zone
    ATTENDANCE_TIMEZONE: str = "UTC"

    # Geofence settings (per-shift requirement lives on the shift)
    GEOFENCE_ENFORCED: bool = True

    # Biometric settings
    BIOMETRIC_ENFORCED: bool = True
    BIOMETRIC_THRESHOLD: float = 0.8
    BIOMETRIC_ENCODING_SIZE: int = 128
    FACE_MATCH_URL: Optional[str] = None

    # Timeout for every outbound call (geocoder, face match, webhooks)
    EXTERNAL_SERVICE_TIMEOUT_SECONDS: float = 10.0

    # Reverse geocoding (address enrichment only)
    GEOCODING_ENABLED: bool = False
    GEOCODING_URL: str = "https://nominatim.openstreetmap.org/reverse"
    GEOCODING_USER_AGENT: str = "AttendanceManagement/1.0"
    GEOCODING_CACHE_SIZE: int = 1000
    GEOCODING_CACHE_TTL_SECONDS: int = 86400

    # Notification channels (in-app is always on)
    NOTIFY_EMAIL_ENABLED: bool = False
    NOTIFY_EMAIL_WEBHOOK_URL: Optional[str] = None
    NOTIFY_SMS_ENABLED: bool = False
    NOTIFY_SMS_WEBHOOK_URL: Optional[str] = None
    NOTIFY_PUSH_ENABLED: bool = False
    NOTIFY_PUSH_WEBHOOK_URL: Optional[str] = None


settings = Settings()
