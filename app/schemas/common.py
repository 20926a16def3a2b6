"""
Common Schemas - response envelopes and shared validators
"""
import re
from datetime import datetime, timezone

from atams.schemas import DataResponse, PaginationResponse


def normalize_db_datetime(v):
    """
    Normalize datetimes coming back from the database.

    PostgreSQL returns '2025-10-01 09:17:39.587802+00' (pydantic expects
    '+00:00'); SQLite drops the offset entirely, and values are always
    stored in UTC.
    """
    if v == '' or v is None:
        return None

    if isinstance(v, str):
        match = re.search(r'([+-]\d{2})$', v)
        if match:
            v = v + ':00'
    elif isinstance(v, datetime) and v.tzinfo is None:
        v = v.replace(tzinfo=timezone.utc)

    return v


__all__ = ["DataResponse", "PaginationResponse", "normalize_db_datetime"]
