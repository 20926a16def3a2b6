"""
Notification Schemas
"""
from typing import Optional, Dict, Any, Literal
from datetime import datetime
from pydantic import BaseModel, ConfigDict, field_validator

from app.schemas.common import normalize_db_datetime


class Notification(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    nt_id: int
    nt_user_id: int
    nt_type: str
    nt_title: str
    nt_message: str
    nt_priority: Literal["low", "medium", "high", "urgent"]
    nt_category: str
    nt_data: Optional[Dict[str, Any]] = None
    nt_reference_id: Optional[int] = None
    nt_is_read: bool
    nt_read_at: Optional[datetime] = None
    nt_created_at: datetime

    @field_validator('nt_read_at', 'nt_created_at', mode='before')
    @classmethod
    def fix_datetime_timezone(cls, v):
        return normalize_db_datetime(v)


class MarkAllReadResult(BaseModel):
    updated_count: int
