"""
Shift Schemas for request/response validation
"""
from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.schemas.common import normalize_db_datetime


class AllowedLocation(BaseModel):
    """Circular allowed area"""
    name: str = Field(..., min_length=1, max_length=100)
    center_lat: float
    center_lon: float
    radius_m: float = 100


class ShiftBase(BaseModel):
    sh_name: str = Field(..., min_length=1, max_length=100)
    sh_start_hour: int
    sh_start_minute: int = 0
    sh_end_hour: int
    sh_end_minute: int = 0
    sh_working_hours: float = 8
    sh_late_threshold_minutes: int = 15
    sh_early_departure_threshold_minutes: int = 15
    sh_overtime_enabled: bool = True
    sh_overtime_minimum_minutes: int = 30
    sh_overtime_multiplier: float = 1.5
    sh_overtime_max_daily_hours: float = 4
    sh_location_required: bool = False
    sh_allowed_locations: List[AllowedLocation] = Field(default_factory=list)
    sh_biometric_required: bool = True
    sh_is_default: bool = False
    sh_is_active: bool = True


class ShiftCreate(ShiftBase):
    sh_code: str = Field(..., min_length=1, max_length=10)

    @field_validator('sh_code')
    @classmethod
    def upper_code(cls, v: str) -> str:
        return v.strip().upper()


class ShiftUpdate(BaseModel):
    sh_name: Optional[str] = Field(None, min_length=1, max_length=100)
    sh_start_hour: Optional[int] = None
    sh_start_minute: Optional[int] = None
    sh_end_hour: Optional[int] = None
    sh_end_minute: Optional[int] = None
    sh_working_hours: Optional[float] = None
    sh_late_threshold_minutes: Optional[int] = None
    sh_early_departure_threshold_minutes: Optional[int] = None
    sh_overtime_enabled: Optional[bool] = None
    sh_overtime_minimum_minutes: Optional[int] = None
    sh_overtime_multiplier: Optional[float] = None
    sh_overtime_max_daily_hours: Optional[float] = None
    sh_location_required: Optional[bool] = None
    sh_allowed_locations: Optional[List[AllowedLocation]] = None
    sh_biometric_required: Optional[bool] = None
    sh_is_default: Optional[bool] = None
    sh_is_active: Optional[bool] = None


class ShiftInDB(ShiftBase):
    model_config = ConfigDict(from_attributes=True)

    sh_id: int
    sh_code: str
    sh_created_at: datetime
    sh_updated_at: Optional[datetime] = None

    @field_validator('sh_created_at', 'sh_updated_at', mode='before')
    @classmethod
    def fix_datetime_timezone(cls, v):
        """Fix datetime timezone format from the database"""
        return normalize_db_datetime(v)


class Shift(ShiftInDB):
    pass


class ShiftAssignment(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    es_user_id: int
    es_shift_id: int
    es_assigned_by: Optional[int] = None


class BulkAssignmentItem(BaseModel):
    user_id: int = Field(..., gt=0)
    shift_id: int = Field(..., gt=0)


class BulkAssignmentRequest(BaseModel):
    """Request schema for assigning shifts to many employees at once"""
    assignments: List[BulkAssignmentItem] = Field(..., min_length=1, max_length=500)


class BulkAssignmentOutcome(BaseModel):
    user_id: int
    shift_id: int
    success: bool
    message: str


class BulkAssignmentResult(BaseModel):
    assigned_count: int
    results: List[BulkAssignmentOutcome]
