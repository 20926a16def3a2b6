"""
Attendance Schemas for sessions, breaks, events and clock actions
"""
from typing import Optional, Literal, List, Dict, Any
from datetime import datetime, date
from pydantic import BaseModel, ConfigDict, Field, field_validator, field_serializer

from app.schemas.common import normalize_db_datetime

SessionStatus = Literal["present", "late", "early_departure", "absent", "holiday", "leave"]
ApprovalStatus = Literal["pending", "approved", "rejected"]
BreakReason = Literal["lunch", "tea", "meeting", "personal", "other"]
SessionState = Literal["no_session", "clocked_in", "on_break", "clocked_out"]


# Request schemas
class LocationIn(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    address: Optional[str] = Field(None, max_length=500)


class DeviceInfo(BaseModel):
    user_agent: Optional[str] = Field(None, max_length=500)
    ip_address: Optional[str] = Field(None, max_length=64)
    device_type: Optional[str] = Field(None, max_length=50)


class BiometricSample(BaseModel):
    """Face encoding produced on the device from the captured image"""
    encoding: List[float] = Field(..., min_length=1)
    face_image_url: Optional[str] = Field(None, max_length=500)


class ClockRequest(BaseModel):
    """Request schema for clock-in and clock-out"""
    location: LocationIn
    device_info: Optional[DeviceInfo] = None
    biometric: Optional[BiometricSample] = None


class BreakStartRequest(BaseModel):
    reason: BreakReason = "other"
    location: Optional[LocationIn] = None


class SessionCorrection(BaseModel):
    """Administrative correction, bypasses self-service guards"""
    as_clock_in_at: Optional[datetime] = None
    as_clock_out_at: Optional[datetime] = None
    as_status_override: Optional[SessionStatus] = None
    clear_status_override: bool = False
    as_approval_status: Optional[ApprovalStatus] = None
    as_notes: Optional[str] = Field(None, max_length=500)
    resolve_irregularities: bool = False
    reason: Optional[str] = Field(None, max_length=500)


class ApprovalUpdate(BaseModel):
    session_ids: List[int] = Field(..., min_length=1, max_length=500)
    approval_status: ApprovalStatus


# Response schemas
class AttendanceBreak(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    ab_id: int
    ab_start_at: datetime
    ab_end_at: Optional[datetime] = None
    ab_reason: BreakReason
    ab_lat: Optional[float] = None
    ab_lon: Optional[float] = None
    ab_auto_closed: bool = False

    @field_validator('ab_start_at', 'ab_end_at', mode='before')
    @classmethod
    def fix_datetime_timezone(cls, v):
        return normalize_db_datetime(v)


class AttendanceSessionBase(BaseModel):
    as_user_id: int
    as_shift_id: Optional[int] = None
    as_date: date
    as_clock_in_at: datetime
    as_clock_in_lat: Optional[float] = None
    as_clock_in_lon: Optional[float] = None
    as_clock_in_address: Optional[str] = None
    as_clock_in_biometric: Optional[Dict[str, Any]] = None
    as_clock_in_device: Optional[Dict[str, Any]] = None
    as_clock_out_at: Optional[datetime] = None
    as_clock_out_lat: Optional[float] = None
    as_clock_out_lon: Optional[float] = None
    as_clock_out_address: Optional[str] = None
    as_clock_out_biometric: Optional[Dict[str, Any]] = None
    as_clock_out_device: Optional[Dict[str, Any]] = None
    as_total_working_hours: float = 0
    as_total_break_hours: float = 0
    as_overtime_hours: float = 0
    as_is_late: bool = False
    as_late_by_minutes: float = 0
    as_is_early_departure: bool = False
    as_early_by_minutes: float = 0
    as_status: SessionStatus = "present"
    as_status_override: Optional[SessionStatus] = None
    as_approval_status: ApprovalStatus = "pending"
    as_notes: Optional[str] = None
    as_irregularities: List[Dict[str, Any]] = Field(default_factory=list)


class AttendanceSessionInDB(AttendanceSessionBase):
    model_config = ConfigDict(from_attributes=True)

    as_id: int
    as_created_at: datetime
    as_updated_at: Optional[datetime] = None
    breaks: List[AttendanceBreak] = Field(default_factory=list)

    @field_validator('as_clock_in_at', 'as_clock_out_at', 'as_created_at', 'as_updated_at', mode='before')
    @classmethod
    def fix_datetime_timezone(cls, v):
        """Fix datetime timezone format from the database"""
        return normalize_db_datetime(v)

    @field_validator('as_irregularities', mode='before')
    @classmethod
    def default_irregularities(cls, v):
        return v or []

    @field_serializer(
        'as_total_working_hours', 'as_total_break_hours', 'as_overtime_hours',
        'as_late_by_minutes', 'as_early_by_minutes'
    )
    def round_durations(self, v: float) -> float:
        # stored unrounded; rounded only on the way out
        return round(v or 0, 2)


class AttendanceSession(AttendanceSessionInDB):
    pass


class AttendanceEvent(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    ae_id: int
    ae_session_id: int
    ae_user_id: int
    ae_event_type: Literal["clock_in", "clock_out", "break_start", "break_end", "admin_correction"]
    ae_occurred_at: datetime
    ae_lat: Optional[float] = None
    ae_lon: Optional[float] = None
    ae_device: Optional[Dict[str, Any]] = None
    ae_detail: Optional[Dict[str, Any]] = None

    @field_validator('ae_occurred_at', mode='before')
    @classmethod
    def fix_datetime_timezone(cls, v):
        return normalize_db_datetime(v)


class ClockResponse(BaseModel):
    """Result of a self-service transition"""
    action: Literal["clock_in", "clock_out", "break_start", "break_end"]
    state: SessionState
    session: AttendanceSession
    timestamp: datetime
    message: str


class SessionTodayResponse(BaseModel):
    """Response schema for today's session"""
    state: SessionState = "no_session"
    session: Optional[AttendanceSession] = None


class MonthlySummary(BaseModel):
    user_id: int
    year: int
    month: int
    days_recorded: int
    status_counts: Dict[str, int]
    late_count: int
    early_departure_count: int
    total_working_hours: float
    total_break_hours: float
    total_overtime_hours: float
    weighted_overtime_hours: float

    @field_serializer(
        'total_working_hours', 'total_break_hours', 'total_overtime_hours', 'weighted_overtime_hours'
    )
    def round_hours(self, v: float) -> float:
        return round(v, 2)


class ApprovalResult(BaseModel):
    updated_count: int
    missing_ids: List[int] = Field(default_factory=list)


class AttendanceStats(BaseModel):
    """Organisation-wide counts over a date range"""
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    total_records: int
    present_count: int
    late_count: int
    early_departure_count: int
    absent_count: int
    average_working_hours: float

    @field_serializer('average_working_hours')
    def round_hours(self, v: float) -> float:
        return round(v, 2)
