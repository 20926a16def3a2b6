"""
Attendance Session Model - One clock-in/clock-out cycle per employee per day
"""
from sqlalchemy import (
    Column, BigInteger, String, Date, DateTime, Float, Boolean, JSON, ForeignKey, UniqueConstraint
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from atams.db import Base

from app.db.types import BigIntegerPK


class AttendanceSession(Base):
    """Attendance Session model - Table: attendance_sessions"""
    __tablename__ = "attendance_sessions"
    __table_args__ = (
        UniqueConstraint("as_user_id", "as_date", name="uq_attendance_sessions_user_date"),
    )

    as_id = Column(BigIntegerPK, primary_key=True, index=True, autoincrement=True)
    as_user_id = Column(BigInteger, nullable=False, index=True)  # References users(u_id)
    as_shift_id = Column(BigInteger, ForeignKey("shifts.sh_id"), nullable=True, index=True)
    as_date = Column(Date, nullable=False, index=True)

    as_clock_in_at = Column(DateTime(timezone=True), nullable=False)
    as_clock_in_lat = Column(Float, nullable=True)
    as_clock_in_lon = Column(Float, nullable=True)
    as_clock_in_address = Column(String(500), nullable=True)
    as_clock_in_biometric = Column(JSON, nullable=True)  # {"confidence", "is_match", "threshold"}
    as_clock_in_device = Column(JSON, nullable=True)  # {"user_agent", "ip_address", "device_type"}

    as_clock_out_at = Column(DateTime(timezone=True), nullable=True)
    as_clock_out_lat = Column(Float, nullable=True)
    as_clock_out_lon = Column(Float, nullable=True)
    as_clock_out_address = Column(String(500), nullable=True)
    as_clock_out_biometric = Column(JSON, nullable=True)
    as_clock_out_device = Column(JSON, nullable=True)

    # Derived, stored unrounded
    as_total_working_hours = Column(Float, nullable=False, default=0)
    as_total_break_hours = Column(Float, nullable=False, default=0)
    as_overtime_hours = Column(Float, nullable=False, default=0)
    as_is_late = Column(Boolean, nullable=False, default=False)
    as_late_by_minutes = Column(Float, nullable=False, default=0)
    as_is_early_departure = Column(Boolean, nullable=False, default=False)
    as_early_by_minutes = Column(Float, nullable=False, default=0)
    as_status = Column(String(20), nullable=False, default="present")

    as_status_override = Column(String(20), nullable=True)
    as_approval_status = Column(String(10), nullable=False, default="pending")
    as_notes = Column(String(500), nullable=True)
    as_irregularities = Column(JSON, nullable=False, default=list)

    as_created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    as_updated_at = Column(DateTime(timezone=True), onupdate=func.now(), nullable=True)

    breaks = relationship(
        "AttendanceBreak",
        order_by="AttendanceBreak.ab_start_at",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
