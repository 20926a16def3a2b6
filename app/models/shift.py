"""
Shift Model - Work schedule templates
"""
from sqlalchemy import Column, BigInteger, String, Integer, Float, Boolean, DateTime, JSON, ForeignKey
from sqlalchemy.sql import func
from atams.db import Base

from app.db.types import BigIntegerPK


class Shift(Base):
    """Shift model - Table: shifts"""
    __tablename__ = "shifts"

    sh_id = Column(BigIntegerPK, primary_key=True, index=True, autoincrement=True)
    sh_code = Column(String(10), nullable=False, unique=True, index=True)
    sh_name = Column(String(100), nullable=False)
    sh_start_hour = Column(Integer, nullable=False)
    sh_start_minute = Column(Integer, nullable=False, default=0)
    sh_end_hour = Column(Integer, nullable=False)
    sh_end_minute = Column(Integer, nullable=False, default=0)
    sh_working_hours = Column(Float, nullable=False, default=8)
    sh_late_threshold_minutes = Column(Integer, nullable=False, default=15)
    sh_early_departure_threshold_minutes = Column(Integer, nullable=False, default=15)
    sh_overtime_enabled = Column(Boolean, nullable=False, default=True)
    sh_overtime_minimum_minutes = Column(Integer, nullable=False, default=30)
    sh_overtime_multiplier = Column(Float, nullable=False, default=1.5)
    sh_overtime_max_daily_hours = Column(Float, nullable=False, default=4)
    sh_location_required = Column(Boolean, nullable=False, default=False)
    sh_allowed_locations = Column(JSON, nullable=False, default=list)  # [{"name", "center_lat", "center_lon", "radius_m"}]
    sh_biometric_required = Column(Boolean, nullable=False, default=True)
    sh_is_default = Column(Boolean, nullable=False, default=False)
    sh_is_active = Column(Boolean, nullable=False, default=True)
    sh_created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    sh_updated_at = Column(DateTime(timezone=True), onupdate=func.now(), nullable=True)


class EmployeeShift(Base):
    """Employee to shift assignment - Table: employee_shifts"""
    __tablename__ = "employee_shifts"

    es_user_id = Column(BigInteger, primary_key=True, autoincrement=False)  # References users(u_id)
    es_shift_id = Column(BigInteger, ForeignKey("shifts.sh_id"), nullable=False, index=True)
    es_assigned_by = Column(BigInteger, nullable=True)
    es_created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    es_updated_at = Column(DateTime(timezone=True), onupdate=func.now(), nullable=True)
