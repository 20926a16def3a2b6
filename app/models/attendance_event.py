"""
Attendance Event Model - Audit trail for all attendance actions
"""
from sqlalchemy import Column, BigInteger, String, DateTime, Float, JSON, ForeignKey
from sqlalchemy.sql import func
from atams.db import Base

from app.db.types import BigIntegerPK


class AttendanceEvent(Base):
    """Attendance Event model - Table: attendance_events"""
    __tablename__ = "attendance_events"

    ae_id = Column(BigIntegerPK, primary_key=True, index=True, autoincrement=True)
    ae_session_id = Column(BigInteger, ForeignKey("attendance_sessions.as_id"), nullable=False, index=True)
    ae_user_id = Column(BigInteger, nullable=False, index=True)  # References users(u_id)
    ae_event_type = Column(String(20), nullable=False)  # clock_in, clock_out, break_start, break_end, admin_correction
    ae_occurred_at = Column(DateTime(timezone=True), nullable=False)
    ae_lat = Column(Float, nullable=True)
    ae_lon = Column(Float, nullable=True)
    ae_device = Column(JSON, nullable=True)
    ae_detail = Column(JSON, nullable=True)
    ae_created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    ae_updated_at = Column(DateTime(timezone=True), onupdate=func.now(), nullable=True)
