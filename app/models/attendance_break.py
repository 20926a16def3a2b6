"""
Attendance Break Model - Breaks taken inside a session
"""
from sqlalchemy import Column, BigInteger, String, DateTime, Float, Boolean, ForeignKey
from sqlalchemy.sql import func
from atams.db import Base

from app.db.types import BigIntegerPK


class AttendanceBreak(Base):
    """Attendance Break model - Table: attendance_breaks"""
    __tablename__ = "attendance_breaks"

    ab_id = Column(BigIntegerPK, primary_key=True, index=True, autoincrement=True)
    ab_session_id = Column(BigInteger, ForeignKey("attendance_sessions.as_id"), nullable=False, index=True)
    ab_start_at = Column(DateTime(timezone=True), nullable=False)
    ab_end_at = Column(DateTime(timezone=True), nullable=True)  # NULL while the break is open
    ab_reason = Column(String(20), nullable=False, default="other")  # lunch, tea, meeting, personal, other
    ab_lat = Column(Float, nullable=True)
    ab_lon = Column(Float, nullable=True)
    ab_auto_closed = Column(Boolean, nullable=False, default=False)
    ab_created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    ab_updated_at = Column(DateTime(timezone=True), onupdate=func.now(), nullable=True)
