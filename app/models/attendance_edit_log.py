"""
Attendance Edit Log Model - Administrative corrections and deletions
"""
from sqlalchemy import Column, BigInteger, String, DateTime, JSON
from sqlalchemy.sql import func
from atams.db import Base

from app.db.types import BigIntegerPK


class AttendanceEditLog(Base):
    """Attendance Edit Log model - Table: attendance_edit_logs"""
    __tablename__ = "attendance_edit_logs"

    el_id = Column(BigIntegerPK, primary_key=True, index=True, autoincrement=True)
    el_session_id = Column(BigInteger, nullable=False, index=True)  # no FK, survives session deletion
    el_editor_id = Column(BigInteger, nullable=False)
    el_action = Column(String(10), nullable=False)  # update, delete
    el_reason = Column(String(500), nullable=True)
    el_old_payload = Column(JSON, nullable=True)
    el_new_payload = Column(JSON, nullable=True)
    el_created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
