"""
Notification Model - In-app notifications
"""
from sqlalchemy import Column, BigInteger, String, DateTime, Boolean, JSON
from sqlalchemy.sql import func
from atams.db import Base

from app.db.types import BigIntegerPK


class Notification(Base):
    """Notification model - Table: notifications"""
    __tablename__ = "notifications"

    nt_id = Column(BigIntegerPK, primary_key=True, index=True, autoincrement=True)
    nt_user_id = Column(BigInteger, nullable=False, index=True)
    nt_type = Column(String(30), nullable=False)  # clock_in, clock_out, irregular_attendance
    nt_title = Column(String(200), nullable=False)
    nt_message = Column(String(1000), nullable=False)
    nt_priority = Column(String(10), nullable=False, default="medium")  # low, medium, high, urgent
    nt_category = Column(String(20), nullable=False, default="attendance")
    nt_data = Column(JSON, nullable=True)
    nt_reference_id = Column(BigInteger, nullable=True)  # attendance session id
    nt_is_read = Column(Boolean, nullable=False, default=False)
    nt_read_at = Column(DateTime(timezone=True), nullable=True)
    nt_created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
