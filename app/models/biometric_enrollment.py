"""
Biometric Enrollment Model - Reference face encoding per employee
"""
from sqlalchemy import Column, BigInteger, String, DateTime, JSON
from sqlalchemy.sql import func
from atams.db import Base


class BiometricEnrollment(Base):
    """Biometric Enrollment model - Table: biometric_enrollments"""
    __tablename__ = "biometric_enrollments"

    be_user_id = Column(BigInteger, primary_key=True, autoincrement=False)  # References users(u_id)
    be_encoding = Column(JSON, nullable=False)  # list of floats
    be_face_image_url = Column(String(500), nullable=True)
    be_enrolled_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    be_updated_at = Column(DateTime(timezone=True), onupdate=func.now(), nullable=True)
