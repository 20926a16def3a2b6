"""
Biometric Schemas
"""
from typing import List, Optional
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.schemas.common import normalize_db_datetime


class BiometricResult(BaseModel):
    """Outcome of comparing a sample against the reference encoding"""
    is_match: bool
    confidence: float = Field(..., ge=0, le=1)
    threshold: float


class EnrollRequest(BaseModel):
    encoding: List[float] = Field(..., min_length=1)
    face_image_url: Optional[str] = Field(None, max_length=500)


class VerifyRequest(BaseModel):
    encoding: List[float] = Field(..., min_length=1)


class EnrollmentStatus(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    be_user_id: int
    be_face_image_url: Optional[str] = None
    be_enrolled_at: datetime
    be_updated_at: Optional[datetime] = None

    @field_validator('be_enrolled_at', 'be_updated_at', mode='before')
    @classmethod
    def fix_datetime_timezone(cls, v):
        return normalize_db_datetime(v)
