"""
Biometric Enrollment Repository - Reference encodings
"""
from typing import Optional, List
from sqlalchemy.orm import Session

from atams.db import BaseRepository
from app.models.biometric_enrollment import BiometricEnrollment


class BiometricEnrollmentRepository(BaseRepository[BiometricEnrollment]):
    def __init__(self):
        super().__init__(BiometricEnrollment)

    def get_by_user(self, db: Session, user_id: int) -> Optional[BiometricEnrollment]:
        return db.query(BiometricEnrollment).filter(BiometricEnrollment.be_user_id == user_id).first()

    def upsert(self, db: Session, user_id: int, encoding: List[float], face_image_url: Optional[str] = None) -> BiometricEnrollment:
        """Create the enrollment or replace its reference encoding"""
        enrollment = self.get_by_user(db, user_id)
        if enrollment is None:
            return self.create(db, {
                "be_user_id": user_id,
                "be_encoding": list(encoding),
                "be_face_image_url": face_image_url,
            })
        return self.update(db, enrollment, {
            "be_encoding": list(encoding),
            "be_face_image_url": face_image_url,
        })
