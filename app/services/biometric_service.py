"""
Biometric Service - face sample verification and enrollment
"""
import math
from typing import List, Optional, Sequence

import httpx
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import BiometricMismatch, NotEnrolled, ExternalServiceUnavailable
from app.repositories.biometric_enrollment_repository import BiometricEnrollmentRepository
from app.schemas.biometric import BiometricResult, EnrollmentStatus
from atams.exceptions import BadRequestException, NotFoundException
from atams.logging import get_logger

logger = get_logger(__name__)


class EncodingDistanceMatcher:
    """Local matcher: confidence falls off linearly with Euclidean distance"""

    def __init__(self, scale: float = 10.0):
        self.scale = scale

    def compare(self, sample: Sequence[float], reference: Sequence[float]) -> float:
        if len(sample) != len(reference):
            raise BadRequestException(
                "Biometric sample does not match the enrolled encoding size",
                details={"sample_size": len(sample), "reference_size": len(reference)}
            )
        distance = math.dist(sample, reference)
        return max(0.0, 1 - distance / self.scale)


class RemoteFaceMatcher:
    """Matcher backed by an external face-match service"""

    def __init__(self, url: str, timeout: float, transport: Optional[httpx.BaseTransport] = None):
        self.url = url
        self.timeout = timeout
        self.transport = transport

    def compare(self, sample: Sequence[float], reference: Sequence[float]) -> float:
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.post(self.url, json={"sample": list(sample), "reference": list(reference)})
                response.raise_for_status()
                return float(response.json()["confidence"])
        except httpx.HTTPError as e:
            logger.warning(
                "Face match service call failed",
                extra={'extra_data': {'error_type': type(e).__name__, 'url': self.url}}
            )
            raise ExternalServiceUnavailable(
                "Face match service unavailable",
                details={"service": "face_match"}
            ) from e
        except (KeyError, TypeError, ValueError) as e:
            raise ExternalServiceUnavailable(
                "Face match service returned an invalid response",
                details={"service": "face_match"}
            ) from e


def default_matcher():
    if settings.FACE_MATCH_URL:
        return RemoteFaceMatcher(settings.FACE_MATCH_URL, settings.EXTERNAL_SERVICE_TIMEOUT_SECONDS)
    return EncodingDistanceMatcher()


def verify(sample_encoding: Sequence[float], reference_encoding: Sequence[float], threshold: float, matcher=None) -> BiometricResult:
    """
    Compare a live sample against the stored reference.

    Args:
        sample_encoding: Encoding computed from the submitted face image
        reference_encoding: Enrolled encoding
        threshold: Minimum confidence accepted as a match
        matcher: Object with ``compare(sample, reference) -> float``

    Returns:
        BiometricResult with confidence clamped to [0, 1]
    """
    matcher = matcher or default_matcher()
    confidence = min(1.0, max(0.0, matcher.compare(sample_encoding, reference_encoding)))
    return BiometricResult(is_match=confidence >= threshold, confidence=confidence, threshold=threshold)


class BiometricService:
    def __init__(self, repo: BiometricEnrollmentRepository = None, matcher=None, threshold: float = None) -> None:
        self.repo = repo or BiometricEnrollmentRepository()
        self.matcher = matcher or default_matcher()
        self.threshold = settings.BIOMETRIC_THRESHOLD if threshold is None else threshold

    def _reference_for(self, db: Session, user_id: int) -> List[float]:
        enrollment = self.repo.get_by_user(db, user_id)
        if enrollment is None or not enrollment.be_encoding:
            raise NotEnrolled(details={"user_id": user_id})
        return enrollment.be_encoding

    def check(self, db: Session, user_id: int, sample: Optional[Sequence[float]], required: bool) -> Optional[BiometricResult]:
        """
        Gate a clock transition on the biometric policy

        Returns:
            BiometricResult, or None when the gate is not required and no sample was given

        Raises:
            BiometricMismatch: Sample missing while required, or confidence below threshold
            NotEnrolled: Employee has no reference encoding
            ExternalServiceUnavailable: Remote matcher failed
        """
        if sample is None:
            if required:
                raise BiometricMismatch(
                    "Biometric sample is required",
                    details={"reason": "sample_missing"}
                )
            return None

        reference = self._reference_for(db, user_id)
        result = verify(sample, reference, self.threshold, self.matcher)

        if not result.is_match:
            logger.warning(
                "Biometric verification rejected",
                extra={'extra_data': {'user_id': user_id, 'confidence': result.confidence, 'threshold': result.threshold}}
            )
            raise BiometricMismatch(
                details={
                    "reason": "low_confidence",
                    "confidence": round(result.confidence, 4),
                    "threshold": result.threshold
                }
            )
        return result

    def verify_for_user(self, db: Session, user_id: int, sample: Sequence[float]) -> BiometricResult:
        """Verify without gating anything; a low confidence is reported, not raised"""
        reference = self._reference_for(db, user_id)
        return verify(sample, reference, self.threshold, self.matcher)

    def enroll(self, db: Session, user_id: int, encoding: Sequence[float], face_image_url: Optional[str] = None) -> EnrollmentStatus:
        expected = settings.BIOMETRIC_ENCODING_SIZE
        if len(encoding) != expected:
            raise BadRequestException(
                f"Encoding must contain {expected} values",
                details={"size": len(encoding)}
            )
        if not all(math.isfinite(x) for x in encoding):
            raise BadRequestException("Encoding values must be finite numbers")

        enrollment = self.repo.upsert(db, user_id, [float(x) for x in encoding], face_image_url)
        logger.info("Biometric enrollment stored", extra={'extra_data': {'user_id': user_id}})
        return EnrollmentStatus.model_validate(enrollment)

    def get_enrollment_status(self, db: Session, user_id: int) -> EnrollmentStatus:
        enrollment = self.repo.get_by_user(db, user_id)
        if enrollment is None:
            raise NotFoundException("No biometric enrollment found")
        return EnrollmentStatus.model_validate(enrollment)
