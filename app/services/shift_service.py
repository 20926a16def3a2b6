"""
Shift Service - Business logic for shift management and assignment
"""
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session

from app.core.errors import InvalidShiftConfiguration, NoShiftAssigned
from app.models.shift import Shift as ShiftModel
from app.repositories.shift_repository import ShiftRepository
from app.schemas.shift import (
    ShiftCreate,
    ShiftUpdate,
    Shift,
    ShiftAssignment,
    BulkAssignmentItem,
    BulkAssignmentOutcome,
    BulkAssignmentResult,
)
from app.services.geofence_service import validate_circle
from atams.exceptions import AppException, NotFoundException, ConflictException
from atams.logging import get_logger

logger = get_logger(__name__)


def validate_shift_config(data: Dict[str, Any]) -> None:
    """
    Validate a full shift configuration (after merging any update)

    Raises:
        InvalidShiftConfiguration: first rule that fails
    """
    for field in ("sh_start_hour", "sh_end_hour"):
        if not 0 <= data[field] <= 23:
            raise InvalidShiftConfiguration(f"{field} must be between 0 and 23", details={"field": field})
    for field in ("sh_start_minute", "sh_end_minute"):
        if not 0 <= data[field] <= 59:
            raise InvalidShiftConfiguration(f"{field} must be between 0 and 59", details={"field": field})

    if (data["sh_start_hour"], data["sh_start_minute"]) == (data["sh_end_hour"], data["sh_end_minute"]):
        raise InvalidShiftConfiguration("Shift end time must differ from start time")

    if not 1 <= data["sh_working_hours"] <= 24:
        raise InvalidShiftConfiguration("sh_working_hours must be between 1 and 24")

    for field in (
        "sh_late_threshold_minutes",
        "sh_early_departure_threshold_minutes",
        "sh_overtime_minimum_minutes",
        "sh_overtime_max_daily_hours",
    ):
        if data[field] < 0:
            raise InvalidShiftConfiguration(f"{field} must not be negative", details={"field": field})

    if data["sh_overtime_multiplier"] < 1:
        raise InvalidShiftConfiguration("sh_overtime_multiplier must be at least 1")

    locations = data.get("sh_allowed_locations") or []
    for circle in locations:
        validate_circle(circle)
    if data["sh_location_required"] and not locations:
        raise InvalidShiftConfiguration("Location restriction requires at least one allowed location")


def _shift_data(obj: ShiftModel) -> Dict[str, Any]:
    return {column.name: getattr(obj, column.name) for column in ShiftModel.__table__.columns}


class ShiftService:
    def __init__(self) -> None:
        self.repo = ShiftRepository()

    def list_shifts(self, db: Session, search: str = "", is_active: Optional[bool] = None, skip: int = 0, limit: int = 100) -> List[Shift]:
        shifts = self.repo.get_shifts_with_search(db, search=search, is_active=is_active, skip=skip, limit=limit)
        return [Shift.model_validate(s) for s in shifts]

    def count_shifts(self, db: Session, search: str = "", is_active: Optional[bool] = None) -> int:
        return self.repo.count_shifts_with_search(db, search=search, is_active=is_active)

    def get_shift_model(self, db: Session, shift_id: Optional[int]) -> Optional[ShiftModel]:
        if shift_id is None:
            return None
        return self.repo.get_by_id(db, shift_id)

    def get_shift(self, db: Session, shift_id: int) -> Shift:
        shift = self.repo.get_by_id(db, shift_id)
        if not shift:
            raise NotFoundException("Shift not found")
        return Shift.model_validate(shift)

    def create_shift(self, db: Session, payload: ShiftCreate) -> Shift:
        data = payload.model_dump()
        validate_shift_config(data)
        if self.repo.get_by_code(db, data["sh_code"]):
            raise ConflictException("Shift with this code already exists")

        if data["sh_is_default"]:
            self.repo.clear_default(db)
        obj = self.repo.create(db, data)

        logger.info("Shift created", extra={'extra_data': {'shift_id': obj.sh_id, 'code': obj.sh_code}})
        return Shift.model_validate(obj)

    def update_shift(self, db: Session, shift_id: int, payload: ShiftUpdate) -> Shift:
        obj = self.repo.get_by_id(db, shift_id)
        if not obj:
            raise NotFoundException("Shift not found")

        update_data = payload.model_dump(exclude_unset=True)
        if "sh_allowed_locations" in update_data and update_data["sh_allowed_locations"] is None:
            update_data["sh_allowed_locations"] = []
        # nulls for non-nullable columns mean "leave unchanged"
        update_data = {k: v for k, v in update_data.items() if v is not None}

        merged = {**_shift_data(obj), **update_data}
        validate_shift_config(merged)

        if update_data.get("sh_is_default"):
            self.repo.clear_default(db, except_shift_id=shift_id)
        obj = self.repo.update(db, obj, update_data)

        logger.info("Shift updated", extra={'extra_data': {'shift_id': shift_id, 'fields': sorted(update_data)}})
        return Shift.model_validate(obj)

    def delete_shift(self, db: Session, shift_id: int) -> None:
        if not self.repo.get_by_id(db, shift_id):
            raise NotFoundException("Shift not found")
        if self.repo.is_shift_in_use(db, shift_id):
            raise ConflictException("Shift is referenced by sessions or assignments")
        self.repo.delete_by_id(db, shift_id)
        return None

    def assign_shift(self, db: Session, user_id: int, shift_id: int, assigned_by: Optional[int] = None) -> ShiftAssignment:
        shift = self.repo.get_by_id(db, shift_id)
        if not shift:
            raise NotFoundException("Shift not found")
        if not shift.sh_is_active:
            raise InvalidShiftConfiguration("Cannot assign an inactive shift")
        assignment = self.repo.assign(db, user_id, shift_id, assigned_by)
        return ShiftAssignment.model_validate(assignment)

    def remove_assignment(self, db: Session, user_id: int) -> None:
        """Drop the employee's assignment; the default shift applies afterwards"""
        if not self.repo.remove_assignment(db, user_id):
            raise NotFoundException("Shift assignment not found")
        logger.info("Shift assignment removed", extra={'extra_data': {'user_id': user_id}})

    def bulk_assign(self, db: Session, items: List[BulkAssignmentItem], assigned_by: Optional[int] = None) -> BulkAssignmentResult:
        """
        Assign shifts item by item.
        A failing item is reported in the result and does not stop the others.
        """
        results = []
        for item in items:
            try:
                self.assign_shift(db, item.user_id, item.shift_id, assigned_by)
            except AppException as e:
                results.append(BulkAssignmentOutcome(
                    user_id=item.user_id, shift_id=item.shift_id, success=False, message=e.message
                ))
                continue
            results.append(BulkAssignmentOutcome(
                user_id=item.user_id, shift_id=item.shift_id, success=True, message="Shift assigned successfully"
            ))

        assigned = sum(1 for r in results if r.success)
        logger.info(
            "Bulk shift assignment",
            extra={'extra_data': {'assigned_by': assigned_by, 'assigned': assigned, 'requested': len(items)}}
        )
        return BulkAssignmentResult(assigned_count=assigned, results=results)

    def resolve_shift_for_user(self, db: Session, user_id: int) -> ShiftModel:
        """Assigned shift, else the default shift"""
        shift = self.repo.get_shift_for_user(db, user_id)
        if shift is None:
            raise NoShiftAssigned(details={"user_id": user_id})
        return shift

    def get_assigned_shift(self, db: Session, user_id: int) -> Shift:
        return Shift.model_validate(self.resolve_shift_for_user(db, user_id))
