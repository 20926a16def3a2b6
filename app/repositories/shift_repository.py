"""
Shift Repository - Data access layer for shifts and shift assignments
"""
from typing import Optional, List
from sqlalchemy.orm import Session

from atams.db import BaseRepository
from app.models.shift import Shift, EmployeeShift


class ShiftRepository(BaseRepository[Shift]):
    def __init__(self):
        super().__init__(Shift)

    def get_by_id(self, db: Session, shift_id: int) -> Optional[Shift]:
        """Get shift by ID using ORM"""
        return db.query(Shift).filter(Shift.sh_id == shift_id).first()

    def get_by_code(self, db: Session, code: str) -> Optional[Shift]:
        return db.query(Shift).filter(Shift.sh_code == code).first()

    def get_shifts_with_search(
        self,
        db: Session,
        search: str = "",
        is_active: Optional[bool] = None,
        skip: int = 0,
        limit: int = 100
    ) -> List[Shift]:
        """Get shifts with optional name/code search using ORM"""
        query = db.query(Shift)

        if search:
            pattern = f"%{search}%"
            query = query.filter(Shift.sh_name.ilike(pattern) | Shift.sh_code.ilike(pattern))
        if is_active is not None:
            query = query.filter(Shift.sh_is_active == is_active)

        return query.order_by(Shift.sh_code.asc()).offset(skip).limit(limit).all()

    def count_shifts_with_search(self, db: Session, search: str = "", is_active: Optional[bool] = None) -> int:
        """Count shifts with optional filters using native SQL"""
        conditions = []
        params = {}

        if search:
            conditions.append("(LOWER(sh_name) LIKE :search OR LOWER(sh_code) LIKE :search)")
            params["search"] = f"%{search.lower()}%"
        if is_active is not None:
            conditions.append("sh_is_active = :is_active")
            params["is_active"] = is_active

        where_clause = " AND ".join(conditions) if conditions else "1=1"

        query = f"""
            SELECT COUNT(*)
            FROM shifts
            WHERE {where_clause}
        """
        return self.execute_raw_sql_scalar(db, query, params)

    def get_default_shift(self, db: Session) -> Optional[Shift]:
        return db.query(Shift).filter(
            Shift.sh_is_default.is_(True),
            Shift.sh_is_active.is_(True)
        ).first()

    def clear_default(self, db: Session, except_shift_id: Optional[int] = None) -> None:
        """Unset the default flag on every other shift (caller commits)"""
        query = db.query(Shift).filter(Shift.sh_is_default.is_(True))
        if except_shift_id is not None:
            query = query.filter(Shift.sh_id != except_shift_id)
        for shift in query.all():
            shift.sh_is_default = False

    def is_shift_in_use(self, db: Session, shift_id: int) -> bool:
        """Check sessions and assignments referencing the shift using native SQL"""
        query = """
            SELECT
                (SELECT COUNT(*) FROM attendance_sessions WHERE as_shift_id = :shift_id)
              + (SELECT COUNT(*) FROM employee_shifts WHERE es_shift_id = :shift_id)
        """
        return (self.execute_raw_sql_scalar(db, query, {"shift_id": shift_id}) or 0) > 0

    def delete_by_id(self, db: Session, shift_id: int) -> bool:
        shift = self.get_by_id(db, shift_id)
        if shift:
            db.delete(shift)
            db.commit()
            return True
        return False

    def get_assignment(self, db: Session, user_id: int) -> Optional[EmployeeShift]:
        return db.query(EmployeeShift).filter(EmployeeShift.es_user_id == user_id).first()

    def assign(self, db: Session, user_id: int, shift_id: int, assigned_by: Optional[int] = None) -> EmployeeShift:
        """Create or replace the employee's shift assignment"""
        assignment = self.get_assignment(db, user_id)
        if assignment is None:
            assignment = EmployeeShift(es_user_id=user_id)
        assignment.es_shift_id = shift_id
        assignment.es_assigned_by = assigned_by
        db.add(assignment)
        db.commit()
        db.refresh(assignment)
        return assignment

    def get_shift_for_user(self, db: Session, user_id: int) -> Optional[Shift]:
        """Assigned shift if any, else the active default shift"""
        assignment = self.get_assignment(db, user_id)
        if assignment is not None:
            shift = self.get_by_id(db, assignment.es_shift_id)
            if shift is not None and shift.sh_is_active:
                return shift
        return self.get_default_shift(db)

    def remove_assignment(self, db: Session, user_id: int) -> bool:
        assignment = self.get_assignment(db, user_id)
        if assignment is None:
            return False
        db.delete(assignment)
        db.commit()
        return True
