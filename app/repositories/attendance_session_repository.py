"""
Attendance Session Repository - Data access layer for attendance sessions
"""
from typing import Optional, List, Iterable
from datetime import date
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from atams.db import BaseRepository
from app.models.attendance_session import AttendanceSession
from app.models.attendance_event import AttendanceEvent

USER_DATE_CONSTRAINT = "uq_attendance_sessions_user_date"


def is_user_date_conflict(error: IntegrityError) -> bool:
    """True when the error comes from the one-session-per-user-per-day constraint"""
    diag = getattr(error.orig, "diag", None)
    constraint = getattr(diag, "constraint_name", None)
    if constraint is not None:
        return constraint == USER_DATE_CONSTRAINT
    # SQLite names the columns instead of the constraint
    message = str(error.orig)
    return USER_DATE_CONSTRAINT in message or (
        "UNIQUE constraint failed" in message
        and "attendance_sessions.as_user_id, attendance_sessions.as_date" in message
    )


class AttendanceSessionRepository(BaseRepository[AttendanceSession]):
    def __init__(self):
        super().__init__(AttendanceSession)

    def get_by_id(self, db: Session, session_id: int, for_update: bool = False) -> Optional[AttendanceSession]:
        query = db.query(AttendanceSession).filter(AttendanceSession.as_id == session_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def get_session_for_date(self, db: Session, user_id: int, target_date: date) -> Optional[AttendanceSession]:
        """Get the user's session (open or closed) for a calendar day using ORM"""
        return db.query(AttendanceSession).filter(
            AttendanceSession.as_user_id == user_id,
            AttendanceSession.as_date == target_date
        ).first()

    def get_open_session(
        self,
        db: Session,
        user_id: int,
        since_date: date,
        for_update: bool = False
    ) -> Optional[AttendanceSession]:
        """Latest session without a clock-out dated on or after since_date"""
        query = db.query(AttendanceSession).filter(
            AttendanceSession.as_user_id == user_id,
            AttendanceSession.as_date >= since_date,
            AttendanceSession.as_clock_out_at.is_(None)
        ).order_by(AttendanceSession.as_date.desc())
        if for_update:
            query = query.with_for_update()
        return query.first()

    def create_session(self, db: Session, session_data: dict) -> Optional[AttendanceSession]:
        """
        Insert a new session.
        Returns None if (user, date) already has a session; the unique
        constraint decides, so concurrent clock-ins cannot both win.
        Any other integrity failure is re-raised.
        """
        try:
            db_session = AttendanceSession(**session_data)
            db.add(db_session)
            db.commit()
            db.refresh(db_session)
            return db_session
        except IntegrityError as e:
            db.rollback()
            if is_user_date_conflict(e):
                return None
            raise

    def get_user_sessions(self, db: Session, user_id: int, skip: int = 0, limit: int = 50) -> List[AttendanceSession]:
        """Get user's sessions with pagination using ORM"""
        return db.query(AttendanceSession).filter(
            AttendanceSession.as_user_id == user_id
        ).order_by(AttendanceSession.as_date.desc()).offset(skip).limit(limit).all()

    def count_user_sessions(self, db: Session, user_id: int) -> int:
        query = "SELECT COUNT(*) FROM attendance_sessions WHERE as_user_id = :user_id"
        return self.execute_raw_sql_scalar(db, query, {"user_id": user_id})

    def get_sessions_in_range(self, db: Session, user_id: int, date_from: date, date_to: date) -> List[AttendanceSession]:
        return db.query(AttendanceSession).filter(
            AttendanceSession.as_user_id == user_id,
            AttendanceSession.as_date >= date_from,
            AttendanceSession.as_date <= date_to
        ).order_by(AttendanceSession.as_date.asc()).all()

    def get_by_ids(self, db: Session, session_ids: Iterable[int]) -> List[AttendanceSession]:
        return db.query(AttendanceSession).filter(AttendanceSession.as_id.in_(list(session_ids))).all()

    def _filtered_query(
        self,
        db: Session,
        user_id: int = None,
        date_from: date = None,
        date_to: date = None,
        status: str = None,
        approval_status: str = None
    ):
        query = db.query(AttendanceSession)

        if user_id:
            query = query.filter(AttendanceSession.as_user_id == user_id)
        if date_from:
            query = query.filter(AttendanceSession.as_date >= date_from)
        if date_to:
            query = query.filter(AttendanceSession.as_date <= date_to)
        if status:
            query = query.filter(AttendanceSession.as_status == status)
        if approval_status:
            query = query.filter(AttendanceSession.as_approval_status == approval_status)
        return query

    def get_sessions_with_filters(
        self,
        db: Session,
        user_id: int = None,
        date_from: date = None,
        date_to: date = None,
        status: str = None,
        approval_status: str = None,
        skip: int = 0,
        limit: int = 100,
        sort: str = "desc"
    ) -> List[AttendanceSession]:
        """Get sessions with various filters using ORM"""
        query = self._filtered_query(db, user_id, date_from, date_to, status, approval_status)

        if sort.lower() == "asc":
            query = query.order_by(AttendanceSession.as_date.asc(), AttendanceSession.as_clock_in_at.asc())
        else:
            query = query.order_by(AttendanceSession.as_date.desc(), AttendanceSession.as_clock_in_at.desc())

        if limit is not None:
            query = query.offset(skip).limit(limit)
        return query.all()

    def count_sessions_with_filters(
        self,
        db: Session,
        user_id: int = None,
        date_from: date = None,
        date_to: date = None,
        status: str = None,
        approval_status: str = None
    ) -> int:
        """Count sessions with filters using native SQL"""
        conditions = []
        params = {}

        if user_id:
            conditions.append("as_user_id = :user_id")
            params["user_id"] = user_id
        if date_from:
            conditions.append("as_date >= :date_from")
            params["date_from"] = date_from
        if date_to:
            conditions.append("as_date <= :date_to")
            params["date_to"] = date_to
        if status:
            conditions.append("as_status = :status")
            params["status"] = status
        if approval_status:
            conditions.append("as_approval_status = :approval_status")
            params["approval_status"] = approval_status

        where_clause = " AND ".join(conditions) if conditions else "1=1"

        query = f"""
            SELECT COUNT(*)
            FROM attendance_sessions
            WHERE {where_clause}
        """

        return self.execute_raw_sql_scalar(db, query, params)

    def get_stats(
        self,
        db: Session,
        user_id: int = None,
        date_from: date = None,
        date_to: date = None
    ) -> dict:
        """Aggregate status counts and average worked hours using native SQL"""
        conditions = []
        params = {}

        if user_id:
            conditions.append("as_user_id = :user_id")
            params["user_id"] = user_id
        if date_from:
            conditions.append("as_date >= :date_from")
            params["date_from"] = date_from.isoformat()
        if date_to:
            conditions.append("as_date <= :date_to")
            params["date_to"] = date_to.isoformat()

        where_clause = " AND ".join(conditions) if conditions else "1=1"

        # open sessions have no worked hours yet
        query = f"""
            SELECT
                COUNT(*) AS total_records,
                COALESCE(SUM(CASE WHEN as_status = 'present' THEN 1 ELSE 0 END), 0) AS present_count,
                COALESCE(SUM(CASE WHEN as_status = 'late' THEN 1 ELSE 0 END), 0) AS late_count,
                COALESCE(SUM(CASE WHEN as_status = 'early_departure' THEN 1 ELSE 0 END), 0) AS early_departure_count,
                COALESCE(SUM(CASE WHEN as_status = 'absent' THEN 1 ELSE 0 END), 0) AS absent_count,
                AVG(CASE WHEN as_clock_out_at IS NOT NULL THEN as_total_working_hours END) AS average_working_hours
            FROM attendance_sessions
            WHERE {where_clause}
        """
        return self.execute_raw_sql_dict(db, query, params)[0]

    def delete_session(self, db: Session, db_session: AttendanceSession) -> None:
        """Delete a session with its events; breaks go through the relationship cascade"""
        db.query(AttendanceEvent).filter(
            AttendanceEvent.ae_session_id == db_session.as_id
        ).delete(synchronize_session=False)
        db.delete(db_session)
        db.commit()
