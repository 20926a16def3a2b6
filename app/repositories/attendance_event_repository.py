"""
Attendance Event Repository - Data access layer for attendance events
"""
from typing import List
from sqlalchemy.orm import Session

from atams.db import BaseRepository
from app.models.attendance_event import AttendanceEvent


class AttendanceEventRepository(BaseRepository[AttendanceEvent]):
    def __init__(self):
        super().__init__(AttendanceEvent)

    def get_user_events(
        self,
        db: Session,
        user_id: int,
        session_id: int = None,
        skip: int = 0,
        limit: int = 50
    ) -> List[AttendanceEvent]:
        """Get user's attendance events, newest first, optionally for one session"""
        query = db.query(AttendanceEvent).filter(
            AttendanceEvent.ae_user_id == user_id
        )

        if session_id:
            query = query.filter(AttendanceEvent.ae_session_id == session_id)

        return query.order_by(
            AttendanceEvent.ae_occurred_at.desc(), AttendanceEvent.ae_id.desc()
        ).offset(skip).limit(limit).all()

    def count_user_events(self, db: Session, user_id: int, session_id: int = None) -> int:
        """Count user's events using native SQL"""
        if session_id:
            query = """
                SELECT COUNT(*)
                FROM attendance_events
                WHERE ae_user_id = :user_id
                AND ae_session_id = :session_id
            """
            return self.execute_raw_sql_scalar(db, query, {"user_id": user_id, "session_id": session_id})

        query = """
            SELECT COUNT(*)
            FROM attendance_events
            WHERE ae_user_id = :user_id
        """
        return self.execute_raw_sql_scalar(db, query, {"user_id": user_id})

    def create_event(self, db: Session, event_data: dict) -> AttendanceEvent:
        """Create attendance event and return the created object"""
        db_event = AttendanceEvent(**event_data)
        db.add(db_event)
        db.commit()
        db.refresh(db_event)
        return db_event
