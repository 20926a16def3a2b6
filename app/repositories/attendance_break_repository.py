"""
Attendance Break Repository - Data access layer for session breaks
"""
from typing import Optional
from sqlalchemy.orm import Session

from atams.db import BaseRepository
from app.models.attendance_break import AttendanceBreak


class AttendanceBreakRepository(BaseRepository[AttendanceBreak]):
    def __init__(self):
        super().__init__(AttendanceBreak)

    def get_open_break(self, db: Session, session_id: int) -> Optional[AttendanceBreak]:
        """Get the break of a session that has not ended yet"""
        return db.query(AttendanceBreak).filter(
            AttendanceBreak.ab_session_id == session_id,
            AttendanceBreak.ab_end_at.is_(None)
        ).first()
