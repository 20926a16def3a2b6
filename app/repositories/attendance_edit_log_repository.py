"""
Attendance Edit Log Repository - Audit of administrative changes
"""
from typing import List
from sqlalchemy.orm import Session

from atams.db import BaseRepository
from app.models.attendance_edit_log import AttendanceEditLog


class AttendanceEditLogRepository(BaseRepository[AttendanceEditLog]):
    def __init__(self):
        super().__init__(AttendanceEditLog)

    def get_session_logs(self, db: Session, session_id: int) -> List[AttendanceEditLog]:
        return db.query(AttendanceEditLog).filter(
            AttendanceEditLog.el_session_id == session_id
        ).order_by(AttendanceEditLog.el_id.asc()).all()
