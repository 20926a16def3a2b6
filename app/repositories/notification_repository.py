"""
Notification Repository - Data access layer for in-app notifications
"""
from typing import Optional, List
from datetime import datetime
from sqlalchemy.orm import Session

from atams.db import BaseRepository
from app.models.notification import Notification


class NotificationRepository(BaseRepository[Notification]):
    def __init__(self):
        super().__init__(Notification)

    def get_for_user(self, db: Session, user_id: int, notification_id: int) -> Optional[Notification]:
        return db.query(Notification).filter(
            Notification.nt_id == notification_id,
            Notification.nt_user_id == user_id
        ).first()

    def get_user_notifications(
        self,
        db: Session,
        user_id: int,
        unread_only: bool = False,
        skip: int = 0,
        limit: int = 50
    ) -> List[Notification]:
        query = db.query(Notification).filter(Notification.nt_user_id == user_id)
        if unread_only:
            query = query.filter(Notification.nt_is_read.is_(False))
        return query.order_by(Notification.nt_id.desc()).offset(skip).limit(limit).all()

    def count_user_notifications(self, db: Session, user_id: int, unread_only: bool = False) -> int:
        """Count user's notifications using native SQL"""
        query = "SELECT COUNT(*) FROM notifications WHERE nt_user_id = :user_id"
        params = {"user_id": user_id}
        if unread_only:
            query += " AND nt_is_read = :is_read"
            params["is_read"] = False
        return self.execute_raw_sql_scalar(db, query, params)

    def mark_all_as_read(self, db: Session, user_id: int, read_at: datetime) -> int:
        """Mark every unread notification of the user as read, returns affected rows"""
        updated = db.query(Notification).filter(
            Notification.nt_user_id == user_id,
            Notification.nt_is_read.is_(False)
        ).update({"nt_is_read": True, "nt_read_at": read_at}, synchronize_session=False)
        db.commit()
        return updated
