"""
Notification Service - fans attendance events out to delivery channels
"""
from enum import Enum
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.repositories.notification_repository import NotificationRepository
from app.schemas.notification import Notification
from atams.exceptions import NotFoundException
from atams.logging import get_logger

logger = get_logger(__name__)


class NotificationEvent(str, Enum):
    CLOCKED_IN = "ClockedIn"
    CLOCKED_OUT = "ClockedOut"
    IRREGULAR_ATTENDANCE = "IrregularAttendance"


class InAppChannel:
    """Persists a notification row; always enabled"""
    name = "in_app"

    def __init__(self, repo: NotificationRepository = None) -> None:
        self.repo = repo or NotificationRepository()

    def send(self, db: Session, message: Dict[str, Any]) -> None:
        try:
            self.repo.create(db, {
                "nt_user_id": message["user_id"],
                "nt_type": message["type"],
                "nt_title": message["title"],
                "nt_message": message["message"],
                "nt_priority": message["priority"],
                "nt_category": message["category"],
                "nt_data": message["data"],
                "nt_reference_id": message["reference_id"],
            })
        except SQLAlchemyError:
            db.rollback()
            raise


class WebhookChannel:
    """Email, SMS and push gateways reached over an HTTP webhook"""

    def __init__(self, name: str, url: Optional[str], timeout: float = None, transport: Optional[httpx.BaseTransport] = None) -> None:
        self.name = name
        self.url = url
        self.timeout = settings.EXTERNAL_SERVICE_TIMEOUT_SECONDS if timeout is None else timeout
        self.transport = transport

    def send(self, db: Session, message: Dict[str, Any]) -> None:
        if not self.url:
            logger.warning(
                "Notification channel enabled without a webhook URL",
                extra={'extra_data': {'channel': self.name}}
            )
            return
        with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
            response = client.post(self.url, json={"channel": self.name, **message})
            response.raise_for_status()


def default_channels() -> list:
    channels = [InAppChannel()]
    if settings.NOTIFY_EMAIL_ENABLED:
        channels.append(WebhookChannel("email", settings.NOTIFY_EMAIL_WEBHOOK_URL))
    if settings.NOTIFY_SMS_ENABLED:
        channels.append(WebhookChannel("sms", settings.NOTIFY_SMS_WEBHOOK_URL))
    if settings.NOTIFY_PUSH_ENABLED:
        channels.append(WebhookChannel("push", settings.NOTIFY_PUSH_WEBHOOK_URL))
    return channels


def _format_time(value: Optional[datetime]) -> str:
    if value is None:
        return "-"
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.strftime("%H:%M")


class NotificationService:
    def __init__(self, repo: NotificationRepository = None, channels: list = None) -> None:
        self.repo = repo or NotificationRepository()
        self.channels = channels if channels is not None else default_channels()

    def build_message(self, event: NotificationEvent, session, details: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        details = dict(details or {})
        user_id = session.as_user_id if session is not None else details.get("user_id")
        reference_id = session.as_id if session is not None else None

        if event == NotificationEvent.CLOCKED_IN:
            notification_type, title, priority = "clock_in", "Clocked in", "low"
            text = f"Clocked in at {_format_time(session.as_clock_in_at)}"
        elif event == NotificationEvent.CLOCKED_OUT:
            notification_type, title, priority = "clock_out", "Clocked out", "low"
            text = (
                f"Clocked out at {_format_time(session.as_clock_out_at)}, "
                f"worked {round(session.as_total_working_hours or 0, 2)} h"
            )
        else:
            notification_type, title, priority = "irregular_attendance", "Irregular attendance", "high"
            text = details.get("description") or "Irregular attendance detected"

        return {
            "event": event.value,
            "user_id": user_id,
            "type": notification_type,
            "title": title,
            "message": text,
            "priority": priority,
            "category": "attendance",
            "data": details,
            "reference_id": reference_id,
        }

    def emit(self, db: Session, event: NotificationEvent, session, details: Optional[Dict[str, Any]] = None) -> List[str]:
        """
        Fire-and-forget fan-out of one attendance event.

        Each channel failure is logged and skipped; nothing is raised to the
        caller.

        Returns:
            Names of the channels that accepted the message
        """
        message = self.build_message(event, session, details)
        delivered = []
        for channel in self.channels:
            try:
                channel.send(db, message)
                delivered.append(channel.name)
            except Exception as e:
                logger.warning(
                    "Notification delivery failed",
                    extra={
                        'extra_data': {
                            'channel': channel.name,
                            'event': message["event"],
                            'user_id': message["user_id"],
                            'error_type': type(e).__name__
                        }
                    }
                )
        return delivered

    def list_notifications(self, db: Session, user_id: int, unread_only: bool = False, skip: int = 0, limit: int = 50) -> List[Notification]:
        rows = self.repo.get_user_notifications(db, user_id, unread_only, skip, limit)
        return [Notification.model_validate(n) for n in rows]

    def count_notifications(self, db: Session, user_id: int, unread_only: bool = False) -> int:
        return self.repo.count_user_notifications(db, user_id, unread_only)

    def mark_as_read(self, db: Session, user_id: int, notification_id: int) -> Notification:
        notification = self.repo.get_for_user(db, user_id, notification_id)
        if not notification:
            raise NotFoundException("Notification not found")
        if not notification.nt_is_read:
            notification = self.repo.update(db, notification, {
                "nt_is_read": True,
                "nt_read_at": datetime.now(timezone.utc),
            })
        return Notification.model_validate(notification)

    def mark_all_as_read(self, db: Session, user_id: int) -> int:
        return self.repo.mark_all_as_read(db, user_id, datetime.now(timezone.utc))
