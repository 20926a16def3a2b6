from datetime import datetime, timezone
from types import SimpleNamespace

import httpx

from app.models.notification import Notification
from app.services.notification_service import (
    InAppChannel,
    NotificationEvent,
    NotificationService,
    WebhookChannel,
)


class _BrokenChannel:
    name = "broken"

    def send(self, db, message):
        raise RuntimeError("gateway down")


def _session():
    return SimpleNamespace(
        as_id=5,
        as_user_id=101,
        as_clock_in_at=datetime(2024, 3, 4, 9, 0, tzinfo=timezone.utc),
        as_clock_out_at=datetime(2024, 3, 4, 17, 0, tzinfo=timezone.utc),
        as_total_working_hours=8.0,
    )


def test_clock_in_message():
    message = NotificationService(channels=[]).build_message(NotificationEvent.CLOCKED_IN, _session())
    assert message["type"] == "clock_in"
    assert message["user_id"] == 101
    assert message["reference_id"] == 5
    assert "09:00" in message["message"]


def test_irregular_message_without_session():
    message = NotificationService(channels=[]).build_message(
        NotificationEvent.IRREGULAR_ATTENDANCE, None,
        {"user_id": 42, "description": "clock_in attempted outside the allowed area"}
    )
    assert message["user_id"] == 42
    assert message["priority"] == "high"
    assert message["reference_id"] is None


def test_channel_failure_is_swallowed(db):
    service = NotificationService(channels=[_BrokenChannel(), InAppChannel()])
    delivered = service.emit(db, NotificationEvent.CLOCKED_OUT, _session())

    assert delivered == ["in_app"]
    rows = db.query(Notification).all()
    assert len(rows) == 1
    assert rows[0].nt_type == "clock_out"


def test_webhook_channel_posts_message(db):
    received = []

    def handler(request):
        received.append(request)
        return httpx.Response(202)

    channel = WebhookChannel("sms", "https://sms.test/send", transport=httpx.MockTransport(handler))
    delivered = NotificationService(channels=[channel]).emit(db, NotificationEvent.CLOCKED_IN, _session())

    assert delivered == ["sms"]
    assert len(received) == 1


def test_webhook_error_does_not_propagate(db):
    channel = WebhookChannel("push", "https://push.test", transport=httpx.MockTransport(lambda r: httpx.Response(500)))
    assert NotificationService(channels=[channel]).emit(db, NotificationEvent.CLOCKED_IN, _session()) == []


def test_notification_endpoints(client, db):
    service = NotificationService(channels=[InAppChannel()])
    service.emit(db, NotificationEvent.CLOCKED_IN, _session())
    service.emit(db, NotificationEvent.CLOCKED_OUT, _session())
    other = SimpleNamespace(**dict(vars(_session()), as_user_id=202))
    service.emit(db, NotificationEvent.CLOCKED_IN, other)

    res = client.get("/api/v1/notifications/me")
    assert res.status_code == 200
    body = res.json()
    assert body["total"] == 2
    first_id = body["data"][0]["nt_id"]

    res = client.post(f"/api/v1/notifications/{first_id}/read")
    assert res.status_code == 200
    assert res.json()["data"]["nt_is_read"] is True

    res = client.get("/api/v1/notifications/me", params={"unread_only": True})
    assert res.json()["total"] == 1

    res = client.post("/api/v1/notifications/read-all")
    assert res.json()["data"]["updated_count"] == 1


def test_cannot_read_someone_elses_notification(client, db):
    service = NotificationService(channels=[InAppChannel()])
    service.emit(db, NotificationEvent.CLOCKED_IN, SimpleNamespace(**dict(vars(_session()), as_user_id=202)))
    notification_id = db.query(Notification).first().nt_id

    res = client.post(f"/api/v1/notifications/{notification_id}/read")
    assert res.status_code == 404
