import inspect
from datetime import date, datetime, timezone

import httpx
import pytest
from sqlalchemy.exc import IntegrityError

import app.api.deps as deps
from app.api.v1.endpoints import attendance as attendance_endpoints
from app.models.attendance_edit_log import AttendanceEditLog
from app.models.attendance_event import AttendanceEvent
from app.models.attendance_session import AttendanceSession
from app.models.notification import Notification
from app.repositories.attendance_session_repository import AttendanceSessionRepository, is_user_date_conflict
from app.repositories.biometric_enrollment_repository import BiometricEnrollmentRepository
from tests.conftest import EMPLOYEE_ID, make_shift, location

OFFICE = {"name": "HQ", "center_lat": -6.2000, "center_lon": 106.8166, "radius_m": 100}


def _code(res):
    return res.json()["details"]["code"]


def test_clock_in_creates_session(client, db, clock):
    make_shift(db, assign_to=EMPLOYEE_ID)
    clock.set(2024, 3, 4, 9, 5)

    res = client.post("/api/v1/attendance/clock-in", json=location(), headers={"User-Agent": "pytest-agent"})
    assert res.status_code == 201
    data = res.json()["data"]
    assert data["state"] == "clocked_in"
    assert data["session"]["as_date"] == "2024-03-04"
    assert data["session"]["as_is_late"] is False
    assert data["session"]["as_status"] == "present"
    assert data["session"]["as_clock_in_device"]["user_agent"] == "pytest-agent"
    assert data["session"]["as_clock_in_address"] == "-6.200000, 106.816600"

    events = db.query(AttendanceEvent).all()
    assert [e.ae_event_type for e in events] == ["clock_in"]
    assert db.query(Notification).filter(Notification.nt_type == "clock_in").count() == 1


def test_late_clock_in(client, db, clock):
    make_shift(db, assign_to=EMPLOYEE_ID)
    clock.set(2024, 3, 4, 9, 20)

    res = client.post("/api/v1/attendance/clock-in", json=location())
    session = res.json()["data"]["session"]
    assert session["as_is_late"] is True
    assert session["as_late_by_minutes"] == 20
    assert session["as_status"] == "late"
    assert session["as_irregularities"][0]["type"] == "late_arrival"
    assert db.query(Notification).filter(Notification.nt_type == "irregular_attendance").count() == 1


def test_second_clock_in_same_day_rejected(client, db, clock):
    make_shift(db, assign_to=EMPLOYEE_ID)
    client.post("/api/v1/attendance/clock-in", json=location())
    clock.set(2024, 3, 4, 9, 30)

    res = client.post("/api/v1/attendance/clock-in", json=location())
    assert res.status_code == 400
    assert _code(res) == "ALREADY_CLOCKED_IN"
    assert db.query(AttendanceSession).count() == 1


def test_clock_in_after_clock_out_same_day_rejected(client, db, clock):
    make_shift(db, assign_to=EMPLOYEE_ID)
    client.post("/api/v1/attendance/clock-in", json=location())
    clock.set(2024, 3, 4, 17, 0)
    client.post("/api/v1/attendance/clock-out", json=location())
    clock.set(2024, 3, 4, 18, 0)

    res = client.post("/api/v1/attendance/clock-in", json=location())
    assert _code(res) == "ALREADY_CLOCKED_IN"


def test_concurrent_clock_in_loses_on_unique_constraint(client, db, clock, monkeypatch):
    make_shift(db, assign_to=EMPLOYEE_ID)
    assert client.post("/api/v1/attendance/clock-in", json=location()).status_code == 201

    # the second request passed the existence check before the first one committed
    service = attendance_endpoints.attendance_service
    monkeypatch.setattr(service.session_repo, "get_session_for_date", lambda *args, **kwargs: None)
    monkeypatch.setattr(service.session_repo, "get_open_session", lambda *args, **kwargs: None)

    res = client.post("/api/v1/attendance/clock-in", json=location())
    assert res.status_code == 400
    assert _code(res) == "ALREADY_CLOCKED_IN"
    assert db.query(AttendanceSession).count() == 1


def test_clock_in_outside_geofence(client, db, clock):
    make_shift(db, assign_to=EMPLOYEE_ID, sh_location_required=True, sh_allowed_locations=[OFFICE])

    # roughly 5.5 km south of the office
    res = client.post("/api/v1/attendance/clock-in", json=location(lat=-6.25, lon=106.8166))
    assert res.status_code == 400
    assert _code(res) == "OUT_OF_GEOFENCE"
    assert res.json()["details"]["nearest_location"] == "HQ"
    assert db.query(AttendanceSession).count() == 0

    flagged = db.query(Notification).filter(Notification.nt_type == "irregular_attendance").one()
    assert flagged.nt_data["type"] == "location_mismatch"


def test_clock_in_inside_geofence(client, db, clock):
    make_shift(db, assign_to=EMPLOYEE_ID, sh_location_required=True, sh_allowed_locations=[OFFICE])

    res = client.post("/api/v1/attendance/clock-in", json=location(lat=-6.2003, lon=106.8166))
    assert res.status_code == 201


def test_no_shift_configured(client, db, clock):
    res = client.post("/api/v1/attendance/clock-in", json=location())
    assert res.status_code == 400
    assert _code(res) == "NO_SHIFT_ASSIGNED"


def test_default_shift_applies_without_assignment(client, db, clock):
    make_shift(db, sh_is_default=True)
    res = client.post("/api/v1/attendance/clock-in", json=location())
    assert res.status_code == 201


def test_biometric_required_without_sample(client, db, clock, matcher):
    make_shift(db, assign_to=EMPLOYEE_ID, sh_biometric_required=True)

    res = client.post("/api/v1/attendance/clock-in", json=location())
    assert res.status_code == 400
    assert _code(res) == "BIOMETRIC_MISMATCH"
    assert res.json()["details"]["reason"] == "sample_missing"


def test_biometric_not_enrolled(client, db, clock, matcher):
    make_shift(db, assign_to=EMPLOYEE_ID, sh_biometric_required=True)

    res = client.post("/api/v1/attendance/clock-in", json={**location(), "biometric": {"encoding": [0.1] * 128}})
    assert _code(res) == "NOT_ENROLLED"
    assert db.query(AttendanceSession).count() == 0


@pytest.mark.parametrize("confidence, expected_status", [(0.75, 400), (0.85, 201)])
def test_biometric_threshold(client, db, clock, matcher, confidence, expected_status):
    make_shift(db, assign_to=EMPLOYEE_ID, sh_biometric_required=True)
    BiometricEnrollmentRepository().upsert(db, EMPLOYEE_ID, [0.1] * 128)
    matcher.confidence = confidence

    res = client.post("/api/v1/attendance/clock-in", json={**location(), "biometric": {"encoding": [0.1] * 128}})
    assert res.status_code == expected_status
    if expected_status == 201:
        assert res.json()["data"]["session"]["as_clock_in_biometric"]["confidence"] == pytest.approx(0.85)
    else:
        assert _code(res) == "BIOMETRIC_MISMATCH"


def test_break_cycle(client, db, clock):
    make_shift(db, assign_to=EMPLOYEE_ID)
    client.post("/api/v1/attendance/clock-in", json=location())

    clock.set(2024, 3, 4, 12, 0)
    res = client.post("/api/v1/attendance/breaks/start", json={"reason": "lunch"})
    assert res.status_code == 200
    assert res.json()["data"]["state"] == "on_break"

    res = client.post("/api/v1/attendance/breaks/start", json={"reason": "lunch"})
    assert res.status_code == 400
    assert _code(res) == "BREAK_ALREADY_OPEN"

    clock.set(2024, 3, 4, 12, 30)
    res = client.post("/api/v1/attendance/breaks/end")
    assert res.status_code == 200
    assert res.json()["data"]["state"] == "clocked_in"
    assert res.json()["data"]["session"]["as_total_break_hours"] == 0.5

    res = client.post("/api/v1/attendance/breaks/end")
    assert res.status_code == 404
    assert _code(res) == "NO_OPEN_BREAK"


def test_break_requires_open_session(client, db, clock):
    make_shift(db, assign_to=EMPLOYEE_ID)
    res = client.post("/api/v1/attendance/breaks/start", json={})
    assert res.status_code == 404
    assert _code(res) == "NO_OPEN_SESSION"


def test_full_day_with_overtime(client, db, clock):
    make_shift(db, assign_to=EMPLOYEE_ID)
    client.post("/api/v1/attendance/clock-in", json=location())
    clock.set(2024, 3, 4, 12, 0)
    client.post("/api/v1/attendance/breaks/start", json={"reason": "lunch"})
    clock.set(2024, 3, 4, 12, 30)
    client.post("/api/v1/attendance/breaks/end")
    clock.set(2024, 3, 4, 18, 0)

    res = client.post("/api/v1/attendance/clock-out", json=location())
    assert res.status_code == 200
    data = res.json()["data"]
    assert data["state"] == "clocked_out"
    assert data["session"]["as_total_working_hours"] == 8.5
    assert data["session"]["as_total_break_hours"] == 0.5
    assert data["session"]["as_overtime_hours"] == 0.5
    assert data["session"]["as_status"] == "present"

    db.expire_all()
    stored = db.query(AttendanceSession).one()
    assert abs(stored.as_total_working_hours - 8.5) < 1e-9
    assert abs(stored.as_total_break_hours - 0.5) < 1e-9
    types = [e.ae_event_type for e in db.query(AttendanceEvent).order_by(AttendanceEvent.ae_id)]
    assert types == ["clock_in", "break_start", "break_end", "clock_out"]


def test_clock_out_closes_open_break(client, db, clock):
    make_shift(db, assign_to=EMPLOYEE_ID)
    client.post("/api/v1/attendance/clock-in", json=location())
    clock.set(2024, 3, 4, 16, 0)
    client.post("/api/v1/attendance/breaks/start", json={"reason": "tea"})
    clock.set(2024, 3, 4, 17, 0)

    res = client.post("/api/v1/attendance/clock-out", json=location())
    assert res.status_code == 200
    session = res.json()["data"]["session"]
    assert session["breaks"][0]["ab_auto_closed"] is True
    assert session["as_total_break_hours"] == 1.0
    assert session["as_total_working_hours"] == 7.0
    assert any(item["type"] == "auto_closed_break" for item in session["as_irregularities"])

    event = db.query(AttendanceEvent).filter(AttendanceEvent.ae_event_type == "clock_out").one()
    assert event.ae_detail["auto_closed_break_id"] == session["breaks"][0]["ab_id"]


def test_early_departure_overrides_late(client, db, clock):
    make_shift(db, assign_to=EMPLOYEE_ID)
    clock.set(2024, 3, 4, 9, 30)
    client.post("/api/v1/attendance/clock-in", json=location())
    clock.set(2024, 3, 4, 16, 0)

    session = client.post("/api/v1/attendance/clock-out", json=location()).json()["data"]["session"]
    assert session["as_is_late"] is True
    assert session["as_is_early_departure"] is True
    assert session["as_early_by_minutes"] == 60
    assert session["as_status"] == "early_departure"


def test_clock_out_without_session(client, db, clock):
    make_shift(db, assign_to=EMPLOYEE_ID)
    res = client.post("/api/v1/attendance/clock-out", json=location())
    assert res.status_code == 404
    assert _code(res) == "NO_OPEN_SESSION"


def test_clock_out_twice(client, db, clock):
    make_shift(db, assign_to=EMPLOYEE_ID)
    client.post("/api/v1/attendance/clock-in", json=location())
    clock.set(2024, 3, 4, 17, 0)
    assert client.post("/api/v1/attendance/clock-out", json=location()).status_code == 200
    clock.set(2024, 3, 4, 17, 5)
    assert _code(client.post("/api/v1/attendance/clock-out", json=location())) == "NO_OPEN_SESSION"


def test_overnight_shift(client, db, clock):
    make_shift(db, code="NIGHT", assign_to=EMPLOYEE_ID, sh_start_hour=22, sh_end_hour=6)
    clock.set(2024, 3, 4, 23, 50)
    res = client.post("/api/v1/attendance/clock-in", json=location())
    assert res.json()["data"]["session"]["as_date"] == "2024-03-04"

    clock.set(2024, 3, 5, 2, 0)
    assert client.get("/api/v1/attendance/today").json()["data"]["state"] == "clocked_in"

    clock.set(2024, 3, 5, 6, 10)
    res = client.post("/api/v1/attendance/clock-out", json=location())
    assert res.status_code == 200
    session = res.json()["data"]["session"]
    assert session["as_total_working_hours"] == pytest.approx(6.33)
    assert session["as_is_early_departure"] is False


def test_clock_in_rejected_while_overnight_session_open(client, db, clock):
    make_shift(db, code="NIGHT", assign_to=EMPLOYEE_ID, sh_start_hour=22, sh_end_hour=6)
    clock.set(2024, 3, 4, 22, 0)
    assert client.post("/api/v1/attendance/clock-in", json=location()).status_code == 201

    # past the shift end, so the new tap would otherwise start a session for 2024-03-05
    clock.set(2024, 3, 5, 6, 30)
    res = client.post("/api/v1/attendance/clock-in", json=location())
    assert res.status_code == 400
    assert _code(res) == "ALREADY_CLOCKED_IN"
    assert res.json()["details"]["date"] == "2024-03-04"

    clock.set(2024, 3, 5, 6, 35)
    res = client.post("/api/v1/attendance/clock-out", json=location())
    assert res.status_code == 200
    assert res.json()["data"]["session"]["as_date"] == "2024-03-04"

    sessions = db.query(AttendanceSession).all()
    assert [(s.as_date.isoformat(), s.as_clock_out_at is None) for s in sessions] == [("2024-03-04", False)]


def test_today_after_overnight_clock_out(client, db, clock):
    make_shift(db, code="NIGHT", assign_to=EMPLOYEE_ID, sh_start_hour=22, sh_end_hour=6)
    clock.set(2024, 3, 4, 23, 50)
    client.post("/api/v1/attendance/clock-in", json=location())
    clock.set(2024, 3, 5, 6, 10)
    assert client.post("/api/v1/attendance/clock-out", json=location()).status_code == 200

    data = client.get("/api/v1/attendance/today").json()["data"]
    assert data["state"] == "clocked_out"
    assert data["session"]["as_date"] == "2024-03-04"


def test_today_ignores_yesterdays_day_shift(client, db, clock):
    make_shift(db, assign_to=EMPLOYEE_ID)
    client.post("/api/v1/attendance/clock-in", json=location())
    clock.set(2024, 3, 4, 17, 0)
    client.post("/api/v1/attendance/clock-out", json=location())

    clock.set(2024, 3, 5, 8, 0)
    assert client.get("/api/v1/attendance/today").json()["data"]["state"] == "no_session"


def test_day_shift_session_not_reopened_next_day(client, db, clock):
    make_shift(db, assign_to=EMPLOYEE_ID)
    client.post("/api/v1/attendance/clock-in", json=location())

    clock.set(2024, 3, 5, 9, 0)
    assert _code(client.post("/api/v1/attendance/clock-out", json=location())) == "NO_OPEN_SESSION"
    assert client.post("/api/v1/attendance/clock-in", json=location()).status_code == 201


def test_today_and_history(client, db, clock):
    make_shift(db, assign_to=EMPLOYEE_ID)
    assert client.get("/api/v1/attendance/today").json()["data"]["state"] == "no_session"

    client.post("/api/v1/attendance/clock-in", json=location())
    clock.set(2024, 3, 4, 17, 0)
    client.post("/api/v1/attendance/clock-out", json=location())

    assert client.get("/api/v1/attendance/today").json()["data"]["state"] == "clocked_out"

    res = client.get("/api/v1/attendance/sessions/me")
    assert res.status_code == 200
    assert res.json()["total"] == 1

    res = client.get("/api/v1/attendance/events/me")
    assert res.json()["total"] == 2


def test_monthly_summary(client, db, clock):
    make_shift(db, assign_to=EMPLOYEE_ID)
    for day, (start, end) in enumerate([(9, 18), (10, 17)], start=4):
        clock.set(2024, 3, day, start, 0)
        client.post("/api/v1/attendance/clock-in", json=location())
        clock.set(2024, 3, day, end, 0)
        client.post("/api/v1/attendance/clock-out", json=location())

    res = client.get("/api/v1/attendance/summary/me", params={"month": "2024-03"})
    assert res.status_code == 200
    summary = res.json()["data"]
    assert summary["days_recorded"] == 2
    assert summary["late_count"] == 1
    assert summary["total_working_hours"] == 16.0
    assert summary["total_overtime_hours"] == 1.0
    assert summary["weighted_overtime_hours"] == 1.5

    res = client.get("/api/v1/attendance/summary/me", params={"month": "2024-13"})
    assert res.status_code == 400


def test_admin_routes_require_admin(client, db):
    res = client.get("/api/v1/attendance/sessions")
    assert res.status_code == 403


def test_unauthenticated_request(client, db):
    client.app.dependency_overrides[deps.get_current_user] = lambda: None
    res = client.get("/api/v1/attendance/today")
    assert res.status_code == 401


def test_admin_correction_recomputes_and_logs(client, db, clock, current_user):
    make_shift(db, assign_to=EMPLOYEE_ID)
    clock.set(2024, 3, 4, 9, 30)
    session_id = client.post("/api/v1/attendance/clock-in", json=location()).json()["data"]["session"]["as_id"]

    current_user.update({"user_id": 900, "role_level": 50})
    res = client.patch(
        f"/api/v1/attendance/sessions/{session_id}",
        json={
            "as_clock_in_at": "2024-03-04T09:00:00Z",
            "as_clock_out_at": "2024-03-04T17:00:00Z",
            "reason": "badge reader was offline",
        },
    )
    assert res.status_code == 200
    data = res.json()["data"]
    assert data["as_is_late"] is False
    assert data["as_status"] == "present"
    assert data["as_total_working_hours"] == 8.0

    log = db.query(AttendanceEditLog).one()
    assert log.el_editor_id == 900
    assert log.el_old_payload["as_is_late"] is True
    assert log.el_new_payload["as_is_late"] is False
    assert db.query(AttendanceEvent).filter(AttendanceEvent.ae_event_type == "admin_correction").count() == 1


def test_admin_correction_keeps_time_ordering(client, db, clock, current_user):
    make_shift(db, assign_to=EMPLOYEE_ID)
    session_id = client.post("/api/v1/attendance/clock-in", json=location()).json()["data"]["session"]["as_id"]

    current_user.update({"user_id": 900, "role_level": 50})
    res = client.patch(
        f"/api/v1/attendance/sessions/{session_id}",
        json={"as_clock_out_at": "2024-03-04T08:00:00Z"},
    )
    assert res.status_code == 400


def test_status_override(client, db, clock, current_user):
    make_shift(db, assign_to=EMPLOYEE_ID)
    clock.set(2024, 3, 4, 9, 40)
    session_id = client.post("/api/v1/attendance/clock-in", json=location()).json()["data"]["session"]["as_id"]

    current_user.update({"user_id": 900, "role_level": 50})
    res = client.patch(f"/api/v1/attendance/sessions/{session_id}", json={"as_status_override": "leave"})
    assert res.json()["data"]["as_status"] == "leave"

    res = client.patch(f"/api/v1/attendance/sessions/{session_id}", json={"clear_status_override": True})
    assert res.json()["data"]["as_status"] == "late"


def test_admin_delete_session(client, db, clock, current_user):
    make_shift(db, assign_to=EMPLOYEE_ID)
    session_id = client.post("/api/v1/attendance/clock-in", json=location()).json()["data"]["session"]["as_id"]

    current_user.update({"user_id": 900, "role_level": 50})
    res = client.delete(f"/api/v1/attendance/sessions/{session_id}", params={"reason": "duplicate"})
    assert res.status_code == 204

    assert client.get(f"/api/v1/attendance/sessions/{session_id}").status_code == 404
    assert db.query(AttendanceEvent).count() == 0
    log = db.query(AttendanceEditLog).one()
    assert log.el_action == "delete"
    assert log.el_old_payload["as_id"] == session_id


def test_admin_missing_session(client, db, as_admin):
    assert client.get("/api/v1/attendance/sessions/999").status_code == 404
    assert client.patch("/api/v1/attendance/sessions/999", json={"as_notes": "x"}).status_code == 404
    assert client.delete("/api/v1/attendance/sessions/999").status_code == 404


def test_admin_listing_approval_and_export(client, db, clock, current_user):
    make_shift(db, assign_to=EMPLOYEE_ID)
    session_id = client.post("/api/v1/attendance/clock-in", json=location()).json()["data"]["session"]["as_id"]

    current_user.update({"user_id": 900, "role_level": 50})
    res = client.get("/api/v1/attendance/sessions", params={"user_id": EMPLOYEE_ID})
    assert res.status_code == 200
    assert res.json()["total"] == 1

    res = client.post(
        "/api/v1/attendance/sessions/approval",
        json={"session_ids": [session_id, 12345], "approval_status": "approved"},
    )
    assert res.json()["data"] == {"updated_count": 1, "missing_ids": [12345]}

    res = client.get("/api/v1/attendance/sessions", params={"approval_status": "approved"})
    assert res.json()["total"] == 1

    res = client.get("/api/v1/attendance/report/export")
    assert res.status_code == 200
    assert res.headers["content-type"].startswith("text/csv")
    lines = res.text.strip().splitlines()
    assert lines[0].startswith("as_id,as_user_id,as_date")
    assert len(lines) == 2


def test_attendance_stats(client, db, clock, current_user):
    make_shift(db, assign_to=EMPLOYEE_ID)
    for day, start, end in [(4, 9, 17), (5, 10, 17), (6, 9, None)]:
        clock.set(2024, 3, day, start, 0)
        client.post("/api/v1/attendance/clock-in", json=location())
        if end is not None:
            clock.set(2024, 3, day, end, 0)
            client.post("/api/v1/attendance/clock-out", json=location())

    assert client.get("/api/v1/attendance/stats").status_code == 403

    current_user.update({"user_id": 900, "role_level": 50})
    res = client.get("/api/v1/attendance/stats")
    assert res.status_code == 200
    stats = res.json()["data"]
    assert stats["total_records"] == 3
    assert stats["present_count"] == 2
    assert stats["late_count"] == 1
    assert stats["early_departure_count"] == 0
    assert stats["absent_count"] == 0
    # the open session has no worked hours yet
    assert stats["average_working_hours"] == 7.5

    res = client.get("/api/v1/attendance/stats", params={"date_from": "2024-03-05", "date_to": "2024-03-05"})
    stats = res.json()["data"]
    assert stats["total_records"] == 1
    assert stats["late_count"] == 1
    assert stats["date_from"] == "2024-03-05"

    res = client.get("/api/v1/attendance/stats", params={"date_from": "2024-04-01"})
    assert res.json()["data"]["total_records"] == 0
    assert res.json()["data"]["average_working_hours"] == 0.0

    res = client.get("/api/v1/attendance/stats", params={"date_from": "2024-03-06", "date_to": "2024-03-01"})
    assert res.status_code == 400


def test_lock_taking_handlers_run_in_threadpool():
    # these hold row locks or call out over HTTP, so they must not block the event loop
    for handler in (
        attendance_endpoints.clock_in,
        attendance_endpoints.clock_out,
        attendance_endpoints.start_break,
        attendance_endpoints.end_break,
        attendance_endpoints.correct_session,
        attendance_endpoints.delete_session,
    ):
        assert not inspect.iscoroutinefunction(handler), handler.__name__


def test_create_session_maps_only_the_user_date_conflict(db):
    shift = make_shift(db)
    repo = AttendanceSessionRepository()
    data = {
        "as_user_id": EMPLOYEE_ID,
        "as_shift_id": shift.sh_id,
        "as_date": date(2024, 3, 4),
        "as_clock_in_at": datetime(2024, 3, 4, 9, 0, tzinfo=timezone.utc),
    }
    assert repo.create_session(db, data) is not None
    assert repo.create_session(db, dict(data)) is None

    incomplete = {"as_user_id": EMPLOYEE_ID, "as_date": date(2024, 3, 5)}
    with pytest.raises(IntegrityError):
        repo.create_session(db, incomplete)
    assert db.query(AttendanceSession).count() == 1


@pytest.mark.parametrize("constraint, expected", [
    ("uq_attendance_sessions_user_date", True),
    ("attendance_sessions_as_shift_id_fkey", False),
])
def test_user_date_conflict_uses_constraint_name(constraint, expected):
    class Diag:
        constraint_name = constraint

    class DriverError(Exception):
        diag = Diag()

    error = IntegrityError("INSERT INTO attendance_sessions ...", {}, DriverError("violation"))
    assert is_user_date_conflict(error) is expected


def test_invalid_coordinates_rejected(client, db, clock):
    make_shift(db, assign_to=EMPLOYEE_ID)
    res = client.post("/api/v1/attendance/clock-in", json=location(lat=91.0))
    assert res.status_code == 422


def test_notification_failure_does_not_fail_clock_in(client, db, clock, monkeypatch):
    class BrokenChannel:
        name = "push"

        def send(self, db, message):
            raise RuntimeError("push gateway down")

    service = attendance_endpoints.attendance_service
    monkeypatch.setattr(service.notification_service, "channels", [BrokenChannel()])
    make_shift(db, assign_to=EMPLOYEE_ID)

    res = client.post("/api/v1/attendance/clock-in", json=location())
    assert res.status_code == 201
    assert db.query(AttendanceSession).count() == 1


def test_geocoder_failure_falls_back_to_coordinates(client, db, clock, monkeypatch):
    geocoder = attendance_endpoints.attendance_service.geocoding_service
    monkeypatch.setattr(geocoder, "enabled", True)
    monkeypatch.setattr(geocoder, "transport", httpx.MockTransport(lambda request: httpx.Response(503)))
    geocoder.clear_cache()
    make_shift(db, assign_to=EMPLOYEE_ID)

    res = client.post("/api/v1/attendance/clock-in", json=location())
    assert res.status_code == 201
    assert res.json()["data"]["session"]["as_clock_in_address"] == "-6.200000, 106.816600"
