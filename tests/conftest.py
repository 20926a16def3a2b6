import os
import tempfile
from datetime import datetime, timezone

import pytest

_TEST_DIR = tempfile.mkdtemp(prefix="attendance-tests-")

# Settings are read at import time, so the environment must be ready first.
os.environ["DATABASE_URL"] = f"sqlite:///{_TEST_DIR}/attendance_test.db"
os.environ["ATLAS_APP_CODE"] = "HRIS_TEST"
os.environ["ATTENDANCE_TIMEZONE"] = "UTC"
os.environ["GEOCODING_ENABLED"] = "false"
os.environ["FACE_MATCH_URL"] = ""
os.environ["LOG_TO_FILE"] = "false"
os.environ["ENCRYPTION_ENABLED"] = "false"

from fastapi.testclient import TestClient  # noqa: E402

from atams.db import Base  # noqa: E402
import app.main as main  # noqa: E402
import app.api.deps as deps  # noqa: E402
from app.api.v1.endpoints import attendance as attendance_endpoints  # noqa: E402
from app.db.session import engine, SessionLocal  # noqa: E402
from app.repositories.shift_repository import ShiftRepository  # noqa: E402
from app.schemas.shift import ShiftCreate  # noqa: E402

EMPLOYEE_ID = 101
ADMIN_ID = 900


class FrozenClock:
    def __init__(self, value: datetime):
        self.value = value

    def __call__(self) -> datetime:
        return self.value

    def set(self, *args) -> None:
        self.value = datetime(*args, tzinfo=timezone.utc)


class FixedMatcher:
    """Matcher stub answering with a fixed confidence"""

    def __init__(self, confidence: float):
        self.confidence = confidence
        self.calls = 0

    def compare(self, sample, reference) -> float:
        self.calls += 1
        return self.confidence


@pytest.fixture()
def db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def current_user():
    return {"user_id": EMPLOYEE_ID, "username": "employee", "role_level": 1}


@pytest.fixture()
def client(db, current_user):
    main.app.dependency_overrides[deps.get_current_user] = lambda: current_user
    try:
        with TestClient(main.app) as c:
            yield c
    finally:
        main.app.dependency_overrides.clear()


@pytest.fixture()
def as_admin(current_user):
    current_user.update({"user_id": ADMIN_ID, "username": "admin", "role_level": 50})
    return current_user


@pytest.fixture()
def clock(monkeypatch):
    frozen = FrozenClock(datetime(2024, 3, 4, 9, 0, tzinfo=timezone.utc))
    monkeypatch.setattr(attendance_endpoints.attendance_service, "clock", frozen)
    return frozen


@pytest.fixture()
def matcher(monkeypatch):
    stub = FixedMatcher(0.95)
    monkeypatch.setattr(attendance_endpoints.attendance_service.biometric_service, "matcher", stub)
    return stub


def make_shift(db, code="DAY", assign_to=None, **overrides):
    """Insert a shift (09:00-17:00 unless overridden) and optionally assign it"""
    data = {
        "sh_code": code,
        "sh_name": f"{code} shift",
        "sh_start_hour": 9,
        "sh_end_hour": 17,
        "sh_biometric_required": False,
    }
    data.update(overrides)
    repo = ShiftRepository()
    shift = repo.create(db, ShiftCreate(**data).model_dump())
    if assign_to is not None:
        repo.assign(db, assign_to, shift.sh_id, ADMIN_ID)
    return shift


def location(lat=-6.2000, lon=106.8166):
    return {"location": {"latitude": lat, "longitude": lon}}
