"""
Attendance Service - Session state machine and attendance queries
"""
import csv
import io
from typing import Any, Dict, List, Optional, Tuple
from datetime import datetime, date, timedelta, timezone
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import (
    AlreadyClockedIn,
    NoOpenSession,
    BreakAlreadyOpen,
    NoOpenBreak,
    OutOfGeofence,
    BiometricMismatch,
    NotEnrolled,
)
from app.repositories.attendance_session_repository import AttendanceSessionRepository
from app.repositories.attendance_break_repository import AttendanceBreakRepository
from app.repositories.attendance_event_repository import AttendanceEventRepository
from app.repositories.attendance_edit_log_repository import AttendanceEditLogRepository
from app.schemas.attendance import (
    AttendanceSession,
    AttendanceEvent,
    ClockRequest,
    ClockResponse,
    BreakStartRequest,
    SessionTodayResponse,
    SessionCorrection,
    ApprovalResult,
    MonthlySummary,
    AttendanceStats,
)
from app.services import attendance_rules as rules
from app.services.geofence_service import check_allowed_locations
from app.services.biometric_service import BiometricService
from app.services.geocoding_service import GeocodingService
from app.services.notification_service import NotificationService, NotificationEvent
from app.services.shift_service import ShiftService
from atams.exceptions import NotFoundException, BadRequestException
from atams.logging import get_logger

logger = get_logger(__name__)

EXPORT_COLUMNS = [
    "as_id", "as_user_id", "as_date", "as_clock_in_at", "as_clock_out_at",
    "as_total_working_hours", "as_total_break_hours", "as_overtime_hours",
    "as_late_by_minutes", "as_early_by_minutes", "as_status", "as_approval_status",
]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _irregularity(kind: str, description: str, severity: str) -> Dict[str, Any]:
    return {"type": kind, "description": description, "severity": severity, "resolved": False}


class AttendanceService:
    def __init__(
        self,
        session_repo: AttendanceSessionRepository = None,
        break_repo: AttendanceBreakRepository = None,
        event_repo: AttendanceEventRepository = None,
        edit_log_repo: AttendanceEditLogRepository = None,
        shift_service: ShiftService = None,
        biometric_service: BiometricService = None,
        geocoding_service: GeocodingService = None,
        notification_service: NotificationService = None,
        clock=None,
        tz=None
    ) -> None:
        self.session_repo = session_repo or AttendanceSessionRepository()
        self.break_repo = break_repo or AttendanceBreakRepository()
        self.event_repo = event_repo or AttendanceEventRepository()
        self.edit_log_repo = edit_log_repo or AttendanceEditLogRepository()
        self.shift_service = shift_service or ShiftService()
        self.biometric_service = biometric_service or BiometricService()
        self.geocoding_service = geocoding_service or GeocodingService()
        self.notification_service = notification_service or NotificationService()
        self.clock = clock or _utcnow
        self.tz = tz or ZoneInfo(settings.ATTENDANCE_TIMEZONE)

    # ==================== HELPERS ====================

    def _now(self) -> datetime:
        return rules.as_utc(self.clock())

    def _local_today(self, now: datetime) -> date:
        return now.astimezone(self.tz).date()

    def _find_open_session(self, db: Session, user_id: int, now: datetime, for_update: bool = True):
        """Today's open session, or yesterday's if it belongs to an overnight shift"""
        today = self._local_today(now)
        session = self.session_repo.get_open_session(db, user_id, today - timedelta(days=1), for_update=for_update)
        if session is None:
            return None
        if session.as_date == today:
            return session
        shift = self.shift_service.get_shift_model(db, session.as_shift_id)
        if shift is not None and rules.is_overnight(shift):
            return session
        return None

    def _overnight_session_from(self, db: Session, user_id: int, session_date: date):
        session = self.session_repo.get_session_for_date(db, user_id, session_date)
        if session is None:
            return None
        shift = self.shift_service.get_shift_model(db, session.as_shift_id)
        return session if shift is not None and rules.is_overnight(shift) else None

    def _check_location(self, db: Session, user_id: int, shift, request: ClockRequest, action: str) -> None:
        location = request.location
        check = check_allowed_locations(
            location.latitude, location.longitude, shift, enforced=settings.GEOFENCE_ENFORCED
        )
        if check.allowed:
            return

        logger.warning(
            "Clock action outside geofence",
            extra={'extra_data': {'user_id': user_id, 'action': action, 'distance': check.distance}}
        )
        self.notification_service.emit(db, NotificationEvent.IRREGULAR_ATTENDANCE, None, {
            "user_id": user_id,
            "type": "location_mismatch",
            "action": action,
            "description": f"{action} attempted outside the allowed area",
            "distance": check.distance,
        })
        raise OutOfGeofence(
            details={"reason": check.reason, "nearest_location": check.location_name, "distance": check.distance}
        )

    def _check_biometric(self, db: Session, user_id: int, shift, request: ClockRequest, action: str) -> Optional[Dict[str, Any]]:
        required = bool(settings.BIOMETRIC_ENFORCED and shift is not None and shift.sh_biometric_required)
        sample = request.biometric.encoding if request.biometric is not None else None
        try:
            result = self.biometric_service.check(db, user_id, sample, required)
        except (BiometricMismatch, NotEnrolled) as e:
            self.notification_service.emit(db, NotificationEvent.IRREGULAR_ATTENDANCE, None, {
                "user_id": user_id,
                "type": "biometric_failed",
                "action": action,
                "description": f"{action} rejected: {e.message}",
            })
            raise
        return result.model_dump() if result is not None else None

    def _device_dict(self, request: ClockRequest) -> Optional[Dict[str, Any]]:
        if request.device_info is None:
            return None
        return request.device_info.model_dump()

    def _address(self, request: ClockRequest) -> str:
        if request.location.address:
            return request.location.address
        return self.geocoding_service.describe(request.location.latitude, request.location.longitude)

    def _record_event(self, db: Session, session, event_type: str, occurred_at: datetime,
                      lat: float = None, lon: float = None, device: dict = None, detail: dict = None) -> None:
        self.event_repo.create_event(db, {
            "ae_session_id": session.as_id,
            "ae_user_id": session.as_user_id,
            "ae_event_type": event_type,
            "ae_occurred_at": occurred_at,
            "ae_lat": lat,
            "ae_lon": lon,
            "ae_device": device,
            "ae_detail": detail,
        })

    def _recompute(self, db: Session, session, shift, extra: Dict[str, Any] = None):
        """Apply pending changes, rederive every computed field and commit once"""
        for field, value in (extra or {}).items():
            setattr(session, field, value)
        return self.session_repo.update(db, session, rules.derive_metrics(session, shift, self.tz))

    def _to_response(self, session, action: str, timestamp: datetime, message: str) -> ClockResponse:
        return ClockResponse(
            action=action,
            state=rules.session_state(session),
            session=AttendanceSession.model_validate(session),
            timestamp=timestamp,
            message=message
        )

    # ==================== STATE MACHINE ====================

    def clock_in(self, db: Session, user_id: int, request: ClockRequest) -> ClockResponse:
        """
        NoSession -> ClockedIn

        Args:
            db: Database session
            user_id: Current user ID from auth
            request: Location, device info and optional biometric sample

        Returns:
            ClockResponse: New session in state clocked_in

        Raises:
            AlreadyClockedIn: A session already exists for this shift day,
                or an overnight session is still open
            OutOfGeofence: Shift requires a location and the point is outside every circle
            BiometricMismatch / NotEnrolled: Biometric gate rejected the sample
            NoShiftAssigned: Neither an assignment nor a default shift exists
        """
        now = self._now()
        shift = self.shift_service.resolve_shift_for_user(db, user_id)
        session_date = rules.shift_day(now, shift, self.tz)

        if self.session_repo.get_session_for_date(db, user_id, session_date) is not None:
            raise AlreadyClockedIn(details={"date": session_date.isoformat()})
        open_session = self._find_open_session(db, user_id, now, for_update=False)
        if open_session is not None:
            # an overnight session from the previous day still needs its clock-out
            raise AlreadyClockedIn(details={"date": open_session.as_date.isoformat()})

        self._check_location(db, user_id, shift, request, "clock_in")
        biometric = self._check_biometric(db, user_id, shift, request, "clock_in")

        is_late, late_by = rules.lateness(now, shift, session_date, self.tz)
        irregularities = []
        if is_late:
            irregularities.append(_irregularity("late_arrival", f"Late by {late_by:.0f} minutes", "medium"))

        db_session = self.session_repo.create_session(db, {
            "as_user_id": user_id,
            "as_shift_id": shift.sh_id,
            "as_date": session_date,
            "as_clock_in_at": now,
            "as_clock_in_lat": request.location.latitude,
            "as_clock_in_lon": request.location.longitude,
            "as_clock_in_address": self._address(request),
            "as_clock_in_biometric": biometric,
            "as_clock_in_device": self._device_dict(request),
            "as_is_late": is_late,
            "as_late_by_minutes": late_by,
            "as_status": rules.status_from_flags(is_late, False),
            "as_irregularities": irregularities,
        })
        if db_session is None:
            # lost the race to a concurrent clock-in for the same day
            raise AlreadyClockedIn(details={"date": session_date.isoformat()})

        self._record_event(
            db, db_session, "clock_in", now,
            request.location.latitude, request.location.longitude, self._device_dict(request)
        )

        logger.info(
            "Clocked in",
            extra={'extra_data': {'user_id': user_id, 'session_id': db_session.as_id, 'is_late': is_late}}
        )
        self.notification_service.emit(db, NotificationEvent.CLOCKED_IN, db_session)
        if is_late:
            self.notification_service.emit(db, NotificationEvent.IRREGULAR_ATTENDANCE, db_session, {
                "type": "late_arrival",
                "description": f"Clocked in {late_by:.0f} minutes late",
                "late_by_minutes": late_by,
            })

        return self._to_response(db_session, "clock_in", now, f"Clocked in at {now.astimezone(self.tz):%H:%M}")

    def start_break(self, db: Session, user_id: int, request: BreakStartRequest) -> ClockResponse:
        """ClockedIn -> OnBreak"""
        now = self._now()
        session = self._find_open_session(db, user_id, now)
        if session is None:
            raise NoOpenSession()
        if self.break_repo.get_open_break(db, session.as_id) is not None:
            raise BreakAlreadyOpen()

        lat = request.location.latitude if request.location else None
        lon = request.location.longitude if request.location else None
        self.break_repo.create(db, {
            "ab_session_id": session.as_id,
            "ab_start_at": now,
            "ab_reason": request.reason,
            "ab_lat": lat,
            "ab_lon": lon,
        })
        self._record_event(db, session, "break_start", now, lat, lon, detail={"reason": request.reason})
        db.refresh(session)

        logger.info("Break started", extra={'extra_data': {'user_id': user_id, 'session_id': session.as_id}})
        return self._to_response(session, "break_start", now, f"Break started at {now.astimezone(self.tz):%H:%M}")

    def end_break(self, db: Session, user_id: int) -> ClockResponse:
        """OnBreak -> ClockedIn"""
        now = self._now()
        session = self._find_open_session(db, user_id, now)
        if session is None:
            raise NoOpenSession()
        open_break = self.break_repo.get_open_break(db, session.as_id)
        if open_break is None:
            raise NoOpenBreak()

        open_break.ab_end_at = now
        shift = self.shift_service.get_shift_model(db, session.as_shift_id)
        session = self._recompute(db, session, shift)
        self._record_event(db, session, "break_end", now)

        logger.info("Break ended", extra={'extra_data': {'user_id': user_id, 'session_id': session.as_id}})
        return self._to_response(session, "break_end", now, f"Break ended at {now.astimezone(self.tz):%H:%M}")

    def clock_out(self, db: Session, user_id: int, request: ClockRequest) -> ClockResponse:
        """
        ClockedIn/OnBreak -> ClockedOut

        An open break is closed at the clock-out time and flagged as
        auto-closed on both the break and the session irregularities.

        Raises:
            NoOpenSession: Not clocked in, or already clocked out
            OutOfGeofence / BiometricMismatch / NotEnrolled: Same gates as clock-in
        """
        now = self._now()
        session = self._find_open_session(db, user_id, now)
        if session is None:
            raise NoOpenSession()

        shift = self.shift_service.get_shift_model(db, session.as_shift_id)
        self._check_location(db, user_id, shift, request, "clock_out")
        biometric = self._check_biometric(db, user_id, shift, request, "clock_out")

        if now <= rules.as_utc(session.as_clock_in_at):
            raise BadRequestException("Clock-out time must be after clock-in time")

        irregularities = list(session.as_irregularities or [])
        auto_closed = self.break_repo.get_open_break(db, session.as_id)
        if auto_closed is not None:
            auto_closed.ab_end_at = now
            auto_closed.ab_auto_closed = True
            irregularities.append(_irregularity(
                "auto_closed_break", "Open break closed automatically at clock-out", "low"
            ))

        device = self._device_dict(request)
        session = self._recompute(db, session, shift, {
            "as_clock_out_at": now,
            "as_clock_out_lat": request.location.latitude,
            "as_clock_out_lon": request.location.longitude,
            "as_clock_out_address": self._address(request),
            "as_clock_out_biometric": biometric,
            "as_clock_out_device": device,
        })
        if session.as_is_early_departure:
            irregularities.append(_irregularity(
                "early_departure", f"Left {session.as_early_by_minutes:.0f} minutes early", "medium"
            ))
        if irregularities != (session.as_irregularities or []):
            session = self.session_repo.update(db, session, {"as_irregularities": irregularities})

        self._record_event(
            db, session, "clock_out", now,
            request.location.latitude, request.location.longitude, device,
            {"auto_closed_break_id": auto_closed.ab_id} if auto_closed is not None else None
        )

        logger.info(
            "Clocked out",
            extra={
                'extra_data': {
                    'user_id': user_id,
                    'session_id': session.as_id,
                    'worked_hours': session.as_total_working_hours,
                    'status': session.as_status
                }
            }
        )
        self.notification_service.emit(db, NotificationEvent.CLOCKED_OUT, session)
        if session.as_is_early_departure:
            self.notification_service.emit(db, NotificationEvent.IRREGULAR_ATTENDANCE, session, {
                "type": "early_departure",
                "description": f"Clocked out {session.as_early_by_minutes:.0f} minutes early",
                "early_by_minutes": session.as_early_by_minutes,
            })

        return self._to_response(session, "clock_out", now, f"Clocked out at {now.astimezone(self.tz):%H:%M}")

    # ==================== SELF-SERVICE QUERIES ====================

    def get_today(self, db: Session, user_id: int) -> SessionTodayResponse:
        """Get user's session for today (or the overnight one that started yesterday)"""
        now = self._now()
        today = self._local_today(now)
        session = self._find_open_session(db, user_id, now, for_update=False)
        if session is None:
            session = self.session_repo.get_session_for_date(db, user_id, today)
        if session is None:
            session = self._overnight_session_from(db, user_id, today - timedelta(days=1))
        if session is None:
            return SessionTodayResponse()
        return SessionTodayResponse(
            state=rules.session_state(session),
            session=AttendanceSession.model_validate(session)
        )

    def get_my_sessions(self, db: Session, user_id: int, skip: int = 0, limit: int = 50) -> Tuple[List[AttendanceSession], int]:
        sessions = self.session_repo.get_user_sessions(db, user_id, skip, limit)
        total = self.session_repo.count_user_sessions(db, user_id)
        return [AttendanceSession.model_validate(s) for s in sessions], total

    def get_my_events(self, db: Session, user_id: int, session_id: int = None, skip: int = 0, limit: int = 50) -> Tuple[List[AttendanceEvent], int]:
        events = self.event_repo.get_user_events(db, user_id, session_id, skip, limit)
        total = self.event_repo.count_user_events(db, user_id, session_id)
        return [AttendanceEvent.model_validate(e) for e in events], total

    def get_monthly_summary(self, db: Session, user_id: int, year: int, month: int) -> MonthlySummary:
        first_day = date(year, month, 1)
        next_month = date(year + 1, 1, 1) if month == 12 else date(year, month + 1, 1)
        sessions = self.session_repo.get_sessions_in_range(db, user_id, first_day, next_month - timedelta(days=1))

        status_counts: Dict[str, int] = {}
        weighted_overtime = 0.0
        multipliers: Dict[Any, float] = {}
        for s in sessions:
            status_counts[s.as_status] = status_counts.get(s.as_status, 0) + 1
            if s.as_shift_id not in multipliers:
                shift = self.shift_service.get_shift_model(db, s.as_shift_id)
                multipliers[s.as_shift_id] = shift.sh_overtime_multiplier if shift is not None else 1.0
            weighted_overtime += (s.as_overtime_hours or 0) * multipliers[s.as_shift_id]

        return MonthlySummary(
            user_id=user_id,
            year=year,
            month=month,
            days_recorded=len(sessions),
            status_counts=status_counts,
            late_count=sum(1 for s in sessions if s.as_is_late),
            early_departure_count=sum(1 for s in sessions if s.as_is_early_departure),
            total_working_hours=sum(s.as_total_working_hours or 0 for s in sessions),
            total_break_hours=sum(s.as_total_break_hours or 0 for s in sessions),
            total_overtime_hours=sum(s.as_overtime_hours or 0 for s in sessions),
            weighted_overtime_hours=weighted_overtime
        )

    # ==================== ADMINISTRATION ====================

    def get_attendance_stats(
        self,
        db: Session,
        date_from: date = None,
        date_to: date = None,
        user_id: int = None
    ) -> AttendanceStats:
        """Status counts and average worked hours over a date range (closed sessions only for the average)"""
        if date_from and date_to and date_from > date_to:
            raise BadRequestException("date_from must not be after date_to")

        row = self.session_repo.get_stats(db, user_id, date_from, date_to)
        return AttendanceStats(
            date_from=date_from,
            date_to=date_to,
            total_records=row["total_records"] or 0,
            present_count=row["present_count"] or 0,
            late_count=row["late_count"] or 0,
            early_departure_count=row["early_departure_count"] or 0,
            absent_count=row["absent_count"] or 0,
            average_working_hours=row["average_working_hours"] or 0.0
        )

    def _get_session_model(self, db: Session, session_id: int, for_update: bool = False):
        session = self.session_repo.get_by_id(db, session_id, for_update=for_update)
        if not session:
            raise NotFoundException("Attendance session not found")
        return session

    def get_session(self, db: Session, session_id: int) -> AttendanceSession:
        return AttendanceSession.model_validate(self._get_session_model(db, session_id))

    def get_sessions_admin(
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
        """Get attendance sessions for admin (with filters)"""
        sessions = self.session_repo.get_sessions_with_filters(
            db, user_id, date_from, date_to, status, approval_status, skip, limit, sort
        )
        return [AttendanceSession.model_validate(s) for s in sessions]

    def count_sessions_admin(
        self,
        db: Session,
        user_id: int = None,
        date_from: date = None,
        date_to: date = None,
        status: str = None,
        approval_status: str = None
    ) -> int:
        """Count attendance sessions for admin (with filters)"""
        return self.session_repo.count_sessions_with_filters(
            db, user_id, date_from, date_to, status, approval_status
        )

    def correct_session(self, db: Session, session_id: int, payload: SessionCorrection, editor_id: int) -> AttendanceSession:
        """
        Administrative correction; bypasses the self-service guards but not the
        clock_out > clock_in invariant. Every derived field is recomputed.
        """
        session = self._get_session_model(db, session_id, for_update=True)
        old_payload = AttendanceSession.model_validate(session).model_dump(mode="json", exclude={"breaks"})

        changes: Dict[str, Any] = {}
        if payload.as_clock_in_at is not None:
            changes["as_clock_in_at"] = rules.as_utc(payload.as_clock_in_at)
        if payload.as_clock_out_at is not None:
            changes["as_clock_out_at"] = rules.as_utc(payload.as_clock_out_at)
        if payload.clear_status_override:
            changes["as_status_override"] = None
        elif payload.as_status_override is not None:
            changes["as_status_override"] = payload.as_status_override
        if payload.as_approval_status is not None:
            changes["as_approval_status"] = payload.as_approval_status
        if payload.as_notes is not None:
            changes["as_notes"] = payload.as_notes
        if payload.resolve_irregularities:
            changes["as_irregularities"] = [
                {**item, "resolved": True} for item in (session.as_irregularities or [])
            ]

        clock_in = changes.get("as_clock_in_at", rules.as_utc(session.as_clock_in_at))
        clock_out = changes.get("as_clock_out_at", rules.as_utc(session.as_clock_out_at))
        if clock_out is not None and clock_out <= clock_in:
            raise BadRequestException("Clock-out time must be after clock-in time")

        shift = self.shift_service.get_shift_model(db, session.as_shift_id)
        session = self._recompute(db, session, shift, changes)
        new_payload = AttendanceSession.model_validate(session).model_dump(mode="json", exclude={"breaks"})

        self.edit_log_repo.create(db, {
            "el_session_id": session.as_id,
            "el_editor_id": editor_id,
            "el_action": "update",
            "el_reason": payload.reason,
            "el_old_payload": old_payload,
            "el_new_payload": new_payload,
        })
        self._record_event(
            db, session, "admin_correction", self._now(),
            detail={"editor_id": editor_id, "fields": sorted(changes)}
        )

        logger.info(
            "Attendance session corrected",
            extra={'extra_data': {'session_id': session.as_id, 'editor_id': editor_id, 'fields': sorted(changes)}}
        )
        return AttendanceSession.model_validate(session)

    def bulk_update_approval(self, db: Session, session_ids: List[int], approval_status: str, editor_id: int) -> ApprovalResult:
        sessions = self.session_repo.get_by_ids(db, session_ids)
        found = {s.as_id for s in sessions}
        for s in sessions:
            s.as_approval_status = approval_status
        db.commit()

        for s in sessions:
            self.edit_log_repo.create(db, {
                "el_session_id": s.as_id,
                "el_editor_id": editor_id,
                "el_action": "update",
                "el_reason": "bulk approval",
                "el_new_payload": {"as_approval_status": approval_status},
            })

        logger.info(
            "Bulk approval updated",
            extra={'extra_data': {'editor_id': editor_id, 'count': len(found), 'approval_status': approval_status}}
        )
        return ApprovalResult(
            updated_count=len(found),
            missing_ids=[i for i in session_ids if i not in found]
        )

    def delete_session(self, db: Session, session_id: int, editor_id: int, reason: Optional[str] = None) -> None:
        """Administrative override; the edit log keeps a copy of the deleted session"""
        session = self._get_session_model(db, session_id, for_update=True)
        snapshot = AttendanceSession.model_validate(session).model_dump(mode="json")

        self.edit_log_repo.create(db, {
            "el_session_id": session_id,
            "el_editor_id": editor_id,
            "el_action": "delete",
            "el_reason": reason,
            "el_old_payload": snapshot,
        })
        self.session_repo.delete_session(db, session)
        logger.info(
            "Attendance session deleted",
            extra={'extra_data': {'session_id': session_id, 'editor_id': editor_id}}
        )

    def export_sessions_csv(
        self,
        db: Session,
        user_id: int = None,
        date_from: date = None,
        date_to: date = None,
        status: str = None,
        approval_status: str = None
    ) -> str:
        sessions = self.session_repo.get_sessions_with_filters(
            db, user_id, date_from, date_to, status, approval_status, skip=0, limit=None, sort="asc"
        )
        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(EXPORT_COLUMNS)
        for s in sessions:
            row = AttendanceSession.model_validate(s).model_dump(mode="json")
            writer.writerow([row[column] for column in EXPORT_COLUMNS])
        return buffer.getvalue()

