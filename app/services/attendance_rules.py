"""
Attendance Rules - pure derivations over a session and its shift

Nothing here reads settings or the database. Callers pass the zone used to
anchor shift times to a calendar day. Durations are returned unrounded.
"""
from datetime import datetime, date, time, timedelta, timezone, tzinfo
from typing import Any, Dict, Iterable, Optional, Tuple

STATUS_PRESENT = "present"
STATUS_LATE = "late"
STATUS_EARLY_DEPARTURE = "early_departure"

STATE_NO_SESSION = "no_session"
STATE_CLOCKED_IN = "clocked_in"
STATE_ON_BREAK = "on_break"
STATE_CLOCKED_OUT = "clocked_out"


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Stored datetimes are UTC; SQLite hands them back naive"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_overnight(shift) -> bool:
    return (shift.sh_end_hour, shift.sh_end_minute) < (shift.sh_start_hour, shift.sh_start_minute)


def shift_day(clock_in: datetime, shift, tz: tzinfo) -> date:
    """
    Calendar day a clock-in belongs to.

    For an overnight shift, a clock-in at or before the end time-of-day
    belongs to the shift that started the previous evening.
    """
    local = as_utc(clock_in).astimezone(tz)
    if shift is not None and is_overnight(shift):
        if local.time() <= time(shift.sh_end_hour, shift.sh_end_minute):
            return local.date() - timedelta(days=1)
    return local.date()


def expected_window(shift, session_date: date, tz: tzinfo) -> Tuple[datetime, datetime]:
    """Expected start and end of the shift for a session day"""
    start = datetime.combine(session_date, time(shift.sh_start_hour, shift.sh_start_minute), tzinfo=tz)
    end_date = session_date + timedelta(days=1) if is_overnight(shift) else session_date
    end = datetime.combine(end_date, time(shift.sh_end_hour, shift.sh_end_minute), tzinfo=tz)
    return start, end


def lateness(clock_in: datetime, shift, session_date: date, tz: tzinfo) -> Tuple[bool, float]:
    """(is_late, late_by_minutes); minutes are reported only past the threshold"""
    if shift is None:
        return False, 0.0
    start, _ = expected_window(shift, session_date, tz)
    minutes = (as_utc(clock_in) - start).total_seconds() / 60
    if minutes > shift.sh_late_threshold_minutes:
        return True, minutes
    return False, 0.0


def early_departure(clock_out: datetime, shift, session_date: date, tz: tzinfo) -> Tuple[bool, float]:
    if shift is None:
        return False, 0.0
    _, end = expected_window(shift, session_date, tz)
    minutes = (end - as_utc(clock_out)).total_seconds() / 60
    if minutes > shift.sh_early_departure_threshold_minutes:
        return True, minutes
    return False, 0.0


def break_hours(breaks: Iterable[Any]) -> float:
    """Sum of completed break durations"""
    total = 0.0
    for b in breaks:
        if b.ab_end_at is None:
            continue
        total += (as_utc(b.ab_end_at) - as_utc(b.ab_start_at)).total_seconds()
    return total / 3600


def overtime_hours(worked_hours: float, shift) -> float:
    if shift is None or not shift.sh_overtime_enabled:
        return 0.0
    extra = worked_hours - shift.sh_working_hours
    if extra <= 0 or extra * 60 < shift.sh_overtime_minimum_minutes:
        return 0.0
    if shift.sh_overtime_max_daily_hours:
        return min(extra, shift.sh_overtime_max_daily_hours)
    return extra


def status_from_flags(is_late: bool, is_early_departure: bool, override: Optional[str] = None) -> str:
    # administrative override > early_departure > late > present
    if override:
        return override
    if is_early_departure:
        return STATUS_EARLY_DEPARTURE
    if is_late:
        return STATUS_LATE
    return STATUS_PRESENT


def derive_metrics(session, shift, tz: tzinfo = timezone.utc) -> Dict[str, Any]:
    """
    Recompute every derived field of a session from its times, breaks and shift.

    Returns:
        dict of column name -> value, ready for a repository update
    """
    is_late, late_by = lateness(session.as_clock_in_at, shift, session.as_date, tz)
    total_breaks = break_hours(session.breaks)

    worked = 0.0
    overtime = 0.0
    is_early, early_by = False, 0.0
    if session.as_clock_out_at is not None:
        span = (as_utc(session.as_clock_out_at) - as_utc(session.as_clock_in_at)).total_seconds() / 3600
        worked = max(0.0, span - total_breaks)
        overtime = overtime_hours(worked, shift)
        is_early, early_by = early_departure(session.as_clock_out_at, shift, session.as_date, tz)

    return {
        "as_total_working_hours": worked,
        "as_total_break_hours": total_breaks,
        "as_overtime_hours": overtime,
        "as_is_late": is_late,
        "as_late_by_minutes": late_by,
        "as_is_early_departure": is_early,
        "as_early_by_minutes": early_by,
        "as_status": status_from_flags(is_late, is_early, session.as_status_override),
    }


def derive_status(session, shift, tz: tzinfo = timezone.utc) -> str:
    return derive_metrics(session, shift, tz)["as_status"]


def session_state(session) -> str:
    if session is None:
        return STATE_NO_SESSION
    if session.as_clock_out_at is not None:
        return STATE_CLOCKED_OUT
    if any(b.ab_end_at is None for b in session.breaks):
        return STATE_ON_BREAK
    return STATE_CLOCKED_IN
