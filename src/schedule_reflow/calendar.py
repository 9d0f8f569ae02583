"""Layer 1: shift calendar, working-time arithmetic over weekly shifts.

A work center can work only inside its shift for the weekday, minus any
maintenance windows. Everything here is a pure function that walks day by
day on demand, bounded by a day ceiling instead of a fixed horizon.

All evaluation uses the instant's UTC weekday and hour-of-day.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Sequence

from schedule_reflow.timestamps import format_instant, midnight, whole_minutes
from schedule_reflow.types import MaintenanceWindow, SchedulingBoundExceeded, Shift

# Safety ceilings for the day-by-day walks
MAX_SCHEDULE_DAYS = 365
MAX_SHIFT_SEARCH_DAYS = 30


def _utc(dt: datetime, name: str) -> datetime:
    if dt.tzinfo is None or dt.utcoffset() is None:
        raise TypeError(
            f"{name} must be a timezone-aware datetime, got naive {dt.isoformat()}"
        )
    return dt.astimezone(timezone.utc)


def day_of_week(d: date) -> int:
    """Sunday=0 .. Saturday=6 (Python's date.weekday() is Monday=0)."""
    return (d.weekday() + 1) % 7


def _shift_for_day(d: date, shifts: Sequence[Shift]) -> Shift | None:
    dow = day_of_week(d)
    for shift in shifts:
        if shift.day_of_week == dow:
            return shift
    return None


def _shift_bounds(day_start: datetime, shift: Shift) -> tuple[datetime, datetime]:
    return (
        day_start + timedelta(hours=shift.start_hour),
        day_start + timedelta(hours=shift.end_hour),
    )


def _subtract_windows(
    start: datetime,
    end: datetime,
    windows: Sequence[MaintenanceWindow],
) -> list[tuple[datetime, datetime]]:
    """Cut [start, end) around every window. Windows may overlap each other."""
    segments = [(start, end)]
    for window in windows:
        if window.end_date <= start or window.start_date >= end:
            continue
        remaining: list[tuple[datetime, datetime]] = []
        for seg_start, seg_end in segments:
            if window.end_date <= seg_start or window.start_date >= seg_end:
                remaining.append((seg_start, seg_end))
                continue
            if seg_start < window.start_date:
                remaining.append((seg_start, window.start_date))
            if window.end_date < seg_end:
                remaining.append((window.end_date, seg_end))
        segments = remaining
    segments.sort()
    return segments


def working_segments_for_date(
    d: date,
    shifts: Sequence[Shift],
    maintenance_windows: Sequence[MaintenanceWindow] = (),
) -> list[tuple[datetime, datetime]]:
    """Working intervals for a date: that weekday's shift minus maintenance.

    Half-open intervals [start, end), sorted. Empty when there is no shift.
    """
    shift = _shift_for_day(d, shifts)
    if shift is None:
        return []
    day_start = datetime.combine(d, time(0, 0), tzinfo=timezone.utc)
    shift_start, shift_end = _shift_bounds(day_start, shift)
    return _subtract_windows(shift_start, shift_end, maintenance_windows)


# ------------------------------------------------------------------
# Public API: time arithmetic
# ------------------------------------------------------------------

def calculate_end_date(
    start: datetime,
    duration_minutes: int,
    shifts: Sequence[Shift],
    maintenance_windows: Sequence[MaintenanceWindow] = (),
    *,
    max_days: int = MAX_SCHEDULE_DAYS,
) -> datetime:
    """Forward walk: start + duration_minutes of working time -> completion.

    Work pauses at shift end and at maintenance windows, resuming after the
    window if the shift is still open, otherwise at the next shift. The
    completion instant is the start of the final segment plus the exact
    minutes worked in it.

    Raises SchedulingBoundExceeded if the work cannot finish within max_days.
    """
    start = _utc(start, "start")
    if duration_minutes < 0:
        raise ValueError(f"duration_minutes must be >= 0, got {duration_minutes}")
    if duration_minutes == 0:
        return start

    remaining = duration_minutes
    current = start
    current_date = start.date()

    for _ in range(max_days):
        segments = working_segments_for_date(current_date, shifts, maintenance_windows)
        for seg_start, seg_end in segments:
            if seg_end <= current:
                continue

            effective_start = max(seg_start, current)
            available = whole_minutes(seg_end - effective_start)
            if available <= 0:
                continue

            if remaining <= available:
                return effective_start + timedelta(minutes=remaining)
            remaining -= available
            current = seg_end

        current_date += timedelta(days=1)

    raise SchedulingBoundExceeded(
        max_days,
        f"Could not schedule {duration_minutes} minutes starting "
        f"{format_instant(start)}: {remaining} minutes left. "
        f"Check shifts and maintenance windows",
    )


def overlaps_maintenance(
    start: datetime,
    end: datetime,
    maintenance_windows: Sequence[MaintenanceWindow],
) -> bool:
    """True if [start, end) overlaps any window."""
    return any(
        start < window.end_date and end > window.start_date
        for window in maintenance_windows
    )


def is_during_shift(
    instant: datetime,
    shifts: Sequence[Shift],
    *,
    closing: bool = False,
) -> bool:
    """Whether an instant lies inside that weekday's shift.

    Opening convention (start instants): shift_start <= t < shift_end.
    Closing convention (end instants):   shift_start < t <= shift_end,
    so work that finishes exactly at shift end is inside the shift.
    """
    instant = _utc(instant, "instant")
    shift = _shift_for_day(instant.date(), shifts)
    if shift is None:
        return False
    shift_start, shift_end = _shift_bounds(midnight(instant), shift)
    if closing:
        return shift_start < instant <= shift_end
    return shift_start <= instant < shift_end


def time_periods_overlap(
    start1: datetime, end1: datetime, start2: datetime, end2: datetime
) -> bool:
    """Half-open overlap test. Touching intervals do not overlap."""
    return start1 < end2 and end1 > start2


def find_next_shift_start(
    from_: datetime,
    shifts: Sequence[Shift],
    *,
    inclusive: bool = False,
    max_days: int = MAX_SHIFT_SEARCH_DAYS,
) -> datetime:
    """First shift start strictly after from_ (at or after, if inclusive).

    Raises SchedulingBoundExceeded if no shift starts within max_days.
    """
    from_ = _utc(from_, "from_")
    day_start = midnight(from_)

    for _ in range(max_days):
        shift = _shift_for_day(day_start.date(), shifts)
        if shift is not None:
            shift_start = day_start + timedelta(hours=shift.start_hour)
            if shift_start > from_ or (inclusive and shift_start == from_):
                return shift_start
        day_start += timedelta(days=1)

    raise SchedulingBoundExceeded(
        max_days, f"No shift found after {format_instant(from_)}"
    )


def _snap_to_shift(
    candidate: datetime, shifts: Sequence[Shift], max_days: int
) -> datetime:
    shift = _shift_for_day(candidate.date(), shifts)
    if shift is not None:
        shift_start, shift_end = _shift_bounds(midnight(candidate), shift)
        if candidate < shift_start:
            return shift_start
        if candidate < shift_end:
            return candidate
    return find_next_shift_start(candidate, shifts, max_days=max_days)


def get_earliest_start_time(
    parent_end_times: Sequence[datetime],
    work_center_available_from: datetime,
    shifts: Sequence[Shift],
    maintenance_windows: Sequence[MaintenanceWindow] = (),
    *,
    max_days: int = MAX_SHIFT_SEARCH_DAYS,
) -> datetime:
    """Earliest feasible start for a work order.

    The later of the latest parent completion and the work center's free
    time, snapped forward to the next shift instant when it falls outside
    shift hours. An instant inside a maintenance window moves to the
    window's end and is snapped again.
    """
    candidate = _utc(work_center_available_from, "work_center_available_from")
    for end in parent_end_times:
        end = _utc(end, "parent_end_time")
        if end > candidate:
            candidate = end

    # Each window can block at most once: the candidate only moves forward.
    while True:
        candidate = _snap_to_shift(candidate, shifts, max_days)
        blocking = next(
            (w for w in maintenance_windows if w.covers(candidate)), None
        )
        if blocking is None:
            return candidate
        candidate = blocking.end_date.astimezone(timezone.utc)


def working_minutes_between(
    start: datetime,
    end: datetime,
    shifts: Sequence[Shift],
    maintenance_windows: Sequence[MaintenanceWindow] = (),
) -> int:
    """Count whole working minutes in [start, end)."""
    start = _utc(start, "start")
    end = _utc(end, "end")
    if start >= end:
        return 0

    total = 0
    current_date = start.date()
    while current_date <= end.date():
        for seg_start, seg_end in working_segments_for_date(
            current_date, shifts, maintenance_windows
        ):
            effective_start = max(seg_start, start)
            effective_end = min(seg_end, end)
            if effective_start < effective_end:
                total += whole_minutes(effective_end - effective_start)
        current_date += timedelta(days=1)
    return total
