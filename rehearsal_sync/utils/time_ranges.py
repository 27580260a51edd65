"""
Interval arithmetic over HH:mm time-of-day ranges.
Pure functions; ranges are TimeSlot values on a single calendar day.
"""

from rehearsal_sync.errors import ParseError
from rehearsal_sync.models.domain.availability_domain import (
    TIME_PATTERN,
    DayCoverage,
    TimeSlot,
)

WORKDAY_START = "09:00"
WORKDAY_END = "23:00"

DAY_END = 23 * 60 + 59


def to_minutes(t: str) -> int:
    """Convert HH:mm to minutes since midnight, in [0, 1439]."""
    if not isinstance(t, str):
        raise ParseError(f"Invalid time: {t!r}", value=t)
    match = TIME_PATTERN.match(t)
    if not match:
        raise ParseError(f"Invalid time: {t!r}", value=t)
    return int(match.group(1)) * 60 + int(match.group(2))


def to_time_string(minutes: int) -> str:
    """Convert minutes since midnight back to zero-padded HH:mm."""
    if isinstance(minutes, bool) or not isinstance(minutes, int) or not 0 <= minutes <= DAY_END:
        raise ParseError(f"Minutes out of range: {minutes!r}", value=minutes)
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def min_time(a: str, b: str) -> str:
    return a if to_minutes(a) < to_minutes(b) else b


def max_time(a: str, b: str) -> str:
    return a if to_minutes(a) > to_minutes(b) else b


def time_lt(a: str, b: str) -> bool:
    return to_minutes(a) < to_minutes(b)


def clamp_to_workday(time_range: TimeSlot) -> TimeSlot | None:
    """Clip a busy range to the workday window, or None if nothing is left."""
    start = max_time(time_range.start, WORKDAY_START)
    end = min_time(time_range.end, WORKDAY_END)
    return TimeSlot(start, end) if time_lt(start, end) else None


def merge_busy_ranges(ranges: list[TimeSlot]) -> list[TimeSlot]:
    """
    Merge overlapping or touching ranges into a minimal sorted cover.

    Ranges within one minute of each other are joined. Degenerate ranges
    (start >= end) are dropped.

    Args:
        ranges: Busy ranges in any order

    Returns:
        list[TimeSlot]: Disjoint ranges sorted by start
    """
    cleaned = [(to_minutes(r.start), to_minutes(r.end)) for r in ranges]
    cleaned = sorted((s, e) for s, e in cleaned if s < e)
    if not cleaned:
        return []

    merged = [list(cleaned[0])]
    for start, end in cleaned[1:]:
        last = merged[-1]
        if start <= last[1] + 1:
            last[1] = max(last[1], end)
        else:
            merged.append([start, end])

    return [TimeSlot(to_time_string(s), to_time_string(e)) for s, e in merged]


def subtract_ranges(ranges: list[TimeSlot], to_subtract: TimeSlot | None) -> list[TimeSlot]:
    """Remove one interval from every range, splitting ranges where needed."""
    if to_subtract is None:
        return list(ranges)

    sub_start = to_minutes(to_subtract.start)
    sub_end = to_minutes(to_subtract.end)
    result = []
    for r in ranges:
        start = to_minutes(r.start)
        end = to_minutes(r.end)
        if sub_end <= start or sub_start >= end:
            result.append(r)
            continue
        if sub_start > start:
            result.append(TimeSlot(to_time_string(start), to_time_string(min(sub_start, end))))
        if sub_end < end:
            result.append(TimeSlot(to_time_string(max(sub_end, start)), to_time_string(end)))
    return result


def is_day_fully_busy(ranges: list[TimeSlot]) -> bool:
    return len(ranges) == 1 and ranges[0].start == "00:00" and ranges[0].end == "23:59"


def classify_day_by_ranges(ranges: list[TimeSlot]) -> DayCoverage:
    """Classify merged busy coverage as free, partial or busy."""
    if not ranges:
        return DayCoverage.FREE
    first, last = ranges[0], ranges[-1]
    if to_minutes(first.start) <= 0 and to_minutes(last.end) >= DAY_END:
        return DayCoverage.BUSY
    return DayCoverage.PARTIAL


def busy_to_free_gaps(ranges: list[TimeSlot]) -> list[TimeSlot]:
    """
    Compute free intervals inside the workday window from busy ranges.

    Args:
        ranges: Busy ranges; merged and clamped to the workday here

    Returns:
        list[TimeSlot]: Free gaps, or the whole workday when nothing is busy
    """
    clamped = [clamp_to_workday(r) for r in merge_busy_ranges(ranges)]
    busy = [r for r in clamped if r is not None]
    if not busy:
        return [TimeSlot(WORKDAY_START, WORKDAY_END)]

    gaps = []
    prev_end = to_minutes(WORKDAY_START)
    for r in busy:
        start = to_minutes(r.start)
        if start > prev_end:
            gaps.append(TimeSlot(to_time_string(prev_end), to_time_string(start)))
        prev_end = max(prev_end, to_minutes(r.end))

    workday_end = to_minutes(WORKDAY_END)
    if prev_end < workday_end:
        gaps.append(TimeSlot(to_time_string(prev_end), to_time_string(workday_end)))

    return [gap for gap in gaps if time_lt(gap.start, gap.end)]
