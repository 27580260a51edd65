"""
Timezone conversion between a user's local wall clock and UTC storage.
Uses the IANA database through zoneinfo; no fixed offsets are assumed.
"""

from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from rehearsal_sync.errors import InvalidTimezoneError
from rehearsal_sync.infrastructure.observability.logging import get_logger
from rehearsal_sync.models.domain.availability_domain import (
    ALL_DAY_END,
    ALL_DAY_START,
    TimeSlot,
    check_date,
)
from rehearsal_sync.utils.time_ranges import to_minutes

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class WallClock:
    """A calendar date and HH:mm time, in whichever zone the caller means."""

    date: str
    time: str


@dataclass(frozen=True, slots=True)
class UtcSlot:
    date: str
    start_time: str
    end_time: str
    end_date: str | None = None
    is_all_day: bool = False


@dataclass(frozen=True, slots=True)
class LocalSlot:
    date: str
    start: str
    end: str
    is_all_day: bool = False


def resolve_timezone(name: str) -> ZoneInfo:
    """
    Look up an IANA timezone.

    Raises:
        InvalidTimezoneError: If the identifier is unknown
    """
    if not name or not isinstance(name, str):
        raise InvalidTimezoneError(str(name))
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise InvalidTimezoneError(name) from e


def zone_or_utc(name: str) -> ZoneInfo:
    """Resolve a timezone, falling back to UTC with a warning."""
    try:
        return resolve_timezone(name)
    except InvalidTimezoneError:
        logger.warning("Unknown timezone, falling back to UTC", timezone=name)
        return ZoneInfo("UTC")


def _naive(date_str: str, time_str: str) -> datetime:
    check_date(date_str)
    minutes = to_minutes(time_str)
    day = datetime.strptime(date_str, "%Y-%m-%d")
    return day + timedelta(minutes=minutes)


def _local_instant(date_str: str, time_str: str, zone: ZoneInfo) -> datetime:
    # Render a naive guess through the zone and correct by the difference.
    # The second pass settles instants whose offset differs from the first
    # guess's offset (DST transitions).
    target = _naive(date_str, time_str)
    instant = target.replace(tzinfo=UTC)
    for _ in range(2):
        rendered = instant.astimezone(zone).replace(tzinfo=None)
        diff = target - rendered
        if not diff:
            break
        instant += diff
    return instant


def local_to_utc(date_str: str, time_str: str, timezone: str) -> WallClock:
    """
    Interpret a wall-clock time in a timezone and return its UTC date and time.

    Args:
        date_str: Local date, YYYY-MM-DD
        time_str: Local time, HH:mm
        timezone: IANA timezone identifier

    Returns:
        WallClock: The UTC date and time

    Raises:
        InvalidTimezoneError: If the timezone is unknown
        ParseError: If the date or time is malformed
    """
    zone = resolve_timezone(timezone)
    instant = _local_instant(date_str, time_str, zone)
    return WallClock(date=instant.strftime("%Y-%m-%d"), time=instant.strftime("%H:%M"))


def utc_to_local(date_str: str, time_str: str, timezone: str) -> WallClock:
    """Render a UTC date and time in a timezone's local wall clock."""
    zone = resolve_timezone(timezone)
    instant = _naive(date_str, time_str).replace(tzinfo=UTC)
    local = instant.astimezone(zone)
    return WallClock(date=local.strftime("%Y-%m-%d"), time=local.strftime("%H:%M"))


def convert_slots_to_utc(date_str: str, slots: list[TimeSlot], timezone: str) -> list[UtcSlot]:
    """
    Convert a local day's slots to UTC.

    All-day slots are pinned to 00:00-23:59 on the same date without any
    conversion. endDate is set only when the end lands on another UTC date.
    """
    zone_name = zone_or_utc(timezone).key
    result = []
    for slot in slots:
        if slot.is_all_day:
            result.append(UtcSlot(date_str, ALL_DAY_START, ALL_DAY_END, None, True))
            continue
        start = local_to_utc(date_str, slot.start, zone_name)
        end = local_to_utc(date_str, slot.end, zone_name)
        result.append(
            UtcSlot(
                date=start.date,
                start_time=start.time,
                end_time=end.time,
                end_date=end.date if end.date != start.date else None,
            )
        )
    return result


def convert_slots_from_utc(date_str: str, slots: list[TimeSlot], timezone: str) -> list[LocalSlot]:
    """Convert a UTC day's slots to the user's local wall clock."""
    zone_name = zone_or_utc(timezone).key
    result = []
    for slot in slots:
        if slot.is_all_day:
            result.append(LocalSlot(date_str, ALL_DAY_START, ALL_DAY_END, True))
            continue
        start = utc_to_local(date_str, slot.start, zone_name)
        end = utc_to_local(date_str, slot.end, zone_name)
        result.append(LocalSlot(date=start.date, start=start.time, end=end.time))
    return result


def get_timezone_offset(timezone: str, at: datetime | None = None) -> int:
    """UTC offset of a timezone at an instant, in minutes east of UTC."""
    zone = zone_or_utc(timezone)
    at = at or datetime.now(UTC)
    if at.tzinfo is None:
        at = at.replace(tzinfo=UTC)
    offset = at.astimezone(zone).utcoffset() or timedelta(0)
    return int(offset.total_seconds() // 60)


def format_utc(instant: datetime) -> str:
    """Format an instant as YYYY-MM-DDTHH:MM:SS.mmmZ."""
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=UTC)
    instant = instant.astimezone(UTC)
    return instant.strftime("%Y-%m-%dT%H:%M:%S.") + f"{instant.microsecond // 1000:03d}Z"


def parse_utc(value: str) -> datetime:
    """Parse an ISO-8601 timestamp into an aware UTC datetime."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def create_timestamp(date_str: str, time_str: str, timezone: str) -> str:
    """Compose a local date and time in a timezone into a UTC ISO timestamp."""
    zone = zone_or_utc(timezone)
    return format_utc(_local_instant(date_str, time_str, zone))


def all_day_bounds(date_str: str) -> tuple[str, str]:
    """UTC-pinned start/end timestamps of an all-day entry."""
    check_date(date_str)
    return f"{date_str}T00:00:00.000Z", f"{date_str}T23:59:59.999Z"


def get_today_in_timezone(timezone: str, now: datetime | None = None) -> str:
    now = now or datetime.now(UTC)
    return now.astimezone(zone_or_utc(timezone)).strftime("%Y-%m-%d")


def get_current_time_in_timezone(timezone: str, now: datetime | None = None) -> str:
    now = now or datetime.now(UTC)
    return now.astimezone(zone_or_utc(timezone)).strftime("%H:%M")


def day_window(start_day: date, days: int, timezone: str = "UTC") -> tuple[datetime, datetime]:
    """UTC instants of local midnight on start_day and on the day the window ends."""
    zone = zone_or_utc(timezone)
    end_day = start_day + timedelta(days=days)
    return (
        _local_instant(start_day.isoformat(), "00:00", zone),
        _local_instant(end_day.isoformat(), "00:00", zone),
    )
