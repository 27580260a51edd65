# rehearsal_sync/models/domain/availability_domain.py
"""
Availability Domain Models
Per-date availability state, time slots and the wire form exchanged with the
availability store.
"""

import re
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, model_validator
from pydantic.alias_generators import to_camel

from rehearsal_sync.errors import ParseError

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")
DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

ALL_DAY_START = "00:00"
ALL_DAY_END = "23:59"


class DayMode(str, Enum):
    FREE = "free"
    BUSY = "busy"
    CUSTOM = "custom"


class DayCoverage(str, Enum):
    """Classification of a day by its merged busy ranges."""

    FREE = "free"
    PARTIAL = "partial"
    BUSY = "busy"


class EntryType(str, Enum):
    AVAILABLE = "available"
    BUSY = "busy"
    TENTATIVE = "tentative"


class EntrySource(str, Enum):
    MANUAL = "manual"
    IMPORTED = "imported"
    REHEARSAL = "rehearsal"


def check_date(value: str) -> str:
    """Return value if it is a real YYYY-MM-DD date, else raise ParseError."""
    if not isinstance(value, str) or not DATE_PATTERN.match(value):
        raise ParseError(f"Invalid date: {value!r}", value=value)
    try:
        datetime.strptime(value, "%Y-%m-%d")
    except ValueError as e:
        raise ParseError(f"Invalid date: {value!r}", value=value) from e
    return value


@dataclass(frozen=True, slots=True)
class TimeSlot:
    """
    A start/end pair of HH:mm wall-clock times on one calendar day.

    Only the format is checked here. Ordering (start < end) is left to the
    validation engine so invalid slots can be held and reported.
    """

    start: str
    end: str
    is_all_day: bool = False

    def __post_init__(self):
        for value in (self.start, self.end):
            if not isinstance(value, str) or not TIME_PATTERN.match(value):
                raise ParseError(f"Invalid time: {value!r}", value=value)

    def to_dict(self) -> dict:
        data = {"start": self.start, "end": self.end}
        if self.is_all_day:
            data["isAllDay"] = True
        return data


DEFAULT_SLOT = TimeSlot("10:00", "18:00")


@dataclass(slots=True)
class DayState:
    """Availability of one date."""

    mode: DayMode
    slots: list[TimeSlot] = field(default_factory=lambda: [DEFAULT_SLOT])

    def copy(self) -> "DayState":
        return DayState(mode=self.mode, slots=list(self.slots))

    def to_dict(self) -> dict:
        return {"mode": self.mode.value, "slots": [slot.to_dict() for slot in self.slots]}


# ISO date -> DayState, the in-memory working set for one user
AvailabilityData = dict[str, DayState]


@dataclass(frozen=True, slots=True)
class SlotValidation:
    """Result of validating one slot or a day's slot list."""

    is_valid: bool
    error: str | None = None
    slot_indices: tuple[int, ...] = ()


class AvailabilityEntry(BaseModel):
    """Wire form of one availability record. Timestamps are ISO-8601 UTC strings."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    starts_at: str
    ends_at: str
    type: EntryType
    is_all_day: bool = False
    source: EntrySource = EntrySource.MANUAL
    id: str | None = None
    external_event_id: str | None = None
    title: str | None = None

    @model_validator(mode="after")
    def _check_order(self):
        start = _parse_instant(self.starts_at)
        end = _parse_instant(self.ends_at)
        if start >= end:
            raise ValueError("startsAt must be before endsAt")
        return self

    @property
    def starts_at_dt(self) -> datetime:
        return _parse_instant(self.starts_at)

    @property
    def ends_at_dt(self) -> datetime:
        return _parse_instant(self.ends_at)

    def to_api(self) -> dict:
        """Serialize with camelCase keys, omitting unset optional fields."""
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


def _parse_instant(value: str) -> datetime:
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (AttributeError, ValueError) as e:
        raise ValueError(f"Invalid timestamp: {value!r}") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed
