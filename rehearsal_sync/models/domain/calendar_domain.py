# rehearsal_sync/models/domain/calendar_domain.py
"""
Calendar Domain Models
Calendars, external events and the drafts written for exported rehearsals.
"""

from dataclasses import dataclass
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

REHEARSAL_TITLE_PREFIX = "Rehearsal: "
DEFAULT_ALARM_MINUTES = 30
DEFAULT_EVENT_TITLE = "Calendar Event"


class CalendarInfo:
    """Domain model for a calendar the user can see."""

    def __init__(self, data: dict):
        self.id = data.get("id")
        self.title = data.get("summaryOverride") or data.get("summary", "")
        self.is_primary = data.get("primary", False)
        self.access_role = data.get("accessRole", "reader")
        self.timezone = data.get("timeZone", "UTC")

    def can_create_events(self) -> bool:
        """Check if user can create events in this calendar."""
        return self.access_role in ["owner", "writer"]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "isPrimary": self.is_primary,
            "accessRole": self.access_role,
            "timezone": self.timezone,
            "canCreateEvents": self.can_create_events(),
        }


@dataclass(slots=True)
class ExternalEvent:
    """An event read from the calendar provider. Instants are aware UTC datetimes."""

    id: str
    calendar_id: str
    title: str
    start: datetime
    end: datetime
    is_all_day: bool = False
    location: str | None = None

    @classmethod
    def from_google(cls, data: dict, calendar_id: str) -> "ExternalEvent | None":
        """
        Build from a Google Calendar event resource.

        All-day events carry date-only bounds and are read as midnight UTC of
        that date. Returns None for cancelled events or unparseable bounds.
        """
        if data.get("status") == "cancelled":
            return None
        start = _parse_google_time(data.get("start", {}))
        end = _parse_google_time(data.get("end", {}))
        if start is None or end is None:
            return None
        return cls(
            id=data.get("id"),
            calendar_id=calendar_id,
            title=data.get("summary") or DEFAULT_EVENT_TITLE,
            start=start,
            end=end,
            is_all_day="date" in data.get("start", {}),
            location=data.get("location") or None,
        )


def _parse_google_time(dt_data: dict) -> datetime | None:
    """Parse a Google start/end object (date or dateTime) into UTC."""
    if not dt_data:
        return None

    if "date" in dt_data:
        try:
            return datetime.strptime(dt_data["date"], "%Y-%m-%d").replace(tzinfo=UTC)
        except ValueError:
            return None

    if "dateTime" in dt_data:
        try:
            parsed = datetime.fromisoformat(dt_data["dateTime"].replace("Z", "+00:00"))
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=UTC)
        return parsed.astimezone(UTC)

    return None


@dataclass(slots=True)
class EventDraft:
    """Content written to the provider for one exported rehearsal."""

    title: str
    start: datetime
    end: datetime
    location: str | None = None
    notes: str = ""
    alarm_minutes_before: int = DEFAULT_ALARM_MINUTES

    def to_google(self) -> dict:
        body = {
            "summary": self.title,
            "description": self.notes,
            "start": {"dateTime": self.start.isoformat(), "timeZone": "UTC"},
            "end": {"dateTime": self.end.isoformat(), "timeZone": "UTC"},
            "transparency": "opaque",
            "reminders": {
                "useDefault": False,
                "overrides": [{"method": "popup", "minutes": self.alarm_minutes_before}],
            },
        }
        if self.location:
            body["location"] = self.location
        return body


class Rehearsal(BaseModel):
    """A scheduled rehearsal as returned by the backend."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        coerce_numbers_to_str=True,
    )

    id: str
    project_id: str
    project_name: str
    starts_at: datetime
    ends_at: datetime
    location: str | None = None
    title: str | None = None
    description: str | None = None

    def to_event_draft(self) -> EventDraft:
        return EventDraft(
            title=f"{REHEARSAL_TITLE_PREFIX}{self.project_name}",
            start=_as_utc(self.starts_at),
            end=_as_utc(self.ends_at),
            location=self.location or None,
            notes=f"Project: {self.project_name}\n\nCreated via Rehearsal Calendar app",
        )


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
