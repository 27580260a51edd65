"""
Calendar provider interface consumed by the export and import services.
"""

from datetime import datetime
from typing import Protocol

from rehearsal_sync.models.domain.calendar_domain import CalendarInfo, EventDraft, ExternalEvent


class CalendarProvider(Protocol):
    """
    Device or remote calendar the sync engine reads from and writes to.

    Implementations raise CalendarPermissionError when access is missing and
    CalendarProviderError for any other failure.
    """

    async def has_permission(self) -> bool: ...

    async def list_calendars(self) -> list[CalendarInfo]: ...

    async def get_default_calendar(self) -> CalendarInfo | None: ...

    async def list_events(
        self, calendar_ids: list[str], start: datetime, end: datetime
    ) -> list[ExternalEvent]: ...

    async def get_event(self, calendar_id: str, event_id: str) -> ExternalEvent | None: ...

    async def create_event(self, calendar_id: str, draft: EventDraft) -> str: ...

    async def update_event(self, calendar_id: str, event_id: str, draft: EventDraft) -> None: ...

    async def delete_event(self, calendar_id: str, event_id: str) -> None: ...
