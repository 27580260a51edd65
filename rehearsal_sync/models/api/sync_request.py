# rehearsal_sync/models/api/sync_request.py
"""
Sync API request models.
Used by routes for input validation.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from rehearsal_sync.models.domain.sync_domain import ImportInterval


class SyncSettingsUpdateRequest(BaseModel):
    """Partial update of the persisted sync settings."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    export_enabled: bool | None = Field(None, description="Push rehearsals to the calendar")
    import_enabled: bool | None = Field(None, description="Pull calendar events into availability")
    import_calendar_ids: list[str] | None = Field(None, description="Calendars to import from")
    import_interval: ImportInterval | None = Field(None, description="Automatic import interval")
    export_calendar_id: str | None = Field(None, description="Calendar exported rehearsals go to")

    def changes(self) -> dict:
        """Only the fields the caller actually sent. Only exportCalendarId may be cleared."""
        return {
            key: value
            for key, value in self.model_dump(exclude_unset=True).items()
            if value is not None or key == "export_calendar_id"
        }
