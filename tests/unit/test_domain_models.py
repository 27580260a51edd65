"""
Tests for availability, calendar and sync domain models.
"""

from datetime import UTC, datetime, timedelta

import pytest
from pydantic import ValidationError

from rehearsal_sync.models.api.sync_request import SyncSettingsUpdateRequest
from rehearsal_sync.models.domain.availability_domain import AvailabilityEntry, EntryType
from rehearsal_sync.models.domain.calendar_domain import CalendarInfo, ExternalEvent
from rehearsal_sync.models.domain.sync_domain import (
    ImportInterval,
    SyncReport,
    SyncSettings,
    SyncStatus,
    SyncTrigger,
    event_fingerprint,
)
from tests.factories import make_rehearsal

NOW = datetime(2030, 5, 1, 12, 0, tzinfo=UTC)


class TestAvailabilityEntry:
    def test_start_must_precede_end(self):
        with pytest.raises(ValidationError):
            AvailabilityEntry(
                starts_at="2030-05-02T10:00:00.000Z",
                ends_at="2030-05-02T10:00:00.000Z",
                type=EntryType.BUSY,
            )

    def test_parses_camel_case(self):
        entry = AvailabilityEntry.model_validate(
            {
                "startsAt": "2030-05-02T09:00:00Z",
                "endsAt": "2030-05-02T10:00:00Z",
                "type": "tentative",
                "isAllDay": False,
            }
        )
        assert entry.type == EntryType.TENTATIVE
        assert entry.starts_at_dt == datetime(2030, 5, 2, 9, 0, tzinfo=UTC)


class TestImportDue:
    def settings(self, **overrides):
        data = {
            "import_enabled": True,
            "import_calendar_ids": frozenset({"work-cal"}),
            "import_interval": ImportInterval.HOURLY,
        }
        data.update(overrides)
        return SyncSettings(**data)

    def test_never_imported_is_due(self):
        assert self.settings().import_due(NOW) == (True, None)

    def test_interval_not_elapsed(self):
        sync_settings = self.settings(last_import_time=NOW - timedelta(minutes=45))
        assert sync_settings.import_due(NOW) == (False, "interval_not_elapsed")

    def test_interval_elapsed(self):
        sync_settings = self.settings(last_import_time=NOW - timedelta(minutes=65))
        assert sync_settings.import_due(NOW) == (True, None)

    def test_daily_interval(self):
        sync_settings = self.settings(
            import_interval=ImportInterval.DAILY, last_import_time=NOW - timedelta(hours=7)
        )
        assert sync_settings.import_due(NOW) == (False, "interval_not_elapsed")

    def test_clock_skew_is_due(self):
        sync_settings = self.settings(last_import_time=NOW + timedelta(hours=1))
        assert sync_settings.import_due(NOW) == (True, "clock_skew")

    def test_disabled_and_unselected(self):
        assert self.settings(import_enabled=False).import_due(NOW) == (False, "import_disabled")
        assert self.settings(import_calendar_ids=frozenset()).import_due(NOW) == (
            False,
            "no_calendars_selected",
        )


def test_fingerprint_tracks_relevant_fields():
    base = event_fingerprint("ext-1", "2030-05-02T09:00:00.000Z", "2030-05-02T10:00:00.000Z", False, "Dentist")
    same = event_fingerprint("ext-1", "2030-05-02T09:00:00.000Z", "2030-05-02T10:00:00.000Z", False, "Dentist")
    renamed = event_fingerprint("ext-1", "2030-05-02T09:00:00.000Z", "2030-05-02T10:00:00.000Z", False, "Doctor")

    assert base == same
    assert base != renamed


def test_sync_trigger_forcing():
    assert SyncTrigger.PULL_TO_REFRESH.forced is True
    assert SyncTrigger.APP_FOREGROUND.forced is False


def test_sync_report_failed():
    assert SyncReport(SyncTrigger.SCREEN_FOCUS, SyncStatus.PERMISSION_DENIED).failed is True
    assert SyncReport(SyncTrigger.SCREEN_FOCUS, SyncStatus.THROTTLED).failed is False


def test_rehearsal_event_draft():
    draft = make_rehearsal().to_event_draft()

    assert draft.title == "Rehearsal: Hamlet"
    assert draft.start == datetime(2030, 5, 1, 18, 0, tzinfo=UTC)
    assert draft.notes == "Project: Hamlet\n\nCreated via Rehearsal Calendar app"
    assert draft.alarm_minutes_before == 30


def test_external_event_from_google_skips_cancelled():
    assert ExternalEvent.from_google({"id": "x", "status": "cancelled"}, "work-cal") is None


def test_calendar_info_write_access():
    assert CalendarInfo({"id": "a", "accessRole": "writer"}).can_create_events() is True
    assert CalendarInfo({"id": "b", "accessRole": "reader"}).can_create_events() is False


def test_update_request_only_keeps_sent_fields():
    request = SyncSettingsUpdateRequest.model_validate({"importEnabled": True, "exportCalendarId": None})

    assert request.changes() == {"import_enabled": True, "export_calendar_id": None}
