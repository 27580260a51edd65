"""
Tests for importing calendar events into availability.
"""

from datetime import UTC, datetime

import pytest

from rehearsal_sync.errors import CalendarProviderError
from rehearsal_sync.models.domain.availability_domain import AvailabilityEntry, EntrySource, EntryType
from rehearsal_sync.models.domain.sync_domain import SyncSettings
from rehearsal_sync.services.calendar.import_service import CalendarImportService, event_to_entry
from tests.factories import make_event

NOW = datetime(2030, 5, 1, 12, 0, tzinfo=UTC)
SETTINGS = SyncSettings(import_enabled=True, import_calendar_ids=frozenset({"work-cal"}))


class TestEventToEntry:
    def test_timed_event(self):
        entry = event_to_entry(make_event())
        assert entry.starts_at == "2030-05-02T09:00:00.000Z"
        assert entry.ends_at == "2030-05-02T10:00:00.000Z"
        assert entry.type == EntryType.BUSY
        assert entry.source == EntrySource.IMPORTED
        assert entry.external_event_id == "ext-1"
        assert entry.title == "Dentist"

    def test_multi_day_all_day_event_uses_first_date(self):
        entry = event_to_entry(
            make_event(
                start=datetime(2030, 5, 3, tzinfo=UTC),
                end=datetime(2030, 5, 6, tzinfo=UTC),
                is_all_day=True,
            )
        )
        assert entry.starts_at == "2030-05-03T00:00:00.000Z"
        assert entry.ends_at == "2030-05-03T23:59:59.999Z"
        assert entry.is_all_day is True

    def test_zero_length_event_is_skipped(self):
        start = datetime(2030, 5, 2, 9, 0, tzinfo=UTC)
        assert event_to_entry(make_event(start=start, end=start)) is None


class TestImportEvents:
    @pytest.mark.asyncio
    async def test_new_event_is_added_and_tracked(self, import_service, provider, backend, repository):
        provider.add_event(make_event())

        result = await import_service.import_events(SETTINGS, exported_event_ids=set(), now=NOW)

        assert result.added == 1
        assert [e.external_event_id for e in backend.imported()] == ["ext-1"]
        tracking = await repository.get_tracking()
        assert tracking["ext-1"].calendar_id == "work-cal"
        assert tracking["ext-1"].starts_at == "2030-05-02T09:00:00.000Z"

    @pytest.mark.asyncio
    async def test_importing_twice_yields_one_entry(self, import_service, provider, backend):
        provider.add_event(make_event())

        await import_service.import_events(SETTINGS, exported_event_ids=set(), now=NOW)
        second = await import_service.import_events(SETTINGS, exported_event_ids=set(), now=NOW)

        assert second.added == 0
        assert second.skipped == 1
        assert len(backend.imported()) == 1
        assert backend.calls.count("bulk_set") == 1

    @pytest.mark.asyncio
    async def test_lost_tracking_does_not_duplicate(self, import_service, provider, backend, repository):
        provider.add_event(make_event())
        await import_service.import_events(SETTINGS, exported_event_ids=set(), now=NOW)
        await repository.clear_tracking()

        result = await import_service.import_events(SETTINGS, exported_event_ids=set(), now=NOW)

        assert result.added == 0
        assert len(backend.imported()) == 1
        assert "ext-1" in await repository.get_tracking()

    @pytest.mark.asyncio
    async def test_moved_event_is_updated(self, import_service, provider, backend):
        event = provider.add_event(make_event())
        await import_service.import_events(SETTINGS, exported_event_ids=set(), now=NOW)

        event.start = datetime(2030, 5, 2, 11, 0, tzinfo=UTC)
        event.end = datetime(2030, 5, 2, 12, 0, tzinfo=UTC)
        result = await import_service.import_events(SETTINGS, exported_event_ids=set(), now=NOW)

        assert result.updated == 1
        assert result.added == 0
        (entry,) = backend.imported()
        assert entry.starts_at == "2030-05-02T11:00:00.000Z"

    @pytest.mark.asyncio
    async def test_vanished_event_is_deleted(self, import_service, provider, backend, repository):
        provider.add_event(make_event())
        await import_service.import_events(SETTINGS, exported_event_ids=set(), now=NOW)

        provider.events.clear()
        result = await import_service.import_events(SETTINGS, exported_event_ids=set(), now=NOW)

        assert result.deleted == 1
        assert backend.imported() == []
        assert await repository.get_tracking() == {}

    @pytest.mark.asyncio
    async def test_exported_events_are_never_imported(self, import_service, provider, backend):
        provider.add_event(make_event(event_id="evt-1"))

        result = await import_service.import_events(SETTINGS, exported_event_ids={"evt-1"}, now=NOW)

        assert result.added == 0
        assert result.skipped == 1
        assert backend.imported() == []

    @pytest.mark.asyncio
    async def test_event_matching_a_rehearsal_span_is_skipped(self, import_service, provider, backend):
        backend.entries.append(
            AvailabilityEntry(
                starts_at="2030-05-02T09:00:00.000Z",
                ends_at="2030-05-02T10:00:00.000Z",
                type=EntryType.BUSY,
                source=EntrySource.REHEARSAL,
            )
        )
        provider.add_event(make_event())

        result = await import_service.import_events(SETTINGS, exported_event_ids=set(), now=NOW)

        assert result.added == 0
        assert backend.imported() == []

    @pytest.mark.asyncio
    async def test_same_event_in_two_calendars_counts_once(self, import_service, provider, monkeypatch):
        provider.add_event(make_event())
        settings = SyncSettings(import_enabled=True, import_calendar_ids=frozenset({"work-cal", "primary-cal"}))

        original = provider.list_events

        async def list_with_copy(calendar_ids, start, end):
            events = await original(calendar_ids, start, end)
            return events + [make_event(calendar_id="primary-cal")]

        monkeypatch.setattr(provider, "list_events", list_with_copy)
        result = await import_service.import_events(settings, exported_event_ids=set(), now=NOW)

        assert result.added == 1
        assert result.skipped == 1

    @pytest.mark.asyncio
    async def test_added_in_chunks(self, import_service, provider, backend):
        for i in range(3):
            provider.add_event(
                make_event(
                    event_id=f"ext-{i}",
                    start=datetime(2030, 5, 2 + i, 9, 0, tzinfo=UTC),
                    end=datetime(2030, 5, 2 + i, 10, 0, tzinfo=UTC),
                )
            )

        result = await import_service.import_events(SETTINGS, exported_event_ids=set(), now=NOW)

        assert result.added == 3
        assert backend.calls.count("bulk_set") == 2

    @pytest.mark.asyncio
    async def test_provider_failure_leaves_state_untouched(self, import_service, provider, backend, repository):
        provider.add_event(make_event())
        await import_service.import_events(SETTINGS, exported_event_ids=set(), now=NOW)
        tracking_before = await repository.get_tracking()

        provider.fail_list = True
        with pytest.raises(CalendarProviderError):
            await import_service.import_events(SETTINGS, exported_event_ids=set(), now=NOW)

        assert await repository.get_tracking() == tracking_before
        assert len(backend.imported()) == 1

    @pytest.mark.asyncio
    async def test_no_calendars_selected(self, import_service, backend):
        result = await import_service.import_events(SyncSettings(import_enabled=True), now=NOW)
        assert result.success == 0
        assert backend.calls == []

    @pytest.mark.asyncio
    async def test_remove_all_imported(self, import_service, provider, backend, repository):
        provider.add_event(make_event())
        await import_service.import_events(SETTINGS, exported_event_ids=set(), now=NOW)

        result = await import_service.remove_all_imported()

        assert result.deleted == 1
        assert backend.imported() == []
        assert await repository.get_tracking() == {}


class TestImportWindow:
    def test_utc_user_starts_at_utc_midnight(self, import_service):
        start, end = import_service.import_window(NOW)
        assert start == datetime(2030, 5, 1, tzinfo=UTC)
        assert end == datetime(2031, 5, 1, tzinfo=UTC)

    def test_east_of_utc_starts_at_local_midnight(self, provider, backend, repository):
        service = CalendarImportService(
            provider, backend, repository, timezone="Asia/Tokyo", lookback_days=0, lookahead_days=1
        )
        start, end = service.import_window(datetime(2030, 1, 14, 23, 30, tzinfo=UTC))
        assert start == datetime(2030, 1, 14, 15, 0, tzinfo=UTC)
        assert end == datetime(2030, 1, 15, 15, 0, tzinfo=UTC)

    def test_west_of_utc_excludes_previous_local_evening(self, provider, backend, repository):
        service = CalendarImportService(
            provider, backend, repository, timezone="America/New_York", lookback_days=0, lookahead_days=1
        )
        start, _ = service.import_window(datetime(2030, 1, 15, 12, 0, tzinfo=UTC))
        assert start == datetime(2030, 1, 15, 5, 0, tzinfo=UTC)

    @pytest.mark.asyncio
    async def test_early_morning_local_event_is_imported(self, provider, backend, repository):
        service = CalendarImportService(
            provider, backend, repository, timezone="Asia/Tokyo", lookback_days=0, lookahead_days=1
        )
        provider.add_event(
            make_event(
                start=datetime(2030, 1, 14, 15, 30, tzinfo=UTC),
                end=datetime(2030, 1, 14, 16, 30, tzinfo=UTC),
            )
        )

        result = await service.import_events(
            SETTINGS, exported_event_ids=set(), now=datetime(2030, 1, 14, 23, 30, tzinfo=UTC)
        )

        assert result.added == 1
        assert [e.starts_at for e in backend.imported()] == ["2030-01-14T15:30:00.000Z"]
