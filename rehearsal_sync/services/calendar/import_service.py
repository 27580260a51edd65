"""
Import of external calendar events into availability as busy ranges.

Each pass reconciles the selected calendars against the imported entries in
the store: new events are added, changed events updated in place, vanished
events deleted. Events this app exported are never re-imported. Tracking
records are only written after the whole pass succeeded, so a failed pass is
retried in full by the next one.
"""

from collections.abc import Mapping
from datetime import UTC, date, datetime, timedelta

from rehearsal_sync.config import settings
from rehearsal_sync.infrastructure.observability.logging import get_logger
from rehearsal_sync.models.domain.availability_domain import (
    AvailabilityEntry,
    EntrySource,
    EntryType,
)
from rehearsal_sync.models.domain.calendar_domain import ExternalEvent
from rehearsal_sync.models.domain.sync_domain import (
    ImportResult,
    ImportTrackingRecord,
    SyncSettings,
    event_fingerprint,
)
from rehearsal_sync.repositories.sync_state_repository import SyncStateRepository
from rehearsal_sync.services.availability.store_client import BackendApiClient
from rehearsal_sync.services.calendar.provider import CalendarProvider
from rehearsal_sync.utils.timezone import (
    all_day_bounds,
    day_window,
    format_utc,
    get_today_in_timezone,
    parse_utc,
)

logger = get_logger(__name__)


def event_to_entry(event: ExternalEvent) -> AvailabilityEntry | None:
    """
    Convert an external event to an imported busy entry.

    All-day events are pinned to their first calendar date. Returns None for
    zero-length events, which cannot be represented.
    """
    if event.is_all_day:
        starts_at, ends_at = all_day_bounds(event.start.astimezone(UTC).strftime("%Y-%m-%d"))
    else:
        if event.start >= event.end:
            return None
        starts_at, ends_at = format_utc(event.start), format_utc(event.end)

    return AvailabilityEntry(
        starts_at=starts_at,
        ends_at=ends_at,
        type=EntryType.BUSY,
        is_all_day=event.is_all_day,
        source=EntrySource.IMPORTED,
        external_event_id=event.id,
        title=event.title,
    )


def entry_changed(stored: AvailabilityEntry, fresh: AvailabilityEntry) -> bool:
    """Compare the fields that matter for an imported entry."""
    return (
        stored.starts_at_dt != fresh.starts_at_dt
        or stored.ends_at_dt != fresh.ends_at_dt
        or (stored.title or None) != (fresh.title or None)
        or stored.is_all_day != fresh.is_all_day
    )


def build_tracking_record(entry: AvailabilityEntry, calendar_id: str, now: datetime) -> ImportTrackingRecord:
    return ImportTrackingRecord(
        external_event_id=entry.external_event_id,
        calendar_id=calendar_id,
        fingerprint=event_fingerprint(
            entry.external_event_id, entry.starts_at, entry.ends_at, entry.is_all_day, entry.title
        ),
        starts_at=entry.starts_at,
        ends_at=entry.ends_at,
        title=entry.title,
        is_all_day=entry.is_all_day,
        last_imported=now,
    )


class CalendarImportService:
    """Reconciles external calendar events with imported availability entries."""

    def __init__(
        self,
        provider: CalendarProvider,
        client: BackendApiClient,
        repository: SyncStateRepository,
        timezone: str = "UTC",
        chunk_size: int | None = None,
        lookback_days: int | None = None,
        lookahead_days: int | None = None,
    ):
        self.provider = provider
        self.client = client
        self.repository = repository
        self.timezone = timezone
        self.chunk_size = chunk_size or settings.IMPORT_CHUNK_SIZE
        self.lookback_days = settings.IMPORT_LOOKBACK_DAYS if lookback_days is None else lookback_days
        self.lookahead_days = settings.IMPORT_LOOKAHEAD_DAYS if lookahead_days is None else lookahead_days

    def import_window(self, now: datetime) -> tuple[datetime, datetime]:
        """From local midnight of the user's today (minus lookback) to the lookahead horizon."""
        today = date.fromisoformat(get_today_in_timezone(self.timezone, now))
        start_day = today - timedelta(days=self.lookback_days)
        return day_window(start_day, self.lookback_days + self.lookahead_days, self.timezone)

    async def import_events(
        self,
        sync_settings: SyncSettings,
        exported_event_ids: set[str] | None = None,
        now: datetime | None = None,
    ) -> ImportResult:
        """
        Run one import pass over the selected calendars.

        Args:
            sync_settings: Snapshot providing the selected calendar ids
            exported_event_ids: Event ids created by export (default: from mappings)
            now: Current instant (default: now)

        Returns:
            ImportResult: Counts of added, updated, deleted and skipped events

        Raises:
            CalendarPermissionError: If calendar access is missing
            NetworkError: If the provider or store fails; tracking is left untouched
        """
        now = now or datetime.now(UTC)
        result = ImportResult()
        calendar_ids = sorted(sync_settings.import_calendar_ids)
        if not calendar_ids:
            logger.info("No calendars selected for import")
            return result

        window_start, window_end = self.import_window(now)
        logger.info(
            "Importing calendar events",
            calendar_count=len(calendar_ids),
            window_start=format_utc(window_start),
            window_end=format_utc(window_end),
        )

        if exported_event_ids is None:
            mappings = await self.repository.get_mappings()
            exported_event_ids = {m.event_id for m in mappings.values()}

        events = await self.provider.list_events(calendar_ids, window_start, window_end)
        stored_entries = await self.client.list_entries()
        tracking = await self.repository.get_tracking()

        imported_by_event = {}
        rehearsal_spans = set()
        for entry in stored_entries:
            if entry.source == EntrySource.REHEARSAL:
                rehearsal_spans.add((entry.starts_at_dt, entry.ends_at_dt))
            elif (
                entry.source == EntrySource.IMPORTED
                and entry.external_event_id
                and window_start <= entry.starts_at_dt <= window_end
            ):
                imported_by_event[entry.external_event_id] = entry

        to_add: list[AvailabilityEntry] = []
        to_update: list[AvailabilityEntry] = []
        new_tracking: dict[str, ImportTrackingRecord] = {}
        present_ids = set()

        for event in events:
            if event.id in exported_event_ids or event.id in present_ids:
                result.skipped += 1
                continue
            present_ids.add(event.id)

            entry = event_to_entry(event)
            if entry is None or (entry.starts_at_dt, entry.ends_at_dt) in rehearsal_spans:
                result.skipped += 1
                continue

            record = build_tracking_record(entry, event.calendar_id, now)
            previous = tracking.get(event.id)
            stored = imported_by_event.get(event.id)

            if stored is None:
                to_add.append(entry)
            elif previous is not None and previous.fingerprint == record.fingerprint:
                record = previous
                result.skipped += 1
            elif entry_changed(stored, entry):
                to_update.append(entry)
            else:
                result.skipped += 1
            new_tracking[event.id] = record

        to_delete = sorted(
            event_id
            for event_id in imported_by_event
            if event_id not in present_ids and event_id not in exported_event_ids
        )

        logger.info(
            "Import changes computed",
            to_add=len(to_add),
            to_update=len(to_update),
            to_delete=len(to_delete),
            unchanged=result.skipped,
        )

        if to_delete:
            await self.client.delete_imported(to_delete)
            result.deleted = len(to_delete)
        if to_update:
            await self.client.update_imported(to_update)
            result.updated = len(to_update)
        for offset in range(0, len(to_add), self.chunk_size):
            chunk = to_add[offset : offset + self.chunk_size]
            await self.client.bulk_set(chunk)
            result.added += len(chunk)

        await self.repository.replace_tracking(new_tracking)
        logger.info(
            "Import complete",
            added=result.added,
            updated=result.updated,
            deleted=result.deleted,
            skipped=result.skipped,
        )
        return result

    async def remove_all_imported(self) -> ImportResult:
        """Delete every imported entry from the store and clear tracking."""
        tracking: Mapping = await self.repository.get_tracking()
        await self.client.delete_all_imported()
        await self.repository.clear_tracking()
        logger.info("Removed all imported entries", tracked_count=len(tracking))
        return ImportResult(deleted=len(tracking))
