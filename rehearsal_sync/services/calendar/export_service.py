"""
Export of rehearsals to the user's calendar.

Each exported rehearsal is tracked by an EventMapping. An existing mapping
whose event still exists is left alone: edits to a rehearsal are only pushed
by an explicit resync_rehearsal.
"""

import asyncio
from datetime import UTC, datetime, timedelta

from rehearsal_sync.config import settings
from rehearsal_sync.errors import CalendarPermissionError, CalendarProviderError, RehearsalSyncError
from rehearsal_sync.infrastructure.observability.logging import get_logger
from rehearsal_sync.models.domain.calendar_domain import EventDraft, Rehearsal
from rehearsal_sync.models.domain.sync_domain import BatchSyncResult, EventMapping
from rehearsal_sync.repositories.sync_state_repository import SyncStateRepository
from rehearsal_sync.services.calendar.provider import CalendarProvider

logger = get_logger(__name__)

DUPLICATE_SEARCH_PADDING = timedelta(days=1)
DUPLICATE_TIME_TOLERANCE = timedelta(seconds=60)


class CalendarExportService:
    """Creates, re-creates and removes calendar events for rehearsals."""

    def __init__(
        self,
        provider: CalendarProvider,
        repository: SyncStateRepository,
        batch_size: int | None = None,
    ):
        self.provider = provider
        self.repository = repository
        self.batch_size = batch_size or settings.EXPORT_BATCH_SIZE
        # Mapping table writes are read-modify-write on one blob
        self._mapping_lock = asyncio.Lock()

    async def resolve_calendar_id(self) -> str:
        """
        Target calendar for exports: the stored one, else the provider default.

        Raises:
            CalendarProviderError: If no writable calendar exists
        """
        sync_settings = await self.repository.get_settings()
        if sync_settings.export_calendar_id:
            return sync_settings.export_calendar_id

        calendar = await self.provider.get_default_calendar()
        if calendar is None:
            raise CalendarProviderError("No writable calendar available", error_code="no_calendar")

        await self.repository.update_settings(export_calendar_id=calendar.id)
        logger.info("Export calendar selected", calendar_id=calendar.id)
        return calendar.id

    async def exported_event_ids(self) -> set[str]:
        mappings = await self.repository.get_mappings()
        return {mapping.event_id for mapping in mappings.values()}

    async def _save_mapping(self, rehearsal_id: str, event_id: str, calendar_id: str) -> None:
        mapping = EventMapping(
            rehearsal_id=rehearsal_id,
            event_id=event_id,
            calendar_id=calendar_id,
            last_synced=datetime.now(UTC),
        )
        async with self._mapping_lock:
            await self.repository.save_mapping(mapping)

    async def _remove_mapping(self, rehearsal_id: str) -> None:
        async with self._mapping_lock:
            await self.repository.remove_mapping(rehearsal_id)

    async def _find_duplicate(self, calendar_id: str, draft: EventDraft) -> str | None:
        """Look for an identical event near the rehearsal's time on the target calendar."""
        try:
            events = await self.provider.list_events(
                [calendar_id],
                draft.start - DUPLICATE_SEARCH_PADDING,
                draft.end + DUPLICATE_SEARCH_PADDING,
            )
        except CalendarProviderError as e:
            logger.error("Duplicate search failed", calendar_id=calendar_id, error=str(e))
            return None

        for event in events:
            if (
                event.title == draft.title
                and abs(event.start - draft.start) < DUPLICATE_TIME_TOLERANCE
                and abs(event.end - draft.end) < DUPLICATE_TIME_TOLERANCE
                and (event.location or None) == (draft.location or None)
            ):
                logger.warning("Found duplicate event", event_id=event.id, calendar_id=calendar_id)
                return event.id
        return None

    async def _create_event(self, rehearsal: Rehearsal, calendar_id: str) -> str:
        draft = rehearsal.to_event_draft()

        duplicate_id = await self._find_duplicate(calendar_id, draft)
        if duplicate_id:
            logger.info(
                "Adopting existing event instead of creating duplicate",
                rehearsal_id=rehearsal.id,
                event_id=duplicate_id,
            )
            await self._save_mapping(rehearsal.id, duplicate_id, calendar_id)
            return duplicate_id

        event_id = await self.provider.create_event(calendar_id, draft)
        await self._save_mapping(rehearsal.id, event_id, calendar_id)
        logger.info("Rehearsal exported", rehearsal_id=rehearsal.id, event_id=event_id)
        return event_id

    async def export_rehearsal(self, rehearsal: Rehearsal, calendar_id: str | None = None) -> str:
        """
        Make sure a rehearsal has a calendar event.

        Args:
            rehearsal: Rehearsal to export
            calendar_id: Target calendar (default: resolved export calendar)

        Returns:
            str: Id of the mapped calendar event
        """
        mapping = await self.repository.get_mapping(rehearsal.id)
        if mapping is not None:
            existing = await self.provider.get_event(mapping.calendar_id, mapping.event_id)
            if existing is not None:
                return mapping.event_id
            logger.warning(
                "Mapped event no longer exists, recreating",
                rehearsal_id=rehearsal.id,
                event_id=mapping.event_id,
            )
            await self._remove_mapping(rehearsal.id)

        calendar_id = calendar_id or await self.resolve_calendar_id()
        return await self._create_event(rehearsal, calendar_id)

    async def resync_rehearsal(self, rehearsal: Rehearsal) -> str:
        """
        Push a rehearsal's current content to its calendar event.

        Falls back to creating a new event when the mapped one is gone or the
        update is rejected.
        """
        mapping = await self.repository.get_mapping(rehearsal.id)
        if mapping is None:
            return await self.export_rehearsal(rehearsal)

        existing = await self.provider.get_event(mapping.calendar_id, mapping.event_id)
        if existing is not None:
            try:
                await self.provider.update_event(
                    mapping.calendar_id, mapping.event_id, rehearsal.to_event_draft()
                )
                await self._save_mapping(rehearsal.id, mapping.event_id, mapping.calendar_id)
                logger.info("Rehearsal resynced", rehearsal_id=rehearsal.id, event_id=mapping.event_id)
                return mapping.event_id
            except CalendarProviderError as e:
                logger.warning(
                    "Update failed, recreating event",
                    rehearsal_id=rehearsal.id,
                    event_id=mapping.event_id,
                    error=str(e),
                )

        await self._remove_mapping(rehearsal.id)
        return await self._create_event(rehearsal, mapping.calendar_id)

    async def export_all(self, rehearsals: list[Rehearsal]) -> BatchSyncResult:
        """
        Export rehearsals in concurrent batches, collecting per-rehearsal failures.

        lastExportTime only advances when every rehearsal succeeded.

        Raises:
            CalendarPermissionError: If the provider denies access
        """
        result = BatchSyncResult()
        if not rehearsals:
            await self.repository.mark_export_completed()
            return result

        calendar_id = await self.resolve_calendar_id()

        for offset in range(0, len(rehearsals), self.batch_size):
            batch = rehearsals[offset : offset + self.batch_size]
            outcomes = await asyncio.gather(
                *(self.export_rehearsal(rehearsal, calendar_id) for rehearsal in batch),
                return_exceptions=True,
            )
            for rehearsal, outcome in zip(batch, outcomes, strict=True):
                if isinstance(outcome, CalendarPermissionError):
                    raise outcome
                if isinstance(outcome, RehearsalSyncError):
                    result.failed += 1
                    result.errors.append(f"{rehearsal.project_name}: {outcome.message}")
                    logger.error("Failed to export rehearsal", rehearsal_id=rehearsal.id, error=str(outcome))
                elif isinstance(outcome, BaseException):
                    raise outcome
                else:
                    result.success += 1

        if result.failed == 0:
            await self.repository.mark_export_completed()

        logger.info("Batch export complete", success=result.success, failed=result.failed)
        return result

    async def remove_all_exported(self) -> BatchSyncResult:
        """Delete every mapped calendar event and clear the mapping table."""
        mappings = list((await self.repository.get_mappings()).values())
        result = BatchSyncResult()
        logger.info("Removing exported events", event_count=len(mappings))

        for offset in range(0, len(mappings), self.batch_size):
            batch = mappings[offset : offset + self.batch_size]
            outcomes = await asyncio.gather(
                *(self.provider.delete_event(m.calendar_id, m.event_id) for m in batch),
                return_exceptions=True,
            )
            for mapping, outcome in zip(batch, outcomes, strict=True):
                if isinstance(outcome, RehearsalSyncError):
                    result.failed += 1
                    result.errors.append(f"Event {mapping.event_id}: {outcome.message}")
                    logger.error("Failed to delete exported event", event_id=mapping.event_id, error=str(outcome))
                elif isinstance(outcome, BaseException):
                    raise outcome
                else:
                    result.success += 1

        async with self._mapping_lock:
            await self.repository.clear_mappings()

        logger.info("Remove all exported complete", success=result.success, failed=result.failed)
        return result

    async def on_rehearsal_created(self, rehearsal: Rehearsal) -> str | None:
        """Export a new rehearsal if export is enabled. Returns the event id."""
        sync_settings = await self.repository.get_settings()
        if not sync_settings.export_enabled:
            return None
        return await self.export_rehearsal(rehearsal)

    async def on_rehearsal_deleted(self, rehearsal_id: str) -> bool:
        """Delete the rehearsal's calendar event and mapping. False if it was never exported."""
        mapping = await self.repository.get_mapping(rehearsal_id)
        if mapping is None:
            logger.info("Rehearsal not exported, nothing to remove", rehearsal_id=rehearsal_id)
            return False

        await self.provider.delete_event(mapping.calendar_id, mapping.event_id)
        await self._remove_mapping(rehearsal_id)
        logger.info("Rehearsal unexported", rehearsal_id=rehearsal_id, event_id=mapping.event_id)
        return True
