"""
Auto-sync scheduler driven by app lifecycle triggers.

One pass runs at a time; triggers arriving while a pass is in flight are
dropped, and triggers inside the cool-down window are throttled. Export runs
on every pass when enabled. Import is gated by the configured interval unless
the trigger forces it. Failures are reported in the SyncReport, never raised.
"""

import time
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime

from rehearsal_sync.config import settings
from rehearsal_sync.errors import CalendarPermissionError, RehearsalSyncError
from rehearsal_sync.infrastructure.observability.logging import get_logger, log_sync_pass
from rehearsal_sync.models.domain.calendar_domain import Rehearsal
from rehearsal_sync.models.domain.sync_domain import (
    SyncReport,
    SyncSettings,
    SyncStatus,
    SyncTrigger,
)
from rehearsal_sync.repositories.sync_state_repository import SyncStateRepository
from rehearsal_sync.services.calendar.export_service import CalendarExportService
from rehearsal_sync.services.calendar.import_service import CalendarImportService
from rehearsal_sync.services.calendar.provider import CalendarProvider

logger = get_logger(__name__)

RehearsalSource = Callable[[], Awaitable[list[Rehearsal]]]


class CalendarSyncScheduler:
    """Single entry point for foreground, focus and pull-to-refresh triggers."""

    def __init__(
        self,
        repository: SyncStateRepository,
        provider: CalendarProvider,
        export_service: CalendarExportService,
        import_service: CalendarImportService,
        rehearsal_source: RehearsalSource,
        cooldown_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] | None = None,
    ):
        self.repository = repository
        self.provider = provider
        self.export_service = export_service
        self.import_service = import_service
        self.rehearsal_source = rehearsal_source
        self.cooldown_seconds = (
            settings.SYNC_COOLDOWN_SECONDS if cooldown_seconds is None else cooldown_seconds
        )
        self._clock = clock
        self._now = now or (lambda: datetime.now(UTC))
        self._last_attempt: float | None = None
        self._in_flight = False

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    async def handle_trigger(self, trigger: SyncTrigger) -> SyncReport:
        """
        Run at most one sync pass for a lifecycle trigger.

        Args:
            trigger: The lifecycle signal; PULL_TO_REFRESH forces import

        Returns:
            SyncReport: Outcome of the pass, or why it did not run
        """
        trigger = SyncTrigger(trigger)
        forced = trigger.forced

        if self._in_flight:
            logger.info("Sync already in flight, dropping trigger", trigger=trigger.value)
            return self._finish(SyncReport(trigger=trigger, status=SyncStatus.IN_FLIGHT, forced=forced))

        current = self._clock()
        if self._last_attempt is not None and current - self._last_attempt < self.cooldown_seconds:
            logger.info("Sync throttled", trigger=trigger.value)
            return self._finish(SyncReport(trigger=trigger, status=SyncStatus.THROTTLED, forced=forced))

        self._last_attempt = current
        self._in_flight = True
        try:
            report = await self._run_pass(trigger, forced)
        finally:
            self._in_flight = False
        return self._finish(report)

    async def perform_auto_sync(self, trigger: SyncTrigger = SyncTrigger.APP_FOREGROUND) -> SyncReport:
        return await self.handle_trigger(trigger)

    async def force_sync(self) -> SyncReport:
        return await self.handle_trigger(SyncTrigger.PULL_TO_REFRESH)

    async def get_sync_settings(self) -> SyncSettings:
        return await self.repository.get_settings()

    async def update_sync_settings(self, **changes) -> SyncSettings:
        return await self.repository.update_settings(**changes)

    def _finish(self, report: SyncReport) -> SyncReport:
        report.finished_at = self._now()
        log_sync_pass(report)
        return report

    def _import_decision(self, sync_settings: SyncSettings, forced: bool) -> tuple[bool, str | None]:
        if forced:
            if not sync_settings.import_enabled:
                return False, "import_disabled"
            if not sync_settings.import_calendar_ids:
                return False, "no_calendars_selected"
            return True, None

        due, reason = sync_settings.import_due(self._now())
        if reason == "clock_skew":
            logger.warning(
                "Last import time is in the future, importing anyway",
                last_import_time=sync_settings.last_import_time.isoformat(),
            )
        return due, reason

    async def _run_pass(self, trigger: SyncTrigger, forced: bool) -> SyncReport:
        report = SyncReport(trigger=trigger, status=SyncStatus.COMPLETED, forced=forced)
        try:
            sync_settings = await self.repository.get_settings()
            run_import, skip_reason = self._import_decision(sync_settings, forced)
            if not run_import:
                report.import_skipped_reason = skip_reason

            if not sync_settings.export_enabled and not run_import:
                return report

            if not await self.provider.has_permission():
                raise CalendarPermissionError("Calendar access not granted")

            # Export first so import sees the freshest exported event ids
            if sync_settings.export_enabled:
                rehearsals = await self.rehearsal_source()
                report.export_result = await self.export_service.export_all(rehearsals)
                if report.export_result.failed and forced:
                    report.notify_user = True

            if run_import:
                exported_ids = await self.export_service.exported_event_ids()
                now = self._now()
                report.import_result = await self.import_service.import_events(
                    sync_settings, exported_event_ids=exported_ids, now=now
                )
                await self.repository.mark_import_completed(now)

        except CalendarPermissionError as e:
            report.status = SyncStatus.PERMISSION_DENIED
            report.error = e.message
            report.error_code = e.error_code
            report.notify_user = True
        except RehearsalSyncError as e:
            report.status = SyncStatus.FAILED
            report.error = e.message
            report.error_code = e.error_code
            report.notify_user = forced
        except Exception as e:
            logger.exception("Unexpected error during sync pass", trigger=trigger.value)
            report.status = SyncStatus.FAILED
            report.error = str(e)
            report.error_code = "unexpected_error"
            report.notify_user = forced

        return report
