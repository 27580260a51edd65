"""
Process-wide wiring of the sync components for one configured user.
"""

import structlog

from rehearsal_sync.config import settings
from rehearsal_sync.infrastructure.observability.logging import get_logger
from rehearsal_sync.repositories.sync_state_repository import SyncStateRepository
from rehearsal_sync.services.availability.store_client import BackendApiClient
from rehearsal_sync.services.calendar.export_service import CalendarExportService
from rehearsal_sync.services.calendar.google_client import GoogleCalendarProvider
from rehearsal_sync.services.calendar.import_service import CalendarImportService
from rehearsal_sync.services.infrastructure.redis_client import RedisKeyValueStore
from rehearsal_sync.services.sync.scheduler import CalendarSyncScheduler

logger = get_logger(__name__)


class SyncRuntime:
    """Builds and owns the store, clients and scheduler; closed on shutdown."""

    def __init__(self):
        self.store: RedisKeyValueStore | None = None
        self.backend: BackendApiClient | None = None
        self.provider: GoogleCalendarProvider | None = None
        self._scheduler: CalendarSyncScheduler | None = None

    @property
    def initialized(self) -> bool:
        return self._scheduler is not None

    @property
    def scheduler(self) -> CalendarSyncScheduler:
        if self._scheduler is None:
            raise RuntimeError("Sync runtime not initialized")
        return self._scheduler

    async def initialize(self) -> None:
        if self.initialized:
            return

        structlog.contextvars.bind_contextvars(sync_user_id=settings.SYNC_USER_ID)
        timezone = settings.resolved_timezone()

        self.store = RedisKeyValueStore()
        await self.store.initialize()
        self.backend = BackendApiClient()
        self.provider = GoogleCalendarProvider()

        repository = SyncStateRepository(self.store, settings.SYNC_USER_ID)
        export_service = CalendarExportService(self.provider, repository)
        import_service = CalendarImportService(self.provider, self.backend, repository, timezone=timezone)

        project_ids = list(settings.SYNC_PROJECT_IDS)

        async def load_rehearsals():
            return await self.backend.list_rehearsals(project_ids)

        self._scheduler = CalendarSyncScheduler(
            repository=repository,
            provider=self.provider,
            export_service=export_service,
            import_service=import_service,
            rehearsal_source=load_rehearsals,
        )
        logger.info("Sync runtime initialized", timezone=timezone, project_count=len(project_ids))

    async def close(self) -> None:
        errors = []
        for name, resource in (("backend", self.backend), ("provider", self.provider), ("redis", self.store)):
            if resource is None:
                continue
            try:
                await resource.close()
            except Exception as e:
                logger.error("Error closing sync resource", resource=name, error=str(e))
                errors.append(name)

        self.store = self.backend = self.provider = None
        self._scheduler = None
        if errors:
            logger.warning("Some sync resources had shutdown errors", resources=errors)
        else:
            logger.info("Sync runtime closed")


# Global instance
sync_runtime = SyncRuntime()
