"""
Sync API Routes
Lifecycle trigger delivery and sync settings for the host application.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from rehearsal_sync.errors import SyncStateError
from rehearsal_sync.infrastructure.observability.logging import get_logger
from rehearsal_sync.models.api.sync_request import SyncSettingsUpdateRequest
from rehearsal_sync.models.api.sync_response import SyncReportResponse, SyncSettingsResponse
from rehearsal_sync.models.domain.sync_domain import SyncTrigger
from rehearsal_sync.services.sync.runtime import sync_runtime
from rehearsal_sync.services.sync.scheduler import CalendarSyncScheduler

logger = get_logger(__name__)

router = APIRouter(prefix="/sync", tags=["sync"])


def get_scheduler() -> CalendarSyncScheduler:
    """Scheduler of the running process; 503 until startup completed."""
    try:
        return sync_runtime.scheduler
    except RuntimeError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Sync runtime not ready"
        ) from e


@router.post("/triggers/{trigger}", response_model=SyncReportResponse)
async def deliver_trigger(
    trigger: SyncTrigger, scheduler: CalendarSyncScheduler = Depends(get_scheduler)
):
    """Run a sync pass for a lifecycle signal. Failures are reported, never raised."""
    report = await scheduler.handle_trigger(trigger)
    return SyncReportResponse.from_domain(report)


@router.get("/settings", response_model=SyncSettingsResponse)
async def get_sync_settings(scheduler: CalendarSyncScheduler = Depends(get_scheduler)):
    try:
        sync_settings = await scheduler.get_sync_settings()
    except SyncStateError as e:
        logger.error("Failed to read sync settings", error=str(e))
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message) from e
    return SyncSettingsResponse.from_domain(sync_settings)


@router.patch("/settings", response_model=SyncSettingsResponse)
async def update_sync_settings(
    request: SyncSettingsUpdateRequest, scheduler: CalendarSyncScheduler = Depends(get_scheduler)
):
    changes = request.changes()
    if not changes:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No settings provided")

    try:
        sync_settings = await scheduler.update_sync_settings(**changes)
    except SyncStateError as e:
        logger.error("Failed to update sync settings", error=str(e))
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message) from e
    return SyncSettingsResponse.from_domain(sync_settings)
