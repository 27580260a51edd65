# rehearsal_sync/models/api/sync_response.py
"""
Sync API response models.
Used by routes for output formatting.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from rehearsal_sync.models.domain.sync_domain import SyncReport, SyncSettings


class _CamelResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SyncSettingsResponse(_CamelResponse):
    """Response model for the persisted sync settings."""

    export_enabled: bool = Field(..., description="Rehearsal export enabled")
    import_enabled: bool = Field(..., description="Calendar import enabled")
    import_calendar_ids: list[str] = Field(..., description="Calendars imported from")
    import_interval: str = Field(..., description="Automatic import interval")
    last_import_time: datetime | None = Field(None, description="Last successful import")
    last_export_time: datetime | None = Field(None, description="Last successful export")
    export_calendar_id: str | None = Field(None, description="Export target calendar")

    @classmethod
    def from_domain(cls, sync_settings: SyncSettings) -> "SyncSettingsResponse":
        return cls(
            export_enabled=sync_settings.export_enabled,
            import_enabled=sync_settings.import_enabled,
            import_calendar_ids=sorted(sync_settings.import_calendar_ids),
            import_interval=sync_settings.import_interval.value,
            last_import_time=sync_settings.last_import_time,
            last_export_time=sync_settings.last_export_time,
            export_calendar_id=sync_settings.export_calendar_id,
        )


class BatchResultResponse(_CamelResponse):
    success: int
    failed: int
    errors: list[str] = Field(default_factory=list)


class ImportResultResponse(_CamelResponse):
    added: int
    updated: int
    deleted: int
    skipped: int
    failed: int
    errors: list[str] = Field(default_factory=list)


class SyncReportResponse(_CamelResponse):
    """Response model for one sync pass."""

    trigger: str = Field(..., description="Lifecycle trigger that started the pass")
    status: str = Field(..., description="completed, throttled, in_flight, permission_denied or failed")
    forced: bool = Field(..., description="Whether the interval gate was bypassed")
    export_result: BatchResultResponse | None = None
    import_result: ImportResultResponse | None = None
    import_skipped_reason: str | None = None
    error: str | None = None
    error_code: str | None = None
    notify_user: bool = Field(False, description="Whether the host should show the failure")
    started_at: datetime
    finished_at: datetime | None = None

    @classmethod
    def from_domain(cls, report: SyncReport) -> "SyncReportResponse":
        export_result = None
        if report.export_result is not None:
            export_result = BatchResultResponse(
                success=report.export_result.success,
                failed=report.export_result.failed,
                errors=list(report.export_result.errors),
            )
        import_result = None
        if report.import_result is not None:
            import_result = ImportResultResponse(
                added=report.import_result.added,
                updated=report.import_result.updated,
                deleted=report.import_result.deleted,
                skipped=report.import_result.skipped,
                failed=report.import_result.failed,
                errors=list(report.import_result.errors),
            )
        return cls(
            trigger=report.trigger.value,
            status=report.status.value,
            forced=report.forced,
            export_result=export_result,
            import_result=import_result,
            import_skipped_reason=report.import_skipped_reason,
            error=report.error,
            error_code=report.error_code,
            notify_user=report.notify_user,
            started_at=report.started_at,
            finished_at=report.finished_at,
        )
