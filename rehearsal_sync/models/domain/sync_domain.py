# rehearsal_sync/models/domain/sync_domain.py
"""
Sync Domain Models
Persisted sync settings and tracking tables, plus the results of export,
import and scheduler passes.
"""

import hashlib
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ImportInterval(str, Enum):
    MANUAL = "manual"
    HOURLY = "hourly"
    EVERY_6H = "every6h"
    DAILY = "daily"

    @property
    def period(self) -> timedelta | None:
        """Minimum time between automatic imports; None means manual only."""
        return _INTERVAL_PERIODS[self]


_INTERVAL_PERIODS = {
    ImportInterval.MANUAL: None,
    ImportInterval.HOURLY: timedelta(hours=1),
    ImportInterval.EVERY_6H: timedelta(hours=6),
    ImportInterval.DAILY: timedelta(days=1),
}


class SyncTrigger(str, Enum):
    APP_FOREGROUND = "app_foreground"
    SCREEN_FOCUS = "screen_focus"
    PULL_TO_REFRESH = "pull_to_refresh"

    @property
    def forced(self) -> bool:
        return self is SyncTrigger.PULL_TO_REFRESH


class SyncStatus(str, Enum):
    COMPLETED = "completed"
    THROTTLED = "throttled"
    IN_FLIGHT = "in_flight"
    PERMISSION_DENIED = "permission_denied"
    FAILED = "failed"


class _PersistedModel(BaseModel):
    """Immutable camelCase snapshot stored as a JSON blob."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    def to_storage(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class SyncSettings(_PersistedModel):
    export_enabled: bool = False
    import_enabled: bool = False
    import_calendar_ids: frozenset[str] = Field(default_factory=frozenset)
    import_interval: ImportInterval = ImportInterval.MANUAL
    last_import_time: datetime | None = None
    last_export_time: datetime | None = None
    export_calendar_id: str | None = None

    def import_due(self, now: datetime) -> tuple[bool, str | None]:
        """
        Decide whether an automatic import should run.

        Returns:
            tuple: (due, reason) where reason explains a skip
        """
        if not self.import_enabled:
            return False, "import_disabled"
        if not self.import_calendar_ids:
            return False, "no_calendars_selected"
        period = self.import_interval.period
        if period is None:
            return False, "manual_interval"
        if self.last_import_time is None:
            return True, None
        elapsed = now - _as_utc(self.last_import_time)
        if elapsed < timedelta(0):
            # Clock moved backwards; treat as due rather than stalling until it catches up
            return True, "clock_skew"
        if elapsed < period:
            return False, "interval_not_elapsed"
        return True, None


class EventMapping(_PersistedModel):
    rehearsal_id: str
    event_id: str
    calendar_id: str
    last_synced: datetime


class ImportTrackingRecord(_PersistedModel):
    external_event_id: str
    calendar_id: str | None = None
    fingerprint: str
    starts_at: str
    ends_at: str
    title: str | None = None
    is_all_day: bool = False
    last_imported: datetime


def event_fingerprint(
    external_event_id: str, starts_at: str, ends_at: str, is_all_day: bool, title: str | None
) -> str:
    """Stable digest of the fields that make an imported event 'changed'."""
    raw = "|".join(
        [external_event_id, starts_at, ends_at, "1" if is_all_day else "0", title or ""]
    )
    return hashlib.sha1(raw.encode("utf-8")).hexdigest()


@dataclass(slots=True)
class BatchSyncResult:
    success: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)

    def merge(self, other: "BatchSyncResult") -> None:
        self.success += other.success
        self.failed += other.failed
        self.errors.extend(other.errors)


@dataclass(slots=True)
class ImportResult:
    added: int = 0
    updated: int = 0
    deleted: int = 0
    skipped: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> int:
        return self.added + self.updated + self.deleted


@dataclass(slots=True)
class SyncReport:
    """Outcome of one scheduler pass."""

    trigger: SyncTrigger
    status: SyncStatus
    forced: bool = False
    export_result: BatchSyncResult | None = None
    import_result: ImportResult | None = None
    import_skipped_reason: str | None = None
    error: str | None = None
    error_code: str | None = None
    notify_user: bool = False
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    finished_at: datetime | None = None

    @property
    def failed(self) -> bool:
        return self.status in (SyncStatus.FAILED, SyncStatus.PERMISSION_DENIED)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value
