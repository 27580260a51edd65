"""
Repository for persisted calendar sync state.

Settings, export mappings and import tracking are each stored as one JSON
blob per user. Reads return immutable snapshots; writes replace the blob.
"""

import json
from collections.abc import Mapping
from datetime import UTC, datetime

from pydantic import ValidationError

from rehearsal_sync.infrastructure.observability.logging import get_logger
from rehearsal_sync.models.domain.sync_domain import (
    EventMapping,
    ImportTrackingRecord,
    SyncSettings,
)
from rehearsal_sync.services.infrastructure.redis_client import KeyValueStore

logger = get_logger(__name__)

SETTINGS_KEY = "calendar-sync-settings"
EXPORT_MAPPINGS_KEY = "calendar-export-mappings"
IMPORT_TRACKING_KEY = "calendar-import-tracking"


class SyncStateRepository:
    """Persistence helpers for SyncSettings, EventMapping and ImportTrackingRecord."""

    def __init__(self, store: KeyValueStore, user_id: str):
        self.store = store
        self.user_id = user_id

    def _key(self, name: str) -> str:
        return f"rehearsal_sync:{self.user_id}:{name}"

    async def _read_blob(self, name: str):
        raw = await self.store.get(self._key(name))
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError as e:
            logger.warning("Corrupt sync state blob, using defaults", key=name, error=str(e))
            return None

    async def _write_blob(self, name: str, data) -> None:
        await self.store.set(self._key(name), json.dumps(data))

    # -- settings ---------------------------------------------------------

    async def get_settings(self) -> SyncSettings:
        data = await self._read_blob(SETTINGS_KEY)
        if not isinstance(data, dict):
            return SyncSettings()
        try:
            return SyncSettings.model_validate(data)
        except ValidationError as e:
            logger.warning("Invalid sync settings, using defaults", error=str(e))
            return SyncSettings()

    async def save_settings(self, sync_settings: SyncSettings) -> SyncSettings:
        await self._write_blob(SETTINGS_KEY, sync_settings.to_storage())
        return sync_settings

    async def update_settings(self, **changes) -> SyncSettings:
        """Apply field changes to the stored settings and persist the new snapshot."""
        current = await self.get_settings()
        updated = SyncSettings.model_validate({**current.model_dump(), **changes})
        logger.info("Sync settings updated", fields=sorted(changes.keys()))
        return await self.save_settings(updated)

    async def mark_import_completed(self, at: datetime | None = None) -> SyncSettings:
        return await self.update_settings(last_import_time=at or datetime.now(UTC))

    async def mark_export_completed(self, at: datetime | None = None) -> SyncSettings:
        return await self.update_settings(last_export_time=at or datetime.now(UTC))

    # -- export mappings --------------------------------------------------

    async def get_mappings(self) -> Mapping[str, EventMapping]:
        data = await self._read_blob(EXPORT_MAPPINGS_KEY)
        return self._parse_table(data, EventMapping, "rehearsal_id")

    async def get_mapping(self, rehearsal_id: str) -> EventMapping | None:
        return (await self.get_mappings()).get(rehearsal_id)

    async def save_mapping(self, mapping: EventMapping) -> None:
        mappings = dict(await self.get_mappings())
        mappings[mapping.rehearsal_id] = mapping
        await self._write_table(EXPORT_MAPPINGS_KEY, mappings)

    async def remove_mapping(self, rehearsal_id: str) -> None:
        mappings = dict(await self.get_mappings())
        if mappings.pop(rehearsal_id, None) is not None:
            await self._write_table(EXPORT_MAPPINGS_KEY, mappings)

    async def clear_mappings(self) -> None:
        await self.store.delete(self._key(EXPORT_MAPPINGS_KEY))

    # -- import tracking --------------------------------------------------

    async def get_tracking(self) -> Mapping[str, ImportTrackingRecord]:
        data = await self._read_blob(IMPORT_TRACKING_KEY)
        return self._parse_table(data, ImportTrackingRecord, "external_event_id")

    async def replace_tracking(self, records: Mapping[str, ImportTrackingRecord]) -> None:
        await self._write_table(IMPORT_TRACKING_KEY, records)

    async def clear_tracking(self) -> None:
        await self.store.delete(self._key(IMPORT_TRACKING_KEY))

    # -- helpers ----------------------------------------------------------

    def _parse_table(self, data, model, key_field: str) -> dict:
        if not isinstance(data, dict):
            return {}
        table = {}
        for key, value in data.items():
            try:
                record = model.model_validate({key_field: key, **(value or {})})
            except (TypeError, ValidationError) as e:
                logger.warning("Dropping invalid sync state record", key=key, error=str(e))
                continue
            table[key] = record
        return table

    async def _write_table(self, name: str, table: Mapping) -> None:
        await self._write_blob(name, {key: record.to_storage() for key, record in table.items()})
