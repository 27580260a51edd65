import pytest

from rehearsal_sync.repositories.sync_state_repository import SyncStateRepository
from rehearsal_sync.services.calendar.export_service import CalendarExportService
from rehearsal_sync.services.calendar.import_service import CalendarImportService
from tests.factories import FakeBackend, FakeCalendarProvider, FakeClock, FakeKeyValueStore


@pytest.fixture
def kv_store():
    return FakeKeyValueStore()


@pytest.fixture
def repository(kv_store):
    return SyncStateRepository(kv_store, "user-123")


@pytest.fixture
def provider():
    return FakeCalendarProvider()


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def export_service(provider, repository):
    return CalendarExportService(provider, repository, batch_size=2)


@pytest.fixture
def import_service(provider, backend, repository):
    return CalendarImportService(
        provider, backend, repository, timezone="UTC", chunk_size=2, lookback_days=0, lookahead_days=365
    )


@pytest.fixture
def fake_clock():
    return FakeClock()
