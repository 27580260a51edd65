import json
import re

import httpx
import pytest

from rehearsal_sync.errors import AvailabilityStoreError, ConflictError
from rehearsal_sync.models.domain.availability_domain import AvailabilityEntry, EntrySource, EntryType
from rehearsal_sync.services.availability.store_client import BackendApiClient

BASE_URL = "https://store.test/api"


def make_client(max_retries=1):
    return BackendApiClient(
        base_url=BASE_URL, access_token="token", max_retries=max_retries, backoff_factor=0
    )


def busy_entry(**overrides):
    data = {
        "starts_at": "2030-05-02T09:00:00.000Z",
        "ends_at": "2030-05-02T10:00:00.000Z",
        "type": EntryType.BUSY,
    }
    data.update(overrides)
    return AvailabilityEntry(**data)


@pytest.mark.asyncio
async def test_bulk_set_posts_camel_case_entries(httpx_mock):
    client = make_client()
    httpx_mock.add_response(method="POST", url=f"{BASE_URL}/availability/bulk", json={"success": True})

    result = await client.bulk_set([busy_entry()])
    await client.close()

    assert result == {"success": True}
    request = httpx_mock.get_request()
    assert request.headers["Authorization"] == "Bearer token"
    assert json.loads(request.content) == {
        "entries": [
            {
                "startsAt": "2030-05-02T09:00:00.000Z",
                "endsAt": "2030-05-02T10:00:00.000Z",
                "type": "busy",
                "isAllDay": False,
                "source": "manual",
            }
        ]
    }


@pytest.mark.asyncio
async def test_list_entries_skips_malformed_items(httpx_mock):
    client = make_client()
    httpx_mock.add_response(
        method="GET",
        url=f"{BASE_URL}/availability",
        json={
            "availability": [
                {
                    "id": "a1",
                    "startsAt": "2030-05-02T09:00:00.000Z",
                    "endsAt": "2030-05-02T10:00:00.000Z",
                    "type": "busy",
                    "source": "imported",
                    "externalEventId": "ext-1",
                },
                {"startsAt": "2030-05-02T10:00:00.000Z", "endsAt": "2030-05-02T09:00:00.000Z", "type": "busy"},
            ]
        },
    )

    entries = await client.list_entries()
    await client.close()

    assert len(entries) == 1
    assert entries[0].source == EntrySource.IMPORTED
    assert entries[0].external_event_id == "ext-1"


@pytest.mark.asyncio
async def test_conflict_maps_to_conflict_error(httpx_mock):
    client = make_client()
    httpx_mock.add_response(
        method="POST",
        url=f"{BASE_URL}/availability/bulk",
        status_code=409,
        json={"error": "Overlapping availability"},
    )

    with pytest.raises(ConflictError) as exc:
        await client.bulk_set([busy_entry()])
    await client.close()

    assert exc.value.message == "Overlapping availability"


@pytest.mark.asyncio
async def test_not_found_maps_to_store_error(httpx_mock):
    client = make_client()
    httpx_mock.add_response(method="DELETE", url=f"{BASE_URL}/availability/2030-05-02", status_code=404)

    with pytest.raises(AvailabilityStoreError) as exc:
        await client.delete_date("2030-05-02")
    await client.close()

    assert exc.value.error_code == "not_found"
    assert exc.value.recoverable is False


@pytest.mark.asyncio
async def test_retries_transient_failure(httpx_mock):
    client = make_client(max_retries=2)
    httpx_mock.add_response(method="GET", url=f"{BASE_URL}/availability", status_code=503)
    httpx_mock.add_response(method="GET", url=f"{BASE_URL}/availability", json=[])

    entries = await client.list_entries()
    await client.close()

    assert entries == []
    assert len(httpx_mock.get_requests()) == 2


@pytest.mark.asyncio
async def test_network_error_maps_to_store_error(httpx_mock):
    client = make_client()
    httpx_mock.add_exception(httpx.ConnectError("connection refused"))

    with pytest.raises(AvailabilityStoreError) as exc:
        await client.list_entries()
    await client.close()

    assert exc.value.error_code == "network_error"


@pytest.mark.asyncio
async def test_delete_imported_sends_event_ids(httpx_mock):
    client = make_client()
    httpx_mock.add_response(
        method="DELETE", url=f"{BASE_URL}/availability/imported/batch", json={"deleted": 2}
    )

    await client.delete_imported(["ext-1", "ext-2"])
    await client.close()

    assert json.loads(httpx_mock.get_request().content) == {"eventIds": ["ext-1", "ext-2"]}


@pytest.mark.asyncio
async def test_update_imported_sends_updates(httpx_mock):
    client = make_client()
    httpx_mock.add_response(method="PUT", url=f"{BASE_URL}/availability/imported/batch", json={})

    await client.update_imported([busy_entry(external_event_id="ext-1", title="Dentist")])
    await client.close()

    body = json.loads(httpx_mock.get_request().content)
    assert body["updates"] == [
        {
            "externalEventId": "ext-1",
            "startsAt": "2030-05-02T09:00:00.000Z",
            "endsAt": "2030-05-02T10:00:00.000Z",
            "title": "Dentist",
            "isAllDay": False,
        }
    ]


@pytest.mark.asyncio
async def test_list_rehearsals(httpx_mock):
    client = make_client()
    httpx_mock.add_response(
        method="GET",
        url=re.compile(r"https://store\.test/api/rehearsals/batch\?projectIds=p1(%2C|,)p2$"),
        json={
            "rehearsals": [
                {
                    "id": 7,
                    "projectId": "p1",
                    "projectName": "Hamlet",
                    "startsAt": "2030-05-01T18:00:00Z",
                    "endsAt": "2030-05-01T21:00:00Z",
                    "location": "Main Stage",
                },
                {"id": "broken"},
            ]
        },
    )

    rehearsals = await client.list_rehearsals(["p1", "p2"])
    await client.close()

    assert len(rehearsals) == 1
    assert rehearsals[0].id == "7"
    assert rehearsals[0].project_name == "Hamlet"


@pytest.mark.asyncio
async def test_list_rehearsals_without_projects_makes_no_request(httpx_mock):
    client = make_client()

    assert await client.list_rehearsals([]) == []
    await client.close()

    assert httpx_mock.get_requests() == []


@pytest.mark.asyncio
async def test_health_check(httpx_mock):
    client = make_client()
    httpx_mock.add_response(method="GET", url=f"{BASE_URL}/health", json={"status": "ok"})

    assert await client.health_check() is True
    await client.close()
