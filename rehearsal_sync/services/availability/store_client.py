"""
REST client for the availability store and the rehearsal source.
All entries are sent as ISO-8601 UTC timestamps; the client never sends bare
local times. Bulk calls are issued as one request per batch.
"""

import asyncio
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from rehearsal_sync.config import settings
from rehearsal_sync.errors import AvailabilityStoreError, ConflictError
from rehearsal_sync.infrastructure.observability.logging import get_logger
from rehearsal_sync.models.domain.availability_domain import AvailabilityEntry
from rehearsal_sync.models.domain.calendar_domain import Rehearsal

logger = get_logger(__name__)

BACKOFF_FACTOR = 1.0
RETRY_STATUS_CODES = {429, 500, 502, 503, 504}


class BackendApiClient:
    """
    Client for the availability and rehearsal REST endpoints.

    Retries transient failures with exponential backoff and maps HTTP errors
    onto AvailabilityStoreError / ConflictError.
    """

    def __init__(
        self,
        base_url: str | None = None,
        access_token: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_factor: float = BACKOFF_FACTOR,
    ):
        http_config = settings.get_http_client_config()
        self.base_url = (base_url or settings.BACKEND_API_URL).rstrip("/")
        self.access_token = access_token if access_token is not None else settings.BACKEND_ACCESS_TOKEN
        self.max_retries = max_retries or http_config["max_retries"]
        self.backoff_factor = backoff_factor
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout or http_config["timeout"]),
            limits=httpx.Limits(max_keepalive_connections=10, max_connections=20),
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers

    async def _request_with_retry(self, method: str, path: str, **kwargs) -> httpx.Response:
        """Execute an HTTP request with retry and backoff."""
        url = f"{self.base_url}{path}"
        for attempt in range(1, self.max_retries + 1):
            try:
                response = await self._client.request(method, url, headers=self._headers(), **kwargs)
            except httpx.RequestError as e:
                if attempt >= self.max_retries:
                    logger.error("Store request failed", method=method, path=path, error=str(e))
                    raise AvailabilityStoreError(
                        f"Availability store unreachable: {e}", error_code="network_error"
                    ) from e
                await self._backoff(attempt, error=str(e))
                continue

            if response.status_code in RETRY_STATUS_CODES and attempt < self.max_retries:
                await self._backoff(attempt, status_code=response.status_code)
                continue
            return response

        raise AvailabilityStoreError("Store retry loop exhausted", error_code="network_error")

    async def _backoff(self, attempt: int, **context) -> None:
        backoff = self.backoff_factor * (2 ** (attempt - 1))
        logger.debug("Store request retrying", attempt=attempt, backoff_seconds=backoff, **context)
        if backoff:
            await asyncio.sleep(backoff)

    def _handle_response(self, response: httpx.Response, operation: str):
        """
        Validate a store response and return its parsed JSON body.

        Raises:
            ConflictError: On HTTP 409
            AvailabilityStoreError: On any other non-success status or bad JSON
        """
        logger.debug(
            f"Store {operation} response",
            status_code=response.status_code,
            response_size=len(response.content),
        )

        if response.is_success:
            if not response.content:
                return {}
            try:
                return response.json()
            except ValueError as e:
                raise AvailabilityStoreError(
                    f"Invalid response format from {operation}", error_code="invalid_response"
                ) from e

        try:
            error_data = response.json() if response.content else {}
        except ValueError:
            error_data = {"error": response.text[:200]}
        if not isinstance(error_data, dict):
            error_data = {"error": error_data}

        message = error_data.get("error") or error_data.get("message") or f"HTTP {response.status_code}"
        logger.error(
            f"Store {operation} failed",
            status_code=response.status_code,
            error_message=message,
        )

        if response.status_code == 409:
            raise ConflictError(str(message), detail=error_data)

        error_code = {
            400: "bad_request",
            401: "unauthorized",
            403: "unauthorized",
            404: "not_found",
        }.get(response.status_code, "server_error")
        raise AvailabilityStoreError(
            str(message),
            error_code=error_code,
            status_code=response.status_code,
            response_data=error_data,
            recoverable=response.status_code >= 500 or response.status_code == 429,
        )

    # -- availability ------------------------------------------------------

    async def bulk_set(self, entries: list[AvailabilityEntry]) -> dict:
        """
        Upsert a batch of entries in one request.

        Args:
            entries: Entries to store; must not be empty

        Returns:
            dict: Store response body
        """
        payload = {"entries": [entry.to_api() for entry in entries]}
        logger.info("Saving availability entries", entry_count=len(entries))
        response = await self._request_with_retry("POST", "/availability/bulk", json=payload)
        return self._handle_response(response, "bulk_set")

    async def list_entries(self) -> list[AvailabilityEntry]:
        response = await self._request_with_retry("GET", "/availability")
        data = self._handle_response(response, "list_entries")
        items = data.get("availability", []) if isinstance(data, dict) else data

        entries = []
        for item in items or []:
            try:
                entries.append(AvailabilityEntry.model_validate(item))
            except ValidationError as e:
                logger.warning("Skipping malformed availability entry", error=str(e))
        logger.info("Availability entries listed", entry_count=len(entries))
        return entries

    async def delete_date(self, date: str) -> dict:
        response = await self._request_with_retry("DELETE", f"/availability/{quote(date)}")
        return self._handle_response(response, "delete_date")

    async def delete_all_imported(self) -> dict:
        response = await self._request_with_retry("DELETE", "/availability/imported/all")
        return self._handle_response(response, "delete_all_imported")

    async def delete_imported(self, event_ids: list[str]) -> dict:
        logger.info("Deleting imported entries", event_count=len(event_ids))
        response = await self._request_with_retry(
            "DELETE", "/availability/imported/batch", json={"eventIds": list(event_ids)}
        )
        return self._handle_response(response, "delete_imported")

    async def update_imported(self, entries: list[AvailabilityEntry]) -> dict:
        """Update previously imported entries in place, keyed by externalEventId."""
        updates = [
            {
                "externalEventId": entry.external_event_id,
                "startsAt": entry.starts_at,
                "endsAt": entry.ends_at,
                "title": entry.title,
                "isAllDay": entry.is_all_day,
            }
            for entry in entries
        ]
        logger.info("Updating imported entries", event_count=len(updates))
        response = await self._request_with_retry(
            "PUT", "/availability/imported/batch", json={"updates": updates}
        )
        return self._handle_response(response, "update_imported")

    # -- rehearsals --------------------------------------------------------

    async def list_rehearsals(self, project_ids: list[str]) -> list[Rehearsal]:
        if not project_ids:
            return []
        response = await self._request_with_retry(
            "GET", "/rehearsals/batch", params={"projectIds": ",".join(project_ids)}
        )
        data = self._handle_response(response, "list_rehearsals")
        items = data.get("rehearsals", []) if isinstance(data, dict) else data

        rehearsals = []
        for item in items or []:
            try:
                rehearsals.append(Rehearsal.model_validate(item))
            except ValidationError as e:
                logger.warning("Skipping malformed rehearsal", error=str(e))
        logger.info("Rehearsals listed", project_count=len(project_ids), rehearsal_count=len(rehearsals))
        return rehearsals

    async def health_check(self) -> bool:
        try:
            response = await self._client.get(f"{self.base_url}/health", headers=self._headers())
            return response.is_success
        except httpx.RequestError as e:
            logger.warning("Store health check failed", error=str(e))
            return False
