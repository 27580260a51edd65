"""
Google Calendar provider for rehearsal export and availability import.
Low-level Calendar API v3 client over httpx with retry and error mapping.
"""

import asyncio
from datetime import datetime
from urllib.parse import quote

import httpx

from rehearsal_sync.config import settings
from rehearsal_sync.errors import CalendarPermissionError, CalendarProviderError
from rehearsal_sync.infrastructure.observability.logging import get_logger
from rehearsal_sync.models.domain.calendar_domain import CalendarInfo, EventDraft, ExternalEvent
from rehearsal_sync.utils.timezone import format_utc

logger = get_logger(__name__)

# Google Calendar API configuration
CALENDAR_API_BASE_URL = "https://www.googleapis.com/calendar/v3"
CALENDAR_PRIMARY = "primary"

BACKOFF_FACTOR = 2
RETRY_STATUS_CODES = {429, 500, 502, 503, 504}
EVENTS_PAGE_SIZE = 250


class GoogleCalendarProvider:
    """
    CalendarProvider backed by the Google Calendar REST API.

    All-day events are read as midnight UTC of their date. 401/403 responses
    raise CalendarPermissionError; everything else raises CalendarProviderError.
    """

    def __init__(
        self,
        access_token: str | None = None,
        base_url: str = CALENDAR_API_BASE_URL,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_factor: float = BACKOFF_FACTOR,
    ):
        http_config = settings.get_http_client_config()
        self.access_token = access_token if access_token is not None else settings.GOOGLE_CALENDAR_ACCESS_TOKEN
        self.base_url = base_url.rstrip("/")
        self.max_retries = max_retries or http_config["max_retries"]
        self.backoff_factor = backoff_factor
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout or http_config["timeout"]),
            limits=httpx.Limits(max_keepalive_connections=20, max_connections=50),
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    def _get_auth_headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _events_url(self, calendar_id: str, event_id: str | None = None) -> str:
        url = f"{self.base_url}/calendars/{quote(calendar_id, safe='')}/events"
        if event_id:
            url = f"{url}/{quote(event_id, safe='')}"
        return url

    async def _request_with_retry(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Execute an HTTP request with retry and backoff."""
        if not self.access_token:
            raise CalendarPermissionError("Calendar access token not configured")

        for attempt in range(1, self.max_retries + 1):
            try:
                response = await self._client.request(
                    method, url, headers=self._get_auth_headers(), **kwargs
                )
            except httpx.RequestError as e:
                if attempt >= self.max_retries:
                    logger.error("Calendar API request failed", method=method, error=str(e))
                    raise CalendarProviderError(
                        f"Calendar provider unreachable: {e}", error_code="network_error"
                    ) from e
                await self._backoff(attempt, error=str(e))
                continue

            if response.status_code in RETRY_STATUS_CODES and attempt < self.max_retries:
                await self._backoff(attempt, status_code=response.status_code)
                continue
            return response

        raise CalendarProviderError("Calendar API retry loop exhausted", error_code="network_error")

    async def _backoff(self, attempt: int, **context) -> None:
        backoff = self.backoff_factor * (2 ** (attempt - 1))
        logger.debug("Calendar API retrying request", attempt=attempt, backoff_seconds=backoff, **context)
        if backoff:
            await asyncio.sleep(backoff)

    def _handle_api_response(self, response: httpx.Response, operation: str) -> dict:
        """
        Handle and validate Calendar API response.

        Args:
            response: HTTP response from Calendar API
            operation: Operation name for logging

        Returns:
            dict: Parsed response data

        Raises:
            CalendarPermissionError: On 401/403
            CalendarProviderError: On any other error response
        """
        logger.debug(
            f"Calendar API {operation} response",
            status_code=response.status_code,
            response_size=len(response.content),
        )

        if response.is_success:
            if not response.content:
                return {}
            try:
                return response.json()
            except ValueError as e:
                logger.error(f"Failed to parse Calendar API {operation} response", error=str(e))
                raise CalendarProviderError(f"Invalid response format: {e}") from e

        try:
            error_data = response.json() if response.content else {}
        except ValueError:
            error_data = {}
        error_info = error_data.get("error", {}) if isinstance(error_data, dict) else {}
        if not isinstance(error_info, dict):
            error_info = {"message": str(error_info)}
        error_message = error_info.get("message", f"HTTP {response.status_code}")

        logger.error(
            f"Calendar API {operation} failed",
            status_code=response.status_code,
            error_message=error_message,
        )

        if response.status_code in (401, 403):
            raise CalendarPermissionError(self._map_calendar_error(response.status_code, error_message))

        raise CalendarProviderError(
            self._map_calendar_error(response.status_code, error_message),
            error_code="not_found" if response.status_code == 404 else str(response.status_code),
            status_code=response.status_code,
            response_data=error_data if isinstance(error_data, dict) else {},
        )

    def _map_calendar_error(self, status_code: int, error_message: str) -> str:
        """Map Calendar API status codes to user-friendly messages."""
        error_mappings = {
            403: "Calendar access denied. Please check permissions.",
            404: "Calendar or event not found.",
            400: "Invalid calendar request format.",
            401: "Calendar authorization expired. Please reconnect.",
            429: "Too many calendar requests. Please try again later.",
            500: "Google Calendar service temporarily unavailable.",
        }
        return error_mappings.get(status_code, f"Calendar error: {error_message}")

    async def has_permission(self) -> bool:
        """Check that the token can still read the user's calendar list."""
        try:
            response = await self._request_with_retry(
                "GET", f"{self.base_url}/users/me/calendarList", params={"maxResults": 1}
            )
            self._handle_api_response(response, "has_permission")
            return True
        except CalendarPermissionError:
            logger.warning("Calendar permission missing")
            return False

    async def list_calendars(self) -> list[CalendarInfo]:
        """
        List all calendars accessible to the user.

        Returns:
            list[CalendarInfo]: Accessible calendars

        Raises:
            CalendarProviderError: If listing calendars fails
        """
        response = await self._request_with_retry("GET", f"{self.base_url}/users/me/calendarList")
        data = self._handle_api_response(response, "list_calendars")
        calendars = [CalendarInfo(item) for item in data.get("items", [])]
        logger.info("Calendars listed successfully", calendar_count=len(calendars))
        return calendars

    async def get_default_calendar(self) -> CalendarInfo | None:
        """Primary calendar if writable, else the first writable one."""
        calendars = [c for c in await self.list_calendars() if c.can_create_events()]
        for calendar in calendars:
            if calendar.is_primary:
                return calendar
        return calendars[0] if calendars else None

    async def list_events(
        self, calendar_ids: list[str], start: datetime, end: datetime
    ) -> list[ExternalEvent]:
        """
        List events in a window across calendars, recurring events expanded.

        A failure on any calendar fails the whole listing so callers never
        mistake a missing calendar for deleted events.
        """
        events = []
        for calendar_id in calendar_ids:
            params = {
                "timeMin": format_utc(start),
                "timeMax": format_utc(end),
                "singleEvents": "true",
                "orderBy": "startTime",
                "maxResults": EVENTS_PAGE_SIZE,
            }
            calendar_count = 0
            while True:
                response = await self._request_with_retry("GET", self._events_url(calendar_id), params=params)
                data = self._handle_api_response(response, "list_events")
                for item in data.get("items", []):
                    event = ExternalEvent.from_google(item, calendar_id)
                    if event is not None:
                        events.append(event)
                        calendar_count += 1
                page_token = data.get("nextPageToken")
                if not page_token:
                    break
                params = {**params, "pageToken": page_token}

            logger.info("Events listed successfully", calendar_id=calendar_id, event_count=calendar_count)
        return events

    async def get_event(self, calendar_id: str, event_id: str) -> ExternalEvent | None:
        """Fetch one event; None if it no longer exists."""
        response = await self._request_with_retry("GET", self._events_url(calendar_id, event_id))
        if response.status_code in (404, 410):
            return None
        data = self._handle_api_response(response, "get_event")
        return ExternalEvent.from_google(data, calendar_id)

    async def create_event(self, calendar_id: str, draft: EventDraft) -> str:
        logger.info(
            "Creating calendar event",
            summary=draft.title,
            start_time=draft.start.isoformat(),
            calendar_id=calendar_id,
        )
        response = await self._request_with_retry("POST", self._events_url(calendar_id), json=draft.to_google())
        data = self._handle_api_response(response, "create_event")
        event_id = data.get("id")
        if not event_id:
            raise CalendarProviderError("Calendar API returned no event id")
        logger.info("Event created successfully", event_id=event_id, calendar_id=calendar_id)
        return event_id

    async def update_event(self, calendar_id: str, event_id: str, draft: EventDraft) -> None:
        response = await self._request_with_retry(
            "PATCH", self._events_url(calendar_id, event_id), json=draft.to_google()
        )
        self._handle_api_response(response, "update_event")
        logger.info("Event updated successfully", event_id=event_id)

    async def delete_event(self, calendar_id: str, event_id: str) -> None:
        response = await self._request_with_retry("DELETE", self._events_url(calendar_id, event_id))
        if response.status_code in (404, 410):
            logger.info("Event already gone", event_id=event_id)
            return
        self._handle_api_response(response, "delete_event")
        logger.info("Event deleted successfully", event_id=event_id)

    async def health_check(self) -> bool:
        try:
            return await self.has_permission()
        except CalendarProviderError as e:
            logger.warning("Calendar health check failed", error=str(e))
            return False
