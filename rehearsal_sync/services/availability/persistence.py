"""
Availability working set and its persistence to the availability store.

The editor holds one user's per-date state in memory and applies bulk edits
transactionally. The service validates the whole set, serializes it to wire
entries and submits it as a single bulk request.
"""

from collections import defaultdict
from collections.abc import Callable, Iterable
from datetime import datetime

from rehearsal_sync.errors import AvailabilityValidationError, PastDateEditError
from rehearsal_sync.infrastructure.observability.logging import get_logger
from rehearsal_sync.models.domain.availability_domain import (
    DEFAULT_SLOT,
    AvailabilityData,
    AvailabilityEntry,
    DayMode,
    DayState,
    EntrySource,
    EntryType,
    SlotValidation,
    TimeSlot,
    check_date,
)
from rehearsal_sync.services.availability.store_client import BackendApiClient
from rehearsal_sync.services.availability.validation import OVERLAP_MESSAGE, validate_slots
from rehearsal_sync.utils.time_ranges import to_minutes
from rehearsal_sync.utils.timezone import (
    all_day_bounds,
    create_timestamp,
    get_today_in_timezone,
    parse_utc,
    zone_or_utc,
)

logger = get_logger(__name__)


def prepare_entries_for_api(data: AvailabilityData, timezone: str) -> list[AvailabilityEntry]:
    """
    Serialize a working set into wire entries.

    free/busy days become one UTC-pinned all-day entry. custom days become one
    busy entry per slot, converted from local wall clock to UTC.
    """
    entries = []
    for date in sorted(data):
        state = data[date]
        if state.mode in (DayMode.FREE, DayMode.BUSY):
            starts_at, ends_at = all_day_bounds(date)
            entry_type = EntryType.AVAILABLE if state.mode == DayMode.FREE else EntryType.BUSY
            entries.append(
                AvailabilityEntry(
                    starts_at=starts_at,
                    ends_at=ends_at,
                    type=entry_type,
                    is_all_day=True,
                    source=EntrySource.MANUAL,
                )
            )
            continue

        for slot in state.slots:
            if to_minutes(slot.start) >= to_minutes(slot.end):
                # Only reachable for past days, which are not validated
                logger.warning("Skipping unrepresentable slot", date=date, start=slot.start, end=slot.end)
                continue
            entries.append(
                AvailabilityEntry(
                    starts_at=create_timestamp(date, slot.start, timezone),
                    ends_at=create_timestamp(date, slot.end, timezone),
                    type=EntryType.BUSY,
                    is_all_day=False,
                    source=EntrySource.MANUAL,
                )
            )
    return entries


def format_display_date(date: str) -> str:
    parsed = datetime.strptime(check_date(date), "%Y-%m-%d")
    return f"{parsed.strftime('%B')} {parsed.day}, {parsed.year}"


def validate_availability(data: AvailabilityData, today: str) -> None:
    """
    Validate every present or future custom day. Past dates are skipped.

    Raises:
        AvailabilityValidationError: On the first invalid day, in date order
    """
    for date in sorted(data):
        if date < today:
            continue
        state = data[date]
        if state.mode != DayMode.CUSTOM:
            continue

        result = validate_slots(state.slots)
        if result.is_valid:
            continue

        message = result.error
        if result.error == OVERLAP_MESSAGE:
            first, second = (state.slots[i] for i in result.slot_indices)
            message = (
                f"{OVERLAP_MESSAGE}: slot {result.slot_indices[0] + 1} "
                f"{first.start}-{first.end}, slot {result.slot_indices[1] + 1} "
                f"{second.start}-{second.end}"
            )
        raise AvailabilityValidationError(
            message,
            date=format_display_date(date),
            slot_indices=result.slot_indices,
            reason="overlap" if result.error == OVERLAP_MESSAGE else "invalid_slot",
        )


class AvailabilityEditor:
    """In-memory availability for one user with transactional bulk edits."""

    def __init__(
        self,
        timezone: str = "UTC",
        data: AvailabilityData | None = None,
        today: Callable[[], str] | None = None,
    ):
        self.timezone = zone_or_utc(timezone).key
        self.data: AvailabilityData = dict(data or {})
        self.has_changes = False
        self._today = today or (lambda: get_today_in_timezone(self.timezone))

    def today(self) -> str:
        return self._today()

    def get_day_state(self, date: str) -> DayState:
        """Current state of a date, or the default custom day. Never mutates the map."""
        state = self.data.get(date)
        if state is None:
            return DayState(mode=DayMode.CUSTOM, slots=[DEFAULT_SLOT])
        return state.copy()

    def _apply(self, dates: Iterable[str], change: Callable[[DayState], DayState]) -> None:
        dates = [check_date(date) for date in dates]
        if not dates:
            return
        today = self.today()
        past = sorted(date for date in dates if date < today)
        if past:
            raise PastDateEditError(past)

        # Build every new state first so a failing change leaves data untouched
        updated = {date: change(self.get_day_state(date)) for date in dates}
        self.data.update(updated)
        self.has_changes = True

    def set_mode(self, dates: Iterable[str], mode: DayMode) -> None:
        mode = DayMode(mode)

        def change(state: DayState) -> DayState:
            slots = state.slots if mode == DayMode.CUSTOM else [DEFAULT_SLOT]
            return DayState(mode=mode, slots=list(slots))

        self._apply(dates, change)

    def add_slot(self, dates: Iterable[str], slot: TimeSlot | None = None) -> None:
        new_slot = slot or DEFAULT_SLOT
        self._apply(dates, lambda state: DayState(state.mode, [*state.slots, new_slot]))

    def remove_slot(self, dates: Iterable[str], index: int) -> None:
        self._apply(
            dates,
            lambda state: DayState(state.mode, [s for i, s in enumerate(state.slots) if i != index]),
        )

    def update_slot(
        self,
        dates: Iterable[str],
        index: int,
        start: str | None = None,
        end: str | None = None,
    ) -> None:
        """Change one bound of the slot at index on every selected date."""

        def change(state: DayState) -> DayState:
            slots = list(state.slots)
            if 0 <= index < len(slots):
                current = slots[index]
                slots[index] = TimeSlot(start or current.start, end or current.end, current.is_all_day)
            return DayState(state.mode, slots)

        self._apply(dates, change)

    def delete_dates(self, dates: Iterable[str]) -> None:
        """Drop local state for dates. Allowed for past dates."""
        removed = [date for date in dates if self.data.pop(date, None) is not None]
        if removed:
            self.has_changes = True

    def validate_day(self, date: str) -> SlotValidation:
        state = self.get_day_state(date)
        if state.mode != DayMode.CUSTOM:
            return SlotValidation(is_valid=True)
        return validate_slots(state.slots)

    def load_entries(self, entries: Iterable[AvailabilityEntry]) -> None:
        """
        Rebuild the working set from store entries.

        Only manual entries are editable. All-day entries become free/busy days;
        timed entries are rendered in the user's timezone and grouped by local
        date into custom slots.
        """
        zone = zone_or_utc(self.timezone)
        all_day: dict[str, DayState] = {}
        timed: dict[str, list[TimeSlot]] = defaultdict(list)

        for entry in entries:
            if entry.source != EntrySource.MANUAL:
                continue
            if entry.is_all_day:
                date = entry.starts_at[:10]
                mode = DayMode.FREE if entry.type == EntryType.AVAILABLE else DayMode.BUSY
                all_day[date] = DayState(mode=mode, slots=[DEFAULT_SLOT])
                continue

            start = parse_utc(entry.starts_at).astimezone(zone)
            end = parse_utc(entry.ends_at).astimezone(zone)
            timed[start.strftime("%Y-%m-%d")].append(
                TimeSlot(start.strftime("%H:%M"), end.strftime("%H:%M"))
            )

        data: AvailabilityData = {}
        for date, slots in timed.items():
            data[date] = DayState(mode=DayMode.CUSTOM, slots=sorted(slots, key=lambda s: to_minutes(s.start)))
        data.update(all_day)

        self.data = data
        self.has_changes = False
        logger.info("Availability loaded", day_count=len(data))


class AvailabilityService:
    """Binds an AvailabilityEditor to the availability store."""

    def __init__(self, client: BackendApiClient, editor: AvailabilityEditor):
        self.client = client
        self.editor = editor

    async def load(self) -> AvailabilityData:
        entries = await self.client.list_entries()
        self.editor.load_entries(entries)
        return self.editor.data

    async def save(self, today: str | None = None) -> int:
        """
        Validate, serialize and bulk-upsert the working set.

        Validation failures are raised before any network call. On any failure
        the working set and its unsaved-changes flag are left as they were.

        Args:
            today: Local date used to skip past days (default: today in the user's timezone)

        Returns:
            int: Number of entries submitted

        Raises:
            AvailabilityValidationError: If a present or future day is invalid
            AvailabilityStoreError: If the store request fails
            ConflictError: If the store rejects overlapping availability
        """
        today = today or self.editor.today()
        try:
            validate_availability(self.editor.data, today)
        except AvailabilityValidationError as e:
            logger.warning(
                "Availability validation failed",
                date=e.date,
                slot_indices=list(e.slot_indices),
                reason=e.reason,
            )
            raise

        entries = prepare_entries_for_api(self.editor.data, self.editor.timezone)
        if not entries:
            logger.info("No availability entries to save")
            self.editor.has_changes = False
            return 0

        await self.client.bulk_set(entries)
        self.editor.has_changes = False
        logger.info("Availability saved", entry_count=len(entries))
        return len(entries)

    async def delete_date(self, date: str) -> None:
        """Remove a date's availability in the store and locally."""
        check_date(date)
        await self.client.delete_date(date)
        self.editor.delete_dates([date])
        logger.info("Availability date deleted", date=date)
