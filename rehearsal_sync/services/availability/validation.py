"""
Validation of a day's availability slots.
Individual validity is always checked before cross-slot overlap so the
reported error is deterministic.
"""

from rehearsal_sync.models.domain.availability_domain import SlotValidation, TimeSlot
from rehearsal_sync.utils.time_ranges import to_minutes

INVALID_SLOT_MESSAGE = "Start time must be earlier than end time"
OVERLAP_MESSAGE = "Slots must not overlap"


def validate_slot(slot: TimeSlot) -> SlotValidation:
    """A slot is valid only if start is strictly before end."""
    if to_minutes(slot.start) >= to_minutes(slot.end):
        return SlotValidation(is_valid=False, error=INVALID_SLOT_MESSAGE)
    return SlotValidation(is_valid=True)


def slots_overlap(a: TimeSlot, b: TimeSlot) -> bool:
    """True if the slots share time. Adjacent slots (a.end == b.start) do not."""
    return to_minutes(a.start) < to_minutes(b.end) and to_minutes(b.start) < to_minutes(a.end)


def validate_slots(slots: list[TimeSlot]) -> SlotValidation:
    """
    Validate a day's slots.

    Each slot is checked on its own first and the first invalid one wins.
    Then every pair is checked for overlap in index order.

    Args:
        slots: The day's slots; an empty list is valid

    Returns:
        SlotValidation: Result with offending slot indices on failure
    """
    for index, slot in enumerate(slots):
        result = validate_slot(slot)
        if not result.is_valid:
            return SlotValidation(is_valid=False, error=result.error, slot_indices=(index,))

    for i in range(len(slots)):
        for j in range(i + 1, len(slots)):
            if slots_overlap(slots[i], slots[j]):
                return SlotValidation(is_valid=False, error=OVERLAP_MESSAGE, slot_indices=(i, j))

    return SlotValidation(is_valid=True)
