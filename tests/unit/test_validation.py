"""
Tests for slot validation.
"""

import pytest

from rehearsal_sync.errors import ParseError
from rehearsal_sync.models.domain.availability_domain import TimeSlot
from rehearsal_sync.services.availability.validation import (
    INVALID_SLOT_MESSAGE,
    OVERLAP_MESSAGE,
    slots_overlap,
    validate_slot,
    validate_slots,
)


def test_valid_slot():
    assert validate_slot(TimeSlot("09:00", "10:00")).is_valid is True


@pytest.mark.parametrize("start,end", [("10:00", "10:00"), ("11:00", "10:00")])
def test_invalid_slot(start, end):
    result = validate_slot(TimeSlot(start, end))
    assert result.is_valid is False
    assert result.error == INVALID_SLOT_MESSAGE


def test_malformed_time_rejected_on_construction():
    with pytest.raises(ParseError):
        TimeSlot("25:00", "26:00")


def test_adjacent_slots_do_not_overlap():
    a, b = TimeSlot("09:00", "10:00"), TimeSlot("10:00", "11:00")
    assert slots_overlap(a, b) is False
    assert slots_overlap(b, a) is False


def test_overlap_is_symmetric():
    a, b = TimeSlot("09:00", "12:00"), TimeSlot("11:00", "13:00")
    assert slots_overlap(a, b) is True
    assert slots_overlap(b, a) is True


def test_contained_slot_overlaps():
    assert slots_overlap(TimeSlot("09:00", "17:00"), TimeSlot("12:00", "13:00")) is True


def test_empty_list_is_valid():
    assert validate_slots([]).is_valid is True


def test_overlap_reports_indices():
    result = validate_slots(
        [TimeSlot("08:00", "09:00"), TimeSlot("10:00", "12:00"), TimeSlot("11:00", "13:00")]
    )
    assert result.is_valid is False
    assert result.error == OVERLAP_MESSAGE
    assert result.slot_indices == (1, 2)


def test_invalid_slot_reported_before_overlap():
    result = validate_slots(
        [TimeSlot("10:00", "12:00"), TimeSlot("11:00", "13:00"), TimeSlot("15:00", "14:00")]
    )
    assert result.error == INVALID_SLOT_MESSAGE
    assert result.slot_indices == (2,)


def test_minute_apart_bounds():
    assert validate_slot(TimeSlot("14:00", "14:01")).is_valid is True


def test_edge_to_edge_chain_is_valid():
    chain = [TimeSlot("09:00", "10:00"), TimeSlot("10:00", "11:00"), TimeSlot("11:00", "12:00")]
    assert validate_slots(chain).is_valid is True
