import pytest

from careportal.services.assignments.entries import (
    END_BEFORE_START,
    KM_INVALID,
    MINUTES_NOT_POSITIVE,
    EntryValidationError,
    parse_kilometers,
    resolve_entry_minutes,
)


@pytest.mark.parametrize("minutes, expected", [(2.5, 3), (0.5, 1), (89.4, 89), ("45", 45)])
def test_entry_minutes_round_halves_up(minutes, expected) -> None:
    assert resolve_entry_minutes(minutes) == expected


def test_entry_minutes_from_range_round_halves_up() -> None:
    assert resolve_entry_minutes(start_at="2024-05-06T08:00:00Z", end_at="2024-05-06T08:02:30Z") == 3


@pytest.mark.parametrize("minutes", [0, -2.5, 0.4, "abc", float("inf")])
def test_entry_minutes_must_be_positive(minutes) -> None:
    with pytest.raises(EntryValidationError, match=MINUTES_NOT_POSITIVE):
        resolve_entry_minutes(minutes)


def test_entry_range_must_not_be_inverted() -> None:
    with pytest.raises(EntryValidationError) as excinfo:
        resolve_entry_minutes(start_at="2024-05-06T09:00:00Z", end_at="2024-05-06T08:00:00Z")
    assert str(excinfo.value) == END_BEFORE_START


def test_kilometers_accept_decimal_comma() -> None:
    assert parse_kilometers("12,5") == 12.5
    assert parse_kilometers(0) == 0.0
    with pytest.raises(EntryValidationError, match=KM_INVALID):
        parse_kilometers("-1")
