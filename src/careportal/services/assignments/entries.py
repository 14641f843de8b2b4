"""Validation of employee-entered time and kilometer values."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional

from ...data.payloads import parse_date, parse_datetime
from ..corrections.ledger import minutes_between, round_half_up

KM_MISSING = "Bitte Kilometer eingeben"
KM_INVALID = "Ungültige Kilometerzahl"
MINUTES_NOT_POSITIVE = "Minuten müssen > 0 sein."
DATE_MISSING = "Datum fehlt oder ist ungültig."
ASSIGNMENT_MISSING = "Einsatz fehlt."
END_BEFORE_START = "Endzeit muss nach der Startzeit liegen."


class EntryValidationError(ValueError):
    """User input for a time or km entry cannot be sent."""


def parse_kilometers(value: Any) -> float:
    """Accept a non-negative number; German decimal commas are allowed."""

    if value is None or isinstance(value, bool):
        raise EntryValidationError(KM_MISSING if value is None else KM_INVALID)
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip().replace(",", ".")
        if not text:
            raise EntryValidationError(KM_MISSING)
        try:
            number = float(text)
        except ValueError as exc:
            raise EntryValidationError(KM_INVALID) from exc
    if number != number or number < 0 or number == float("inf"):
        raise EntryValidationError(KM_INVALID)
    return number


def parse_entry_date(value: Any) -> date:
    day = parse_date(value)
    if day is None:
        raise EntryValidationError(DATE_MISSING)
    return day


def resolve_entry_minutes(
    minutes: Any = None,
    start_at: Any = None,
    end_at: Any = None,
) -> int:
    """Minutes for a time entry, given directly or as a start/end pair.

    Durations are rounded to the nearest minute; the result must be positive.
    """

    if minutes is not None and not isinstance(minutes, bool):
        try:
            value = round_half_up(float(minutes))
        except (TypeError, ValueError, OverflowError) as exc:
            raise EntryValidationError(MINUTES_NOT_POSITIVE) from exc
    else:
        start: Optional[datetime] = parse_datetime(start_at)
        end: Optional[datetime] = parse_datetime(end_at)
        if start is not None and end is not None and end <= start:
            raise EntryValidationError(END_BEFORE_START)
        value = minutes_between(start, end)
    if value <= 0:
        raise EntryValidationError(MINUTES_NOT_POSITIVE)
    return value


def check_time_range(start_at: Any, end_at: Any) -> None:
    """Reject admin edits whose end does not come after the start."""

    start = parse_datetime(start_at)
    end = parse_datetime(end_at)
    if start is not None and end is not None and end <= start:
        raise EntryValidationError(END_BEFORE_START)
