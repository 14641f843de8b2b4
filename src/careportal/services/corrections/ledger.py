"""Per-day summary of planned, recorded and corrected minutes and kilometers.

Everything here is a pure function of the fetched collections and is
recomputed from scratch after every load.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Iterable, Optional

from ...models.domain import Assignment, DayBundle, TimeEntry


@dataclass(frozen=True, slots=True)
class DaySummary:
    planned_minutes: int
    recorded_minutes: int
    adjusted_minutes: int
    final_minutes: int
    km_recorded: Optional[float]
    km_adjusted: float
    km_final: float

    def to_dict(self) -> dict:
        data = asdict(self)
        return {
            "plannedMinutes": data["planned_minutes"],
            "recordedMinutes": data["recorded_minutes"],
            "adjustedMinutes": data["adjusted_minutes"],
            "finalMinutes": data["final_minutes"],
            "kmRecorded": data["km_recorded"],
            "kmAdjusted": data["km_adjusted"],
            "kmFinal": data["km_final"],
        }


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up, as browsers do."""
    return math.floor(value + 0.5)


def minutes_between(start: Optional[datetime], end: Optional[datetime]) -> int:
    """Whole minutes from ``start`` to ``end``; missing or inverted ranges give 0."""

    if start is None or end is None:
        return 0
    return max(0, round_half_up((end - start).total_seconds() / 60))


def hours_between(start: Optional[datetime], end: Optional[datetime]) -> float:
    """Fractional hours from ``start`` to ``end``; missing or inverted ranges give 0."""

    if start is None or end is None or end <= start:
        return 0.0
    return (end - start).total_seconds() / 3600


def entry_minutes(entry: TimeEntry) -> int:
    if entry.minutes is not None:
        return max(0, entry.minutes)
    return minutes_between(entry.start_at, entry.end_at)


def planned_minutes(assignments: Iterable[Assignment]) -> int:
    return sum(minutes_between(item.start_at, item.end_at) for item in assignments)


def recorded_minutes(entries: Iterable[TimeEntry]) -> int:
    return sum(entry_minutes(entry) for entry in entries)


def recorded_kilometers(assignments: Iterable[Assignment]) -> Optional[float]:
    """Sum of recorded kilometers, or ``None`` when no assignment carries a value."""

    values = [item.kilometers for item in assignments if item.kilometers is not None]
    if not values:
        return None
    return sum(values)


def compute_day_summary(bundle: DayBundle) -> DaySummary:
    recorded = recorded_minutes(bundle.time_entries)
    adjusted = sum(item.delta_minutes for item in bundle.time_adjustments)
    km_recorded = recorded_kilometers(bundle.assignments)
    km_adjusted = sum(item.delta_km for item in bundle.km_adjustments)
    return DaySummary(
        planned_minutes=planned_minutes(bundle.assignments),
        recorded_minutes=recorded,
        adjusted_minutes=adjusted,
        final_minutes=recorded + adjusted,
        km_recorded=km_recorded,
        km_adjusted=km_adjusted,
        km_final=(km_recorded or 0) + km_adjusted,
    )


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


def merge_assignment_kilometers(assignments: Any, listed: Iterable[dict]) -> Any:
    """Copy km fields from the admin assignment list onto the day bundle's assignments.

    The day bundle omits the per-assignment km figures; the admin list has
    them. ``kmFinal`` falls back to ``kilometers + kmAdjusted`` when the
    server did not compute it.
    """

    if not isinstance(assignments, list):
        return assignments
    by_id = {item.get("id"): item for item in listed if isinstance(item, dict) and item.get("id")}
    merged = []
    for assignment in assignments:
        match = by_id.get(assignment.get("id")) if isinstance(assignment, dict) else None
        if match is None:
            merged.append(assignment)
            continue
        kilometers = _number(match.get("kilometers"))
        km_adjusted = _number(match.get("kmAdjusted")) or 0
        km_final = _number(match.get("kmFinal"))
        if km_final is None:
            km_final = (kilometers or 0) + km_adjusted
        merged.append({**assignment, "kilometers": kilometers, "kmAdjusted": km_adjusted, "kmFinal": km_final})
    return merged
