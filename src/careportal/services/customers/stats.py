"""Per-customer assignment statistics for the admin customer page."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from ...data.payloads import as_list, parse_datetime, parse_number
from ...upstream.client import UpstreamClient
from ..corrections.ledger import hours_between
from ..lifecycle import AssignmentStatus, normalize_status

logger = logging.getLogger(__name__)

PAGE_LIMIT = 200
MAX_PAGES = 10
UPCOMING_LIMIT = 5


def fetch_customer_assignments(client: UpstreamClient, customer_id: str) -> list[dict]:
    """Follow ``nextCursor`` through the customer's assignments, at most ``MAX_PAGES`` pages."""

    items: list[dict] = []
    cursor: Optional[str] = None
    for _ in range(MAX_PAGES):
        params: dict[str, Any] = {"customerId": customer_id, "limit": PAGE_LIMIT}
        if cursor:
            params["cursor"] = cursor
        payload = client.get("/assignments", params=params)
        batch = [item for item in as_list(payload, "items") if isinstance(item, dict)]
        items.extend(batch)
        cursor = payload.get("nextCursor") if isinstance(payload, dict) else None
        if not cursor or not batch:
            break
    else:
        logger.warning(f"Customer {customer_id}: stopped after {MAX_PAGES} assignment pages")
    return items


def _employee_name(item: dict) -> Optional[str]:
    employee = item.get("employee")
    if not isinstance(employee, dict):
        return None
    return employee.get("fullName") or employee.get("email") or None


def compute_customer_stats(items: Iterable[dict], now: Optional[datetime] = None) -> dict:
    """Planned and done hours, done kilometers, counts and the next few visits."""

    now = now or datetime.now(timezone.utc)
    planned_hours = 0.0
    done_hours = 0.0
    done_kilometers = 0.0
    total = 0
    done = 0
    last_start: Optional[datetime] = None
    last_assignment_at: Optional[str] = None
    upcoming: list[tuple[datetime, dict]] = []

    for item in items:
        total += 1
        start = parse_datetime(item.get("startAt"))
        hours = hours_between(start, parse_datetime(item.get("endAt")))
        planned_hours += hours
        if normalize_status(item.get("status")) is AssignmentStatus.DONE:
            done += 1
            done_hours += hours
            km = parse_number(item.get("kilometers"))
            if km is None:
                km = parse_number(item.get("km"))
            done_kilometers += km or 0.0

        if start is None:
            continue
        if start <= now and (last_start is None or start > last_start):
            last_start = start
            last_assignment_at = item.get("startAt")
        if start >= now:
            upcoming.append((start, item))

    upcoming.sort(key=lambda pair: pair[0])
    return {
        "plannedHours": planned_hours,
        "doneHours": done_hours,
        "doneKilometers": done_kilometers,
        "totalAssignments": total,
        "doneAssignments": done,
        "lastAssignmentAt": last_assignment_at,
        "upcomingAssignments": [
            {
                "id": item.get("id"),
                "startAt": item.get("startAt"),
                "endAt": item.get("endAt"),
                "employeeName": _employee_name(item),
            }
            for _, item in upcoming[:UPCOMING_LIMIT]
        ],
    }
