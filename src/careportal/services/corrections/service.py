"""Upstream calls behind the admin corrections screen."""

from __future__ import annotations

import logging
from typing import Any, Optional

from ...data.payloads import as_list, parse_day_bundle
from ...upstream.client import UpstreamClient
from ...upstream.errors import UpstreamError
from ..day_lock import DayLockState
from .ledger import compute_day_summary, merge_assignment_kilometers

logger = logging.getLogger(__name__)

SELECTION_MISSING = "Mitarbeiter und Datum wählen"
REASON_MISSING = "Begründung erforderlich"
NO_ASSIGNMENT_FOR_DAY = "Kein Einsatz für den Tag gefunden"
ASSIGNMENT_LIST_LIMIT = 200


class AdjustmentValidationError(ValueError):
    """An admin correction was rejected before reaching the upstream."""


def parse_delta(value: Any, message: str) -> int:
    """Parse a signed integer delta the way the correction forms accept it.

    Any finite number is accepted and truncated toward zero; blanks,
    booleans and non-numeric text are rejected with ``message``.
    """

    if isinstance(value, bool) or value is None:
        raise AdjustmentValidationError(message)
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip()
        if not text:
            raise AdjustmentValidationError(message)
        try:
            number = float(text)
        except ValueError as exc:
            raise AdjustmentValidationError(message) from exc
    if number != number or number in (float("inf"), float("-inf")):
        raise AdjustmentValidationError(message)
    return int(number)


def require_reason(reason: Optional[str]) -> str:
    text = (reason or "").strip()
    if not text:
        raise AdjustmentValidationError(REASON_MISSING)
    return text


def fetch_day_bundle(client: UpstreamClient, employee_id: str, day: str) -> dict:
    """Load the day bundle and enrich its assignments with km figures."""

    payload = client.get("/admin/corrections/day", params={"employeeId": employee_id, "date": day})
    if not isinstance(payload, dict):
        payload = {}
    if not employee_id or not day:
        return payload

    try:
        listed = client.get(
            "/admin/assignments",
            params={
                "employeeId": employee_id,
                "from": f"{day}T00:00:00.000Z",
                "to": f"{day}T23:59:59.999Z",
                "limit": ASSIGNMENT_LIST_LIMIT,
            },
        )
    except UpstreamError as exc:
        logger.warning(f"Assignment list for employee={employee_id} day={day} unavailable: {exc.message}")
        return payload

    items = as_list(listed, "items")
    return {**payload, "assignments": merge_assignment_kilometers(payload.get("assignments"), items)}


def build_day_view(payload: dict) -> dict:
    """Attach the summary and an explicit lock flag to a day bundle payload."""

    bundle = parse_day_bundle(payload)
    lock = DayLockState.for_bundle(bundle)
    return {
        **payload,
        "summary": compute_day_summary(bundle).to_dict(),
        "isLocked": lock.is_locked,
        "hasAnyData": bool(
            bundle.assignments or bundle.time_entries or bundle.time_adjustments or bundle.km_adjustments
        ),
    }


def create_time_adjustment(
    client: UpstreamClient,
    *,
    employee_id: str,
    day: str,
    assignment_id: str,
    delta_minutes: int,
    reason: str,
) -> Any:
    logger.info(f"Time adjustment for employee={employee_id} day={day}: {delta_minutes:+d} min")
    return client.post(
        "/admin/time-adjustments",
        {
            "assignmentId": assignment_id,
            "userId": employee_id,
            "date": day,
            "effectiveDate": day,
            "deltaMinutes": delta_minutes,
            "reason": reason,
        },
    )


def create_km_adjustment(
    client: UpstreamClient,
    *,
    employee_id: str,
    day: str,
    delta_km: int,
    reason: str,
) -> Any:
    logger.info(f"Km adjustment for employee={employee_id} day={day}: {delta_km:+d} km")
    return client.post(
        "/admin/km-adjustments",
        {
            "userId": employee_id,
            "date": day,
            "effectiveDate": day,
            "deltaKm": delta_km,
            "reason": reason,
        },
    )
