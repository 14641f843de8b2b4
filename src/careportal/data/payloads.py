"""Tolerant conversion of upstream JSON payloads into domain records."""

from __future__ import annotations

import math
from datetime import date, datetime, timezone
from typing import Any, Iterable, Optional

from ..models.domain import (
    Assignment,
    AuditLogEntry,
    Customer,
    DayBundle,
    DaySignature,
    Identity,
    KmAdjustment,
    KmEntry,
    TimeAdjustment,
    TimeEntry,
)

_SIGNATURE_IMAGE_KEYS = ("signatureData", "imageData", "data", "imageUrl")


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 instant. Unparseable values yield ``None``."""

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        return None


def parse_number(value: Any) -> Optional[float]:
    """Return ``value`` when it is a real JSON number, else ``None``.

    Booleans and numeric strings are rejected: a kilometer field that is not a
    number means "never recorded", not zero.
    """

    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)) and math.isfinite(value):
        return float(value)
    return None


def _str_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def as_list(payload: Any, *keys: str) -> list:
    """Extract a list from a payload that may be a bare array or wrap it under ``keys``."""

    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in keys:
            value = payload.get(key)
            if isinstance(value, list):
                return value
    return []


def _records(items: Any) -> Iterable[dict]:
    if not isinstance(items, list):
        return []
    return (item for item in items if isinstance(item, dict))


def parse_signature(payload: dict) -> DaySignature:
    image = None
    for key in _SIGNATURE_IMAGE_KEYS:
        if payload.get(key):
            image = str(payload[key])
            break
    return DaySignature(
        id=str(payload.get("id") or ""),
        signed_at=parse_datetime(payload.get("signedAt") or payload.get("createdAt")),
        image=image,
    )


def parse_customer(payload: Any) -> Optional[Customer]:
    if not isinstance(payload, dict):
        return None
    return Customer(
        id=_str_or_none(payload.get("id")),
        name=_str_or_none(payload.get("name")),
        company_name=_str_or_none(payload.get("companyName")),
        address=_str_or_none(payload.get("address")),
        phone=_str_or_none(payload.get("phone")),
    )


def parse_time_entry(payload: dict) -> TimeEntry:
    minutes = parse_number(payload.get("minutes"))
    return TimeEntry(
        id=str(payload.get("id") or ""),
        assignment_id=_str_or_none(payload.get("assignmentId")),
        date=parse_date(payload.get("date")),
        minutes=math.floor(minutes + 0.5) if minutes is not None else None,
        start_at=parse_datetime(payload.get("startAt")),
        end_at=parse_datetime(payload.get("endAt")),
        notes=_str_or_none(payload.get("notes")),
    )


def parse_km_entry(payload: dict) -> KmEntry:
    return KmEntry(
        id=str(payload.get("id") or ""),
        date=parse_date(payload.get("date")),
        km=parse_number(payload.get("km")) or 0.0,
    )


def parse_assignment(payload: Any) -> Assignment:
    data = payload if isinstance(payload, dict) else {}
    customer = parse_customer(data.get("customer"))
    employee = data.get("employee") if isinstance(data.get("employee"), dict) else {}

    latest = data.get("latestSignature")
    time_entries = data.get("timeEntries")
    return Assignment(
        id=str(data.get("id") or ""),
        customer_id=_str_or_none(data.get("customerId")) or (customer.id if customer else None),
        employee_id=_str_or_none(data.get("employeeId")) or _str_or_none(employee.get("id")),
        start_at=parse_datetime(data.get("startAt")),
        end_at=parse_datetime(data.get("endAt")),
        status=str(data.get("status") or ""),
        notes=_str_or_none(data.get("notes")),
        kilometers=parse_number(data.get("kilometers")),
        km_adjusted=parse_number(data.get("kmAdjusted")),
        km_final=parse_number(data.get("kmFinal")),
        customer=customer,
        signatures=[parse_signature(item) for item in _records(data.get("signatures"))],
        latest_signature=parse_signature(latest) if isinstance(latest, dict) else None,
        time_entries=[parse_time_entry(item) for item in _records(time_entries)]
        if isinstance(time_entries, list)
        else None,
        raw=data,
    )


def parse_day_bundle(payload: Any) -> DayBundle:
    data = payload if isinstance(payload, dict) else {}
    return DayBundle(
        employee_id=str(data.get("employeeId") or ""),
        date=parse_date(data.get("date")),
        locked_after_signature=bool(
            data.get("lockedAfterSignature") or data.get("locked") or data.get("lockBadge")
        ),
        assignments=[parse_assignment(item) for item in _records(data.get("assignments"))],
        time_entries=[parse_time_entry(item) for item in _records(data.get("timeEntries"))],
        time_adjustments=[
            TimeAdjustment(
                id=str(item.get("id") or ""),
                delta_minutes=int(parse_number(item.get("deltaMinutes")) or 0),
                reason=str(item.get("reason") or ""),
                created_at=parse_datetime(item.get("createdAt")),
                created_by_id=_str_or_none(item.get("createdById")),
            )
            for item in _records(data.get("timeAdjustments"))
        ],
        km_adjustments=[
            KmAdjustment(
                id=str(item.get("id") or ""),
                delta_km=parse_number(item.get("deltaKm")) or 0.0,
                reason=str(item.get("reason") or ""),
                created_at=parse_datetime(item.get("createdAt")),
                created_by_id=_str_or_none(item.get("createdById")),
            )
            for item in _records(data.get("kmAdjustments"))
        ],
        audit_logs=[
            AuditLogEntry(
                id=str(item.get("id") or ""),
                action=str(item.get("action") or ""),
                entity=str(item.get("entity") or ""),
                entity_id=_str_or_none(item.get("entityId")),
                reason=_str_or_none(item.get("reason")),
                created_at=parse_datetime(item.get("createdAt")),
                actor_id=_str_or_none(item.get("actorId")),
            )
            for item in _records(data.get("auditLogs"))
        ],
        raw=data,
    )


def parse_identity(payload: Any) -> Identity:
    data = payload if isinstance(payload, dict) else {}
    return Identity(
        id=_str_or_none(data.get("id")),
        email=_str_or_none(data.get("email")),
        role=str(data.get("role") or "").upper(),
        full_name=_str_or_none(data.get("fullName")),
    )
