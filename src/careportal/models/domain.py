"""Domain models for assignments, day records and admin corrections."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional


@dataclass(slots=True)
class Customer:
    """Customer summary embedded in assignment payloads."""

    id: Optional[str]
    name: Optional[str]
    company_name: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.company_name or self.name or "Kunde"


@dataclass(slots=True)
class DaySignature:
    """A handwritten signature captured for one employee and calendar day."""

    id: str
    signed_at: Optional[datetime]
    image: Optional[str] = None


@dataclass(slots=True)
class TimeEntry:
    """Recorded work duration, either as minutes or as a start/end pair."""

    id: str
    assignment_id: Optional[str] = None
    date: Optional[date] = None
    minutes: Optional[int] = None
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None
    notes: Optional[str] = None


@dataclass(slots=True)
class KmEntry:
    """Kilometers recorded for one employee and calendar day."""

    id: str
    date: Optional[date]
    km: float


@dataclass(slots=True)
class TimeAdjustment:
    """Admin delta on recorded minutes. Append-only."""

    id: str
    delta_minutes: int
    reason: str
    created_at: Optional[datetime] = None
    created_by_id: Optional[str] = None


@dataclass(slots=True)
class KmAdjustment:
    """Admin delta on recorded kilometers. Append-only."""

    id: str
    delta_km: float
    reason: str
    created_at: Optional[datetime] = None
    created_by_id: Optional[str] = None


@dataclass(slots=True)
class AuditLogEntry:
    id: str
    action: str
    entity: str
    entity_id: Optional[str] = None
    reason: Optional[str] = None
    created_at: Optional[datetime] = None
    actor_id: Optional[str] = None


@dataclass(slots=True)
class Assignment:
    """A scheduled care visit linking one employee to one customer."""

    id: str
    customer_id: Optional[str]
    employee_id: Optional[str]
    start_at: Optional[datetime]
    end_at: Optional[datetime]
    status: str
    notes: Optional[str] = None
    kilometers: Optional[float] = None
    km_adjusted: Optional[float] = None
    km_final: Optional[float] = None
    customer: Optional[Customer] = None
    signatures: list[DaySignature] = field(default_factory=list)
    latest_signature: Optional[DaySignature] = None
    time_entries: Optional[list[TimeEntry]] = None
    raw: dict = field(default_factory=dict)


@dataclass(slots=True)
class DayBundle:
    """One employee's day as returned by the admin corrections endpoint."""

    employee_id: str
    date: Optional[date]
    locked_after_signature: bool
    assignments: list[Assignment] = field(default_factory=list)
    time_entries: list[TimeEntry] = field(default_factory=list)
    time_adjustments: list[TimeAdjustment] = field(default_factory=list)
    km_adjustments: list[KmAdjustment] = field(default_factory=list)
    audit_logs: list[AuditLogEntry] = field(default_factory=list)
    raw: dict = field(default_factory=dict)


@dataclass(slots=True)
class Identity:
    """The caller as resolved by the upstream /users/me endpoint."""

    id: Optional[str]
    email: Optional[str]
    role: str
    full_name: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == "ADMIN"
