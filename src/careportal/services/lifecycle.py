"""Assignment lifecycle: status normalisation and action permissions.

Every screen derives its action availability from :func:`permissions_for`
instead of comparing status strings itself.

Status flow::

    PLANNED -> ASSIGNED --confirm--> CONFIRMED --markDone--> DONE
                        --decline--> (server decides)
    any non-terminal --admin--> CANCELLED

The signature surface is enabled for CONFIRMED and DONE. Older screens only
allowed it for DONE; the wider rule is the one most call sites used.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class AssignmentStatus(str, Enum):
    PLANNED = "PLANNED"
    ASSIGNED = "ASSIGNED"
    CONFIRMED = "CONFIRMED"
    DONE = "DONE"
    CANCELLED = "CANCELLED"
    UNKNOWN = "UNKNOWN"


class AckAction(str, Enum):
    CONFIRM = "CONFIRM"
    DECLINE = "DECLINE"


_ALIASES = {
    "COMPLETED": AssignmentStatus.DONE,
    "CANCELED": AssignmentStatus.CANCELLED,
}

TERMINAL_STATUSES = frozenset({AssignmentStatus.DONE, AssignmentStatus.CANCELLED})
WORKING_STATUSES = frozenset({AssignmentStatus.CONFIRMED, AssignmentStatus.DONE})

_LABELS = {
    AssignmentStatus.PLANNED: "Geplant",
    AssignmentStatus.ASSIGNED: "Zugewiesen",
    AssignmentStatus.CONFIRMED: "Bestätigt",
    AssignmentStatus.DONE: "Erledigt",
    AssignmentStatus.CANCELLED: "Abgesagt",
    AssignmentStatus.UNKNOWN: "—",
}

_HINTS = {
    AssignmentStatus.PLANNED: "Noch nicht zugewiesen.",
    AssignmentStatus.ASSIGNED: "Bitte bestätigen oder ablehnen.",
    AssignmentStatus.CONFIRMED: "Bestätigt. Bitte nach Durchführung unterschreiben.",
    AssignmentStatus.DONE: "Erledigt. Unterschrift möglich.",
    AssignmentStatus.CANCELLED: "Diese Leistung wurde storniert. Keine Aktionen möglich.",
}


def normalize_status(value: Any) -> AssignmentStatus:
    """Upper-case and resolve ``value``; anything unrecognised is UNKNOWN."""

    if value is None:
        return AssignmentStatus.UNKNOWN
    raw = str(value).strip().upper()
    if raw in _ALIASES:
        return _ALIASES[raw]
    try:
        status = AssignmentStatus(raw)
    except ValueError:
        return AssignmentStatus.UNKNOWN
    return status


def status_label(value: Any) -> str:
    return _LABELS[normalize_status(value)]


def status_hint(value: Any) -> str:
    status = normalize_status(value)
    return _HINTS.get(status, f"Status: {_LABELS[status]}")


@dataclass(frozen=True, slots=True)
class LifecyclePermissions:
    status: AssignmentStatus
    ack_allowed: bool
    can_mark_done: bool
    can_sign: bool
    signature_allowed: bool
    can_add_time_entry: bool
    is_terminal: bool

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "label": _LABELS[self.status],
            "hint": status_hint(self.status),
            "ackAllowed": self.ack_allowed,
            "canMarkDone": self.can_mark_done,
            "canSign": self.can_sign,
            "signatureAllowed": self.signature_allowed,
            "canAddTimeEntry": self.can_add_time_entry,
            "isTerminal": self.is_terminal,
        }


def permissions_for(value: Any) -> LifecyclePermissions:
    """Pure function of the status; day-lock gating is applied separately."""

    status = normalize_status(value)
    working = status in WORKING_STATUSES
    return LifecyclePermissions(
        status=status,
        ack_allowed=status is AssignmentStatus.ASSIGNED,
        # DONE stays allowed: re-marking is a harmless no-op followed by a reload.
        can_mark_done=working,
        can_sign=working,
        signature_allowed=working,
        can_add_time_entry=working,
        is_terminal=status in TERMINAL_STATUSES,
    )


def parse_ack_action(value: Any) -> AckAction:
    """Raise ``ValueError`` for anything but CONFIRM or DECLINE."""

    return AckAction(str(value or "").strip().upper())
