"""Day lock state for an employee's time and kilometer records.

A day is locked once any signature exists for the (employee, date) pair.
The lock is discovered from three sources: a signature on the loaded
assignment, an explicit lock flag on the admin day bundle, or a write that the
upstream rejected with ``LOCKED_AFTER_SIGNATURE``. Flags only ever go from
False to True within one state object; :class:`LockMemory` carries flags
learned from rejections over to later requests.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Optional
from urllib.parse import urlencode

import pytz

from ..config import settings
from ..models.domain import Assignment, DayBundle, DaySignature
from ..upstream.errors import ErrorCode, UpstreamError
from .lifecycle import AssignmentStatus, LifecyclePermissions

logger = logging.getLogger(__name__)

LOCKED_MESSAGE = (
    "Gesperrt nach Unterschrift: Kilometer (tagesbasiert) und Zeiteinträge sind nach jeder "
    "Unterschrift an diesem Tag gesperrt. Änderungen nur via Admin-Korrektur."
)
NEEDS_CONFIRMATION_MESSAGE = "Bitte zuerst bestätigen, um Zeiten/Kilometer einzutragen."
ADMIN_READ_ONLY_MESSAGE = "Zeiten und Kilometer werden über die Admin-Korrekturen geändert."


class WriteKind(str, Enum):
    KM = "km"
    TIME = "time"


class EditorMode(str, Enum):
    EDITABLE = "EDITABLE"
    LOCKED = "LOCKED"
    ADMIN_READ_ONLY = "ADMIN_READ_ONLY"
    NEEDS_CONFIRMATION = "NEEDS_CONFIRMATION"
    UNAVAILABLE = "UNAVAILABLE"


def local_day(value: Optional[datetime], tz_name: str | None = None) -> Optional[date]:
    """Calendar day of ``value`` in the configured local zone."""

    if value is None:
        return None
    zone = pytz.timezone(tz_name or settings.timezone)
    if value.tzinfo is None:
        value = pytz.UTC.localize(value)
    return value.astimezone(zone).date()


def latest_signature(assignment: Assignment) -> Optional[DaySignature]:
    if assignment.latest_signature is not None:
        return assignment.latest_signature
    if not assignment.signatures:
        return None
    floor = datetime.min.replace(tzinfo=pytz.UTC)
    return max(assignment.signatures, key=lambda sig: sig.signed_at or floor)


def corrections_href(employee_id: Optional[str], day: Optional[date], assignment_id: Optional[str] = None) -> str:
    if not employee_id or day is None:
        return "/admin/corrections"
    query = {"employeeId": employee_id, "date": day.isoformat()}
    if assignment_id:
        query["aid"] = assignment_id
    return f"/admin/corrections?{urlencode(query)}"


@dataclass(slots=True)
class DayLockState:
    employee_id: Optional[str]
    day: Optional[date]
    has_signature: bool = False
    locked_by_bundle: bool = False
    km_locked_by_signature: bool = False
    time_locked_by_signature: bool = False

    @classmethod
    def for_assignment(cls, assignment: Assignment) -> "DayLockState":
        state = cls(employee_id=assignment.employee_id, day=local_day(assignment.start_at))
        state.observe_assignment(assignment)
        return state

    @classmethod
    def for_bundle(cls, bundle: DayBundle) -> "DayLockState":
        state = cls(employee_id=bundle.employee_id or None, day=bundle.date)
        state.locked_by_bundle = bundle.locked_after_signature
        for assignment in bundle.assignments:
            state.observe_assignment(assignment)
        return state

    @property
    def is_locked(self) -> bool:
        return (
            self.has_signature
            or self.locked_by_bundle
            or self.km_locked_by_signature
            or self.time_locked_by_signature
        )

    def observe_assignment(self, assignment: Assignment) -> None:
        """Fold a freshly loaded assignment into the state."""

        if latest_signature(assignment) is not None:
            self.has_signature = True

    def record_failure(self, kind: WriteKind, error: UpstreamError) -> bool:
        """Flip the matching flag when ``error`` is the lock sentinel.

        Returns True when the failure was a lock, so callers can render the
        read-only state instead of a generic error.
        """

        if error.code is not ErrorCode.LOCKED_AFTER_SIGNATURE:
            return False
        if kind is WriteKind.KM:
            self.km_locked_by_signature = True
        else:
            self.time_locked_by_signature = True
        logger.info(f"Day lock discovered for employee={self.employee_id} day={self.day} via {kind.value} write")
        return True

    @property
    def message(self) -> Optional[str]:
        return LOCKED_MESSAGE if self.is_locked else None

    def to_dict(self, assignment_id: Optional[str] = None) -> dict:
        return {
            "employeeId": self.employee_id,
            "date": self.day.isoformat() if self.day else None,
            "isLocked": self.is_locked,
            "hasSignature": self.has_signature,
            "lockedByBundle": self.locked_by_bundle,
            "isKmLockedBySignature": self.km_locked_by_signature,
            "isTimeLockedBySignature": self.time_locked_by_signature,
            "message": self.message,
            "correctionsHref": corrections_href(self.employee_id, self.day, assignment_id),
        }


class LockMemory:
    """Lock flags learned from rejected writes, carried between requests.

    A rejection only tells us about the lock once, so the flags are kept in a
    cookie keyed by ``employeeId|YYYY-MM-DD`` and folded into every later
    state for the same day. Entries can only add locks, never remove them.
    """

    def __init__(self, entries: Optional[dict[str, set[str]]] = None) -> None:
        self.entries: dict[str, set[str]] = {key: set(kinds) for key, kinds in (entries or {}).items()}
        self.changed = False

    @staticmethod
    def key(employee_id: Optional[str], day: Optional[date]) -> Optional[str]:
        if not employee_id or day is None:
            return None
        return f"{employee_id}|{day.isoformat()}"

    @classmethod
    def from_cookie(cls, raw: Optional[str]) -> "LockMemory":
        if not raw:
            return cls()
        try:
            padded = raw + "=" * (-len(raw) % 4)
            data = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
        except (binascii.Error, ValueError) as exc:
            logger.debug(f"Ignoring unreadable day lock cookie: {exc}")
            return cls()
        if not isinstance(data, dict):
            return cls()
        known = {kind.value for kind in WriteKind}
        entries: dict[str, set[str]] = {}
        for key, kinds in data.items():
            if not isinstance(kinds, list):
                continue
            valid = {kind for kind in kinds if isinstance(kind, str) and kind in known}
            if valid:
                entries[str(key)] = valid
        return cls(entries)

    def to_cookie(self) -> str:
        newest = list(self.entries.items())[-settings.lock_cookie_max_entries:]
        data = {key: sorted(kinds) for key, kinds in newest}
        raw = json.dumps(data, separators=(",", ":")).encode("utf-8")
        # Padding is stripped so the value needs no cookie quoting.
        return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")

    def add(self, employee_id: Optional[str], day: Optional[date], kind: WriteKind) -> None:
        key = self.key(employee_id, day)
        if key is None:
            return
        kinds = self.entries.pop(key, set())
        if kind.value not in kinds:
            kinds.add(kind.value)
            self.changed = True
        self.entries[key] = kinds

    def remember(self, state: DayLockState) -> None:
        if state.km_locked_by_signature:
            self.add(state.employee_id, state.day, WriteKind.KM)
        if state.time_locked_by_signature:
            self.add(state.employee_id, state.day, WriteKind.TIME)

    def apply(self, state: DayLockState) -> None:
        key = self.key(state.employee_id, state.day)
        kinds = self.entries.get(key, set()) if key else set()
        if WriteKind.KM.value in kinds:
            state.km_locked_by_signature = True
        if WriteKind.TIME.value in kinds:
            state.time_locked_by_signature = True


def resolve_editor_mode(is_admin: bool, permissions: LifecyclePermissions, lock: DayLockState) -> EditorMode:
    """How the km and time inputs of an assignment are rendered.

    Admins never edit inline; they always go through the corrections flow.
    """

    if is_admin:
        return EditorMode.ADMIN_READ_ONLY
    if lock.is_locked:
        return EditorMode.LOCKED
    if permissions.status is AssignmentStatus.ASSIGNED:
        return EditorMode.NEEDS_CONFIRMATION
    if permissions.can_add_time_entry:
        return EditorMode.EDITABLE
    return EditorMode.UNAVAILABLE


def editor_message(mode: EditorMode) -> Optional[str]:
    return {
        EditorMode.LOCKED: LOCKED_MESSAGE,
        EditorMode.NEEDS_CONFIRMATION: NEEDS_CONFIRMATION_MESSAGE,
        EditorMode.ADMIN_READ_ONLY: ADMIN_READ_ONLY_MESSAGE,
    }.get(mode)
