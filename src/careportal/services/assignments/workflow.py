"""Employee-side actions on one assignment.

An :class:`AssignmentWorkflow` owns the loaded assignment, its
:class:`DayLockState` and one busy flag per action. Every action follows
the same shape: refuse when busy or not permitted, post, reload on success,
record the error on failure, release the flag.
"""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Any, Callable, Optional, Union

from ...config import settings
from ...data.payloads import parse_assignment
from ...models.domain import Assignment
from ...upstream.client import UpstreamClient
from ...upstream.errors import ErrorCode, UpstreamError, user_message
from ..corrections.ledger import minutes_between, recorded_minutes
from ..day_lock import (
    DayLockState,
    EditorMode,
    LockMemory,
    WriteKind,
    editor_message,
    latest_signature,
    resolve_editor_mode,
)
from ..lifecycle import AckAction, LifecyclePermissions, permissions_for
from ..signature import SignatureCanvas, SignatureError
from ..signature.encoding import validate_signature_data
from .entries import DATE_MISSING, EntryValidationError, parse_entry_date, parse_kilometers, resolve_entry_minutes

logger = logging.getLogger(__name__)

NOT_LOADED_MESSAGE = "Einsatz nicht geladen."


class Refusal(str, Enum):
    """Why an action returned without reaching the upstream."""

    BUSY = "BUSY"
    NOT_PERMITTED = "NOT_PERMITTED"
    INVALID = "INVALID"


class AssignmentWorkflow:
    def __init__(
        self,
        client: UpstreamClient,
        assignment_id: str,
        is_admin: bool = False,
        lock_memory: Optional[LockMemory] = None,
    ) -> None:
        self.client = client
        self.assignment_id = assignment_id
        self.is_admin = is_admin
        self.lock_memory = lock_memory

        self.payload: dict = {}
        self.assignment: Optional[Assignment] = None
        self.lock: Optional[DayLockState] = None

        self._busy: set[str] = set()
        self._busy_lock = threading.Lock()

        self.error: Optional[str] = None
        self.notice: Optional[str] = None
        self.last_error: Optional[UpstreamError] = None
        self.refusal: Optional[Refusal] = None
        self.redirect_to_login = False
        self.forbidden = False

    @property
    def path(self) -> str:
        if self.is_admin:
            return f"/assignments/{self.assignment_id}"
        return f"/me/assignments/{self.assignment_id}"

    @property
    def permissions(self) -> LifecyclePermissions:
        return permissions_for(self.assignment.status if self.assignment else None)

    def is_busy(self, action: str) -> bool:
        with self._busy_lock:
            return action in self._busy

    def load(self) -> bool:
        """Fetch the assignment and fold it into the day lock."""

        try:
            payload = self.client.get(self.path)
        except UpstreamError as exc:
            self._record_error(exc)
            return False
        self.payload = payload if isinstance(payload, dict) else {}
        self.assignment = parse_assignment(self.payload)

        fresh = DayLockState.for_assignment(self.assignment)
        if self.lock is None or (self.lock.employee_id, self.lock.day) != (fresh.employee_id, fresh.day):
            self.lock = fresh
        else:
            self.lock.observe_assignment(self.assignment)
        if self.lock_memory is not None:
            self.lock_memory.apply(self.lock)
        return True

    def confirm(self) -> bool:
        return self._run(
            "ack",
            self.permissions.ack_allowed,
            lambda: self.client.post(f"/me/assignments/{self.assignment_id}/ack", {"action": AckAction.CONFIRM.value}),
            notice="Termin bestätigt.",
        )

    def decline(self, reason: Optional[str] = None) -> bool:
        body: dict[str, Any] = {"action": AckAction.DECLINE.value}
        text = (reason or "").strip()
        if text:
            body["reason"] = text
        # The resulting status is decided upstream; the reload shows it.
        return self._run(
            "ack",
            self.permissions.ack_allowed,
            lambda: self.client.post(f"/me/assignments/{self.assignment_id}/ack", body),
            notice="Termin abgelehnt.",
        )

    def mark_done(self) -> bool:
        return self._run(
            "done",
            self.permissions.can_mark_done,
            lambda: self.client.post(f"/me/assignments/{self.assignment_id}/done"),
        )

    def submit_signature(self, source: Union[SignatureCanvas, str]) -> bool:
        """Send a drawn signature; empty ink is refused locally."""

        if self.is_busy("signature"):
            self.refusal = Refusal.BUSY
            return False
        if not self.permissions.signature_allowed:
            self._refuse(Refusal.NOT_PERMITTED, "Unterschrift ist erst nach Bestätigung möglich.")
            return False
        try:
            if isinstance(source, SignatureCanvas):
                data_uri = source.to_data_uri()
            else:
                validate_signature_data(
                    source,
                    max_bytes=settings.signature_max_bytes,
                    max_pixels=settings.signature_max_pixels,
                )
                data_uri = source
        except SignatureError as exc:
            logger.info(f"Assignment {self.assignment_id}: signature rejected before upload: {exc}")
            self._refuse(Refusal.INVALID, str(exc))
            return False
        return self._run(
            "signature",
            True,
            lambda: self.client.post(
                f"/me/assignments/{self.assignment_id}/signatures", {"signatureData": data_uri}
            ),
            notice="Unterschrift gespeichert.",
        )

    def save_km(self, value: Any) -> bool:
        if not self._editable():
            return False
        try:
            kilometers = parse_kilometers(value)
        except EntryValidationError as exc:
            self._refuse(Refusal.INVALID, str(exc))
            return False
        return self._run(
            "km",
            True,
            lambda: self.client.patch(f"/me/assignments/{self.assignment_id}", {"kilometers": kilometers}),
            kind=WriteKind.KM,
            notice="Kilometer gespeichert.",
        )

    def add_time_entry(
        self,
        day: Any = None,
        minutes: Any = None,
        start_at: Any = None,
        end_at: Any = None,
        notes: Optional[str] = None,
    ) -> bool:
        if not self._editable():
            return False
        try:
            entry_day = parse_entry_date(day) if day else self.lock.day
            if entry_day is None:
                raise EntryValidationError(DATE_MISSING)
            entry_minutes = resolve_entry_minutes(minutes, start_at, end_at)
        except EntryValidationError as exc:
            self._refuse(Refusal.INVALID, str(exc))
            return False
        body: dict[str, Any] = {
            "assignmentId": self.assignment_id,
            "date": entry_day.isoformat(),
            "minutes": entry_minutes,
        }
        if notes and notes.strip():
            body["notes"] = notes.strip()
        return self._run(
            "time",
            True,
            lambda: self.client.post("/me/time-entries", body),
            kind=WriteKind.TIME,
            notice="Zeit gespeichert.",
        )

    def _editable(self) -> bool:
        if self.assignment is None or self.lock is None:
            self._refuse(Refusal.NOT_PERMITTED, NOT_LOADED_MESSAGE)
            return False
        mode = resolve_editor_mode(self.is_admin, self.permissions, self.lock)
        if mode is not EditorMode.EDITABLE:
            self._refuse(Refusal.NOT_PERMITTED, editor_message(mode) or "Bearbeitung nicht möglich.")
            return False
        return True

    def _refuse(self, refusal: Refusal, message: str) -> None:
        self.refusal = refusal
        self.error = message

    def _run(
        self,
        action: str,
        permitted: bool,
        call: Callable[[], Any],
        kind: Optional[WriteKind] = None,
        notice: Optional[str] = None,
    ) -> bool:
        with self._busy_lock:
            if action in self._busy:
                self.refusal = Refusal.BUSY
                return False
            if not permitted:
                self.refusal = Refusal.NOT_PERMITTED
                self.error = "Aktion im aktuellen Status nicht möglich."
                return False
            self._busy.add(action)

        self.refusal = None
        self.error = None
        self.notice = None
        self.last_error = None
        try:
            call()
            logger.info(f"Assignment {self.assignment_id}: {action} accepted")
            self.notice = notice
            return self.load()
        except UpstreamError as exc:
            if kind is not None and self.lock is not None and self.lock.record_failure(kind, exc):
                if self.lock_memory is not None:
                    self.lock_memory.remember(self.lock)
                self.last_error = exc
                self.error = self.lock.message
                return False
            self._record_error(exc)
            return False
        finally:
            with self._busy_lock:
                self._busy.discard(action)

    def _record_error(self, exc: UpstreamError) -> None:
        self.last_error = exc
        if exc.code is ErrorCode.UNAUTHORIZED:
            self.redirect_to_login = True
        elif exc.code is ErrorCode.FORBIDDEN:
            self.forbidden = True
        self.error = user_message(exc.code, exc.message)
        logger.info(f"Assignment {self.assignment_id}: upstream rejected with {exc.code.value}")

    def view_model(self) -> dict:
        """Everything a screen needs to render one assignment."""

        if self.assignment is None or self.lock is None:
            return {"id": self.assignment_id, "error": self.error}
        permissions = self.permissions
        mode = resolve_editor_mode(self.is_admin, permissions, self.lock)
        signature = latest_signature(self.assignment)
        entries = self.assignment.time_entries
        return {
            **self.payload,
            "lifecycle": permissions.to_dict(),
            "dayLock": self.lock.to_dict(self.assignment_id),
            "editor": {
                "mode": mode.value,
                "message": editor_message(mode),
                "readOnly": mode is not EditorMode.EDITABLE,
                "correctionsHref": self.lock.to_dict(self.assignment_id)["correctionsHref"],
            },
            "summary": {
                "plannedMinutes": minutes_between(self.assignment.start_at, self.assignment.end_at),
                "recordedMinutes": recorded_minutes(entries) if entries is not None else None,
                "kilometers": self.assignment.kilometers,
            },
            "latestSignature": {
                "id": signature.id,
                "signedAt": signature.signed_at.isoformat() if signature.signed_at else None,
                "signatureData": signature.image,
            }
            if signature
            else None,
            "isAdmin": self.is_admin,
            "error": self.error,
            "notice": self.notice,
        }
