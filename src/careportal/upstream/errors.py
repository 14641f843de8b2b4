"""Upstream error taxonomy and sentinel classification."""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional


class ErrorCode(str, Enum):
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    LOCKED_AFTER_SIGNATURE = "LOCKED_AFTER_SIGNATURE"
    ASSIGNMENT_NOT_CONFIRMED = "ASSIGNMENT_NOT_CONFIRMED"
    EDIT_NOT_ALLOWED_DONE = "EDIT_NOT_ALLOWED_DONE"
    MONTH_LOCKED = "MONTH_LOCKED"
    UNAVAILABLE = "UNAVAILABLE"
    GENERIC = "GENERIC"


# Order matters: the km-specific sentinels contain the generic ones as substrings.
_SENTINELS: tuple[tuple[str, ErrorCode], ...] = (
    ("KM_EDIT_LOCKED_MONTH", ErrorCode.MONTH_LOCKED),
    ("KM_EDIT_NOT_ALLOWED_DONE", ErrorCode.EDIT_NOT_ALLOWED_DONE),
    ("KM_EDIT_ONLY_CONFIRMED", ErrorCode.ASSIGNMENT_NOT_CONFIRMED),
    ("LOCKED_AFTER_SIGNATURE", ErrorCode.LOCKED_AFTER_SIGNATURE),
    ("ASSIGNMENT_NOT_CONFIRMED", ErrorCode.ASSIGNMENT_NOT_CONFIRMED),
)

_USER_MESSAGES = {
    ErrorCode.UNAUTHORIZED: "Nicht autorisiert. Bitte erneut anmelden.",
    ErrorCode.FORBIDDEN: "Keine Berechtigung",
    ErrorCode.LOCKED_AFTER_SIGNATURE: "Gesperrt nach Unterschrift – nur Admin-Korrektur möglich.",
    ErrorCode.ASSIGNMENT_NOT_CONFIRMED: "Bitte bestätige zuerst den Termin, bevor Zeiten oder Kilometer erfasst werden können.",
    ErrorCode.EDIT_NOT_ALLOWED_DONE: "KM kann nach Abschluss nicht mehr geändert werden.",
    ErrorCode.MONTH_LOCKED: "Monat gesperrt – KM nur über Admin-Korrektur.",
    ErrorCode.UNAVAILABLE: "Der Server ist nicht erreichbar. Bitte später erneut versuchen.",
}


def classify_error(status: int, message: Optional[str]) -> ErrorCode:
    """Map an upstream failure to the code the UI logic reacts to.

    Application sentinels win over the HTTP status: ``LOCKED_AFTER_SIGNATURE``
    usually arrives as a 403 but must not be treated as a role problem.
    """

    text = message or ""
    for needle, code in _SENTINELS:
        if needle in text:
            return code
    if status == 401:
        return ErrorCode.UNAUTHORIZED
    if status == 403:
        return ErrorCode.FORBIDDEN
    if status == 404:
        return ErrorCode.NOT_FOUND
    return ErrorCode.GENERIC


def user_message(code: ErrorCode, fallback: str) -> str:
    """German message for ``code``; generic failures keep the server text verbatim."""

    return _USER_MESSAGES.get(code, fallback)


class UpstreamError(Exception):
    """Non-2xx response from the upstream API."""

    def __init__(self, status: int, message: str, details: Any = None) -> None:
        super().__init__(message)
        self.status = status
        self.message = message
        self.details = details
        self.code = classify_error(status, message)

    @property
    def is_locked(self) -> bool:
        return self.code is ErrorCode.LOCKED_AFTER_SIGNATURE

    def to_payload(self) -> dict:
        payload = {"message": user_message(self.code, self.message), "code": self.code.value, "details": self.details}
        if self.is_locked:
            payload["locked"] = True
        return payload


class UpstreamUnavailable(UpstreamError):
    """The upstream could not be reached at all (DNS, connect, timeout)."""

    def __init__(self, message: str) -> None:
        super().__init__(502, message)
        self.code = ErrorCode.UNAVAILABLE
