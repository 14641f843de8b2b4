"""State holder for one admin corrections screen."""

from __future__ import annotations

import logging
import threading
from typing import Any, Optional

from ...upstream.client import UpstreamClient
from ...upstream.errors import ErrorCode, UpstreamError, user_message
from ..sequencing import RequestSequencer
from .service import (
    NO_ASSIGNMENT_FOR_DAY,
    SELECTION_MISSING,
    AdjustmentValidationError,
    build_day_view,
    create_km_adjustment,
    create_time_adjustment,
    fetch_day_bundle,
    parse_delta,
    require_reason,
)

logger = logging.getLogger(__name__)


class CorrectionsSession:
    """Loads day bundles for a selected (employee, date) and submits corrections.

    Selections may change while a load is in flight. Each load is tagged by
    the sequencer and only the latest one is applied; earlier responses are
    dropped whenever they arrive.
    """

    def __init__(self, client: UpstreamClient) -> None:
        self.client = client
        self._sequencer = RequestSequencer()
        self._state_lock = threading.Lock()

        self.employee_id = ""
        self.date = ""
        self.view: Optional[dict] = None
        self.loading = False
        self.error: Optional[str] = None
        self.last_error: Optional[UpstreamError] = None
        self.redirect_to_login = False
        self.forbidden = False

        self.time_submitting = False
        self.km_submitting = False
        self.time_form_error: Optional[str] = None
        self.km_form_error: Optional[str] = None

    @property
    def can_fetch(self) -> bool:
        return bool(self.employee_id and self.date)

    def select(self, employee_id: Optional[str], day: Optional[str]) -> bool:
        """Change the selection and load it when complete."""

        self.employee_id = (employee_id or "").strip()
        self.date = (day or "").strip()
        if not self.can_fetch:
            return False
        return self.load()

    def load(self) -> bool:
        employee_id, day = self.employee_id, self.date
        if not employee_id or not day:
            return False
        token = self._sequencer.issue()
        with self._state_lock:
            self.loading = True
            self.error = None
            self.last_error = None

        try:
            payload = fetch_day_bundle(self.client, employee_id, day)
        except UpstreamError as exc:
            with self._state_lock:
                if not self._sequencer.is_current(token):
                    logger.debug(f"Discarding stale corrections error for {employee_id}/{day}")
                    return False
                self._apply_error(exc)
                self.view = None
                self.loading = False
            return False

        with self._state_lock:
            if not self._sequencer.is_current(token):
                logger.debug(f"Discarding stale corrections bundle for {employee_id}/{day}")
                return False
            self.view = build_day_view(payload)
            self.loading = False
        return True

    def submit_time_adjustment(self, delta: Any, reason: Optional[str], assignment_id: Optional[str] = None) -> bool:
        if self.time_submitting or self.km_submitting or self.loading:
            return False
        self.time_form_error = None
        try:
            if not self.can_fetch:
                raise AdjustmentValidationError(SELECTION_MISSING)
            delta_minutes = parse_delta(delta, "Minuten-Differenz ungültig")
            text = require_reason(reason)
            target = assignment_id or self._first_assignment_id()
            if not target:
                raise AdjustmentValidationError(NO_ASSIGNMENT_FOR_DAY)
        except AdjustmentValidationError as exc:
            self.time_form_error = str(exc)
            return False

        self.time_submitting = True
        try:
            create_time_adjustment(
                self.client,
                employee_id=self.employee_id,
                day=self.date,
                assignment_id=target,
                delta_minutes=delta_minutes,
                reason=text,
            )
        except UpstreamError as exc:
            self._apply_error(exc, form="time")
            return False
        finally:
            self.time_submitting = False
        return self.load()

    def submit_km_adjustment(self, delta: Any, reason: Optional[str]) -> bool:
        if self.time_submitting or self.km_submitting or self.loading:
            return False
        self.km_form_error = None
        try:
            if not self.can_fetch:
                raise AdjustmentValidationError(SELECTION_MISSING)
            delta_km = parse_delta(delta, "KM-Differenz ungültig")
            text = require_reason(reason)
        except AdjustmentValidationError as exc:
            self.km_form_error = str(exc)
            return False

        self.km_submitting = True
        try:
            create_km_adjustment(
                self.client,
                employee_id=self.employee_id,
                day=self.date,
                delta_km=delta_km,
                reason=text,
            )
        except UpstreamError as exc:
            self._apply_error(exc, form="km")
            return False
        finally:
            self.km_submitting = False
        return self.load()

    def _first_assignment_id(self) -> Optional[str]:
        assignments = (self.view or {}).get("assignments") or []
        if assignments and isinstance(assignments[0], dict):
            return assignments[0].get("id")
        return None

    def _apply_error(self, exc: UpstreamError, form: Optional[str] = None) -> None:
        self.last_error = exc
        if exc.code is ErrorCode.UNAUTHORIZED:
            self.redirect_to_login = True
        elif exc.code is ErrorCode.FORBIDDEN:
            self.forbidden = True
        message = user_message(exc.code, exc.message) or "Konnte Korrekturen nicht laden"
        if form == "time":
            self.time_form_error = message
        elif form == "km":
            self.km_form_error = message
        else:
            self.error = message
