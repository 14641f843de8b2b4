"""Admin corrections: day bundle with summary, time and km adjustments."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ...models.domain import Identity
from ...schemas.corrections import KmAdjustmentRequest, TimeAdjustmentRequest
from ...services.corrections import CorrectionsSession
from ...services.corrections.service import SELECTION_MISSING
from ...upstream.client import UpstreamClient
from ..deps import get_upstream_client, require_admin

router = APIRouter(prefix="/admin", tags=["corrections"])


def _open_session(client: UpstreamClient, employee_id: str | None, day: str | None) -> CorrectionsSession:
    session = CorrectionsSession(client)
    if not session.select(employee_id, day):
        if session.last_error is not None:
            raise session.last_error
        if not session.can_fetch:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=SELECTION_MISSING)
    return session


def _raise_form_failure(session: CorrectionsSession, message: str | None) -> None:
    if session.last_error is not None:
        raise session.last_error
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=message or "Ungültige Eingabe")


@router.get("/corrections/day", status_code=status.HTTP_200_OK)
def get_correction_day(
    employee_id: str | None = Query(default=None, alias="employeeId"),
    day: str | None = Query(default=None, alias="date"),
    client: UpstreamClient = Depends(get_upstream_client),
    _admin: Identity = Depends(require_admin),
) -> Any:
    """Day bundle merged with per-assignment km figures, plus ``summary`` and ``isLocked``."""
    return _open_session(client, employee_id, day).view


@router.post("/time-adjustments", status_code=status.HTTP_201_CREATED)
def create_time_adjustment(
    payload: TimeAdjustmentRequest,
    client: UpstreamClient = Depends(get_upstream_client),
    _admin: Identity = Depends(require_admin),
) -> Any:
    session = _open_session(client, payload.employee_id, payload.date)
    if not session.submit_time_adjustment(payload.delta_minutes, payload.reason, payload.assignment_id):
        _raise_form_failure(session, session.time_form_error)
    return session.view


@router.post("/km-adjustments", status_code=status.HTTP_201_CREATED)
def create_km_adjustment(
    payload: KmAdjustmentRequest,
    client: UpstreamClient = Depends(get_upstream_client),
    _admin: Identity = Depends(require_admin),
) -> Any:
    session = _open_session(client, payload.employee_id, payload.date)
    if not session.submit_km_adjustment(payload.delta_km, payload.reason):
        _raise_form_failure(session, session.km_form_error)
    return session.view
