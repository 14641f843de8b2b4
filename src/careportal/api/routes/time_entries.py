"""Employee time entry endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from ...schemas.assignments import TimeEntryRequest
from ...services.assignments.entries import (
    ASSIGNMENT_MISSING,
    EntryValidationError,
    parse_entry_date,
    resolve_entry_minutes,
)
from ...services.day_lock import LockMemory, WriteKind
from ...upstream.client import UpstreamClient
from ...upstream.errors import UpstreamError
from ..deps import get_lock_memory, get_upstream_client, locked_write_response

router = APIRouter(prefix="/me/time-entries", tags=["time-entries"])


@router.get("", status_code=status.HTTP_200_OK)
def list_time_entries(request: Request, client: UpstreamClient = Depends(get_upstream_client)) -> Any:
    return client.get("/me/time-entries", params=dict(request.query_params))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_time_entry(
    payload: TimeEntryRequest,
    client: UpstreamClient = Depends(get_upstream_client),
    memory: LockMemory = Depends(get_lock_memory),
) -> Any:
    """Create an entry from ``minutes`` or from a ``startAt``/``endAt`` pair."""
    try:
        if not (payload.assignment_id or "").strip():
            raise EntryValidationError(ASSIGNMENT_MISSING)
        day = parse_entry_date(payload.date)
        minutes = resolve_entry_minutes(payload.minutes, payload.start_at, payload.end_at)
    except EntryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    body: dict[str, Any] = {
        "assignmentId": payload.assignment_id.strip(),
        "date": day.isoformat(),
        "minutes": minutes,
    }
    if payload.notes and payload.notes.strip():
        body["notes"] = payload.notes.strip()
    try:
        return client.post("/me/time-entries", body)
    except UpstreamError as exc:
        if exc.is_locked:
            return locked_write_response(client, memory, exc, day, WriteKind.TIME)
        raise


@router.delete("", status_code=status.HTTP_200_OK)
def delete_time_entry(
    entry_id: str | None = Query(default=None, alias="id"),
    client: UpstreamClient = Depends(get_upstream_client),
) -> Any:
    if not entry_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing id")
    return client.delete(f"/me/time-entries/{entry_id}")
