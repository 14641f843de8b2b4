"""Employee kilometer entry endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, status

from ...schemas.assignments import KmEntryRequest
from ...services.assignments.entries import EntryValidationError, parse_entry_date, parse_kilometers
from ...services.day_lock import LockMemory, WriteKind
from ...upstream.client import UpstreamClient
from ...upstream.errors import UpstreamError
from ..deps import get_lock_memory, get_upstream_client, locked_write_response

router = APIRouter(prefix="/me/km-entries", tags=["km-entries"])


@router.get("", status_code=status.HTTP_200_OK)
def list_km_entries(request: Request, client: UpstreamClient = Depends(get_upstream_client)) -> Any:
    return client.get("/me/km-entries", params=dict(request.query_params))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_km_entry(
    payload: KmEntryRequest,
    client: UpstreamClient = Depends(get_upstream_client),
    memory: LockMemory = Depends(get_lock_memory),
) -> Any:
    # Confirmation rejections pass through the upstream error handler with their code.
    try:
        day = parse_entry_date(payload.date)
        km = parse_kilometers(payload.km)
    except EntryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    try:
        return client.post("/me/km-entries", {"date": day.isoformat(), "km": km})
    except UpstreamError as exc:
        if exc.is_locked:
            return locked_write_response(client, memory, exc, day, WriteKind.KM)
        raise
