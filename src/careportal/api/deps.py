"""Request-scoped dependencies: session cookie, upstream client, caller role."""

from __future__ import annotations

from datetime import date

from fastapi import Depends, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse

from ..config import settings
from ..data.payloads import parse_identity
from ..models.domain import Identity
from ..services.day_lock import LockMemory, WriteKind
from ..upstream.client import RequestContext, UpstreamClient
from ..upstream.errors import UpstreamError, UpstreamUnavailable


def get_request_context(request: Request) -> RequestContext:
    token = request.cookies.get(settings.access_cookie_name)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return RequestContext(access_token=token)


def get_upstream_client(context: RequestContext = Depends(get_request_context)) -> UpstreamClient:
    return UpstreamClient(context=context)


def get_public_client() -> UpstreamClient:
    """Client without credentials, used by the login route only."""
    return UpstreamClient()


def get_identity(client: UpstreamClient = Depends(get_upstream_client)) -> Identity:
    try:
        payload = client.get("/users/me")
    except UpstreamUnavailable:
        raise
    except UpstreamError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Nicht autorisiert") from exc
    return parse_identity(payload)


def require_admin(identity: Identity = Depends(get_identity)) -> Identity:
    if not identity.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Keine Berechtigung")
    return identity


def get_lock_memory(request: Request) -> LockMemory:
    return LockMemory.from_cookie(request.cookies.get(settings.lock_cookie_name))


def store_lock_memory(response: Response, memory: LockMemory) -> None:
    """Write the lock cookie when a request learned a new lock."""
    if not memory.changed:
        return
    response.set_cookie(
        key=settings.lock_cookie_name,
        value=memory.to_cookie(),
        max_age=settings.lock_cookie_max_age,
        path="/",
        httponly=True,
        secure=settings.access_cookie_secure,
        samesite="lax",
    )


def locked_write_response(
    client: UpstreamClient,
    memory: LockMemory,
    error: UpstreamError,
    day: date,
    kind: WriteKind,
) -> JSONResponse:
    """Relay a lock rejection and remember it for the caller's day."""
    identity = get_identity(client)
    memory.add(identity.id, day, kind)
    response = JSONResponse(status_code=error.status, content=error.to_payload())
    store_lock_memory(response, memory)
    return response
