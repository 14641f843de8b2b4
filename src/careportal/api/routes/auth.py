"""Login and logout: exchange credentials for the session cookie."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status

from ...config import settings
from ...schemas.auth import LoginRequest, LoginResponse
from ...upstream.client import UpstreamClient
from ...upstream.errors import UpstreamError
from ..deps import get_public_client

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=LoginResponse, status_code=status.HTTP_200_OK)
def login(
    payload: LoginRequest,
    response: Response,
    client: UpstreamClient = Depends(get_public_client),
) -> LoginResponse:
    email = (payload.email or "").strip()
    password = payload.password or ""
    if not email or not password:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="E-Mail und Passwort sind erforderlich"
        )

    try:
        data = client.post("/auth/login", {"email": email, "password": password})
    except UpstreamError as exc:
        logger.info(f"Login rejected for {email}: {exc.status}")
        raise

    token = data.get("accessToken") if isinstance(data, dict) else None
    if not isinstance(token, str) or len(token) < settings.min_access_token_length:
        logger.error("Upstream login succeeded without a usable access token")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Kein gültiger Access-Token von der API",
        )

    response.set_cookie(
        key=settings.access_cookie_name,
        value=token,
        max_age=settings.access_cookie_max_age,
        path="/",
        httponly=True,
        secure=settings.access_cookie_secure,
        samesite="lax",
    )
    return LoginResponse(ok=True)


@router.post("/logout", response_model=LoginResponse, status_code=status.HTTP_200_OK)
def logout(response: Response) -> LoginResponse:
    response.delete_cookie(
        key=settings.access_cookie_name,
        path="/",
        httponly=True,
        secure=settings.access_cookie_secure,
        samesite="lax",
    )
    response.delete_cookie(
        key=settings.lock_cookie_name,
        path="/",
        httponly=True,
        secure=settings.access_cookie_secure,
        samesite="lax",
    )
    return LoginResponse(ok=True)
