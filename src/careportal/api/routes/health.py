"""Health endpoints."""

from __future__ import annotations

from fastapi import APIRouter, status

from ...upstream import client as upstream_client

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Simple health check endpoint that doesn't require any dependencies."""
    return {"status": "ok"}


@router.get("/health/upstream", status_code=status.HTTP_200_OK)
def health_upstream() -> dict:
    """Check that the upstream API answers."""
    try:
        return {"service": "upstream", "healthy": upstream_client.check_health()}
    except Exception as e:
        return {"service": "upstream", "healthy": False, "error": str(e)}
