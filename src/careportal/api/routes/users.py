"""Identity and employee account endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Request, status

from ...data.payloads import as_list
from ...models.domain import Identity
from ...upstream.client import UpstreamClient
from ..deps import get_upstream_client, require_admin

router = APIRouter(tags=["users"])


@router.get("/users/me", status_code=status.HTTP_200_OK)
def get_me(client: UpstreamClient = Depends(get_upstream_client)) -> Any:
    payload = client.get("/users/me")
    if not isinstance(payload, dict):
        return payload
    return {**payload, "isAdmin": str(payload.get("role") or "").upper() == "ADMIN"}


@router.get("/admin/users", status_code=status.HTTP_200_OK)
def list_users(
    request: Request,
    client: UpstreamClient = Depends(get_upstream_client),
    _admin: Identity = Depends(require_admin),
) -> Any:
    return client.get("/admin/users", params=dict(request.query_params))


@router.post("/admin/users", status_code=status.HTTP_201_CREATED)
def create_user(
    body: dict = Body(...),
    client: UpstreamClient = Depends(get_upstream_client),
    _admin: Identity = Depends(require_admin),
) -> Any:
    return client.post("/users", body)


@router.post("/admin/users/{user_id}/password", status_code=status.HTTP_200_OK)
def reset_password(
    user_id: str,
    body: dict = Body(...),
    client: UpstreamClient = Depends(get_upstream_client),
    _admin: Identity = Depends(require_admin),
) -> Any:
    return client.post(f"/admin/users/{user_id}/password", body)


@router.get("/admin/employees", status_code=status.HTTP_200_OK)
def list_employees(
    client: UpstreamClient = Depends(get_upstream_client),
    _admin: Identity = Depends(require_admin),
) -> list:
    return as_list(client.get("/admin/users", params={"role": "EMPLOYEE"}), "items", "users", "data")


@router.post("/admin/employees", status_code=status.HTTP_201_CREATED)
def create_employee(
    body: dict = Body(...),
    client: UpstreamClient = Depends(get_upstream_client),
    _admin: Identity = Depends(require_admin),
) -> Any:
    return client.post("/users", {**body, "role": "EMPLOYEE"})
