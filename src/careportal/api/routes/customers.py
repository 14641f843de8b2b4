"""Customer master data and emergency contacts (pass-through)."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Query, Request, status

from ...models.domain import Identity
from ...services.customers import compute_customer_stats, fetch_customer_assignments
from ...upstream.client import UpstreamClient
from ...upstream.errors import ErrorCode, UpstreamError
from ..deps import get_identity, get_upstream_client, require_admin

router = APIRouter(tags=["customers"])


@router.get("/customers", status_code=status.HTTP_200_OK)
def list_customers(
    request: Request,
    client: UpstreamClient = Depends(get_upstream_client),
    identity: Identity = Depends(get_identity),
) -> Any:
    path = "/customers" if identity.is_admin else "/me/customers"
    return client.get(path, params=dict(request.query_params))


@router.get("/me/customers", status_code=status.HTTP_200_OK)
def list_my_customers(request: Request, client: UpstreamClient = Depends(get_upstream_client)) -> Any:
    return client.get("/me/customers", params=dict(request.query_params))


@router.get("/customers/{customer_id}/emergency-contacts", status_code=status.HTTP_200_OK)
def list_emergency_contacts(
    customer_id: str,
    client: UpstreamClient = Depends(get_upstream_client),
    identity: Identity = Depends(get_identity),
) -> Any:
    prefix = "/admin/customers" if identity.is_admin else "/me/customers"
    try:
        return client.get(f"{prefix}/{customer_id}/emergency-contacts")
    except UpstreamError as exc:
        # Customers without contacts answer 404.
        if exc.code is ErrorCode.NOT_FOUND:
            return []
        raise


@router.get("/admin/customers", status_code=status.HTTP_200_OK)
def list_admin_customers(
    limit: int = Query(default=200, ge=1, le=1000),
    client: UpstreamClient = Depends(get_upstream_client),
    _admin: Identity = Depends(require_admin),
) -> Any:
    return client.get("/customers", params={"limit": limit})


@router.post("/admin/customers", status_code=status.HTTP_201_CREATED)
def create_customer(
    body: dict = Body(...),
    client: UpstreamClient = Depends(get_upstream_client),
    _admin: Identity = Depends(require_admin),
) -> Any:
    return client.post("/customers", body)


@router.get("/admin/customers/{customer_id}", status_code=status.HTTP_200_OK)
def get_customer(
    customer_id: str,
    client: UpstreamClient = Depends(get_upstream_client),
    _admin: Identity = Depends(require_admin),
) -> Any:
    return client.get(f"/admin/customers/{customer_id}")


@router.get("/admin/customers/{customer_id}/stats", status_code=status.HTTP_200_OK)
def get_customer_stats(
    customer_id: str,
    client: UpstreamClient = Depends(get_upstream_client),
    _admin: Identity = Depends(require_admin),
) -> dict:
    return compute_customer_stats(fetch_customer_assignments(client, customer_id))


@router.patch("/admin/customers/{customer_id}", status_code=status.HTTP_200_OK)
def update_customer(
    customer_id: str,
    body: dict = Body(...),
    client: UpstreamClient = Depends(get_upstream_client),
    _admin: Identity = Depends(require_admin),
) -> Any:
    return client.patch(f"/admin/customers/{customer_id}", body)


@router.patch("/admin/customers/{customer_id}/deactivate", status_code=status.HTTP_200_OK)
def deactivate_customer(
    customer_id: str,
    client: UpstreamClient = Depends(get_upstream_client),
    _admin: Identity = Depends(require_admin),
) -> Any:
    return client.patch(f"/admin/customers/{customer_id}/deactivate")


@router.patch("/admin/customers/{customer_id}/reactivate", status_code=status.HTTP_200_OK)
def reactivate_customer(
    customer_id: str,
    client: UpstreamClient = Depends(get_upstream_client),
    _admin: Identity = Depends(require_admin),
) -> Any:
    return client.patch(f"/admin/customers/{customer_id}/reactivate")


@router.get("/admin/customers/{customer_id}/emergency-contacts", status_code=status.HTTP_200_OK)
def list_admin_emergency_contacts(
    customer_id: str,
    client: UpstreamClient = Depends(get_upstream_client),
    _admin: Identity = Depends(require_admin),
) -> Any:
    return client.get(f"/admin/customers/{customer_id}/emergency-contacts")


@router.post("/admin/customers/{customer_id}/emergency-contacts", status_code=status.HTTP_201_CREATED)
def create_emergency_contact(
    customer_id: str,
    body: dict = Body(...),
    client: UpstreamClient = Depends(get_upstream_client),
    _admin: Identity = Depends(require_admin),
) -> Any:
    return client.post(f"/admin/customers/{customer_id}/emergency-contacts", body)


@router.patch("/admin/customers/{customer_id}/emergency-contacts/{contact_id}", status_code=status.HTTP_200_OK)
def update_emergency_contact(
    customer_id: str,
    contact_id: str,
    body: dict = Body(...),
    client: UpstreamClient = Depends(get_upstream_client),
    _admin: Identity = Depends(require_admin),
) -> Any:
    return client.patch(f"/admin/customers/{customer_id}/emergency-contacts/{contact_id}", body)


@router.delete("/admin/customers/{customer_id}/emergency-contacts/{contact_id}", status_code=status.HTTP_200_OK)
def delete_emergency_contact(
    customer_id: str,
    contact_id: str,
    client: UpstreamClient = Depends(get_upstream_client),
    _admin: Identity = Depends(require_admin),
) -> Any:
    return client.delete(f"/admin/customers/{customer_id}/emergency-contacts/{contact_id}")
