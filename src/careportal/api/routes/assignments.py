"""Assignment endpoints: pass-through reads, the view model and employee actions."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse

from ...models.domain import Identity
from ...schemas.assignments import AckRequest, KmPatchRequest, SignatureRequest
from ...services.assignments import AssignmentWorkflow, EntryValidationError, Refusal, check_time_range
from ...services.day_lock import LockMemory
from ...services.lifecycle import AckAction, parse_ack_action
from ...services.signature import EMPTY_SIGNATURE_MESSAGE, SignatureCanvas
from ...upstream.client import UpstreamClient
from ...upstream.errors import UpstreamError
from ..deps import (
    get_identity,
    get_lock_memory,
    get_upstream_client,
    require_admin,
    store_lock_memory,
)

router = APIRouter(tags=["assignments"])


def _load_workflow(
    client: UpstreamClient,
    assignment_id: str,
    memory: LockMemory,
    is_admin: bool = False,
) -> AssignmentWorkflow:
    workflow = AssignmentWorkflow(client, assignment_id, is_admin=is_admin, lock_memory=memory)
    if not workflow.load():
        raise workflow.last_error
    return workflow


def _respond(workflow: AssignmentWorkflow, ok: bool) -> Any:
    if ok:
        return workflow.view_model()
    error = workflow.last_error
    if error is not None:
        if error.is_locked:
            response = JSONResponse(
                status_code=error.status,
                content={**error.to_payload(), "view": workflow.view_model()},
            )
            if workflow.lock_memory is not None:
                store_lock_memory(response, workflow.lock_memory)
            return response
        raise error
    if workflow.refusal is Refusal.INVALID:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=workflow.error)
    raise HTTPException(
        status_code=status.HTTP_409_CONFLICT, detail=workflow.error or "Aktion gerade nicht möglich."
    )


def _check_range(body: dict) -> None:
    try:
        check_time_range(body.get("startAt"), body.get("endAt"))
    except EntryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.get("/assignments", status_code=status.HTTP_200_OK)
def list_assignments(
    request: Request,
    client: UpstreamClient = Depends(get_upstream_client),
    identity: Identity = Depends(get_identity),
) -> Any:
    """Planner list: every assignment for admins, the caller's own otherwise."""
    path = "/assignments" if identity.is_admin else "/me/assignments"
    return client.get(path, params=dict(request.query_params))


@router.get("/assignments/{assignment_id}", status_code=status.HTTP_200_OK)
def get_assignment(
    assignment_id: str,
    client: UpstreamClient = Depends(get_upstream_client),
    identity: Identity = Depends(get_identity),
) -> Any:
    if identity.is_admin:
        return client.get(f"/assignments/{assignment_id}")
    return client.get(f"/me/assignments/{assignment_id}")


@router.get("/assignments/{assignment_id}/signatures", status_code=status.HTTP_200_OK)
def list_signatures(assignment_id: str, client: UpstreamClient = Depends(get_upstream_client)) -> Any:
    return client.get(f"/assignments/{assignment_id}/signatures")


@router.get("/assignments/{assignment_id}/view", status_code=status.HTTP_200_OK)
def get_assignment_view(
    assignment_id: str,
    client: UpstreamClient = Depends(get_upstream_client),
    identity: Identity = Depends(get_identity),
    memory: LockMemory = Depends(get_lock_memory),
) -> dict:
    """Assignment plus lifecycle permissions, day lock and editor mode."""
    return _load_workflow(client, assignment_id, memory, is_admin=identity.is_admin).view_model()


@router.get("/me/assignments", status_code=status.HTTP_200_OK)
def list_my_assignments(request: Request, client: UpstreamClient = Depends(get_upstream_client)) -> Any:
    return client.get("/me/assignments", params=dict(request.query_params))


@router.get("/me/assignments/{assignment_id}", status_code=status.HTTP_200_OK)
def get_my_assignment(assignment_id: str, client: UpstreamClient = Depends(get_upstream_client)) -> Any:
    return client.get(f"/me/assignments/{assignment_id}")


@router.patch("/me/assignments/{assignment_id}", status_code=status.HTTP_200_OK)
def update_my_kilometers(
    assignment_id: str,
    payload: KmPatchRequest,
    client: UpstreamClient = Depends(get_upstream_client),
    memory: LockMemory = Depends(get_lock_memory),
) -> Any:
    workflow = _load_workflow(client, assignment_id, memory)
    return _respond(workflow, workflow.save_km(payload.kilometers))


@router.post("/me/assignments/{assignment_id}/ack", status_code=status.HTTP_200_OK)
def acknowledge_assignment(
    assignment_id: str,
    payload: AckRequest,
    client: UpstreamClient = Depends(get_upstream_client),
    memory: LockMemory = Depends(get_lock_memory),
) -> Any:
    try:
        action = parse_ack_action(payload.action)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="action muss CONFIRM oder DECLINE sein"
        ) from exc

    workflow = _load_workflow(client, assignment_id, memory)
    if action is AckAction.CONFIRM:
        ok = workflow.confirm()
    else:
        ok = workflow.decline(payload.reason)
    return _respond(workflow, ok)


@router.post("/me/assignments/{assignment_id}/done", status_code=status.HTTP_200_OK)
def mark_assignment_done(
    assignment_id: str,
    client: UpstreamClient = Depends(get_upstream_client),
    memory: LockMemory = Depends(get_lock_memory),
) -> Any:
    workflow = _load_workflow(client, assignment_id, memory)
    return _respond(workflow, workflow.mark_done())


@router.post("/me/assignments/{assignment_id}/signatures", status_code=status.HTTP_200_OK)
def submit_signature(
    assignment_id: str,
    payload: SignatureRequest,
    client: UpstreamClient = Depends(get_upstream_client),
    memory: LockMemory = Depends(get_lock_memory),
) -> Any:
    if payload.strokes is not None:
        try:
            source: SignatureCanvas | str = SignatureCanvas.from_strokes(
                payload.strokes,
                css_width=payload.width,
                css_height=payload.height,
                device_pixel_ratio=payload.device_pixel_ratio,
            )
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    elif payload.signature_data:
        source = payload.signature_data
    else:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=EMPTY_SIGNATURE_MESSAGE)

    workflow = _load_workflow(client, assignment_id, memory)
    return _respond(workflow, workflow.submit_signature(source))


@router.post("/admin/assignments", status_code=status.HTTP_201_CREATED)
def create_assignment(
    body: dict = Body(...),
    client: UpstreamClient = Depends(get_upstream_client),
    _admin: Identity = Depends(require_admin),
) -> Any:
    _check_range(body)
    return client.post("/assignments", body)


@router.post("/admin/assignments/series", status_code=status.HTTP_201_CREATED)
def create_assignment_series(
    body: dict = Body(...),
    client: UpstreamClient = Depends(get_upstream_client),
    _admin: Identity = Depends(require_admin),
) -> Any:
    _check_range(body)
    return client.post("/admin/assignments/series", body)


@router.get("/admin/assignments", status_code=status.HTTP_200_OK)
def list_admin_assignments(
    request: Request,
    client: UpstreamClient = Depends(get_upstream_client),
    _admin: Identity = Depends(require_admin),
) -> Any:
    return client.get("/admin/assignments", params=dict(request.query_params))


@router.patch("/admin/assignments/{assignment_id}", status_code=status.HTTP_200_OK)
def update_assignment(
    assignment_id: str,
    body: dict = Body(...),
    client: UpstreamClient = Depends(get_upstream_client),
    _admin: Identity = Depends(require_admin),
) -> Any:
    _check_range(body)
    try:
        return client.patch(f"/assignments/{assignment_id}", body)
    except UpstreamError as exc:
        if exc.is_locked:
            raise HTTPException(
                status_code=exc.status, detail="Gesperrt nach Unterschrift – nur Admin-Korrektur möglich."
            ) from exc
        raise
