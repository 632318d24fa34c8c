from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, Field

from pos_session.application.session_coordinator import SessionCoordinator
from pos_session.container import Container
from pos_session.domain.entities.identity import Credential, Identity

router = APIRouter(prefix="/v1/session", tags=["session"])


class InitializeRequest(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=128)
    role: Optional[str] = Field(default=None, max_length=64)
    access_token: Optional[str] = None


class ActivityRequest(BaseModel):
    kind: str = Field(default="pointer", min_length=1, max_length=32)


def get_container(request: Request) -> Container:
    return request.app.state.container


def get_coordinator(container: Container = Depends(get_container)) -> SessionCoordinator:
    return container.coordinator


def _snapshot(coordinator: SessionCoordinator) -> dict[str, Any]:
    identity = coordinator.identity
    return {
        "phase": coordinator.phase.value,
        "user_id": identity.user_id if identity else None,
        "role": str(identity.role) if identity else None,
        "state": coordinator.state.to_dict(),
    }


@router.get("/state")
def get_state(coordinator: SessionCoordinator = Depends(get_coordinator)) -> dict[str, Any]:  # type: ignore[misc]
    return _snapshot(coordinator)


@router.post("/initialize")
def initialize(body: InitializeRequest, container: Container = Depends(get_container)) -> dict[str, Any]:  # type: ignore[misc]
    container.auth.attach_credential(Credential(user_id=body.user_id, access_token=body.access_token))
    container.coordinator.initialize(Identity(body.user_id, body.role))
    return _snapshot(container.coordinator)


@router.post("/check")
async def check(coordinator: SessionCoordinator = Depends(get_coordinator)) -> dict[str, Any]:  # type: ignore[misc]
    if coordinator.identity is None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="coordinator not initialized")
    await coordinator.check_expiration()
    return _snapshot(coordinator)


@router.post("/activity")
def activity(body: ActivityRequest, container: Container = Depends(get_container)) -> dict[str, Any]:  # type: ignore[misc]
    container.activity.emit(body.kind)
    return {"armed": container.coordinator.activity.pending}


@router.post("/extend")
async def extend(coordinator: SessionCoordinator = Depends(get_coordinator)) -> dict[str, Any]:  # type: ignore[misc]
    if coordinator.identity is None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="coordinator not initialized")
    await coordinator.extend()
    return _snapshot(coordinator)


@router.post("/logout")
async def logout(coordinator: SessionCoordinator = Depends(get_coordinator)) -> dict[str, Any]:  # type: ignore[misc]
    await coordinator.logout()
    return _snapshot(coordinator)


@router.post("/teardown")
def teardown(coordinator: SessionCoordinator = Depends(get_coordinator)) -> dict[str, Any]:  # type: ignore[misc]
    coordinator.teardown()
    return _snapshot(coordinator)
