from __future__ import annotations

from typing import Iterator

from fastapi import APIRouter, Depends

from ...domain.models import DeployRequest, DeployResponse
from ...security.session import require_session
from ...services.hub import HubClient
from ...services.publish import HostingClient, publish

router = APIRouter(prefix="/api", tags=["deploy"])


def get_hosting_client(token: str = Depends(require_session)) -> Iterator[HostingClient]:
    """One hub client per deploy; its session is closed once the request is done."""
    with HubClient(token) as hub:
        yield hub


@router.post("/deploy", response_model=DeployResponse)
def deploy(req: DeployRequest, hub: HostingClient = Depends(get_hosting_client)) -> DeployResponse:
    target = req.to_target()
    path = publish(req.html or "", target, hub)
    return DeployResponse(ok=True, path=path)
