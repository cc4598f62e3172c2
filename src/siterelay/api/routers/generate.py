from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from starlette.concurrency import run_in_threadpool

from ...domain.models import GenerationRequest
from ...security.rate_limit import client_identifier, rate_limit_action
from ...services.relay import StreamingRelay, get_relay

router = APIRouter(prefix="/api", tags=["generate"])


@router.post("/ask-ai", response_class=StreamingResponse)
async def ask_ai(
    req: GenerationRequest,
    request: Request,
    relay: StreamingRelay = Depends(get_relay),
) -> StreamingResponse:
    req.validated()
    # Every caller is counted by network identity, session cookie or not.
    # Counting happens on the event loop; no lock needed.
    rate_limit_action(client_identifier(request))

    # Probing and the first fragment block on the network, so they run off-loop.
    stream = await run_in_threadpool(relay.start, req)

    headers = {
        "Cache-Control": "no-cache",
        "Connection": "keep-alive",
        "X-Accel-Buffering": "no",
    }
    return StreamingResponse(stream, media_type="text/plain", headers=headers)
