from __future__ import annotations

import logging
import os
from datetime import UTC, datetime
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, generate_latest

from ..domain.errors import RelayError
from ..observability.metrics import metrics_middleware_factory
from ..services.credentials import CredentialPool
from ..services.relay import get_relay
from .routers.auth import router as auth_router
from .routers.deploy import router as deploy_router
from .routers.generate import router as generate_router

load_dotenv()  # OAUTH_CLIENT_ID, OPENROUTER_API_KEY_1..4, etc.

app = FastAPI(title="SiteRelay API", version="0.1.0")

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("siterelay.api")

STATIC_DIR = Path(os.getenv("STATIC_DIR", "dist")).resolve()

# Observability: request latency histogram
app.middleware("http")(metrics_middleware_factory())


@app.exception_handler(RelayError)
async def relay_error_handler(_request: Request, exc: RelayError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


app.include_router(auth_router)
app.include_router(generate_router)
app.include_router(deploy_router)

cors_origins = [o.strip() for o in os.getenv("CORS_ORIGINS", "").split(",") if o.strip()]
if cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


if not CredentialPool.from_env():
    logger.warning("No inference API keys configured; generation requests will fail")


@app.get("/health")
def health():
    return {
        "status": "ok",
        "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
        "components": {
            "api": "ok",
            "credentials": len(get_relay().prober.pool),
        },
    }


@app.get("/metrics")
def metrics() -> Response:
    data = generate_latest(REGISTRY)
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)


# Editor front-end: real files are served as-is, anything else gets the SPA shell.
@app.get("/{full_path:path}", include_in_schema=False)
def spa(full_path: str) -> FileResponse:
    candidate = (STATIC_DIR / full_path).resolve()
    if full_path and candidate.is_file() and candidate.is_relative_to(STATIC_DIR):
        return FileResponse(candidate)
    index = STATIC_DIR / "index.html"
    if not index.is_file():
        raise HTTPException(status_code=404, detail="Not Found")
    return FileResponse(index)
