from __future__ import annotations

import secrets
from typing import Any, Dict, Optional

from fastapi import APIRouter, Cookie, Depends
from fastapi.responses import JSONResponse, RedirectResponse

from ...domain.errors import AuthFailure
from ...security.session import (
    OAuthConfig,
    SESSION_COOKIE,
    SESSION_MAX_AGE,
    STATE_COOKIE,
    exchange_code,
    fetch_userinfo,
    require_session,
)

router = APIRouter(tags=["auth"])


def get_oauth_config() -> OAuthConfig:
    return OAuthConfig.from_env()


@router.get("/api/login")
def login(cfg: OAuthConfig = Depends(get_oauth_config)) -> RedirectResponse:
    state = secrets.token_urlsafe(16)
    response = RedirectResponse(cfg.authorize_url(state), status_code=302)
    response.set_cookie(STATE_COOKIE, state, max_age=600, httponly=True, secure=True, samesite="lax")
    return response


@router.get("/auth/login")
def login_callback(
    code: Optional[str] = None,
    state: Optional[str] = None,
    oauth_state: Optional[str] = Cookie(default=None),
    cfg: OAuthConfig = Depends(get_oauth_config),
) -> RedirectResponse:
    response = RedirectResponse("/", status_code=302)
    response.delete_cookie(STATE_COOKIE)
    if not code:
        return response
    if oauth_state and state != oauth_state:
        return response
    token = exchange_code(code, cfg)
    if not token:
        return response
    response.set_cookie(
        SESSION_COOKIE,
        token,
        max_age=SESSION_MAX_AGE,
        httponly=False,
        secure=True,
        samesite="none",
    )
    return response


@router.get("/api/@me")
def me(
    token: str = Depends(require_session),
    cfg: OAuthConfig = Depends(get_oauth_config),
) -> Any:
    try:
        user: Dict[str, Any] = fetch_userinfo(token, cfg)
    except AuthFailure as exc:
        response = JSONResponse(status_code=exc.status_code, content=exc.to_payload())
        response.delete_cookie(SESSION_COOKIE)
        return response
    return user
