from __future__ import annotations

"""Cookie session gate and the OAuth login flow against the identity provider.

The session cookie carries the provider's bearer token directly. It is
readable by the editor's scripts (not HTTP-only) and sent cross-site.

Env vars:
- OAUTH_CLIENT_ID / OAUTH_CLIENT_SECRET (required for login)
- REDIRECT_URI (default http://localhost:{APP_PORT}/auth/login)
- OAUTH_BASE_URL (default https://huggingface.co)
"""

import base64
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import requests
from fastapi import Cookie

from ..domain.errors import AuthFailure


logger = logging.getLogger(__name__)

SESSION_COOKIE = "hf_token"
STATE_COOKIE = "oauth_state"
SESSION_MAX_AGE = 30 * 24 * 60 * 60
OAUTH_SCOPE = "openid profile write-repos manage-repos inference-api"


@dataclass(frozen=True)
class OAuthConfig:
    client_id: str
    client_secret: str
    redirect_uri: str
    base_url: str = "https://huggingface.co"
    scope: str = OAUTH_SCOPE

    @staticmethod
    def from_env() -> "OAuthConfig":
        port = os.getenv("APP_PORT", "3000")
        return OAuthConfig(
            client_id=os.getenv("OAUTH_CLIENT_ID", ""),
            client_secret=os.getenv("OAUTH_CLIENT_SECRET", ""),
            redirect_uri=os.getenv("REDIRECT_URI") or f"http://localhost:{port}/auth/login",
            base_url=(os.getenv("OAUTH_BASE_URL") or "https://huggingface.co").rstrip("/"),
        )

    def authorize_url(self, state: str) -> str:
        query = urlencode(
            {
                "client_id": self.client_id,
                "redirect_uri": self.redirect_uri,
                "response_type": "code",
                "scope": self.scope,
                "prompt": "consent",
                "state": state,
            }
        )
        return f"{self.base_url}/oauth/authorize?{query}"

    def basic_auth_header(self) -> str:
        raw = f"{self.client_id}:{self.client_secret}".encode("utf-8")
        return "Basic " + base64.b64encode(raw).decode("ascii")


def require_session(hf_token: Optional[str] = Cookie(default=None)) -> str:
    """FastAPI dependency returning the caller's bearer token."""
    if not hf_token:
        raise AuthFailure()
    return hf_token


def exchange_code(code: str, cfg: OAuthConfig) -> Optional[str]:
    """Trade an authorization code for an access token; ``None`` on any failure."""
    try:
        resp = requests.post(
            f"{cfg.base_url}/oauth/token",
            headers={
                "Content-Type": "application/x-www-form-urlencoded",
                "Authorization": cfg.basic_auth_header(),
            },
            data={
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": cfg.redirect_uri,
            },
            timeout=10,
        )
        payload = resp.json()
    except (requests.RequestException, ValueError):
        logger.exception("OAuth token exchange failed")
        return None
    token = payload.get("access_token") if isinstance(payload, dict) else None
    if not token:
        logger.warning("OAuth token exchange returned no access token (status %s)", resp.status_code)
    return token


def fetch_userinfo(token: str, cfg: OAuthConfig) -> Dict[str, Any]:
    try:
        resp = requests.get(
            f"{cfg.base_url}/oauth/userinfo",
            headers={"Authorization": f"Bearer {token}"},
            timeout=10,
        )
        if resp.status_code != 200:
            raise AuthFailure(f"Identity provider rejected the session ({resp.status_code})")
        return resp.json()
    except (requests.RequestException, ValueError) as exc:
        raise AuthFailure(str(exc)) from exc
