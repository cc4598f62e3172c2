"""Thin REST client for the hosting platform (Hugging Face Hub).

Covers the three primitives the publish pipeline needs: identity lookup,
space creation and a multi-file commit. Every non-success response is raised
as :class:`PublishFailure` carrying the platform's own error message.
"""

from __future__ import annotations

import base64
import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..domain.errors import PublishFailure
from ..domain.models import UploadFile


logger = logging.getLogger(__name__)

DEFAULT_HUB_URL = "https://huggingface.co"


@dataclass(frozen=True)
class HubSettings:
    base_url: str = DEFAULT_HUB_URL
    timeout: int = 30

    @staticmethod
    def from_env() -> "HubSettings":
        base = (os.getenv("HUB_BASE_URL") or DEFAULT_HUB_URL).rstrip("/")
        return HubSettings(base_url=base)


def _build_session() -> requests.Session:
    session = requests.Session()
    retry = Retry(
        total=2,
        backoff_factor=0.5,
        status_forcelist=(502, 503, 504),
        allowed_methods=frozenset(["GET"]),
    )
    adapter = HTTPAdapter(max_retries=retry)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


def _error_message(resp: requests.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        msg = body.get("error") or body.get("message")
        if msg:
            return str(msg)
    text = (resp.text or "").strip()
    return text[:500] or f"Hub request failed with status {resp.status_code}"


class HubClient:
    def __init__(self, token: str, settings: Optional[HubSettings] = None) -> None:
        self.token = token
        self.settings = settings or HubSettings.from_env()
        self._session = _build_session()

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "HubClient":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def _headers(self, **extra: str) -> Dict[str, str]:
        headers = {"Authorization": f"Bearer {self.token}"}
        headers.update(extra)
        return headers

    def _request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        url = f"{self.settings.base_url}{path}"
        try:
            return self._session.request(method, url, timeout=self.settings.timeout, **kwargs)
        except requests.RequestException as exc:
            logger.exception("Hub request %s %s failed", method, path)
            raise PublishFailure(str(exc)) from exc

    def whoami(self) -> str:
        resp = self._request("GET", "/api/whoami-v2", headers=self._headers())
        if resp.status_code != 200:
            raise PublishFailure(_error_message(resp))
        name = (resp.json() or {}).get("name")
        if not name:
            raise PublishFailure("Unable to resolve the current user")
        return name

    def create_space(self, repo_id: str) -> None:
        organization, _, name = repo_id.rpartition("/")
        payload: Dict[str, Any] = {"name": name, "type": "space", "sdk": "static", "private": False}
        if organization:
            payload["organization"] = organization
        resp = self._request("POST", "/api/repos/create", headers=self._headers(), json=payload)
        if resp.status_code in (200, 201):
            logger.info("Created space %s", repo_id)
            return
        if resp.status_code == 409:
            logger.info("Space %s already exists; uploading over it", repo_id)
            return
        logger.warning("Create space returned %s: %s", resp.status_code, resp.text[:500])
        raise PublishFailure(_error_message(resp))

    def upload_files(self, repo_id: str, files: List[UploadFile], summary: str) -> None:
        """Commit ``files`` to the space's main branch in a single commit."""
        lines = [json.dumps({"key": "header", "value": {"summary": summary, "description": ""}})]
        for f in files:
            logger.debug("Queue %s (%s, %d bytes) for %s", f.path, f.media_type, len(f.content), repo_id)
            lines.append(
                json.dumps(
                    {
                        "key": "file",
                        "value": {
                            "content": base64.b64encode(f.content).decode("ascii"),
                            "path": f.path,
                            "encoding": "base64",
                        },
                    }
                )
            )
        body = "\n".join(lines).encode("utf-8")
        resp = self._request(
            "POST",
            f"/api/spaces/{repo_id}/commit/main",
            headers=self._headers(**{"Content-Type": "application/x-ndjson"}),
            data=body,
        )
        if resp.status_code not in (200, 201):
            logger.warning("Uploading to %s returned %s: %s", repo_id, resp.status_code, resp.text[:500])
            raise PublishFailure(_error_message(resp))
        logger.info("Uploaded %d file(s) to %s", len(files), repo_id)
