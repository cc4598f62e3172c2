"""Client for the OpenAI-compatible inference gateway.

One client is bound to exactly one credential. It exposes the cheap
capability probe used for failover (``list_models``) and the streamed chat
completion used by the relay (``stream_chat``).
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from typing import Dict, Iterator, List

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..domain.errors import mask_credential


LOG = logging.getLogger("siterelay.llm")

DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_MODEL = "deepseek/deepseek-v3-base:free"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = int(raw)
        return value if value > 0 else default
    except ValueError:
        return default


@dataclass(frozen=True)
class InferenceSettings:
    base_url: str = DEFAULT_BASE_URL
    model: str = DEFAULT_MODEL
    referer: str = "http://localhost:3000"
    title: str = "SiteRelay"
    connect_timeout: int = 3
    read_timeout: int = 120

    @staticmethod
    def from_env() -> "InferenceSettings":
        return InferenceSettings(
            base_url=(os.getenv("INFERENCE_BASE_URL") or DEFAULT_BASE_URL).rstrip("/"),
            model=os.getenv("INFERENCE_MODEL") or DEFAULT_MODEL,
            referer=os.getenv("INFERENCE_REFERER") or "http://localhost:3000",
            title=os.getenv("INFERENCE_TITLE") or "SiteRelay",
            connect_timeout=_env_int("INFERENCE_CONNECT_TIMEOUT", 3),
            read_timeout=_env_int("INFERENCE_READ_TIMEOUT", 120),
        )


def _build_session() -> requests.Session:
    session = requests.Session()
    # Failover across credentials replaces transport-level retries.
    retry = Retry(total=0, raise_on_status=False)
    adapter = HTTPAdapter(max_retries=retry, pool_connections=10, pool_maxsize=10)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


class InferenceClient:
    def __init__(self, api_key: str, settings: InferenceSettings) -> None:
        self.api_key = api_key
        self.settings = settings
        self._session = _build_session()
        self._timeout = (settings.connect_timeout, settings.read_timeout)

    def __repr__(self) -> str:
        return f"InferenceClient(key={mask_credential(self.api_key)}, base_url={self.settings.base_url})"

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "HTTP-Referer": self.settings.referer,
            "X-Title": self.settings.title,
        }

    def list_models(self) -> List[str]:
        resp = self._session.get(
            f"{self.settings.base_url}/models",
            headers=self._headers(),
            timeout=(self.settings.connect_timeout, 15),
        )
        resp.raise_for_status()
        data = resp.json()
        if not isinstance(data, dict) or not isinstance(data.get("data") or [], list):
            raise ValueError(f"Unexpected /models payload: {type(data).__name__}")
        return [m.get("id", "") for m in (data.get("data") or []) if isinstance(m, dict)]

    def close(self) -> None:
        self._session.close()

    def stream_chat(self, messages: List[Dict[str, str]]) -> Iterator[str]:
        """Yield text fragments of a streamed chat completion.

        The upstream response and this client's session are closed when the
        generator finishes or is closed, so a consumer that stops early aborts
        the generation. A client serves a single generation.
        """
        LOG.debug(
            "inference_stream",
            extra={"model": self.settings.model, "base_url": self.settings.base_url},
        )
        payload = {
            "model": self.settings.model,
            "messages": messages,
            "stream": True,
        }
        try:
            with self._session.post(
                f"{self.settings.base_url}/chat/completions",
                json=payload,
                headers=self._headers(),
                timeout=self._timeout,
                stream=True,
            ) as resp:
                resp.raise_for_status()
                for raw_line in resp.iter_lines():
                    if not raw_line:
                        continue
                    line = raw_line.decode("utf-8") if isinstance(raw_line, bytes) else raw_line
                    if not line.startswith("data: "):
                        continue
                    data = line[6:].strip()
                    if data == "[DONE]":
                        break
                    try:
                        parsed = json.loads(data)
                    except json.JSONDecodeError:
                        continue
                    if not isinstance(parsed, dict):
                        continue
                    if parsed.get("error"):
                        err = parsed["error"]
                        message = err.get("message") if isinstance(err, dict) else str(err)
                        raise requests.HTTPError(message or "upstream stream error")
                    delta = (parsed.get("choices") or [{}])[0].get("delta") or {}
                    token = delta.get("content") or ""
                    if token:
                        yield token
        finally:
            self.close()
