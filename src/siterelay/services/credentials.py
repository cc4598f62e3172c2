"""Credential pool and sequential failover for the inference gateway.

Credentials are tried one at a time in priority order; probes never run
concurrently.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Callable, Iterator, Mapping, Optional, Tuple

import requests

from ..domain.errors import NoAvailableCredential
from ..observability.metrics import FAILOVER_ATTEMPTS
from .inference import InferenceClient, InferenceSettings


logger = logging.getLogger(__name__)

CREDENTIAL_ENV_VARS: Tuple[str, ...] = (
    "OPENROUTER_API_KEY_1",
    "OPENROUTER_API_KEY_2",
    "OPENROUTER_API_KEY_3",
    "OPENROUTER_API_KEY_4",
)


@dataclass(frozen=True)
class CredentialPool:
    """Ordered, immutable set of interchangeable API keys. Order is priority."""

    credentials: Tuple[str, ...] = ()

    @staticmethod
    def from_env(env: Optional[Mapping[str, str]] = None) -> "CredentialPool":
        source = os.environ if env is None else env
        values = ((source.get(name) or "").strip() for name in CREDENTIAL_ENV_VARS)
        return CredentialPool(credentials=tuple(v for v in values if v))

    def __iter__(self) -> Iterator[str]:
        return iter(self.credentials)

    def __len__(self) -> int:
        return len(self.credentials)


ClientFactory = Callable[[str], InferenceClient]


def client_factory(settings: Optional[InferenceSettings] = None) -> ClientFactory:
    resolved = settings or InferenceSettings.from_env()

    def build(credential: str) -> InferenceClient:
        return InferenceClient(api_key=credential, settings=resolved)

    return build


class FailoverProber:
    def __init__(self, pool: CredentialPool, factory: Optional[ClientFactory] = None) -> None:
        self.pool = pool
        self._factory = factory or client_factory()

    def get_working_client(self) -> InferenceClient:
        """Return a client bound to the first credential whose probe succeeds.

        Raises
        ------
        NoAvailableCredential
            If the pool is empty or every probe fails.
        """
        for index, credential in enumerate(self.pool, start=1):
            client = self._factory(credential)
            try:
                client.list_models()
            except (requests.RequestException, ValueError) as exc:
                FAILOVER_ATTEMPTS.labels(outcome="failed").inc()
                logger.warning("API key %d failed, trying next... (%s)", index, exc)
                client.close()
                continue
            FAILOVER_ATTEMPTS.labels(outcome="ok").inc()
            if index > 1:
                logger.info("Using API key %d after %d failed probe(s)", index, index - 1)
            return client
        raise NoAvailableCredential()
