from __future__ import annotations

"""Simple in-memory, per-caller request counting for anonymous generation.

The store is a plain process-wide dict. Routes mutate it from the event loop
inside ``async`` handlers, so increments never interleave. Entries are never
expired; ``reset_rate_limits`` is the only way to clear them.
"""

import logging
import os
from typing import Dict

from starlette.requests import Request

from ..domain.errors import RateLimitExceeded


logger = logging.getLogger(__name__)

_LIMIT_STORE: Dict[str, int] = {}


def client_identifier(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop
    return request.client.host if request.client else "unknown"


def rate_limit_action(
    identifier: str,
    *,
    limit_env: str = "RATE_LIMIT_MAX_REQUESTS",
    default_limit: int = 4,
) -> int:
    """Count one request for ``identifier`` and return the new count.

    Raises:
        RateLimitExceeded once the count goes past the configured limit.
    """

    if _rate_limiting_disabled():
        return 0

    limit = _env_int(limit_env, default_limit)
    count = _LIMIT_STORE.get(identifier, 0) + 1
    _LIMIT_STORE[identifier] = count
    if count > limit:
        logger.info("Rate limit reached for %s (%d > %d)", identifier, count, limit)
        raise RateLimitExceeded()
    return count


def request_count(identifier: str) -> int:
    return _LIMIT_STORE.get(identifier, 0)


def _env_int(name: str, default: int) -> int:
    if not name:
        return default
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = int(raw)
        return value if value > 0 else default
    except ValueError:
        return default


def _rate_limiting_disabled() -> bool:
    flag = os.getenv("SITERELAY_RATE_LIMIT_DISABLED")
    return bool(flag and flag.lower() in {"1", "true", "yes", "on"})


def reset_rate_limits() -> None:
    """Clear in-memory counters (useful for tests)."""

    _LIMIT_STORE.clear()
