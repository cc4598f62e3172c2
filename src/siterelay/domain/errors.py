from __future__ import annotations

"""Error taxonomy shared by the relay and publish components.

Every failure of an external call is caught at the boundary of the component
that made it and re-raised as one of these kinds. The API layer renders them
as ``{"ok": false, "message": ...}`` with the mapped status code.
"""

from typing import Any, Dict, Optional


TOKEN_LIMIT_HINT = (
    "You probably reached the MAX_TOKENS limit, context is too long. "
    "You can start a new conversation by refreshing the page."
)


class RelayError(Exception):
    status_code: int = 500
    default_message: str = "Internal error"

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_payload(self) -> Dict[str, Any]:
        return {"ok": False, "message": self.message}


class InvalidRequest(RelayError):
    status_code = 400
    default_message = "Missing required fields"


class NoAvailableCredential(RelayError):
    status_code = 500
    default_message = "No available inference API key."


class UpstreamGenerationFailure(RelayError):
    status_code = 500
    default_message = TOKEN_LIMIT_HINT


class PublishFailure(RelayError):
    status_code = 500
    default_message = "Publishing failed"


class AuthFailure(RelayError):
    status_code = 401
    default_message = "Unauthorized"


class RateLimitExceeded(RelayError):
    status_code = 429
    default_message = "Log In to continue using the service"

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        payload["openLogin"] = True
        return payload


def mask_credential(credential: str) -> str:
    """Return a log-safe rendering of an API key."""
    if not credential:
        return "<empty>"
    if len(credential) <= 8:
        return "***"
    return f"{credential[:3]}...{credential[-4:]}"
