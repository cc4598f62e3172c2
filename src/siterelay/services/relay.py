"""Streaming relay for single-document HTML generation.

The relay forwards every fragment from the upstream completion as soon as it
arrives and stops consuming once the accumulated text contains the closing
document tag, even if the model keeps generating past it.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterator, List, Optional

from ..domain.errors import UpstreamGenerationFailure
from ..domain.models import GenerationRequest
from ..observability.metrics import GENERATION_STOPS
from .credentials import CredentialPool, FailoverProber


logger = logging.getLogger(__name__)

SYSTEM_INSTRUCTION = (
    "ONLY USE HTML, CSS AND JAVASCRIPT. If you want to use ICON make sure to import the library first. "
    "Try to create the best UI possible by using only HTML, CSS and JAVASCRIPT. "
    "Also, try to ellaborate as much as you can, to create something unique. "
    "ALWAYS GIVE THE RESPONSE INTO A SINGLE HTML FILE"
)
END_MARKER = "</html>"


def build_messages(request: GenerationRequest) -> List[Dict[str, str]]:
    """Order is system, previous prompt, current html, new prompt."""
    messages: List[Dict[str, str]] = [{"role": "system", "content": SYSTEM_INSTRUCTION}]
    if request.previousPrompt:
        messages.append({"role": "user", "content": request.previousPrompt})
    if request.html:
        messages.append({"role": "assistant", "content": f"The current code is: {request.html}."})
    messages.append({"role": "user", "content": request.prompt or ""})
    return messages


def relay_fragments(fragments: Iterator[str], marker: str = END_MARKER) -> Iterator[str]:
    """Forward fragments until the buffer first contains ``marker``.

    Closing this generator closes ``fragments`` as well.
    """
    buffer = ""
    try:
        for fragment in fragments:
            # Only the tail can complete a marker that was not there before.
            scan_from = max(0, len(buffer) - len(marker) + 1)
            buffer += fragment
            yield fragment
            if marker in buffer[scan_from:]:
                GENERATION_STOPS.labels(reason="marker").inc()
                logger.info("Complete document received after %d chars; stopping stream", len(buffer))
                return
        GENERATION_STOPS.labels(reason="exhausted").inc()
    finally:
        close = getattr(fragments, "close", None)
        if close is not None:
            close()


def _resume(first: str, rest: Iterator[str]) -> Iterator[str]:
    try:
        yield first
        yield from rest
    except Exception:
        # Output already reached the caller; the stream just ends.
        GENERATION_STOPS.labels(reason="error").inc()
        logger.exception("Upstream generation failed mid-stream; closing output")
    finally:
        rest.close()


class StreamingRelay:
    def __init__(self, prober: FailoverProber) -> None:
        self.prober = prober

    def start(self, request: GenerationRequest) -> Iterator[str]:
        """Validate, pick a credential and pull the first fragment.

        Everything that can fail before output is sent fails here, so the
        caller can still answer with a structured error. The returned
        iterator never raises.

        Raises
        ------
        InvalidRequest
            If ``prompt`` is missing. No network call is made.
        NoAvailableCredential
            If no credential passes its probe.
        UpstreamGenerationFailure
            If the completion fails before producing any text.
        """
        request.validated()
        client = self.prober.get_working_client()
        stream = relay_fragments(client.stream_chat(build_messages(request)))
        first: Optional[str]
        try:
            first = next(stream)
        except StopIteration:
            first = None
        except Exception as exc:
            GENERATION_STOPS.labels(reason="error").inc()
            logger.exception("Upstream generation failed before any output")
            raise UpstreamGenerationFailure() from exc
        if first is None:
            return iter(())
        return _resume(first, stream)


_RELAY: Optional[StreamingRelay] = None


def get_relay() -> StreamingRelay:
    """Process-wide relay; the credential pool is read from the environment once."""
    global _RELAY
    if _RELAY is None:
        _RELAY = StreamingRelay(FailoverProber(CredentialPool.from_env()))
    return _RELAY
