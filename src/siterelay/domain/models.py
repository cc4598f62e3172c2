from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional, Union

from pydantic import BaseModel

from .errors import InvalidRequest


class GenerationRequest(BaseModel):
    prompt: Optional[str] = None
    html: Optional[str] = None
    previousPrompt: Optional[str] = None

    def validated(self) -> "GenerationRequest":
        if not self.prompt:
            raise InvalidRequest()
        return self


class DeployRequest(BaseModel):
    html: Optional[str] = None
    title: Optional[str] = None
    path: Optional[str] = None

    def to_target(self) -> "PublishTarget":
        """Resolve the request into the create or overwrite variant.

        ``html`` is always required; ``title`` only when a new space is created.
        """
        if not self.html:
            raise InvalidRequest()
        if self.path:
            return Overwrite(identifier=self.path)
        if not self.title:
            raise InvalidRequest()
        return Create(title=self.title)


class DeployResponse(BaseModel):
    ok: bool = True
    path: str


@dataclass(frozen=True)
class Create:
    title: str
    kind: Literal["space"] = "space"


@dataclass(frozen=True)
class Overwrite:
    identifier: str
    kind: Literal["space"] = "space"


PublishTarget = Union[Create, Overwrite]


@dataclass(frozen=True)
class UploadFile:
    """Named blob pushed to the hosting platform."""

    path: str
    content: bytes
    media_type: str
