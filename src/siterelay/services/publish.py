"""Publish generated HTML as a static space on the hosting platform.

Creating a space and overwriting one differ in more than the target name:
only newly created spaces get the attribution footer and a README
descriptor. The two branches are kept apart by the ``Create`` and
``Overwrite`` target variants.
"""

from __future__ import annotations

import logging
import re
from typing import List, Protocol

from ..domain.errors import InvalidRequest, PublishFailure
from ..domain.models import Create, Overwrite, PublishTarget, UploadFile
from ..observability.metrics import PUBLISH_RESULTS


logger = logging.getLogger(__name__)

MAX_SLUG_LENGTH = 96

ATTRIBUTION_SNIPPET = (
    '<p style="border-radius: 8px; text-align: center; font-size: 12px; color: #fff; margin-top: 16px;'
    "position: fixed; left: 8px; bottom: 8px; z-index: 10; background: rgba(0, 0, 0, 0.8); "
    'padding: 4px 8px;">Made with <a href="https://enzostvs-deepsite.hf.space" style="color: #fff;" '
    'target="_blank" >DeepSite</a> <img src="https://enzostvs-deepsite.hf.space/logo.svg" '
    'alt="DeepSite Logo" style="width: 16px; height: 16px; vertical-align: middle;"></p>'
)

README_TEMPLATE = """---
title: {title}
emoji: 🐳
colorFrom: blue
colorTo: blue
sdk: static
pinned: false
tags:
  - siterelay
---

Check out the configuration reference at https://huggingface.co/docs/hub/spaces-config-reference"""


class HostingClient(Protocol):
    def whoami(self) -> str: ...

    def create_space(self, repo_id: str) -> None: ...

    def upload_files(self, repo_id: str, files: List[UploadFile], summary: str) -> None: ...


def slugify(title: str, max_length: int = MAX_SLUG_LENGTH) -> str:
    """``"My Cool App!!"`` -> ``"my-cool-app"``."""
    slug = re.sub(r"[^a-z0-9]+", "-", title.lower()).strip("-")
    return slug[:max_length].strip("-")


def inject_attribution(html: str) -> str:
    return html.replace("</body>", ATTRIBUTION_SNIPPET + "</body>", 1)


def render_readme(slug: str) -> str:
    return README_TEMPLATE.format(title=slug)


def _html_file(html: str) -> UploadFile:
    return UploadFile(path="index.html", content=html.encode("utf-8"), media_type="text/html")


def publish(html: str, target: PublishTarget, hub: HostingClient) -> str:
    """Upload ``html`` to ``target`` and return the space identifier.

    Raises
    ------
    PublishFailure
        If any platform call fails; no local retry is attempted.
    """
    branch = "overwrite" if isinstance(target, Overwrite) else "create"
    try:
        if isinstance(target, Overwrite):
            repo_id = target.identifier
            files = [_html_file(html)]
            summary = "Update index.html"
        elif isinstance(target, Create):
            slug = slugify(target.title)
            if not slug:
                raise InvalidRequest("Title must contain at least one letter or digit")
            namespace = hub.whoami()
            repo_id = f"{namespace}/{slug}"
            hub.create_space(repo_id)
            files = [
                _html_file(inject_attribution(html)),
                UploadFile(path="README.md", content=render_readme(slug).encode("utf-8"), media_type="text/markdown"),
            ]
            summary = "Create space"
        else:
            raise TypeError(f"Unsupported publish target: {target!r}")
        hub.upload_files(repo_id, files, summary=summary)
    except PublishFailure:
        PUBLISH_RESULTS.labels(branch=branch, outcome="failed").inc()
        raise
    PUBLISH_RESULTS.labels(branch=branch, outcome="ok").inc()
    logger.info("Published %s (%s)", repo_id, branch)
    return repo_id
