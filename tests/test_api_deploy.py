from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from siterelay.api.main import app
from siterelay.api.routers import deploy as deploy_router
from siterelay.services.publish import ATTRIBUTION_SNIPPET

from .fakes import FakeHub


HTML = "<html><body><h1>Hi</h1></body></html>"


@pytest.fixture
def hub(monkeypatch):
    fake = FakeHub(namespace="alice")
    tokens = []

    def build(token):
        tokens.append(token)
        return fake

    monkeypatch.setattr(deploy_router, "HubClient", build)
    fake.tokens = tokens
    return fake


def _client():
    return TestClient(app, cookies={"hf_token": "hf_session"})


def test_deploy_requires_session(hub):
    r = TestClient(app).post("/api/deploy", json={"html": HTML, "title": "T"})
    assert r.status_code == 401
    assert r.json() == {"ok": False, "message": "Unauthorized"}
    assert hub.calls == []


@pytest.mark.parametrize("payload", [{"title": "T"}, {"html": HTML}, {"html": "", "title": "T"}])
def test_deploy_missing_fields_makes_no_platform_call(hub, payload):
    r = _client().post("/api/deploy", json=payload)
    assert r.status_code == 400
    assert r.json()["ok"] is False
    assert hub.calls == []


def test_deploy_creates_new_space(hub):
    r = _client().post("/api/deploy", json={"html": HTML, "title": "My Cool App!!"})
    assert r.status_code == 200
    assert r.json() == {"ok": True, "path": "alice/my-cool-app"}
    assert hub.tokens == ["hf_session"]
    _, files, _ = hub.uploads[0]
    assert ATTRIBUTION_SNIPPET in files[0].content.decode("utf-8")
    assert [f.path for f in files] == ["index.html", "README.md"]
    assert hub.closed


def test_deploy_overwrites_existing_space(hub):
    r = _client().post("/api/deploy", json={"html": HTML, "title": "ignored", "path": "alice/site"})
    assert r.status_code == 200
    assert r.json() == {"ok": True, "path": "alice/site"}
    assert hub.calls == [("upload_files", "alice/site")]
    assert hub.uploads[0][1][0].content == HTML.encode("utf-8")


def test_deploy_platform_error_is_reported(hub):
    hub.fail_on = "upload_files"
    r = _client().post("/api/deploy", json={"html": HTML, "title": "T"})
    assert r.status_code == 500
    assert r.json() == {"ok": False, "message": "upload_files rejected by platform"}


def test_deploy_closes_hub_client_when_platform_fails(monkeypatch):
    fake = FakeHub(fail_on="create_space")
    monkeypatch.setattr(deploy_router, "HubClient", lambda token: fake)
    r = _client().post("/api/deploy", json={"html": HTML, "title": "T"})
    assert r.status_code == 500
    assert fake.closed
