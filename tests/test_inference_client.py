from __future__ import annotations

import json

import pytest
import requests

from siterelay.services.inference import InferenceClient, InferenceSettings


class StubStreamResponse:
    def __init__(self, lines, status_code=200):
        self._lines = lines
        self.status_code = status_code
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.closed = True
        return False

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error")

    def iter_lines(self):
        for line in self._lines:
            yield line.encode("utf-8")


def _chunk(text):
    return "data: " + json.dumps({"choices": [{"delta": {"content": text}}]})


SETTINGS = InferenceSettings(base_url="https://gateway.test/v1", model="test-model")


def test_stream_chat_parses_sse_until_done(monkeypatch):
    client = InferenceClient("sk-test-key-1234", SETTINGS)
    resp = StubStreamResponse([_chunk("<html>"), "", ": keep-alive", _chunk(""), _chunk("</html>"), "data: [DONE]", _chunk("late")])
    captured = {}

    def fake_post(url, **kwargs):
        captured["url"] = url
        captured.update(kwargs)
        return resp

    monkeypatch.setattr(client._session, "post", fake_post)
    out = list(client.stream_chat([{"role": "user", "content": "hi"}]))

    assert out == ["<html>", "</html>"]
    assert captured["url"] == "https://gateway.test/v1/chat/completions"
    assert captured["json"] == {"model": "test-model", "messages": [{"role": "user", "content": "hi"}], "stream": True}
    assert captured["stream"] is True
    assert captured["headers"]["Authorization"] == "Bearer sk-test-key-1234"
    assert captured["headers"]["X-Title"] == "SiteRelay"
    assert resp.closed


def test_stream_chat_raises_on_http_error(monkeypatch):
    client = InferenceClient("k", SETTINGS)
    monkeypatch.setattr(client._session, "post", lambda url, **kw: StubStreamResponse([], status_code=413))
    with pytest.raises(requests.HTTPError):
        list(client.stream_chat([]))


def test_stream_chat_raises_on_in_band_error(monkeypatch):
    client = InferenceClient("k", SETTINGS)
    lines = ["data: " + json.dumps({"error": {"message": "context length exceeded"}})]
    monkeypatch.setattr(client._session, "post", lambda url, **kw: StubStreamResponse(lines))
    with pytest.raises(requests.HTTPError, match="context length exceeded"):
        list(client.stream_chat([]))


def test_list_models_probe(monkeypatch):
    client = InferenceClient("k", SETTINGS)

    class Resp:
        status_code = 200

        def raise_for_status(self):
            pass

        def json(self):
            return {"data": [{"id": "a"}, {"id": "b"}]}

    seen = {}

    def fake_get(url, **kwargs):
        seen["url"] = url
        return Resp()

    monkeypatch.setattr(client._session, "get", fake_get)
    assert client.list_models() == ["a", "b"]
    assert seen["url"] == "https://gateway.test/v1/models"


def test_repr_masks_key():
    client = InferenceClient("sk-or-v1-abcdefghijkl", SETTINGS)
    assert "abcdefgh" not in repr(client)
    assert "ijkl" in repr(client)


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("INFERENCE_BASE_URL", "https://proxy.test/v1/")
    monkeypatch.setenv("INFERENCE_MODEL", "other/model")
    monkeypatch.setenv("INFERENCE_READ_TIMEOUT", "not-a-number")
    settings = InferenceSettings.from_env()
    assert settings.base_url == "https://proxy.test/v1"
    assert settings.model == "other/model"
    assert settings.read_timeout == 120


@pytest.mark.parametrize("payload", [["a", "b"], None, {"data": "nope"}])
def test_list_models_rejects_unexpected_payload(monkeypatch, payload):
    client = InferenceClient("k", SETTINGS)

    class Resp:
        status_code = 200

        def raise_for_status(self):
            pass

        def json(self):
            return payload

    monkeypatch.setattr(client._session, "get", lambda url, **kw: Resp())
    with pytest.raises(ValueError):
        client.list_models()


def test_stream_chat_closes_session_when_consumer_stops_early(monkeypatch):
    client = InferenceClient("k", SETTINGS)
    resp = StubStreamResponse([_chunk("<html>"), _chunk("<body>"), "data: [DONE]"])
    closed = []
    monkeypatch.setattr(client._session, "post", lambda url, **kw: resp)
    monkeypatch.setattr(client._session, "close", lambda: closed.append(True))

    stream = client.stream_chat([])
    assert next(stream) == "<html>"
    stream.close()
    assert resp.closed
    assert closed == [True]
