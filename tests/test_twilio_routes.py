from __future__ import annotations

from fastapi.testclient import TestClient

from conftest import FakeRealtime


def test_voice_webhook_connects_stream_to_request_host(app):
    with TestClient(app) as client:
        resp = client.post("/api/twilio/voice", data={"CallSid": "CA111"})

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("application/xml")
    assert "<Say language=\"da-DK\">Du bliver nu forbundet til MyData support.</Say>" in resp.text
    assert "<Connect><Stream url=\"wss://testserver/api/twilio/media-stream\" /></Connect>" in resp.text


def test_voice_webhook_accepts_get(app):
    with TestClient(app) as client:
        resp = client.get("/api/twilio/voice")

    assert resp.status_code == 200
    assert "<Stream url=\"wss://" in resp.text


def test_voice_webhook_prefers_public_base_url(app, monkeypatch):
    from config.settings import get_settings

    monkeypatch.setattr(get_settings(), "public_base_url", "https://abc.ngrok-free.app/")

    with TestClient(app) as client:
        resp = client.post("/api/twilio/voice")

    assert "wss://abc.ngrok-free.app/api/twilio/media-stream" in resp.text


def test_media_stream_relays_greeting_audio(app):
    import api.dependencies as deps

    created: list[FakeRealtime] = []

    def _factory():
        realtime = FakeRealtime(speak_on_greeting=True)
        created.append(realtime)
        return realtime

    app.dependency_overrides[deps.get_realtime_factory] = lambda: _factory
    try:
        with TestClient(app) as client:
            with client.websocket_connect("/api/twilio/media-stream") as ws:
                ws.send_json({"event": "connected", "protocol": "Call", "version": "1.0.0"})
                ws.send_json({"event": "start", "start": {"streamSid": "MZ123", "callSid": "CA123"}})
                media = ws.receive_json()
                mark = ws.receive_json()
                ws.send_json({"event": "mark", "streamSid": "MZ123", "mark": {"name": "ai-response"}})
    finally:
        app.dependency_overrides.clear()

    assert media == {"event": "media", "streamSid": "MZ123", "media": {"payload": "AAA="}}
    assert mark == {"event": "mark", "streamSid": "MZ123", "mark": {"name": "ai-response"}}
    (realtime,) = created
    assert [m["type"] for m in realtime.sent[:2]] == ["session.update", "response.create"]
    assert "MyData Support" in realtime.sent[0]["session"]["instructions"]


def test_media_stream_skips_binary_frame(app):
    import api.dependencies as deps

    app.dependency_overrides[deps.get_realtime_factory] = lambda: (lambda: FakeRealtime(speak_on_greeting=True))
    try:
        with TestClient(app) as client:
            with client.websocket_connect("/api/twilio/media-stream") as ws:
                ws.send_bytes(b"\x00\x01garbage")
                ws.send_json({"event": "start", "start": {"streamSid": "MZ123", "callSid": "CA123"}})
                media = ws.receive_json()
    finally:
        app.dependency_overrides.clear()

    assert media == {"event": "media", "streamSid": "MZ123", "media": {"payload": "AAA="}}


def test_healthz_served_at_root_for_existing_monitors(app):
    with TestClient(app) as client:
        response = client.get("/healthz")
    assert response.status_code == 200
    assert response.text == "ok"
