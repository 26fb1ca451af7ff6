"""
HTTP Surface Tests
==================

Runs the FastAPI app against the synthetic source and the mock backend.
"""

import pytest
from fastapi import WebSocketDisconnect
from fastapi.testclient import TestClient

from ad_narrator import main
from ad_narrator.completion.client import DEFAULT_MOCK_NARRATIONS


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setattr(main.settings.source, "backend", "synthetic")
    monkeypatch.setattr(main.settings.source, "synthetic_fps", 20.0)
    monkeypatch.setattr(main.settings.completion, "backend", "mock")
    monkeypatch.setattr(main.settings.completion, "mock_delay_seconds", 0.0)
    with TestClient(main.app) as test_client:
        yield test_client


def test_root(client):
    response = client.get("/")
    assert response.status_code == 200
    body = response.json()
    assert body["service"] == "Ad Narrator"
    assert body["source_backend"] == "synthetic"
    assert body["completion_backend"] == "mock"


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_ready_while_session_runs(client):
    response = client.get("/ready")
    assert response.status_code == 200
    assert response.json()["status"] == "ready"


def test_narration_snapshot(client):
    response = client.get("/narration")
    assert response.status_code == 200
    body = response.json()
    assert set(body) >= {"text", "state", "in_flight", "context", "prompt_mode"}
    assert body["state"] in ("IDLE", "SENDING")


def test_switch_prompt_mode(client):
    response = client.put("/narration/mode", json={"mode": "english"})
    assert response.status_code == 200
    assert response.json() == {"prompt_mode": "english"}
    assert client.get("/narration").json()["prompt_mode"] == "english"


def test_switch_prompt_mode_rejects_unknown(client):
    response = client.put("/narration/mode", json={"mode": "klingon"})
    assert response.status_code == 422


def test_metrics(client):
    body = client.get("/metrics").json()
    assert "cycles_started" in body
    assert "buffer" in body
    assert "frames_received" in body


def test_websocket_pushes_narration(client):
    with client.websocket_connect("/ws/narration") as websocket:
        first = websocket.receive_json()
        assert "text" in first and "timestamp" in first

        update = websocket.receive_json()
        assert any(n.startswith(update["text"]) for n in DEFAULT_MOCK_NARRATIONS)


def test_websocket_closed_when_narration_closes(client):
    with client.websocket_connect("/ws/narration") as websocket:
        websocket.receive_json()
        client.portal.call(main.get_controller().close)

        with pytest.raises(WebSocketDisconnect) as exc_info:
            for _ in range(100):
                websocket.receive_json()

    assert exc_info.value.code == 1001


def test_openai_backend_without_key_fails_fast(monkeypatch):
    monkeypatch.setattr(main.settings.completion, "backend", "openai")
    monkeypatch.setattr(main.settings.completion, "api_key_env", "ADNARRATOR_MISSING_KEY")
    monkeypatch.delenv("ADNARRATOR_MISSING_KEY", raising=False)

    from ad_narrator.completion.client import CompletionError

    with pytest.raises(CompletionError):
        main.create_completion_client()
