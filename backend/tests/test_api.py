import pytest
from fastapi.testclient import TestClient

from main import create_app
from voiceguide.remote.client import FunctionNames


@pytest.fixture()
def app():
    return create_app()


@pytest.fixture()
def client(app):
    with TestClient(app) as client:
        yield client


def test_healthcheck(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ok"
    assert body["session_backend"] == "mock"
    assert body["guide_active"] is False


def test_status_without_session(client):
    resp = client.get("/guide/status")

    assert resp.status_code == 200
    body = resp.json()
    assert body["active"] is False
    assert body["session_id"] is None
    assert body["is_playing"] is False


def test_demo_guide_flow(client, app):
    started = client.post("/guide/krakow_demo_trip/start", params={"demo": True})
    assert started.status_code == 200
    assert started.json()["demo"] is True
    assert started.json()["session_id"].startswith("demo-")

    pushed = client.post("/guide/location", json={"lat": 50.0618, "lon": 19.9375})
    assert pushed.status_code == 202
    assert pushed.json() == {"accepted": True}

    status = client.get("/guide/status").json()
    assert status["last_location"]["lat"] == 50.0618
    assert status["current_step"]["step_id"] == "step-1"
    assert status["played_steps"] == ["step-1"]

    ended = client.post("/guide/end")
    assert ended.status_code == 200
    assert ended.json()["active"] is False
    assert app.state.guide_service.coordinator.backend.calls == []


def test_second_start_conflicts(client):
    assert client.post("/guide/trip-42/start").status_code == 200

    resp = client.post("/guide/trip-43/start")

    assert resp.status_code == 409


def test_start_backend_outage_returns_retryable_error(client, app):
    app.state.guide_service.coordinator.backend.failing.add(FunctionNames.CREATE_LIVE_SESSION)

    resp = client.post("/guide/trip-42/start")

    assert resp.status_code == 503
    assert resp.headers["retry-after"] == "5"
    assert client.get("/guide/status").json()["active"] is False


def test_location_rejected_when_not_tracking(client):
    resp = client.post("/guide/location", json={"lat": 50.0618, "lon": 19.9375})

    assert resp.status_code == 202
    assert resp.json() == {"accepted": False}


def test_location_validates_coordinates(client):
    resp = client.post("/guide/location", json={"lat": 120.0, "lon": 19.9375})
    assert resp.status_code == 422


def test_end_without_session_is_noop(client):
    resp = client.post("/guide/end")
    assert resp.status_code == 200
    assert resp.json()["active"] is False


def test_toggle_audio_without_step(client):
    client.post("/guide/trip-42/start")

    resp = client.post("/guide/audio/toggle")

    assert resp.status_code == 200
    assert resp.json()["is_playing"] is False


def test_live_start_with_position(client, app):
    resp = client.post("/guide/trip-42/start", json={"lat": 50.0647, "lon": 19.945})

    assert resp.status_code == 200
    assert resp.json()["last_location"]["lat"] == 50.0647
    coordinator = app.state.guide_service.coordinator
    coordinator.wait_for_telemetry(timeout=5)
    assert coordinator.backend.calls_to(FunctionNames.UPDATE_LIVE_LOCATION) == [
        {"session_id": resp.json()["session_id"], "lat": 50.0647, "lon": 19.945}
    ]
