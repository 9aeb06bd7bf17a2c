import json

import pytest
import requests

from voiceguide.core.errors import BackendUnavailable
from voiceguide.guide.coordinator import GuideSessionCoordinator
from voiceguide.models.domain import SessionStatus
from voiceguide.remote.backends.callable_backend import CallableSessionBackend


class FakeResponse:
    def __init__(self, status_code: int, body=None, reason: str = "OK"):
        self.status_code = status_code
        self.reason = reason
        self.content = json.dumps(body).encode() if body is not None else b""
        self._body = body

    def json(self):
        return self._body


class FakeHttp:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def post(self, url, json=None, headers=None, timeout=None):
        self.requests.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def make_backend(*responses, id_token="token-123"):
    http = FakeHttp(*responses)
    backend = CallableSessionBackend(
        base_url="https://functions.example.test/", id_token=id_token, timeout=3, http=http
    )
    return backend, http


def test_create_session_posts_callable_envelope():
    backend, http = make_backend(FakeResponse(200, {"result": {"session_id": "s-1"}}))

    assert backend.create_session("trip-42") == "s-1"

    sent = http.requests[0]
    assert sent["url"] == "https://functions.example.test/createLiveSession"
    assert sent["json"] == {"data": {"trip_id": "trip-42"}}
    assert sent["headers"]["Authorization"] == "Bearer token-123"
    assert sent["timeout"] == 3


def test_no_authorization_header_without_token():
    backend, http = make_backend(FakeResponse(200, {"result": {"success": True}}), id_token="")

    backend.end_session("s-1")

    assert "Authorization" not in http.requests[0]["headers"]


def test_update_location_and_mark_autoplayed_payloads():
    backend, http = make_backend(
        FakeResponse(200, {"result": {"success": True}}),
        FakeResponse(200, {"result": {"success": True}}),
    )

    backend.update_location("s-1", 50.0647, 19.945)
    backend.mark_autoplayed("s-1", "step-1")

    assert http.requests[0]["url"].endswith("/updateLiveLocation")
    assert http.requests[0]["json"] == {"data": {"session_id": "s-1", "lat": 50.0647, "lon": 19.945}}
    assert http.requests[1]["url"].endswith("/markLiveStepAutoplayed")
    assert http.requests[1]["json"] == {"data": {"session_id": "s-1", "step_id": "step-1"}}


def test_get_session_parses_record():
    record = {
        "id": "s-1",
        "trip_id": "trip-42",
        "user_id": "u1",
        "status": "active",
        "last_location": {"lat": 50.06, "lon": 19.94, "timestamp": "2025-05-01T10:00:00Z"},
        "autoplayed_steps": ["step-1"],
        "created_at": "2025-05-01T09:00:00Z",
        "updated_at": "2025-05-01T10:00:00Z",
    }
    backend, _ = make_backend(FakeResponse(200, {"result": {"session": record}}))

    session = backend.get_session("trip-42")

    assert session.id == "s-1"
    assert session.status == SessionStatus.active
    assert session.autoplayed_steps == ["step-1"]
    assert session.last_location.lat == 50.06


def test_get_session_returns_none_when_absent():
    backend, _ = make_backend(FakeResponse(200, {"result": {"session": None}}))
    assert backend.get_session("trip-42") is None


@pytest.mark.parametrize(
    "response",
    [
        requests.ConnectionError("connection refused"),
        requests.Timeout("read timed out"),
        FakeResponse(500, {"error": {"status": "INTERNAL", "message": "boom"}}, reason="Server Error"),
        FakeResponse(200, {"error": {"status": "UNAVAILABLE", "message": "try later"}}),
        FakeResponse(502, None, reason="Bad Gateway"),
        FakeResponse(200, {"result": {"unexpected": True}}),
        FakeResponse(200, ["session_id", "s-1"]),
        FakeResponse(200, "ok"),
        FakeResponse(200, {"error": "boom"}),
    ],
)
def test_failures_map_to_backend_unavailable(response):
    backend, _ = make_backend(response)

    with pytest.raises(BackendUnavailable):
        backend.create_session("trip-42")


def test_null_body_maps_to_backend_unavailable():
    response = FakeResponse(200)
    response.content = b"null"
    backend, _ = make_backend(response)

    with pytest.raises(BackendUnavailable):
        backend.end_session("s-1")


@pytest.mark.asyncio
async def test_malformed_reply_keeps_coordinator_idle(player):
    backend, _ = make_backend(FakeResponse(200, "ok"), FakeResponse(200, {"error": "boom"}))
    coordinator = GuideSessionCoordinator(backend=backend, player=player, user_id="u1")

    with pytest.raises(BackendUnavailable):
        await coordinator.start_session("trip-42")
    assert await coordinator.restore_session("trip-42") is None
    assert not coordinator.is_active
    coordinator.close()
