from __future__ import annotations

import logging
from typing import Optional, Type, TypeVar

import requests
from pydantic import BaseModel, ValidationError

from voiceguide.core.config import settings
from voiceguide.core.errors import BackendUnavailable
from voiceguide.models.schemas import (
    CreateLiveSessionRequest,
    CreateLiveSessionResponse,
    EndLiveSessionRequest,
    GetLiveSessionRequest,
    GetLiveSessionResponse,
    LiveSessionRecord,
    MarkLiveStepAutoplayedRequest,
    SuccessResponse,
    UpdateLiveLocationRequest,
)
from voiceguide.remote.client import FunctionNames, SessionBackend

logger = logging.getLogger(__name__)

ResponseT = TypeVar("ResponseT", bound=BaseModel)


class CallableSessionBackend(SessionBackend):
    """
    Session backend speaking the HTTPS callable-function protocol: each
    function is a POST to ``{base_url}/{name}`` with the request wrapped in
    ``{"data": ...}``; successful replies carry ``{"result": ...}`` and
    failures ``{"error": {"status": ..., "message": ...}}``.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        id_token: Optional[str] = None,
        timeout: Optional[float] = None,
        http: Optional[requests.Session] = None,
    ):
        self.base_url = (base_url or settings.functions_base_url).rstrip("/")
        self.id_token = id_token if id_token is not None else settings.functions_id_token
        self.timeout = timeout if timeout is not None else settings.request_timeout_s
        self.http = http or requests.Session()

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.id_token:
            headers["Authorization"] = f"Bearer {self.id_token}"
        return headers

    def _call(
        self, name: str, request: BaseModel, response_model: Type[ResponseT]
    ) -> ResponseT:
        url = f"{self.base_url}/{name}"
        try:
            resp = self.http.post(
                url,
                json={"data": request.model_dump(mode="json")},
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.error("Callable %s request failed: %s", name, exc)
            raise BackendUnavailable(f"{name} request failed: {exc}") from exc

        try:
            body = resp.json() if resp.content else {}
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            logger.error("Callable %s returned a non-object body: %r", name, body)
            raise BackendUnavailable(f"{name} returned a malformed reply")
        if resp.status_code >= 400 or "error" in body:
            error = body.get("error") or {}
            if not isinstance(error, dict):
                error = {"message": str(error)}
            message = error.get("message") or resp.reason or "unknown error"
            status = error.get("status") or resp.status_code
            logger.error("Callable %s returned %s: %s", name, status, message)
            raise BackendUnavailable(f"{name} failed ({status}): {message}")

        try:
            return response_model.model_validate(body.get("result") or {})
        except ValidationError as exc:
            logger.error("Callable %s returned an unexpected payload: %s", name, body)
            raise BackendUnavailable(f"{name} returned an invalid result") from exc

    def create_session(self, trip_id: str) -> str:
        result = self._call(
            FunctionNames.CREATE_LIVE_SESSION,
            CreateLiveSessionRequest(trip_id=trip_id),
            CreateLiveSessionResponse,
        )
        return result.session_id

    def update_location(self, session_id: str, lat: float, lon: float) -> None:
        self._call(
            FunctionNames.UPDATE_LIVE_LOCATION,
            UpdateLiveLocationRequest(session_id=session_id, lat=lat, lon=lon),
            SuccessResponse,
        )

    def mark_autoplayed(self, session_id: str, step_id: str) -> None:
        self._call(
            FunctionNames.MARK_LIVE_STEP_AUTOPLAYED,
            MarkLiveStepAutoplayedRequest(session_id=session_id, step_id=step_id),
            SuccessResponse,
        )

    def end_session(self, session_id: str) -> None:
        self._call(
            FunctionNames.END_LIVE_SESSION,
            EndLiveSessionRequest(session_id=session_id),
            SuccessResponse,
        )

    def get_session(self, trip_id: str) -> Optional[LiveSessionRecord]:
        result = self._call(
            FunctionNames.GET_LIVE_SESSION,
            GetLiveSessionRequest(trip_id=trip_id),
            GetLiveSessionResponse,
        )
        return result.session
