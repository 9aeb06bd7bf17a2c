from typing import Optional, Protocol

from voiceguide.models.schemas import LiveSessionRecord


class FunctionNames:
    CREATE_LIVE_SESSION = "createLiveSession"
    UPDATE_LIVE_LOCATION = "updateLiveLocation"
    MARK_LIVE_STEP_AUTOPLAYED = "markLiveStepAutoplayed"
    END_LIVE_SESSION = "endLiveSession"
    GET_LIVE_SESSION = "getLiveSession"


class SessionBackend(Protocol):
    """
    Remote session store behind the voice guide. Every call is an independent
    request/response; implementations raise BackendUnavailable on network or
    server errors and never retry.
    """

    def create_session(self, trip_id: str) -> str:
        ...

    def update_location(self, session_id: str, lat: float, lon: float) -> None:
        ...

    def mark_autoplayed(self, session_id: str, step_id: str) -> None:
        ...

    def end_session(self, session_id: str) -> None:
        ...

    def get_session(self, trip_id: str) -> Optional[LiveSessionRecord]:
        ...
