import logging
from typing import Dict, List, Optional, Set, Tuple
from uuid import uuid4

from voiceguide.core.config import settings
from voiceguide.core.errors import BackendUnavailable
from voiceguide.models.domain import GeoFix, SessionStatus, utcnow
from voiceguide.models.schemas import GeoFixSchema, LiveSessionRecord
from voiceguide.remote.client import FunctionNames, SessionBackend

logger = logging.getLogger(__name__)


class InMemorySessionBackend(SessionBackend):
    """
    A deterministic backend that keeps live sessions in process. Every call is
    recorded in ``calls`` and any function listed in ``failing`` raises
    BackendUnavailable, which lets offline runs and tests simulate an outage.
    """

    def __init__(self, user_id: Optional[str] = None) -> None:
        self.user_id = user_id or settings.default_user_id
        self.sessions: Dict[str, LiveSessionRecord] = {}
        self.calls: List[Tuple[str, dict]] = []
        self.failing: Set[str] = set()

    def _record(self, name: str, **payload) -> None:
        self.calls.append((name, payload))
        if name in self.failing:
            raise BackendUnavailable(f"{name} unavailable")

    def calls_to(self, name: str) -> List[dict]:
        return [payload for call, payload in self.calls if call == name]

    def _require(self, session_id: str) -> LiveSessionRecord:
        record = self.sessions.get(session_id)
        if record is None:
            raise BackendUnavailable(f"Session {session_id} not found")
        return record

    def create_session(self, trip_id: str) -> str:
        self._record(FunctionNames.CREATE_LIVE_SESSION, trip_id=trip_id)
        now = utcnow()
        record = LiveSessionRecord(
            id=str(uuid4()),
            trip_id=trip_id,
            user_id=self.user_id,
            status=SessionStatus.active,
            created_at=now,
            updated_at=now,
        )
        self.sessions[record.id] = record
        logger.info("Created live session %s for trip %s", record.id, trip_id)
        return record.id

    def update_location(self, session_id: str, lat: float, lon: float) -> None:
        self._record(
            FunctionNames.UPDATE_LIVE_LOCATION, session_id=session_id, lat=lat, lon=lon
        )
        record = self._require(session_id)
        record.last_location = GeoFixSchema.from_domain(GeoFix(lat=lat, lon=lon))
        record.updated_at = utcnow()

    def mark_autoplayed(self, session_id: str, step_id: str) -> None:
        self._record(
            FunctionNames.MARK_LIVE_STEP_AUTOPLAYED, session_id=session_id, step_id=step_id
        )
        record = self._require(session_id)
        if step_id not in record.autoplayed_steps:
            record.autoplayed_steps.append(step_id)
        record.updated_at = utcnow()

    def end_session(self, session_id: str) -> None:
        self._record(FunctionNames.END_LIVE_SESSION, session_id=session_id)
        record = self._require(session_id)
        record.status = SessionStatus.ended
        record.updated_at = utcnow()

    def get_session(self, trip_id: str) -> Optional[LiveSessionRecord]:
        self._record(FunctionNames.GET_LIVE_SESSION, trip_id=trip_id)
        for record in self.sessions.values():
            if record.trip_id == trip_id and record.status == SessionStatus.active:
                return record
        return None
