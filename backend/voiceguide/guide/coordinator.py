"""
Voice guide session coordinator.

Single owner of the live walkthrough state: whether a session is active, the
walker's last known position, which narrations were already spoken and what
is playing right now. Screens drive it; the session backend, the location
source and the narration player are injected collaborators.

Backend mirror calls for locations and played narrations are fire-and-forget:
they run on a single telemetry worker (so they reach the backend in order),
failures are logged and counted, and local state never waits on them.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Optional

from voiceguide.core.config import settings
from voiceguide.core.errors import AlreadyActive, BackendUnavailable, PlaybackError, TelemetryDropped
from voiceguide.models.domain import (
    CurrentStep,
    DemoSession,
    GeoFix,
    LiveSession,
    NarrationDecision,
    PlaybackState,
    Session,
    SessionStatus,
)
from voiceguide.remote.client import SessionBackend
from voiceguide.tools.speech_tool import NarrationPlayer

logger = logging.getLogger(__name__)

Dispatcher = Callable[..., None]


def _call_now(fn: Callable, *args) -> None:
    fn(*args)


class GuideSessionCoordinator:
    def __init__(
        self,
        backend: SessionBackend,
        player: NarrationPlayer,
        user_id: Optional[str] = None,
        dispatch: Optional[Dispatcher] = None,
    ):
        self.backend = backend
        self.player = player
        self.user_id = user_id or settings.default_user_id
        self._dispatch: Dispatcher = dispatch or _call_now
        self._session: Optional[Session] = None
        self._playback = PlaybackState()
        self._telemetry = ThreadPoolExecutor(max_workers=1, thread_name_prefix="guide-telemetry")
        self._telemetry_lock = threading.Lock()
        self._closed = False
        self.telemetry_dropped = 0

    # ------------------------------------------------------------------
    # Read-only views

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def is_active(self) -> bool:
        return self._session is not None and self._session.is_active

    @property
    def playback(self) -> PlaybackState:
        return self._playback

    @property
    def last_location(self) -> Optional[GeoFix]:
        return self._session.last_location if self._session else None

    @property
    def played_steps(self) -> frozenset:
        return frozenset(self._session.played_steps) if self._session else frozenset()

    def bind_dispatcher(self, dispatch: Dispatcher) -> None:
        """Route player callbacks through ``dispatch`` (e.g. loop.call_soon_threadsafe)."""
        self._dispatch = dispatch

    # ------------------------------------------------------------------
    # Session lifecycle

    async def start_session(self, trip_id: str) -> str:
        if self._session is not None:
            raise AlreadyActive(f"Session {self._session.session_id} is still active")
        try:
            session_id = await asyncio.to_thread(self.backend.create_session, trip_id)
        except BackendUnavailable as exc:
            logger.error("Could not start guide session for trip %s: %s", trip_id, exc)
            raise
        self._session = LiveSession(session_id=session_id, trip_id=trip_id, user_id=self.user_id)
        self._playback = PlaybackState()
        logger.info("Guide session %s started for trip %s", session_id, trip_id)
        return session_id

    def start_demo_session(self, trip_id: str) -> str:
        if self._session is not None:
            raise AlreadyActive(f"Session {self._session.session_id} is still active")
        session_id = f"demo-{int(time.time() * 1000)}"
        self._session = DemoSession(session_id=session_id, trip_id=trip_id, user_id=self.user_id)
        self._playback = PlaybackState()
        logger.info("Demo guide session %s started for trip %s", session_id, trip_id)
        return session_id

    async def restore_session(self, trip_id: str) -> Optional[Session]:
        if self._session is not None:
            raise AlreadyActive(f"Session {self._session.session_id} is still active")
        try:
            record = await asyncio.to_thread(self.backend.get_session, trip_id)
        except BackendUnavailable as exc:
            logger.warning("Could not restore guide session for trip %s: %s", trip_id, exc)
            return None
        if record is None or record.status != SessionStatus.active:
            return None
        self._session = LiveSession(
            session_id=record.id,
            trip_id=record.trip_id,
            user_id=record.user_id,
            status=record.status,
            last_location=record.last_location.to_domain() if record.last_location else None,
            played_steps=set(record.autoplayed_steps),
            created_at=record.created_at,
            updated_at=record.updated_at,
        )
        self._playback = PlaybackState()
        logger.info("Restored guide session %s for trip %s", record.id, trip_id)
        return self._session

    async def end_session(self) -> None:
        session = self._session
        if session is None:
            return
        # Detach first so a second end_session call is a no-op even while the
        # backend round-trip is still in flight.
        session.status = SessionStatus.ended
        self._session = None
        self._playback = PlaybackState()

        if session.reports_to_backend:
            try:
                # Same worker as the mirror calls, so queued updates land first.
                await asyncio.wrap_future(
                    self._submit_telemetry(self.backend.end_session, session.session_id)
                )
            except Exception as exc:  # noqa: BLE001
                logger.warning("Ending session %s on the backend failed: %s", session.session_id, exc)
        logger.info("Guide session %s ended", session.session_id)

    # ------------------------------------------------------------------
    # Location

    def ingest_location(self, fix: GeoFix) -> None:
        session = self._session
        if session is None:
            return
        session.record_location(fix)
        if session.reports_to_backend:
            self._send_telemetry(
                "updateLocation", self.backend.update_location, session.session_id, fix.lat, fix.lon
            )

    # ------------------------------------------------------------------
    # Autoplay

    def evaluate_autoplay(self, current_step: Optional[CurrentStep]) -> NarrationDecision:
        session = self._session
        if session is None or not session.is_active:
            return NarrationDecision(False, "no_session")
        if current_step is None:
            return NarrationDecision(False, "no_step")
        step_id = current_step.step_id
        if not current_step.trigger_audio_now:
            return NarrationDecision(False, "not_eligible", step_id)
        if self._playback.is_playing:
            return NarrationDecision(False, "already_playing", step_id)
        if current_step.autoplay_already_triggered or session.has_played(step_id):
            return NarrationDecision(False, "already_played", step_id)
        return NarrationDecision(True, "speak", step_id)

    # ------------------------------------------------------------------
    # Playback

    def begin_playback(self, step_id: str, text: str) -> None:
        if self._playback.is_playing:
            raise PlaybackError(f"Narration {self._playback.step_id} is still playing")
        self._playback = PlaybackState(step_id=step_id)
        logger.info("Narration started for step %s", step_id)
        self.player.speak(
            text,
            on_done=lambda: self._dispatch(self.on_playback_done, step_id),
            on_error=lambda exc=None: self._dispatch(self.on_playback_error, step_id, exc),
        )

    def on_playback_done(self, step_id: str) -> None:
        if self._playback.step_id != step_id:
            logger.debug("Ignoring stale completion for step %s", step_id)
            return
        self._playback = PlaybackState()
        session = self._session
        if session is None:
            return
        if session.record_played(step_id) and session.reports_to_backend:
            self._send_telemetry(
                "markAutoplayed", self.backend.mark_autoplayed, session.session_id, step_id
            )
        logger.info("Narration finished for step %s", step_id)

    def on_playback_error(self, step_id: str, error: Optional[Exception] = None) -> None:
        if self._playback.step_id != step_id:
            logger.debug("Ignoring stale playback error for step %s", step_id)
            return
        self._playback = PlaybackState()
        logger.warning("Narration failed for step %s: %s", step_id, error or PlaybackError("unknown"))

    def toggle_manual_playback(self, step: Optional[CurrentStep]) -> bool:
        """Stop the narration if one plays, otherwise replay the step's note.

        Returns True when narration is playing after the call.
        """
        if self._playback.is_playing:
            self.stop_playback()
            return False
        if step is None or not step.narration:
            return False
        self.begin_playback(step.step_id, step.narration)
        return self._playback.is_playing

    def stop_playback(self) -> None:
        if self._playback.is_playing:
            logger.info("Narration stopped for step %s", self._playback.step_id)
        self.player.stop()
        self._playback = PlaybackState()

    # ------------------------------------------------------------------
    # Telemetry

    def _submit_telemetry(self, fn: Callable, *args) -> Future:
        if self._closed:
            raise TelemetryDropped("telemetry worker is closed")
        return self._telemetry.submit(fn, *args)

    def _send_telemetry(self, label: str, fn: Callable, *args) -> None:
        try:
            future = self._submit_telemetry(fn, *args)
        except TelemetryDropped as exc:
            self._count_dropped(label, exc)
            return
        future.add_done_callback(lambda f: self._telemetry_done(label, f))

    def _telemetry_done(self, label: str, future: Future) -> None:
        exc = future.exception()
        if exc is not None:
            self._count_dropped(label, exc)

    def _count_dropped(self, label: str, exc: BaseException) -> None:
        with self._telemetry_lock:
            self.telemetry_dropped += 1
        logger.warning("%s", TelemetryDropped(f"{label} failed: {exc}"))

    def wait_for_telemetry(self, timeout: Optional[float] = None) -> None:
        """Block until in-flight mirror calls and their logging have finished."""
        # The worker is single-threaded, so a no-op queued last completes only
        # after every earlier call and its done callback.
        if self._closed:
            return
        self._telemetry.submit(lambda: None).result(timeout=timeout)

    def close(self) -> None:
        self._closed = True
        self._telemetry.shutdown(wait=True)
