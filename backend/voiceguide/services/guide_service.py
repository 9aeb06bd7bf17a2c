import asyncio
import logging
from typing import Optional

from voiceguide.core.config import settings
from voiceguide.guide.coordinator import GuideSessionCoordinator
from voiceguide.models.domain import CurrentStep, GeoFix, Itinerary, NarrationDecision
from voiceguide.models.schemas import GuideStatusSchema
from voiceguide.remote.backends.callable_backend import CallableSessionBackend
from voiceguide.remote.client import SessionBackend
from voiceguide.remote.mock_backend import InMemorySessionBackend
from voiceguide.storage.repository import InMemoryRepository
from voiceguide.tools.demo_catalog import KRAKOW_DEMO_TRIP_ID, DemoCatalog
from voiceguide.tools.location_tool import (
    LocationSource,
    PushLocationSource,
    ReplayLocationSource,
    ThrottledLocationSource,
)
from voiceguide.tools.proximity_tool import StepProximityEvaluator
from voiceguide.tools.speech_tool import (
    EspeakNarrationPlayer,
    LoggingNarrationPlayer,
    NarrationPlayer,
)

logger = logging.getLogger(__name__)


def build_session_backend() -> SessionBackend:
    if settings.session_backend.lower() == "callable":
        return CallableSessionBackend()
    return InMemorySessionBackend()


def build_narration_player() -> NarrationPlayer:
    if settings.narration_player.lower() == "espeak":
        return EspeakNarrationPlayer()
    return LoggingNarrationPlayer()


def build_location_source(feed: Optional[PushLocationSource] = None) -> LocationSource:
    if settings.location_source.lower() == "replay":
        inner: LocationSource = ReplayLocationSource(
            DemoCatalog().route(KRAKOW_DEMO_TRIP_ID),
            interval_s=settings.replay_interval_s,
        )
    else:
        inner = feed or PushLocationSource()
    return ThrottledLocationSource(
        inner,
        min_interval_s=settings.location_min_interval_s,
        min_distance_m=settings.location_min_distance_m,
    )


class GuideService:
    """
    Runs a voice guide walkthrough the way the guide screen does: opens the
    session, feeds location fixes into the coordinator, checks autoplay on a
    timer and on every fix, and tears everything down on stop.
    """

    def __init__(
        self,
        coordinator: GuideSessionCoordinator,
        repository: InMemoryRepository,
        location_source: LocationSource,
        evaluator: Optional[StepProximityEvaluator] = None,
        poll_interval_s: Optional[float] = None,
    ):
        self.coordinator = coordinator
        self.repository = repository
        self.location_source = location_source
        self.evaluator = evaluator or StepProximityEvaluator(settings.trigger_radius_m)
        self.poll_interval_s = (
            poll_interval_s if poll_interval_s is not None else settings.autoplay_poll_interval_s
        )
        self.itinerary: Optional[Itinerary] = None
        self.current_step: Optional[CurrentStep] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._poll_task: Optional[asyncio.Task] = None

    async def start(
        self, trip_id: str, demo: bool = False, initial_fix: Optional[GeoFix] = None
    ) -> GuideStatusSchema:
        """Open the session and begin tracking.

        ``initial_fix`` is the one-shot position taken before tracking starts;
        live sessions report it to the backend right away. Demo sessions
        default to the configured demo position.
        """
        self._bind_loop()
        itinerary = self.repository.get_itinerary(trip_id)
        if demo:
            self.coordinator.start_demo_session(trip_id)
            initial_fix = initial_fix or GeoFix(lat=settings.demo_lat, lon=settings.demo_lon)
        else:
            await self.coordinator.start_session(trip_id)
        if initial_fix is not None:
            self.coordinator.ingest_location(initial_fix)
        self._begin_walkthrough(itinerary)
        return self.status()

    async def restore(self, trip_id: str) -> GuideStatusSchema:
        self._bind_loop()
        session = await self.coordinator.restore_session(trip_id)
        if session is not None:
            self._begin_walkthrough(self.repository.get_itinerary(trip_id))
        return self.status()

    def _bind_loop(self) -> None:
        self._loop = asyncio.get_running_loop()
        self.coordinator.bind_dispatcher(self._loop.call_soon_threadsafe)

    def _begin_walkthrough(self, itinerary: Itinerary) -> None:
        self.itinerary = itinerary
        self.current_step = None
        if not self.location_source.start(self._on_fix):
            logger.warning("Location tracking unavailable, the guide may not follow the walk")
        self._start_polling()
        self.check_autoplay()

    def _on_fix(self, fix: GeoFix) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self._handle_fix, fix)

    def _handle_fix(self, fix: GeoFix) -> None:
        self.coordinator.ingest_location(fix)
        self.check_autoplay()

    def _start_polling(self) -> None:
        if self._poll_task is not None:
            return
        self._poll_task = asyncio.get_running_loop().create_task(self._poll())

    async def _poll(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval_s)
            self.check_autoplay()

    async def _stop_polling(self) -> None:
        task = self._poll_task
        self._poll_task = None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    def check_autoplay(self) -> NarrationDecision:
        steps = self.itinerary.steps if self.itinerary else []
        self.current_step = self.evaluator.current_step(
            steps, self.coordinator.last_location, self.coordinator.played_steps
        )
        decision = self.coordinator.evaluate_autoplay(self.current_step)
        if decision.should_speak and self.current_step.narration:
            self.coordinator.begin_playback(self.current_step.step_id, self.current_step.narration)
        return decision

    def toggle_audio(self) -> GuideStatusSchema:
        self.coordinator.toggle_manual_playback(self.current_step)
        return self.status()

    def status(self) -> GuideStatusSchema:
        return GuideStatusSchema.from_domain(
            self.coordinator.session,
            self.coordinator.playback,
            current_step=self.current_step,
            telemetry_dropped=self.coordinator.telemetry_dropped,
        )

    async def stop(self) -> GuideStatusSchema:
        self.location_source.stop()
        self.coordinator.stop_playback()
        await self._stop_polling()
        await self.coordinator.end_session()
        self.itinerary = None
        self.current_step = None
        return self.status()

    async def shutdown(self) -> None:
        await self.stop()
        self.coordinator.close()
