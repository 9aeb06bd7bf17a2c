from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import ClassVar, List, Optional, Set


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionStatus(str, Enum):
    active = "active"
    ended = "ended"


class StepType(str, Enum):
    visit = "visit"
    transfer = "transfer"
    meal = "meal"
    accommodation = "accommodation"
    relax = "relax"


@dataclass(frozen=True)
class GeoFix:
    lat: float
    lon: float
    timestamp: datetime = field(default_factory=utcnow)


@dataclass
class Session:
    session_id: str
    trip_id: str
    user_id: str
    status: SessionStatus = SessionStatus.active
    last_location: Optional[GeoFix] = None
    played_steps: Set[str] = field(default_factory=set)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    reports_to_backend: ClassVar[bool] = True

    @property
    def is_active(self) -> bool:
        return self.status == SessionStatus.active

    @property
    def is_demo(self) -> bool:
        return not self.reports_to_backend

    def has_played(self, step_id: str) -> bool:
        return step_id in self.played_steps

    def record_played(self, step_id: str) -> bool:
        """Add a step to the played set. Returns False if it was already there."""
        if step_id in self.played_steps:
            return False
        self.played_steps.add(step_id)
        self.updated_at = utcnow()
        return True

    def record_location(self, fix: GeoFix) -> None:
        self.last_location = fix
        self.updated_at = utcnow()


@dataclass
class LiveSession(Session):
    """Session created by the backend; every change is mirrored to it."""


@dataclass
class DemoSession(Session):
    """Locally synthesized session for offline walkthroughs."""

    reports_to_backend: ClassVar[bool] = False


@dataclass
class ItineraryStep:
    step_id: str
    type: StepType
    title: str
    place_id: Optional[str] = None
    lat: Optional[float] = None
    lon: Optional[float] = None
    guide_note: Optional[str] = None
    planned_start: Optional[str] = None

    @property
    def has_location(self) -> bool:
        return self.lat is not None and self.lon is not None

    @property
    def has_narration(self) -> bool:
        return bool(self.guide_note and self.guide_note.strip())


@dataclass
class CurrentStep:
    step_id: str
    trigger_audio_now: bool = False
    autoplay_already_triggered: bool = False
    place_id: Optional[str] = None
    distance_m: Optional[float] = None
    narration: Optional[str] = None


@dataclass(frozen=True)
class NarrationDecision:
    should_speak: bool
    reason: str
    step_id: Optional[str] = None


@dataclass(frozen=True)
class PlaybackState:
    step_id: Optional[str] = None

    @property
    def is_playing(self) -> bool:
        return self.step_id is not None


@dataclass
class Itinerary:
    trip_id: str
    steps: List[ItineraryStep] = field(default_factory=list)
