from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from voiceguide.models.domain import (
    CurrentStep,
    GeoFix,
    Itinerary,
    ItineraryStep,
    PlaybackState,
    Session,
    SessionStatus,
    StepType,
)


# Callable function payloads


class CreateLiveSessionRequest(BaseModel):
    trip_id: str


class CreateLiveSessionResponse(BaseModel):
    session_id: str


class UpdateLiveLocationRequest(BaseModel):
    session_id: str
    lat: float
    lon: float


class MarkLiveStepAutoplayedRequest(BaseModel):
    session_id: str
    step_id: str


class EndLiveSessionRequest(BaseModel):
    session_id: str


class GetLiveSessionRequest(BaseModel):
    trip_id: str


class SuccessResponse(BaseModel):
    success: bool = True


class GeoFixSchema(BaseModel):
    lat: float = Field(..., ge=-90.0, le=90.0)
    lon: float = Field(..., ge=-180.0, le=180.0)
    timestamp: Optional[datetime] = None

    @classmethod
    def from_domain(cls, obj: GeoFix) -> "GeoFixSchema":
        return cls(lat=obj.lat, lon=obj.lon, timestamp=obj.timestamp)

    def to_domain(self) -> GeoFix:
        if self.timestamp is None:
            return GeoFix(lat=self.lat, lon=self.lon)
        return GeoFix(lat=self.lat, lon=self.lon, timestamp=self.timestamp)


class LiveSessionRecord(BaseModel):
    id: str
    trip_id: str
    user_id: str
    status: SessionStatus
    last_location: Optional[GeoFixSchema] = None
    autoplayed_steps: List[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class GetLiveSessionResponse(BaseModel):
    session: Optional[LiveSessionRecord] = None


# Itinerary files


class ItineraryStepSchema(BaseModel):
    step_id: str
    type: StepType = StepType.visit
    title: str
    place_id: Optional[str] = None
    lat: Optional[float] = None
    lon: Optional[float] = None
    guide_note: Optional[str] = None
    planned_start: Optional[str] = None

    def to_domain(self) -> ItineraryStep:
        return ItineraryStep(**self.model_dump())


class ItinerarySchema(BaseModel):
    trip_id: str
    steps: List[ItineraryStepSchema] = Field(default_factory=list)

    def to_domain(self) -> Itinerary:
        return Itinerary(trip_id=self.trip_id, steps=[s.to_domain() for s in self.steps])


# Guide control surface


class LocationUpdate(BaseModel):
    lat: float = Field(..., ge=-90.0, le=90.0)
    lon: float = Field(..., ge=-180.0, le=180.0)


class LocationAccepted(BaseModel):
    accepted: bool


class CurrentStepSchema(BaseModel):
    step_id: str
    trigger_audio_now: bool
    autoplay_already_triggered: bool
    place_id: Optional[str] = None
    distance_m: Optional[float] = None

    @classmethod
    def from_domain(cls, obj: CurrentStep) -> "CurrentStepSchema":
        return cls(
            step_id=obj.step_id,
            trigger_audio_now=obj.trigger_audio_now,
            autoplay_already_triggered=obj.autoplay_already_triggered,
            place_id=obj.place_id,
            distance_m=obj.distance_m,
        )


class GuideStatusSchema(BaseModel):
    active: bool
    session_id: Optional[str] = None
    trip_id: Optional[str] = None
    demo: bool = False
    last_location: Optional[GeoFixSchema] = None
    played_steps: List[str] = Field(default_factory=list)
    is_playing: bool = False
    current_audio_step_id: Optional[str] = None
    current_step: Optional[CurrentStepSchema] = None
    telemetry_dropped: int = 0

    @classmethod
    def from_domain(
        cls,
        session: Optional[Session],
        playback: PlaybackState,
        current_step: Optional[CurrentStep] = None,
        telemetry_dropped: int = 0,
    ) -> "GuideStatusSchema":
        if session is None:
            return cls(
                active=False,
                is_playing=playback.is_playing,
                current_audio_step_id=playback.step_id,
                telemetry_dropped=telemetry_dropped,
            )
        return cls(
            active=session.is_active,
            session_id=session.session_id,
            trip_id=session.trip_id,
            demo=session.is_demo,
            last_location=(
                GeoFixSchema.from_domain(session.last_location)
                if session.last_location
                else None
            ),
            played_steps=sorted(session.played_steps),
            is_playing=playback.is_playing,
            current_audio_step_id=playback.step_id,
            current_step=(
                CurrentStepSchema.from_domain(current_step) if current_step else None
            ),
            telemetry_dropped=telemetry_dropped,
        )
