from __future__ import annotations

from typing import AbstractSet, Iterable, Optional

from voiceguide.models.domain import CurrentStep, GeoFix, ItineraryStep
from voiceguide.tools.location_tool import calculate_distance


def is_near_step(step: Optional[CurrentStep], threshold_m: float = 100.0) -> bool:
    if step is None or step.distance_m is None:
        return False
    return step.distance_m <= threshold_m


class StepProximityEvaluator:
    """
    The current step is the narrated step nearest to the walker. It becomes
    eligible for autoplay inside the trigger radius, unless it was already
    played in this session.
    """

    def __init__(self, trigger_radius_m: float = 100.0):
        self.trigger_radius_m = trigger_radius_m

    def current_step(
        self,
        steps: Iterable[ItineraryStep],
        fix: Optional[GeoFix],
        played: AbstractSet[str],
    ) -> Optional[CurrentStep]:
        if fix is None:
            return None

        nearest: Optional[ItineraryStep] = None
        nearest_distance = 0.0
        for step in steps:
            if not step.has_location or not step.has_narration:
                continue
            distance = calculate_distance(fix, GeoFix(lat=step.lat, lon=step.lon))
            if nearest is None or distance < nearest_distance:
                nearest = step
                nearest_distance = distance

        if nearest is None:
            return None
        already_played = nearest.step_id in played
        return CurrentStep(
            step_id=nearest.step_id,
            trigger_audio_now=nearest_distance <= self.trigger_radius_m and not already_played,
            autoplay_already_triggered=already_played,
            place_id=nearest.place_id,
            distance_m=round(nearest_distance, 1),
            narration=nearest.guide_note,
        )
