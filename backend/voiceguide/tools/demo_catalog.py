from __future__ import annotations

from typing import Dict, List, Optional

from voiceguide.models.domain import Itinerary, ItineraryStep, StepType

KRAKOW_DEMO_TRIP_ID = "krakow_demo_trip"


class DemoCatalog:
    def __init__(self) -> None:
        self.catalog: Dict[str, List[dict]] = {
            KRAKOW_DEMO_TRIP_ID: [
                {
                    "step_id": "step-1",
                    "type": StepType.visit,
                    "title": "Main Market Square",
                    "place_id": "rynek-glowny",
                    "lat": 50.0617,
                    "lon": 19.9373,
                    "planned_start": "09:00",
                    "guide_note": (
                        "You are standing on the Main Market Square, one of the "
                        "largest medieval town squares in Europe, laid out in 1257."
                    ),
                },
                {
                    "step_id": "step-2",
                    "type": StepType.visit,
                    "title": "St. Mary's Basilica",
                    "place_id": "kosciol-mariacki",
                    "lat": 50.0616,
                    "lon": 19.9394,
                    "planned_start": "10:00",
                    "guide_note": (
                        "Listen for the hejnal. Every hour a trumpeter plays it from "
                        "the taller tower and stops mid-melody."
                    ),
                },
                {
                    "step_id": "step-3",
                    "type": StepType.transfer,
                    "title": "Walk down Grodzka Street",
                    "planned_start": "11:00",
                },
                {
                    "step_id": "step-4",
                    "type": StepType.visit,
                    "title": "Wawel Royal Castle",
                    "place_id": "wawel",
                    "lat": 50.0540,
                    "lon": 19.9354,
                    "planned_start": "11:30",
                    "guide_note": (
                        "Wawel Hill was the seat of Polish kings for five centuries. "
                        "The cathedral holds the tombs of most of them."
                    ),
                },
                {
                    "step_id": "step-5",
                    "type": StepType.meal,
                    "title": "Lunch in Kazimierz",
                    "place_id": "plac-nowy",
                    "lat": 50.0515,
                    "lon": 19.9447,
                    "planned_start": "13:30",
                    "guide_note": (
                        "Plac Nowy is the heart of Kazimierz. Try a zapiekanka from "
                        "the round market hall."
                    ),
                },
            ],
        }

    def has_trip(self, trip_id: str) -> bool:
        return trip_id in self.catalog

    def lookup_itinerary(self, trip_id: str) -> Optional[Itinerary]:
        steps = self.catalog.get(trip_id)
        if steps is None:
            return None
        return Itinerary(trip_id=trip_id, steps=[ItineraryStep(**s) for s in steps])

    def route(self, trip_id: str) -> List[tuple]:
        """Coordinates of the trip's located steps, in itinerary order."""
        return [
            (s["lat"], s["lon"])
            for s in self.catalog.get(trip_id, [])
            if s.get("lat") is not None and s.get("lon") is not None
        ]
