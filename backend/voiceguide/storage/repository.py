from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Callable, Dict, Optional

from pydantic import ValidationError

from voiceguide.core.config import settings
from voiceguide.models.domain import Itinerary
from voiceguide.models.schemas import ItinerarySchema
from voiceguide.storage.cache import CachedData, create_cache, is_cache_valid, remaining_ttl
from voiceguide.tools.demo_catalog import DemoCatalog

logger = logging.getLogger(__name__)


class InMemoryRepository:
    """
    Itineraries per trip, cached for ``ttl`` seconds. On a miss the trip is
    read from ``<store_path>/<trip_id>.json`` and then from the demo catalog.
    """

    def __init__(
        self,
        store_path: str | Path | None = None,
        ttl: Optional[float] = None,
        catalog: Optional[DemoCatalog] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.store_path = Path(store_path or settings.itinerary_path)
        self.ttl = ttl if ttl is not None else settings.itinerary_cache_ttl_s
        self.catalog = catalog or DemoCatalog()
        self.clock = clock
        self.itineraries: Dict[str, CachedData[Itinerary]] = {}

    def save_itinerary(self, itinerary: Itinerary) -> Itinerary:
        self.itineraries[itinerary.trip_id] = create_cache(itinerary, self.ttl, self.clock)
        return itinerary

    def get_itinerary(self, trip_id: str) -> Itinerary:
        cached = self.itineraries.get(trip_id)
        if is_cache_valid(cached, self.clock):
            logger.debug(
                "Using cached itinerary for %s, %.0fs left",
                trip_id,
                remaining_ttl(cached, self.clock),
            )
            return cached.data

        itinerary = self._load_file(trip_id) or self.catalog.lookup_itinerary(trip_id)
        if itinerary is None:
            logger.warning("No itinerary found for trip %s", trip_id)
            itinerary = Itinerary(trip_id=trip_id)
        return self.save_itinerary(itinerary)

    def invalidate(self, trip_id: Optional[str] = None) -> None:
        if trip_id is None:
            self.itineraries.clear()
        else:
            self.itineraries.pop(trip_id, None)

    def _load_file(self, trip_id: str) -> Optional[Itinerary]:
        path = self.store_path / f"{trip_id}.json"
        if not path.is_file():
            return None
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
            schema = ItinerarySchema.model_validate({"trip_id": trip_id, **raw})
        except (OSError, ValueError, TypeError, ValidationError) as exc:
            logger.warning("Ignoring unreadable itinerary %s: %s", path, exc)
            return None
        logger.info("Loaded %d steps for trip %s from %s", len(schema.steps), trip_id, path)
        return schema.to_domain()
