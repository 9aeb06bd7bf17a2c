from __future__ import annotations

import itertools
import logging
import math
import threading
import time
from typing import Callable, Iterable, List, Optional, Protocol, Tuple

from voiceguide.models.domain import GeoFix

logger = logging.getLogger(__name__)

LocationCallback = Callable[[GeoFix], None]

EARTH_RADIUS_M = 6371000.0


def calculate_distance(a: GeoFix, b: GeoFix) -> float:
    """Haversine distance between two fixes, in metres."""
    lat1 = math.radians(a.lat)
    lat2 = math.radians(b.lat)
    d_lat = math.radians(b.lat - a.lat)
    d_lon = math.radians(b.lon - a.lon)
    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


class LocationSource(Protocol):
    """Push-based stream of fixes. Only one subscriber at a time."""

    def start(self, callback: LocationCallback) -> bool:
        ...

    def stop(self) -> None:
        ...

    @property
    def is_tracking(self) -> bool:
        ...


class PushLocationSource:
    """Fixes handed in from outside (a phone posting its GPS readings)."""

    def __init__(self) -> None:
        self._callback: Optional[LocationCallback] = None

    @property
    def is_tracking(self) -> bool:
        return self._callback is not None

    def start(self, callback: LocationCallback) -> bool:
        self._callback = callback
        logger.info("Location tracking started")
        return True

    def stop(self) -> None:
        if self._callback is not None:
            self._callback = None
            logger.info("Location tracking stopped")

    def push(self, fix: GeoFix) -> bool:
        if self._callback is None:
            return False
        self._callback(fix)
        return True


class ReplayLocationSource:
    """
    Replays a fixed route on a background thread, one fix every ``interval_s``.
    With ``loop=True`` the route repeats forever. The source can be stopped
    and started again; every start replays from the first point.
    """

    def __init__(
        self,
        route: Iterable[Tuple[float, float]],
        interval_s: float = 5.0,
        loop: bool = False,
    ):
        self.route: List[Tuple[float, float]] = list(route)
        self.interval_s = interval_s
        self.loop = loop
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

    @property
    def is_tracking(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self, callback: LocationCallback) -> bool:
        if not self.route:
            logger.warning("Replay route is empty, nothing to track")
            return False
        self.stop()
        self._stop_event = threading.Event()
        self._thread = threading.Thread(
            target=self._run,
            args=(callback, self._stop_event),
            name="location-replay",
            daemon=True,
        )
        self._thread.start()
        logger.info("Replaying %d route points every %.1fs", len(self.route), self.interval_s)
        return True

    def _run(self, callback: LocationCallback, stop_event: threading.Event) -> None:
        points = itertools.cycle(self.route) if self.loop else iter(self.route)
        for lat, lon in points:
            if stop_event.is_set():
                return
            try:
                callback(GeoFix(lat=lat, lon=lon))
            except Exception as exc:  # noqa: BLE001
                logger.error("Location callback failed: %s", exc)
            if stop_event.wait(self.interval_s):
                return

    def stop(self) -> None:
        self._stop_event.set()
        thread = self._thread
        self._thread = None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self.interval_s + 1.0)


class ThrottledLocationSource:
    """
    Wraps another source and only forwards a fix once both the minimum time
    and the minimum displacement since the last forwarded fix are exceeded.
    The first fix after start always goes through.
    """

    def __init__(
        self,
        inner: LocationSource,
        min_interval_s: float = 5.0,
        min_distance_m: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.inner = inner
        self.min_interval_s = min_interval_s
        self.min_distance_m = min_distance_m
        self.clock = clock
        self._last_fix: Optional[GeoFix] = None
        self._last_time: Optional[float] = None
        self.dropped = 0

    @property
    def is_tracking(self) -> bool:
        return self.inner.is_tracking

    def start(self, callback: LocationCallback) -> bool:
        self._last_fix = None
        self._last_time = None

        def _throttled(fix: GeoFix) -> None:
            if not self._should_deliver(fix):
                self.dropped += 1
                return
            self._last_fix = fix
            self._last_time = self.clock()
            callback(fix)

        return self.inner.start(_throttled)

    def _should_deliver(self, fix: GeoFix) -> bool:
        if self._last_fix is None or self._last_time is None:
            return True
        if self.clock() - self._last_time < self.min_interval_s:
            return False
        return calculate_distance(self._last_fix, fix) >= self.min_distance_m

    def stop(self) -> None:
        self.inner.stop()
