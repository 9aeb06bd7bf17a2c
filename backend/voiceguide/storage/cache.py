import time
from dataclasses import dataclass
from typing import Callable, Generic, Optional, TypeVar

T = TypeVar("T")

# Seconds
CACHE_TTL = {
    "trips": 5 * 60.0,
}


@dataclass
class CachedData(Generic[T]):
    data: T
    timestamp: float
    ttl: float


def create_cache(
    data: T, ttl: float, clock: Callable[[], float] = time.monotonic
) -> CachedData[T]:
    return CachedData(data=data, timestamp=clock(), ttl=ttl)


def is_cache_valid(
    cached: Optional[CachedData], clock: Callable[[], float] = time.monotonic
) -> bool:
    if cached is None:
        return False
    return clock() - cached.timestamp < cached.ttl


def remaining_ttl(
    cached: Optional[CachedData], clock: Callable[[], float] = time.monotonic
) -> float:
    if cached is None:
        return 0.0
    remaining = cached.ttl - (clock() - cached.timestamp)
    return remaining if remaining > 0 else 0.0
