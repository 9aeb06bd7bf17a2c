import json
from pathlib import Path

import pytest

from voiceguide.models.domain import Itinerary, ItineraryStep, StepType
from voiceguide.storage.cache import CACHE_TTL, create_cache, is_cache_valid, remaining_ttl
from voiceguide.storage.repository import InMemoryRepository


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


def test_cache_expires_after_ttl():
    clock = FakeClock()
    cached = create_cache(["trip"], ttl=300, clock=clock)

    clock.now += 120
    assert is_cache_valid(cached, clock)
    assert remaining_ttl(cached, clock) == 180

    clock.now += 180
    assert not is_cache_valid(cached, clock)
    assert remaining_ttl(cached, clock) == 0.0
    assert not is_cache_valid(None)


def test_itinerary_loaded_from_json_file(tmp_path: Path):
    (tmp_path / "gdansk.json").write_text(
        json.dumps(
            {
                "steps": [
                    {
                        "step_id": "s1",
                        "title": "Long Market",
                        "lat": 54.3487,
                        "lon": 18.6530,
                        "guide_note": "Neptune's Fountain has stood here since 1633.",
                    },
                    {"step_id": "s2", "type": "transfer", "title": "Walk to the crane"},
                ]
            }
        ),
        encoding="utf-8",
    )
    repository = InMemoryRepository(store_path=tmp_path)

    itinerary = repository.get_itinerary("gdansk")

    assert [s.step_id for s in itinerary.steps] == ["s1", "s2"]
    assert itinerary.steps[0].type == StepType.visit
    assert itinerary.steps[0].has_narration
    assert itinerary.steps[1].type == StepType.transfer


def test_itinerary_served_from_cache_until_expiry(tmp_path: Path):
    clock = FakeClock()
    path = tmp_path / "trip-1.json"
    path.write_text(json.dumps({"steps": [{"step_id": "a", "title": "A"}]}), encoding="utf-8")
    repository = InMemoryRepository(store_path=tmp_path, ttl=60, clock=clock)

    first = repository.get_itinerary("trip-1")
    path.write_text(json.dumps({"steps": [{"step_id": "b", "title": "B"}]}), encoding="utf-8")
    clock.now += 30
    assert repository.get_itinerary("trip-1") is first

    clock.now += 31
    assert [s.step_id for s in repository.get_itinerary("trip-1").steps] == ["b"]


def test_invalidate_forces_reload(tmp_path: Path):
    repository = InMemoryRepository(store_path=tmp_path)
    repository.save_itinerary(
        Itinerary(trip_id="t", steps=[ItineraryStep(step_id="x", type=StepType.relax, title="Rest")])
    )

    repository.invalidate("t")

    assert repository.get_itinerary("t").steps == []


def test_demo_catalog_and_unknown_trip(tmp_path: Path):
    repository = InMemoryRepository(store_path=tmp_path)

    assert len(repository.get_itinerary("krakow_demo_trip").steps) == 5
    assert repository.get_itinerary("nowhere").steps == []


@pytest.mark.parametrize(
    "content",
    [b"{not json", b"\xff\xfe{}", b"[1, 2]", b"{\"steps\": [{\"title\": \"no id\"}]}"],
)
def test_broken_itinerary_file_is_ignored(tmp_path: Path, content: bytes):
    (tmp_path / "broken.json").write_bytes(content)
    repository = InMemoryRepository(store_path=tmp_path)

    assert repository.get_itinerary("broken").steps == []


def test_unreadable_itinerary_path_falls_back_to_catalog(tmp_path: Path):
    # a directory with the trip file name is not an itinerary
    (tmp_path / "krakow_demo_trip.json").mkdir()
    repository = InMemoryRepository(store_path=tmp_path)

    assert len(repository.get_itinerary("krakow_demo_trip").steps) == 5


def test_itinerary_cache_defaults_to_trip_ttl(tmp_path: Path):
    assert InMemoryRepository(store_path=tmp_path).ttl == CACHE_TTL["trips"]
