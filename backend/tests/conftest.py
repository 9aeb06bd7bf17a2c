from typing import List, Optional

import pytest

from voiceguide.core.errors import PlaybackError
from voiceguide.guide.coordinator import GuideSessionCoordinator
from voiceguide.remote.mock_backend import InMemorySessionBackend


class FakePlayer:
    """Holds on to callbacks so tests decide when narration finishes."""

    def __init__(self) -> None:
        self.spoken: List[str] = []
        self.stops = 0
        self._on_done = None
        self._on_error = None

    def speak(self, text, on_start=None, on_done=None, on_error=None) -> None:
        self.spoken.append(text)
        self._on_done = on_done
        self._on_error = on_error

    def finish(self) -> None:
        on_done, self._on_done, self._on_error = self._on_done, None, None
        on_done()

    def fail(self, error: Optional[Exception] = None) -> None:
        on_error, self._on_done, self._on_error = self._on_error, None, None
        on_error(error or PlaybackError("tts crashed"))

    def stop(self) -> None:
        self.stops += 1
        self._on_done = None
        self._on_error = None

    def is_speaking(self) -> bool:
        return self._on_done is not None


@pytest.fixture()
def backend() -> InMemorySessionBackend:
    return InMemorySessionBackend(user_id="u1")


@pytest.fixture()
def player() -> FakePlayer:
    return FakePlayer()


@pytest.fixture()
def coordinator(backend, player):
    coordinator = GuideSessionCoordinator(backend=backend, player=player, user_id="u1")
    yield coordinator
    coordinator.close()
