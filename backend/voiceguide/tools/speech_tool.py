from __future__ import annotations

import logging
import subprocess
import threading
from typing import Callable, List, Optional, Protocol

from voiceguide.core.config import settings
from voiceguide.core.errors import PlaybackError

logger = logging.getLogger(__name__)

Callback = Optional[Callable[[], None]]
ErrorCallback = Optional[Callable[[Exception], None]]


class NarrationPlayer(Protocol):
    """Text-to-speech output. At most one utterance plays at a time."""

    def speak(
        self,
        text: str,
        on_start: Callback = None,
        on_done: Callback = None,
        on_error: ErrorCallback = None,
    ) -> None:
        ...

    def stop(self) -> None:
        ...

    def is_speaking(self) -> bool:
        ...


def _safe(callback: Optional[Callable], *args) -> None:
    if callback is None:
        return
    try:
        callback(*args)
    except Exception as exc:  # noqa: BLE001
        logger.error("Narration callback failed: %s", exc)


class LoggingNarrationPlayer(NarrationPlayer):
    """
    Offline player: logs the text and reports completion straight away.
    Keeps every utterance in ``spoken`` so demos can show what was narrated.
    """

    def __init__(self) -> None:
        self.spoken: List[str] = []

    def speak(
        self,
        text: str,
        on_start: Callback = None,
        on_done: Callback = None,
        on_error: ErrorCallback = None,
    ) -> None:
        if not text or not text.strip():
            _safe(on_error, PlaybackError("Empty guide note"))
            return
        _safe(on_start)
        logger.info("Narrating: %s", text)
        self.spoken.append(text)
        _safe(on_done)

    def stop(self) -> None:
        return None

    def is_speaking(self) -> bool:
        return False


class EspeakNarrationPlayer(NarrationPlayer):
    """
    Speaks through a command line TTS engine (espeak-ng by default). Each
    utterance runs in its own subprocess on a worker thread; callbacks fire
    from that thread. Stopping an utterance fires neither done nor error.
    """

    def __init__(
        self,
        command: Optional[str] = None,
        voice: Optional[str] = None,
        rate: Optional[int] = None,
        timeout_s: float = 300.0,
    ):
        self.command = command or settings.tts_command
        self.voice = voice or settings.tts_voice
        self.rate = rate or settings.tts_rate
        self.timeout_s = timeout_s
        self._lock = threading.Lock()
        self._process: Optional[subprocess.Popen] = None
        self._generation = 0

    def _build_command(self, text: str) -> List[str]:
        return [self.command, "-v", self.voice, "-s", str(self.rate), text]

    def speak(
        self,
        text: str,
        on_start: Callback = None,
        on_done: Callback = None,
        on_error: ErrorCallback = None,
    ) -> None:
        if not text or not text.strip():
            _safe(on_error, PlaybackError("Empty guide note"))
            return
        self.stop()
        with self._lock:
            self._generation += 1
            generation = self._generation
        thread = threading.Thread(
            target=self._run,
            args=(text, generation, on_start, on_done, on_error),
            name="narration",
            daemon=True,
        )
        thread.start()

    def _run(
        self,
        text: str,
        generation: int,
        on_start: Callback,
        on_done: Callback,
        on_error: ErrorCallback,
    ) -> None:
        try:
            process = subprocess.Popen(
                self._build_command(text),
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
            )
        except OSError as exc:
            logger.error("Could not start TTS command %s: %s", self.command, exc)
            _safe(on_error, PlaybackError(f"TTS unavailable: {exc}"))
            return

        with self._lock:
            if generation != self._generation:
                process.kill()
                return
            self._process = process
        _safe(on_start)

        try:
            _, stderr = process.communicate(timeout=self.timeout_s)
        except subprocess.TimeoutExpired:
            process.kill()
            process.communicate()
            stderr = b"timed out"

        with self._lock:
            stopped = generation != self._generation
            if self._process is process:
                self._process = None
        if stopped:
            return
        if process.returncode == 0:
            _safe(on_done)
        else:
            message = (stderr or b"").decode("utf-8", errors="ignore").strip()
            logger.error("TTS exited with %s: %s", process.returncode, message)
            _safe(on_error, PlaybackError(message or f"TTS exit code {process.returncode}"))

    def stop(self) -> None:
        with self._lock:
            self._generation += 1
            process = self._process
            self._process = None
        if process is not None and process.poll() is None:
            process.terminate()

    def is_speaking(self) -> bool:
        with self._lock:
            return self._process is not None and self._process.poll() is None
