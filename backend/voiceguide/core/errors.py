class GuideError(Exception):
    """Base class for voice guide failures."""


class AlreadyActive(GuideError):
    """A session is already held; starting another would drop its state."""


class BackendUnavailable(GuideError):
    """The session backend could not be reached or refused the request."""


class PlaybackError(GuideError):
    """Narration failed to start or complete."""


class TelemetryDropped(GuideError):
    """A fire-and-forget backend mirror call failed and was discarded."""
