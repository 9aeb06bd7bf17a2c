from functools import lru_cache

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from voiceguide.storage.cache import CACHE_TTL


class Settings(BaseSettings):
    model_config = SettingsConfigDict(case_sensitive=False, extra="ignore")

    app_name: str = "Voice Guide Session Service"
    environment: str = Field("local", validation_alias="ENVIRONMENT")
    default_user_id: str = Field("demo-user", validation_alias="DEFAULT_USER_ID")
    log_level: str = Field("INFO", validation_alias="LOG_LEVEL")

    # Session backend: "mock" keeps everything in-process, "callable" talks to
    # the deployed HTTPS callable functions.
    session_backend: str = Field("mock", validation_alias="SESSION_BACKEND")
    functions_base_url: str = Field(
        "http://localhost:5001/demo-project/europe-central2",
        validation_alias="FUNCTIONS_BASE_URL",
    )
    functions_id_token: str | None = Field(None, validation_alias="FUNCTIONS_ID_TOKEN")
    request_timeout_s: float = Field(10.0, validation_alias="REQUEST_TIMEOUT_S")

    location_source: str = Field("push", validation_alias="LOCATION_SOURCE")
    location_min_interval_s: float = Field(5.0, validation_alias="LOCATION_MIN_INTERVAL_S")
    location_min_distance_m: float = Field(10.0, validation_alias="LOCATION_MIN_DISTANCE_M")
    replay_interval_s: float = Field(5.0, validation_alias="REPLAY_INTERVAL_S")

    trigger_radius_m: float = Field(100.0, validation_alias="TRIGGER_RADIUS_M")
    autoplay_poll_interval_s: float = Field(10.0, validation_alias="AUTOPLAY_POLL_INTERVAL_S")

    narration_player: str = Field("log", validation_alias="NARRATION_PLAYER")
    tts_command: str = Field("espeak-ng", validation_alias="TTS_COMMAND")
    tts_voice: str = Field("pl", validation_alias="TTS_VOICE")
    tts_rate: int = Field(150, validation_alias="TTS_RATE")

    itinerary_path: str = Field("/itineraries", validation_alias="ITINERARY_PATH")
    itinerary_cache_ttl_s: float = Field(
        CACHE_TTL["trips"], validation_alias="ITINERARY_CACHE_TTL_S"
    )

    # Kraków main square, used to seed demo walkthroughs.
    demo_lat: float = Field(50.0647, validation_alias="DEMO_LAT")
    demo_lon: float = Field(19.9450, validation_alias="DEMO_LON")


@lru_cache()
def get_settings() -> Settings:
    load_dotenv(".env")
    return Settings()


settings = get_settings()
