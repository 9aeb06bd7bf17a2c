import logging

from voiceguide.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(level=(level or settings.log_level).upper(), format=LOG_FORMAT)
    # requests retries and connection pool chatter drown out guide events
    logging.getLogger("urllib3").setLevel(logging.WARNING)
