"""
Logging Configuration

Configures the root logger once; every module logs through
logging.getLogger(__name__).
"""
import logging

LOG_FORMAT = "%(asctime)s - %(levelname)s - [%(name)s] - %(message)s"
LOG_DATEFMT = "%Y-%m-%dT%H:%M:%S"

# Third-party loggers kept at WARNING
_SUPPRESSED_LOGGERS = (
    "httpx",
    "httpcore",
    "urllib3",
)

_configured = False


def setup_logging(level: str = "INFO") -> None:
    """
    Configure the root logger

    Idempotent: later calls are ignored so the CLI and the ASGI
    lifespan can both call it.

    Args:
        level: Level name (DEBUG, INFO, WARNING, ...)
    """
    global _configured
    if _configured:
        return
    _configured = True

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt=LOG_DATEFMT,
    )

    for name in _SUPPRESSED_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
