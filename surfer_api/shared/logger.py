"""
Logging setup for the VectorSurfer cache backend.

``main.py`` calls ``setup_logging`` once with the configured level
(``log_level`` in settings.yaml or VECTORSURFER_LOG_LEVEL); modules only
ever call ``get_logger(__name__)``.

Usage:
    from surfer_api.shared.logger import get_logger

    logger = get_logger(__name__)
    logger.info("Golden record %s registered for %s", uuid, function_name)
"""

import logging
import sys

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# httpx logs every client request at INFO
_QUIET_LOGGERS = ("httpx", "httpcore")

_configured = False


def _resolve_level(level: str) -> int | None:
    value = logging.getLevelName(level.strip().upper())
    return value if isinstance(value, int) else None


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging for the service.

    An unknown level name falls back to INFO with a warning. Subsequent
    calls are no-ops.
    """
    global _configured
    if _configured:
        return

    numeric_level = _resolve_level(level)
    logging.basicConfig(
        level=numeric_level if numeric_level is not None else logging.INFO,
        format=LOG_FORMAT,
        datefmt="%H:%M:%S",
        stream=sys.stdout,
        force=True,
    )
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level or logging.INFO, logging.WARNING))
    _configured = True

    if numeric_level is None:
        logging.getLogger(__name__).warning("Unknown log level %r, using INFO", level)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
