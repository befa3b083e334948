"""
Logging setup for the crawlability service.

Every event goes through structlog. The engine binds `engine` and `url`
as context variables for the length of one analysis, so lines logged by the
resolver, crawler and inspector carry the analysis they belong to without
passing it around.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from crawlability.core.config import Settings, get_settings

# Third-party loggers that log once per request at INFO
NOISY_LOGGERS = ("httpx", "httpcore")


def add_severity(logger: Any, method: str, event_dict: EventDict) -> EventDict:
    """Uppercase level under the key log collectors read."""
    event_dict["severity"] = "WARNING" if method == "warn" else method.upper()
    return event_dict


def build_processors(settings: Settings) -> list[Processor]:
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        add_severity,
    ]
    if settings.LOG_FORMAT == "json":
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=settings.DEBUG))
    return processors


def configure_logging() -> None:
    settings = get_settings()
    log_level = logging.getLevelName(settings.LOG_LEVEL.upper())
    if not isinstance(log_level, int):
        log_level = logging.INFO

    structlog.configure(
        processors=build_processors(settings),
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )

    # uvicorn and other stdlib loggers share stdout
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
