"""
structlog setup shared by the API, the scheduled refresh and the operator scripts.

LOG_FORMAT picks the renderer: `json` for log aggregation, `console` for a
terminal. Unset, DEBUG renders to the console and every other level as JSON.
"""

from __future__ import annotations

import logging
import sys
from typing import Any, Callable, MutableMapping, Optional

import structlog

from sync_stays.config import LOG_FORMAT, LOG_LEVEL

# Type alias for structlog processor
Processor = Callable[[Any, str, MutableMapping[str, Any]], Any]

SERVICE_NAME = "sync-stays"

# Feed fetches and mailbox calls log every request at DEBUG
QUIET_LOGGERS = (
    "urllib3",
    "requests",
    "googleapiclient.discovery",
    "googleapiclient.discovery_cache",
    "uvicorn.access",
)


def add_service_name(
    _logger: Any, _method: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def resolve_log_format(log_format: Optional[str] = None) -> str:
    """`json` or `console`; an explicit argument wins over LOG_FORMAT."""
    chosen = (log_format or LOG_FORMAT or "").strip().lower()
    if chosen in ("json", "console"):
        return chosen
    return "console" if LOG_LEVEL == "DEBUG" else "json"


def setup_logging(log_format: Optional[str] = None) -> None:
    """
    Configure stdlib logging and structlog for the process.

    Args:
        log_format: Override for LOG_FORMAT (`json` or `console`)
    """
    level = logging.getLevelName(LOG_LEVEL)
    logging.basicConfig(
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stdout,
        level=level,
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_service_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
    ]
    if resolve_log_format(log_format) == "json":
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
