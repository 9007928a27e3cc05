"""structlog setup for the classroom data layer.

Events render as JSON lines (`log_json=True`) or as coloured console output.
Modules log through get_logger(); the CLI keeps print() for its report only.
Password fields are masked before any renderer sees them.
"""

import logging
import sys
from collections.abc import MutableMapping
from typing import Any

import structlog

SECRET_KEYS: frozenset[str] = frozenset(
    {"password", "api_password", "studentPassword", "student_password"}
)
MASK = "********"


def redact_secrets(
    _logger: Any, _method: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Mask credential values, including one level down in dict-valued fields."""
    for key, value in list(event_dict.items()):
        if key in SECRET_KEYS and value:
            event_dict[key] = MASK
        elif isinstance(value, dict) and SECRET_KEYS.intersection(value):
            event_dict[key] = {
                k: (MASK if k in SECRET_KEYS and v else v) for k, v in value.items()
            }
    return event_dict


def setup_logging(json_output: bool = False, log_level: str = "INFO") -> None:
    """Configure structlog and the stdlib root logger, both writing to stderr.

    Args:
        json_output: Render JSON lines instead of console output.
        log_level: Minimum level name, e.g. "DEBUG" or "WARNING".
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        redact_secrets,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    # stderr keeps stdout clean for the CLI's JSON output
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    # Bridge stdlib logging (urllib3, asyncio) to the same stream
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=numeric_level,
    )
    logging.getLogger().handlers = []
    logging.getLogger().addHandler(logging.StreamHandler(sys.stderr))


def get_logger(name: str) -> structlog.BoundLogger:
    """Return a structlog logger named after the calling module."""
    return structlog.get_logger(name)
