"""Structured logging utilities for CallGuard.

All modules log through structlog with key/value events. A decision_id is
bound into the context of each hook decision for correlation.
"""

import logging
import sys
import time
from contextvars import ContextVar
from typing import Optional

import structlog
from structlog.types import EventDict, Processor

# Context variable for decision tracking
decision_id_var: ContextVar[Optional[str]] = ContextVar("decision_id", default=None)

# Config-file level names mapped onto stdlib level names
_LEVEL_ALIASES = {
    "debug": "DEBUG",
    "info": "INFO",
    "warn": "WARNING",
    "warning": "WARNING",
    "error": "ERROR",
}


def add_decision_id(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    """Add decision_id to log context if available."""
    decision_id = decision_id_var.get()
    if decision_id:
        event_dict["decision_id"] = decision_id
    return event_dict


def add_timestamp(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    """Add epoch timestamp to log entries."""
    event_dict["timestamp"] = time.time()
    return event_dict


def resolve_log_level(level: str) -> str:
    """Map a config-file level name (``warn``, ``info`` ...) to a stdlib one.

    Unknown names fall back to ``WARNING``.
    """
    return _LEVEL_ALIASES.get(str(level).lower(), "WARNING")


def configure_logging(
    log_level: str = "INFO",
    json_output: bool = True
) -> None:
    """Configure structured logging for the application.

    Args:
        log_level: Logging level (debug, info, warn, error, or stdlib names)
        json_output: If True, output JSON format. If False, use console format.
    """
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_decision_id,
        add_timestamp,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.extend([
            structlog.dev.ConsoleRenderer(colors=True),
        ])

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, resolve_log_level(log_level))
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str = "callguard") -> structlog.stdlib.BoundLogger:
    """Get a configured logger instance.

    Args:
        name: Logger name (typically module name)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


def set_decision_id(decision_id: str) -> None:
    """Set decision ID in context for all subsequent logs."""
    decision_id_var.set(decision_id)


def clear_decision_id() -> None:
    """Clear decision ID from context."""
    decision_id_var.set(None)


# Initialize logging with sensible defaults
# This will be reconfigured by main.py from the loaded config
configure_logging()
