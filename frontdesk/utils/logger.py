"""Structured logging configuration using structlog."""

import logging
import sys
from typing import Any, Literal

import structlog
from structlog.typing import EventDict, Processor, WrappedLogger

# Event keys (also inside relayed bodies) that hold guest phone numbers
GUEST_CONTACT_KEYS = frozenset({"contact", "phone", "guestContact"})


def setup_logging(
    level: str = "INFO",
    format_type: Literal["json", "console"] = "console",
    service: str | None = None,
) -> None:
    """
    Configure structured logging for the relay and dashboard services.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        format_type: Output format - 'json' for production, 'console' for development
        service: Bound to every event as ``service`` (e.g. "relay")
    """
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        mask_guest_contacts,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if format_type == "json":
        processors: list[Processor] = [
            *shared_processors,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(
                colors=True,
                exception_formatter=structlog.dev.rich_traceback,
            ),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.clear_contextvars()
    if service:
        structlog.contextvars.bind_contextvars(service=service)

    # uvicorn and httpx log through the standard library
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, level.upper()),
        stream=sys.stdout,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a logger bound to ``name`` (usually the module name)."""
    return structlog.get_logger(name)


def mask_sensitive(value: str, visible_chars: int = 4) -> str:
    """
    Mask a guest phone number for logging.

    Args:
        value: The sensitive string to mask
        visible_chars: Number of characters to show at the end

    Returns:
        Masked string (e.g., "******3210")
    """
    if len(value) <= visible_chars:
        return "*" * len(value)
    return "*" * (len(value) - visible_chars) + value[-visible_chars:]


def _mask_contacts(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            key: mask_sensitive(str(item)) if key in GUEST_CONTACT_KEYS and item else _mask_contacts(item)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [_mask_contacts(item) for item in value]
    return value


def mask_guest_contacts(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """structlog processor: mask guest phone numbers, including inside logged bodies."""
    return _mask_contacts(event_dict)
