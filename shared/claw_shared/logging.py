"""Structured logging configuration for the droplet provisioner."""

import logging
import sys
from typing import Any, List, Union

import structlog
from structlog.types import EventDict, Processor

SERVICE_NAME = "openclaw-droplets"

# The poller hits the provider every few seconds; one line per HTTP call is noise
CHATTY_LOGGERS = ("httpx", "httpcore")


def add_service(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Stamp every event with the service name."""
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def setup_logging(
    level: Union[str, int] = logging.INFO,
    json_format: bool = True,
    add_console_handler: bool = True,
    http_client_level: Union[str, int] = logging.WARNING,
) -> None:
    """
    Configure structured logging for the application.

    Args:
        level: Logging level (default: INFO)
        json_format: Whether to render events as JSON (default: True)
        add_console_handler: Whether to log to stdout (default: True)
        http_client_level: Level applied to the httpx/httpcore loggers
            (default: WARNING)
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    if isinstance(http_client_level, str):
        http_client_level = getattr(logging, http_client_level.upper(), logging.WARNING)

    logging.basicConfig(
        level=level,
        format="%(message)s",
        force=True,
        handlers=[],
    )

    if add_console_handler:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        logging.getLogger().addHandler(console_handler)

    for name in CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, http_client_level))

    processors: List[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_service,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if json_format:
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger with the given name.

    Args:
        name: Logger name

    Returns:
        Structured logger
    """
    return structlog.get_logger(name)


def bind_request_id(request_id: str) -> None:
    """
    Bind request_id to the current context.

    Args:
        request_id: Request ID
    """
    structlog.contextvars.bind_contextvars(request_id=request_id)


def clear_request_id() -> None:
    """Clear request_id from the current context."""
    structlog.contextvars.unbind_contextvars("request_id")


def bind_droplet_id(droplet_id: int) -> None:
    """
    Tag every event logged in the current context with a droplet id.

    Poller tasks call this first; asyncio gives each task its own copy of
    the context, so the binding never leaks into request handlers.

    Args:
        droplet_id: Droplet followed by the current task
    """
    structlog.contextvars.bind_contextvars(droplet_id=droplet_id)
