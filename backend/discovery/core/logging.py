"""structlog setup for the discovery backend.

Application code logs through ``structlog.get_logger(__name__)`` with
snake_case event names. Library loggers (uvicorn, anthropic, httpx, boto)
are routed through the same formatter, so production output is one JSON
object per line and debug output is the colored console renderer.

Every entry carries the service name and, inside a request, the
X-Request-ID correlation id. Background tasks spawned during a request
inherit the id through contextvars.
"""

import logging
import sys

import structlog
from asgi_correlation_id.context import correlation_id

SERVICE_NAME = "discovery-backend"

# Chatty libraries only log warnings and above
QUIET_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "botocore", "boto3", "anthropic")


def current_correlation_id() -> str | None:
    """X-Request-ID of the request being handled, or None outside a request."""
    return correlation_id.get(None)


def add_request_context(logger, method, event_dict):
    event_dict.setdefault("service", SERVICE_NAME)
    cid = current_correlation_id()
    if cid:
        event_dict["correlation_id"] = cid
    return event_dict


def _pre_chain() -> list:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_request_context,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]


def configure_structlog(log_level: str = "INFO", json_logs: bool = True) -> None:
    """Install the structlog pipeline and the stdlib bridge.

    Must run before modules that log at import time are imported, since
    structlog caches loggers on first use.

    Args:
        log_level: Root level name ("DEBUG", "INFO", ...)
        json_logs: JSON lines when True, console rendering when False
    """
    if json_logs:
        final = [structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]
    else:
        final = [structlog.dev.ConsoleRenderer()]

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_pre_chain(),
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, *final],
    )
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(log_level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.configure(
        processors=[*_pre_chain(), structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
