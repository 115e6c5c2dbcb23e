"""Structured logging and request context.

Logs are emitted with structlog: JSON in production (for the log
collector), console output in development (coloured on a terminal).

Each incoming request gets a ``RequestContext`` holding its correlation id
and a logger already bound to that id. The context is passed explicitly to
every stage of the pipeline; nothing request-specific is stored in module
globals.

Usage:
    from gocd_release_notes.logging_config import new_request_context, setup_logging

    setup_logging(environment="production")
    ctx = new_request_context()
    ctx.logger.info("calling_upstream", service="gocd")
"""

from __future__ import annotations

import logging
import os
import sys
import uuid
from dataclasses import dataclass, field
from typing import Any, TextIO

import structlog


def setup_logging(
    environment: str | None = None,
    log_level: str | None = None,
    stream: TextIO | None = None,
) -> None:
    """Configure structlog and the standard library logging.

    The service logs one event per upstream call and per request, each
    carrying the request id bound in ``RequestContext``. The CLI prints the
    notes as JSON on stdout, so it sends logs to stderr through ``stream``.

    Args:
        environment: "production" renders JSON lines, anything else the
                     console renderer. Defaults to the ENVIRONMENT env var.
        log_level: DEBUG, INFO, WARNING or ERROR. Defaults to the LOG_LEVEL
                   env var.
        stream: Where log lines go (stdout when not given)
    """
    env = environment or os.environ.get("ENVIRONMENT", "development")
    level = getattr(logging, (log_level or os.environ.get("LOG_LEVEL", "INFO")).upper())
    out = stream or sys.stdout

    if env == "production":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=out.isatty())

    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=out),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=out, level=level)
    # Upstream calls are already logged as calling_upstream
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))


def get_logger(name: str) -> Any:
    """Get a structured logger instance (typically ``get_logger(__name__)``)."""
    return structlog.get_logger(name)


@dataclass
class RequestContext:
    """Per-request state threaded through the pipeline.

    Attributes:
        request_id: Correlation id, echoed in the X-Request-ID header
        logger: structlog logger bound to the request id
    """

    request_id: str
    logger: Any = field(repr=False)


def new_request_context(request_id: str | None = None) -> RequestContext:
    """Create a context for one request, generating an id if none is given."""
    rid = request_id or uuid.uuid4().hex
    return RequestContext(
        request_id=rid,
        logger=get_logger("gocd_release_notes.request").bind(request_id=rid),
    )
