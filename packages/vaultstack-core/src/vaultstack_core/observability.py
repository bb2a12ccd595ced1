"""Logging and tracing for vaultstack-core.

Every engine call made by an assembly runs inside ``span()``: an
OpenTelemetry span named after the call, bracketed by ``<name>_started`` and
``<name>_completed`` (or ``<name>_failed``) log events carrying the span
attributes and the elapsed time. Without an SDK installed the spans are
no-ops and only the log events remain.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import structlog
from opentelemetry import trace
from opentelemetry.trace import SpanKind, Status, StatusCode

if TYPE_CHECKING:
    from opentelemetry.trace import Span

TRACER_NAME = "vaultstack.core"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

logger = structlog.get_logger(TRACER_NAME)


def configure_logging(
    *,
    log_level: str = "INFO",
    json_format: bool = False,
    add_timestamp: bool = True,
) -> None:
    """Route structlog through the standard library at the given level.

    Args:
        log_level: One of LOG_LEVELS, case-insensitive.
        json_format: Render JSON lines instead of console output.
        add_timestamp: Prefix each event with an ISO timestamp.

    Raises:
        ValueError: If the level is unknown.

    Example:
        >>> configure_logging(log_level="debug", json_format=True)
    """
    level = log_level.upper()
    if level not in LOG_LEVELS:
        raise ValueError(f"Unknown log level: {log_level}")

    processors: list[Any] = []
    if add_timestamp:
        processors.append(structlog.processors.TimeStamper(fmt="iso"))
    processors += [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer() if json_format else structlog.dev.ConsoleRenderer(),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(format="%(message)s", level=getattr(logging, level))


@contextmanager
def span(
    name: str,
    *,
    kind: SpanKind = SpanKind.INTERNAL,
    attributes: Mapping[str, Any] | None = None,
) -> Iterator[Span]:
    """Trace and log one unit of work.

    Args:
        name: Span and event prefix (e.g., "provision_filesystem").
        kind: CLIENT for engine calls, INTERNAL otherwise.
        attributes: Span attributes, repeated on every log event.

    Yields:
        The active span.

    Example:
        >>> with span("provision_cluster", attributes={"logical_id": "vaultwarden/cluster"}):
        ...     engine.create(request)
    """
    attrs = dict(attributes or {})
    tracer = trace.get_tracer(TRACER_NAME)
    started = time.perf_counter()

    with tracer.start_as_current_span(name, kind=kind, attributes=attrs) as current:
        logger.debug(f"{name}_started", **attrs)
        try:
            yield current
        except Exception as exc:
            current.set_status(Status(StatusCode.ERROR, str(exc)))
            current.record_exception(exc)
            logger.error(f"{name}_failed", error=str(exc), **attrs)
            raise
        current.set_status(Status(StatusCode.OK))
        elapsed_ms = round((time.perf_counter() - started) * 1000, 3)
        logger.info(f"{name}_completed", duration_ms=elapsed_ms, **attrs)
