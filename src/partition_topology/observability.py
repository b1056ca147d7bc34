"""Structured logging and OpenTelemetry spans for partition-topology.

This module provides:
- Structured logging setup via structlog
- OpenTelemetry span helpers for planning and analysis operations
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Iterator

import structlog
from opentelemetry import trace
from opentelemetry.trace import SpanKind, Status, StatusCode

if TYPE_CHECKING:
    from opentelemetry.trace import Span, Tracer
    from structlog.stdlib import BoundLogger

# Module-level logger and tracer
_logger: BoundLogger | None = None
_tracer: Tracer | None = None

TRACER_NAME = "partition.topology"
ATTRIBUTE_PREFIX = "partition."


def get_logger() -> BoundLogger:
    """Get the module logger, creating it if necessary.

    Returns:
        Configured structlog BoundLogger instance.

    Example:
        >>> logger = get_logger()
        >>> logger.info("partitions_planned", table="orders", count=3)
    """
    global _logger
    if _logger is None:
        _logger = structlog.get_logger(TRACER_NAME)
    assert _logger is not None  # Type narrowing for mypy
    return _logger


def get_tracer() -> Tracer:
    """Get the OpenTelemetry tracer for partition-topology.

    Returns:
        OpenTelemetry Tracer instance.
    """
    global _tracer
    if _tracer is None:
        _tracer = trace.get_tracer(TRACER_NAME)
    return _tracer


@contextmanager
def span(
    name: str,
    *,
    kind: SpanKind = SpanKind.INTERNAL,
    attributes: dict[str, Any] | None = None,
    log_start: bool = True,
    log_end: bool = True,
) -> Iterator[Span]:
    """Create an OpenTelemetry span with structured logging.

    Args:
        name: Span name (e.g., "ensure_future", "rotate", "health_check").
        kind: Span kind.
        attributes: Optional span attributes.
        log_start: If True, log span start.
        log_end: If True, log span end.

    Yields:
        OpenTelemetry Span instance.

    Example:
        >>> with span("rotate", attributes={"table": "orders"}):
        ...     engine.rotate("orders", keep=12)
    """
    tracer = get_tracer()
    logger = get_logger()
    attrs = attributes or {}

    with tracer.start_as_current_span(name, kind=kind, attributes=attrs) as s:
        if log_start:
            logger.debug(f"{name}_started", **attrs)
        started = time.perf_counter()
        try:
            yield s
            s.set_status(Status(StatusCode.OK))
            if log_end:
                logger.info(f"{name}_completed", duration_ms=_elapsed_ms(started), **attrs)
        except Exception as exc:
            s.set_status(Status(StatusCode.ERROR, str(exc)))
            s.record_exception(exc)
            logger.error(f"{name}_failed", error=str(exc), duration_ms=_elapsed_ms(started), **attrs)
            raise


@contextmanager
def partition_operation(
    operation: str,
    *,
    table: str | None = None,
    strategy: str | None = None,
    interval: str | None = None,
    count: int | None = None,
    keep: int | None = None,
) -> Iterator[Span]:
    """Create a span for partition operations with standard attributes.

    Args:
        operation: Operation name (e.g., "ensure_future", "rotate").
        table: Parent table name.
        strategy: Partitioning strategy of the table.
        interval: Interval kind for date-driven operations.
        count: Number of partitions requested.
        keep: Retention window for rotation.

    Yields:
        OpenTelemetry Span instance.
    """
    attrs = partition_attributes(
        operation=operation,
        table=table,
        strategy=strategy,
        interval=interval,
        count=count,
        keep=keep,
    )

    with span(f"partition.{operation}", attributes=attrs) as s:
        yield s


def partition_attributes(**values: Any) -> dict[str, Any]:
    """Prefix keys with "partition." and drop unset values.

    OpenTelemetry rejects None attribute values, so they never reach a span.

    Example:
        >>> partition_attributes(table="orders", keep=None)
        {'partition.table': 'orders'}
    """
    return {f"{ATTRIBUTE_PREFIX}{key}": value for key, value in values.items() if value is not None}


def record_result(s: Span, **values: Any) -> None:
    """Attach an operation's outcome to its span.

    Example:
        >>> with partition_operation("rotate", table="orders", keep=2) as s:
        ...     record_result(s, dropped=2)
    """
    attrs = partition_attributes(**values)
    s.set_attributes(attrs)
    get_logger().debug("partition_result", **attrs)


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 3)
