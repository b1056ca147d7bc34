"""Custom exceptions for partition-topology.

This module defines the exception hierarchy:
- PartitionError (base)
- ConfigurationError
- InvalidPartitionTypeError
- PartitionNotFoundError
- TemplateNotFoundError
- BoundaryParseError

Only programmer misuse raises. Irregularities found in existing catalog data
(unparseable boundaries, gaps, overlaps) are returned as data by the parser
and the health analyzer.
"""

from __future__ import annotations

import structlog

logger = structlog.get_logger(__name__)

__all__ = [
    "PartitionError",
    "ConfigurationError",
    "InvalidPartitionTypeError",
    "PartitionNotFoundError",
    "TemplateNotFoundError",
    "BoundaryParseError",
]


class PartitionError(Exception):
    """Base exception for all partition topology operations.

    Attributes:
        message: Human-readable error description.
        details: Optional additional context about the error.

    Example:
        >>> try:
        ...     builder.build()
        ... except PartitionError as e:
        ...     print(f"Partition error: {e}")
    """

    def __init__(self, message: str, *, details: dict[str, str] | None = None) -> None:
        """Initialize PartitionError.

        Args:
            message: Human-readable error description.
            details: Optional additional context about the error.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return string representation with details if present."""
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({detail_str})"
        return self.message


class ConfigurationError(PartitionError):
    """Required setup is missing or contradictory.

    Raised when:
    - No partition column was set before build()
    - Both a count and an end date were given to a sequence
    - The interval or column cannot be determined for ensure_future
    - Deferred calls are still waiting for a base name at build()

    Example:
        >>> try:
        ...     PartitionTableBuilder("orders").build()
        ... except ConfigurationError as e:
        ...     print(e.field)
        column
    """

    def __init__(
        self,
        message: str,
        *,
        table: str | None = None,
        field: str | None = None,
        internal_details: str | None = None,
    ) -> None:
        """Initialize ConfigurationError.

        Args:
            message: Human-readable error description.
            table: The table being configured.
            field: The missing or invalid setting.
            internal_details: Technical details, logged but not shown.
        """
        details: dict[str, str] = {}
        if table:
            details["table"] = table
        if field:
            details["field"] = field
        super().__init__(message, details=details)
        self.table = table
        self.field = field

        if internal_details:
            logger.error(
                "partition_configuration_error",
                error_type=self.__class__.__name__,
                message=message,
                internal_details=internal_details,
            )


class InvalidPartitionTypeError(PartitionError):
    """A boundary of the wrong strategy was added to a builder.

    Example:
        >>> SubPartitionBuilder.list("status").add_hash_partition("p0", 4, 0)
        Traceback (most recent call last):
        ...
        InvalidPartitionTypeError: Cannot add HASH partition to LIST builder ...
    """

    def __init__(self, expected: str, actual: str, *, name: str | None = None) -> None:
        """Initialize InvalidPartitionTypeError.

        Args:
            expected: Strategy of the builder.
            actual: Strategy of the rejected partition.
            name: Name of the rejected partition.
        """
        details: dict[str, str] = {"expected": expected, "actual": actual}
        if name:
            details["partition"] = name
        super().__init__(
            f"Cannot add {actual} partition to {expected} builder",
            details=details,
        )
        self.expected = expected
        self.actual = actual
        self.name = name


class PartitionNotFoundError(PartitionError):
    """A partition referenced by name is not defined on the builder."""

    def __init__(self, name: str, *, table: str | None = None) -> None:
        """Initialize PartitionNotFoundError.

        Args:
            name: The partition name that was not found.
            table: The parent table, if known.
        """
        details: dict[str, str] = {"partition": name}
        if table:
            details["table"] = table
        super().__init__(f"Partition not found: {name}", details=details)
        self.name = name
        self.table = table


class TemplateNotFoundError(PartitionError):
    """A named template is not registered.

    Always lists the available template names for actionable feedback.
    """

    def __init__(self, name: str, available: list[str]) -> None:
        """Initialize TemplateNotFoundError.

        Args:
            name: The requested template name.
            available: Names of the registered templates.
        """
        available_str = ", ".join(available) if available else "none"
        super().__init__(
            f"Partition template '{name}' not found. Available: {available_str}",
            details={"template": name},
        )
        self.name = name
        self.available = available


class BoundaryParseError(PartitionError):
    """A boundary expression matched none of the known forms.

    parse_boundary() reports this case as None. This exception is only
    raised by require_boundary() for callers that want a hard failure.
    """

    def __init__(self, expression: str, *, partition: str | None = None) -> None:
        """Initialize BoundaryParseError.

        Args:
            expression: The raw boundary expression.
            partition: The partition the expression belongs to.
        """
        details: dict[str, str] = {"expression": expression}
        if partition:
            details["partition"] = partition
        super().__init__("Unrecognized partition boundary expression", details=details)
        self.expression = expression
        self.partition = partition
