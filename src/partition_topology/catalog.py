"""Catalog collaborator interfaces and snapshots.

This module provides:
- CatalogReader: structural interface for reading partition metadata
- PartitionExecutor: structural interface for applying plans
- TableSnapshot: one fresh read of a partitioned table
- read_snapshot / read_tree: the only functions that call a reader

Snapshots are never cached; every rotation call takes a new one so that
changes made by other processes are always seen.
"""

from __future__ import annotations

from typing import Any, Protocol, Sequence, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from partition_topology.intervals import Interval, detect_interval
from partition_topology.models import sort_key
from partition_topology.observability import get_logger
from partition_topology.parser import ParsedBoundary, PartitionBoundary, parse_boundary, parse_partitions
from partition_topology.tree import TreeNode, describe_boundary

logger = get_logger()

MAX_TREE_DEPTH = 32


@runtime_checkable
class CatalogReader(Protocol):
    """Protocol for reading partition metadata from a database catalog.

    Implementations don't need to inherit from this protocol; they just need
    these methods.
    """

    def list_child_partitions(self, parent: str) -> Sequence[tuple[str, str | None]]:
        """List direct child partitions of a table.

        Args:
            parent: Parent table name.

        Returns:
            (qualified partition name, boundary expression) pairs.
        """
        ...

    def list_indexes(self, table: str) -> Sequence[str]:
        """List index names of a table (unqualified table name)."""
        ...

    def partition_column(self, table: str) -> str | None:
        """Return the partition key of a table, or None if not partitioned."""
        ...


@runtime_checkable
class PartitionExecutor(Protocol):
    """Protocol for the component that turns plans into DDL.

    The executor owns statement execution, transactions and retries.
    Errors raised by apply() propagate unchanged.
    """

    def apply(self, table: str, plan: Any) -> None:
        """Apply a RotationPlan or ReshapePlan to a table."""
        ...


class TableSnapshot(BaseModel):
    """A single catalog read of one partitioned table.

    Attributes:
        table: Parent table name.
        column: Partition column(s), if known.
        partitions: Child partitions with parsed boundaries.
        indexes: Index names on the parent table.
        partition_indexes: Index names per child partition, keyed by
            unqualified partition name.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    table: str
    column: str | None = None
    partitions: tuple[PartitionBoundary, ...] = ()
    indexes: tuple[str, ...] = ()
    partition_indexes: dict[str, tuple[str, ...]] = Field(default_factory=dict)

    @property
    def names(self) -> set[str]:
        """Return qualified and unqualified names of every partition."""
        names = set()
        for partition in self.partitions:
            names.add(partition.name)
            names.add(partition.unqualified_name)
        return names

    def has_partition(self, name: str) -> bool:
        return name in self.names

    @property
    def range_partitions(self) -> list[PartitionBoundary]:
        """Return RANGE partitions sorted ascending by lower limit."""
        ranges = [p for p in self.partitions if p.is_range]
        return sorted(ranges, key=lambda p: p.boundary.from_key if p.boundary else ())

    def detect_interval(self) -> Interval | None:
        """Infer the calendar interval of the range partitions."""
        return detect_interval(
            (p.boundary.from_value, p.boundary.to_value)
            for p in self.range_partitions
            if p.boundary is not None
        )

    def latest_schema(self) -> str | None:
        """Return the schema of the most recent range partition, if qualified."""
        ranges = self.range_partitions
        if not ranges:
            return None
        return ranges[-1].schema_name


def read_snapshot(reader: CatalogReader, table: str, column: str | None = None) -> TableSnapshot:
    """Take a fresh snapshot of a partitioned table.

    Args:
        reader: Catalog reader.
        table: Parent table name.
        column: Known partition column; read from the catalog when omitted.

    Returns:
        TableSnapshot.
    """
    partitions = parse_partitions(reader.list_child_partitions(table))
    partition_indexes = {
        p.unqualified_name: tuple(reader.list_indexes(p.unqualified_name)) for p in partitions
    }
    snapshot = TableSnapshot(
        table=table,
        column=column or reader.partition_column(table),
        partitions=tuple(partitions),
        indexes=tuple(reader.list_indexes(table)),
        partition_indexes=partition_indexes,
    )
    logger.debug("snapshot_read", table=table, partitions=len(partitions))
    return snapshot


def read_tree(reader: CatalogReader, table: str) -> TreeNode:
    """Read the full partition hierarchy of a table as a TreeNode.

    Example:
        >>> print(format_tree(read_tree(reader, "orders")))
    """
    column = reader.partition_column(table)
    return TreeNode(
        name=table,
        partition_by=column,
        children=_read_children(reader, table, 1),
    )


def _read_children(reader: CatalogReader, parent: str, depth: int) -> tuple[TreeNode, ...]:
    if depth > MAX_TREE_DEPTH:
        logger.warning("partition_tree_truncated", table=parent, depth=depth)
        return ()

    rows = sorted(
        reader.list_child_partitions(parent),
        key=lambda row: _row_sort_key(row[1]),
    )
    nodes = []
    for name, expression in rows:
        parsed = parse_boundary(expression)
        column = reader.partition_column(name)
        nodes.append(
            TreeNode(
                name=name,
                bounds=_describe(parsed, expression),
                partition_by=column,
                children=_read_children(reader, name, depth + 1) if column else (),
            )
        )
    return tuple(nodes)


def _row_sort_key(expression: str | None) -> tuple[Any, ...]:
    parsed = parse_boundary(expression)
    if parsed is None:
        return (3,)
    if parsed.from_value is not None:
        return (0, sort_key(parsed.from_value))
    if parsed.remainder is not None:
        return (1, parsed.remainder)
    return (2,)


def _describe(parsed: ParsedBoundary | None, expression: str | None) -> str | None:
    if parsed is None:
        return expression
    try:
        return describe_boundary(parsed.to_bound())
    except ValidationError:
        return expression
