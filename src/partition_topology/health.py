"""Topology health analysis.

Pure functions over parsed partition boundaries: gaps and overlaps between
RANGE partitions, partitions lacking the parent's indexes, and boundaries
that could not be parsed. Findings are returned as data; nothing here
raises on irregular catalog contents or touches a catalog.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterable, Mapping, Sequence

from pydantic import BaseModel, ConfigDict, Field

from partition_topology.observability import partition_operation, record_result
from partition_topology.parser import BoundaryKind, ParsedBoundary, PartitionBoundary

if TYPE_CHECKING:
    from partition_topology.catalog import TableSnapshot

PartitionInput = PartitionBoundary | tuple[str, "ParsedBoundary | str | None"]


class RangeGap(BaseModel):
    """Uncovered interval between two adjacent RANGE partitions."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    after: str = Field(..., description="Partition ending where the gap starts")
    before: str = Field(..., description="Partition starting where the gap ends")
    from_: Any = Field(..., alias="from", description="Gap start (upper limit of 'after')")
    to: Any = Field(..., description="Gap end (lower limit of 'before')")


class RangeOverlap(BaseModel):
    """Two RANGE partitions whose half-open intervals intersect."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    first: str
    second: str
    description: str


class HealthReport(BaseModel):
    """Result of a health analysis.

    Attributes:
        gaps: Uncovered intervals between adjacent range partitions.
        overlaps: Intersecting range partition pairs.
        missing_indexes: Partitions lacking the parent's indexes.
        unparsed: Partitions whose boundary expression was not recognised.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    gaps: tuple[RangeGap, ...] = ()
    overlaps: tuple[RangeOverlap, ...] = ()
    missing_indexes: tuple[str, ...] = ()
    unparsed: tuple[str, ...] = ()

    @property
    def orphan_data(self) -> bool:
        """True when rows could fall between partitions (any gap exists)."""
        return bool(self.gaps)

    @property
    def is_healthy(self) -> bool:
        return not (self.gaps or self.overlaps or self.missing_indexes or self.unparsed)


def _coerce(partitions: Iterable[PartitionInput]) -> list[PartitionBoundary]:
    result = []
    for item in partitions:
        if isinstance(item, PartitionBoundary):
            result.append(item)
            continue
        name, boundary = item
        if boundary is None or isinstance(boundary, str):
            result.append(PartitionBoundary.from_row(name, boundary))
        else:
            result.append(PartitionBoundary(name=name, boundary=boundary))
    return result


def _ranges(partitions: Iterable[PartitionInput]) -> list[tuple[str, ParsedBoundary]]:
    return [
        (p.name, p.boundary)
        for p in _coerce(partitions)
        if p.boundary is not None and p.boundary.kind is BoundaryKind.RANGE
    ]


def _display(value: Any) -> str:
    if isinstance(value, tuple):
        return ", ".join(_display(v) for v in value)
    return str(getattr(value, "value", value))


def find_gaps(partitions: Iterable[PartitionInput]) -> list[RangeGap]:
    """Find uncovered intervals between adjacent RANGE partitions.

    Partitions are sorted by lower limit; a gap exists where one
    partition's upper limit is below the next one's lower limit.

    Example:
        >>> find_gaps([("a", parse_boundary("FOR VALUES FROM (1) TO (5)")),
        ...            ("b", parse_boundary("FOR VALUES FROM (7) TO (9)"))])
        [RangeGap(after='a', before='b', from_=5, to=7)]
    """
    ranges = sorted(_ranges(partitions), key=lambda item: item[1].from_key)
    gaps = []
    for (prev_name, prev), (next_name, nxt) in zip(ranges, ranges[1:]):
        if prev.to_key < nxt.from_key:
            gaps.append(RangeGap(after=prev_name, before=next_name, from_=prev.to_value, to=nxt.from_value))
    return gaps


def find_overlaps(partitions: Iterable[PartitionInput]) -> list[RangeOverlap]:
    """Find every pair of RANGE partitions whose intervals intersect."""
    ranges = _ranges(partitions)
    overlaps = []
    for index, (first_name, first) in enumerate(ranges):
        for second_name, second in ranges[index + 1 :]:
            if first.from_key < second.to_key and second.from_key < first.to_key:
                overlaps.append(
                    RangeOverlap(
                        first=first_name,
                        second=second_name,
                        description=(
                            f"Overlap between {_display(first.from_value)}-{_display(first.to_value)} "
                            f"and {_display(second.from_value)}-{_display(second.to_value)}"
                        ),
                    )
                )
    return overlaps


def find_missing_indexes(
    partitions: Iterable[PartitionInput],
    parent_indexes: Sequence[str],
    partition_indexes: Mapping[str, Sequence[str]],
) -> list[str]:
    """Find partitions none of whose indexes carries the partition's name.

    Args:
        partitions: Child partitions.
        parent_indexes: Index names on the parent table. Nothing is
            reported when the parent has no indexes.
        partition_indexes: Index names per partition, keyed by qualified
            or unqualified partition name.

    Returns:
        Names of partitions missing indexes, in input order.
    """
    if not parent_indexes:
        return []

    missing = []
    for partition in _coerce(partitions):
        short_name = partition.unqualified_name
        indexes = partition_indexes.get(partition.name) or partition_indexes.get(short_name) or ()
        if not any(short_name in index for index in indexes):
            missing.append(partition.name)
    return missing


def find_unparsed(partitions: Iterable[PartitionInput]) -> list[str]:
    """Return names of partitions whose boundary was not recognised."""
    return [p.name for p in _coerce(partitions) if p.boundary is None]


def analyze(
    partitions: Iterable[PartitionInput],
    parent_indexes: Sequence[str] = (),
    partition_indexes: Mapping[str, Sequence[str]] | None = None,
    *,
    table: str | None = None,
) -> HealthReport:
    """Run every health check over one set of partitions.

    Args:
        partitions: Child partitions with parsed boundaries.
        parent_indexes: Index names on the parent table.
        partition_indexes: Index names per partition.
        table: Parent table name, for tracing only.

    Returns:
        HealthReport.
    """
    boundaries = _coerce(partitions)
    with partition_operation("health_check", table=table, count=len(boundaries)) as s:
        report = HealthReport(
            gaps=tuple(find_gaps(boundaries)),
            overlaps=tuple(find_overlaps(boundaries)),
            missing_indexes=tuple(find_missing_indexes(boundaries, parent_indexes, partition_indexes or {})),
            unparsed=tuple(find_unparsed(boundaries)),
        )
        record_result(
            s,
            gaps=len(report.gaps),
            overlaps=len(report.overlaps),
            missing_indexes=len(report.missing_indexes),
            unparsed=len(report.unparsed),
        )
        return report


def analyze_snapshot(snapshot: TableSnapshot) -> HealthReport:
    """Run every health check over a catalog snapshot."""
    return analyze(
        snapshot.partitions,
        snapshot.indexes,
        snapshot.partition_indexes,
        table=snapshot.table,
    )
