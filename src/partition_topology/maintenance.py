"""Split and merge planning for RANGE partitions.

Reshaping moves data, so nothing here executes anything. Each planner
returns a ReshapePlan describing the choreography an executor runs inside
one transaction:

- split: detach the source, create and attach the new partitions, insert
  the source rows through the parent, drop the source
- merge: detach the sources, create the target, copy every source into it,
  attach the target, drop the sources

Consolidators look up candidate partitions in a TableSnapshot and return
None when nothing matches.
"""

from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Any, Iterable, Mapping

from pydantic import BaseModel, ConfigDict, Field

from partition_topology.catalog import TableSnapshot
from partition_topology.config import NamingPolicy
from partition_topology.errors import ConfigurationError
from partition_topology.intervals import Interval, advance, normalize_date
from partition_topology.models import PartitionDefinition, sort_key
from partition_topology.naming import resolve_range_name

__all__ = [
    "ReshapeOperation",
    "ReshapePlan",
    "split_yearly_to_monthly",
    "split_yearly_to_weekly",
    "split_monthly_to_daily",
    "split_monthly_to_weekly",
    "split_custom",
    "merge_partitions",
    "consolidate_monthly_to_yearly",
    "consolidate_daily_to_weekly",
    "consolidate_daily_to_monthly",
    "consolidate_weekly_to_monthly",
    "consolidate_range",
]


class ReshapeOperation(str, Enum):
    SPLIT = "split"
    MERGE = "merge"


class ReshapePlan(BaseModel):
    """Data-moving DDL choreography for one table.

    Attributes:
        table: Parent table name.
        operation: split or merge.
        detach: Partitions to detach first, in order.
        create: Partitions to create.
        move_from: Partitions whose rows are moved.
        drop: Partitions to drop last.
        attach_after_fill: True when new partitions are attached only after
            the rows were copied into them (merge); False when they are
            attached first and rows are routed through the parent (split).
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    table: str
    operation: ReshapeOperation
    detach: tuple[str, ...] = ()
    create: tuple[PartitionDefinition, ...] = Field(default=(), min_length=1)
    move_from: tuple[str, ...] = ()
    drop: tuple[str, ...] = ()
    attach_after_fill: bool = False

    @property
    def created_names(self) -> list[str]:
        return [p.name for p in self.create]


def _base_name(table: str) -> str:
    return table.rsplit(".", 1)[-1]


def _split(table: str, source: str, definitions: Iterable[PartitionDefinition]) -> ReshapePlan:
    return ReshapePlan(
        table=table,
        operation=ReshapeOperation.SPLIT,
        detach=(source,),
        create=tuple(definitions),
        move_from=(source,),
        drop=(source,),
        attach_after_fill=False,
    )


def _clipped(
    table: str,
    interval: Interval,
    start: date,
    end: date,
    prefix: str | None,
    schema: str | None,
    policy: NamingPolicy | None,
) -> list[PartitionDefinition]:
    """Contiguous partitions from start to end, the last one clipped at end."""
    definitions = []
    current = start
    while current < end:
        upper = min(advance(current, interval), end)
        definitions.append(
            PartitionDefinition.range_partition(
                resolve_range_name(_base_name(table), interval, current, prefix, policy),
                current.isoformat(),
                upper.isoformat(),
                schema=schema,
            )
        )
        current = upper
    return definitions


def split_yearly_to_monthly(
    table: str,
    source: str,
    year: int,
    prefix: str | None = None,
    schema: str | None = None,
    policy: NamingPolicy | None = None,
) -> ReshapePlan:
    """Split a yearly partition into twelve monthly ones."""
    start = date(year, 1, 1)
    return _split(table, source, _clipped(table, Interval.MONTHLY, start, date(year + 1, 1, 1), prefix, schema, policy))


def split_yearly_to_weekly(
    table: str,
    source: str,
    year: int,
    prefix: str | None = None,
    schema: str | None = None,
    policy: NamingPolicy | None = None,
) -> ReshapePlan:
    """Split a yearly partition into 7-day partitions from Jan 1; the last is clipped at year end."""
    start = date(year, 1, 1)
    return _split(table, source, _clipped(table, Interval.WEEKLY, start, date(year + 1, 1, 1), prefix, schema, policy))


def split_monthly_to_daily(
    table: str,
    source: str,
    year: int,
    month: int,
    prefix: str | None = None,
    schema: str | None = None,
    policy: NamingPolicy | None = None,
) -> ReshapePlan:
    start = date(year, month, 1)
    end = advance(start, Interval.MONTHLY)
    return _split(table, source, _clipped(table, Interval.DAILY, start, end, prefix, schema, policy))


def split_monthly_to_weekly(
    table: str,
    source: str,
    year: int,
    month: int,
    prefix: str | None = None,
    schema: str | None = None,
    policy: NamingPolicy | None = None,
) -> ReshapePlan:
    start = date(year, month, 1)
    end = advance(start, Interval.MONTHLY)
    return _split(table, source, _clipped(table, Interval.WEEKLY, start, end, prefix, schema, policy))


def split_custom(
    table: str,
    source: str,
    new_partitions: Mapping[str, tuple[Any, Any]],
    schema: str | None = None,
) -> ReshapePlan:
    """Split a partition into caller-defined ranges.

    Args:
        table: Parent table name.
        source: Partition to split.
        new_partitions: name -> (from, to).
        schema: Schema for the new partitions.
    """
    if not new_partitions:
        raise ConfigurationError("At least one target partition is required", table=table, field="new_partitions")
    return _split(
        table,
        source,
        (
            PartitionDefinition.range_partition(name, lower, upper, schema=schema, explicit_name=True)
            for name, (lower, upper) in new_partitions.items()
        ),
    )


def merge_partitions(
    table: str,
    sources: Iterable[str],
    new_name: str,
    from_: Any,
    to: Any,
    schema: str | None = None,
) -> ReshapePlan:
    """Merge several range partitions into one covering [from_, to)."""
    names = tuple(sources)
    if not names:
        raise ConfigurationError("At least one partition to merge is required", table=table, field="sources")
    target = PartitionDefinition.range_partition(new_name, from_, to, schema=schema, explicit_name=True)
    return ReshapePlan(
        table=table,
        operation=ReshapeOperation.MERGE,
        detach=names,
        create=(target,),
        move_from=names,
        drop=names,
        attach_after_fill=True,
    )


def _existing(snapshot: TableSnapshot, candidates: Iterable[str]) -> list[str]:
    """Map candidate unqualified names to the names the catalog reports."""
    reported = {p.unqualified_name: p.name for p in snapshot.partitions}
    return [reported[name] for name in candidates if name in reported]


def _within(snapshot: TableSnapshot, lower: Any, upper: Any, prefix: str | None = None) -> list[str]:
    names = []
    for partition in snapshot.range_partitions:
        if prefix is not None and not partition.unqualified_name.startswith(prefix):
            continue
        bound = partition.boundary
        if bound is not None and bound.from_key >= sort_key(lower) and bound.to_key <= sort_key(upper):
            names.append(partition.name)
    return names


def _names_between(
    base: str,
    interval: Interval,
    start: date,
    end: date,
    prefix: str | None,
    policy: NamingPolicy | None,
) -> list[str]:
    names = []
    current = start
    while current < end:
        names.append(resolve_range_name(base, interval, current, prefix, policy))
        current = advance(current, interval)
    return names


def consolidate_monthly_to_yearly(
    snapshot: TableSnapshot,
    year: int,
    monthly_prefix: str | None = None,
    yearly_prefix: str | None = None,
    schema: str | None = None,
    policy: NamingPolicy | None = None,
) -> ReshapePlan | None:
    """Merge the existing monthly partitions of a year into one yearly partition."""
    base = _base_name(snapshot.table)
    start, end = date(year, 1, 1), date(year + 1, 1, 1)
    sources = _existing(snapshot, _names_between(base, Interval.MONTHLY, start, end, monthly_prefix, policy))
    if not sources:
        return None
    return merge_partitions(
        snapshot.table,
        sources,
        resolve_range_name(base, Interval.YEARLY, start, yearly_prefix, policy),
        start.isoformat(),
        end.isoformat(),
        schema,
    )


def consolidate_daily_to_weekly(
    snapshot: TableSnapshot,
    week_start: Any,
    daily_prefix: str | None = None,
    weekly_prefix: str | None = None,
    schema: str | None = None,
    policy: NamingPolicy | None = None,
) -> ReshapePlan | None:
    """Merge seven daily partitions starting at week_start into one weekly partition."""
    base = _base_name(snapshot.table)
    start = normalize_date(week_start)
    end = advance(start, Interval.WEEKLY)
    sources = _existing(snapshot, _names_between(base, Interval.DAILY, start, end, daily_prefix, policy))
    if not sources:
        return None
    return merge_partitions(
        snapshot.table,
        sources,
        resolve_range_name(base, Interval.WEEKLY, start, weekly_prefix, policy),
        start.isoformat(),
        end.isoformat(),
        schema,
    )


def consolidate_daily_to_monthly(
    snapshot: TableSnapshot,
    year: int,
    month: int,
    daily_prefix: str | None = None,
    monthly_prefix: str | None = None,
    schema: str | None = None,
    policy: NamingPolicy | None = None,
) -> ReshapePlan | None:
    base = _base_name(snapshot.table)
    start = date(year, month, 1)
    end = advance(start, Interval.MONTHLY)
    sources = _existing(snapshot, _names_between(base, Interval.DAILY, start, end, daily_prefix, policy))
    if not sources:
        return None
    return merge_partitions(
        snapshot.table,
        sources,
        resolve_range_name(base, Interval.MONTHLY, start, monthly_prefix, policy),
        start.isoformat(),
        end.isoformat(),
        schema,
    )


def consolidate_weekly_to_monthly(
    snapshot: TableSnapshot,
    year: int,
    month: int,
    weekly_prefix: str | None = None,
    monthly_prefix: str | None = None,
    schema: str | None = None,
    policy: NamingPolicy | None = None,
) -> ReshapePlan | None:
    """Merge weekly partitions lying entirely inside a month.

    Weekly partitions are recognised by name prefix ("<table>_w" unless
    weekly_prefix is given) and must fall within [month start, next month).
    """
    base = _base_name(snapshot.table)
    naming = policy or NamingPolicy()
    name_prefix = f"{naming.prefix}{weekly_prefix or base + naming.separator}{Interval.WEEKLY.tag}"
    start = date(year, month, 1)
    end = advance(start, Interval.MONTHLY)
    sources = _within(snapshot, start.isoformat(), end.isoformat(), prefix=name_prefix)
    if not sources:
        return None
    return merge_partitions(
        snapshot.table,
        sources,
        resolve_range_name(base, Interval.MONTHLY, start, monthly_prefix, policy),
        start.isoformat(),
        end.isoformat(),
        schema,
    )


def consolidate_range(
    snapshot: TableSnapshot,
    from_: Any,
    to: Any,
    new_name: str,
    schema: str | None = None,
) -> ReshapePlan | None:
    """Merge every range partition lying entirely inside [from_, to)."""
    sources = _within(snapshot, from_, to)
    if not sources:
        return None
    return merge_partitions(snapshot.table, sources, new_name, from_, to, schema)
