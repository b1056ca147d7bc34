"""Sequence generation for RANGE, HASH and LIST partition batches.

Range sequences are contiguous by construction: each partition's upper
limit is the next partition's lower limit.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Mapping, Sequence

from partition_topology.config import NamingPolicy
from partition_topology.errors import ConfigurationError
from partition_topology.intervals import Interval, advance, align, coerce_interval, normalize_date
from partition_topology.models import PartitionDefinition
from partition_topology.naming import resolve_hash_name, resolve_name, resolve_range_name
from partition_topology.observability import get_logger

DEFAULT_COUNT = 12

logger = get_logger()


def resolve_start(
    interval: Interval,
    *,
    start: Any = None,
    continue_from: Any = None,
    today: date | None = None,
) -> date:
    """Pick the first lower limit of a range sequence.

    An explicit start is normalised but not re-aligned. Without one, the
    sequence continues exactly at continue_from, or begins at today aligned
    to the interval.
    """
    if start is not None:
        return normalize_date(start)
    if continue_from is not None:
        return normalize_date(continue_from)
    return align(today or date.today(), interval)


def generate_range_sequence(
    interval: Interval | str,
    *,
    base_name: str | None,
    start: Any = None,
    count: int | None = None,
    end: Any = None,
    schema: str | None = None,
    prefix: str | None = None,
    policy: NamingPolicy | None = None,
    today: date | None = None,
    continue_from: Any = None,
) -> list[PartitionDefinition]:
    """Generate contiguous RANGE partitions over a calendar interval.

    Args:
        interval: daily, weekly, monthly, quarterly or yearly.
        base_name: Parent name used for default naming.
        start: Explicit first lower limit.
        count: Number of partitions (default 12). Exclusive with end.
        end: Generate until the lower limit reaches this date. Exclusive with
            count.
        schema: Schema for every generated partition.
        prefix: Explicit name prefix, may contain the "%" placeholder.
        policy: Naming policy.
        today: Reference date for the aligned default start.
        continue_from: Upper limit of the previous sibling, used when no
            explicit start is given.

    Returns:
        Partition definitions in ascending order.

    Raises:
        ConfigurationError: If both count and end are given, or count is
            negative.

    Example:
        >>> parts = generate_range_sequence("monthly", base_name="t", start="2024-01-01", count=3)
        >>> [p.name for p in parts]
        ['t_m2024_01', 't_m2024_02', 't_m2024_03']
    """
    interval = coerce_interval(interval)
    if count is not None and end is not None:
        raise ConfigurationError("Specify either a partition count or an end date, not both", field="count")
    if count is not None and count < 0:
        raise ConfigurationError(f"Partition count must be >= 0, got {count}", field="count")

    current = resolve_start(interval, start=start, continue_from=continue_from, today=today)

    definitions: list[PartitionDefinition] = []
    if end is not None:
        stop = normalize_date(end)
        while current < stop:
            definitions.append(_range_slot(interval, current, base_name, schema, prefix, policy))
            current = advance(current, interval)
    else:
        for _ in range(DEFAULT_COUNT if count is None else count):
            definitions.append(_range_slot(interval, current, base_name, schema, prefix, policy))
            current = advance(current, interval)

    logger.debug(
        "range_sequence_generated",
        base_name=base_name,
        interval=interval.value,
        count=len(definitions),
    )
    return definitions


def _range_slot(
    interval: Interval,
    lower: date,
    base_name: str | None,
    schema: str | None,
    prefix: str | None,
    policy: NamingPolicy | None,
) -> PartitionDefinition:
    upper = advance(lower, interval)
    return PartitionDefinition.range_partition(
        resolve_range_name(base_name, interval, lower, prefix, policy),
        lower.isoformat(),
        upper.isoformat(),
        schema=schema,
    )


def generate_hash_batch(
    base_name: str | None,
    modulus: int,
    *,
    prefix: str | None = None,
    schema: str | None = None,
    policy: NamingPolicy | None = None,
) -> list[PartitionDefinition]:
    """Generate a complete hash partitioning of degree modulus.

    Remainders 0..modulus-1 each appear exactly once, in order.

    Raises:
        ConfigurationError: If modulus < 1.

    Example:
        >>> [(p.name, p.boundary.remainder) for p in generate_hash_batch("t", 2)]
        [('t_p0', 0), ('t_p1', 1)]
    """
    if modulus < 1:
        raise ConfigurationError(f"Hash modulus must be >= 1, got {modulus}", field="modulus")
    return [
        PartitionDefinition.hash_partition(
            resolve_hash_name(base_name, remainder, modulus, prefix, policy),
            modulus,
            remainder,
            schema=schema,
        )
        for remainder in range(modulus)
    ]


def generate_list_batch(
    base_name: str | None,
    mapping: Mapping[str, Sequence[Any]],
    *,
    prefix: str | None = None,
    schema: str | None = None,
    policy: NamingPolicy | None = None,
) -> list[PartitionDefinition]:
    """Generate one LIST partition per named value set.

    Example:
        >>> parts = generate_list_batch("orders", {"eu": ["DE", "FR"], "us": ["US"]})
        >>> [p.name for p in parts]
        ['orders_eu', 'orders_us']
    """
    return [
        PartitionDefinition.list_partition(
            resolve_name(base_name, "", key, prefix, policy),
            values,
            schema=schema,
        )
        for key, values in mapping.items()
    ]
