"""Rotation: create-ahead and drop-behind for date-ranged tables.

Planning functions are pure and work on a TableSnapshot. RotationEngine
adds the I/O: a fresh snapshot through the reader on every call, plans
handed to the executor. Re-running any operation is safe: future slots
whose name already exists are skipped.
"""

from __future__ import annotations

from datetime import date
from typing import Callable

from pydantic import BaseModel, ConfigDict, Field

from partition_topology.catalog import CatalogReader, PartitionExecutor, TableSnapshot, read_snapshot
from partition_topology.config import PartitionBehavior, PartitionSettings
from partition_topology.errors import ConfigurationError
from partition_topology.intervals import Interval, advance, align, coerce_interval
from partition_topology.models import PartitionDefinition
from partition_topology.naming import resolve_range_name
from partition_topology.observability import get_logger, partition_operation, record_result
from partition_topology.sequence import generate_range_sequence

logger = get_logger()

DEFAULT_FUTURE_COUNT = 3


class RotationPlan(BaseModel):
    """Partitions to create and drop for one table.

    Attributes:
        table: Parent table name.
        column: Partition column of the table.
        to_create: New partitions, oldest first.
        to_drop: Partition names to detach and drop, oldest first.
        schemas_to_reclaim: Schemas to drop if empty after the drops.
        detach_concurrently: Behaviour toggle for the executor.
        analyze_after_create: Behaviour toggle for the executor.
        vacuum_after_drop: Behaviour toggle for the executor.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    table: str
    column: str | None = None
    to_create: tuple[PartitionDefinition, ...] = ()
    to_drop: tuple[str, ...] = ()
    schemas_to_reclaim: tuple[str, ...] = ()
    detach_concurrently: bool = True
    analyze_after_create: bool = True
    vacuum_after_drop: bool = True

    @property
    def is_empty(self) -> bool:
        return not (self.to_create or self.to_drop)


class MaintenanceResult(BaseModel):
    """Outcome of a combined ensure-future and rotate run."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    partitions_created: int = Field(default=0, ge=0)
    partitions_dropped: tuple[str, ...] = ()

    @property
    def has_created(self) -> bool:
        return self.partitions_created > 0

    @property
    def has_dropped(self) -> bool:
        return bool(self.partitions_dropped)

    @property
    def has_changes(self) -> bool:
        return self.has_created or self.has_dropped

    def summary(self) -> str:
        """Return a one-line human-readable summary.

        Example:
            >>> MaintenanceResult(partitions_created=2).summary()
            'Partition maintenance: created 2 partition(s)'
        """
        parts = []
        if self.partitions_created:
            parts.append(f"created {self.partitions_created} partition(s)")
        if self.partitions_dropped:
            parts.append(f"dropped {len(self.partitions_dropped)} partition(s)")
        if not parts:
            return "No changes made"
        return "Partition maintenance: " + ", ".join(parts)


def _behavior(settings: PartitionSettings | None) -> PartitionBehavior:
    return settings.defaults if settings is not None else PartitionBehavior()


def _base_name(table: str) -> str:
    return table.rsplit(".", 1)[-1]


def plan_future(
    snapshot: TableSnapshot,
    count: int = DEFAULT_FUTURE_COUNT,
    interval: Interval | str | None = None,
    column: str | None = None,
    schema: str | None = None,
    today: date | None = None,
    settings: PartitionSettings | None = None,
) -> RotationPlan:
    """Plan the next count partitions starting at the current interval.

    The cursor starts at today aligned to the interval and advances one
    interval per slot. A slot whose generated name already exists is
    skipped, so planning against an up-to-date snapshot is idempotent.

    Args:
        snapshot: Fresh snapshot of the table.
        count: Number of interval slots to cover.
        interval: Interval; detected from existing partitions when omitted.
        column: Partition column; taken from the snapshot when omitted.
        schema: Schema for new partitions; defaults to the schema of the
            most recent partition, then settings.default_schema.
        today: Reference date.
        settings: Naming policy and behaviour toggles.

    Returns:
        RotationPlan with to_create filled.

    Raises:
        ConfigurationError: If the interval or column cannot be determined.
    """
    if count < 0:
        raise ConfigurationError(f"Partition count must be >= 0, got {count}", table=snapshot.table, field="count")

    resolved_column = column or snapshot.column
    if not resolved_column:
        raise ConfigurationError(
            f"Cannot determine partition column for table '{snapshot.table}'; specify it explicitly",
            table=snapshot.table,
            field="column",
        )

    resolved_interval = coerce_interval(interval) if interval else snapshot.detect_interval()
    if resolved_interval is None:
        raise ConfigurationError(
            f"Cannot detect partition interval for table '{snapshot.table}'; specify it explicitly",
            table=snapshot.table,
            field="interval",
        )

    if schema is None:
        schema = snapshot.latest_schema() or (settings.default_schema if settings else None)
    policy = settings.naming if settings else None
    base_name = _base_name(snapshot.table)
    existing = snapshot.names

    cursor = align(today or date.today(), resolved_interval)
    to_create: list[PartitionDefinition] = []
    for _ in range(count):
        name = resolve_range_name(base_name, resolved_interval, cursor, None, policy)
        if name in existing:
            logger.debug("future_partition_exists", table=snapshot.table, partition=name)
        else:
            to_create.extend(
                generate_range_sequence(
                    resolved_interval,
                    base_name=base_name,
                    start=cursor,
                    count=1,
                    schema=schema,
                    policy=policy,
                )
            )
        cursor = advance(cursor, resolved_interval)

    behavior = _behavior(settings)
    return RotationPlan(
        table=snapshot.table,
        column=resolved_column,
        to_create=tuple(to_create),
        detach_concurrently=behavior.detach_concurrently,
        analyze_after_create=behavior.analyze_after_create,
        vacuum_after_drop=behavior.vacuum_after_drop,
    )


def plan_rotation(
    snapshot: TableSnapshot,
    keep: int,
    drop_schemas: bool = False,
    settings: PartitionSettings | None = None,
) -> RotationPlan:
    """Plan dropping all but the newest keep RANGE partitions.

    Only RANGE partitions are considered; DEFAULT and unparsed partitions
    are never dropped.

    Args:
        snapshot: Fresh snapshot of the table.
        keep: Number of newest range partitions to retain.
        drop_schemas: Offer schemas of dropped partitions for reclaiming
            when no surviving partition uses them.
        settings: Behaviour toggles.

    Returns:
        RotationPlan with to_drop filled, oldest first.

    Example:
        >>> plan_rotation(snapshot_with_2022_to_2025, keep=2).to_drop
        ('orders_y2022', 'orders_y2023')
    """
    if keep < 0:
        raise ConfigurationError(f"keep must be >= 0, got {keep}", table=snapshot.table, field="keep")

    ranges = snapshot.range_partitions
    doomed = ranges[: len(ranges) - keep] if len(ranges) > keep else []
    doomed_names = {p.name for p in doomed}
    survivors = {p.schema_name for p in snapshot.partitions if p.name not in doomed_names}

    reclaim: list[str] = []
    if drop_schemas:
        for partition in doomed:
            schema = partition.schema_name
            if schema and schema not in survivors and schema not in reclaim:
                reclaim.append(schema)

    behavior = _behavior(settings)
    return RotationPlan(
        table=snapshot.table,
        column=snapshot.column,
        to_drop=tuple(p.name for p in doomed),
        schemas_to_reclaim=tuple(reclaim),
        detach_concurrently=behavior.detach_concurrently,
        analyze_after_create=behavior.analyze_after_create,
        vacuum_after_drop=behavior.vacuum_after_drop,
    )


class RotationEngine:
    """Runs rotation plans against a catalog.

    Example:
        >>> engine = RotationEngine(reader, executor, clock=lambda: date(2024, 5, 17))
        >>> engine.ensure_future("orders", count=3, interval="monthly")
        3
        >>> engine.ensure_future("orders", count=3, interval="monthly")
        0
    """

    def __init__(
        self,
        reader: CatalogReader,
        executor: PartitionExecutor,
        settings: PartitionSettings | None = None,
        clock: Callable[[], date] | None = None,
    ) -> None:
        self.reader = reader
        self.executor = executor
        self.settings = settings
        self.clock = clock or date.today

    def ensure_future(
        self,
        table: str,
        count: int = DEFAULT_FUTURE_COUNT,
        column: str | None = None,
        interval: Interval | str | None = None,
        schema: str | None = None,
    ) -> int:
        """Create missing partitions for the next count intervals.

        Returns:
            Number of partitions created.
        """
        interval_name = coerce_interval(interval).value if interval else None
        with partition_operation("ensure_future", table=table, interval=interval_name, count=count) as s:
            snapshot = read_snapshot(self.reader, table, column)
            plan = plan_future(
                snapshot,
                count,
                interval=interval,
                column=column,
                schema=schema,
                today=self.clock(),
                settings=self.settings,
            )
            if plan.to_create:
                self.executor.apply(table, plan)
            record_result(s, created=len(plan.to_create), existing=len(snapshot.partitions))
            return len(plan.to_create)

    def rotate(self, table: str, keep: int, drop_schemas: bool = False) -> list[str]:
        """Drop all but the newest keep range partitions.

        Returns:
            Dropped partition names, oldest first.
        """
        with partition_operation("rotate", table=table, keep=keep) as s:
            snapshot = read_snapshot(self.reader, table)
            plan = plan_rotation(snapshot, keep, drop_schemas=drop_schemas, settings=self.settings)
            if plan.to_drop:
                self.executor.apply(table, plan)
            record_result(s, dropped=len(plan.to_drop), schemas_reclaimed=len(plan.schemas_to_reclaim))
            return list(plan.to_drop)

    def run_maintenance(
        self,
        table: str,
        ensure_future: int | None = None,
        interval: Interval | str | None = None,
        keep: int | None = None,
        drop_schemas: bool = False,
        column: str | None = None,
        schema: str | None = None,
    ) -> MaintenanceResult:
        """Run ensure_future and/or rotate, in that order.

        Args:
            table: Parent table name.
            ensure_future: Number of future slots to cover; skipped if None.
            interval: Interval for ensure_future.
            keep: Retention for rotate; skipped if None.
            drop_schemas: Reclaim empty schemas after rotating.
            column: Partition column for ensure_future.
            schema: Schema for new partitions.

        Returns:
            MaintenanceResult.
        """
        created = 0
        dropped: list[str] = []
        if ensure_future is not None:
            created = self.ensure_future(table, ensure_future, column=column, interval=interval, schema=schema)
        if keep is not None:
            dropped = self.rotate(table, keep, drop_schemas=drop_schemas)

        result = MaintenanceResult(partitions_created=created, partitions_dropped=tuple(dropped))
        logger.info("partition_maintenance_completed", table=table, summary=result.summary())
        return result
