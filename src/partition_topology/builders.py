"""Partition builders.

This module provides:
- SubPartitionBuilder: one nesting level, with a deferred queue for calls
  that need a base name not yet known
- PartitionTableBuilder: root-level builder with terminal build()

Builders are mutable and single-owner during one configuration pass.
build() returns frozen models; executors only ever see those.
"""

from __future__ import annotations

import copy
from datetime import date
from typing import Any, Mapping, Sequence

from partition_topology.config import NamingPolicy, PartitionSettings
from partition_topology.errors import (
    ConfigurationError,
    InvalidPartitionTypeError,
    PartitionNotFoundError,
)
from partition_topology.intervals import Interval, coerce_interval, normalize_date
from partition_topology.models import (
    CheckConstraint,
    PartitionDefinition,
    PartitionedTable,
    PartitionStrategy,
    RangeBound,
    SubPartitionTree,
)
from partition_topology.naming import PLACEHOLDER, needs_base_name, resolve_placeholder
from partition_topology.observability import get_logger, partition_operation, record_result
from partition_topology.sequence import generate_hash_batch, generate_list_batch, generate_range_sequence
from partition_topology.tree import resolve_schemas

logger = get_logger()


def _coerce_strategy(strategy: PartitionStrategy | str) -> PartitionStrategy:
    if isinstance(strategy, PartitionStrategy):
        return strategy
    return PartitionStrategy(strategy.strip().upper())


def _continuation_date(definitions: Sequence[PartitionDefinition]) -> date | None:
    """Return the upper limit of the last range sibling, if it is a date."""
    for definition in reversed(definitions):
        if isinstance(definition.boundary, RangeBound):
            try:
                return normalize_date(definition.boundary.to)
            except (ValueError, OverflowError):
                return None
    return None


def _continuation_schema(definitions: Sequence[PartitionDefinition]) -> str | None:
    for definition in reversed(definitions):
        if isinstance(definition.boundary, RangeBound):
            return definition.schema_name
    return None


class SubPartitionBuilder:
    """Builder for one partitioning level under a partition.

    The base name (the partition this level hangs under) is often unknown
    while the level is configured, e.g. when one builder is cloned across
    many siblings. Calls that need it are queued, and so is every later call
    until the name is bound, so for_base() replays them in call order.

    Example:
        >>> level = SubPartitionBuilder.list("region").add_list_partition("%_eu", ["DE", "FR"])
        >>> level.pending_count
        1
        >>> tree = level.for_base("orders_2024").build()
        >>> tree.definitions[0].name
        'orders_2024_eu'
    """

    def __init__(
        self,
        strategy: PartitionStrategy | str,
        column: str,
        *,
        policy: NamingPolicy | None = None,
        today: date | None = None,
    ) -> None:
        if not column:
            raise ConfigurationError("Sub-partition column must not be empty", field="column")
        self._strategy = _coerce_strategy(strategy)
        self._column = column
        self._policy = policy or NamingPolicy()
        self._today = today
        self._base_name: str | None = None
        self._schema: str | None = None
        self._tablespace: str | None = None
        self._table: str | None = None
        self._definitions: list[PartitionDefinition] = []
        self._pending: list[tuple[str, tuple[Any, ...], dict[str, Any]]] = []

    @classmethod
    def range(cls, column: str, **kwargs: Any) -> SubPartitionBuilder:
        """Create a RANGE level."""
        return cls(PartitionStrategy.RANGE, column, **kwargs)

    @classmethod
    def list(cls, column: str, **kwargs: Any) -> SubPartitionBuilder:
        """Create a LIST level."""
        return cls(PartitionStrategy.LIST, column, **kwargs)

    @classmethod
    def hash(cls, column: str, **kwargs: Any) -> SubPartitionBuilder:
        """Create a HASH level."""
        return cls(PartitionStrategy.HASH, column, **kwargs)

    @property
    def strategy(self) -> PartitionStrategy:
        return self._strategy

    @property
    def column(self) -> str:
        return self._column

    @property
    def base_name(self) -> str | None:
        return self._base_name

    @property
    def table_name(self) -> str | None:
        return self._table

    @property
    def definitions(self) -> tuple[PartitionDefinition, ...]:
        return tuple(self._definitions)

    @property
    def pending_count(self) -> int:
        """Number of calls waiting for a base name."""
        return len(self._pending)

    def for_base(self, name: str) -> SubPartitionBuilder:
        """Bind the base name and replay queued calls in call order."""
        self._base_name = name
        pending, self._pending = self._pending, []
        for method, args, kwargs in pending:
            getattr(self, method)(*args, **kwargs)
        if pending:
            logger.debug("deferred_calls_replayed", base_name=name, count=len(pending))
        return self

    def schema(self, schema: str) -> SubPartitionBuilder:
        """Set the default schema of this level."""
        self._schema = schema
        return self

    def tablespace(self, tablespace: str) -> SubPartitionBuilder:
        """Set the default tablespace of this level."""
        self._tablespace = tablespace
        return self

    def table(self, name: str) -> SubPartitionBuilder:
        """Label the parent table for executors."""
        self._table = name
        return self

    def clone(self) -> SubPartitionBuilder:
        """Return an independent copy, pending queue included."""
        twin = copy.copy(self)
        twin._definitions = [*self._definitions]
        twin._pending = copy.deepcopy(self._pending)
        return twin

    def _check_strategy(self, strategy: PartitionStrategy, name: str | None = None) -> None:
        if strategy is not self._strategy:
            raise InvalidPartitionTypeError(self._strategy.value, strategy.value, name=name)

    def _defer(self, method: str, args: tuple[Any, ...], kwargs: dict[str, Any], needs_base: bool) -> bool:
        # Once one call waits, later calls queue behind it to keep call order.
        if self._base_name is not None or not (needs_base or self._pending):
            return False
        self._pending.append((method, args, kwargs))
        logger.debug("deferred_call_queued", method=method, column=self._column)
        return True

    def _resolve_name(self, name: str) -> str:
        if PLACEHOLDER in name:
            return resolve_placeholder(name, self._base_name or "") or name
        return name

    def _attach(
        self,
        definition: PartitionDefinition,
        sub_partitions: SubPartitionBuilder | None,
    ) -> None:
        if sub_partitions is not None:
            tree = sub_partitions.clone().for_base(definition.name).build()
            definition = definition.with_sub_partitions(tree)
        self._definitions.append(definition)

    def add_range_partition(
        self,
        name: str,
        from_: Any,
        to: Any,
        schema: str | None = None,
        tablespace: str | None = None,
        sub_partitions: SubPartitionBuilder | None = None,
    ) -> SubPartitionBuilder:
        """Add one RANGE partition; "%" in the name stands for the base name."""
        self._check_strategy(PartitionStrategy.RANGE, name)
        args = (name, from_, to, schema, tablespace, sub_partitions)
        if self._defer("add_range_partition", args, {}, PLACEHOLDER in name):
            return self
        definition = PartitionDefinition.range_partition(
            self._resolve_name(name),
            from_,
            to,
            schema=schema,
            tablespace=tablespace,
            explicit_name=True,
        )
        self._attach(definition, sub_partitions)
        return self

    def add_list_partition(
        self,
        name: str,
        values: Any,
        schema: str | None = None,
        tablespace: str | None = None,
        sub_partitions: SubPartitionBuilder | None = None,
    ) -> SubPartitionBuilder:
        """Add one LIST partition; "%" in the name stands for the base name."""
        self._check_strategy(PartitionStrategy.LIST, name)
        args = (name, values, schema, tablespace, sub_partitions)
        if self._defer("add_list_partition", args, {}, PLACEHOLDER in name):
            return self
        definition = PartitionDefinition.list_partition(
            self._resolve_name(name),
            values,
            schema=schema,
            tablespace=tablespace,
            explicit_name=True,
        )
        self._attach(definition, sub_partitions)
        return self

    def add_hash_partition(
        self,
        name: str,
        modulus: int,
        remainder: int,
        schema: str | None = None,
        tablespace: str | None = None,
        sub_partitions: SubPartitionBuilder | None = None,
    ) -> SubPartitionBuilder:
        """Add one HASH partition; "%" in the name stands for the base name."""
        self._check_strategy(PartitionStrategy.HASH, name)
        args = (name, modulus, remainder, schema, tablespace, sub_partitions)
        if self._defer("add_hash_partition", args, {}, PLACEHOLDER in name):
            return self
        definition = PartitionDefinition.hash_partition(
            self._resolve_name(name),
            modulus,
            remainder,
            schema=schema,
            tablespace=tablespace,
            explicit_name=True,
        )
        self._attach(definition, sub_partitions)
        return self

    def add_default_partition(
        self,
        name: str = "%_default",
        schema: str | None = None,
    ) -> SubPartitionBuilder:
        """Add the catch-all partition of a RANGE or LIST level."""
        if self._strategy is PartitionStrategy.HASH:
            raise InvalidPartitionTypeError(self._strategy.value, "DEFAULT", name=name)
        if self._defer("add_default_partition", (name, schema), {}, PLACEHOLDER in name):
            return self
        self._definitions.append(
            PartitionDefinition.default_partition(
                self._resolve_name(name),
                self._strategy,
                schema=schema,
            )
        )
        return self

    def add_hash_partitions(
        self,
        modulus: int,
        prefix: str | None = None,
        schema: str | None = None,
    ) -> SubPartitionBuilder:
        """Add a complete hash batch of degree modulus.

        Without a prefix, names are "<base>_p<remainder>".
        """
        self._check_strategy(PartitionStrategy.HASH)
        if self._defer("add_hash_partitions", (modulus, prefix, schema), {}, needs_base_name(prefix)):
            return self
        self._definitions.extend(
            generate_hash_batch(
                self._base_name,
                modulus,
                prefix=prefix,
                schema=schema,
                policy=self._policy,
            )
        )
        return self

    def add_range_sequence(
        self,
        interval: Interval | str,
        count: int | None = None,
        start: Any = None,
        schema: str | None = None,
        prefix: str | None = None,
        end: Any = None,
    ) -> SubPartitionBuilder:
        """Add a contiguous date sequence.

        Without an explicit start, the sequence continues exactly at the
        upper limit of the last range sibling, or starts at today aligned to
        the interval. Without an explicit schema, the schema of the last
        range sibling is reused.
        """
        self._check_strategy(PartitionStrategy.RANGE)
        interval = coerce_interval(interval)
        args = (interval, count, start, schema, prefix, end)
        if self._defer("add_range_sequence", args, {}, needs_base_name(prefix)):
            return self
        self._definitions.extend(
            generate_range_sequence(
                interval,
                base_name=self._base_name,
                start=start,
                count=count,
                end=end,
                schema=schema or _continuation_schema(self._definitions),
                prefix=prefix,
                policy=self._policy,
                today=self._today,
                continue_from=_continuation_date(self._definitions),
            )
        )
        return self

    def add_daily_partitions(
        self,
        count: int,
        start: Any = None,
        schema: str | None = None,
        prefix: str | None = None,
    ) -> SubPartitionBuilder:
        return self.add_range_sequence(Interval.DAILY, count, start, schema, prefix)

    def add_weekly_partitions(
        self,
        count: int,
        start: Any = None,
        schema: str | None = None,
        prefix: str | None = None,
    ) -> SubPartitionBuilder:
        return self.add_range_sequence(Interval.WEEKLY, count, start, schema, prefix)

    def add_monthly_partitions(
        self,
        count: int,
        start: Any = None,
        schema: str | None = None,
        prefix: str | None = None,
    ) -> SubPartitionBuilder:
        return self.add_range_sequence(Interval.MONTHLY, count, start, schema, prefix)

    def add_quarterly_partitions(
        self,
        count: int,
        start: Any = None,
        schema: str | None = None,
        prefix: str | None = None,
    ) -> SubPartitionBuilder:
        return self.add_range_sequence(Interval.QUARTERLY, count, start, schema, prefix)

    def add_yearly_partitions(
        self,
        count: int,
        start: Any = None,
        schema: str | None = None,
        prefix: str | None = None,
    ) -> SubPartitionBuilder:
        return self.add_range_sequence(Interval.YEARLY, count, start, schema, prefix)

    def build(self, parent_schema: str | None = None) -> SubPartitionTree:
        """Freeze this level into a SubPartitionTree.

        Args:
            parent_schema: Effective schema of the enclosing partition. When
                given, effective schemas are resolved through every level.

        Raises:
            ConfigurationError: If calls are still waiting for a base name.
        """
        if self._pending:
            raise ConfigurationError(
                f"{len(self._pending)} sub-partition call(s) are waiting for a base name; "
                "call for_base() first",
                table=self._table,
                field="base_name",
            )
        tree = SubPartitionTree(
            column=self._column,
            strategy=self._strategy,
            definitions=tuple(self._definitions),
            default_schema=self._schema,
            tablespace=self._tablespace,
        )
        if parent_schema is not None:
            return resolve_schemas(tree, parent_schema)
        return tree


class PartitionTableBuilder:
    """Root-level builder for a partitioned table.

    Example:
        >>> table = (
        ...     PartitionTableBuilder("orders")
        ...     .range("created_at")
        ...     .monthly(3, start="2024-01-01")
        ...     .build()
        ... )
        >>> table.partition_names
        ['orders_m2024_01', 'orders_m2024_02', 'orders_m2024_03']
    """

    def __init__(
        self,
        table: str,
        settings: PartitionSettings | None = None,
        *,
        today: date | None = None,
    ) -> None:
        if not table:
            raise ConfigurationError("Table name must not be empty", field="table")
        self._table = table
        self._today = today
        self._strategy = PartitionStrategy.RANGE
        self._column: str | None = None
        self._definitions: list[PartitionDefinition] = []
        self._checks: list[CheckConstraint] = []
        self._registered_schemas: dict[str, str] = {}
        if settings is not None:
            self._policy = settings.naming
            self._schema = settings.default_schema
            self._tablespace = settings.default_tablespace
            self._pruning = settings.defaults.enable_partition_pruning
            self._detach_concurrently = settings.defaults.detach_concurrently
        else:
            self._policy = NamingPolicy()
            self._schema = None
            self._tablespace = None
            self._pruning = True
            self._detach_concurrently = True

    @property
    def table_name(self) -> str:
        return self._table

    @property
    def strategy(self) -> PartitionStrategy:
        return self._strategy

    @property
    def column(self) -> str | None:
        return self._column

    @property
    def definitions(self) -> tuple[PartitionDefinition, ...]:
        return tuple(self._definitions)

    def partition_by(
        self,
        strategy: PartitionStrategy | str,
        columns: str | Sequence[str],
    ) -> PartitionTableBuilder:
        """Set strategy and partition column(s); several columns are comma-joined."""
        self._strategy = _coerce_strategy(strategy)
        self._column = columns if isinstance(columns, str) else ", ".join(columns)
        return self

    def partition(self, strategy: PartitionStrategy | str) -> PartitionTableBuilder:
        """Set the strategy, keeping the current column."""
        self._strategy = _coerce_strategy(strategy)
        return self

    def range(self, columns: str | Sequence[str]) -> PartitionTableBuilder:
        return self.partition_by(PartitionStrategy.RANGE, columns)

    def list(self, columns: str | Sequence[str]) -> PartitionTableBuilder:
        return self.partition_by(PartitionStrategy.LIST, columns)

    def hash(self, columns: str | Sequence[str]) -> PartitionTableBuilder:
        return self.partition_by(PartitionStrategy.HASH, columns)

    def by_expression(
        self,
        expression: str,
        strategy: PartitionStrategy | str = PartitionStrategy.RANGE,
    ) -> PartitionTableBuilder:
        """Partition by a computed expression, kept opaque."""
        return self.partition_by(strategy, expression)

    def by_year(self, column: str) -> PartitionTableBuilder:
        return self.by_expression(f"EXTRACT(YEAR FROM {column})")

    def by_month(self, column: str) -> PartitionTableBuilder:
        return self.by_expression(f"DATE_TRUNC('month', {column})")

    def by_day(self, column: str) -> PartitionTableBuilder:
        return self.by_expression(f"DATE_TRUNC('day', {column})")

    def schema(self, schema: str) -> PartitionTableBuilder:
        """Set the default schema for partitions without their own."""
        self._schema = schema
        return self

    def register_schema(self, kind: Interval | PartitionStrategy | str, schema: str) -> PartitionTableBuilder:
        """Route generated partitions of one kind to a schema.

        kind is an interval ("monthly", "yearly", ...) or a strategy
        ("hash", "list"); it applies to batches generated by this builder.
        """
        key = kind.value if isinstance(kind, (Interval, PartitionStrategy)) else kind
        self._registered_schemas[key.lower()] = schema
        return self

    def register_schemas(self, schemas: Mapping[str, str]) -> PartitionTableBuilder:
        for kind, schema in schemas.items():
            self.register_schema(kind, schema)
        return self

    def tablespace(self, tablespace: str) -> PartitionTableBuilder:
        self._tablespace = tablespace
        return self

    def naming(self, policy: NamingPolicy) -> PartitionTableBuilder:
        self._policy = policy
        return self

    def enable_partition_pruning(self, enable: bool = True) -> PartitionTableBuilder:
        self._pruning = enable
        return self

    def detach_concurrently(self, enable: bool = True) -> PartitionTableBuilder:
        self._detach_concurrently = enable
        return self

    def check(self, name: str, expression: str) -> PartitionTableBuilder:
        """Declare a CHECK constraint on the parent table."""
        self._checks.append(CheckConstraint(name=name, expression=expression))
        return self

    def _check_strategy(self, strategy: PartitionStrategy, name: str | None = None) -> None:
        if strategy is not self._strategy:
            raise InvalidPartitionTypeError(self._strategy.value, strategy.value, name=name)

    def _schema_for(self, kind: str, schema: str | None) -> str | None:
        return schema or self._registered_schemas.get(kind.lower())

    def add_partition(self, definition: PartitionDefinition) -> PartitionTableBuilder:
        """Add a prepared definition."""
        if not definition.is_default:
            self._check_strategy(definition.strategy, definition.name)
        self._definitions.append(definition)
        return self

    def add_range_partition(
        self,
        name: str,
        from_: Any,
        to: Any,
        schema: str | None = None,
    ) -> PartitionTableBuilder:
        self._check_strategy(PartitionStrategy.RANGE, name)
        return self.add_partition(
            PartitionDefinition.range_partition(name, from_, to, schema=schema, explicit_name=True)
        )

    def add_list_partition(
        self,
        name: str,
        values: Any,
        schema: str | None = None,
    ) -> PartitionTableBuilder:
        self._check_strategy(PartitionStrategy.LIST, name)
        return self.add_partition(
            PartitionDefinition.list_partition(name, values, schema=schema, explicit_name=True)
        )

    def add_hash_partition(
        self,
        name: str,
        modulus: int,
        remainder: int,
        schema: str | None = None,
    ) -> PartitionTableBuilder:
        self._check_strategy(PartitionStrategy.HASH, name)
        return self.add_partition(
            PartitionDefinition.hash_partition(name, modulus, remainder, schema=schema, explicit_name=True)
        )

    def range_sequence(
        self,
        interval: Interval | str,
        count: int | None = None,
        start: Any = None,
        *,
        end: Any = None,
        schema: str | None = None,
        prefix: str | None = None,
    ) -> PartitionTableBuilder:
        """Generate a contiguous date sequence of top-level partitions."""
        self._check_strategy(PartitionStrategy.RANGE)
        interval = coerce_interval(interval)
        self._definitions.extend(
            generate_range_sequence(
                interval,
                base_name=self._table,
                start=start,
                count=count,
                end=end,
                schema=schema
                or _continuation_schema(self._definitions)
                or self._registered_schemas.get(interval.value),
                prefix=prefix,
                policy=self._policy,
                today=self._today,
                continue_from=_continuation_date(self._definitions),
            )
        )
        return self

    def daily(self, count: int | None = None, start: Any = None, **kwargs: Any) -> PartitionTableBuilder:
        return self.range_sequence(Interval.DAILY, count, start, **kwargs)

    def weekly(self, count: int | None = None, start: Any = None, **kwargs: Any) -> PartitionTableBuilder:
        return self.range_sequence(Interval.WEEKLY, count, start, **kwargs)

    def monthly(self, count: int | None = None, start: Any = None, **kwargs: Any) -> PartitionTableBuilder:
        return self.range_sequence(Interval.MONTHLY, count, start, **kwargs)

    def quarterly(self, count: int | None = None, start: Any = None, **kwargs: Any) -> PartitionTableBuilder:
        return self.range_sequence(Interval.QUARTERLY, count, start, **kwargs)

    def yearly(self, count: int | None = None, start: Any = None, **kwargs: Any) -> PartitionTableBuilder:
        return self.range_sequence(Interval.YEARLY, count, start, **kwargs)

    def hash_partitions(
        self,
        modulus: int,
        prefix: str | None = None,
        schema: str | None = None,
    ) -> PartitionTableBuilder:
        """Generate a complete hash batch; names default to "<table>_p<n>"."""
        self._check_strategy(PartitionStrategy.HASH)
        self._definitions.extend(
            generate_hash_batch(
                self._table,
                modulus,
                prefix=resolve_placeholder(prefix, self._table),
                schema=self._schema_for("hash", schema),
                policy=self._policy,
            )
        )
        return self

    def list_partitions(
        self,
        mapping: Mapping[str, Sequence[Any]],
        schema: str | None = None,
        prefix: str | None = None,
    ) -> PartitionTableBuilder:
        """Generate one LIST partition per named value set ("<table>_<key>")."""
        self._check_strategy(PartitionStrategy.LIST)
        self._definitions.extend(
            generate_list_batch(
                self._table,
                mapping,
                prefix=prefix,
                schema=self._schema_for("list", schema),
                policy=self._policy,
            )
        )
        return self

    def with_default_partition(self, name: str = "default", schema: str | None = None) -> PartitionTableBuilder:
        """Add the catch-all partition "<table>_<name>"."""
        if self._strategy is PartitionStrategy.HASH:
            raise InvalidPartitionTypeError(self._strategy.value, "DEFAULT", name=name)
        qualifier = f"{self._table}{self._policy.separator}"
        full_name = name if name.startswith(qualifier) else f"{qualifier}{name}"
        self._definitions.append(
            PartitionDefinition.default_partition(full_name, self._strategy, schema=schema)
        )
        return self

    def with_sub_partitions(self, name: str, builder: SubPartitionBuilder) -> PartitionTableBuilder:
        """Attach a nested level to the partition called name.

        The builder is cloned and bound to the partition name, so the same
        builder can be reused for other partitions.

        Raises:
            PartitionNotFoundError: If no partition has this name.
        """
        for index, definition in enumerate(self._definitions):
            if definition.name == name:
                tree = builder.clone().for_base(definition.name).build()
                self._definitions[index] = definition.with_sub_partitions(tree)
                return self
        raise PartitionNotFoundError(name, table=self._table)

    def with_sub_partitions_for_all(self, builder: SubPartitionBuilder) -> PartitionTableBuilder:
        """Clone one nested level across every non-default partition."""
        for index, definition in enumerate(self._definitions):
            if definition.is_default:
                continue
            tree = builder.clone().for_base(definition.name).build()
            self._definitions[index] = definition.with_sub_partitions(tree)
        return self

    def from_template(self, template: Any) -> PartitionTableBuilder:
        """Apply a PartitionTemplate to this builder."""
        template.apply_to(self, self._table)
        return self

    def build(self) -> PartitionedTable:
        """Freeze the configuration.

        Returns:
            PartitionedTable with effective schemas resolved through every
            level.

        Raises:
            ConfigurationError: If no partition column was set.
        """
        if not self._column:
            raise ConfigurationError(
                "Partition column not specified; call partition_by() first",
                table=self._table,
                field="column",
            )

        with partition_operation(
            "build",
            table=self._table,
            strategy=self._strategy.value,
            count=len(self._definitions),
        ) as s:
            tree = resolve_schemas(
                SubPartitionTree(
                    column=self._column,
                    strategy=self._strategy,
                    definitions=tuple(self._definitions),
                    default_schema=self._schema,
                    tablespace=self._tablespace,
                ),
                None,
            )
            record_result(s, depth=tree.depth)
            return PartitionedTable(
                table=self._table,
                strategy=self._strategy,
                column=self._column,
                schema_name=self._schema,
                tablespace=self._tablespace,
                partitions=tree.definitions,
                check_constraints=tuple(self._checks),
                enable_partition_pruning=self._pruning,
                detach_concurrently=self._detach_concurrently,
            )
