"""Boundary model for partition-topology.

This module provides:
- PartitionStrategy: RANGE / LIST / HASH
- Sentinel: MINVALUE / MAXVALUE range sentinels
- RangeBound, ListBound, HashBound, DefaultBound: typed boundaries
- PartitionDefinition: one partition with its boundary and placement
- SubPartitionTree: a nested partitioning level under a partition
- PartitionedTable: immutable output of the table builder
- format_sql_value / sort_key: value rendering and semantic ordering

Boundaries are kept as typed data from the moment they are created. The
SQL rendering here is the serialization that parser.parse_boundary reverses.
"""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, field_validator, model_validator
from typing_extensions import Self


class PartitionStrategy(str, Enum):
    """Rule by which rows are routed to child tables.

    Fixed at the root of a partitioned table; each nesting level may use a
    different strategy.
    """

    RANGE = "RANGE"
    LIST = "LIST"
    HASH = "HASH"


class Sentinel(str, Enum):
    """Unbounded range limits. Rendered without quotes."""

    MINVALUE = "MINVALUE"
    MAXVALUE = "MAXVALUE"


ScalarValue = Union[Sentinel, bool, int, float, datetime, date, str, None]
"""A single boundary value; None renders as NULL."""

RangeValue = Union[ScalarValue, tuple[ScalarValue, ...]]
"""A range limit: one value, or one value per column for multi-column keys."""


def _normalize_range_value(value: Any) -> Any:
    if isinstance(value, str) and not isinstance(value, Sentinel):
        if value in (Sentinel.MINVALUE.value, Sentinel.MAXVALUE.value):
            return Sentinel(value)
        return value
    if isinstance(value, list | tuple):
        return tuple(_normalize_range_value(v) for v in value)
    return value


def _as_value_tuple(values: Any) -> tuple[Any, ...]:
    if isinstance(values, str | bytes | date) or not hasattr(values, "__iter__"):
        return (values,)
    return tuple(values)


def format_sql_value(value: Any) -> str:
    """Render a boundary value as a SQL literal.

    Args:
        value: Scalar value or tuple of values (multi-column).

    Returns:
        SQL literal text.

    Example:
        >>> format_sql_value("O'Brien")
        "'O''Brien'"
        >>> format_sql_value((date(2024, 1, 1), 100))
        "'2024-01-01', 100"
    """
    if isinstance(value, tuple | list):
        return ", ".join(format_sql_value(v) for v in value)
    if isinstance(value, Sentinel):
        return value.value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int | float):
        return str(value)
    if isinstance(value, datetime):
        return f"'{value:%Y-%m-%d %H:%M:%S}'"
    if isinstance(value, date):
        return f"'{value.isoformat()}'"
    if value is None:
        return "NULL"
    escaped = str(value).replace("'", "''")
    return f"'{escaped}'"


def sort_key(value: Any) -> tuple[Any, ...]:
    """Return a total-order key for a boundary value.

    Numbers compare numerically, dates and strings lexically (ISO dates
    order correctly), MINVALUE sorts first and MAXVALUE last. Multi-column
    values are ordered by their first column.

    Args:
        value: Boundary value.

    Returns:
        Tuple usable as a sort key and for < / > comparisons.
    """
    if isinstance(value, tuple | list):
        value = value[0] if value else None
    if isinstance(value, Sentinel):
        return (0,) if value is Sentinel.MINVALUE else (2,)
    if value is None:
        return (1, 2, "")
    if isinstance(value, bool):
        return (1, 0, int(value))
    if isinstance(value, int | float):
        return (1, 0, value)
    if isinstance(value, datetime):
        return (1, 1, value.isoformat(sep=" "))
    if isinstance(value, date):
        return (1, 1, value.isoformat())
    return (1, 1, str(value))


class RangeBound(BaseModel):
    """Half-open interval [from, to) for RANGE partitions.

    Attributes:
        from_: Inclusive lower limit (alias "from").
        to: Exclusive upper limit.

    Example:
        >>> bound = RangeBound(**{"from": "2024-01-01", "to": "2024-02-01"})
        >>> bound.to_sql()
        "FOR VALUES FROM ('2024-01-01') TO ('2024-02-01')"
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    kind: Literal["range"] = Field(default="range", description="Boundary discriminator")
    from_: RangeValue = Field(..., alias="from", description="Inclusive lower limit")
    to: RangeValue = Field(..., description="Exclusive upper limit")

    @field_validator("from_", "to", mode="before")
    @classmethod
    def normalize_sentinels(cls, v: Any) -> Any:
        """Turn the strings MINVALUE / MAXVALUE into sentinels."""
        return _normalize_range_value(v)

    @property
    def strategy(self) -> PartitionStrategy:
        """Return the strategy this boundary belongs to."""
        return PartitionStrategy.RANGE

    def to_sql(self) -> str:
        """Render the boundary clause."""
        return f"FOR VALUES FROM ({format_sql_value(self.from_)}) TO ({format_sql_value(self.to)})"


class ListBound(BaseModel):
    """Discrete value set for LIST partitions."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["list"] = Field(default="list", description="Boundary discriminator")
    values: tuple[ScalarValue, ...] = Field(
        ...,
        min_length=1,
        description="Ordered values routed to this partition",
    )

    @property
    def strategy(self) -> PartitionStrategy:
        """Return the strategy this boundary belongs to."""
        return PartitionStrategy.LIST

    def to_sql(self) -> str:
        """Render the boundary clause."""
        return f"FOR VALUES IN ({format_sql_value(self.values)})"


class HashBound(BaseModel):
    """Modulus/remainder pair for HASH partitions.

    A complete hash partitioning of degree M has M siblings whose remainders
    are 0..M-1, each exactly once.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["hash"] = Field(default="hash", description="Boundary discriminator")
    modulus: int = Field(..., ge=1, description="Number of hash buckets")
    remainder: int = Field(..., ge=0, description="Bucket index")

    @model_validator(mode="after")
    def validate_remainder_below_modulus(self) -> Self:
        """Validate 0 <= remainder < modulus."""
        if self.remainder >= self.modulus:
            msg = f"remainder ({self.remainder}) must be < modulus ({self.modulus})"
            raise ValueError(msg)
        return self

    @property
    def strategy(self) -> PartitionStrategy:
        """Return the strategy this boundary belongs to."""
        return PartitionStrategy.HASH

    def to_sql(self) -> str:
        """Render the boundary clause."""
        return f"FOR VALUES WITH (modulus {self.modulus}, remainder {self.remainder})"


class DefaultBound(BaseModel):
    """Catch-all boundary for rows no sibling accepts."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["default"] = Field(default="default", description="Boundary discriminator")

    @property
    def strategy(self) -> None:
        """Default partitions are valid under RANGE and LIST parents."""
        return None

    def to_sql(self) -> str:
        """Render the boundary clause."""
        return "DEFAULT"


Boundary = Annotated[
    RangeBound | ListBound | HashBound | DefaultBound,
    Discriminator("kind"),
]
"""Partition boundary with discriminated union on the "kind" field."""


class PartitionDefinition(BaseModel):
    """One partition: its name, boundary and placement.

    Owned by the builder that created it until handed to an executor;
    frozen afterwards. Use with_schema() / with_sub_partitions() to derive
    amended copies.

    Attributes:
        name: Partition table name (unqualified).
        strategy: Strategy of the parent level.
        boundary: Typed boundary.
        schema_name: Target schema (alias "schema").
        tablespace: Target tablespace.
        explicit_name: True when the caller named the partition directly.
        sub_partitions: Nested partitioning of this partition.

    Example:
        >>> p = PartitionDefinition.range_partition("t_m2024_01", "2024-01-01", "2024-02-01")
        >>> p.to_sql()
        "FOR VALUES FROM ('2024-01-01') TO ('2024-02-01')"
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    name: str = Field(..., min_length=1, description="Partition table name")
    strategy: PartitionStrategy = Field(..., description="Strategy of the parent level")
    boundary: Boundary = Field(..., description="Typed partition boundary")
    schema_name: str | None = Field(default=None, alias="schema", description="Target schema")
    tablespace: str | None = Field(default=None, description="Target tablespace")
    explicit_name: bool = Field(default=False, description="Name given by the caller")
    sub_partitions: SubPartitionTree | None = Field(
        default=None,
        description="Nested partitioning of this partition",
    )

    @model_validator(mode="after")
    def validate_boundary_strategy(self) -> Self:
        """Validate the boundary kind matches the declared strategy."""
        bound_strategy = self.boundary.strategy
        if bound_strategy is None:
            if self.strategy is PartitionStrategy.HASH:
                msg = "HASH partitioned tables cannot have a DEFAULT partition"
                raise ValueError(msg)
        elif bound_strategy is not self.strategy:
            msg = f"{bound_strategy.value} boundary on {self.strategy.value} partition {self.name}"
            raise ValueError(msg)
        return self

    @classmethod
    def range_partition(
        cls,
        name: str,
        from_: Any,
        to: Any,
        *,
        schema: str | None = None,
        tablespace: str | None = None,
        explicit_name: bool = False,
    ) -> PartitionDefinition:
        """Create a RANGE partition definition."""
        return cls(
            name=name,
            strategy=PartitionStrategy.RANGE,
            boundary=RangeBound(from_=from_, to=to),
            schema_name=schema,
            tablespace=tablespace,
            explicit_name=explicit_name,
        )

    @classmethod
    def list_partition(
        cls,
        name: str,
        values: Any,
        *,
        schema: str | None = None,
        tablespace: str | None = None,
        explicit_name: bool = False,
    ) -> PartitionDefinition:
        """Create a LIST partition definition."""
        return cls(
            name=name,
            strategy=PartitionStrategy.LIST,
            boundary=ListBound(values=_as_value_tuple(values)),
            schema_name=schema,
            tablespace=tablespace,
            explicit_name=explicit_name,
        )

    @classmethod
    def hash_partition(
        cls,
        name: str,
        modulus: int,
        remainder: int,
        *,
        schema: str | None = None,
        tablespace: str | None = None,
        explicit_name: bool = False,
    ) -> PartitionDefinition:
        """Create a HASH partition definition."""
        return cls(
            name=name,
            strategy=PartitionStrategy.HASH,
            boundary=HashBound(modulus=modulus, remainder=remainder),
            schema_name=schema,
            tablespace=tablespace,
            explicit_name=explicit_name,
        )

    @classmethod
    def default_partition(
        cls,
        name: str,
        strategy: PartitionStrategy,
        *,
        schema: str | None = None,
        tablespace: str | None = None,
    ) -> PartitionDefinition:
        """Create a DEFAULT partition definition under a RANGE or LIST parent."""
        return cls(
            name=name,
            strategy=strategy,
            boundary=DefaultBound(),
            schema_name=schema,
            tablespace=tablespace,
            explicit_name=True,
        )

    @property
    def qualified_name(self) -> str:
        """Return schema.name when a schema is set, else the name."""
        if self.schema_name:
            return f"{self.schema_name}.{self.name}"
        return self.name

    @property
    def is_default(self) -> bool:
        """Return True for the catch-all partition."""
        return isinstance(self.boundary, DefaultBound)

    def with_schema(self, schema: str | None) -> PartitionDefinition:
        """Return a copy placed in another schema."""
        return self.model_copy(update={"schema_name": schema})

    def with_sub_partitions(self, tree: SubPartitionTree | None) -> PartitionDefinition:
        """Return a copy carrying the given nested partitioning."""
        return self.model_copy(update={"sub_partitions": tree})

    def to_sql(self) -> str:
        """Render the boundary clause of this partition."""
        return self.boundary.to_sql()


class SubPartitionTree(BaseModel):
    """One nested partitioning level.

    Attributes:
        column: Partition column or expression of this level.
        strategy: Strategy of this level.
        definitions: Ordered partitions of this level.
        default_schema: Fallback schema for definitions without their own.
        tablespace: Fallback tablespace for definitions without their own.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    column: str = Field(..., min_length=1, description="Partition column or expression")
    strategy: PartitionStrategy = Field(..., description="Strategy of this level")
    definitions: tuple[PartitionDefinition, ...] = Field(
        default=(),
        description="Ordered partitions of this level",
    )
    default_schema: str | None = Field(default=None, description="Fallback schema")
    tablespace: str | None = Field(default=None, description="Fallback tablespace")

    @model_validator(mode="after")
    def validate_definition_strategies(self) -> Self:
        """Validate every definition uses this level's strategy."""
        for definition in self.definitions:
            if definition.strategy is not self.strategy:
                msg = (
                    f"Partition {definition.name} is {definition.strategy.value}, "
                    f"level is {self.strategy.value}"
                )
                raise ValueError(msg)
        return self

    @property
    def depth(self) -> int:
        """Return the number of partitioning levels from here down."""
        below = [d.sub_partitions.depth for d in self.definitions if d.sub_partitions]
        return 1 + max(below, default=0)


PartitionDefinition.model_rebuild()


class CheckConstraint(BaseModel):
    """Named CHECK constraint declared on a partitioned table."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1, description="Constraint name")
    expression: str = Field(..., min_length=1, description="Boolean SQL expression")


class PartitionedTable(BaseModel):
    """Immutable result of PartitionTableBuilder.build().

    Attributes:
        table: Parent table name.
        strategy: Root partitioning strategy.
        column: Partition column(s) or expression.
        schema_name: Default schema for partitions (alias "schema").
        tablespace: Default tablespace for partitions.
        partitions: Top-level partitions in generation order, with effective
            schemas already resolved through every level.
        check_constraints: CHECK constraints for the parent table.
        enable_partition_pruning: Behaviour toggle for executors.
        detach_concurrently: Behaviour toggle for executors.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    table: str = Field(..., min_length=1, description="Parent table name")
    strategy: PartitionStrategy = Field(..., description="Root partitioning strategy")
    column: str = Field(..., min_length=1, description="Partition column(s) or expression")
    schema_name: str | None = Field(default=None, alias="schema", description="Default schema")
    tablespace: str | None = Field(default=None, description="Default tablespace")
    partitions: tuple[PartitionDefinition, ...] = Field(
        default=(),
        description="Top-level partitions",
    )
    check_constraints: tuple[CheckConstraint, ...] = Field(
        default=(),
        description="CHECK constraints for the parent table",
    )
    enable_partition_pruning: bool = Field(default=True, description="Keep planner pruning enabled")
    detach_concurrently: bool = Field(default=True, description="Detach without blocking readers")

    @property
    def partition_names(self) -> list[str]:
        """Return top-level partition names in generation order."""
        return [p.name for p in self.partitions]

    @property
    def partition_by_sql(self) -> str:
        """Render the PARTITION BY clause of the parent table."""
        return f"PARTITION BY {self.strategy.value} ({self.column})"

    def as_tree(self) -> SubPartitionTree:
        """Return the top level as a SubPartitionTree."""
        return SubPartitionTree(
            column=self.column,
            strategy=self.strategy,
            definitions=self.partitions,
            default_schema=self.schema_name,
            tablespace=self.tablespace,
        )

    def get(self, name: str) -> PartitionDefinition | None:
        """Return the top-level partition with this name, if any."""
        for partition in self.partitions:
            if partition.name == name:
                return partition
        return None
