"""Reusable partition templates.

A template is pure data describing how a table should be partitioned. It
is applied to a PartitionTableBuilder for a concrete table, where "%" in
its schema and prefix stands for the table name.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterable, Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator

from partition_topology.config import PartitionSettings
from partition_topology.errors import ConfigurationError, TemplateNotFoundError
from partition_topology.intervals import Interval, coerce_interval
from partition_topology.models import PartitionStrategy
from partition_topology.naming import resolve_placeholder
from partition_topology.observability import get_logger

if TYPE_CHECKING:
    from partition_topology.builders import PartitionTableBuilder

logger = get_logger()

_OVERRIDE_KEYS = {
    "type": "strategy",
    "column": "columns",
    "schema": "schema_name",
    "modulus": "hash_modulus",
    "values": "list_values",
}


class PartitionTemplate(BaseModel):
    """Partitioning recipe applicable to any table.

    Attributes:
        name: Template name.
        strategy: Partition strategy.
        columns: Partition column(s).
        interval: Interval of RANGE sequences.
        count: Number of RANGE partitions.
        schema_name: Schema for partitions, "%" replaced by the table name
            (alias "schema").
        tablespace: Tablespace for partitions.
        default_partition: Add a DEFAULT partition.
        future_partitions: Extra RANGE partitions on top of count.
        hash_modulus: Number of HASH partitions.
        prefix: Partition name prefix, "%" replaced by the table name.
        list_values: One LIST partition per value.

    Example:
        >>> monthly = PartitionTemplate(name="monthly_logs", strategy="RANGE",
        ...                             columns="logged_at", interval="monthly")
        >>> yearly = monthly.merge({"interval": "yearly", "count": 5})
        >>> monthly.interval, yearly.interval
        (<Interval.MONTHLY: 'monthly'>, <Interval.YEARLY: 'yearly'>)
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    name: str = Field(default="anonymous", min_length=1)
    strategy: PartitionStrategy | None = None
    columns: str | tuple[str, ...] | None = None
    interval: Interval | None = None
    count: int = Field(default=12, ge=0)
    schema_name: str | None = Field(default=None, alias="schema")
    tablespace: str | None = None
    default_partition: bool = False
    future_partitions: int = Field(default=0, ge=0)
    hash_modulus: int = Field(default=0, ge=0)
    prefix: str | None = None
    list_values: tuple[Any, ...] = ()

    @field_validator("strategy", mode="before")
    @classmethod
    def normalize_strategy(cls, v: Any) -> Any:
        if isinstance(v, str) and not isinstance(v, PartitionStrategy):
            return v.strip().upper()
        return v

    @field_validator("interval", mode="before")
    @classmethod
    def normalize_interval(cls, v: Any) -> Any:
        if isinstance(v, str) and not isinstance(v, Interval):
            return coerce_interval(v)
        return v

    @field_validator("columns", mode="before")
    @classmethod
    def normalize_columns(cls, v: Any) -> Any:
        if isinstance(v, list):
            return tuple(v)
        return v

    @classmethod
    def from_config(cls, name: str, config: Mapping[str, Any]) -> PartitionTemplate:
        """Create a template from a raw config mapping.

        Accepts config keys (type, column/columns, modulus, values, ...)
        as well as field names.
        """
        return cls(name=name).merge(config)

    def merge(self, overrides: Mapping[str, Any]) -> PartitionTemplate:
        """Return a new template with only the supplied keys replaced.

        Keys whose value is None are ignored. The template itself is never
        modified.

        Raises:
            ConfigurationError: If a key is unknown.
        """
        update: dict[str, Any] = {}
        for key, value in overrides.items():
            if value is None:
                continue
            field = _OVERRIDE_KEYS.get(key, key)
            if field not in type(self).model_fields:
                raise ConfigurationError(f"Unknown template key '{key}'", field=key)
            update[field] = value
        return type(self).model_validate({**self.model_dump(), **update})

    def with_range(self, columns: str | Iterable[str]) -> PartitionTemplate:
        return self.merge({"strategy": PartitionStrategy.RANGE, "columns": _columns(columns)})

    def with_list(self, column: str) -> PartitionTemplate:
        return self.merge({"strategy": PartitionStrategy.LIST, "columns": column})

    def with_hash(self, column: str, modulus: int) -> PartitionTemplate:
        return self.merge({"strategy": PartitionStrategy.HASH, "columns": column, "hash_modulus": modulus})

    def with_interval(self, interval: Interval | str, count: int = 12) -> PartitionTemplate:
        return self.merge({"interval": coerce_interval(interval), "count": count})

    def with_values(self, values: Iterable[Any]) -> PartitionTemplate:
        return self.merge({"list_values": tuple(values)})

    def with_schema(self, schema: str) -> PartitionTemplate:
        return self.merge({"schema_name": schema})

    def with_tablespace(self, tablespace: str) -> PartitionTemplate:
        return self.merge({"tablespace": tablespace})

    def with_prefix(self, prefix: str) -> PartitionTemplate:
        return self.merge({"prefix": prefix})

    def with_default_partition(self, enabled: bool = True) -> PartitionTemplate:
        return self.merge({"default_partition": enabled})

    def with_future_partitions(self, count: int) -> PartitionTemplate:
        return self.merge({"future_partitions": count})

    def apply_to(self, builder: PartitionTableBuilder, table_name: str) -> PartitionTableBuilder:
        """Configure a table builder from this template.

        RANGE templates generate count + future_partitions partitions of the
        interval, LIST templates one partition per value, HASH templates
        hash_modulus partitions.

        Raises:
            ConfigurationError: If a RANGE template has no interval.
        """
        if self.columns is not None:
            builder.partition_by(self.strategy or builder.strategy, self.columns)
        elif self.strategy is not None:
            builder.partition(self.strategy)

        if self.schema_name is not None:
            builder.schema(resolve_placeholder(self.schema_name, table_name) or self.schema_name)
        if self.tablespace is not None:
            builder.tablespace(self.tablespace)

        prefix = resolve_placeholder(self.prefix, table_name)

        if self.strategy is PartitionStrategy.RANGE:
            if self.interval is None:
                raise ConfigurationError(
                    f"Template '{self.name}' has no interval for RANGE partitions",
                    table=table_name,
                    field="interval",
                )
            builder.range_sequence(self.interval, self.count + self.future_partitions, prefix=prefix)
        elif self.strategy is PartitionStrategy.LIST and self.list_values:
            builder.list_partitions({str(value): [value] for value in self.list_values}, prefix=prefix)
        elif self.strategy is PartitionStrategy.HASH and self.hash_modulus > 0:
            builder.hash_partitions(self.hash_modulus, prefix)

        if self.default_partition:
            builder.with_default_partition()

        logger.debug("template_applied", template=self.name, table=table_name)
        return builder


def _columns(columns: str | Iterable[str]) -> str | tuple[str, ...]:
    if isinstance(columns, str):
        return columns
    return tuple(columns)


class TemplateRegistry:
    """Named templates available to table builders.

    Example:
        >>> registry = TemplateRegistry.from_settings(settings)
        >>> registry.get("monthly_logs").apply_to(PartitionTableBuilder("logs"), "logs")
    """

    def __init__(self, templates: Iterable[PartitionTemplate] = ()) -> None:
        self._templates: dict[str, PartitionTemplate] = {}
        for template in templates:
            self.register(template)

    @classmethod
    def from_settings(cls, settings: PartitionSettings) -> TemplateRegistry:
        """Build a registry from settings.templates."""
        return cls(PartitionTemplate.from_config(name, config) for name, config in settings.templates.items())

    def register(self, template: PartitionTemplate) -> TemplateRegistry:
        """Register a template, replacing any with the same name."""
        self._templates[template.name] = template
        return self

    def get(self, name: str) -> PartitionTemplate:
        """Return the template with this name.

        Raises:
            TemplateNotFoundError: If no template has this name.
        """
        try:
            return self._templates[name]
        except KeyError:
            raise TemplateNotFoundError(name, self.names()) from None

    def names(self) -> list[str]:
        return sorted(self._templates)

    def __contains__(self, name: object) -> bool:
        return name in self._templates

    def __len__(self) -> int:
        return len(self._templates)
