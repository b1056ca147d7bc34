"""partition-topology: partitioning topology for large relational tables.

This package provides:
- Typed partition boundaries (RANGE, LIST, HASH, DEFAULT) and nested trees
- Builders with deterministic naming and contiguous date sequences
- A boundary parser for catalog-reported partition expressions
- Health analysis (gaps, overlaps, missing indexes)
- Rotation planning (create-ahead, drop-behind) and split/merge planning
- Reusable partition templates

Executing the planned DDL is left to the caller through the
PartitionExecutor protocol.

Example:
    >>> from partition_topology import PartitionTableBuilder
    >>>
    >>> table = (
    ...     PartitionTableBuilder("events")
    ...     .range("created_at")
    ...     .monthly(3, start="2024-01-01")
    ...     .build()
    ... )
    >>> table.partition_names
    ['events_m2024_01', 'events_m2024_02', 'events_m2024_03']
"""

from __future__ import annotations

__version__ = "0.1.0"

__all__ = [
    # Builders
    "PartitionTableBuilder",
    "SubPartitionBuilder",
    # Data models
    "PartitionStrategy",
    "Sentinel",
    "RangeBound",
    "ListBound",
    "HashBound",
    "DefaultBound",
    "PartitionDefinition",
    "SubPartitionTree",
    "PartitionedTable",
    "Interval",
    # Configuration
    "NamingPolicy",
    "PartitionBehavior",
    "PartitionSettings",
    # Templates
    "PartitionTemplate",
    "TemplateRegistry",
    # Parser and health
    "parse_boundary",
    "ParsedBoundary",
    "PartitionBoundary",
    "HealthReport",
    "analyze",
    # Catalog and rotation
    "CatalogReader",
    "PartitionExecutor",
    "TableSnapshot",
    "read_snapshot",
    "RotationEngine",
    "RotationPlan",
    "MaintenanceResult",
    "SchemaCache",
    # Exceptions
    "PartitionError",
    "ConfigurationError",
    "InvalidPartitionTypeError",
    "PartitionNotFoundError",
    "TemplateNotFoundError",
    "BoundaryParseError",
]

_MODULES = {
    "PartitionTableBuilder": "builders",
    "SubPartitionBuilder": "builders",
    "PartitionStrategy": "models",
    "Sentinel": "models",
    "RangeBound": "models",
    "ListBound": "models",
    "HashBound": "models",
    "DefaultBound": "models",
    "PartitionDefinition": "models",
    "SubPartitionTree": "models",
    "PartitionedTable": "models",
    "Interval": "intervals",
    "NamingPolicy": "config",
    "PartitionBehavior": "config",
    "PartitionSettings": "config",
    "PartitionTemplate": "templates",
    "TemplateRegistry": "templates",
    "parse_boundary": "parser",
    "ParsedBoundary": "parser",
    "PartitionBoundary": "parser",
    "HealthReport": "health",
    "analyze": "health",
    "CatalogReader": "catalog",
    "PartitionExecutor": "catalog",
    "TableSnapshot": "catalog",
    "read_snapshot": "catalog",
    "RotationEngine": "rotation",
    "RotationPlan": "rotation",
    "MaintenanceResult": "rotation",
    "SchemaCache": "schema_cache",
    "PartitionError": "errors",
    "ConfigurationError": "errors",
    "InvalidPartitionTypeError": "errors",
    "PartitionNotFoundError": "errors",
    "TemplateNotFoundError": "errors",
    "BoundaryParseError": "errors",
}


def __getattr__(name: str) -> object:
    """Lazy import of public API members."""
    module_name = _MODULES.get(name)
    if module_name is None:
        msg = f"module {__name__!r} has no attribute {name!r}"
        raise AttributeError(msg)
    from importlib import import_module

    return getattr(import_module(f"{__name__}.{module_name}"), name)
