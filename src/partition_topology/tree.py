"""Tree composition for nested partitioning.

This module provides:
- resolve_schemas: depth-first schema/tablespace inheritance
- flatten: ordered per-partition records for executors
- TreeNode / compose_tree / format_tree: readable tree rendering
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from partition_topology.models import (
    Boundary,
    DefaultBound,
    HashBound,
    ListBound,
    PartitionedTable,
    PartitionStrategy,
    RangeBound,
    Sentinel,
    SubPartitionTree,
)


class ResolvedPartition(BaseModel):
    """One partition with its effective placement, ready for an executor.

    Attributes:
        name: Partition table name.
        parent: Qualified name of the table it is a partition of.
        depth: 1 for top-level partitions, 2 for their children, ...
        strategy: Strategy of the level the partition belongs to.
        boundary: Typed boundary.
        schema_name: Effective schema (alias "schema").
        tablespace: Effective tablespace.
        partition_by: PARTITION BY clause when the partition is itself
            partitioned.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    name: str
    parent: str
    depth: int = Field(..., ge=1)
    strategy: PartitionStrategy
    boundary: Boundary
    schema_name: str | None = Field(default=None, alias="schema")
    tablespace: str | None = None
    partition_by: str | None = None

    @property
    def qualified_name(self) -> str:
        """Return schema.name when a schema is set, else the name."""
        if self.schema_name:
            return f"{self.schema_name}.{self.name}"
        return self.name

    def to_sql(self) -> str:
        """Render the boundary clause."""
        return self.boundary.to_sql()


def resolve_schemas(tree: SubPartitionTree, parent_schema: str | None) -> SubPartitionTree:
    """Apply effective schemas and tablespaces through every level.

    The level's schema is its default_schema, or parent_schema when it has
    none. Definitions without their own schema take the level's; nested
    levels recurse with each definition's resolved schema.

    Args:
        tree: Level to resolve.
        parent_schema: Effective schema of the enclosing partition.

    Returns:
        A new tree; the input is not modified.
    """
    effective = tree.default_schema or parent_schema
    definitions = []
    for definition in tree.definitions:
        schema = definition.schema_name or effective
        sub_tree = definition.sub_partitions
        if sub_tree is not None:
            sub_tree = resolve_schemas(sub_tree, schema)
        definitions.append(
            definition.model_copy(
                update={
                    "schema_name": schema,
                    "tablespace": definition.tablespace or tree.tablespace,
                    "sub_partitions": sub_tree,
                }
            )
        )
    return tree.model_copy(update={"definitions": tuple(definitions)})


def flatten(
    source: PartitionedTable | SubPartitionTree,
    parent: str | None = None,
) -> list[ResolvedPartition]:
    """Flatten a partition tree into executor-ready records.

    Records are in creation order: every partition precedes its own
    sub-partitions, siblings keep generation order.

    Args:
        source: A built table, or a single level.
        parent: Parent table name; required when source is a level.

    Returns:
        Ordered ResolvedPartition records.
    """
    if isinstance(source, PartitionedTable):
        tree = resolve_schemas(source.as_tree(), None)
        parent = source.table
    else:
        if parent is None:
            raise ValueError("parent is required when flattening a sub-partition level")
        tree = source

    records: list[ResolvedPartition] = []
    _walk(tree, parent, 1, records)
    return records


def _walk(tree: SubPartitionTree, parent: str, depth: int, records: list[ResolvedPartition]) -> None:
    for definition in tree.definitions:
        sub_tree = definition.sub_partitions
        record = ResolvedPartition(
            name=definition.name,
            parent=parent,
            depth=depth,
            strategy=tree.strategy,
            boundary=definition.boundary,
            schema_name=definition.schema_name,
            tablespace=definition.tablespace,
            partition_by=(
                f"PARTITION BY {sub_tree.strategy.value} ({sub_tree.column})" if sub_tree else None
            ),
        )
        records.append(record)
        if sub_tree is not None:
            _walk(sub_tree, record.qualified_name, depth + 1, records)


class TreeNode(BaseModel):
    """Node of a rendered partition tree."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    bounds: str | None = None
    partition_by: str | None = None
    children: tuple[TreeNode, ...] = ()

    @property
    def size(self) -> int:
        """Return the number of nodes below this one."""
        return sum(1 + child.size for child in self.children)


def _display(value: object) -> str:
    if isinstance(value, tuple):
        return ", ".join(_display(v) for v in value)
    if isinstance(value, Sentinel):
        return value.value
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def describe_boundary(boundary: Boundary) -> str:
    """Render a boundary for tree views.

    Example:
        >>> describe_boundary(HashBound(modulus=4, remainder=1))
        '[mod 4, rem 1]'
    """
    if isinstance(boundary, RangeBound):
        return f"[{_display(boundary.from_)} → {_display(boundary.to)}]"
    if isinstance(boundary, ListBound):
        return f"[IN: {_display(boundary.values)}]"
    if isinstance(boundary, HashBound):
        return f"[mod {boundary.modulus}, rem {boundary.remainder}]"
    if isinstance(boundary, DefaultBound):
        return "[DEFAULT]"
    raise TypeError(f"Unknown boundary type: {type(boundary).__name__}")


def _level_nodes(tree: SubPartitionTree) -> tuple[TreeNode, ...]:
    nodes = []
    for definition in tree.definitions:
        sub_tree = definition.sub_partitions
        nodes.append(
            TreeNode(
                name=definition.qualified_name,
                bounds=describe_boundary(definition.boundary),
                partition_by=f"{sub_tree.strategy.value} ({sub_tree.column})" if sub_tree else None,
                children=_level_nodes(sub_tree) if sub_tree else (),
            )
        )
    return tuple(nodes)


def compose_tree(table: PartitionedTable) -> TreeNode:
    """Build the tree view of a built table."""
    return TreeNode(
        name=table.table,
        partition_by=f"{table.strategy.value} ({table.column})",
        children=_level_nodes(table.as_tree()),
    )


def _label(node: TreeNode) -> str:
    label = node.name
    if node.bounds:
        label = f"{label} {node.bounds}"
    if node.partition_by:
        label = f"{label} ({node.partition_by})"
    return label


def _render(children: tuple[TreeNode, ...], indent: str, lines: list[str]) -> None:
    for index, child in enumerate(children):
        last = index == len(children) - 1
        lines.append(f"{indent}{'└── ' if last else '├── '}{_label(child)}")
        _render(child.children, indent + ("    " if last else "│   "), lines)


def format_tree(node: TreeNode) -> str:
    """Render a tree as text.

    Example:
        >>> print(format_tree(compose_tree(table)))
        orders (RANGE (created_at))
        ├── orders_m2024_01 [2024-01-01 → 2024-02-01]
        └── orders_m2024_02 [2024-02-01 → 2024-03-01]
    """
    lines = [_label(node)]
    _render(node.children, "", lines)
    return "\n".join(lines)
