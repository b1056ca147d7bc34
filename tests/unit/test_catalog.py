"""Unit tests for catalog snapshots and tree reading."""

from __future__ import annotations

from typing import TYPE_CHECKING

from partition_topology.catalog import (
    CatalogReader,
    PartitionExecutor,
    TableSnapshot,
    read_snapshot,
    read_tree,
)
from partition_topology.intervals import Interval
from partition_topology.parser import PartitionBoundary
from partition_topology.tree import format_tree

if TYPE_CHECKING:
    from conftest import InMemoryCatalog, YearlyRows


class TestProtocols:
    """The in-memory fake satisfies both collaborator protocols."""

    def test_runtime_checkable(self, catalog: InMemoryCatalog) -> None:
        assert isinstance(catalog, CatalogReader)
        assert isinstance(catalog, PartitionExecutor)


class TestReadSnapshot:
    """Tests for read_snapshot."""

    def test_reads_partitions_columns_and_indexes(self, catalog: InMemoryCatalog, yearly: YearlyRows) -> None:
        catalog.add_table("t", "created_at", yearly("t", [2023, 2024]))
        catalog.indexes = {"t": ["t_idx"], "t_y2023": ["t_y2023_idx"]}

        snapshot = read_snapshot(catalog, "t")

        assert snapshot.column == "created_at"
        assert [p.name for p in snapshot.partitions] == ["t_y2023", "t_y2024"]
        assert snapshot.indexes == ("t_idx",)
        assert snapshot.partition_indexes == {"t_y2023": ("t_y2023_idx",), "t_y2024": ()}

    def test_explicit_column_wins(self, catalog: InMemoryCatalog) -> None:
        catalog.add_table("t", "created_at")
        assert read_snapshot(catalog, "t", column="other").column == "other"

    def test_every_call_is_fresh(self, catalog: InMemoryCatalog, yearly: YearlyRows) -> None:
        catalog.add_table("t", "c", yearly("t", [2023]))
        first = read_snapshot(catalog, "t")
        catalog.partitions["t"].extend(yearly("t", [2024]))
        assert len(first.partitions) == 1
        assert len(read_snapshot(catalog, "t").partitions) == 2


class TestTableSnapshot:
    """Tests for snapshot helpers."""

    def _snapshot(self) -> TableSnapshot:
        rows = [
            ("hot.t_m2024_02", "FOR VALUES FROM ('2024-02-01') TO ('2024-03-01')"),
            ("cold.t_m2024_01", "FOR VALUES FROM ('2024-01-01') TO ('2024-02-01')"),
            ("t_default", "DEFAULT"),
        ]
        return TableSnapshot(
            table="t",
            partitions=tuple(PartitionBoundary.from_row(n, e) for n, e in rows),
        )

    def test_range_partitions_sorted(self) -> None:
        names = [p.name for p in self._snapshot().range_partitions]
        assert names == ["cold.t_m2024_01", "hot.t_m2024_02"]

    def test_names_include_unqualified(self) -> None:
        snapshot = self._snapshot()
        assert snapshot.has_partition("t_m2024_01")
        assert snapshot.has_partition("cold.t_m2024_01")
        assert not snapshot.has_partition("t_m2024_03")

    def test_detect_interval_and_latest_schema(self) -> None:
        snapshot = self._snapshot()
        assert snapshot.detect_interval() is Interval.MONTHLY
        assert snapshot.latest_schema() == "hot"

    def test_empty_snapshot(self) -> None:
        snapshot = TableSnapshot(table="t")
        assert snapshot.detect_interval() is None
        assert snapshot.latest_schema() is None


class TestReadTree:
    """Tests for reading nested hierarchies."""

    def test_nested_tree(self, catalog: InMemoryCatalog, yearly: YearlyRows) -> None:
        catalog.add_table("orders", "created_at", yearly("orders", [2024, 2023]))
        catalog.add_table(
            "orders_y2024",
            "region",
            [("orders_y2024_us", "FOR VALUES IN ('US')"), ("orders_y2024_eu", "FOR VALUES IN ('DE', 'FR')")],
        )

        node = read_tree(catalog, "orders")

        assert [child.name for child in node.children] == ["orders_y2023", "orders_y2024"]
        assert node.size == 4
        assert format_tree(node).splitlines() == [
            "orders (created_at)",
            "├── orders_y2023 [2023-01-01 → 2024-01-01]",
            "└── orders_y2024 [2024-01-01 → 2025-01-01] (region)",
            "    ├── orders_y2024_us [IN: US]",
            "    └── orders_y2024_eu [IN: DE, FR]",
        ]

    def test_unparsed_expression_is_shown_raw(self, catalog: InMemoryCatalog) -> None:
        catalog.add_table("t", "c", [("t_odd", "FOR SOMETHING ELSE")])
        node = read_tree(catalog, "t")
        assert node.children[0].bounds == "FOR SOMETHING ELSE"
