"""Unit tests for the boundary model."""

from __future__ import annotations

from datetime import date, datetime

import pytest
from pydantic import ValidationError

from partition_topology.models import (
    DefaultBound,
    HashBound,
    ListBound,
    PartitionDefinition,
    PartitionedTable,
    PartitionStrategy,
    RangeBound,
    Sentinel,
    SubPartitionTree,
    format_sql_value,
    sort_key,
)


class TestFormatSqlValue:
    """Tests for SQL literal rendering."""

    def test_string_is_quoted_and_escaped(self) -> None:
        """Embedded single quotes are doubled."""
        assert format_sql_value("O'Brien") == "'O''Brien'"

    def test_numbers_are_bare(self) -> None:
        assert format_sql_value(100) == "100"
        assert format_sql_value(2.5) == "2.5"

    def test_bools_render_lowercase(self) -> None:
        assert format_sql_value(True) == "true"
        assert format_sql_value(False) == "false"

    def test_dates_and_datetimes(self) -> None:
        assert format_sql_value(date(2024, 1, 1)) == "'2024-01-01'"
        assert format_sql_value(datetime(2024, 1, 1, 12, 30)) == "'2024-01-01 12:30:00'"

    def test_sentinels_are_not_quoted(self) -> None:
        assert format_sql_value(Sentinel.MINVALUE) == "MINVALUE"

    def test_tuple_is_comma_joined(self) -> None:
        """Multi-column values render each column."""
        assert format_sql_value(("2024-01-01", 100)) == "'2024-01-01', 100"

    def test_none_is_null(self) -> None:
        assert format_sql_value(None) == "NULL"


class TestSortKey:
    """Tests for semantic ordering of boundary values."""

    def test_numbers_compare_numerically(self) -> None:
        """9 sorts before 10, unlike a string comparison."""
        assert sort_key(9) < sort_key(10)

    def test_sentinels_bracket_everything(self) -> None:
        assert sort_key(Sentinel.MINVALUE) < sort_key(-(10**9))
        assert sort_key("zzz") < sort_key(Sentinel.MAXVALUE)

    def test_dates_and_iso_strings_compare_together(self) -> None:
        assert sort_key(date(2024, 1, 1)) == sort_key("2024-01-01")
        assert sort_key("2024-01-01") < sort_key(date(2024, 2, 1))

    def test_tuples_use_first_column(self) -> None:
        assert sort_key((1, "z")) < sort_key((2, "a"))


class TestBounds:
    """Tests for typed boundaries."""

    def test_range_bound_accepts_from_alias(self) -> None:
        bound = RangeBound(**{"from": "2024-01-01", "to": "2024-02-01"})
        assert bound.from_ == "2024-01-01"
        assert bound.to_sql() == "FOR VALUES FROM ('2024-01-01') TO ('2024-02-01')"

    def test_range_bound_normalizes_sentinel_strings(self) -> None:
        bound = RangeBound(from_="MINVALUE", to="MAXVALUE")
        assert bound.from_ is Sentinel.MINVALUE
        assert bound.to_sql() == "FOR VALUES FROM (MINVALUE) TO (MAXVALUE)"

    def test_range_bound_multi_column(self) -> None:
        bound = RangeBound(from_=["2024-01-01", 0], to=("2024-02-01", 100))
        assert bound.from_ == ("2024-01-01", 0)
        assert bound.to_sql() == "FOR VALUES FROM ('2024-01-01', 0) TO ('2024-02-01', 100)"

    def test_range_bound_does_not_enforce_order(self) -> None:
        """Inverted ranges are accepted and left to health analysis."""
        bound = RangeBound(from_=10, to=5)
        assert bound.to == 5

    def test_list_bound_requires_values(self) -> None:
        with pytest.raises(ValidationError):
            ListBound(values=())

    def test_list_bound_sql(self) -> None:
        assert ListBound(values=("DE", "FR")).to_sql() == "FOR VALUES IN ('DE', 'FR')"

    def test_hash_bound_sql(self) -> None:
        assert HashBound(modulus=4, remainder=3).to_sql() == "FOR VALUES WITH (modulus 4, remainder 3)"

    @pytest.mark.parametrize(("modulus", "remainder"), [(4, 4), (4, 7), (0, 0), (2, -1)])
    def test_hash_bound_rejects_invalid_pairs(self, modulus: int, remainder: int) -> None:
        with pytest.raises(ValidationError):
            HashBound(modulus=modulus, remainder=remainder)

    def test_default_bound_sql(self) -> None:
        assert DefaultBound().to_sql() == "DEFAULT"

    def test_bounds_are_frozen(self) -> None:
        bound = HashBound(modulus=2, remainder=0)
        with pytest.raises(ValidationError):
            bound.remainder = 1  # type: ignore[misc]


class TestPartitionDefinition:
    """Tests for PartitionDefinition."""

    def test_range_partition_factory(self) -> None:
        p = PartitionDefinition.range_partition("t_m2024_01", "2024-01-01", "2024-02-01")
        assert p.strategy is PartitionStrategy.RANGE
        assert isinstance(p.boundary, RangeBound)
        assert not p.explicit_name

    def test_list_partition_keeps_single_string_whole(self) -> None:
        """A single string value is one value, not a sequence of characters."""
        p = PartitionDefinition.list_partition("t_de", "DE")
        assert p.boundary.values == ("DE",)

    def test_qualified_name(self) -> None:
        p = PartitionDefinition.hash_partition("t_p0", 2, 0, schema="shard")
        assert p.qualified_name == "shard.t_p0"
        assert p.with_schema(None).qualified_name == "t_p0"

    def test_schema_alias(self) -> None:
        p = PartitionDefinition.model_validate(
            {
                "name": "t_p0",
                "strategy": "HASH",
                "boundary": {"kind": "hash", "modulus": 2, "remainder": 0},
                "schema": "shard",
            }
        )
        assert p.schema_name == "shard"
        assert isinstance(p.boundary, HashBound)

    def test_boundary_must_match_strategy(self) -> None:
        with pytest.raises(ValidationError, match="LIST boundary on RANGE"):
            PartitionDefinition(
                name="bad",
                strategy=PartitionStrategy.RANGE,
                boundary=ListBound(values=("a",)),
            )

    def test_default_partition_under_hash_is_rejected(self) -> None:
        with pytest.raises(ValidationError, match="DEFAULT"):
            PartitionDefinition.default_partition("t_default", PartitionStrategy.HASH)

    def test_default_partition_under_list(self) -> None:
        p = PartitionDefinition.default_partition("t_default", PartitionStrategy.LIST)
        assert p.is_default
        assert p.to_sql() == "DEFAULT"

    def test_with_sub_partitions_returns_copy(self) -> None:
        p = PartitionDefinition.range_partition("t_y2024", "2024-01-01", "2025-01-01")
        tree = SubPartitionTree(
            column="region",
            strategy=PartitionStrategy.LIST,
            definitions=(PartitionDefinition.list_partition("t_y2024_eu", ["DE"]),),
        )
        nested = p.with_sub_partitions(tree)
        assert p.sub_partitions is None
        assert nested.sub_partitions is not None
        assert nested.sub_partitions.depth == 1


class TestSubPartitionTree:
    """Tests for SubPartitionTree."""

    def test_rejects_mixed_strategies(self) -> None:
        with pytest.raises(ValidationError):
            SubPartitionTree(
                column="c",
                strategy=PartitionStrategy.LIST,
                definitions=(PartitionDefinition.hash_partition("p0", 2, 0),),
            )

    def test_depth_counts_nested_levels(self) -> None:
        leaf = SubPartitionTree(
            column="id",
            strategy=PartitionStrategy.HASH,
            definitions=(PartitionDefinition.hash_partition("p0", 1, 0),),
        )
        middle = SubPartitionTree(
            column="region",
            strategy=PartitionStrategy.LIST,
            definitions=(PartitionDefinition.list_partition("eu", ["DE"]).with_sub_partitions(leaf),),
        )
        assert middle.depth == 2


class TestPartitionedTable:
    """Tests for PartitionedTable."""

    def test_partition_by_sql_and_lookup(self) -> None:
        p = PartitionDefinition.range_partition("t_y2024", 2024, 2025)
        table = PartitionedTable(table="t", strategy="RANGE", column="year", partitions=(p,))
        assert table.partition_by_sql == "PARTITION BY RANGE (year)"
        assert table.get("t_y2024") == p
        assert table.get("missing") is None
        assert table.partition_names == ["t_y2024"]
