"""Unit tests for the boundary expression parser."""

from __future__ import annotations

from datetime import date

import pytest

from partition_topology.errors import BoundaryParseError
from partition_topology.models import (
    DefaultBound,
    HashBound,
    ListBound,
    PartitionDefinition,
    RangeBound,
    Sentinel,
)
from partition_topology.parser import (
    BoundaryKind,
    PartitionBoundary,
    parse_boundary,
    parse_partitions,
    parse_value,
    require_boundary,
    split_values,
    unquote,
)


class TestParseBoundary:
    """Tests for recognising each boundary form."""

    def test_range(self) -> None:
        parsed = parse_boundary("FOR VALUES FROM ('2024-01-01') TO ('2024-02-01')")
        assert parsed is not None
        assert parsed.kind is BoundaryKind.RANGE
        assert parsed.from_value == "2024-01-01"
        assert parsed.to_value == "2024-02-01"
        assert parsed.from_raw == "'2024-01-01'"

    def test_range_with_casts(self) -> None:
        parsed = parse_boundary(
            "FOR VALUES FROM ('2024-01-01 00:00:00'::timestamp) TO ('2024-02-01 00:00:00'::timestamp)"
        )
        assert parsed.from_value == "2024-01-01 00:00:00"

    def test_range_numeric_and_sentinels(self) -> None:
        parsed = parse_boundary("FOR VALUES FROM (MINVALUE) TO (100)")
        assert parsed.from_value is Sentinel.MINVALUE
        assert parsed.to_value == 100

    def test_range_multi_column(self) -> None:
        parsed = parse_boundary("FOR VALUES FROM ('2024-01-01', 0) TO ('2024-01-01', 1000)")
        assert parsed.from_value == ("2024-01-01", 0)
        assert parsed.to_value == ("2024-01-01", 1000)

    def test_range_with_parentheses_inside_quotes(self) -> None:
        parsed = parse_boundary("FOR VALUES FROM ('a)b') TO ('c(d')")
        assert parsed.from_value == "a)b"
        assert parsed.to_value == "c(d"

    def test_list_keeps_raw_values(self) -> None:
        parsed = parse_boundary("FOR VALUES IN ('a,b', 'it''s', 3)")
        assert parsed.kind is BoundaryKind.LIST
        assert parsed.raw_values == "'a,b', 'it''s', 3"
        assert parsed.values == ["a,b", "it's", 3]

    def test_hash(self) -> None:
        parsed = parse_boundary("FOR VALUES WITH (modulus 4, remainder 3)")
        assert (parsed.kind, parsed.modulus, parsed.remainder) == (BoundaryKind.HASH, 4, 3)

    @pytest.mark.parametrize("expression", ["DEFAULT", "default", "  Default  "])
    def test_default(self, expression: str) -> None:
        assert parse_boundary(expression).kind is BoundaryKind.DEFAULT

    @pytest.mark.parametrize("expression", [None, "", "garbage", "FOR VALUES FROM ('a'"])
    def test_unrecognised_returns_none(self, expression: str | None) -> None:
        assert parse_boundary(expression) is None

    def test_is_case_insensitive(self) -> None:
        assert parse_boundary("for values from (1) to (2)").kind is BoundaryKind.RANGE


class TestRoundTrip:
    """Serialising a bound and parsing it back yields the same bound."""

    @pytest.mark.parametrize(
        "bound",
        [
            RangeBound(from_="2024-01-01", to="2024-02-01"),
            RangeBound(from_="MINVALUE", to="MAXVALUE"),
            RangeBound(from_=-5, to=10),
            RangeBound(from_=("O'Brien", 1), to=("Zed", 2)),
            RangeBound(from_=0.5, to=1.5),
            ListBound(values=("DE", "it's", "a,b")),
            ListBound(values=(1, 2, 3)),
            ListBound(values=(True, False)),
            HashBound(modulus=16, remainder=15),
            DefaultBound(),
        ],
    )
    def test_round_trip(self, bound: object) -> None:
        assert parse_boundary(bound.to_sql()).to_bound() == bound

    def test_generated_partitions_round_trip(self) -> None:
        p = PartitionDefinition.range_partition("t", "2024-01-01", "2024-02-01")
        assert parse_boundary(p.to_sql()).to_bound() == p.boundary

    def test_date_objects_come_back_as_iso_strings(self) -> None:
        bound = RangeBound(from_=date(2024, 1, 1), to=date(2024, 2, 1))
        assert parse_boundary(bound.to_sql()).to_bound() == RangeBound(from_="2024-01-01", to="2024-02-01")


class TestTokenHelpers:
    """Tests for split_values, unquote and parse_value."""

    def test_split_values_respects_quotes(self) -> None:
        assert split_values("'a,b', 'it''s', 3") == ["'a,b'", "'it''s'", "3"]

    def test_split_values_empty(self) -> None:
        assert split_values("") == []

    def test_unquote(self) -> None:
        assert unquote("'O''Brien'") == "O'Brien"
        assert unquote("bare") == "bare"

    @pytest.mark.parametrize(
        ("token", "expected"),
        [
            ("42", 42),
            ("-1.5", -1.5),
            ("true", True),
            ("FALSE", False),
            ("NULL", None),
            ("MAXVALUE", Sentinel.MAXVALUE),
            ("'x'::text", "x"),
            ("some_identifier", "some_identifier"),
        ],
    )
    def test_parse_value(self, token: str, expected: object) -> None:
        assert parse_value(token) == expected


class TestPartitionBoundary:
    """Tests for catalog rows."""

    def test_qualified_names(self) -> None:
        row = PartitionBoundary.from_row("archive.t_y2022", "DEFAULT")
        assert row.schema_name == "archive"
        assert row.unqualified_name == "t_y2022"
        assert not row.is_range

    def test_parse_partitions_keeps_unparsed_rows(self) -> None:
        rows = parse_partitions([("a", "FOR VALUES FROM (1) TO (2)"), ("b", "???")])
        assert rows[0].is_range
        assert rows[1].boundary is None
        assert rows[1].expression == "???"


class TestRequireBoundary:
    """Tests for the strict parser variant."""

    def test_raises_on_unrecognised(self) -> None:
        with pytest.raises(BoundaryParseError) as exc_info:
            require_boundary("???", partition="t_x")
        assert exc_info.value.partition == "t_x"

    def test_returns_parsed(self) -> None:
        assert require_boundary("DEFAULT").kind is BoundaryKind.DEFAULT
