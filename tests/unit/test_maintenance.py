"""Unit tests for split, merge and consolidate planners."""

from __future__ import annotations

from datetime import date, timedelta

import pytest

from partition_topology.catalog import TableSnapshot
from partition_topology.errors import ConfigurationError
from partition_topology.maintenance import (
    ReshapeOperation,
    consolidate_daily_to_monthly,
    consolidate_daily_to_weekly,
    consolidate_monthly_to_yearly,
    consolidate_range,
    consolidate_weekly_to_monthly,
    merge_partitions,
    split_custom,
    split_monthly_to_daily,
    split_monthly_to_weekly,
    split_yearly_to_monthly,
    split_yearly_to_weekly,
)
from partition_topology.parser import PartitionBoundary


def _row(name: str, lower: date, upper: date) -> PartitionBoundary:
    return PartitionBoundary.from_row(
        name,
        f"FOR VALUES FROM ('{lower.isoformat()}') TO ('{upper.isoformat()}')",
    )


def _snapshot(*partitions: PartitionBoundary) -> TableSnapshot:
    return TableSnapshot(table="t", column="created_at", partitions=partitions)


def _contiguous(plan) -> bool:
    bounds = [p.boundary for p in plan.create]
    return all(a.to == b.from_ for a, b in zip(bounds, bounds[1:]))


class TestSplits:
    """Tests for split planners."""

    def test_yearly_to_monthly(self) -> None:
        plan = split_yearly_to_monthly("t", "t_y2024", 2024)
        assert plan.operation is ReshapeOperation.SPLIT
        assert plan.detach == plan.move_from == plan.drop == ("t_y2024",)
        assert not plan.attach_after_fill
        assert len(plan.create) == 12
        assert plan.created_names[0] == "t_m2024_01"
        assert plan.create[-1].boundary.to == "2025-01-01"
        assert _contiguous(plan)

    def test_yearly_to_weekly_clips_last_week(self) -> None:
        plan = split_yearly_to_weekly("t", "t_y2024", 2024)
        assert plan.create[0].boundary.from_ == "2024-01-01"
        assert plan.create[-1].boundary.to == "2025-01-01"
        assert len(plan.create) == 53
        assert _contiguous(plan)

    def test_monthly_to_daily(self) -> None:
        plan = split_monthly_to_daily("t", "t_m2024_02", 2024, 2)
        assert len(plan.create) == 29
        assert plan.created_names[-1] == "t_d2024_02_29"

    def test_monthly_to_weekly(self) -> None:
        plan = split_monthly_to_weekly("t", "t_m2024_02", 2024, 2, schema="hot")
        assert [p.boundary.to for p in plan.create][-1] == "2024-03-01"
        assert {p.schema_name for p in plan.create} == {"hot"}

    def test_prefix(self) -> None:
        plan = split_yearly_to_monthly("t", "t_y2024", 2024, prefix="%_arch_")
        assert plan.created_names[0] == "t_arch_m2024_01"

    def test_custom(self) -> None:
        plan = split_custom(
            "t",
            "t_big",
            {"t_low": (0, 100), "t_high": (100, 200)},
        )
        assert plan.created_names == ["t_low", "t_high"]
        assert all(p.explicit_name for p in plan.create)

    def test_custom_requires_targets(self) -> None:
        with pytest.raises(ConfigurationError):
            split_custom("t", "t_big", {})


class TestMerge:
    """Tests for merge_partitions."""

    def test_merge_choreography(self) -> None:
        plan = merge_partitions("t", ["t_m2024_01", "t_m2024_02"], "t_q2024_Q1", "2024-01-01", "2024-04-01")
        assert plan.operation is ReshapeOperation.MERGE
        assert plan.attach_after_fill
        assert plan.detach == plan.move_from == plan.drop == ("t_m2024_01", "t_m2024_02")
        assert plan.created_names == ["t_q2024_Q1"]

    def test_merge_requires_sources(self) -> None:
        with pytest.raises(ConfigurationError):
            merge_partitions("t", [], "x", 0, 1)


class TestConsolidate:
    """Tests for snapshot-driven consolidation."""

    def test_monthly_to_yearly(self) -> None:
        snapshot = _snapshot(
            _row("t_m2023_12", date(2023, 12, 1), date(2024, 1, 1)),
            _row("t_m2024_01", date(2024, 1, 1), date(2024, 2, 1)),
            _row("archive.t_m2024_02", date(2024, 2, 1), date(2024, 3, 1)),
        )
        plan = consolidate_monthly_to_yearly(snapshot, 2024)
        assert plan is not None
        assert plan.drop == ("t_m2024_01", "archive.t_m2024_02")
        assert plan.created_names == ["t_y2024"]
        assert plan.create[0].boundary.from_ == "2024-01-01"

    def test_nothing_to_consolidate(self) -> None:
        assert consolidate_monthly_to_yearly(_snapshot(), 2024) is None
        assert consolidate_range(_snapshot(), "2024-01-01", "2025-01-01", "x") is None

    def test_daily_to_weekly(self) -> None:
        monday = date(2024, 5, 13)
        days = [
            _row(f"t_d{(monday + timedelta(days=i)):%Y_%m_%d}", monday + timedelta(days=i), monday + timedelta(days=i + 1))
            for i in range(7)
        ]
        plan = consolidate_daily_to_weekly(_snapshot(*days), monday)
        assert len(plan.drop) == 7
        assert plan.created_names == ["t_w2024_05_13"]
        assert plan.create[0].boundary.to == "2024-05-20"

    def test_daily_to_monthly(self) -> None:
        plan = consolidate_daily_to_monthly(
            _snapshot(_row("t_d2024_02_10", date(2024, 2, 10), date(2024, 2, 11))),
            2024,
            2,
        )
        assert plan.created_names == ["t_m2024_02"]

    def test_weekly_to_monthly_keeps_weeks_inside_month(self) -> None:
        snapshot = _snapshot(
            _row("t_w2024_04_29", date(2024, 4, 29), date(2024, 5, 6)),
            _row("t_w2024_05_06", date(2024, 5, 6), date(2024, 5, 13)),
            _row("t_w2024_05_13", date(2024, 5, 13), date(2024, 5, 20)),
            _row("t_m2024_05_extra", date(2024, 5, 20), date(2024, 5, 27)),
        )
        plan = consolidate_weekly_to_monthly(snapshot, 2024, 5)
        assert plan.drop == ("t_w2024_05_06", "t_w2024_05_13")
        assert plan.created_names == ["t_m2024_05"]

    def test_range(self) -> None:
        snapshot = _snapshot(
            _row("a", date(2024, 1, 1), date(2024, 2, 1)),
            _row("b", date(2024, 2, 1), date(2024, 3, 1)),
            _row("c", date(2024, 3, 1), date(2024, 4, 1)),
        )
        plan = consolidate_range(snapshot, "2024-01-01", "2024-03-01", "t_early")
        assert plan.drop == ("a", "b")
        assert plan.create[0].boundary.to == "2024-03-01"
