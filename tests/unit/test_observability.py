"""Unit tests for logging and span helpers."""

from __future__ import annotations

import pytest

from partition_topology.health import analyze
from partition_topology.observability import (
    get_logger,
    get_tracer,
    partition_attributes,
    partition_operation,
    record_result,
    span,
)


class TestSpans:
    """Tests for span() and partition_operation()."""

    def test_span_logs_start_and_completion(self, capsys: pytest.CaptureFixture[str]) -> None:
        with span("health_check", attributes={"table": "orders"}):
            pass
        out = capsys.readouterr().out
        assert "health_check_started" in out
        assert "health_check_completed" in out

    def test_span_logs_failure_and_reraises(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(ValueError, match="boom"):
            with span("rotate"):
                raise ValueError("boom")
        assert "rotate_failed" in capsys.readouterr().out

    def test_partition_operation_prefixes_name(self, capsys: pytest.CaptureFixture[str]) -> None:
        with partition_operation("ensure_future", table="orders", interval="monthly", count=3):
            pass
        assert "partition.ensure_future_completed" in capsys.readouterr().out

    def test_completion_logs_duration(self, capsys: pytest.CaptureFixture[str]) -> None:
        with span("flatten"):
            pass
        assert "duration_ms" in capsys.readouterr().out

    def test_singletons(self) -> None:
        assert get_logger() is get_logger()
        assert get_tracer() is get_tracer()


class TestPartitionAttributes:
    """Tests for partition-specific span attributes."""

    def test_prefixes_keys_and_drops_unset_values(self) -> None:
        attrs = partition_attributes(table="orders", strategy="RANGE", keep=None, count=0)
        assert attrs == {"partition.table": "orders", "partition.strategy": "RANGE", "partition.count": 0}

    def test_record_result_logs_outcome(self, capsys: pytest.CaptureFixture[str]) -> None:
        with partition_operation("rotate", table="orders", keep=2) as s:
            record_result(s, dropped=2, schemas_reclaimed=None)
        out = capsys.readouterr().out
        assert "partition_result" in out
        assert "partition.dropped" in out
        assert "partition.schemas_reclaimed" not in out

    def test_health_check_records_findings(self, capsys: pytest.CaptureFixture[str]) -> None:
        analyze([("t_a", "FOR VALUES FROM (1) TO (5)"), ("t_b", "FOR VALUES FROM (7) TO (9)")], table="t")
        out = capsys.readouterr().out
        assert "partition.gaps" in out
        assert "partition.overlaps" in out
