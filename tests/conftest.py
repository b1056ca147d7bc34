"""Shared pytest fixtures for partition-topology tests.

This module provides structlog capture configuration and an in-memory
catalog that acts as both CatalogReader and PartitionExecutor.
"""

from __future__ import annotations

import sys
from datetime import date
from typing import Any, Callable, Sequence

import pytest
import structlog

from partition_topology.rotation import RotationPlan


@pytest.fixture(autouse=True)
def configure_structlog_for_tests() -> None:
    """Configure structlog to output to stdout for test capture."""
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=False,
    )


class InMemoryCatalog:
    """Catalog fake: reads from dicts and applies rotation plans to them."""

    def __init__(self) -> None:
        self.partitions: dict[str, list[tuple[str, str | None]]] = {}
        self.indexes: dict[str, list[str]] = {}
        self.columns: dict[str, str] = {}
        self.applied: list[tuple[str, Any]] = []

    def add_table(
        self,
        table: str,
        column: str | None,
        partitions: Sequence[tuple[str, str | None]] = (),
    ) -> InMemoryCatalog:
        if column is not None:
            self.columns[table] = column
        self.partitions[table] = list(partitions)
        return self

    def list_child_partitions(self, parent: str) -> list[tuple[str, str | None]]:
        return list(self.partitions.get(parent, []))

    def list_indexes(self, table: str) -> list[str]:
        return list(self.indexes.get(table, []))

    def partition_column(self, table: str) -> str | None:
        return self.columns.get(table)

    def apply(self, table: str, plan: Any) -> None:
        self.applied.append((table, plan))
        if not isinstance(plan, RotationPlan):
            return
        rows = self.partitions.setdefault(table, [])
        for definition in plan.to_create:
            rows.append((definition.qualified_name, definition.to_sql()))
        dropped = set(plan.to_drop)
        self.partitions[table] = [row for row in rows if row[0] not in dropped]


YearlyRows = Callable[[str, Sequence[int]], list[tuple[str, str]]]


def yearly_rows(table: str, years: Sequence[int]) -> list[tuple[str, str]]:
    """Catalog rows of yearly partitions named <table>_y<year>."""
    return [
        (f"{table}_y{year}", f"FOR VALUES FROM ('{year}-01-01') TO ('{year + 1}-01-01')")
        for year in years
    ]


@pytest.fixture
def catalog() -> InMemoryCatalog:
    """Empty in-memory catalog."""
    return InMemoryCatalog()


@pytest.fixture
def today() -> date:
    """Fixed reference date for date-driven generation."""
    return date(2024, 5, 17)


@pytest.fixture
def yearly() -> YearlyRows:
    """Factory for yearly partition catalog rows."""
    return yearly_rows
