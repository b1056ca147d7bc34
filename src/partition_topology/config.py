"""Configuration models for partition-topology.

This module provides:
- NamingPolicy: how generated partition names are formatted
- PartitionBehavior: toggles handed to executors with every plan
- PartitionSettings: process-level settings (environment + YAML)

Configuration is always passed in explicitly. Nothing in the package reads
settings implicitly.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class NamingPolicy(BaseModel):
    """Pure formatting configuration for partition names.

    Attributes:
        prefix: Prepended to every generated name.
        suffix: Appended to every generated name.
        separator: Joins the base name and the kind tag.
        monthly_format: strftime format for monthly keys.
        daily_format: strftime format for daily and weekly keys.

    Example:
        >>> policy = NamingPolicy(suffix="_p")
        >>> policy.separator
        '_'
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    prefix: str = Field(default="", description="Prepended to every generated name")
    suffix: str = Field(default="", description="Appended to every generated name")
    separator: str = Field(default="_", description="Joins base name and kind tag")
    monthly_format: str = Field(default="%Y_%m", description="strftime format for monthly keys")
    daily_format: str = Field(
        default="%Y_%m_%d",
        description="strftime format for daily and weekly keys",
    )

    @field_validator("monthly_format", "daily_format")
    @classmethod
    def validate_has_directive(cls, v: str) -> str:
        """Validate the format carries at least one strftime directive."""
        if "%" not in v:
            msg = f"Date format must contain a strftime directive, got '{v}'"
            raise ValueError(msg)
        return v


class PartitionBehavior(BaseModel):
    """Behaviour toggles forwarded to executors.

    The core never acts on these itself; rotation plans carry them so the
    executor can decide how to run the DDL.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    enable_partition_pruning: bool = Field(default=True, description="Keep planner pruning enabled")
    detach_concurrently: bool = Field(default=True, description="Detach without blocking readers")
    analyze_after_create: bool = Field(default=True, description="ANALYZE new partitions")
    vacuum_after_drop: bool = Field(default=True, description="VACUUM the parent after drops")


class PartitionSettings(BaseSettings):
    """Settings for partition-topology.

    Can be loaded from environment variables with the PARTITION_ prefix
    (nested fields use "__", e.g. PARTITION_NAMING__SUFFIX) or from a YAML
    file via from_yaml().

    Example:
        >>> settings = PartitionSettings(default_schema="archive")
        >>> settings.defaults.detach_concurrently
        True
    """

    model_config = SettingsConfigDict(
        env_prefix="PARTITION_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    default_connection: str = Field(default="default", description="Connection label for executors")
    default_schema: str | None = Field(default=None, description="Global fallback schema")
    default_tablespace: str | None = Field(default=None, description="Global fallback tablespace")
    naming: NamingPolicy = Field(default_factory=NamingPolicy, description="Name formatting")
    defaults: PartitionBehavior = Field(
        default_factory=PartitionBehavior,
        description="Behaviour toggles forwarded to executors",
    )
    templates: dict[str, dict[str, Any]] = Field(
        default_factory=dict,
        description="Raw template definitions keyed by template name",
    )

    @classmethod
    def from_yaml(cls, path: str | Path) -> PartitionSettings:
        """Load settings from a YAML file.

        Values from the file take precedence over environment variables.

        Args:
            path: Path to the YAML file.

        Returns:
            Validated PartitionSettings.

        Raises:
            FileNotFoundError: If file doesn't exist.
            yaml.YAMLError: If YAML syntax is invalid.
            ValidationError: If validation fails.

        Example:
            >>> settings = PartitionSettings.from_yaml("partitions.yaml")
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Partition settings not found: {path}")

        with open(path) as f:
            data = yaml.safe_load(f)

        if data is None:
            data = {}

        return cls(**data)
