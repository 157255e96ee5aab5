"""Pydantic configuration schema for notcoal.

This module defines the schema that mirrors config.yaml. The config is
validated against these models when it is loaded.

Usage:
    from notcoal.config_schema import AppConfig

    # Validate a config dict
    config = AppConfig(**yaml_data)
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Current schema version - increment when adding new required fields
CURRENT_SCHEMA_VERSION = 1


class DatabaseConfig(BaseModel):
    """notmuch database location."""

    model_config = ConfigDict(extra="forbid")

    path: Path | None = Field(
        default=None,
        description="Database path; when unset notmuch uses its own configuration",
    )

    @field_validator("path")
    @classmethod
    def expand_user(cls, v: Path | None) -> Path | None:
        """Expand '~' so paths can be written relative to the home directory."""
        return v.expanduser() if v is not None else None


class FilteringConfig(BaseModel):
    """Filtering pass configuration."""

    model_config = ConfigDict(extra="forbid")

    query_tag: str = Field(
        default="new",
        description="Tag selecting the messages to filter; removed once processed",
    )
    rules_path: Path = Field(
        default=Path("~/.config/notcoal/rules.json"),
        validate_default=True,
        description="JSON rule document",
    )
    regex_timeout_seconds: float = Field(
        default=1.0,
        gt=0,
        le=60,
        description="Maximum time a single pattern search may take",
    )

    @field_validator("query_tag")
    @classmethod
    def validate_query_tag(cls, v: str) -> str:
        """Reject tags that can't be turned into a safe query."""
        if not v:
            raise ValueError("Query tag cannot be empty")
        if any(c.isspace() for c in v) or '"' in v or "'" in v:
            raise ValueError("Query tag cannot contain whitespace or quotes")
        return v

    @field_validator("rules_path")
    @classmethod
    def expand_user(cls, v: Path) -> Path:
        """Expand '~' so paths can be written relative to the home directory."""
        return v.expanduser()


class LoggingConfig(BaseModel):
    """Log output configuration."""

    model_config = ConfigDict(extra="forbid")

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="WARNING",
        description="Minimum level to log",
    )
    json_output: bool = Field(
        default=False,
        description="Emit JSON log lines instead of console output",
    )


class AppConfig(BaseModel):
    """Root configuration schema for notcoal.

    Every section has defaults, so an empty file is a valid config.
    """

    model_config = ConfigDict(extra="forbid")

    schema_version: int = Field(
        default=CURRENT_SCHEMA_VERSION,
        ge=1,
        description="Config schema version for migration tracking",
    )
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    filtering: FilteringConfig = Field(default_factory=FilteringConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
