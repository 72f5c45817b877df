"""Configuration management for the cdb analysis engine."""

import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# Environment variable -> field name
ENV_VARS: dict[str, str] = {
    "CDB_MAX_LINES": "max_lines",
    "CDB_MAX_BYTES": "max_bytes",
    "CDB_FALLBACK_LINES": "fallback_lines",
    "CDB_MERGE_PROXIMITY": "merge_proximity",
    "CDB_MIN_TRACE_FRAMES": "min_trace_frames",
    "CDB_TEST_BLOCK_MAX_LINES": "test_block_max_lines",
    "CDB_RULES_FILE": "rules_file",
}


class EngineConfig(BaseModel):
    """Configuration for the log analysis engine.

    Size caps bound the work done per log: longer inputs are truncated to
    their tail, where the exit point and most failure signals live.
    """

    # Input caps
    max_lines: int = Field(
        default=50_000,
        ge=1,
        description="Maximum number of lines analyzed (tail is kept)"
    )
    max_bytes: int = Field(
        default=10 * 1024 * 1024,
        ge=1024,
        description="Maximum number of bytes analyzed (tail is kept)"
    )

    # Fallback
    fallback_lines: int = Field(
        default=100,
        ge=1,
        le=10_000,
        description="Number of trailing lines shown when nothing matched"
    )

    # Windowing
    merge_proximity: int = Field(
        default=0,
        ge=0,
        le=1000,
        description="Max gap in lines between same-category windows that are merged"
    )
    min_trace_frames: int = Field(
        default=2,
        ge=1,
        description="Frames needed before an indented block counts as a stack trace"
    )
    test_block_max_lines: int = Field(
        default=200,
        ge=1,
        description="Maximum length of a test-failure context block"
    )

    # Rules
    rules_file: Path | None = Field(
        default=None,
        description="Optional JSON file with extra rules"
    )

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_env(cls, **overrides: Any) -> "EngineConfig":
        """Create configuration from environment variables with CLI overrides.

        Environment variables:
        - CDB_MAX_LINES, CDB_MAX_BYTES: input caps
        - CDB_FALLBACK_LINES: last-N-lines fallback size
        - CDB_MERGE_PROXIMITY: merge gap for overlapping windows
        - CDB_MIN_TRACE_FRAMES: stack-trace threshold
        - CDB_TEST_BLOCK_MAX_LINES: test block cap
        - CDB_RULES_FILE: extra rules file

        Args:
            **overrides: Explicit values (None values are ignored)

        Returns:
            Configured EngineConfig instance
        """
        env_config: dict[str, Any] = {}
        for env_var, field_name in ENV_VARS.items():
            value = os.getenv(env_var)
            if value:
                env_config[field_name] = value

        # Overrides take precedence over environment
        final_config = {
            **env_config,
            **{k: v for k, v in overrides.items() if v is not None},
        }

        return cls(**final_config)
