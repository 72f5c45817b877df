"""Configuration for the CircleCI client."""

import os
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CircleCIConfig(BaseModel):
    """Connection settings for the CircleCI v1.1 API."""

    token: str = Field(
        ...,
        min_length=1,
        description="CircleCI personal API token",
    )
    api_base: str = Field(
        default="https://circleci.com/api/v1.1",
        description="API base URL",
    )
    timeout: int = Field(
        default=30,
        ge=1,
        le=600,
        description="Request timeout in seconds",
    )

    model_config = ConfigDict(frozen=True)

    @field_validator("token")
    @classmethod
    def validate_token(cls, v: str) -> str:
        """Reject whitespace-only tokens."""
        if not v.strip():
            raise ValueError("CircleCI token cannot be empty")
        return v.strip()

    @field_validator("api_base")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @classmethod
    def from_env(cls, **overrides: Any) -> "CircleCIConfig":
        """Create configuration from CIRCLECI_TOKEN / CIRCLECI_API_BASE with overrides.

        Raises:
            pydantic.ValidationError: If no token is configured
        """
        env_config: dict[str, Any] = {}
        if os.getenv("CIRCLECI_TOKEN"):
            env_config["token"] = os.getenv("CIRCLECI_TOKEN")
        if os.getenv("CIRCLECI_API_BASE"):
            env_config["api_base"] = os.getenv("CIRCLECI_API_BASE")

        # Overrides take precedence over environment
        final_config = {
            **env_config,
            **{k: v for k, v in overrides.items() if v is not None},
        }

        return cls(**final_config)
