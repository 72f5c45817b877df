"""
CircleCI integration for cdb.

This module exposes the API client, the build models and the URL helpers used
by the ``cdb build`` command.
"""

from .client import (
    ApiError,
    AuthenticationError,
    CircleCIError,
    CircleClient,
    LogFetchError,
    NetworkError,
    join_log_messages,
)
from .config import CircleCIConfig
from .models import Action, BuildInfo, Step, StepTiming
from .urls import build_url, format_duration, parse_circleci_url

__all__ = [
    "CircleClient",
    "CircleCIConfig",
    "CircleCIError",
    "AuthenticationError",
    "ApiError",
    "LogFetchError",
    "NetworkError",
    "join_log_messages",
    "BuildInfo",
    "Step",
    "Action",
    "StepTiming",
    "parse_circleci_url",
    "build_url",
    "format_duration",
]
