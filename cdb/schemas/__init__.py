"""
Data schemas for cdb.

This module exposes the public API for the report models produced by the engine.
"""

from .report import (
    HIGH_CONFIDENCE,
    MEDIUM_CONFIDENCE,
    PresentationTier,
    DetectedError,
    ErrorCategory,
    ExitPoint,
    FallbackView,
    LogLine,
    Report,
    TierCounts,
    presentation_tier,
    sort_key,
)

__all__ = [
    "HIGH_CONFIDENCE",
    "MEDIUM_CONFIDENCE",
    "PresentationTier",
    "ErrorCategory",
    "LogLine",
    "ExitPoint",
    "DetectedError",
    "FallbackView",
    "TierCounts",
    "Report",
    "presentation_tier",
    "sort_key",
]
