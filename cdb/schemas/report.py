"""
Data schemas for cdb analysis reports.

These models are the serialization-agnostic output of the analysis engine.
They are frozen: once the engine hands a Report to a renderer nothing in it
changes.
"""

from enum import Enum
from typing import Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_serializer,
    model_validator,
)

HIGH_CONFIDENCE = 0.9
MEDIUM_CONFIDENCE = 0.6

PresentationTier = Literal["high", "medium", "low"]


class ErrorCategory(str, Enum):
    """Closed classification of a build failure."""

    CRITICAL = "Critical"
    BUILD_FAILURE = "BuildFailure"
    TEST_FAILURE = "TestFailure"
    INFRASTRUCTURE = "Infrastructure"
    GENERIC = "Generic"


class LogLine(BaseModel):
    """
    One physical line of a build log.

    Attributes:
        index: Line number in the original log (1-indexed)
        text: Line content with ANSI escape sequences removed
        raw: Line content as received (not serialized)
    """

    index: int = Field(..., gt=0, serialization_alias="line_number")
    text: str
    raw: str = Field(default="", exclude=True)

    model_config = ConfigDict(frozen=True)


class ExitPoint(BaseModel):
    """
    The line identified as the build's terminating failure signal.

    Attributes:
        line_index: Line number of the signal
        signature: Name of the exit signature that matched
        text: The matched line (ANSI-stripped)
        exit_code: Process exit code, when the signature captures one
        strong: True if the signature is precise enough to be a Tier-1 finding
    """

    line_index: int = Field(..., gt=0)
    signature: str = Field(..., min_length=1)
    text: str
    exit_code: int | None = None
    strong: bool = True

    model_config = ConfigDict(frozen=True)


class DetectedError(BaseModel):
    """
    One reported finding.

    Attributes:
        category: Failure classification
        confidence: Score in [0, 1]
        tier: Pass that produced the finding (1=exit point, 2=specific, 3=generic)
        anchor: Line number the finding is centered on
        context: Ordered window of lines shown with the finding
        message: The anchor line, trimmed
        rule: Name of the pattern rule or exit signature that matched
        suggestion: Optional fix hint
        related_lines: Anchors of same-category findings merged into this one
    """

    category: ErrorCategory
    confidence: float = Field(..., ge=0.0, le=1.0)
    tier: Literal[1, 2, 3]
    anchor: int = Field(..., gt=0)
    context: tuple[LogLine, ...] = ()
    message: str
    rule: str = Field(..., min_length=1)
    suggestion: str | None = None
    related_lines: tuple[int, ...] = ()

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def check_tier_band(self) -> "DetectedError":
        """Tier-1 findings never score below the high-confidence threshold."""
        if self.tier == 1 and self.confidence < HIGH_CONFIDENCE:
            raise ValueError(
                f"Tier-1 finding at line {self.anchor} scored {self.confidence} (< {HIGH_CONFIDENCE})"
            )
        return self

    @field_serializer("confidence")
    def serialize_confidence(self, value: float) -> float:
        return round(value, 2)

    @property
    def window_start(self) -> int:
        return self.context[0].index if self.context else self.anchor

    @property
    def window_end(self) -> int:
        return self.context[-1].index if self.context else self.anchor

    @property
    def presentation_tier(self) -> PresentationTier:
        return presentation_tier(self.confidence)


class FallbackView(BaseModel):
    """
    Unclassified output used when no pattern matched.

    Attributes:
        kind: "exit_context" (lines before a located exit point) or "tail"
        reason: Human-readable explanation shown to the user
        lines: The lines shown
    """

    kind: Literal["exit_context", "tail"]
    reason: str
    lines: tuple[LogLine, ...] = ()

    model_config = ConfigDict(frozen=True)


class TierCounts(BaseModel):
    """Number of findings per presentation tier."""

    high: int = Field(default=0, ge=0)
    medium: int = Field(default=0, ge=0)
    low: int = Field(default=0, ge=0)

    model_config = ConfigDict(frozen=True)

    @property
    def total(self) -> int:
        return self.high + self.medium + self.low


class Report(BaseModel):
    """
    Final output of one analysis.

    Findings are sorted by confidence descending, ties by ascending anchor.
    Exactly one of ``findings`` and ``fallback`` is populated.
    """

    findings: tuple[DetectedError, ...] = ()
    exit_point: ExitPoint | None = None
    fallback: FallbackView | None = None
    tier_counts: TierCounts = Field(default_factory=TierCounts)
    total_lines: int = Field(default=0, ge=0)
    analyzed_lines: int = Field(default=0, ge=0)
    truncated: bool = False
    notes: tuple[str, ...] = ()
    ruleset_version: str = ""

    model_config = ConfigDict(frozen=True)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_fallback(self) -> bool:
        return self.fallback is not None

    @model_validator(mode="after")
    def check_ordering(self) -> "Report":
        """Enforce the sort order and the (category, anchor) uniqueness."""
        keys = [sort_key(f) for f in self.findings]
        if keys != sorted(keys):
            raise ValueError("findings must be sorted by confidence desc, anchor asc")

        seen: set[tuple[ErrorCategory, int]] = set()
        for finding in self.findings:
            key = (finding.category, finding.anchor)
            if key in seen:
                raise ValueError(
                    f"duplicate finding for {finding.category.value} at line {finding.anchor}"
                )
            seen.add(key)

        if self.findings and self.fallback is not None:
            raise ValueError("a report with findings cannot carry a fallback view")
        return self

    def by_tier(self, tier: PresentationTier) -> list[DetectedError]:
        """Findings belonging to one presentation tier, in report order."""
        return [f for f in self.findings if f.presentation_tier == tier]

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        return self.model_dump(mode="json", by_alias=True)


def presentation_tier(confidence: float) -> PresentationTier:
    """Map a confidence value onto the High/Medium/Low presentation tiers."""
    if confidence >= HIGH_CONFIDENCE:
        return "high"
    if confidence >= MEDIUM_CONFIDENCE:
        return "medium"
    return "low"


def sort_key(finding: DetectedError) -> tuple[float, int]:
    """Sort key: confidence descending, then anchor ascending."""
    return (-finding.confidence, finding.anchor)
