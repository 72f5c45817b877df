"""
Rule value types for the pattern registry.

Rules are plain frozen dataclasses. They are declared uncompiled (so that a
rule table can be written as data) and compiled exactly once by the
registry, which is where a malformed expression becomes a configuration error.
"""

import re
from dataclasses import dataclass, field, replace
from enum import Enum

from cdb.schemas import ErrorCategory

# Inclusive confidence bands per tier. Tier 2 and 3 are half-open in the
# model ([0.7, 0.9) and [0.3, 0.6)); with two-decimal display precision their
# inclusive upper bound is one hundredth below the open end.
TIER_BANDS: dict[int, tuple[float, float]] = {
    1: (0.90, 1.00),
    2: (0.70, 0.89),
    3: (0.30, 0.59),
}


class ContextMode(str, Enum):
    """How the context window around an anchor is computed."""

    FIXED_WINDOW = "fixed-window"
    FULL_BLOCK = "full-block"
    UNTIL_DEDENT = "until-dedent"


@dataclass(frozen=True)
class ContextRule:
    """
    Windowing policy for one category (or situation).

    Attributes:
        lines_before: Lines shown before the anchor (fixed-window, and the
            fallback window for full-block when no block markers are found)
        lines_after: Lines shown after the anchor
        mode: Window computation mode
    """

    lines_before: int
    lines_after: int
    mode: ContextMode = ContextMode.FIXED_WINDOW


def compile_pattern(pattern: str, regex: bool, case_sensitive: bool) -> re.Pattern[str]:
    """
    Compile a rule pattern.

    Literal patterns are escaped so both kinds share one matching path.

    Raises:
        re.error: If a regular expression is malformed
    """
    source = pattern if regex else re.escape(pattern)
    flags = 0 if case_sensitive else re.IGNORECASE
    return re.compile(source, flags)


@dataclass(frozen=True)
class PatternRule:
    """
    One detection rule.

    Attributes:
        name: Unique rule name, also the label shown with findings
        category: Category assigned to matches
        tier: Priority band (2 = specific, 3 = generic)
        pattern: Literal substring or regular expression
        regex: True if ``pattern`` is a regular expression
        case_sensitive: Match case-sensitively (default: ignore case)
        confidence_range: Optional narrower band inside the tier's band
    """

    name: str
    category: ErrorCategory
    tier: int
    pattern: str
    regex: bool = True
    case_sensitive: bool = False
    confidence_range: tuple[float, float] | None = None
    compiled: re.Pattern[str] | None = field(default=None, compare=False, repr=False)

    def compile(self) -> "PatternRule":
        return replace(
            self, compiled=compile_pattern(self.pattern, self.regex, self.case_sensitive)
        )

    @property
    def band(self) -> tuple[float, float]:
        return self.confidence_range or TIER_BANDS[self.tier]

    def search(self, text: str) -> re.Match[str] | None:
        if self.compiled is None:
            raise RuntimeError(f"rule {self.name!r} used before compilation")
        return self.compiled.search(text)


@dataclass(frozen=True)
class ExitSignature:
    """
    A terminating-failure signature recognized by the exit-point locator.

    A named group ``code`` in a regular expression captures the exit code.
    Strong signatures produce Tier-1 findings; weak ones only serve as the
    fallback anchor.
    """

    name: str
    pattern: str
    category: ErrorCategory = ErrorCategory.BUILD_FAILURE
    regex: bool = True
    case_sensitive: bool = False
    strong: bool = True
    compiled: re.Pattern[str] | None = field(default=None, compare=False, repr=False)

    def compile(self) -> "ExitSignature":
        return replace(
            self, compiled=compile_pattern(self.pattern, self.regex, self.case_sensitive)
        )

    def search(self, text: str) -> re.Match[str] | None:
        if self.compiled is None:
            raise RuntimeError(f"exit signature {self.name!r} used before compilation")
        return self.compiled.search(text)


@dataclass(frozen=True)
class SuggestionRule:
    """
    A fix hint keyed by rule name.

    Attributes:
        rule: Name of the pattern rule or exit signature this applies to
        text: The suggestion shown to the user
        contains: If set, the hint applies only when the matched line contains
            one of these substrings (case-sensitive)
        exit_code: If set, the hint applies only to exit points with this code
    """

    rule: str
    text: str
    contains: tuple[str, ...] = ()
    exit_code: int | None = None

    def applies(self, rule_name: str, line: str, exit_code: int | None = None) -> bool:
        if rule_name != self.rule:
            return False
        if self.exit_code is not None and exit_code != self.exit_code:
            return False
        if self.contains and not any(needle in line for needle in self.contains):
            return False
        return True
