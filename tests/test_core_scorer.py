"""Tests for the confidence scorer."""

import pytest

from cdb.core.scorer import (
    REGEX_CEILING,
    count_regex_tokens,
    pattern_specificity,
    score,
)
from cdb.patterns import TIER_BANDS, build_default_registry
from cdb.schemas import ErrorCategory

B = ErrorCategory.BUILD_FAILURE
C = ErrorCategory.CRITICAL


class TestCountRegexTokens:
    """Tests for regex token counting."""

    @pytest.mark.parametrize(
        ("pattern", "expected"),
        [
            ("abc", (3, 0)),
            (r"test.*failed", (10, 2)),
            (r"error TS\d+:", (9, 2)),
            (r"\bFAIL\b", (4, 0)),
            (r"[abc]x", (1, 1)),
            (r"a{2,3}", (1, 1)),
            (r"(?:ab|cd)", (4, 1)),
            (r"(?P<code>\d)", (0, 1)),
            (r"^\s*Killed\s*$", (6, 4)),
            (r"a\.b", (3, 0)),
        ],
    )
    def test_counts(self, pattern: str, expected: tuple[int, int]) -> None:
        """Test literal and wildcard counts for common constructs."""
        assert count_regex_tokens(pattern) == expected


class TestPatternSpecificity:
    """Tests for pattern specificity."""

    def test_literal_is_maximal(self) -> None:
        """Test that literal patterns are fully specific."""
        assert pattern_specificity("cannot find module", regex=False) == 1.0

    def test_regex_below_ceiling(self) -> None:
        """Test that a wildcard-free regex reaches but does not exceed the ceiling."""
        assert pattern_specificity(r"\bFAIL\b", regex=True) == pytest.approx(REGEX_CEILING)

    def test_wildcards_reduce_specificity(self) -> None:
        """Test that more wildcards mean less specificity."""
        tight = pattern_specificity(r"undefined reference to \w+", regex=True)
        loose = pattern_specificity(r"a.*b", regex=True)

        assert 0 < loose < tight < REGEX_CEILING

    def test_pure_wildcard(self) -> None:
        """Test that a pattern without literal text has no specificity."""
        assert pattern_specificity(r".*", regex=True) == 0.0


class TestScore:
    """Tests for score."""

    def test_literal_tier2(self) -> None:
        """Test that a literal Tier-2 match scores at the top of its band."""
        assert score(2, B, 1.0) == 0.89

    def test_literal_tier1(self) -> None:
        """Test the Tier-1 band top."""
        assert score(1, B, 1.0) == 1.0

    def test_critical_bias(self) -> None:
        """Test that Critical sits higher in the band than equal-shape matches."""
        assert score(2, C, 0.5) > score(2, B, 0.5)
        assert score(2, C, 1.0) == 0.89

    def test_zero_specificity(self) -> None:
        """Test that zero specificity scores the band floor."""
        assert score(3, B, 0.0) == 0.3

    def test_narrow_band(self) -> None:
        """Test scoring inside a rule's own range."""
        assert score(2, B, 1.0, band=(0.75, 0.8)) == 0.8
        assert score(2, B, 0.0, band=(0.75, 0.8)) == 0.75

    def test_deterministic(self) -> None:
        """Test that scoring is a pure function."""
        assert score(2, B, 0.42) == score(2, B, 0.42)

    def test_every_catalog_rule_within_band(self) -> None:
        """Test that every built-in rule and signature scores inside its tier band."""
        registry = build_default_registry()

        for rule in registry.rules:
            lo, hi = rule.band
            value = score(rule.tier, rule.category, pattern_specificity(rule.pattern, rule.regex), rule.confidence_range)
            assert lo <= value <= hi, rule.name

        for signature in registry.exit_signatures:
            for code in (None, 1, 137):
                category = registry.exit_category(signature, code)
                value = score(1, category, pattern_specificity(signature.pattern, signature.regex))
                assert TIER_BANDS[1][0] <= value <= TIER_BANDS[1][1], signature.name
