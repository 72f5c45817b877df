"""Tests for core.aggregator module."""

import pytest

from cdb.core.aggregator import (
    EXIT_FALLBACK_REASON,
    aggregate,
    build_fallback,
    count_tiers,
    dedupe,
)
from cdb.core.config import EngineConfig
from cdb.core.context import ContextExtractor
from cdb.core.logtext import make_lines
from cdb.core.matcher import Candidate
from cdb.patterns import build_default_registry
from cdb.schemas import DetectedError, ErrorCategory, ExitPoint

_B = ErrorCategory.BUILD_FAILURE
_I = ErrorCategory.INFRASTRUCTURE


def candidate(
    anchor: int,
    confidence: float = 0.8,
    category: ErrorCategory = _B,
    rule: str = "Rule",
    suggestion: str | None = None,
) -> Candidate:
    return Candidate(
        tier=2,
        category=category,
        anchor=anchor,
        rule=rule,
        confidence=confidence,
        message=f"line {anchor}",
        suggestion=suggestion,
    )


@pytest.fixture
def extractor() -> ContextExtractor:
    """Extractor over 60 neutral lines with the default 5/10 windows."""
    lines = make_lines([f"info: step {i}" for i in range(1, 61)])
    return ContextExtractor(lines, build_default_registry(), EngineConfig())


class TestDedupe:
    """Tests for dedupe function."""

    def test_keeps_highest_score(self) -> None:
        """Test that the best candidate per (category, anchor) survives."""
        result = dedupe(
            [
                candidate(5, 0.80, rule="A"),
                candidate(5, 0.85, rule="B"),
                candidate(5, 0.70, category=_I, rule="C"),
            ]
        )

        assert sorted(c.rule for c in result) == ["B", "C"]

    def test_tie_keeps_first(self) -> None:
        """Test that equal scores keep the earlier candidate."""
        result = dedupe([candidate(5, 0.8, rule="first"), candidate(5, 0.8, rule="second")])

        assert [c.rule for c in result] == ["first"]


class TestAggregate:
    """Tests for aggregate function."""

    def test_single_finding(self, extractor: ContextExtractor) -> None:
        """Test that one candidate becomes one finding with its context."""
        findings, counts = aggregate([candidate(10, suggestion="fix it")], extractor)

        assert len(findings) == 1
        finding = findings[0]
        assert finding.anchor == 10
        assert finding.window_start == 5
        assert finding.window_end == 20
        assert finding.suggestion == "fix it"
        assert finding.related_lines == ()
        assert counts.medium == 1

    def test_overlapping_same_category_merge(self, extractor: ContextExtractor) -> None:
        """Test that overlapping windows of one category merge into the stronger finding."""
        findings, _ = aggregate([candidate(10, 0.80), candidate(14, 0.85)], extractor)

        assert len(findings) == 1
        finding = findings[0]
        assert finding.anchor == 14
        assert finding.confidence == 0.85
        assert finding.related_lines == (10,)
        assert (finding.window_start, finding.window_end) == (5, 24)

    def test_merge_tie_keeps_earlier_anchor(self, extractor: ContextExtractor) -> None:
        """Test that equal scores merge into the earlier anchor."""
        findings, _ = aggregate([candidate(14), candidate(10)], extractor)

        assert findings[0].anchor == 10
        assert findings[0].related_lines == (14,)

    def test_merge_inherits_suggestion(self, extractor: ContextExtractor) -> None:
        """Test that a merged finding without a hint takes the absorbed one's."""
        findings, _ = aggregate(
            [candidate(10, 0.85), candidate(12, 0.80, suggestion="reinstall")],
            extractor,
        )

        assert findings[0].anchor == 10
        assert findings[0].suggestion == "reinstall"

    def test_chain_merge(self, extractor: ContextExtractor) -> None:
        """Test that a chain of overlapping windows merges into one finding."""
        findings, _ = aggregate([candidate(10), candidate(18), candidate(26)], extractor)

        assert len(findings) == 1
        assert findings[0].anchor == 10
        assert findings[0].related_lines == (18, 26)
        assert (findings[0].window_start, findings[0].window_end) == (5, 36)

    def test_different_categories_not_merged(self, extractor: ContextExtractor) -> None:
        """Test that overlapping windows of different categories stay separate."""
        findings, _ = aggregate(
            [candidate(10, 0.80), candidate(14, 0.85, category=_I)], extractor
        )

        assert [(f.anchor, f.category) for f in findings] == [(14, _I), (10, _B)]

    def test_distant_windows_not_merged(self, extractor: ContextExtractor) -> None:
        """Test that separate windows stay separate."""
        findings, _ = aggregate([candidate(10), candidate(40)], extractor)

        assert [f.anchor for f in findings] == [10, 40]

    def test_adjacent_windows_need_proximity(self, extractor: ContextExtractor) -> None:
        """Test that touching windows only merge with a proximity gap."""
        candidates = [candidate(10), candidate(26)]

        separate, _ = aggregate(candidates, extractor, proximity=0)
        merged, _ = aggregate(candidates, extractor, proximity=1)

        assert len(separate) == 2
        assert len(merged) == 1

    def test_proximity_gap(self, extractor: ContextExtractor) -> None:
        """Test merging across a gap no larger than the proximity."""
        candidates = [candidate(10), candidate(35)]

        assert len(aggregate(candidates, extractor, proximity=9)[0]) == 2
        assert len(aggregate(candidates, extractor, proximity=10)[0]) == 1

    def test_sorted_by_confidence_then_anchor(self, extractor: ContextExtractor) -> None:
        """Test the final ordering."""
        findings, _ = aggregate(
            [candidate(50, 0.75), candidate(5, 0.75), candidate(30, 0.88, category=_I)],
            extractor,
        )

        assert [f.anchor for f in findings] == [30, 5, 50]

    def test_no_candidates(self, extractor: ContextExtractor) -> None:
        """Test that no candidates give no findings."""
        findings, counts = aggregate([], extractor)

        assert findings == ()
        assert counts.total == 0


class TestCountTiers:
    """Tests for count_tiers function."""

    def test_counts(self) -> None:
        """Test counting by presentation tier."""
        findings = [
            DetectedError(category=_B, confidence=0.95, tier=1, anchor=1, message="a", rule="A"),
            DetectedError(category=_B, confidence=0.9, tier=2, anchor=2, message="b", rule="B"),
            DetectedError(category=_B, confidence=0.6, tier=2, anchor=3, message="c", rule="C"),
            DetectedError(category=_B, confidence=0.4, tier=3, anchor=4, message="d", rule="D"),
        ]

        counts = count_tiers(findings)

        assert (counts.high, counts.medium, counts.low) == (2, 1, 1)


class TestBuildFallback:
    """Tests for build_fallback function."""

    def test_exit_context(self, extractor: ContextExtractor) -> None:
        """Test that a located exit point shows the lines leading up to it."""
        exit_point = ExitPoint(
            line_index=30, signature="Exit Status", text="exit status 2", exit_code=2, strong=False
        )

        view = build_fallback(extractor.lines, exit_point, extractor, 100)

        assert view.kind == "exit_context"
        assert view.reason == EXIT_FALLBACK_REASON
        assert view.lines[0].index == 10
        assert view.lines[-1].index == 30

    def test_tail(self, extractor: ContextExtractor) -> None:
        """Test the last-N-lines view."""
        view = build_fallback(extractor.lines, None, extractor, 10)

        assert view.kind == "tail"
        assert view.reason == "No specific pattern matched; showing last 10 lines"
        assert [line.index for line in view.lines] == list(range(51, 61))

    def test_tail_shorter_than_limit(self, extractor: ContextExtractor) -> None:
        """Test that a short log is shown in full."""
        view = build_fallback(extractor.lines, None, extractor, 100)

        assert len(view.lines) == 60

    def test_empty_log(self) -> None:
        """Test that an empty log yields an empty tail view."""
        extractor = ContextExtractor((), build_default_registry(), EngineConfig())

        view = build_fallback((), None, extractor, 100)

        assert view.kind == "tail"
        assert view.lines == ()
