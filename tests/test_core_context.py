"""Tests for context window extraction."""

import pytest

from cdb.core.config import EngineConfig
from cdb.core.context import ContextExtractor
from cdb.core.logtext import make_lines
from cdb.core.matcher import Candidate
from cdb.patterns import PatternRegistry, build_default_registry
from cdb.patterns.rules import ContextMode, ContextRule
from cdb.schemas import ErrorCategory


@pytest.fixture(scope="module")
def registry() -> PatternRegistry:
    return build_default_registry()


def make_candidate(
    anchor: int,
    category: ErrorCategory = ErrorCategory.BUILD_FAILURE,
    kind: str = "pattern",
    block_end: int | None = None,
) -> Candidate:
    return Candidate(
        tier=1 if kind == "exit" else 2,
        category=category,
        anchor=anchor,
        rule="Test Rule",
        confidence=0.95 if kind == "exit" else 0.8,
        message="message",
        kind=kind,  # type: ignore[arg-type]
        block_end=block_end,
    )


def plain_lines(count: int, first_index: int = 1) -> tuple:
    return make_lines([f"info: step {i}" for i in range(count)], first_index=first_index)


JEST_OUTPUT = [
    "FAIL src/a.test.js",  # 1
    "  ● renders header",  # 2
    "    expect(received).toBe(expected)",  # 3
    "    AssertionError: values differ",  # 4
    "",  # 5
    "  ● renders footer",  # 6
    "    boom",  # 7
    "PASS src/b.test.js",  # 8
    "info: done",  # 9
]


class TestFixedWindow:
    """Tests for fixed before/after windows."""

    def test_middle_of_log(self, registry: PatternRegistry) -> None:
        """Test a window fully inside the log."""
        extractor = ContextExtractor(plain_lines(30), registry, EngineConfig())

        assert extractor.window(make_candidate(10)) == (5, 20)

    def test_clamped_at_both_ends(self, registry: PatternRegistry) -> None:
        """Test that windows never leave the analyzed range."""
        extractor = ContextExtractor(plain_lines(30), registry, EngineConfig())

        assert extractor.window(make_candidate(2)) == (1, 12)
        assert extractor.window(make_candidate(28)) == (23, 30)

    def test_clamped_to_truncated_range(self, registry: PatternRegistry) -> None:
        """Test clamping against the first analyzed line of a truncated log."""
        extractor = ContextExtractor(plain_lines(10, first_index=901), registry, EngineConfig())

        assert extractor.window(make_candidate(903)) == (901, 910)

    def test_extract_returns_lines(self, registry: PatternRegistry) -> None:
        """Test that extract returns the lines of the window, in order."""
        extractor = ContextExtractor(plain_lines(30), registry, EngineConfig())

        context = extractor.extract(make_candidate(10))

        assert [line.index for line in context] == list(range(5, 21))


class TestSpecialWindows:
    """Tests for exit-point and stack-trace windows."""

    def test_exit_window_leads_up_to_exit(self, registry: PatternRegistry) -> None:
        """Test that the exit window is the 20 lines before the exit line."""
        extractor = ContextExtractor(plain_lines(30), registry, EngineConfig())

        assert extractor.window(make_candidate(25, kind="exit")) == (5, 25)

    def test_exit_window_near_start(self, registry: PatternRegistry) -> None:
        """Test the exit window clamp at the first line."""
        extractor = ContextExtractor(plain_lines(30), registry, EngineConfig())

        assert extractor.window(make_candidate(3, kind="exit")) == (1, 3)

    def test_trace_window_is_block(self, registry: PatternRegistry) -> None:
        """Test that a trace candidate shows exactly its block."""
        extractor = ContextExtractor(plain_lines(30), registry, EngineConfig())
        candidate = make_candidate(5, ErrorCategory.GENERIC, kind="trace", block_end=8)

        assert extractor.window(candidate) == (5, 8)

    def test_trace_window_padding(self, registry: PatternRegistry) -> None:
        """Test that the registry's trace rule pads the block on both sides."""
        context_rules = {c: registry.context_rule(c) for c in ErrorCategory}
        custom = PatternRegistry(
            registry.rules,
            (),
            context_rules,
            trace_context=ContextRule(2, 1, ContextMode.UNTIL_DEDENT),
            version="test",
        )
        extractor = ContextExtractor(plain_lines(30), custom, EngineConfig())
        candidate = make_candidate(5, ErrorCategory.GENERIC, kind="trace", block_end=8)

        assert extractor.window(candidate) == (3, 9)

    def test_trace_fixed_window(self, registry: PatternRegistry) -> None:
        """Test a trace rule that shows a fixed window instead of the block."""
        context_rules = {c: registry.context_rule(c) for c in ErrorCategory}
        custom = PatternRegistry(
            registry.rules, (), context_rules, trace_context=ContextRule(1, 2), version="test"
        )
        extractor = ContextExtractor(plain_lines(30), custom, EngineConfig())
        candidate = make_candidate(5, ErrorCategory.GENERIC, kind="trace", block_end=12)

        assert extractor.window(candidate) == (4, 7)


class TestFullBlock:
    """Tests for test-failure block windows."""

    def test_block_between_markers(self, registry: PatternRegistry) -> None:
        """Test that the window spans from the previous marker to the next."""
        extractor = ContextExtractor(make_lines(JEST_OUTPUT), registry, EngineConfig())

        window = extractor.window(make_candidate(4, ErrorCategory.TEST_FAILURE))

        assert window == (2, 5)

    def test_last_block_runs_to_end(self, registry: PatternRegistry) -> None:
        """Test that the last block ends at the last analyzed line."""
        extractor = ContextExtractor(make_lines(JEST_OUTPUT), registry, EngineConfig())

        window = extractor.window(make_candidate(9, ErrorCategory.TEST_FAILURE))

        assert window == (8, 9)

    def test_anchor_on_marker(self, registry: PatternRegistry) -> None:
        """Test that a marker line opens its own block."""
        extractor = ContextExtractor(make_lines(JEST_OUTPUT), registry, EngineConfig())

        window = extractor.window(make_candidate(6, ErrorCategory.TEST_FAILURE))

        assert window == (6, 7)

    def test_no_marker_uses_fixed_window(self, registry: PatternRegistry) -> None:
        """Test the fixed fallback when no marker precedes the anchor."""
        extractor = ContextExtractor(plain_lines(30), registry, EngineConfig())

        window = extractor.window(make_candidate(10, ErrorCategory.TEST_FAILURE))

        assert window == (5, 20)

    def test_cap_keeps_block_start(self, registry: PatternRegistry) -> None:
        """Test that a long block is cut after the cap."""
        extractor = ContextExtractor(
            make_lines(JEST_OUTPUT), registry, EngineConfig(test_block_max_lines=3)
        )

        window = extractor.window(make_candidate(4, ErrorCategory.TEST_FAILURE))

        assert window == (2, 4)

    def test_cap_keeps_anchor_visible(self, registry: PatternRegistry) -> None:
        """Test that the cut block still ends at the anchor when needed."""
        extractor = ContextExtractor(
            make_lines(JEST_OUTPUT), registry, EngineConfig(test_block_max_lines=2)
        )

        window = extractor.window(make_candidate(5, ErrorCategory.TEST_FAILURE))

        assert window == (4, 5)


class TestUntilDedent:
    """Tests for until-dedent windows."""

    def test_indented_continuation(self, registry: PatternRegistry) -> None:
        """Test that the window runs over the following indented lines."""
        context_rules = {c: registry.context_rule(c) for c in ErrorCategory}
        context_rules[ErrorCategory.CRITICAL] = ContextRule(0, 0, ContextMode.UNTIL_DEDENT)
        custom = PatternRegistry(registry.rules, (), context_rules, version="test")
        lines = make_lines(
            [
                "panic: runtime error",
                "    goroutine 1 [running]",
                "    main.main()",
                "exit",
            ]
        )
        extractor = ContextExtractor(lines, custom, EngineConfig())

        window = extractor.window(make_candidate(1, ErrorCategory.CRITICAL))

        assert window == (1, 3)


class TestSliceAndClamp:
    """Tests for the low-level helpers."""

    def test_slice_filtered_lines(self, registry: PatternRegistry) -> None:
        """Test slicing a non-contiguous (filtered) line sequence."""
        lines = tuple(line for line in plain_lines(20) if line.index % 5 == 0)
        extractor = ContextExtractor(lines, registry, EngineConfig())

        assert [line.index for line in extractor.slice(4, 16)] == [5, 10, 15]

    def test_empty_lines(self, registry: PatternRegistry) -> None:
        """Test the helpers over an empty log."""
        extractor = ContextExtractor((), registry, EngineConfig())

        assert extractor.first_index == 1
        assert extractor.last_index == 0
        assert extractor.slice(1, 10) == ()
