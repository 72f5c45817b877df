"""
Context extraction for cdb.

Turns a candidate's anchor into a line window according to the registry's
context rules:
- exit points: a fixed window leading up to the exit line
- stack traces: the grouped block, padded by the registry's trace rule
- test failures: the whole output block of the failing test, delimited by
  the surrounding test-runner markers
- everything else: a fixed before/after window

Windows are clamped to the analyzed line range.
"""

import bisect
from collections.abc import Sequence

from cdb.core.config import EngineConfig
from cdb.core.grouper import is_indented
from cdb.core.matcher import Candidate
from cdb.patterns.registry import PatternRegistry
from cdb.patterns.rules import ContextMode, ContextRule
from cdb.schemas import LogLine


class ContextExtractor:
    """Computes context windows over one analyzed line sequence."""

    def __init__(
        self,
        lines: Sequence[LogLine],
        registry: PatternRegistry,
        config: EngineConfig,
    ) -> None:
        self.lines = tuple(lines)
        self.registry = registry
        self.config = config
        self._indices = [line.index for line in self.lines]
        self._markers: list[int] | None = None

    @property
    def first_index(self) -> int:
        return self._indices[0] if self._indices else 1

    @property
    def last_index(self) -> int:
        return self._indices[-1] if self._indices else 0

    def window(self, candidate: Candidate) -> tuple[int, int]:
        """
        Line range shown with a candidate.

        Returns:
            Inclusive (start, end) line numbers, clamped to the analyzed range
        """
        if candidate.kind == "exit":
            return self._fixed(candidate.anchor, self.registry.exit_context)
        if candidate.kind == "trace":
            return self._trace(candidate)

        rule = self.registry.context_rule(candidate.category)
        if rule.mode is ContextMode.FULL_BLOCK:
            return self._full_block(candidate.anchor, rule)
        if rule.mode is ContextMode.UNTIL_DEDENT:
            return self._until_dedent(candidate.anchor)
        return self._fixed(candidate.anchor, rule)

    def extract(self, candidate: Candidate) -> tuple[LogLine, ...]:
        """Context lines for a candidate."""
        start, end = self.window(candidate)
        return self.slice(start, end)

    def slice(self, start: int, end: int) -> tuple[LogLine, ...]:
        """Analyzed lines whose number lies in [start, end]."""
        lo = bisect.bisect_left(self._indices, start)
        hi = bisect.bisect_right(self._indices, end)
        return self.lines[lo:hi]

    def clamp(self, start: int, end: int) -> tuple[int, int]:
        return max(start, self.first_index), min(end, self.last_index)

    def _fixed(self, anchor: int, rule: ContextRule) -> tuple[int, int]:
        return self.clamp(anchor - rule.lines_before, anchor + rule.lines_after)

    def _trace(self, candidate: Candidate) -> tuple[int, int]:
        rule = self.registry.trace_context
        if rule.mode is ContextMode.FIXED_WINDOW:
            return self._fixed(candidate.anchor, rule)
        if rule.mode is ContextMode.FULL_BLOCK:
            return self._full_block(candidate.anchor, rule)

        end = candidate.block_end
        if end is None:
            end = self._until_dedent(candidate.anchor)[1]
        return self.clamp(candidate.anchor - rule.lines_before, end + rule.lines_after)

    def _full_block(self, anchor: int, rule: ContextRule) -> tuple[int, int]:
        markers = self._marker_lines()
        pos = bisect.bisect_right(markers, anchor)
        if pos == 0:
            # No runner marker before the anchor: not inside a recognizable block
            return self._fixed(anchor, rule)

        start = markers[pos - 1]
        end = markers[pos] - 1 if pos < len(markers) else self.last_index
        cap = self.config.test_block_max_lines

        if end - start + 1 > cap:
            # Keep the anchor visible when the block is cut
            if anchor - start + 1 > cap:
                start = anchor - cap + 1
            end = start + cap - 1
        return self.clamp(start, end)

    def _until_dedent(self, anchor: int) -> tuple[int, int]:
        pos = bisect.bisect_left(self._indices, anchor)
        end = anchor
        for line in self.lines[pos + 1:]:
            if not is_indented(line.text):
                break
            end = line.index
        return self.clamp(anchor, end)

    def _marker_lines(self) -> list[int]:
        if self._markers is None:
            markers = self.registry.test_block_markers
            self._markers = [
                line.index
                for line in self.lines
                if any(marker.search(line.text) for marker in markers)
            ]
        return self._markers
