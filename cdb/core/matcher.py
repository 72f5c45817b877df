"""
Multi-pass matching for cdb.

Three ordered passes over the same read-only line sequence:

- Pass 1 (Tier 1): the exit point, if a strong signature is found
- Pass 2 (Tier 2): every line against every specific rule; all matches kept
- Pass 3 (Tier 3): generic indicators and stack traces, run only when
  passes 1 and 2 found nothing

Precise signals are never drowned out by noisy generic ones: generic scanning
is a fallback, not a peer signal.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Literal

from cdb.core.config import EngineConfig
from cdb.core.exit_point import locate_with_fallback
from cdb.core.grouper import group_stack_traces
from cdb.core.scorer import pattern_specificity, score
from cdb.patterns.registry import PatternRegistry
from cdb.patterns.rules import PatternRule
from cdb.schemas import ErrorCategory, ExitPoint, LogLine
from cdb.utils.logger import get_logger

logger = get_logger(__name__)

CandidateKind = Literal["exit", "pattern", "trace"]


@dataclass(frozen=True)
class Candidate:
    """
    A raw match, before context extraction and aggregation.

    Attributes:
        tier: Pass that produced the match
        category: Category of the rule or signature
        anchor: Matched line number
        rule: Rule or signature name
        confidence: Score from the confidence scorer
        message: The matched line, trimmed
        kind: "exit", "pattern" or "trace"
        suggestion: Fix hint from the suggestion table
        block_end: Last line of a stack-trace block
    """

    tier: int
    category: ErrorCategory
    anchor: int
    rule: str
    confidence: float
    message: str
    kind: CandidateKind = "pattern"
    suggestion: str | None = None
    block_end: int | None = None


@dataclass(frozen=True)
class MatchResult:
    """Output of the matcher: all candidates plus the located exit point."""

    candidates: tuple[Candidate, ...] = ()
    exit_point: ExitPoint | None = None
    passes_run: tuple[int, ...] = field(default=())


class MultiPassMatcher:
    """
    Runs the tiered passes over a log.

    The matcher holds only read-only state (registry, config and the
    per-rule specificity cache), so one instance can serve concurrent
    analyses.
    """

    def __init__(self, registry: PatternRegistry, config: EngineConfig) -> None:
        self.registry = registry
        self.config = config
        self._tier2 = registry.rules_for_tier(2)
        self._tier3 = registry.rules_for_tier(3)
        self._specificity: dict[str, float] = {
            rule.name: pattern_specificity(rule.pattern, rule.regex)
            for rule in (*registry.rules, *registry.exit_signatures)
        }
        if registry.trace_frame is not None:
            frame = registry.trace_frame
            self._specificity[frame.name] = pattern_specificity(frame.pattern, frame.regex)

    def run(self, lines: Sequence[LogLine]) -> MatchResult:
        """
        Run all passes.

        Args:
            lines: Analyzed log lines

        Returns:
            MatchResult with every candidate and the exit point (strong or weak)
        """
        exit_candidates, exit_point = self.pass_exit_point(lines)
        specific = self.pass_specific(lines)
        passes = (1, 2)

        generic: list[Candidate] = []
        if not exit_candidates and not specific:
            generic = self.pass_generic(lines)
            passes = (1, 2, 3)

        logger.debug(
            "Matcher passes complete",
            extra={
                "context": {
                    "tier1": len(exit_candidates),
                    "tier2": len(specific),
                    "tier3": len(generic),
                    "exit_point": exit_point.line_index if exit_point else None,
                }
            },
        )

        return MatchResult(
            candidates=tuple(exit_candidates + specific + generic),
            exit_point=exit_point,
            passes_run=passes,
        )

    def pass_exit_point(self, lines: Sequence[LogLine]) -> tuple[list[Candidate], ExitPoint | None]:
        """Pass 1: one Tier-1 candidate for a strong exit point."""
        located = locate_with_fallback(lines, self.registry.exit_signatures)
        if located is None:
            return [], None

        exit_point, signature = located
        if not exit_point.strong:
            return [], exit_point

        category = self.registry.exit_category(signature, exit_point.exit_code)
        candidate = Candidate(
            tier=1,
            category=category,
            anchor=exit_point.line_index,
            rule=signature.name,
            confidence=score(1, category, self._specificity[signature.name]),
            message=exit_point.text,
            kind="exit",
            suggestion=self.registry.suggest(signature.name, exit_point.text, exit_point.exit_code),
        )
        return [candidate], exit_point

    def pass_specific(self, lines: Sequence[LogLine]) -> list[Candidate]:
        """Pass 2: every Tier-2 match, in line order then registration order."""
        return self._scan(lines, self._tier2, tier=2)

    def pass_generic(self, lines: Sequence[LogLine]) -> list[Candidate]:
        """Pass 3: generic indicator lines plus grouped stack traces."""
        candidates = self._scan(lines, self._tier3, tier=3)

        frame_rule = self.registry.trace_frame
        if frame_rule is None:
            return candidates

        by_index = {line.index: line for line in lines}
        for block in group_stack_traces(lines, frame_rule, self.config.min_trace_frames):
            candidates.append(
                Candidate(
                    tier=3,
                    category=frame_rule.category,
                    anchor=block.start,
                    rule=frame_rule.name,
                    confidence=score(
                        3,
                        frame_rule.category,
                        self._specificity[frame_rule.name],
                        frame_rule.confidence_range,
                    ),
                    message=by_index[block.start].text.strip(),
                    kind="trace",
                    block_end=block.end,
                )
            )
        return candidates

    def _scan(self, lines: Sequence[LogLine], rules: Sequence[PatternRule], tier: int) -> list[Candidate]:
        candidates: list[Candidate] = []
        if not rules:
            return candidates

        for line in lines:
            for rule in rules:
                if rule.search(line.text) is None:
                    continue
                message = line.text.strip()
                candidates.append(
                    Candidate(
                        tier=tier,
                        category=rule.category,
                        anchor=line.index,
                        rule=rule.name,
                        confidence=score(
                            tier,
                            rule.category,
                            self._specificity[rule.name],
                            rule.confidence_range,
                        ),
                        message=message,
                        suggestion=self.registry.suggest(rule.name, line.text),
                    )
                )
        return candidates
