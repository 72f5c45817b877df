"""
Aggregation for cdb.

Merges the candidates of every pass into the final, ordered list of findings:
1. Exact duplicates (same category, same anchor) keep the highest score
2. Same-category findings whose windows overlap (or lie within the configured
   proximity) merge into the higher-confidence one
3. Findings are sorted by confidence descending, ties by anchor ascending
4. Presentation tiers are counted

When nothing is left, a fallback view is built instead.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace

from cdb.core.context import ContextExtractor
from cdb.core.matcher import Candidate
from cdb.schemas import (
    DetectedError,
    ErrorCategory,
    ExitPoint,
    FallbackView,
    LogLine,
    TierCounts,
    sort_key,
)
from cdb.utils.logger import get_logger

logger = get_logger(__name__)

EXIT_FALLBACK_REASON = "No specific pattern matched; showing exit context"
TAIL_FALLBACK_REASON = "No specific pattern matched; showing last {n} lines"


@dataclass(frozen=True)
class _Windowed:
    candidate: Candidate
    start: int
    end: int
    related: tuple[int, ...] = ()


def dedupe(candidates: Iterable[Candidate]) -> list[Candidate]:
    """
    Keep one candidate per (category, anchor): the highest-scoring one.

    Earlier candidates win ties, so pass order and rule registration order
    decide between equal scores.
    """
    best: dict[tuple[ErrorCategory, int], Candidate] = {}
    for candidate in candidates:
        key = (candidate.category, candidate.anchor)
        current = best.get(key)
        if current is None or candidate.confidence > current.confidence:
            best[key] = candidate
    return list(best.values())


def _outranks(a: Candidate, b: Candidate) -> bool:
    return (-a.confidence, a.anchor) < (-b.confidence, b.anchor)


def merge_windows(items: Sequence[_Windowed], proximity: int) -> list[_Windowed]:
    """Merge same-category windows that overlap or are ``proximity`` lines apart."""
    by_category: dict[ErrorCategory, list[_Windowed]] = {}
    for item in items:
        by_category.setdefault(item.candidate.category, []).append(item)

    merged: list[_Windowed] = []
    for group in by_category.values():
        group.sort(key=lambda w: (w.start, w.end, w.candidate.anchor))
        current = group[0]
        for item in group[1:]:
            if item.start > current.end + proximity:
                merged.append(current)
                current = item
                continue
            current = _absorb(current, item)
        merged.append(current)
    return merged


def _absorb(a: _Windowed, b: _Windowed) -> _Windowed:
    winner, loser = (a, b) if _outranks(a.candidate, b.candidate) else (b, a)

    candidate = winner.candidate
    if candidate.suggestion is None and loser.candidate.suggestion is not None:
        candidate = replace(candidate, suggestion=loser.candidate.suggestion)

    related = winner.related + (loser.candidate.anchor,) + loser.related
    return _Windowed(
        candidate=candidate,
        start=min(a.start, b.start),
        end=max(a.end, b.end),
        related=tuple(sorted(set(related) - {candidate.anchor})),
    )


def aggregate(
    candidates: Iterable[Candidate],
    extractor: ContextExtractor,
    proximity: int = 0,
) -> tuple[tuple[DetectedError, ...], TierCounts]:
    """
    Build the ordered findings of a report.

    Args:
        candidates: Candidates from every pass
        extractor: Context extractor over the analyzed lines
        proximity: Merge gap for same-category windows

    Returns:
        Tuple of (sorted findings, tier counts)
    """
    unique = dedupe(candidates)
    windowed = [_Windowed(c, *extractor.window(c)) for c in unique]
    merged = merge_windows(windowed, proximity)

    findings = sorted(
        (
            DetectedError(
                category=item.candidate.category,
                confidence=item.candidate.confidence,
                tier=item.candidate.tier,
                anchor=item.candidate.anchor,
                context=extractor.slice(item.start, item.end),
                message=item.candidate.message,
                rule=item.candidate.rule,
                suggestion=item.candidate.suggestion,
                related_lines=item.related,
            )
            for item in merged
        ),
        key=sort_key,
    )

    if len(unique) != len(findings):
        logger.debug(
            f"Aggregated {len(unique)} candidates into {len(findings)} findings",
            extra={"context": {"candidates": len(unique), "findings": len(findings)}},
        )

    return tuple(findings), count_tiers(findings)


def count_tiers(findings: Iterable[DetectedError]) -> TierCounts:
    """Count findings per presentation tier."""
    counts = {"high": 0, "medium": 0, "low": 0}
    for finding in findings:
        counts[finding.presentation_tier] += 1
    return TierCounts(**counts)


def build_fallback(
    lines: Sequence[LogLine],
    exit_point: ExitPoint | None,
    extractor: ContextExtractor,
    fallback_lines: int,
) -> FallbackView:
    """
    Unclassified view for a report without findings.

    Prefers the context before a located (weak) exit point, otherwise the last
    ``fallback_lines`` lines. An empty log yields an empty tail view.
    """
    if exit_point is not None:
        before = extractor.registry.exit_context.lines_before
        start, end = extractor.clamp(exit_point.line_index - before, exit_point.line_index)
        return FallbackView(
            kind="exit_context",
            reason=EXIT_FALLBACK_REASON,
            lines=extractor.slice(start, end),
        )

    return FallbackView(
        kind="tail",
        reason=TAIL_FALLBACK_REASON.format(n=fallback_lines),
        lines=tuple(lines[-fallback_lines:]),
    )
