"""
Analysis engine for cdb.

LogAnalyzer orchestrates one analysis:
1. Prepare the log (decode, cap to the tail, split, strip ANSI)
2. Optionally narrow it to lines containing a filter string
3. Run the multi-pass matcher
4. Extract context, aggregate, tier
5. Fall back to exit context or the log tail when nothing matched

The engine is synchronous and performs no I/O apart from loading an optional
rules file at construction time. Analysis never raises for log content.
"""

from cdb.core.aggregator import aggregate, build_fallback
from cdb.core.config import EngineConfig
from cdb.core.context import ContextExtractor
from cdb.core.logtext import filter_lines, prepare_log
from cdb.core.matcher import MultiPassMatcher
from cdb.patterns.registry import PatternRegistry, build_default_registry, load_registry_file
from cdb.schemas import Report
from cdb.utils.logger import get_logger

logger = get_logger(__name__)

TRUNCATION_NOTE = "Log exceeded the size limit; analyzed the last {analyzed} of {total} lines"
FILTER_MISS_NOTE = "Filter {needle!r} matched no lines; analyzed the full log"
FILTER_NOTE = "Filter {needle!r} kept {kept} of {analyzed} lines"


class LogAnalyzer:
    """
    Build-log analyzer.

    The registry and configuration are fixed at construction; ``analyze`` keeps
    no state between calls, so one analyzer can be reused and shared.

    Example:
        >>> analyzer = LogAnalyzer()
        >>> report = analyzer.analyze(open("build.log", "rb").read())
        >>> report.findings[0].category
        <ErrorCategory.BUILD_FAILURE: 'BuildFailure'>
    """

    def __init__(
        self,
        registry: PatternRegistry | None = None,
        config: EngineConfig | None = None,
    ) -> None:
        """
        Initialize the analyzer.

        Args:
            registry: Pattern registry (default: built-in catalog, extended by
                ``config.rules_file`` when set)
            config: Engine configuration (default: from environment)

        Raises:
            RegistryError: If the rules file or a rule definition is invalid
        """
        self.config = config or EngineConfig.from_env()

        if registry is None:
            registry = build_default_registry()
            if self.config.rules_file is not None:
                registry = load_registry_file(self.config.rules_file, base=registry)
        self.registry = registry

        self.matcher = MultiPassMatcher(self.registry, self.config)

    def analyze(self, data: str | bytes | None, filter_text: str | None = None) -> Report:
        """
        Analyze one build log.

        Args:
            data: Log content; bytes are decoded as UTF-8 with replacement
            filter_text: Only analyze lines containing this string

        Returns:
            Report with findings, or with a fallback view when nothing matched
        """
        prepared = prepare_log(data, self.config.max_lines, self.config.max_bytes)
        lines = prepared.lines
        notes: list[str] = []

        if prepared.truncated:
            notes.append(
                TRUNCATION_NOTE.format(analyzed=len(prepared.lines), total=prepared.total_lines)
            )

        if filter_text:
            filtered = filter_lines(lines, filter_text)
            if filtered:
                notes.append(
                    FILTER_NOTE.format(needle=filter_text, kept=len(filtered), analyzed=len(lines))
                )
                lines = filtered
            else:
                notes.append(FILTER_MISS_NOTE.format(needle=filter_text))

        result = self.matcher.run(lines)
        extractor = ContextExtractor(lines, self.registry, self.config)
        findings, tier_counts = aggregate(
            result.candidates, extractor, self.config.merge_proximity
        )

        fallback = None
        if not findings:
            fallback = build_fallback(
                lines, result.exit_point, extractor, self.config.fallback_lines
            )

        report = Report(
            findings=findings,
            exit_point=result.exit_point,
            fallback=fallback,
            tier_counts=tier_counts,
            total_lines=prepared.total_lines,
            analyzed_lines=len(lines),
            truncated=prepared.truncated,
            notes=tuple(notes),
            ruleset_version=self.registry.version,
        )

        logger.info(
            f"Analyzed {len(lines)} lines: {len(findings)} findings",
            extra={
                "context": {
                    "total_lines": prepared.total_lines,
                    "analyzed_lines": len(lines),
                    "findings": len(findings),
                    "high": tier_counts.high,
                    "medium": tier_counts.medium,
                    "low": tier_counts.low,
                    "fallback": fallback.kind if fallback else None,
                    "truncated": prepared.truncated,
                }
            },
        )
        return report


def analyze_log(
    data: str | bytes | None,
    filter_text: str | None = None,
    config: EngineConfig | None = None,
) -> Report:
    """
    Analyze a build log with the built-in rule set.

    Convenience wrapper around LogAnalyzer for one-off use.
    """
    return LogAnalyzer(config=config).analyze(data, filter_text=filter_text)
