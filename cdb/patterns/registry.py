"""
Pattern registry for cdb.

The registry is the process-wide, read-only rule state: built once, compiled
once, then shared by any number of analyses. It is passed into the engine
explicitly so tests can substitute a minimal rule set.

Any malformed definition is a configuration error (RegistryError) raised at
construction time; the engine never sees a half-built registry.
"""

import json
import re
from collections.abc import Iterable, Mapping
from pathlib import Path
from types import MappingProxyType
from typing import Literal, NoReturn, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from cdb.patterns import catalog
from cdb.patterns.rules import (
    TIER_BANDS,
    ContextRule,
    ExitSignature,
    PatternRule,
    SuggestionRule,
)
from cdb.schemas import ErrorCategory
from cdb.utils.logger import get_logger

logger = get_logger(__name__)


class RegistryError(ValueError):
    """A rule definition is malformed; analysis cannot proceed."""


class PatternRegistry:
    """
    Immutable, compiled rule set.

    Exposes the ordered rules per category and per tier, the context rule per
    category, the exit signatures, the stack-trace frame shape, the test-block
    markers and the suggestion table. There is no mutation API; ``extend``
    returns a new registry.
    """

    def __init__(
        self,
        rules: Iterable[PatternRule],
        exit_signatures: Iterable[ExitSignature],
        context_rules: Mapping[ErrorCategory, ContextRule],
        *,
        exit_context: ContextRule = catalog.CONTEXT_EXIT_POINT,
        trace_context: ContextRule = catalog.CONTEXT_STACK_TRACE,
        trace_frame: PatternRule | None = catalog.TRACE_FRAME_RULE,
        test_block_markers: Iterable[str] = (),
        suggestions: Iterable[SuggestionRule] = (),
        exit_code_categories: Mapping[int, ErrorCategory] | None = None,
        version: str = "custom",
    ) -> None:
        source_rules = tuple(rules)
        source_signatures = tuple(exit_signatures)
        source_suggestions = tuple(suggestions)

        self._check_names(source_rules, source_signatures, trace_frame)
        for rule in source_rules:
            self._check_rule(rule)
        self._check_context_rules(context_rules, exit_context, trace_context)
        self._check_suggestions(source_suggestions, source_rules, source_signatures)

        self._rules = tuple(_compile(rule) for rule in source_rules)
        self._exit_signatures = tuple(_compile(sig) for sig in source_signatures)
        self._trace_frame = _compile(trace_frame) if trace_frame is not None else None
        if self._trace_frame is not None:
            self._check_rule(self._trace_frame)
        self._test_block_markers = tuple(
            _compile_marker(marker) for marker in test_block_markers
        )

        self._by_category = MappingProxyType(
            {
                category: tuple(r for r in self._rules if r.category is category)
                for category in ErrorCategory
            }
        )
        self._context_rules = MappingProxyType(dict(context_rules))
        self._exit_context = exit_context
        self._trace_context = trace_context
        self._suggestions = source_suggestions
        self._exit_code_categories = MappingProxyType(dict(exit_code_categories or {}))
        self._version = version

        logger.debug(
            f"Pattern registry {version} loaded with {len(self._rules)} rules",
            extra={
                "context": {
                    "version": version,
                    "rules": len(self._rules),
                    "exit_signatures": len(self._exit_signatures),
                }
            },
        )

    # -- read-only views ---------------------------------------------------

    @property
    def version(self) -> str:
        return self._version

    @property
    def rules(self) -> tuple[PatternRule, ...]:
        return self._rules

    @property
    def by_category(self) -> Mapping[ErrorCategory, tuple[PatternRule, ...]]:
        return self._by_category

    @property
    def exit_signatures(self) -> tuple[ExitSignature, ...]:
        return self._exit_signatures

    @property
    def trace_frame(self) -> PatternRule | None:
        return self._trace_frame

    @property
    def test_block_markers(self) -> tuple[re.Pattern[str], ...]:
        return self._test_block_markers

    @property
    def exit_context(self) -> ContextRule:
        return self._exit_context

    @property
    def trace_context(self) -> ContextRule:
        return self._trace_context

    @property
    def suggestions(self) -> tuple[SuggestionRule, ...]:
        return self._suggestions

    def rules_for_tier(self, tier: int) -> tuple[PatternRule, ...]:
        """Rules of one tier in registration order."""
        return tuple(r for r in self._rules if r.tier == tier)

    def context_rule(self, category: ErrorCategory) -> ContextRule:
        return self._context_rules[category]

    def exit_category(self, signature: ExitSignature, exit_code: int | None) -> ErrorCategory:
        """Category of an exit point; some exit codes override the signature's."""
        if exit_code is not None and exit_code in self._exit_code_categories:
            return self._exit_code_categories[exit_code]
        return signature.category

    def suggest(self, rule_name: str, line: str, exit_code: int | None = None) -> str | None:
        """
        Look up a fix hint for a matched rule.

        Args:
            rule_name: Name of the rule or exit signature that matched
            line: The matched (ANSI-stripped) line
            exit_code: Exit code, for exit-point findings

        Returns:
            The first applicable suggestion, or None
        """
        for suggestion in self._suggestions:
            if suggestion.applies(rule_name, line, exit_code):
                return suggestion.text
        return None

    def extend(
        self,
        rules: Iterable[PatternRule] = (),
        exit_signatures: Iterable[ExitSignature] = (),
        suggestions: Iterable[SuggestionRule] = (),
        version: str | None = None,
    ) -> "PatternRegistry":
        """Return a new registry with extra definitions appended."""
        return PatternRegistry(
            self._rules + tuple(rules),
            self._exit_signatures + tuple(exit_signatures),
            self._context_rules,
            exit_context=self._exit_context,
            trace_context=self._trace_context,
            trace_frame=self._trace_frame,
            test_block_markers=[m.pattern for m in self._test_block_markers],
            suggestions=self._suggestions + tuple(suggestions),
            exit_code_categories=self._exit_code_categories,
            version=version or self._version,
        )

    # -- validation --------------------------------------------------------

    @staticmethod
    def _check_names(
        rules: tuple[PatternRule, ...],
        signatures: tuple[ExitSignature, ...],
        trace_frame: PatternRule | None,
    ) -> None:
        names = [r.name for r in rules] + [s.name for s in signatures]
        if trace_frame is not None:
            names.append(trace_frame.name)
        seen: set[str] = set()
        for name in names:
            if not name:
                _fail("rule name must not be empty")
            if name in seen:
                _fail(f"duplicate rule name {name!r}")
            seen.add(name)

    @staticmethod
    def _check_rule(rule: PatternRule) -> None:
        if rule.tier == 1:
            _fail(f"rule {rule.name!r}: tier 1 is reserved for exit signatures")
        if rule.tier not in TIER_BANDS:
            _fail(f"rule {rule.name!r}: tier must be 1, 2 or 3, got {rule.tier}")
        if rule.confidence_range is not None:
            lo, hi = rule.confidence_range
            band_lo, band_hi = TIER_BANDS[rule.tier]
            if lo > hi:
                _fail(f"rule {rule.name!r}: confidence range [{lo}, {hi}] is inverted")
            if lo < band_lo or hi > band_hi:
                _fail(
                    f"rule {rule.name!r}: confidence range [{lo}, {hi}] "
                    f"outside tier {rule.tier} band [{band_lo}, {band_hi}]"
                )

    @staticmethod
    def _check_context_rules(
        context_rules: Mapping[ErrorCategory, ContextRule],
        exit_context: ContextRule,
        trace_context: ContextRule,
    ) -> None:
        missing = [c.value for c in ErrorCategory if c not in context_rules]
        if missing:
            _fail(f"missing context rule for categories: {', '.join(missing)}")
        for rule in (*context_rules.values(), exit_context, trace_context):
            if rule.lines_before < 0 or rule.lines_after < 0:
                _fail(f"context rule {rule} has a negative line count")

    @staticmethod
    def _check_suggestions(
        suggestions: tuple[SuggestionRule, ...],
        rules: tuple[PatternRule, ...],
        signatures: tuple[ExitSignature, ...],
    ) -> None:
        known = {r.name for r in rules} | {s.name for s in signatures}
        for suggestion in suggestions:
            if suggestion.rule not in known:
                _fail(f"suggestion refers to unknown rule {suggestion.rule!r}")


def _fail(message: str) -> NoReturn:
    logger.error(
        f"Invalid pattern registry: {message}",
        extra={"context": {"error": message}},
    )
    raise RegistryError(message)


_R = TypeVar("_R", PatternRule, ExitSignature)


def _compile(rule: _R) -> _R:
    try:
        return rule.compile()
    except re.error as e:
        _fail(f"rule {rule.name!r}: invalid regular expression {rule.pattern!r}: {e}")


def _compile_marker(marker: str) -> re.Pattern[str]:
    try:
        return re.compile(marker)
    except re.error as e:
        _fail(f"invalid test block marker {marker!r}: {e}")


def build_default_registry() -> PatternRegistry:
    """Build the registry from the built-in catalog."""
    return PatternRegistry(
        catalog.TIER2_RULES + catalog.TIER3_RULES,
        catalog.EXIT_SIGNATURES,
        catalog.CONTEXT_RULES,
        exit_context=catalog.CONTEXT_EXIT_POINT,
        trace_context=catalog.CONTEXT_STACK_TRACE,
        trace_frame=catalog.TRACE_FRAME_RULE,
        test_block_markers=catalog.TEST_BLOCK_MARKERS,
        suggestions=catalog.SUGGESTIONS,
        exit_code_categories=catalog.EXIT_CODE_CATEGORIES,
        version=catalog.RULESET_VERSION,
    )


#
# Rules file (JSON) schema
#


class RuleSpec(BaseModel):
    """One pattern rule in a rules file."""

    name: str = Field(..., min_length=1)
    category: ErrorCategory
    tier: Literal[2, 3] = 2
    pattern: str = Field(..., min_length=1)
    regex: bool = True
    case_sensitive: bool = False
    confidence_range: tuple[float, float] | None = None

    model_config = ConfigDict(extra="forbid")

    def to_rule(self) -> PatternRule:
        return PatternRule(
            name=self.name,
            category=self.category,
            tier=self.tier,
            pattern=self.pattern,
            regex=self.regex,
            case_sensitive=self.case_sensitive,
            confidence_range=self.confidence_range,
        )


class ExitSignatureSpec(BaseModel):
    """One exit signature in a rules file."""

    name: str = Field(..., min_length=1)
    pattern: str = Field(..., min_length=1)
    category: ErrorCategory = ErrorCategory.BUILD_FAILURE
    regex: bool = True
    case_sensitive: bool = False
    strong: bool = True

    model_config = ConfigDict(extra="forbid")

    def to_signature(self) -> ExitSignature:
        return ExitSignature(
            name=self.name,
            pattern=self.pattern,
            category=self.category,
            regex=self.regex,
            case_sensitive=self.case_sensitive,
            strong=self.strong,
        )


class SuggestionSpec(BaseModel):
    """One suggestion in a rules file."""

    rule: str = Field(..., min_length=1)
    text: str = Field(..., min_length=1)
    contains: list[str] = Field(default_factory=list)
    exit_code: int | None = None

    model_config = ConfigDict(extra="forbid")

    def to_suggestion(self) -> SuggestionRule:
        return SuggestionRule(
            rule=self.rule,
            text=self.text,
            contains=tuple(self.contains),
            exit_code=self.exit_code,
        )


class RulesFile(BaseModel):
    """Top-level layout of a rules file."""

    version: str | None = None
    rules: list[RuleSpec] = Field(default_factory=list)
    exit_signatures: list[ExitSignatureSpec] = Field(default_factory=list)
    suggestions: list[SuggestionSpec] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")


def load_registry_file(path: Path, base: PatternRegistry | None = None) -> PatternRegistry:
    """
    Build a registry from the built-in catalog plus a JSON rules file.

    Args:
        path: Path to the rules file
        base: Registry to extend (default: the built-in registry)

    Returns:
        New registry with the file's definitions appended

    Raises:
        RegistryError: If the file cannot be read or any definition is invalid
    """
    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
        spec = RulesFile.model_validate(data)
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        _fail(f"cannot load rules file {path}: {e}")

    registry = base or build_default_registry()
    version = f"{registry.version}+{spec.version or path.stem}"

    logger.info(
        f"Loaded {len(spec.rules)} extra rules from {path}",
        extra={"context": {"rules_file": str(path), "rules": len(spec.rules)}},
    )

    return registry.extend(
        rules=[r.to_rule() for r in spec.rules],
        exit_signatures=[s.to_signature() for s in spec.exit_signatures],
        suggestions=[s.to_suggestion() for s in spec.suggestions],
        version=version,
    )
