"""
Core analysis engine for cdb.

This module exposes the engine entry points and its building blocks.
"""

from .aggregator import aggregate, build_fallback, dedupe
from .config import EngineConfig
from .context import ContextExtractor
from .engine import LogAnalyzer, analyze_log
from .exit_point import locate_exit_point, locate_with_fallback
from .grouper import TraceBlock, group_stack_traces
from .logtext import PreparedLog, classify_line, filter_lines, prepare_log, strip_ansi
from .matcher import Candidate, MatchResult, MultiPassMatcher
from .scorer import pattern_specificity, score

__all__ = [
    "EngineConfig",
    "LogAnalyzer",
    "analyze_log",
    "PreparedLog",
    "prepare_log",
    "strip_ansi",
    "filter_lines",
    "classify_line",
    "locate_exit_point",
    "locate_with_fallback",
    "pattern_specificity",
    "score",
    "Candidate",
    "MatchResult",
    "MultiPassMatcher",
    "TraceBlock",
    "group_stack_traces",
    "ContextExtractor",
    "aggregate",
    "dedupe",
    "build_fallback",
]
