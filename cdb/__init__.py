"""
cdb - CI debugger.

Localizes the root cause of a failed CI build from its raw log output: a
three-pass matcher (exit point, specific patterns, generic indicators) feeds a
confidence-tiered report, with an explicit fallback view when nothing matched.
"""

__version__ = "0.1.0"

from cdb.core import EngineConfig, LogAnalyzer, analyze_log
from cdb.patterns import PatternRegistry, RegistryError, build_default_registry
from cdb.schemas import DetectedError, ErrorCategory, Report

__all__ = [
    "__version__",
    "EngineConfig",
    "LogAnalyzer",
    "analyze_log",
    "PatternRegistry",
    "RegistryError",
    "build_default_registry",
    "DetectedError",
    "ErrorCategory",
    "Report",
]
