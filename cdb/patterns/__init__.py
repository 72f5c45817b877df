"""
Pattern registry for cdb.

This module exposes the rule types, the built-in catalog and the immutable
registry the analysis engine is constructed with.
"""

from .catalog import RULESET_VERSION
from .registry import (
    PatternRegistry,
    RegistryError,
    build_default_registry,
    load_registry_file,
)
from .rules import (
    TIER_BANDS,
    ContextMode,
    ContextRule,
    ExitSignature,
    PatternRule,
    SuggestionRule,
)

__all__ = [
    "RULESET_VERSION",
    "TIER_BANDS",
    "ContextMode",
    "ContextRule",
    "ExitSignature",
    "PatternRule",
    "SuggestionRule",
    "PatternRegistry",
    "RegistryError",
    "build_default_registry",
    "load_registry_file",
]
