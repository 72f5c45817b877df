"""
Confidence scoring for cdb.

Scoring is a pure function of (tier, category, specificity): each tier owns a
confidence band, and specificity places a match inside it. Literal substrings
are maximally specific; regular expressions lose specificity with every
wildcard construct they contain.
"""

from cdb.patterns.rules import TIER_BANDS
from cdb.schemas import ErrorCategory

# A regular expression never reaches the specificity of a literal match
REGEX_CEILING = 0.9

# How many literal characters one wildcard construct cancels out
WILDCARD_WEIGHT = 4

# Crash signals sit higher in their band than other matches of equal shape
CATEGORY_BIAS: dict[ErrorCategory, float] = {
    ErrorCategory.CRITICAL: 0.1,
}

_CLASS_ESCAPES = set("dDwWsS")
_ZERO_WIDTH_ESCAPES = set("bBAZz")


def count_regex_tokens(pattern: str) -> tuple[int, int]:
    """
    Count literal characters and wildcard constructs in a regular expression.

    Wildcards are: ``.``, character classes (``[...]``, ``\\d``, ``\\w``, ...),
    quantifiers (``*``, ``+``, ``?``, ``{m,n}``) and alternation (``|``).
    Anchors, group syntax and zero-width escapes count as neither.

    Returns:
        Tuple of (literal character count, wildcard count)
    """
    literal = 0
    wildcards = 0
    i = 0
    n = len(pattern)

    while i < n:
        char = pattern[i]

        if char == "\\" and i + 1 < n:
            escaped = pattern[i + 1]
            if escaped in _CLASS_ESCAPES:
                wildcards += 1
            elif escaped not in _ZERO_WIDTH_ESCAPES:
                literal += 1
            i += 2
            continue

        if char == "[":
            # Skip to the closing bracket; a leading "]" is part of the class
            j = i + 1
            if j < n and pattern[j] == "^":
                j += 1
            if j < n and pattern[j] == "]":
                j += 1
            while j < n and pattern[j] != "]":
                j += 2 if pattern[j] == "\\" else 1
            wildcards += 1
            i = j + 1
            continue

        if char == "(":
            i += 1
            if i < n and pattern[i] == "?":
                i = _skip_group_prefix(pattern, i)
            continue

        if char == "{":
            close = pattern.find("}", i)
            if close != -1:
                wildcards += 1
                i = close + 1
                continue
            literal += 1
        elif char in ".*+?|":
            wildcards += 1
        elif char not in "()^$":
            literal += 1
        i += 1

    return literal, wildcards


def _skip_group_prefix(pattern: str, i: int) -> int:
    """Skip the ``?...`` prefix of an extension group starting at ``i``."""
    i += 1  # the "?"
    if pattern.startswith("P<", i):
        close = pattern.find(">", i)
        return close + 1 if close != -1 else len(pattern)
    if pattern.startswith(("<=", "<!"), i):
        return i + 2
    if i < len(pattern) and pattern[i] in ":=!>":
        return i + 1
    # Inline flags such as (?i) or (?i:...)
    while i < len(pattern) and pattern[i].isalpha():
        i += 1
    if i < len(pattern) and pattern[i] in ":)":
        i += 1
    return i


def pattern_specificity(pattern: str, regex: bool) -> float:
    """
    Specificity of a pattern in [0, 1].

    Args:
        pattern: The rule pattern
        regex: True if the pattern is a regular expression

    Returns:
        1.0 for literal substrings; for regular expressions a value below
        REGEX_CEILING that shrinks as wildcards outweigh literal text
    """
    if not regex:
        return 1.0
    literal, wildcards = count_regex_tokens(pattern)
    if literal == 0:
        return 0.0
    return REGEX_CEILING * literal / (literal + WILDCARD_WEIGHT * wildcards)


def score(
    tier: int,
    category: ErrorCategory,
    specificity: float,
    band: tuple[float, float] | None = None,
) -> float:
    """
    Confidence of a match.

    Args:
        tier: Tier of the pass that produced the match (1, 2 or 3)
        category: Category of the match
        specificity: Pattern specificity in [0, 1]
        band: Optional narrower band (a rule's own confidence range)

    Returns:
        Confidence inside the band, rounded to 2 decimals so ranking and
        display agree
    """
    lo, hi = band or TIER_BANDS[tier]
    effective = min(1.0, max(0.0, specificity) + CATEGORY_BIAS.get(category, 0.0))
    return round(lo + (hi - lo) * effective, 2)
