"""
Log text preparation for cdb.

This module turns raw log input into the immutable line sequence the engine
scans:
1. Best-effort decoding of bytes
2. Tail truncation by byte and line caps
3. Splitting into 1-indexed lines, numbered as in the original log
4. ANSI escape stripping (matching never sees color codes)
"""

import re
from dataclasses import dataclass
from typing import Literal

from cdb.schemas import LogLine

# CSI sequences (colors, cursor movement) and OSC sequences (titles, links)
ANSI_ESCAPE_RE = re.compile(r"\x1b\[[0-?]*[ -/]*[@-~]|\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)")

LineSeverity = Literal["error", "warning", "plain"]


@dataclass(frozen=True)
class PreparedLog:
    """
    A log ready for analysis.

    Attributes:
        lines: Analyzed lines (the tail, if the log was truncated)
        total_lines: Number of lines in the original log
        truncated: True if leading lines were dropped by a size cap
    """

    lines: tuple[LogLine, ...]
    total_lines: int
    truncated: bool

    @property
    def first_index(self) -> int:
        return self.lines[0].index if self.lines else 1

    @property
    def last_index(self) -> int:
        return self.lines[-1].index if self.lines else 0


def strip_ansi(text: str) -> str:
    """Remove ANSI escape sequences from text."""
    return ANSI_ESCAPE_RE.sub("", text)


def decode_log(data: str | bytes | None) -> str:
    """
    Decode log input, never failing.

    Invalid UTF-8 byte sequences are replaced rather than rejected.
    """
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return data


def truncate_tail(text: str, max_bytes: int) -> tuple[str, int]:
    """
    Keep at most the last ``max_bytes`` bytes of text, on a line boundary.

    When the last line alone exceeds the cap, its last ``max_bytes`` bytes
    are kept and it still counts as analyzed.

    Args:
        text: Full log text
        max_bytes: Byte cap

    Returns:
        Tuple of (kept text, number of leading lines dropped)
    """
    data = text.encode("utf-8")
    if len(data) <= max_bytes:
        return text, 0

    head, tail = data[:-max_bytes], data[-max_bytes:]
    dropped = head.count(b"\n")

    # The cut landed inside a line: drop its remainder too
    if not head.endswith(b"\n"):
        newline = tail.find(b"\n")
        # Only part of the last line fits
        if newline in (-1, len(tail) - 1):
            return tail.decode("utf-8", errors="replace"), dropped
        tail = tail[newline + 1:]
        dropped += 1

    return tail.decode("utf-8", errors="replace"), dropped


def split_raw_lines(text: str) -> list[str]:
    """
    Split text into physical lines.

    Only "\\n" separates lines (a trailing "\\r" is removed); a final newline
    does not start an extra empty line.
    """
    if not text:
        return []
    parts = text.split("\n")
    if parts[-1] == "":
        parts.pop()
    return [p[:-1] if p.endswith("\r") else p for p in parts]


def make_lines(raw_lines: list[str], first_index: int = 1) -> tuple[LogLine, ...]:
    """Build LogLine values numbered from ``first_index``."""
    return tuple(
        LogLine(index=first_index + offset, text=strip_ansi(raw), raw=raw)
        for offset, raw in enumerate(raw_lines)
    )


def prepare_log(data: str | bytes | None, max_lines: int, max_bytes: int) -> PreparedLog:
    """
    Decode, cap and split a log.

    Line numbers always refer to the original log, also when the head was
    dropped.

    Args:
        data: Raw log input
        max_lines: Line cap (tail kept)
        max_bytes: Byte cap (tail kept, applied first)

    Returns:
        PreparedLog with the analyzed lines
    """
    text, dropped = truncate_tail(decode_log(data), max_bytes)
    raw_lines = split_raw_lines(text)

    if len(raw_lines) > max_lines:
        excess = len(raw_lines) - max_lines
        raw_lines = raw_lines[excess:]
        dropped += excess

    return PreparedLog(
        lines=make_lines(raw_lines, first_index=dropped + 1),
        total_lines=dropped + len(raw_lines),
        truncated=dropped > 0,
    )


def filter_lines(lines: tuple[LogLine, ...], needle: str) -> tuple[LogLine, ...]:
    """
    Keep only lines containing ``needle`` (case-sensitive).

    Original line numbers are preserved.
    """
    return tuple(line for line in lines if needle in line.text)


def classify_line(text: str) -> LineSeverity:
    """
    Classify a line for highlighting in plain log views.

    Returns:
        "error" for error-like lines, "warning" for warnings, else "plain"
    """
    lowered = text.lower()
    if "error" in lowered or "failed" in lowered or "✗" in text or "FAIL" in text:
        return "error"
    if "warn" in lowered:
        return "warning"
    return "plain"
