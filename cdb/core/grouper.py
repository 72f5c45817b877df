"""
Stack-trace grouping for cdb.

One logical exception prints many frame lines. Consecutive frames (and the
indented lines between them, such as Python's source excerpts) are merged
into a single block so the report shows one finding per trace.
"""

from collections.abc import Sequence
from dataclasses import dataclass

from cdb.patterns.rules import PatternRule
from cdb.schemas import LogLine


@dataclass(frozen=True)
class TraceBlock:
    """
    A contiguous stack-trace block.

    Attributes:
        start: Line number of the first frame
        end: Line number of the last line of the block
        frames: Number of frame-shaped lines in the block
    """

    start: int
    end: int
    frames: int


def is_indented(text: str) -> bool:
    """True for non-blank lines starting with whitespace."""
    return bool(text.strip()) and text[:1].isspace()


def group_stack_traces(
    lines: Sequence[LogLine],
    frame_rule: PatternRule,
    min_frames: int = 2,
) -> list[TraceBlock]:
    """
    Find stack-trace blocks.

    A block starts at a frame-shaped line and extends over every following
    indented line; it ends at the first line that is not indented (blank
    lines included). Blocks with fewer than ``min_frames`` frames are ignored.

    Args:
        lines: Analyzed log lines
        frame_rule: Compiled rule describing the frame shape
        min_frames: Minimum number of frames per block

    Returns:
        Blocks in log order
    """
    blocks: list[TraceBlock] = []
    i = 0
    n = len(lines)

    while i < n:
        if frame_rule.search(lines[i].text) is None:
            i += 1
            continue

        start = i
        frames = 1
        j = i + 1
        while j < n and is_indented(lines[j].text):
            if frame_rule.search(lines[j].text) is not None:
                frames += 1
            j += 1

        if frames >= min_frames:
            blocks.append(
                TraceBlock(start=lines[start].index, end=lines[j - 1].index, frames=frames)
            )
        i = j

    return blocks
