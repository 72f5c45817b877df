"""
Exit-point location for cdb.

The exit point is the line that reports the build process's terminal failure
("Exited with code exit status 1", "Build failed", ...). It is searched from
the end of the log backwards: the most recent failure is the most relevant.
"""

from collections.abc import Sequence

from cdb.patterns.rules import ExitSignature
from cdb.schemas import ExitPoint, LogLine


def locate_exit_point(
    lines: Sequence[LogLine],
    signatures: Sequence[ExitSignature],
) -> tuple[ExitPoint, ExitSignature] | None:
    """
    Find the last line matching any exit signature.

    Lines are scanned from the end; within one line, signatures are tried in
    their registration order. The scan stops at the first hit.

    Args:
        lines: Analyzed log lines
        signatures: Compiled exit signatures, in priority order

    Returns:
        Tuple of (exit point, matching signature), or None if no line matches
    """
    if not signatures:
        return None

    for line in reversed(lines):
        for signature in signatures:
            match = signature.search(line.text)
            if match is None:
                continue
            return (
                ExitPoint(
                    line_index=line.index,
                    signature=signature.name,
                    text=line.text.strip(),
                    exit_code=_exit_code(match.groupdict().get("code")),
                    strong=signature.strong,
                ),
                signature,
            )
    return None


def locate_with_fallback(
    lines: Sequence[LogLine],
    signatures: Sequence[ExitSignature],
) -> tuple[ExitPoint, ExitSignature] | None:
    """
    Locate the exit point, preferring strong signatures.

    A weak signature (e.g. a bare "exit status 2") is only used when no strong
    signature matches anywhere in the log.
    """
    strong = [s for s in signatures if s.strong]
    weak = [s for s in signatures if not s.strong]
    return locate_exit_point(lines, strong) or locate_exit_point(lines, weak)


def _exit_code(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None
