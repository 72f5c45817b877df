"""
Output generators for analysis reports.

This module renders a Report for people and machines:
- Plain text (tiered layout, stable and uncolored)
- JSON (structured data)
- Rich console display (colored report, log views, build summaries)

Log text is always rendered as rich Text, never as markup, so brackets in
build output are shown verbatim.
"""

import json
from collections.abc import Collection, Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from cdb.circleci import BuildInfo, format_duration
from cdb.core.logtext import classify_line
from cdb.schemas import DetectedError, LogLine, PresentationTier, Report
from cdb.utils.logger import get_logger

logger = get_logger(__name__)

TIER_TITLES: dict[PresentationTier, str] = {
    "high": "High Confidence Errors (90%+)",
    "medium": "Medium Confidence Patterns (60–89%)",
    "low": "Low Confidence Indicators (<60%)",
}
TIER_STYLES: dict[PresentationTier, str] = {
    "high": "bold red",
    "medium": "bold yellow",
    "low": "bold blue",
}
TIER_ORDER: tuple[PresentationTier, ...] = ("high", "medium", "low")

SUGGESTION_PREFIX = "💡 Suggestion:"
FALLBACK_BANNER = "Unclassified fallback: these lines were not matched by any pattern"
EXIT_ZONE_LINES = 50

HINTS = (
    "Use --full to see complete logs",
    "Use --tail 100 to see more context",
    "Use --filter TEXT to narrow the log to matching lines",
)


def _gutter(line: LogLine, highlight: Collection[int]) -> str:
    marker = "►" if line.index in highlight else "│"
    return f"{line.index:5} {marker} "


#
# Plain text
#


def render_finding(finding: DetectedError) -> list[str]:
    """Plain-text block for one finding."""
    lines = [
        f"[{finding.category.value}] Line {finding.anchor} "
        f"({finding.confidence:.0%}) {finding.rule}",
        f"  {finding.message}",
    ]
    highlight = {finding.anchor, *finding.related_lines}
    lines.extend(f"  {_gutter(line, highlight)}{line.text}" for line in finding.context)
    if finding.suggestion:
        lines.append(f"  {SUGGESTION_PREFIX} {finding.suggestion}")
    return lines


def render_text_report(report: Report) -> str:
    """
    Render a report as tiered plain text.

    Findings are grouped under the High / Medium / Low headers in report
    order; empty tiers are omitted. A fallback report says so explicitly.
    """
    out: list[str] = []

    for note in report.notes:
        out.append(f"Note: {note}")
    if report.notes:
        out.append("")

    if report.fallback is not None:
        out.append(report.fallback.reason)
        out.append(FALLBACK_BANNER)
        out.append("")
        out.extend(f"{_gutter(line, ())}{line.text}" for line in report.fallback.lines)
        return "\n".join(out) + "\n"

    for tier in TIER_ORDER:
        findings = report.by_tier(tier)
        if not findings:
            continue
        title = f"{TIER_TITLES[tier]} [{len(findings)}]"
        out.append(title)
        out.append("-" * len(title))
        for finding in findings:
            out.extend(render_finding(finding))
            out.append("")

    return "\n".join(out)


#
# JSON
#


def render_json_report(report: Report) -> str:
    """Serialize a report as indented JSON."""
    return json.dumps(report.to_dict(), indent=2, ensure_ascii=False)


def generate_json_output(
    report: Report,
    output_path: Path,
    metadata: dict[str, Any] | None = None,
) -> None:
    """
    Write a report to a JSON file, with metadata and a generation timestamp.

    Args:
        report: Analysis report
        output_path: Path to output JSON file
        metadata: Extra metadata (source file, build URL, ...)
    """
    output_data = {
        "metadata": {
            **(metadata or {}),
            "ruleset_version": report.ruleset_version,
            "generated_at": datetime.now(timezone.utc).isoformat(),
        },
        "report": report.to_dict(),
    }

    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(output_data, f, indent=2, ensure_ascii=False)

    logger.info(f"JSON output written to: {output_path}")


#
# Rich console
#


def _log_text(line: LogLine, highlight: Collection[int]) -> Text:
    if line.index in highlight:
        text = Text(f"{line.index:5} ► ", style="bold bright_red")
        text.append(line.text.strip(), style="bold white on red")
        return text

    text = Text(f"{line.index:5} │ ", style="dim")
    severity = classify_line(line.text)
    if severity == "error":
        text.append(line.text, style="bold red")
    elif severity == "warning":
        text.append(line.text, style="yellow")
    else:
        text.append(line.text, style="dim")
    return text


def display_report(report: Report, console: Console | None = None) -> None:
    """
    Display a report in the console with Rich formatting.

    Args:
        report: Analysis report
        console: Target console (default: a new stdout console)
    """
    console = console or Console()

    for note in report.notes:
        console.print(Text(f"Note: {note}", style="cyan"))

    if report.fallback is not None:
        console.print()
        console.print(Text(report.fallback.reason, style="bold yellow"))
        console.print(Text(FALLBACK_BANNER, style="yellow"))
        for line in report.fallback.lines:
            console.print(_log_text(line, ()))
        return

    for tier in TIER_ORDER:
        findings = report.by_tier(tier)
        if not findings:
            continue
        console.print()
        console.print(Text(f"{TIER_TITLES[tier]} [{len(findings)}]", style=TIER_STYLES[tier]))
        for finding in findings:
            header = Text()
            header.append(f"[{finding.category.value}] ", style="bold red")
            header.append(f"Line {finding.anchor}: ", style="bold bright_red")
            header.append(f"{finding.rule} ({finding.confidence:.0%})", style="bold")
            console.print(header)

            highlight = {finding.anchor, *finding.related_lines}
            for line in finding.context:
                console.print(_log_text(line, highlight))

            if finding.suggestion:
                suggestion = Text(f"  {SUGGESTION_PREFIX} ", style="yellow")
                suggestion.append(finding.suggestion)
                console.print(suggestion)
            console.print()


def display_log_view(
    lines: Sequence[LogLine],
    title: str,
    highlight: Collection[int] = (),
    console: Console | None = None,
) -> None:
    """
    Display raw log lines with severity coloring.

    Args:
        lines: Lines to show
        title: Section title (e.g. "LAST 50 LINES (BUILD EXIT ZONE)")
        highlight: Line numbers to mark as detected errors
        console: Target console
    """
    console = console or Console()
    console.print()
    console.print(Text(f"=== {title} ===", style="bold yellow"))
    for line in lines:
        console.print(_log_text(line, highlight))


def display_exit_zone(
    report: Report,
    lines: Sequence[LogLine],
    console: Console | None = None,
    size: int = EXIT_ZONE_LINES,
) -> None:
    """Display the last ``size`` lines with the report's anchors highlighted."""
    highlight = {f.anchor for f in report.findings}
    for finding in report.findings:
        highlight.update(finding.related_lines)
    display_log_view(
        lines[-size:],
        f"LAST {size} LINES (BUILD EXIT ZONE)",
        highlight=highlight,
        console=console,
    )


def display_hints(saved_path: Path | None = None, console: Console | None = None) -> None:
    """Display next steps for when the report missed the real error."""
    console = console or Console()
    console.print()
    console.print(Text("=== DIDN'T FIND YOUR ERROR? ===", style="bold cyan"))
    for hint in HINTS:
        console.print(Text(f"  • {hint}", style="cyan"))
    if saved_path is not None:
        console.print(Text(f"  • Full logs saved at: {saved_path}", style="cyan"))


def display_build_summary(build: BuildInfo, console: Console | None = None) -> None:
    """Display build status, branch and commit subject."""
    console = console or Console()

    table = Table(show_header=False, box=None, padding=(0, 2))
    status_style = "bold red" if build.is_failed else "bold green"
    table.add_row("[bold]Status:[/bold]", Text(build.status or "unknown", style=status_style))
    if build.branch:
        table.add_row("[bold]Branch:[/bold]", Text(build.branch))
    if build.subject:
        table.add_row("[bold]Commit:[/bold]", Text(build.subject))
    table.add_row("[bold]Failed actions:[/bold]", str(len(build.failed_actions)))

    console.print(
        Panel(
            table,
            title=f"[bold cyan]Build #{build.build_num}[/bold cyan]",
            border_style="cyan",
        )
    )


def display_timing(build: BuildInfo, console: Console | None = None) -> None:
    """Display total build time, the slowest steps and a bottleneck warning."""
    console = console or Console()
    console.print()
    console.print("[bold blue]Timing Analysis[/bold blue]")

    timings = build.step_timings()
    if not timings:
        console.print("No timing data available for this build")
        return

    console.print(f"Total build time: {format_duration(build.total_time_millis)}")
    console.print()
    console.print("Slowest steps:")
    for i, timing in enumerate(timings, start=1):
        if timing.millis > 60_000:
            style = "red"
        elif timing.millis > 30_000:
            style = "yellow"
        else:
            style = "green"
        console.print(
            Text(
                f"  {i}. {timing.name} - {format_duration(timing.millis)} ({timing.percentage}%)",
                style=style,
            )
        )

    bottleneck = build.bottleneck()
    if bottleneck is not None:
        console.print()
        console.print(
            Text(
                f"⚠ Bottleneck detected: '{bottleneck.name}' takes "
                f"{bottleneck.percentage}% of total time",
                style="yellow",
            )
        )
        console.print("  Consider optimizing or parallelizing this step")


def display_quick_actions(url: str, console: Console | None = None) -> None:
    """Display rerun and artifact links for a build."""
    console = console or Console()
    console.print()
    console.print("[bold blue]Quick Actions[/bold blue]")
    console.print(Text(f"• Rerun: {url}/retry"))
    console.print("• SSH Debug: Click 'Rerun' → 'Rerun job with SSH' in CircleCI UI")
    console.print(Text(f"• View artifacts: {url}/artifacts"))
