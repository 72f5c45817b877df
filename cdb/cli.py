"""
Main CLI entry point for cdb (CI debugger).

This module provides the command-line interface for the cdb tool.
"""

import asyncio
import json
import logging
import tempfile
from enum import Enum
from pathlib import Path
from typing import Annotated, Any

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

from cdb import __version__
from cdb.circleci import (
    CircleCIConfig,
    CircleCIError,
    CircleClient,
    build_url,
    parse_circleci_url,
)
from cdb.core import EngineConfig, LogAnalyzer, filter_lines, prepare_log, strip_ansi
from cdb.outputs import (
    display_build_summary,
    display_exit_zone,
    display_hints,
    display_log_view,
    display_quick_actions,
    display_report,
    display_timing,
    generate_json_output,
    render_json_report,
)
from cdb.patterns import RegistryError
from cdb.schemas import LogLine, Report
from cdb.utils.logger import get_logger, set_log_level

app = typer.Typer(
    name="cdb",
    help="CI Debugger - find the root cause of a failed build in its log",
    add_completion=False,
)

console = Console()
logger = get_logger(__name__)


class OutputFormat(str, Enum):
    TEXT = "text"
    JSON = "json"


def _configure_logging(verbose: bool) -> None:
    set_log_level(logging.DEBUG if verbose else logging.WARNING)


def _view_lines(data: str | bytes, config: EngineConfig, filter_text: str | None) -> tuple[LogLine, ...]:
    """Lines for the raw log views, narrowed by the filter when it matches."""
    lines = prepare_log(data, config.max_lines, config.max_bytes).lines
    if filter_text:
        filtered = filter_lines(lines, filter_text)
        if filtered:
            return filtered
    return lines


def _present(
    report: Report,
    lines: tuple[LogLine, ...],
    full: bool,
    tail: int | None,
    saved_path: Path | None = None,
) -> None:
    """Print one analyzed log the way the view flags ask for."""
    if full:
        display_log_view(lines, "FULL LOG OUTPUT", console=console)
        return
    if tail is not None:
        display_log_view(lines[-tail:], f"LAST {tail} LINES", console=console)
        return

    display_report(report, console=console)
    display_exit_zone(report, lines, console=console)
    display_hints(saved_path, console=console)


@app.command()
def analyze(
    log_file: Annotated[
        str,
        typer.Argument(help="Path to the build log, or '-' to read stdin"),
    ],
    output_format: Annotated[
        OutputFormat,
        typer.Option("--format", "-F", help="Report format"),
    ] = OutputFormat.TEXT,
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Also write the JSON report to this file"),
    ] = None,
    filter_text: Annotated[
        str | None,
        typer.Option("--filter", "-f", help="Only analyze lines containing this text"),
    ] = None,
    fallback_lines: Annotated[
        int | None,
        typer.Option("--fallback-lines", help="Lines shown when nothing matched (default: 100)"),
    ] = None,
    max_lines: Annotated[
        int | None,
        typer.Option("--max-lines", help="Analyze at most this many trailing lines"),
    ] = None,
    rules: Annotated[
        Path | None,
        typer.Option("--rules", help="JSON file with extra rules", exists=True, dir_okay=False),
    ] = None,
    full: Annotated[
        bool,
        typer.Option("--full", help="Print the complete log instead of the report"),
    ] = False,
    tail: Annotated[
        int | None,
        typer.Option("--tail", "-n", min=1, help="Print only the last N lines"),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose output"),
    ] = False,
) -> None:
    """
    Analyze a build log file.

    Examples:

        # Tiered report of a saved log
        cdb analyze build.log

        # Machine-readable report
        cdb analyze build.log --format json

        # Pipe a log in, only looking at lines mentioning "jest"
        cat build.log | cdb analyze - --filter jest
    """
    _configure_logging(verbose)

    try:
        if log_file == "-":
            data: bytes = typer.get_binary_stream("stdin").read()
        else:
            data = Path(log_file).read_bytes()

        config = EngineConfig.from_env(
            fallback_lines=fallback_lines,
            max_lines=max_lines,
            rules_file=rules,
        )
        analyzer = LogAnalyzer(config=config)
        report = analyzer.analyze(data, filter_text=filter_text)

        if output is not None:
            generate_json_output(report, output, metadata={"source": log_file})

        if output_format is OutputFormat.JSON:
            typer.echo(render_json_report(report))
            return

        _present(report, _view_lines(data, config, filter_text), full, tail)

    except OSError as e:
        console.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
        raise typer.Exit(1) from e
    except (RegistryError, ValidationError) as e:
        console.print(f"[bold red]Configuration error:[/bold red] {escape(str(e))}")
        raise typer.Exit(1) from e
    except KeyboardInterrupt:
        console.print()
        console.print("[yellow]Interrupted by user[/yellow]")
        raise typer.Exit(130) from None


@app.command()
def build(
    url: Annotated[
        str,
        typer.Argument(help="CircleCI build URL (https://circleci.com/gh/org/repo/123)"),
    ],
    output_format: Annotated[
        OutputFormat,
        typer.Option("--format", "-F", help="Report format"),
    ] = OutputFormat.TEXT,
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Also save the fetched logs to this file"),
    ] = None,
    filter_text: Annotated[
        str | None,
        typer.Option("--filter", "-f", help="Only analyze lines containing this text"),
    ] = None,
    full: Annotated[
        bool,
        typer.Option("--full", help="Print the complete logs instead of the report"),
    ] = False,
    tail: Annotated[
        int | None,
        typer.Option("--tail", "-n", min=1, help="Print only the last N lines"),
    ] = None,
    no_fetch: Annotated[
        bool,
        typer.Option("--no-fetch", help="Do not download logs; only show where they are"),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose output"),
    ] = False,
) -> None:
    """
    Analyze a failed CircleCI build.

    Fetches the build, downloads the log of every failed action, saves it to
    the temp directory and analyzes it.

    Requires the CIRCLECI_TOKEN environment variable.
    """
    _configure_logging(verbose)

    try:
        org, project, build_num = parse_circleci_url(url)
        circle_config = CircleCIConfig.from_env()
        engine_config = EngineConfig.from_env()
        analyzer = LogAnalyzer(config=engine_config)
    except ValidationError as e:
        console.print(f"[bold red]Configuration error:[/bold red] {escape(str(e))}")
        if "token" in str(e):
            console.print("  help: Set the CIRCLECI_TOKEN environment variable")
        raise typer.Exit(1) from e
    except (ValueError, RegistryError) as e:
        console.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
        raise typer.Exit(1) from e

    json_mode = output_format is OutputFormat.JSON
    if not json_mode:
        console.print("[bold blue]Analyzing CircleCI Build[/bold blue]")
        console.print(f"→ Organization: {org}")
        console.print(f"→ Project: {project}")
        console.print(f"→ Build Number: {build_num}")

    async def run_build() -> list[dict[str, Any]]:
        results: list[dict[str, Any]] = []
        saved_logs: list[str] = []

        async with CircleClient(circle_config) as client:
            build_info = await client.get_build(org, project, build_num)
            if not json_mode:
                display_build_summary(build_info, console=console)

            failed_steps = build_info.failed_steps
            if not failed_steps and not json_mode:
                console.print("[green]✓ No failed steps found[/green]")

            action_num = 0
            for step in failed_steps:
                if not json_mode:
                    console.print()
                    console.print(f"[bold red]▸[/bold red] [bold]{escape(step.name)}[/bold]")

                for action in step.actions:
                    if not action.failed:
                        continue
                    action_num += 1
                    if not json_mode:
                        console.print(f"  [red]✗ {escape(action.name)}[/red]")

                    if action.output_url is None:
                        continue
                    if no_fetch:
                        if json_mode:
                            results.append(
                                {"step": step.name, "action": action.name, "output_url": action.output_url}
                            )
                        else:
                            console.print("  [yellow]=== LOG FETCHING SKIPPED ===[/yellow]")
                            console.print(f"  View logs directly at: {action.output_url}")
                        continue

                    logs = strip_ansi(await client.get_logs(action.output_url))
                    saved_path = Path(tempfile.gettempdir()) / f"cdb-{build_num}-{action_num}.log"
                    saved_path.write_text(logs, encoding="utf-8")
                    saved_logs.append(logs)
                    logger.info(
                        f"Saved logs to {saved_path}",
                        extra={"context": {"build_num": build_num, "path": str(saved_path)}},
                    )

                    report = analyzer.analyze(logs, filter_text=filter_text)
                    results.append(
                        {"step": step.name, "action": action.name, "report": report.to_dict()}
                    )

                    if json_mode:
                        continue
                    console.print(f"  [dim]Auto-saved full logs to: {saved_path}[/dim]")
                    _present(
                        report,
                        _view_lines(logs, engine_config, filter_text),
                        full,
                        tail,
                        saved_path=saved_path,
                    )

            if output is not None and saved_logs:
                output.write_text("\n".join(saved_logs), encoding="utf-8")
                if not json_mode:
                    console.print(f"[green]Logs also saved to: {output}[/green]")

            if not json_mode:
                display_timing(build_info, console=console)
                display_quick_actions(build_url(org, project, build_num), console=console)

        return results

    try:
        results = asyncio.run(run_build())
    except CircleCIError as e:
        console.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
        logger.error(f"Build analysis failed: {e}", exc_info=verbose)
        raise typer.Exit(1) from e
    except OSError as e:
        console.print(f"[bold red]Error:[/bold red] cannot save logs: {escape(str(e))}")
        raise typer.Exit(1) from e
    except KeyboardInterrupt:
        console.print()
        console.print("[yellow]Interrupted by user[/yellow]")
        raise typer.Exit(130) from None

    if json_mode:
        typer.echo(json.dumps(results, indent=2, ensure_ascii=False))


@app.command()
def version() -> None:
    """Display version information."""
    console.print(f"[bold]cdb[/bold] version {__version__}")


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
