"""AIReady CLI - measure how ready a codebase is for AI-assisted development."""
import json
import time
from enum import Enum
from pathlib import Path
from typing import List, Optional, Sequence

import typer
from rich.markup import escape
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from aiready.analyzer import context_analyzer, pattern_detector
from aiready.analyzer.aggregator import generate_summary
from aiready.analyzer.models import Report, Severity
from aiready.analyzer.pipeline import run
from aiready.config import KNOWN_TOOLS, AnalysisOptions, __version__, load_config
from aiready.errors import AIReadyError, ConfigurationError
from aiready.utils.logger import configure_logging, get_logger
from aiready.utils.safe_console import SafeConsole

app = typer.Typer(
    name="aiready",
    help="Measure AI-readiness: duplicated patterns and context cost",
    add_completion=False,
)
# Results go to stdout; progress, logs and errors to stderr
console = SafeConsole()
err_console = SafeConsole(stderr=True)

logger = get_logger(__name__)

SEVERITY_STYLES = {
    Severity.CRITICAL: "bold red",
    Severity.MAJOR: "yellow",
    Severity.MINOR: "cyan",
    Severity.INFO: "dim",
}


class OutputFormat(str, Enum):
    console = "console"
    json = "json"


def parse_tools(raw: str) -> List[str]:
    """Split a comma-separated tool list, dropping blanks."""
    return [tool.strip() for tool in raw.split(",") if tool.strip()]


def parse_patterns(values: Sequence[str]) -> List[str]:
    """Split comma-separated globs, keeping commas inside {a,b} braces."""
    patterns = []
    for value in values:
        depth = 0
        current = ""
        for char in value:
            if char == "{":
                depth += 1
            elif char == "}":
                depth = max(0, depth - 1)
            if char == "," and depth == 0:
                patterns.append(current)
                current = ""
            else:
                current += char
        patterns.append(current)
    return [pattern.strip() for pattern in patterns if pattern.strip()]


def report_to_json(report: Report, execution_time: float) -> str:
    """Serialize a Report for output, adding the run's wall-clock time."""
    data = report.to_dict()
    data['summary']['executionTime'] = round(execution_time, 3)
    return json.dumps(data, indent=2, ensure_ascii=False)


def _print_issues(report: Report):
    issues = report.issues()
    if not issues:
        console.print("[green]✓ No issues found[/green]\n")
        return

    table = Table(title=f"Issues ({len(issues)})", show_header=True, header_style="bold magenta")
    table.add_column("Severity", no_wrap=True)
    table.add_column("Type", style="blue", no_wrap=True)
    table.add_column("Location", style="cyan")
    table.add_column("Message")

    # Most severe first, stable within a severity
    for issue in sorted(issues, key=lambda item: -item.severity.rank):
        style = SEVERITY_STYLES[issue.severity]
        table.add_row(
            f"[{style}]{issue.severity.value}[/{style}]",
            issue.type.value,
            escape(f"{issue.location.file}:{issue.location.line}"),
            escape(issue.message),
        )
    console.print(table)


def _print_tool_summaries(report: Report):
    tools = report.summary.tools_run
    table = Table(show_header=False, box=None)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    if "patterns" in tools:
        results = [r for r in report.results if r.tool == pattern_detector.TOOL_NAME]
        stats = pattern_detector.generate_summary(results)
        table.add_row("Duplicate patterns", str(stats['totalPatterns']))
        table.add_row("Wasted tokens", str(stats['totalTokenCost']))
    if "context" in tools:
        results = [r for r in report.results if r.tool == context_analyzer.TOOL_NAME]
        stats = context_analyzer.generate_summary(results)
        table.add_row("Files in dependency graph", str(stats['totalFiles']))
        table.add_row("Average cohesion", f"{stats['avgCohesion']:.2f}")
        table.add_row("Average fragmentation", f"{stats['avgFragmentation']:.2f}")
        table.add_row("Circular dependencies", str(stats['circularDependencies']))

    if table.row_count:
        console.print(table)
        console.print()


def _execute(
    directory: Path,
    tools: Sequence[str],
    output: OutputFormat,
    output_file: Optional[Path],
    verbose: bool,
    **overrides,
):
    """Shared body of every analysis command."""
    configure_logging(verbose=verbose, console=err_console)
    for key in ("include", "exclude"):
        if overrides.get(key):
            overrides[key] = parse_patterns(overrides[key])

    try:
        options = AnalysisOptions.from_config(
            directory, load_config(), tools=tuple(tools), **overrides
        ).validate()
    except ConfigurationError as e:
        err_console.print(f"[bold red]Configuration error:[/bold red] {escape(str(e))}")
        raise typer.Exit(e.exit_code)

    show_progress = output == OutputFormat.console
    start_time = time.perf_counter()
    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            TimeElapsedColumn(),
            console=err_console,
            transient=True,
            disable=not show_progress,
        ) as progress:
            task = progress.add_task("Extracting code units...", total=None)

            def on_progress(completed: int, total: int, path: str):
                progress.update(task, completed=completed, total=total)

            report = run(options, on_progress=on_progress)
    except AIReadyError as e:
        err_console.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
        raise typer.Exit(e.exit_code)
    elapsed = time.perf_counter() - start_time
    logger.debug("Analysis finished in %.2fs", elapsed)

    payload = report_to_json(report, elapsed)
    if output_file is not None:
        output_file.parent.mkdir(parents=True, exist_ok=True)
        output_file.write_text(payload + "\n", encoding="utf-8")

    if output == OutputFormat.json:
        if output_file is None:
            typer.echo(payload)
        return

    console.print(f"[bold blue]Analyzed:[/bold blue] {escape(str(options.root_dir))}\n")
    _print_issues(report)
    _print_tool_summaries(report)
    console.print(Panel(escape(generate_summary(report)), title="Summary", expand=False))
    console.print(f"[dim]Completed in {elapsed:.2f}s[/dim]")
    if output_file is not None:
        console.print(f"[green]Report written to {escape(str(output_file))}[/green]")


DIRECTORY_ARG = typer.Argument(..., help="Directory to analyze")
INCLUDE_OPT = typer.Option(None, "--include", help="Globs of files to include, comma-separated or repeated")
EXCLUDE_OPT = typer.Option(None, "--exclude", help="Globs of files to exclude, added to the defaults; comma-separated or repeated")
OUTPUT_OPT = typer.Option(OutputFormat.console, "--output", "-o", help="Output format")
OUTPUT_FILE_OPT = typer.Option(None, "--output-file", help="Write the JSON report to this path")
WORKERS_OPT = typer.Option(None, "--workers", help="Extraction worker threads")
TIMEOUT_OPT = typer.Option(None, "--timeout", help="Abort the run after this many seconds")
VERBOSE_OPT = typer.Option(False, "--verbose", "-v", help="Show debug logging")


@app.command()
def scan(
    directory: Path = DIRECTORY_ARG,
    tools: str = typer.Option(",".join(KNOWN_TOOLS), "--tools", help="Comma-separated analyzers to run"),
    include: Optional[List[str]] = INCLUDE_OPT,
    exclude: Optional[List[str]] = EXCLUDE_OPT,
    output: OutputFormat = OUTPUT_OPT,
    output_file: Optional[Path] = OUTPUT_FILE_OPT,
    similarity: Optional[float] = typer.Option(None, "--similarity", "-s", help="Minimum similarity (0.0-1.0)"),
    min_lines: Optional[int] = typer.Option(None, "--min-lines", "-l", help="Minimum unit size in lines"),
    max_depth: Optional[int] = typer.Option(None, "--max-depth", help="Maximum acceptable import depth"),
    max_context: Optional[int] = typer.Option(None, "--max-context", help="Context budget in tokens"),
    workers: Optional[int] = WORKERS_OPT,
    timeout: Optional[float] = TIMEOUT_OPT,
    verbose: bool = VERBOSE_OPT,
):
    """Run every selected analyzer and print a unified report."""
    _execute(
        directory, parse_tools(tools), output, output_file, verbose,
        include=include, exclude=exclude, min_similarity=similarity, min_lines=min_lines,
        max_depth=max_depth, max_context_budget=max_context, workers=workers, timeout=timeout,
    )


@app.command()
def patterns(
    directory: Path = DIRECTORY_ARG,
    similarity: Optional[float] = typer.Option(None, "--similarity", "-s", help="Minimum similarity (0.0-1.0)"),
    min_lines: Optional[int] = typer.Option(None, "--min-lines", "-l", help="Minimum unit size in lines"),
    include: Optional[List[str]] = INCLUDE_OPT,
    exclude: Optional[List[str]] = EXCLUDE_OPT,
    output: OutputFormat = OUTPUT_OPT,
    output_file: Optional[Path] = OUTPUT_FILE_OPT,
    workers: Optional[int] = WORKERS_OPT,
    timeout: Optional[float] = TIMEOUT_OPT,
    verbose: bool = VERBOSE_OPT,
):
    """Find near-duplicate code that wastes context tokens."""
    _execute(
        directory, [pattern_detector.TOOL_NAME], output, output_file, verbose,
        include=include, exclude=exclude, min_similarity=similarity, min_lines=min_lines,
        workers=workers, timeout=timeout,
    )


@app.command()
def context(
    directory: Path = DIRECTORY_ARG,
    max_depth: Optional[int] = typer.Option(None, "--max-depth", help="Maximum acceptable import depth"),
    max_context: Optional[int] = typer.Option(None, "--max-context", help="Context budget in tokens"),
    include: Optional[List[str]] = INCLUDE_OPT,
    exclude: Optional[List[str]] = EXCLUDE_OPT,
    output: OutputFormat = OUTPUT_OPT,
    output_file: Optional[Path] = OUTPUT_FILE_OPT,
    workers: Optional[int] = WORKERS_OPT,
    timeout: Optional[float] = TIMEOUT_OPT,
    verbose: bool = VERBOSE_OPT,
):
    """Measure import depth, context cost, cohesion and circular imports."""
    _execute(
        directory, [context_analyzer.TOOL_NAME], output, output_file, verbose,
        include=include, exclude=exclude, max_depth=max_depth,
        max_context_budget=max_context, workers=workers, timeout=timeout,
    )


def _version_callback(value: bool):
    if value:
        typer.echo(f"aiready {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(False, "--version", callback=_version_callback, is_eager=True,
                                 help="Show the version and exit"),
):
    """AIReady - find what makes a codebase hard for AI assistants."""


if __name__ == "__main__":
    app()
