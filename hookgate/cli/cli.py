"""Command-line interface for hookgate.

Developer tooling for hook authors: check which tools a matcher selects,
see how a hook's output will be interpreted, and resolve a batch of
results the way an agent would.
"""

import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import click
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from hookgate import __version__
from hookgate.core.config import load_engine_settings
from hookgate.core.hooks.coordinator import EventOutcome, ExecutionCoordinator
from hookgate.core.hooks.events import HookEvent, HookResult, ParsedOutput
from hookgate.core.hooks.matcher import PatternMatcher
from hookgate.core.hooks.parser import OutputInterpreter
from hookgate.utils.log import get_logger, init_logger

console = Console()
logger = get_logger()

EVENT_CHOICES = [event.value for event in HookEvent]


def _print_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, ensure_ascii=False))


def _load_results(path: Path) -> List[HookResult]:
    """Read a JSON list of hook results (camelCase or snake_case keys)."""
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise click.ClickException(f"{path}: invalid JSON ({e.msg} at line {e.lineno})") from e

    if isinstance(raw, dict):
        raw = [raw]
    if not isinstance(raw, list) or not all(isinstance(item, dict) for item in raw):
        raise click.ClickException(f"{path}: expected a JSON list of hook results")
    try:
        return [HookResult.model_validate(item) for item in raw]
    except ValidationError as e:
        raise click.ClickException(f"{path}: invalid hook result ({e.error_count()} error(s))") from e


def _render_parsed(parsed: ParsedOutput) -> None:
    table = Table(title="Interpreted hook output", show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("source", parsed.source)
    table.add_row("continue", str(parsed.continue_execution).lower())
    if parsed.stop_reason:
        table.add_row("stopReason", escape(parsed.stop_reason))
    if parsed.system_message:
        table.add_row("systemMessage", escape(parsed.system_message))
    if parsed.hook_specific_data is not None:
        table.add_row(
            "hookSpecificOutput",
            escape(json.dumps(parsed.hook_specific_data.model_dump(by_alias=True, exclude_none=True))),
        )
    console.print(table)

    for issue in parsed.issues:
        color = "red" if issue.is_error else "yellow"
        console.print(f"[{color}]{escape(issue.render())}[/{color}]")
    if parsed.source == "exitcode":
        for message in parsed.error_messages:
            console.print(f"[dim]{escape(message)}[/dim]")


def _render_outcome(event: HookEvent, outcome: EventOutcome) -> None:
    status = "[green]continue[/green]" if outcome.should_continue else "[red]blocked[/red]"
    console.print(f"[bold]{event.value}[/bold]: {status}")
    if outcome.blocking_reason:
        console.print(f"Reason: {escape(outcome.blocking_reason)}")
    if outcome.tool_gate is not None:
        gate = outcome.tool_gate
        proceed = "yes" if gate.should_proceed else "no"
        console.print(f"Tool gate: {gate.decision.value} (proceed: {proceed})")
        if gate.updated_input is not None:
            console.print(f"Updated input: {escape(json.dumps(gate.updated_input))}")
    if outcome.block_stop:
        console.print("[yellow]Stop blocked: the agent takes another turn[/yellow]")

    if outcome.transcript_mutations:
        table = Table(title="Transcript mutations")
        table.add_column("#", justify="right")
        table.add_column("Kind")
        table.add_column("Role")
        table.add_column("Text")
        for index, mutation in enumerate(outcome.transcript_mutations, 1):
            table.add_row(str(index), mutation.kind.value, mutation.role, escape(mutation.text or ""))
        console.print(table)
    for message in outcome.system_messages:
        console.print(f"[cyan]{escape(message)}[/cyan]")


@click.group()
@click.version_option(version=__version__)
@click.option("--log-level", type=str, default=None, help="Console log level (e.g. DEBUG)")
@click.pass_context
def cli(ctx: click.Context, log_level: Optional[str]) -> None:
    """Hookgate - hook output interpretation and policy enforcement"""
    init_logger(level_name=log_level)
    ctx.ensure_object(dict)
    ctx.obj["settings"] = load_engine_settings()
    logger.debug("[cli] Starting CLI invocation", extra={"subcommand": ctx.invoked_subcommand})


@cli.command(name="match")
@click.argument("pattern")
@click.argument("tools", nargs=-1, required=True)
@click.option("--json", "as_json", is_flag=True, help="Emit JSON")
def match_cmd(pattern: str, tools: List[str], as_json: bool) -> None:
    """Show which TOOLS a hook matcher PATTERN selects."""
    matcher = PatternMatcher()
    valid = matcher.is_valid_pattern(pattern)
    predicate = matcher.compile(pattern)
    results: Dict[str, bool] = {tool: predicate(tool) for tool in tools}

    if as_json:
        _print_json(
            {
                "pattern": pattern,
                "valid": valid,
                "type": matcher.get_pattern_type(pattern).value,
                "matches": results,
            }
        )
        return

    if not valid:
        console.print(f"[yellow]Pattern '{escape(pattern)}' is invalid and never matches[/yellow]")
    table = Table(title=f"Pattern: {escape(pattern)} ({matcher.get_pattern_type(pattern).value})")
    table.add_column("Tool")
    table.add_column("Match")
    for tool, matched in results.items():
        table.add_row(escape(tool), "[green]yes[/green]" if matched else "[dim]no[/dim]")
    console.print(table)


@cli.command(name="parse")
@click.option("--event", "event_name", type=click.Choice(EVENT_CHOICES), required=True)
@click.option("--exit-code", type=int, default=0, show_default=True)
@click.option("--stdout", "stdout_text", type=str, default=None, help="Hook stdout (default: read stdin)")
@click.option("--stderr", "stderr_text", type=str, default="", help="Hook stderr")
@click.option("--timed-out", is_flag=True, help="Treat the hook as timed out")
@click.option("--json", "as_json", is_flag=True, help="Emit JSON")
@click.pass_context
def parse_cmd(
    ctx: click.Context,
    event_name: str,
    exit_code: int,
    stdout_text: Optional[str],
    stderr_text: str,
    timed_out: bool,
    as_json: bool,
) -> None:
    """Interpret one hook result for an event."""
    if stdout_text is None:
        stdout_text = "" if sys.stdin.isatty() else sys.stdin.read()

    result = HookResult(
        success=exit_code == 0 and not timed_out,
        exit_code=exit_code,
        stdout=stdout_text,
        stderr=stderr_text,
        timed_out=timed_out,
    )
    parsed = OutputInterpreter(ctx.obj["settings"]).parse(result, HookEvent(event_name))

    if as_json:
        _print_json(parsed.model_dump(mode="json", by_alias=True, exclude_none=True))
        return
    _render_parsed(parsed)


@cli.command(name="resolve")
@click.option("--event", "event_name", type=click.Choice(EVENT_CHOICES), required=True)
@click.argument("results_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--json", "as_json", is_flag=True, help="Emit JSON")
@click.pass_context
def resolve_cmd(ctx: click.Context, event_name: str, results_file: Path, as_json: bool) -> None:
    """Resolve a JSON list of hook results, in order, into one outcome."""
    settings = ctx.obj["settings"]
    event = HookEvent(event_name)
    interpreter = OutputInterpreter(settings)
    parsed = [interpreter.parse(result, event) for result in _load_results(results_file)]
    outcome = ExecutionCoordinator(settings).resolve(event, parsed)

    if as_json:
        _print_json(outcome.model_dump(mode="json", exclude_none=True))
        return
    _render_outcome(event, outcome)


@cli.command(name="version")
def version_cmd() -> None:
    """Show version information"""
    console.print(f"Hookgate version {__version__}")


def main() -> None:
    """Main entry point."""
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        sys.exit(130)
    except SystemExit:
        raise
    except (
        RuntimeError,
        ValueError,
        TypeError,
        OSError,
        click.ClickException,
    ) as e:
        console.print(f"[red]Fatal error: {escape(str(e))}[/red]")
        logger.warning(
            "[cli] Fatal error in main CLI entrypoint: %s: %s",
            type(e).__name__,
            e,
        )
        sys.exit(1)


if __name__ == "__main__":
    main()
