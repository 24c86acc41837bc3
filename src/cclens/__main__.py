"""CLI entry point for cclens."""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Annotated

import typer
import yaml
from rich.console import Console
from rich.logging import RichHandler

from cclens import __version__
from cclens.aggregator import find_session, load_sessions
from cclens.config import (
    Config,
    OutputFormat,
    display_config_warnings,
    load_config,
    save_config,
)
from cclens.errors import TranscriptReadError, WatchError
from cclens.live_tail import LiveEvent, LiveTailEngine
from cclens.locator import find_session_files, get_transcripts_dir, resolve_session_path
from cclens.report import format_live_event, print_watch_header, render_session_detail, render_session_list
from cclens.xdg_paths import ensure_directories, get_config_file_path

app = typer.Typer(
    name="cclens",
    help="Session analytics and live tailing for Claude Code transcripts.",
    no_args_is_help=True,
)

console = Console()
err_console = Console(stderr=True)

EPOCH = datetime.fromtimestamp(0, UTC)


@dataclass
class AppState:
    """Settings shared by all subcommands."""

    config: Config
    config_path: Path | None = None


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"cclens {__version__}")
        raise typer.Exit()


def _configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=debug)],
        force=True,
    )
    # watchfiles logs every idle tick at DEBUG
    logging.getLogger("watchfiles").setLevel(logging.WARNING)


def _state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if not isinstance(state, AppState):
        state = AppState(config=Config())
        ctx.obj = state
    return state


def _transcripts_root(state: AppState, root: Path | None) -> Path:
    return get_transcripts_dir(root or state.config.transcripts_dir)


@app.callback()
def main(
    ctx: typer.Context,
    debug: Annotated[
        bool,
        typer.Option("--debug", "-D", help="Enable debug logging."),
    ] = False,
    config_path: Annotated[
        Path | None,
        typer.Option("--config", "-C", help="Config file path."),
    ] = None,
    version: Annotated[
        bool | None,
        typer.Option("--version", callback=version_callback, is_eager=True, help="Show version."),
    ] = None,
) -> None:
    """Analyze Claude Code session transcripts."""
    _configure_logging(debug)
    config, warnings = load_config(config_path)
    if warnings:
        display_config_warnings(warnings, err_console)
    ctx.obj = AppState(config=config, config_path=config_path)


@app.command()
def sessions(
    ctx: typer.Context,
    session_id: Annotated[
        str | None,
        typer.Argument(help="Full or partial session ID to show in detail."),
    ] = None,
    today: Annotated[
        bool,
        typer.Option("--today", "-t", help="Only list sessions started today."),
    ] = False,
    limit: Annotated[
        int | None,
        typer.Option("--limit", "-n", min=1, help="Maximum sessions to list."),
    ] = None,
    output_format: Annotated[
        OutputFormat | None,
        typer.Option("--format", "-f", help="Output format (human, json, plain)."),
    ] = None,
    root: Annotated[
        Path | None,
        typer.Option("--root", "-r", help="Transcripts root directory."),
    ] = None,
) -> None:
    """List recent sessions, or show one session in detail.

    Examples:
        cclens sessions                 # Recent sessions across all projects
        cclens sessions --today -f json # Today's sessions as JSON
        cclens sessions 3f2a            # Details for session containing 3f2a
    """
    state = _state(ctx)
    config = state.config
    fmt = output_format or config.sessions.output_format
    transcripts_dir = _transcripts_root(state, root)
    agent_tools = config.agent_tool_names

    if not transcripts_dir.is_dir():
        if fmt == OutputFormat.JSON and session_id is None:
            render_session_list(console, [], fmt, limit or config.sessions.limit)
            return
        console.print("[cyan]ℹ[/] No sessions found. Run Claude Code to create sessions.")
        return

    paths = find_session_files(transcripts_dir)

    if session_id:
        detail = find_session(paths, session_id, agent_tools)
        if detail is None:
            err_console.print(f"[red]Error:[/] Session '{session_id}' not found")
            raise typer.Exit(1)
        render_session_detail(console, detail, fmt)
        return

    details = list(load_sessions(paths, agent_tools))
    if today:
        local_today = datetime.now().astimezone().date()
        details = [
            d for d in details if d.summary.started_at and d.summary.started_at.astimezone().date() == local_today
        ]
    details.sort(key=lambda d: d.summary.started_at or EPOCH, reverse=True)

    render_session_list(console, details, fmt, limit or config.sessions.limit, today_only=today)


@app.command()
def watch(
    ctx: typer.Context,
    session_or_path: Annotated[
        str | None,
        typer.Argument(help="Session ID, partial ID, or path to JSONL file (default: most recent)."),
    ] = None,
    root: Annotated[
        Path | None,
        typer.Option("--root", "-r", help="Transcripts root directory."),
    ] = None,
    interval: Annotated[
        float | None,
        typer.Option("--interval", "-i", min=0.05, help="Seconds between shutdown checks while idle."),
    ] = None,
) -> None:
    """Watch a session live, printing tool calls as they happen.

    Examples:
        cclens watch                      # Most recent session
        cclens watch abc123               # Session whose ID contains abc123
        cclens watch /path/to/file.jsonl  # A specific transcript
    """
    state = _state(ctx)
    config = state.config
    transcripts_dir = _transcripts_root(state, root)

    if session_or_path is None and not transcripts_dir.is_dir():
        console.print("[cyan]ℹ[/] No sessions found. Start Claude Code to create sessions.")
        return

    jsonl_path, message = resolve_session_path(session_or_path, transcripts_dir)
    if jsonl_path is None:
        err_console.print(f"[red]Error:[/] {message}")
        raise typer.Exit(1)

    def on_event(event: LiveEvent) -> None:
        console.print(format_live_event(event))

    watch_config = config.watch
    engine = LiveTailEngine(
        jsonl_path,
        on_event,
        agent_tool_names=config.agent_tool_names,
        poll_timeout=interval or watch_config.poll_timeout,
        debounce_ms=watch_config.debounce_ms,
        queue_size=watch_config.queue_size,
        setup_timeout=watch_config.setup_timeout,
        force_polling=watch_config.force_polling,
    )

    try:
        engine.run(on_ready=lambda: print_watch_header(console, jsonl_path))
    except (TranscriptReadError, WatchError) as e:
        err_console.print(f"[red]Error:[/] {e}")
        raise typer.Exit(1) from None
    except KeyboardInterrupt:
        engine.stop()
        console.print("\n[dim]Monitor stopped.[/]")


config_app = typer.Typer(
    name="config",
    help="Configuration management commands.",
)
app.add_typer(config_app, name="config")


@config_app.command("init")
def config_init(ctx: typer.Context) -> None:
    """Create default configuration file."""
    config_path = _state(ctx).config_path
    if config_path is None:
        ensure_directories()
    config_file = config_path or get_config_file_path()

    if config_file.exists():
        err_console.print(f"[yellow]Config file already exists:[/] {config_file}")
        raise typer.Exit(1)

    save_config(Config(), config_file)
    console.print(f"[green]✓[/] Created config file: {config_file}")


@config_app.command("validate")
def config_validate(ctx: typer.Context) -> None:
    """Validate the config file and report warnings."""
    _config, warnings = load_config(_state(ctx).config_path, strict=True)

    if warnings:
        display_config_warnings(warnings, err_console)
        raise typer.Exit(1)

    console.print("[green]✓[/] Config file is valid.")


@config_app.command("show")
def config_show(ctx: typer.Context) -> None:
    """Show effective configuration."""
    config = _state(ctx).config
    console.print(yaml.dump(config.model_dump(mode="json"), default_flow_style=False), markup=False)


if __name__ == "__main__":
    app()
