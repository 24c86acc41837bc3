"""Rendering of session reports and live events."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.table import Table
from rich.text import Text

from cclens.aggregator import SessionDetail
from cclens.config import OutputFormat
from cclens.correlator import ToolCall
from cclens.live_tail import LiveEvent, LiveEventKind
from cclens.utils import compress_path, format_duration, format_millis, progress_bar, shorten_id, shorten_model

TOOL_ICONS: dict[str, str] = {
    "Read": "📖",
    "Write": "📝",
    "Edit": "✏️",
    "MultiEdit": "✏️",
    "Bash": "🚀",
    "Glob": "🔍",
    "Grep": "🔎",
    "Task": "🤖",
    "TodoWrite": "📋",
    "TodoRead": "📋",
}
DEFAULT_TOOL_ICON = "🔧"
MAX_RECENT_CALLS = 10
_NO_TIME = datetime.min.replace(tzinfo=UTC)


def tool_icon(tool_name: str) -> str:
    """Get display icon for a tool."""
    return TOOL_ICONS.get(tool_name, DEFAULT_TOOL_ICON)


def _local(ts: datetime | None, fmt: str) -> str | None:
    if ts is None:
        return None
    return ts.astimezone().strftime(fmt)


def recent_tool_calls(detail: SessionDetail, limit: int = MAX_RECENT_CALLS) -> list[ToolCall]:
    """The last ``limit`` tool calls by invocation time, oldest first.

    Calls without a timestamp sort first; ties keep their recorded order.
    """
    ordered = sorted(detail.tool_calls, key=lambda call: call.invoked_at or _NO_TIME)
    return ordered[-limit:]


def session_row(detail: SessionDetail) -> dict[str, Any]:
    """Flatten a session into one list row."""
    summary = detail.summary
    return {
        "session_id": shorten_id(summary.session_id),
        "started_at": _local(summary.started_at, "%Y-%m-%d %H:%M"),
        "duration": format_duration(summary.duration),
        "messages": summary.message_count,
        "tool_calls": summary.tool_calls,
        "errors": summary.tool_errors,
        "model": shorten_model(summary.model) if summary.model else None,
    }


def tool_breakdown_rows(detail: SessionDetail) -> list[dict[str, Any]]:
    """Tool histogram sorted by count, with percentages of all tool calls."""
    total = detail.summary.tool_calls
    rows = [
        {
            "tool": tool,
            "count": count,
            "percentage": (count / total * 100.0) if total else 0.0,
        }
        for tool, count in detail.tool_breakdown.items()
    ]
    rows.sort(key=lambda r: (-r["count"], r["tool"]))
    return rows


def session_detail_data(detail: SessionDetail) -> dict[str, Any]:
    """Build the machine-readable form of a session detail."""
    summary = detail.summary
    return {
        "session_id": summary.session_id,
        "path": str(detail.path) if detail.path else None,
        "started_at": _local(summary.started_at, "%Y-%m-%d %H:%M:%S"),
        "ended_at": _local(summary.ended_at, "%Y-%m-%d %H:%M:%S"),
        "duration": format_duration(summary.duration),
        "cwd": summary.cwd,
        "git_branch": summary.git_branch,
        "model": summary.model,
        "messages": summary.message_count,
        "tool_calls": summary.tool_calls,
        "tool_errors": summary.tool_errors,
        "agent_calls": summary.agent_calls,
        "open_tool_calls": len(detail.open_tool_calls),
        "tool_breakdown": tool_breakdown_rows(detail),
        "agents": [
            {"subagent_type": a.subagent_type, "description": a.description} for a in detail.agent_calls
        ],
    }


def render_session_list(
    console: Console,
    details: list[SessionDetail],
    output_format: OutputFormat,
    limit: int,
    today_only: bool = False,
) -> None:
    """Render a list of sessions.

    Args:
        console: Rich console to output to.
        details: All matching sessions, newest first.
        output_format: How to render.
        limit: Maximum number of sessions to show.
        today_only: Whether the list was filtered to today.
    """
    total = len(details)
    rows = [session_row(d) for d in details[:limit]]

    if output_format == OutputFormat.JSON:
        typer.echo(json.dumps({"sessions": rows, "total": total}, indent=2))
        return

    if output_format == OutputFormat.PLAIN:
        typer.echo("SESSION_ID\tSTARTED\tDURATION\tMESSAGES\tTOOLS\tERRORS")
        for r in rows:
            typer.echo(
                f"{r['session_id']}\t{r['started_at'] or '-'}\t{r['duration'] or '-'}\t"
                f"{r['messages']}\t{r['tool_calls']}\t{r['errors']}"
            )
        return

    title = "Today's Sessions" if today_only else "Recent Sessions"
    console.print(f"\n📋 [bold]{title}[/] ({total} total)\n")

    if not rows:
        console.print("No sessions found.")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Session ID", style="cyan", no_wrap=True)
    table.add_column("Started")
    table.add_column("Duration", justify="right")
    table.add_column("Messages", justify="right")
    table.add_column("Tools", justify="right")
    table.add_column("Errors", justify="right")
    table.add_column("Model", style="dim")

    for r in rows:
        error_style = "red" if r["errors"] else "green"
        table.add_row(
            r["session_id"],
            r["started_at"] or "-",
            r["duration"] or "-",
            str(r["messages"]),
            str(r["tool_calls"]),
            Text(str(r["errors"]), style=error_style),
            r["model"] or "-",
        )

    console.print(table)

    if total > limit:
        console.print(f"\n[dim]Showing {limit} of {total} sessions. Use --limit to see more.[/]")


def render_session_detail(console: Console, detail: SessionDetail, output_format: OutputFormat) -> None:
    """Render one session's detail.

    Args:
        console: Rich console to output to.
        detail: The session to render.
        output_format: How to render.
    """
    data = session_detail_data(detail)

    if output_format == OutputFormat.JSON:
        typer.echo(json.dumps(data, indent=2))
        return

    if output_format == OutputFormat.PLAIN:
        for label, key in (
            ("SESSION_ID", "session_id"),
            ("STARTED", "started_at"),
            ("ENDED", "ended_at"),
            ("DURATION", "duration"),
            ("CWD", "cwd"),
            ("BRANCH", "git_branch"),
            ("MODEL", "model"),
            ("MESSAGES", "messages"),
            ("TOOLS", "tool_calls"),
            ("ERRORS", "tool_errors"),
            ("AGENTS", "agent_calls"),
            ("OPEN", "open_tool_calls"),
        ):
            value = data[key]
            typer.echo(f"{label}\t{'-' if value is None else value}")
        return

    home = str(Path.home())
    console.print(f"\n📋 [bold]Session Details[/] — [cyan]{shorten_id(data['session_id'])}[/]\n")
    console.print(f"Started:     {data['started_at'] or '-'}")
    console.print(f"Ended:       {data['ended_at'] or '-'}")
    console.print(f"Duration:    {data['duration'] or '-'}")
    console.print(f"Directory:   {compress_path(data['cwd'] or '', home) or '-'}", markup=False)
    console.print(f"Git Branch:  {data['git_branch'] or '-'}", markup=False)
    console.print(f"Model:       {data['model'] or '-'}", markup=False)
    console.print()

    error_style = "red" if data["tool_errors"] else "green"
    console.print(f"Messages:    [cyan]{data['messages']}[/]")
    console.print(f"Tool Calls:  [cyan]{data['tool_calls']}[/] ([{error_style}]{data['tool_errors']}[/] errors)")
    console.print(f"Agent Calls: [cyan]{data['agent_calls']}[/]")
    if data["open_tool_calls"]:
        console.print(f"[yellow]Unfinished:  {data['open_tool_calls']} tool calls never completed[/]")
    console.print()

    if data["tool_breakdown"]:
        console.print("[bold]Tool Breakdown:[/]")
        for entry in data["tool_breakdown"]:
            bar = progress_bar(entry["percentage"])
            line = Text(f"  {bar} ")
            line.append(f"{entry['tool']:<12}", style="yellow")
            line.append(f" {entry['count']:>4} calls ({entry['percentage']:.0f}%)")
            console.print(line)
        console.print()

    recent = recent_tool_calls(detail)
    if recent:
        table = Table(title="Recent Tool Calls", show_header=True, header_style="bold")
        table.add_column("Tool", style="yellow")
        table.add_column("Target")
        table.add_column("Duration", justify="right")
        table.add_column("Status")
        for call in recent:
            if call.is_open:
                status = Text("open", style="yellow")
            elif call.is_error:
                status = Text("error", style="red")
            else:
                status = Text("ok", style="green")
            duration_ms = call.duration_ms
            table.add_row(
                call.tool_name,
                Text(call.target or "-"),
                format_millis(duration_ms) if duration_ms is not None else "-",
                status,
            )
        console.print(table)


def format_live_event(event: LiveEvent) -> Text:
    """Format a live event as one line of output.

    Args:
        event: The event to format.

    Returns:
        Styled text like ``[12:01:05] 📖 Read → main.py``.
    """
    text = Text()
    text.append(f"[{_local(event.timestamp, '%H:%M:%S') or '??:??:??'}] ", style="dim")

    if event.kind == LiveEventKind.USER_TURN:
        text.append("💬 ", style="cyan")
        text.append("User message", style="cyan")
    elif event.kind == LiveEventKind.TOOL_ERROR:
        text.append("✗ ", style="red")
        text.append("Tool error", style="red")
    else:
        text.append(f"{tool_icon(event.tool_name)} ")
        text.append(event.tool_name, style="yellow")
        if event.target:
            text.append(f" → {event.target}", style="dim")
    return text


def print_watch_header(console: Console, path: Path) -> None:
    """Print the banner shown when live watching starts."""
    console.print()
    console.print(f"[bold red]🔴 LIVE[/] [bold]Session Monitor[/] — Session: [cyan]{shorten_id(path.stem, 8)}[/]")
    console.print(Text(str(path), style="dim"))
    console.print("[dim]" + "─" * 60 + "[/]")
    console.print("[dim]Press Ctrl+C to stop watching[/]")
    console.print()
