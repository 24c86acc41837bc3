"""Tests for cclens.report module."""

import json
from collections import Counter
from datetime import UTC, datetime, timedelta
from io import StringIO

import pytest
from rich.console import Console

from cclens.aggregator import SessionDetail, SessionSummary
from cclens.config import OutputFormat
from cclens.correlator import ToolCall
from cclens.live_tail import LiveEvent, LiveEventKind
from cclens.report import (
    format_live_event,
    recent_tool_calls,
    render_session_detail,
    render_session_list,
    session_row,
    tool_breakdown_rows,
    tool_icon,
)

T0 = datetime(2025, 1, 1, 10, 0, tzinfo=UTC)


def _detail(session_id: str = "3f2a9c1e-1111-2222-3333-444455556666", errors: int = 0) -> SessionDetail:
    summary = SessionSummary(
        session_id=session_id,
        cwd="/home/user/project",
        git_branch="main",
        started_at=T0,
        ended_at=T0 + timedelta(minutes=17),
        message_count=12,
        tool_calls=4,
        tool_errors=errors,
        model="claude-sonnet-4-5-20250929",
    )
    calls = [
        ToolCall("t1", "Read", "main.rs", T0, False, timedelta(milliseconds=120), True),
        ToolCall("t2", "Read", "lib.rs", T0, False, timedelta(milliseconds=80), True),
        ToolCall("t3", "Bash", "cargo test", T0, errors > 0, timedelta(seconds=3), True),
        ToolCall("t4", "Grep", "fn main", T0),
    ]
    return SessionDetail(
        summary=summary,
        tool_calls=calls,
        tool_breakdown=Counter({"Read": 2, "Bash": 1, "Grep": 1}),
    )


def _console() -> tuple[Console, StringIO]:
    output = StringIO()
    return Console(file=output, no_color=True, width=160), output


class TestToolIcon:
    """Tests for tool_icon function."""

    def test_known_tool(self) -> None:
        """Should return the tool's icon."""
        assert tool_icon("Read") == "📖"

    def test_unknown_tool(self) -> None:
        """Should fall back to the default icon."""
        assert tool_icon("SomethingNew") == "🔧"


class TestSessionRow:
    """Tests for session_row function."""

    def test_fields(self) -> None:
        """Should flatten the summary for display."""
        row = session_row(_detail())
        assert row["session_id"] == "3f2a9c1e-111..."
        assert row["duration"] == "17m"
        assert row["messages"] == 12
        assert row["tool_calls"] == 4
        assert row["model"] == "sonnet-4-5"


class TestToolBreakdownRows:
    """Tests for tool_breakdown_rows function."""

    def test_sorted_with_percentages(self) -> None:
        """Should sort by count then name."""
        rows = tool_breakdown_rows(_detail())
        assert [r["tool"] for r in rows] == ["Read", "Bash", "Grep"]
        assert rows[0]["percentage"] == pytest.approx(50.0)


class TestRenderSessionList:
    """Tests for render_session_list function."""

    def test_json(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Should emit sessions and the total as JSON."""
        console, _output = _console()
        render_session_list(console, [_detail(), _detail("other")], OutputFormat.JSON, limit=1)
        data = json.loads(capsys.readouterr().out)
        assert data["total"] == 2
        assert len(data["sessions"]) == 1

    def test_plain(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Should emit a tab-separated table."""
        console, _output = _console()
        render_session_list(console, [_detail()], OutputFormat.PLAIN, limit=10)
        lines = capsys.readouterr().out.splitlines()
        assert lines[0].split("\t")[0] == "SESSION_ID"
        assert lines[1].split("\t")[0] == "3f2a9c1e-111..."
        assert lines[1].split("\t")[2] == "17m"

    def test_human(self) -> None:
        """Should render a table with a paging hint."""
        console, output = _console()
        render_session_list(console, [_detail(), _detail("other")], OutputFormat.HUMAN, limit=1)
        result = output.getvalue()
        assert "Recent Sessions" in result
        assert "3f2a9c1e-111..." in result
        assert "Showing 1 of 2 sessions" in result

    def test_human_empty(self) -> None:
        """Should say so when there is nothing to list."""
        console, output = _console()
        render_session_list(console, [], OutputFormat.HUMAN, limit=10, today_only=True)
        result = output.getvalue()
        assert "Today's Sessions" in result
        assert "No sessions found." in result


class TestRenderSessionDetail:
    """Tests for render_session_detail function."""

    def test_json(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Should include counts and the breakdown."""
        console, _output = _console()
        render_session_detail(console, _detail(errors=1), OutputFormat.JSON)
        data = json.loads(capsys.readouterr().out)
        assert data["session_id"] == "3f2a9c1e-1111-2222-3333-444455556666"
        assert data["tool_errors"] == 1
        assert data["open_tool_calls"] == 1
        assert data["tool_breakdown"][0] == {"tool": "Read", "count": 2, "percentage": 50.0}

    def test_plain(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Should emit one labelled line per field."""
        console, _output = _console()
        render_session_detail(console, _detail(), OutputFormat.PLAIN)
        lines = dict(line.split("\t", 1) for line in capsys.readouterr().out.splitlines())
        assert lines["BRANCH"] == "main"
        assert lines["TOOLS"] == "4"
        assert lines["OPEN"] == "1"

    def test_human(self) -> None:
        """Should show the breakdown and recent calls."""
        console, output = _console()
        render_session_detail(console, _detail(), OutputFormat.HUMAN)
        result = output.getvalue()
        assert "Session Details" in result
        assert "Tool Breakdown" in result
        assert "Recent Tool Calls" in result
        assert "main.rs" in result
        assert "1 tool calls never completed" in result


class TestFormatLiveEvent:
    """Tests for format_live_event function."""

    def test_tool_invocation(self) -> None:
        """Should show the tool and its target."""
        text = format_live_event(
            LiveEvent(kind=LiveEventKind.TOOL_INVOCATION, timestamp=T0, tool_name="Read", target="main.rs")
        )
        assert "Read" in text.plain
        assert "→ main.rs" in text.plain

    def test_user_turn(self) -> None:
        """Should label user messages."""
        text = format_live_event(LiveEvent(kind=LiveEventKind.USER_TURN, timestamp=T0))
        assert "User message" in text.plain

    def test_tool_error(self) -> None:
        """Should label tool errors."""
        text = format_live_event(LiveEvent(kind=LiveEventKind.TOOL_ERROR))
        assert "Tool error" in text.plain
        assert text.plain.startswith("[??:??:??]")


class TestRecentToolCalls:
    """Tests for recent_tool_calls function."""

    def test_ordered_by_invocation_time(self) -> None:
        """Should order by invocation, not by completion."""
        early_open = ToolCall("t1", "Bash", "sleep 60", T0)
        late_done = ToolCall("t2", "Read", "main.rs", T0 + timedelta(seconds=5), False, timedelta(0), True)
        # Drained open calls are appended after the closed ones
        detail = SessionDetail(summary=SessionSummary(session_id="s1"), tool_calls=[late_done, early_open])

        assert [c.invocation_id for c in recent_tool_calls(detail)] == ["t1", "t2"]

    def test_keeps_most_recent(self) -> None:
        """Should keep only the latest invocations."""
        calls = [ToolCall(f"t{i}", "Read", None, T0 + timedelta(seconds=i)) for i in range(15)]
        detail = SessionDetail(summary=SessionSummary(session_id="s1"), tool_calls=list(reversed(calls)))

        recent = recent_tool_calls(detail, limit=3)

        assert [c.invocation_id for c in recent] == ["t12", "t13", "t14"]

    def test_table_follows_invocation_order(self) -> None:
        """Should list an early unfinished call above a later completed one."""
        early_open = ToolCall("t1", "Bash", "sleep 60", T0)
        late_done = ToolCall("t2", "Read", "late.rs", T0 + timedelta(seconds=5), False, timedelta(0), True)
        detail = SessionDetail(summary=SessionSummary(session_id="s1"), tool_calls=[late_done, early_open])
        console, output = _console()

        render_session_detail(console, detail, OutputFormat.HUMAN)

        result = output.getvalue()
        assert result.index("sleep 60") < result.index("late.rs")
