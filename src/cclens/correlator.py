"""Pairing of tool invocations with their completions."""

from __future__ import annotations

from collections import Counter
from collections.abc import Collection
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from cclens.transcript import DEFAULT_AGENT_TOOL_NAMES, extract_tool_target


@dataclass
class ToolCall:
    """A tool invocation and, once known, its outcome.

    A call that never received a result stays unresolved: no duration and
    ``is_error`` False. Unresolved calls point at a crashed or still-running
    session and are reported rather than dropped.
    """

    invocation_id: str
    tool_name: str
    target: str | None = None
    invoked_at: datetime | None = None
    is_error: bool = False
    duration: timedelta | None = None
    resolved: bool = False

    @property
    def is_open(self) -> bool:
        """Whether no result was observed for this call."""
        return not self.resolved

    @property
    def duration_ms(self) -> int | None:
        """Duration in whole milliseconds, if known."""
        if self.duration is None:
            return None
        return self.duration // timedelta(milliseconds=1)


@dataclass
class AgentCall:
    """A sub-agent dispatch."""

    invocation_id: str
    subagent_type: str | None = None
    description: str | None = None
    invoked_at: datetime | None = None


def _input_str(tool_input: dict[str, Any], key: str) -> str | None:
    value = tool_input.get(key)
    return value if isinstance(value, str) else None


class ToolCorrelator:
    """Matches tool results to the invocations they complete.

    Holds in-flight calls keyed by invocation id for the lifetime of one
    parse. Results for ids that are not in flight (never seen, or already
    closed) are dropped.
    """

    def __init__(self, agent_tool_names: Collection[str] = DEFAULT_AGENT_TOOL_NAMES) -> None:
        self._agent_tool_names = frozenset(agent_tool_names)
        self._open: dict[str, ToolCall] = {}
        self.closed: list[ToolCall] = []
        self.agent_calls: list[AgentCall] = []
        self.tool_breakdown: Counter[str] = Counter()
        self.tool_calls = 0
        self.tool_errors = 0

    @property
    def open_count(self) -> int:
        """Number of invocations still waiting for a result."""
        return len(self._open)

    def observe_tool_use(
        self,
        invocation_id: str,
        tool_name: str,
        tool_input: dict[str, Any],
        at: datetime | None,
    ) -> ToolCall | AgentCall:
        """Record a tool invocation.

        Sub-agent dispatches become AgentCalls and are not tracked as tool
        calls. A reused invocation id replaces the earlier in-flight entry.

        Args:
            invocation_id: The tool_use block id.
            tool_name: Name of the invoked tool.
            tool_input: The tool's input payload.
            at: Timestamp of the record carrying the invocation.

        Returns:
            The new AgentCall or open ToolCall.
        """
        if tool_name in self._agent_tool_names:
            agent_call = AgentCall(
                invocation_id=invocation_id,
                subagent_type=_input_str(tool_input, "subagent_type"),
                description=_input_str(tool_input, "description"),
                invoked_at=at,
            )
            self.agent_calls.append(agent_call)
            return agent_call

        call = ToolCall(
            invocation_id=invocation_id,
            tool_name=tool_name,
            target=extract_tool_target(tool_name, tool_input, self._agent_tool_names),
            invoked_at=at,
        )
        self._open[invocation_id] = call
        self.tool_breakdown[tool_name] += 1
        self.tool_calls += 1
        return call

    def observe_tool_result(self, invocation_id: str, is_error: bool, at: datetime | None) -> ToolCall | None:
        """Close the in-flight call matching ``invocation_id``.

        Args:
            invocation_id: The tool_result block's tool_use_id.
            is_error: Whether the tool reported an error.
            at: Timestamp of the record carrying the result.

        Returns:
            The closed ToolCall, or None if no call with that id was in flight.
        """
        call = self._open.pop(invocation_id, None)
        if call is None:
            return None

        call.resolved = True
        call.is_error = is_error
        if call.invoked_at is not None and at is not None:
            # Clamp: out-of-order timestamps must not yield negative durations
            call.duration = max(at - call.invoked_at, timedelta(0))
        if is_error:
            self.tool_errors += 1
        self.closed.append(call)
        return call

    def drain(self) -> list[ToolCall]:
        """Move every still-open call to the closed list.

        Returns:
            The calls that were still open, in invocation order.
        """
        remaining = list(self._open.values())
        self._open.clear()
        self.closed.extend(remaining)
        return remaining
