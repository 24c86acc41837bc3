"""Folding of transcript records into session summaries."""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Collection, Iterable, Iterator
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path

from cclens.correlator import AgentCall, ToolCall, ToolCorrelator
from cclens.errors import TranscriptReadError
from cclens.transcript import (
    DEFAULT_AGENT_TOOL_NAMES,
    ToolResultBlock,
    ToolUseBlock,
    TranscriptRecord,
    iter_records,
)

logger = logging.getLogger(__name__)


@dataclass
class SessionSummary:
    """Aggregated facts about one session."""

    session_id: str = ""
    cwd: str | None = None
    git_branch: str | None = None
    started_at: datetime | None = None
    ended_at: datetime | None = None
    message_count: int = 0
    tool_calls: int = 0
    tool_errors: int = 0
    agent_calls: int = 0
    model: str | None = None

    @property
    def duration(self) -> timedelta | None:
        """Wall-clock span between the first and last timestamps."""
        if self.started_at is None or self.ended_at is None:
            return None
        return self.ended_at - self.started_at

    def observe(self, record: TranscriptRecord) -> None:
        """Apply one record's metadata.

        Identity fields keep the first non-empty value seen; ``ended_at``
        follows the most recent timestamp in file order.
        """
        if not self.session_id and record.session_id:
            self.session_id = record.session_id
        if not self.cwd and record.cwd:
            self.cwd = record.cwd
        if not self.git_branch and record.git_branch:
            self.git_branch = record.git_branch
        if not self.model and record.model:
            self.model = record.model

        if record.timestamp is not None:
            if self.started_at is None:
                self.started_at = record.timestamp
            self.ended_at = record.timestamp

        if record.is_message:
            self.message_count += 1


def _empty_counter() -> Counter[str]:
    return Counter()


def _empty_tool_calls() -> list[ToolCall]:
    return []


def _empty_agent_calls() -> list[AgentCall]:
    return []


@dataclass
class SessionDetail:
    """A session summary plus its tool and agent breakdowns."""

    summary: SessionSummary
    tool_calls: list[ToolCall] = field(default_factory=_empty_tool_calls)
    agent_calls: list[AgentCall] = field(default_factory=_empty_agent_calls)
    tool_breakdown: Counter[str] = field(default_factory=_empty_counter)
    path: Path | None = None

    @property
    def open_tool_calls(self) -> list[ToolCall]:
        """Calls that never received a result."""
        return [call for call in self.tool_calls if call.is_open]


def aggregate(
    records: Iterable[TranscriptRecord],
    agent_tool_names: Collection[str] = DEFAULT_AGENT_TOOL_NAMES,
) -> SessionDetail | None:
    """Fold an ordered record stream into a SessionDetail.

    Records are processed strictly in order: first-value-wins metadata and
    result correlation both depend on it.

    Args:
        records: Decoded records in file order.
        agent_tool_names: Tool names that dispatch sub-agents.

    Returns:
        The session detail, or None if no record carried a session ID.
    """
    summary = SessionSummary()
    correlator = ToolCorrelator(agent_tool_names)

    for record in records:
        summary.observe(record)
        for block in record.content:
            if isinstance(block, ToolUseBlock):
                correlator.observe_tool_use(block.invocation_id, block.tool_name, block.input, record.timestamp)
            elif isinstance(block, ToolResultBlock):
                correlator.observe_tool_result(block.invocation_id, block.is_error, record.timestamp)

    correlator.drain()

    if not summary.session_id:
        return None

    summary.tool_calls = correlator.tool_calls
    summary.tool_errors = correlator.tool_errors
    summary.agent_calls = len(correlator.agent_calls)

    return SessionDetail(
        summary=summary,
        tool_calls=correlator.closed,
        agent_calls=correlator.agent_calls,
        tool_breakdown=correlator.tool_breakdown,
    )


def parse_transcript(
    path: Path,
    agent_tool_names: Collection[str] = DEFAULT_AGENT_TOOL_NAMES,
) -> SessionDetail | None:
    """Parse a transcript file into a SessionDetail.

    Args:
        path: Path to the JSONL transcript.
        agent_tool_names: Tool names that dispatch sub-agents.

    Returns:
        The session detail, or None if the file holds no usable session.

    Raises:
        TranscriptReadError: If the file cannot be opened or read.
    """
    detail = aggregate(iter_records(path), agent_tool_names)
    if detail is not None:
        detail.path = path
    return detail


def load_sessions(
    paths: Iterable[Path],
    agent_tool_names: Collection[str] = DEFAULT_AGENT_TOOL_NAMES,
) -> Iterator[SessionDetail]:
    """Parse many transcripts, skipping unreadable and unusable files.

    Args:
        paths: Transcript files to parse.
        agent_tool_names: Tool names that dispatch sub-agents.

    Yields:
        Details for every file that parsed into a usable session.
    """
    for path in paths:
        try:
            detail = parse_transcript(path, agent_tool_names)
        except TranscriptReadError as e:
            logger.warning("%s", e)
            continue
        if detail is None:
            logger.debug("No session ID in %s, skipping", path)
            continue
        yield detail


def find_session(
    paths: Iterable[Path],
    query: str,
    agent_tool_names: Collection[str] = DEFAULT_AGENT_TOOL_NAMES,
) -> SessionDetail | None:
    """Find the first session whose ID contains ``query``.

    Args:
        paths: Transcript files to search, in preference order.
        query: Full or partial session ID.
        agent_tool_names: Tool names that dispatch sub-agents.

    Returns:
        The matching session detail, or None.
    """
    for detail in load_sessions(paths, agent_tool_names):
        if query in detail.summary.session_id:
            return detail
    return None
