"""Decoding of Claude Code JSONL transcript records."""

from __future__ import annotations

import json
import logging
from collections.abc import Collection, Iterator
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from pathlib import Path
from typing import Any, cast

from cclens.errors import TranscriptDecodeError, TranscriptReadError
from cclens.utils import file_basename, truncate_text

logger = logging.getLogger(__name__)

TRANSCRIPT_SUFFIX = ".jsonl"
SUBAGENT_PREFIX = "agent-"
DEFAULT_AGENT_TOOL_NAMES: frozenset[str] = frozenset({"Task"})

RECOGNIZED_KEYS = frozenset({"type", "timestamp", "sessionId", "cwd", "gitBranch", "message"})

FILE_TOOLS = frozenset({"Read", "Write", "Edit", "MultiEdit"})
SEARCH_TOOLS = frozenset({"Glob", "Grep"})
TODO_TOOLS = frozenset({"TodoWrite"})

TARGET_MAX_LEN = 40
TODO_TARGET = "updating todos"


class RecordKind(StrEnum):
    """Kinds of transcript records."""

    USER = "user"
    ASSISTANT = "assistant"
    OTHER = "other"


_KIND_BY_TYPE: dict[str, RecordKind] = {"user": RecordKind.USER, "assistant": RecordKind.ASSISTANT}


@dataclass(frozen=True)
class ToolUseBlock:
    """A tool invocation inside a message."""

    invocation_id: str
    tool_name: str
    input: dict[str, Any]


@dataclass(frozen=True)
class ToolResultBlock:
    """The completion of an earlier tool invocation."""

    invocation_id: str
    is_error: bool = False


@dataclass(frozen=True)
class TextBlock:
    """Free text content."""

    text: str


@dataclass(frozen=True)
class UnknownBlock:
    """Any block this decoder does not model (thinking, images, ...)."""

    block_type: str = ""


ContentBlock = ToolUseBlock | ToolResultBlock | TextBlock | UnknownBlock


def _empty_blocks() -> list[ContentBlock]:
    return []


@dataclass
class TranscriptRecord:
    """One decoded transcript line."""

    kind: RecordKind
    timestamp: datetime | None = None
    session_id: str | None = None
    cwd: str | None = None
    git_branch: str | None = None
    model: str | None = None
    content: list[ContentBlock] = field(default_factory=_empty_blocks)

    @property
    def is_message(self) -> bool:
        """Whether this record counts as a conversation message."""
        return self.kind in (RecordKind.USER, RecordKind.ASSISTANT)

    @property
    def tool_uses(self) -> list[ToolUseBlock]:
        return [b for b in self.content if isinstance(b, ToolUseBlock)]

    @property
    def tool_results(self) -> list[ToolResultBlock]:
        return [b for b in self.content if isinstance(b, ToolResultBlock)]


def parse_timestamp(value: object) -> datetime | None:
    """Parse an RFC3339 timestamp into an aware UTC datetime.

    Args:
        value: Raw ``timestamp`` value from the record.

    Returns:
        The parsed datetime, or None if missing or malformed.
    """
    if not isinstance(value, str) or not value:
        return None
    try:
        # Handle Z suffix
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def _optional_str(value: object) -> str | None:
    return value if isinstance(value, str) else None


def _decode_block(item: object) -> ContentBlock:
    if not isinstance(item, dict):
        return UnknownBlock()
    block = cast(dict[str, Any], item)
    block_type = block.get("type")

    if block_type == "tool_use":
        raw_input = block.get("input")
        return ToolUseBlock(
            invocation_id=_optional_str(block.get("id")) or "",
            tool_name=_optional_str(block.get("name")) or "",
            input=cast(dict[str, Any], raw_input) if isinstance(raw_input, dict) else {},
        )

    if block_type == "tool_result":
        tool_use_id = _optional_str(block.get("tool_use_id"))
        if not tool_use_id:
            return UnknownBlock("tool_result")
        return ToolResultBlock(invocation_id=tool_use_id, is_error=block.get("is_error") is True)

    if block_type == "text":
        return TextBlock(text=_optional_str(block.get("text")) or "")

    return UnknownBlock(block_type if isinstance(block_type, str) else "")


def _decode_content(content: object) -> list[ContentBlock]:
    if isinstance(content, str):
        return [TextBlock(text=content)]
    if isinstance(content, list):
        return [_decode_block(item) for item in cast(list[object], content)]
    return []


def decode_record(line: str) -> TranscriptRecord:
    """Decode a single JSONL line into a TranscriptRecord.

    Unknown keys are ignored and a missing or unrecognised ``type`` yields an
    OTHER record, so newer transcript formats keep decoding.

    Args:
        line: Raw JSONL line string.

    Returns:
        The decoded record.

    Raises:
        TranscriptDecodeError: If the line is not a JSON object or carries
            none of the recognised top-level keys.
    """
    try:
        data = json.loads(line)
    except json.JSONDecodeError as e:
        raise TranscriptDecodeError(f"Malformed JSON: {e}") from e

    if not isinstance(data, dict):
        raise TranscriptDecodeError(f"Expected a JSON object, got {type(data).__name__}")
    entry = cast(dict[str, Any], data)
    if RECOGNIZED_KEYS.isdisjoint(entry):
        raise TranscriptDecodeError("Record carries no recognised fields")

    raw_type = entry.get("type")
    kind = _KIND_BY_TYPE.get(raw_type, RecordKind.OTHER) if isinstance(raw_type, str) else RecordKind.OTHER

    model: str | None = None
    content: list[ContentBlock] = []
    message = entry.get("message")
    if isinstance(message, dict):
        msg = cast(dict[str, Any], message)
        model = _optional_str(msg.get("model"))
        content = _decode_content(msg.get("content"))

    return TranscriptRecord(
        kind=kind,
        timestamp=parse_timestamp(entry.get("timestamp")),
        session_id=_optional_str(entry.get("sessionId")),
        cwd=_optional_str(entry.get("cwd")),
        git_branch=_optional_str(entry.get("gitBranch")),
        model=model,
        content=content,
    )


def iter_records(path: Path) -> Iterator[TranscriptRecord]:
    """Stream decoded records from a transcript file.

    Blank and undecodable lines are skipped so one corrupt line cannot
    abort analysis of the rest of the file.

    Args:
        path: Path to the JSONL transcript.

    Yields:
        Records in file order.

    Raises:
        TranscriptReadError: If the file cannot be opened or read.
    """
    try:
        with path.open("r", encoding="utf-8", errors="replace") as f:
            for line_no, line in enumerate(f, start=1):
                stripped = line.strip()
                if not stripped:
                    continue
                try:
                    yield decode_record(stripped)
                except TranscriptDecodeError as e:
                    logger.debug("Skipping %s:%d: %s", path, line_no, e)
    except OSError as e:
        raise TranscriptReadError(path, e.strerror or str(e)) from e


def is_subagent_transcript(path: Path) -> bool:
    """Whether a transcript file is a sub-agent side file."""
    return path.stem.startswith(SUBAGENT_PREFIX)


def extract_tool_target(
    tool_name: str,
    tool_input: dict[str, Any] | None,
    agent_tool_names: Collection[str] = DEFAULT_AGENT_TOOL_NAMES,
) -> str | None:
    """Project a tool's input into a short human-readable target.

    Args:
        tool_name: Name of the invoked tool.
        tool_input: The tool's input payload.
        agent_tool_names: Tool names that dispatch sub-agents.

    Returns:
        A file name, shortened command/pattern/description, or None when the
        tool has no meaningful target.
    """
    if tool_name in TODO_TOOLS:
        return TODO_TARGET
    if not tool_input:
        return None

    if tool_name in FILE_TOOLS:
        for key in ("file_path", "filePath", "path"):
            value = tool_input.get(key)
            if isinstance(value, str):
                return file_basename(value)
        return None

    if tool_name in SEARCH_TOOLS:
        key = "pattern"
    elif tool_name == "Bash":
        key = "command"
    elif tool_name in agent_tool_names:
        key = "description"
    else:
        return None

    value = tool_input.get(key)
    if isinstance(value, str):
        return truncate_text(value, TARGET_MAX_LEN)
    return None
