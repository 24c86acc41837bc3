"""Discovery of Claude Code session transcripts on disk."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from cclens.transcript import TRANSCRIPT_SUFFIX, is_subagent_transcript
from cclens.xdg_paths import get_default_transcripts_dir

logger = logging.getLogger(__name__)


def get_transcripts_dir(override: str | Path | None = None) -> Path:
    """Resolve the root directory holding per-project transcript folders.

    Resolution order: explicit override, ``$CLAUDE_CONFIG_DIR/projects``,
    then ``~/.claude/projects``.

    Args:
        override: Directory from the CLI or config file.

    Returns:
        The transcripts root (which may not exist).
    """
    if override:
        return Path(override).expanduser()
    return get_default_transcripts_dir()


def _mtime(path: Path) -> float:
    try:
        return path.stat().st_mtime
    except OSError:
        return 0.0


def _scan_project(project_dir: Path) -> list[Path]:
    sessions: list[Path] = []
    try:
        with os.scandir(project_dir) as entries:
            for entry in entries:
                path = Path(entry.path)
                if path.suffix != TRANSCRIPT_SUFFIX or is_subagent_transcript(path):
                    continue
                if entry.is_file():
                    sessions.append(path)
    except OSError as e:
        logger.warning("Cannot read project directory %s: %s", project_dir, e)
        return []
    return sessions


def list_sessions(project_dir: Path) -> list[Path]:
    """List session transcripts in one project folder.

    Sub-agent side files (``agent-*.jsonl``) are excluded.

    Args:
        project_dir: A project folder under the transcripts root.

    Returns:
        Transcript paths, most recently modified first. Empty if the folder
        cannot be read.
    """
    sessions = _scan_project(project_dir)
    sessions.sort(key=_mtime, reverse=True)
    return sessions


def find_session_files(root: Path) -> list[Path]:
    """List session transcripts across every project folder under ``root``.

    An unreadable project folder contributes nothing; the rest of the scan
    continues.

    Args:
        root: The transcripts root directory.

    Returns:
        Transcript paths, most recently modified first.
    """
    all_sessions: list[Path] = []
    try:
        with os.scandir(root) as projects:
            project_dirs = [Path(p.path) for p in projects if p.is_dir()]
    except OSError as e:
        logger.warning("Cannot read transcripts directory %s: %s", root, e)
        return []

    for project_dir in project_dirs:
        all_sessions.extend(_scan_project(project_dir))

    all_sessions.sort(key=_mtime, reverse=True)
    return all_sessions


def find_most_recent_session(root: Path) -> Path | None:
    """Get the most recently modified session transcript under ``root``."""
    sessions = find_session_files(root)
    return sessions[0] if sessions else None


def resolve_session_path(session_or_path: str | None, root: Path) -> tuple[Path | None, str]:
    """Resolve the transcript to operate on.

    Args:
        session_or_path: Path to a JSONL file, a full or partial session ID,
            or None for the most recent session.
        root: The transcripts root directory.

    Returns:
        Tuple of (jsonl_path, display_name) or (None, error_message).
    """
    if session_or_path:
        path = Path(session_or_path).expanduser()
        if path.suffix == TRANSCRIPT_SUFFIX and path.is_file():
            return path, path.stem

        for jsonl_file in find_session_files(root):
            if session_or_path in jsonl_file.stem:
                return jsonl_file, f"{jsonl_file.stem} ({jsonl_file.parent.name})"
        return None, f"No session found for: {session_or_path}"

    latest = find_most_recent_session(root)
    if latest is None:
        return None, "No session files found. Start Claude Code first."
    return latest, f"{latest.stem} ({latest.parent.name})"
