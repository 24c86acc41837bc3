"""Utility functions for cclens."""

from datetime import timedelta
from pathlib import PurePath

ELLIPSIS = "..."
DEFAULT_PATH_MAX_LEN = 50


def truncate_text(text: str, max_len: int) -> str:
    """Truncate text to at most ``max_len`` characters.

    Counts characters rather than bytes, so multi-byte text is never split
    mid-character. Truncated text ends with an ellipsis.

    Args:
        text: The text to truncate.
        max_len: Maximum length of the result in characters.

    Returns:
        The original text if it fits, otherwise a shortened copy ending in "...".
    """
    if len(text) <= max_len:
        return text
    if max_len <= len(ELLIPSIS):
        return ELLIPSIS[: max(max_len, 0)]
    return text[: max_len - len(ELLIPSIS)] + ELLIPSIS


def file_basename(path: str, max_len: int = 30) -> str:
    """Get the final component of a path for display.

    Args:
        path: A file path in either POSIX or Windows form.
        max_len: Length to truncate to when the path has no final component.

    Returns:
        The file name, or the truncated path if it has none.
    """
    name = PurePath(path.replace("\\", "/")).name
    return name or truncate_text(path, max_len)


def compress_path(path: str, home: str, max_len: int = DEFAULT_PATH_MAX_LEN) -> str:
    """Compress a file path by replacing home with ~ and truncating from the start.

    Args:
        path: The path to compress.
        home: The home directory to replace.
        max_len: Maximum length before truncation.

    Returns:
        Compressed path with ~ for home directory.
    """
    if not path:
        return ""

    if home and path.startswith(home):
        path = "~" + path[len(home) :]

    if len(path) <= max_len:
        return path

    # Truncate from the beginning, preserving filename
    return ELLIPSIS + path[-(max_len - len(ELLIPSIS)) :]


def shorten_id(session_id: str, keep: int = 12) -> str:
    """Shorten a session ID for table display.

    Args:
        session_id: Full session ID (usually a UUID).
        keep: Number of leading characters to keep.

    Returns:
        The ID unchanged if short enough, otherwise its prefix plus "...".
    """
    if len(session_id) > keep:
        return session_id[:keep] + ELLIPSIS
    return session_id


def shorten_model(model: str) -> str:
    """Strip the vendor prefix and date suffix from a model ID.

    e.g., 'claude-sonnet-4-5-20250929' -> 'sonnet-4-5'
    """
    short = model.removeprefix("claude-")
    head, sep, _tail = short.partition("-20")
    return head if sep and head else short


def format_duration(delta: timedelta | None) -> str | None:
    """Format a session duration for display.

    Args:
        delta: Elapsed time, or None if unknown.

    Returns:
        "42s", "17m" or "2h 5m"; None when the duration is unknown.
    """
    if delta is None:
        return None
    secs = max(int(delta.total_seconds()), 0)
    if secs < 60:
        return f"{secs}s"
    if secs < 3600:
        return f"{secs // 60}m"
    hours, rem = divmod(secs, 3600)
    return f"{hours}h {rem // 60}m"


def format_millis(millis: int) -> str:
    """Format a tool duration in milliseconds for display."""
    if millis < 1000:
        return f"{millis}ms"
    return f"{millis / 1000:.1f}s"


def progress_bar(percentage: float, width: int = 10) -> str:
    """Render a percentage as a fixed-width block bar."""
    filled = min(round(percentage / 100 * width), width)
    return "█" * filled + "░" * (width - filled)
