"""Session analytics and live tailing for Claude Code transcripts."""

__version__ = "0.1.0"
