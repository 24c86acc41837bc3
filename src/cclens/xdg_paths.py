"""Filesystem locations used by cclens.

The cclens config file lives under the XDG config home. Claude Code's own
data lives under ``~/.claude`` unless ``CLAUDE_CONFIG_DIR`` points elsewhere.
"""

import os
from pathlib import Path

from xdg_base_dirs import xdg_config_home

APP_NAME = "cclens"
CLAUDE_CONFIG_ENV = "CLAUDE_CONFIG_DIR"


def get_config_dir() -> Path:
    """Get the cclens configuration directory path."""
    return xdg_config_home() / APP_NAME


def get_config_file_path() -> Path:
    """Get the config.yaml file path."""
    return get_config_dir() / "config.yaml"


def get_claude_home() -> Path:
    """Get Claude Code's data directory, honouring CLAUDE_CONFIG_DIR."""
    override = os.environ.get(CLAUDE_CONFIG_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".claude"


def get_default_transcripts_dir() -> Path:
    """Get the folder holding one transcript directory per project."""
    return get_claude_home() / "projects"


def ensure_directories() -> None:
    """Create the config directory if it doesn't exist."""
    get_config_dir().mkdir(parents=True, exist_ok=True)
