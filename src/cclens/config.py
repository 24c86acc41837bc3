"""Configuration management for cclens."""

from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import cast

import yaml
from pydantic import BaseModel, Field, ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from cclens.xdg_paths import get_config_file_path


class OutputFormat(StrEnum):
    """Output formats for batch reports."""

    HUMAN = "human"
    JSON = "json"
    PLAIN = "plain"


class SessionsConfig(BaseModel):
    """Configuration for the sessions report."""

    limit: int = Field(default=20, ge=1)
    output_format: OutputFormat = OutputFormat.HUMAN


class WatchConfig(BaseModel):
    """Configuration for live session watching."""

    poll_timeout: float = Field(default=0.5, gt=0)  # seconds between shutdown checks
    debounce_ms: int = Field(default=100, ge=0)
    queue_size: int = Field(default=64, ge=1)
    setup_timeout: float = Field(default=5.0, gt=0)
    force_polling: bool = False


@dataclass
class ConfigWarning:
    """A config validation warning."""

    file: str
    field_name: str
    message: str
    value: object = field(default=None, repr=False)


class Config(BaseModel):
    """Configuration settings for cclens."""

    # Root of per-project transcript folders; defaults to ~/.claude/projects
    transcripts_dir: str | None = None
    # Tool names that dispatch sub-agents rather than act directly
    agent_tool_names: list[str] = ["Task"]

    sessions: SessionsConfig = SessionsConfig()
    watch: WatchConfig = WatchConfig()


def _deep_merge(base: dict[str, object], override: dict[str, object]) -> dict[str, object]:
    """Merge ``override`` over ``base``, descending into nested mappings.

    Returns a new dict; neither input is modified.
    """
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = _deep_merge(cast(dict[str, object], current), cast(dict[str, object], value))
        else:
            merged[key] = value
    return merged


def _file_warning(path: Path, message: str, value: object = None) -> ConfigWarning:
    return ConfigWarning(file=str(path), field_name="(file)", message=message, value=value)


def _load_yaml_file(path: Path) -> tuple[dict[str, object], list[ConfigWarning]]:
    """Read a YAML mapping from ``path``.

    A missing or empty file is not an error. Unreadable, unparseable or
    non-mapping files yield an empty dict plus one warning.
    """
    if not path.exists():
        return {}, []
    try:
        with path.open(encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        return {}, [_file_warning(path, f"YAML parse error: {e}")]
    except OSError as e:
        return {}, [_file_warning(path, f"File read error: {e}")]

    if raw is None:
        return {}, []
    if not isinstance(raw, dict):
        return {}, [_file_warning(path, "Expected a YAML mapping at top level", type(raw).__name__)]
    return cast(dict[str, object], raw), []


def _validation_warnings(path: Path, error: ValidationError) -> list[ConfigWarning]:
    return [
        ConfigWarning(
            file=str(path),
            field_name=".".join(str(loc) for loc in detail["loc"]),
            message=detail["msg"],
            value=detail.get("input"),
        )
        for detail in error.errors()
    ]


def load_config(
    config_path: Path | None = None,
    overrides: dict[str, object] | None = None,
    strict: bool = False,
) -> tuple[Config, list[ConfigWarning]]:
    """Load configuration from YAML, with optional overrides on top.

    Invalid values never abort loading. In the default mode every top-level
    section holding an invalid value falls back to its defaults while the
    valid sections are kept; in strict mode any invalid value yields an
    all-default config.

    Args:
        config_path: Optional path to config file. Uses default if None.
        overrides: Values merged over the file contents (e.g. from CLI flags).
        strict: If True, do not attempt partial recovery on validation errors.

    Returns:
        Tuple of (loaded Config, list of ConfigWarnings).
    """
    path = config_path or get_config_file_path()
    data, warnings = _load_yaml_file(path)
    if overrides:
        data = _deep_merge(data, overrides)

    try:
        return Config.model_validate(data), warnings
    except ValidationError as e:
        warnings.extend(_validation_warnings(path, e))
        if strict:
            return Config(), warnings
        bad_sections = {str(detail["loc"][0]) for detail in e.errors() if detail["loc"]}
        recovered = {key: value for key, value in data.items() if key not in bad_sections}
        try:
            return Config.model_validate(recovered), warnings
        except ValidationError:
            return Config(), warnings


def display_config_warnings(warnings: list[ConfigWarning], console: Console) -> None:
    """Print config warnings as a yellow rich panel; prints nothing if empty."""
    if not warnings:
        return

    lines: list[Text] = []
    for warning in warnings:
        line = Text.assemble(
            (f"  {warning.file}: ", "dim"),
            (warning.field_name, "bold"),
            (f" - {warning.message}", "yellow"),
        )
        if warning.value is not None:
            line.append(f" (got: {warning.value!r})", style="dim")
        lines.append(line)

    console.print(Panel(Text("\n").join(lines), title="[yellow]Config Warnings[/]", border_style="yellow"))


def save_config(config: Config, config_path: Path | None = None) -> Path:
    """Write ``config`` as YAML, creating parent directories as needed.

    Returns:
        The path written.
    """
    path = config_path or get_config_file_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(config.model_dump(mode="json"), sort_keys=False), encoding="utf-8")
    return path
