"""Tests for cclens.config module."""

import tempfile
from io import StringIO
from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError
from rich.console import Console

from cclens.config import (
    Config,
    ConfigWarning,
    OutputFormat,
    SessionsConfig,
    WatchConfig,
    _deep_merge,
    _load_yaml_file,
    display_config_warnings,
    load_config,
    save_config,
)


class TestConfig:
    """Tests for Config model."""

    def test_default_values(self) -> None:
        """Should have correct default values."""
        config = Config()
        assert config.transcripts_dir is None
        assert config.agent_tool_names == ["Task"]
        assert config.sessions.limit == 20
        assert config.sessions.output_format == OutputFormat.HUMAN
        assert config.watch.poll_timeout == 0.5
        assert config.watch.debounce_ms == 100
        assert config.watch.queue_size == 64
        assert config.watch.force_polling is False

    def test_custom_values(self) -> None:
        """Should accept custom values."""
        config = Config(
            transcripts_dir="/data/claude/projects",
            agent_tool_names=["Task", "Agent"],
            sessions=SessionsConfig(limit=5, output_format=OutputFormat.JSON),
        )
        assert config.transcripts_dir == "/data/claude/projects"
        assert config.agent_tool_names == ["Task", "Agent"]
        assert config.sessions.limit == 5
        assert config.sessions.output_format == OutputFormat.JSON

    def test_rejects_zero_limit(self) -> None:
        """Should reject a session limit below one."""
        with pytest.raises(ValidationError):
            SessionsConfig(limit=0)

    def test_rejects_non_positive_poll_timeout(self) -> None:
        """Should reject a poll timeout of zero."""
        with pytest.raises(ValidationError):
            WatchConfig(poll_timeout=0)


class TestOutputFormat:
    """Tests for OutputFormat enum."""

    def test_values(self) -> None:
        """Should have correct string values."""
        assert OutputFormat.HUMAN.value == "human"
        assert OutputFormat.JSON.value == "json"
        assert OutputFormat.PLAIN.value == "plain"


class TestDeepMerge:
    """Tests for _deep_merge function."""

    def test_flat_merge(self) -> None:
        """Should merge flat dicts with override winning."""
        base: dict[str, object] = {"a": 1, "b": 2}
        override: dict[str, object] = {"b": 3, "c": 4}
        assert _deep_merge(base, override) == {"a": 1, "b": 3, "c": 4}

    def test_nested_merge(self) -> None:
        """Should recursively merge nested dicts."""
        base: dict[str, object] = {"watch": {"poll_timeout": 0.5, "debounce_ms": 100}}
        override: dict[str, object] = {"watch": {"poll_timeout": 1.0}}
        result = _deep_merge(base, override)
        assert result == {"watch": {"poll_timeout": 1.0, "debounce_ms": 100}}

    def test_override_replaces_non_dict(self) -> None:
        """Should replace non-dict values entirely."""
        base: dict[str, object] = {"agent_tool_names": ["Task"]}
        override: dict[str, object] = {"agent_tool_names": ["Agent"]}
        assert _deep_merge(base, override) == {"agent_tool_names": ["Agent"]}

    def test_does_not_mutate_inputs(self) -> None:
        """Should not modify the input dicts."""
        base: dict[str, object] = {"a": 1, "nested": {"x": 1}}
        override: dict[str, object] = {"nested": {"y": 2}}
        _deep_merge(base, override)
        assert base == {"a": 1, "nested": {"x": 1}}
        assert override == {"nested": {"y": 2}}


class TestLoadYamlFile:
    """Tests for _load_yaml_file function."""

    def test_missing_file(self) -> None:
        """Should return empty dict for missing file."""
        data, warnings = _load_yaml_file(Path("/nonexistent/path/config.yaml"))
        assert data == {}
        assert warnings == []

    def test_valid_yaml(self) -> None:
        """Should parse valid YAML file."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "test.yaml"
            path.write_text(yaml.dump({"key": "value"}), encoding="utf-8")
            data, warnings = _load_yaml_file(path)
            assert data == {"key": "value"}
            assert warnings == []

    def test_empty_file(self) -> None:
        """Should return empty dict for empty file."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "test.yaml"
            path.write_text("", encoding="utf-8")
            data, warnings = _load_yaml_file(path)
            assert data == {}
            assert warnings == []

    def test_invalid_yaml(self) -> None:
        """Should return empty dict with warning for invalid YAML."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "test.yaml"
            path.write_text("invalid: yaml: content:", encoding="utf-8")
            data, warnings = _load_yaml_file(path)
            assert data == {}
            assert len(warnings) == 1
            assert "YAML parse error" in warnings[0].message

    def test_non_dict_yaml(self) -> None:
        """Should warn when the top level is not a mapping."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "test.yaml"
            path.write_text("- item1\n- item2\n", encoding="utf-8")
            data, warnings = _load_yaml_file(path)
            assert data == {}
            assert len(warnings) == 1
            assert warnings[0].value == "list"


class TestLoadConfig:
    """Tests for load_config function."""

    def test_missing_file_returns_defaults(self) -> None:
        """Should return defaults when file doesn't exist."""
        with tempfile.TemporaryDirectory() as tmpdir:
            config, warnings = load_config(Path(tmpdir) / "nonexistent.yaml")
            assert config == Config()
            assert warnings == []

    def test_loads_valid_config(self) -> None:
        """Should load valid config from file."""
        with tempfile.TemporaryDirectory() as tmpdir:
            config_path = Path(tmpdir) / "config.yaml"
            config_path.write_text(
                yaml.dump(
                    {
                        "transcripts_dir": "/srv/transcripts",
                        "sessions": {"limit": 5, "output_format": "plain"},
                        "watch": {"force_polling": True},
                    }
                ),
                encoding="utf-8",
            )
            config, warnings = load_config(config_path)
            assert config.transcripts_dir == "/srv/transcripts"
            assert config.sessions.limit == 5
            assert config.sessions.output_format == OutputFormat.PLAIN
            assert config.watch.force_polling is True
            assert config.watch.debounce_ms == 100
            assert warnings == []

    def test_overrides_win(self) -> None:
        """Should merge overrides over the file contents."""
        with tempfile.TemporaryDirectory() as tmpdir:
            config_path = Path(tmpdir) / "config.yaml"
            config_path.write_text(yaml.dump({"sessions": {"limit": 5}}), encoding="utf-8")
            config, _warnings = load_config(config_path, overrides={"sessions": {"output_format": "json"}})
            assert config.sessions.limit == 5
            assert config.sessions.output_format == OutputFormat.JSON

    def test_invalid_yaml_returns_defaults_with_warning(self) -> None:
        """Should return defaults with warning for invalid YAML."""
        with tempfile.TemporaryDirectory() as tmpdir:
            config_path = Path(tmpdir) / "config.yaml"
            config_path.write_text("invalid: yaml: content:", encoding="utf-8")
            config, warnings = load_config(config_path)
            assert config == Config()
            assert len(warnings) == 1

    def test_partial_recovery(self) -> None:
        """Should drop only the invalid top-level field."""
        with tempfile.TemporaryDirectory() as tmpdir:
            config_path = Path(tmpdir) / "config.yaml"
            config_path.write_text(
                yaml.dump({"transcripts_dir": "/srv/t", "sessions": {"limit": "many"}}),
                encoding="utf-8",
            )
            config, warnings = load_config(config_path)
            assert len(warnings) >= 1
            assert warnings[0].field_name == "sessions.limit"
            assert config.transcripts_dir == "/srv/t"
            assert config.sessions == SessionsConfig()

    def test_strict_mode_no_recovery(self) -> None:
        """Strict mode should not attempt partial recovery."""
        with tempfile.TemporaryDirectory() as tmpdir:
            config_path = Path(tmpdir) / "config.yaml"
            config_path.write_text(
                yaml.dump({"transcripts_dir": "/srv/t", "sessions": {"limit": "many"}}),
                encoding="utf-8",
            )
            config, warnings = load_config(config_path, strict=True)
            assert len(warnings) >= 1
            assert config == Config()


class TestSaveConfig:
    """Tests for save_config function."""

    def test_saves_config(self) -> None:
        """Should save config to file."""
        with tempfile.TemporaryDirectory() as tmpdir:
            config_path = Path(tmpdir) / "config.yaml"
            config = Config(sessions=SessionsConfig(limit=7, output_format=OutputFormat.JSON))
            save_config(config, config_path)

            with config_path.open(encoding="utf-8") as f:
                data = yaml.safe_load(f)
            assert data["sessions"]["limit"] == 7
            assert data["sessions"]["output_format"] == "json"
            assert data["agent_tool_names"] == ["Task"]

    def test_round_trips_through_load(self) -> None:
        """Should write a file that loads back without warnings."""
        with tempfile.TemporaryDirectory() as tmpdir:
            config_path = Path(tmpdir) / "nested" / "config.yaml"
            save_config(Config(), config_path)
            config, warnings = load_config(config_path)
            assert config == Config()
            assert warnings == []


class TestConfigWarning:
    """Tests for ConfigWarning dataclass."""

    def test_default_value_none(self) -> None:
        """Should default value to None."""
        warning = ConfigWarning(file="test.yaml", field_name="x", message="error")
        assert warning.value is None


class TestDisplayConfigWarnings:
    """Tests for display_config_warnings function."""

    def test_no_warnings_no_output(self) -> None:
        """Should not print anything when no warnings."""
        output = StringIO()
        display_config_warnings([], Console(file=output, no_color=True))
        assert output.getvalue() == ""

    def test_displays_warnings(self) -> None:
        """Should display warnings in a panel."""
        output = StringIO()
        warnings = [
            ConfigWarning(file="config.yaml", field_name="sessions.limit", message="invalid value", value="bad"),
        ]
        display_config_warnings(warnings, Console(file=output, no_color=True, width=120))
        result = output.getvalue()
        assert "Config Warnings" in result
        assert "config.yaml" in result
        assert "invalid value" in result
