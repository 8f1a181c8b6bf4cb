"""Tests for configuration loading."""

import pytest
from pathlib import Path

from pydantic import ValidationError

from pygnss_ppp.core.config import (
    RAW_PATTERN_TOKENS,
    PathsConfig,
    Settings,
    StationEntry,
    ToolConfig,
    expand_env_vars,
    load_settings,
)
from pygnss_ppp.core.context import Station, path_tokens
from pygnss_ppp.core.exceptions import ConfigurationError
from pygnss_ppp.utils.dates import GNSSDate


class TestLoadSettings:
    """Tests for YAML settings loading."""

    def test_defaults(self):
        settings = Settings()
        assert settings.stations == []
        assert settings.engine.param_file == "smoothFinal.tdp"
        assert settings.processing.realtime_window_hours == 30.0
        assert settings.processing.orbit_latency_days["final"] == 14

    def test_load_yaml_with_env(self, tmp_path: Path, monkeypatch):
        """Environment variables in the YAML should be expanded."""
        monkeypatch.setenv("PPP_TEST_ROOT", str(tmp_path))
        config = tmp_path / "ppp.yaml"
        config.write_text(
            "stations: [abcd, EFGH]\n"
            "paths:\n"
            "  result_root: ${PPP_TEST_ROOT}/results\n"
            "processing:\n"
            "  cm2cf: true\n"
            "tools:\n"
            "  engine:\n"
            "    command: python3 /opt/gd2e.py\n"
        )

        settings = load_settings(config)

        assert [s.code for s in settings.stations] == ["ABCD", "EFGH"]
        assert settings.paths.result_root == tmp_path / "results"
        assert settings.processing.cm2cf is True
        assert settings.tools.engine.command == ["python3", "/opt/gd2e.py"]

    def test_missing_explicit_path(self, tmp_path: Path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_settings(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path: Path):
        config = tmp_path / "bad.yaml"
        config.write_text("stations: [abcd\n")
        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_settings(config)

    def test_settings_are_frozen(self):
        settings = Settings()
        with pytest.raises(ValidationError):
            settings.station_dir = Path("/tmp")


class TestStationEntry:
    """Tests for inline station entries."""

    def test_code_normalized(self):
        assert StationEntry(code=" abcd ").code == "ABCD"

    def test_invalid_code(self):
        with pytest.raises(ValidationError):
            StationEntry(code="AB/CD")

    def test_comma_separated_list(self):
        settings = Settings(stations="abcd, efgh")
        assert [s.code for s in settings.stations] == ["ABCD", "EFGH"]


class TestPathsConfig:
    """Tests for the raw data path template."""

    def test_known_tokens(self):
        pattern = "/data/{STATION}/{gpsweek}/{iso}/{station}{doy}*.{yy}d"
        assert PathsConfig(raw_pattern=pattern).raw_pattern == pattern

    def test_unknown_token(self):
        with pytest.raises(ValidationError, match="Unknown raw_pattern token"):
            PathsConfig(raw_pattern="/data/{site}/{doy}")

    def test_positional_field(self):
        with pytest.raises(ValidationError):
            PathsConfig(raw_pattern="/data/{}")

    def test_tokens_match_expansion(self):
        assert set(path_tokens(Station("abcd"), GNSSDate(2024, 1, 15))) == RAW_PATTERN_TOKENS


class TestToolConfig:
    """Tests for external tool configuration."""

    def test_command_string_split(self):
        tool = ToolConfig(command="rnx_assemble --quiet", extra_args="-v 2")
        assert tool.command == ["rnx_assemble", "--quiet"]
        assert tool.extra_args == ["-v", "2"]

    def test_empty_command(self):
        with pytest.raises(ValidationError):
            ToolConfig(command=[])


class TestExpandEnvVars:
    """Tests for recursive environment expansion."""

    def test_nested(self, monkeypatch):
        monkeypatch.setenv("PPP_X", "value")
        data = {"a": "${PPP_X}", "b": ["$PPP_X", 3], "c": {"d": "x"}}
        assert expand_env_vars(data) == {"a": "value", "b": ["value", 3], "c": {"d": "x"}}
