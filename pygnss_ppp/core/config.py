"""
Configuration management for PyGNSS-PPP.

Uses Pydantic for validation and supports YAML configuration files
with environment variable expansion.
"""

from __future__ import annotations

import os
import shlex
import string
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from pygnss_ppp.core.exceptions import ConfigurationError


RAW_PATTERN_TOKENS = frozenset(
    {"station", "STATION", "year", "yy", "month", "day", "doy", "gpsweek", "iso"}
)


def expand_env_vars(value: Any) -> Any:
    """Recursively expand environment variables in strings."""
    if isinstance(value, str):
        return os.path.expandvars(value)
    elif isinstance(value, dict):
        return {k: expand_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [expand_env_vars(v) for v in value]
    return value


class FrozenModel(BaseModel):
    """Base for immutable configuration sections."""

    model_config = ConfigDict(frozen=True)


class StationEntry(FrozenModel):
    """Inline per-station configuration.

    The receiver, antenna and approximate position are the lowest-precedence
    metadata source; lookup tables override them when they have a value.
    """

    code: str
    receiver: str | None = None
    antenna: str | None = None
    approx_position: tuple[float, float, float] | None = None

    @field_validator("code")
    @classmethod
    def _check_code(cls, v: str) -> str:
        v = v.strip()
        if not v or not v.isalnum():
            raise ValueError(f"Invalid station code: {v!r}")
        return v.upper()


class PathsConfig(FrozenModel):
    """Filesystem layout.

    ``raw_pattern`` may contain the tokens {station}, {STATION}, {year},
    {yy}, {month}, {day}, {doy}, {gpsweek} and {iso}, and glob wildcards.
    """

    raw_pattern: str = "data/raw/{station}/{year}/{station}{doy}0.{yy}o"
    result_root: Path = Field(default=Path("results"))
    work_dir: Path = Field(default=Path("work"))
    orbit_cache: Path | None = None
    orbit_file_pattern: str = "{tier}/{iso}.eo.gz"
    antex_file: Path | None = None
    helmert_dir: Path | None = None
    helmert_pattern: str = "{iso}.x.gz"
    inventory_table: Path | None = None
    site_log_table: Path | None = None
    lock_file: Path = Field(default=Path("/tmp/pygnss_ppp.lock"))

    @field_validator("raw_pattern")
    @classmethod
    def _check_raw_pattern(cls, v: str) -> str:
        for _, name, _, _ in string.Formatter().parse(v):
            if name is None:
                continue
            token = name.split(".", 1)[0].split("[", 1)[0]
            if token not in RAW_PATTERN_TOKENS:
                raise ValueError(f"Unknown raw_pattern token {{{name}}}")
        return v


class ProcessingConfig(FrozenModel):
    """Processing policy."""

    nonfiducial: bool = False
    cm2cf: bool = False
    troposphere: bool = False
    troposphere_pattern: str = r"\.Trop\."
    keep_tree: bool = False
    conversion_options: list[str] = Field(default_factory=list)
    realtime_window_hours: float = 30.0
    realtime_delay_minutes: int = 60
    orbit_latency_days: dict[str, int] = Field(
        default_factory=lambda: {"final": 14, "rapid": 1, "ultra": 0}
    )
    error_patterns: list[str] = Field(
        default_factory=lambda: [
            "MARKER NAME",
            "REC # / TYPE / VERS",
            "ANT # / TYPE",
            "APPROX POSITION XYZ",
        ]
    )
    max_disk_usage_percent: float = 95.0

    @field_validator("max_disk_usage_percent")
    @classmethod
    def _check_percent(cls, v: float) -> float:
        if not 0 < v <= 100:
            raise ValueError("max_disk_usage_percent must be in (0, 100]")
        return v


class EngineConfig(FrozenModel):
    """Fixed file names the positioning engine writes into its cwd."""

    param_file: str = "smoothFinal.tdp"
    cov_file: str = "smoothFinal.gdcov"
    tree_file: str = "debug.tree"
    log_file: str = "engine.log"


class ToolConfig(FrozenModel):
    """How to invoke one external tool."""

    command: list[str]
    extra_args: list[str] = Field(default_factory=list)
    timeout: int = 3600

    @field_validator("command", "extra_args", mode="before")
    @classmethod
    def _split_string(cls, v: Any) -> Any:
        if isinstance(v, str):
            return shlex.split(v)
        return v

    @field_validator("command")
    @classmethod
    def _check_command(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("Tool command must not be empty")
        return v


class ToolsConfig(FrozenModel):
    """External collaborators."""

    assembler: ToolConfig = Field(default_factory=lambda: ToolConfig(command=["rnx_assemble"]))
    orbit_retrieval: ToolConfig = Field(
        default_factory=lambda: ToolConfig(command=["fetch_orbits"], timeout=900)
    )
    engine: ToolConfig = Field(
        default_factory=lambda: ToolConfig(command=["gd2e.py"], timeout=7200)
    )
    window: ToolConfig = Field(default_factory=lambda: ToolConfig(command=["rnx_window"]))
    frame_correction: ToolConfig = Field(default_factory=lambda: ToolConfig(command=["cm2cf"]))
    helmert: ToolConfig = Field(default_factory=lambda: ToolConfig(command=["helmert"]))
    inventory_lookup: ToolConfig = Field(
        default_factory=lambda: ToolConfig(command=["inventory_lookup"], timeout=60)
    )
    site_log_lookup: ToolConfig = Field(
        default_factory=lambda: ToolConfig(command=["sitelog_lookup"], timeout=60)
    )


class LoggingConfig(FrozenModel):
    """Logging configuration."""

    level: str = "INFO"
    log_dir: Path = Field(default=Path("logs"))
    log_to_file: bool = False
    log_to_console: bool = True
    json_format: bool = False


class Settings(BaseSettings):
    """Main settings container."""

    model_config = SettingsConfigDict(
        env_prefix="PYGNSS_PPP_",
        env_nested_delimiter="__",
        frozen=True,
    )

    stations: list[StationEntry] = Field(default_factory=list)
    station_dir: Path | None = None
    paths: PathsConfig = Field(default_factory=PathsConfig)
    processing: ProcessingConfig = Field(default_factory=ProcessingConfig)
    engine: EngineConfig = Field(default_factory=EngineConfig)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("stations", mode="before")
    @classmethod
    def _coerce_stations(cls, v: Any) -> Any:
        """Accept bare station codes as well as full entries."""
        if isinstance(v, str):
            v = [s for s in v.replace(",", " ").split() if s]
        if isinstance(v, list):
            return [{"code": item} if isinstance(item, str) else item for item in v]
        return v


DEFAULT_SEARCH_PATHS = [
    Path("config/ppp.local.yaml"),
    Path("config/ppp.yaml"),
    Path.home() / ".pygnss_ppp" / "ppp.yaml",
]


def load_settings(config_path: Path | str | None = None) -> Settings:
    """Load settings from YAML file.

    Args:
        config_path: Path to YAML configuration file.
                    If None, tries default locations.

    Returns:
        Settings instance.
    """
    if config_path and not Path(config_path).exists():
        raise ConfigurationError(f"Configuration file not found: {config_path}")

    search_paths = [Path(config_path)] if config_path else list(DEFAULT_SEARCH_PATHS)

    config_data: dict[str, Any] = {}

    for path in search_paths:
        if path.exists():
            with open(path) as f:
                try:
                    raw_data = yaml.safe_load(f)
                except yaml.YAMLError as e:
                    raise ConfigurationError(f"Invalid YAML in {path}: {e}")
                if raw_data:
                    config_data = expand_env_vars(raw_data)
            break

    return Settings(**config_data)
