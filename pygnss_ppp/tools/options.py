"""
Option bags for external tools.

Each tool gets a small dataclass describing one invocation. The bag is
validated before it is serialized into an argument vector, so nothing is
ever assembled by string concatenation or passed through a shell.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import ClassVar

from pygnss_ppp.core.config import ToolConfig
from pygnss_ppp.core.context import MetadataOverride, OrbitTier
from pygnss_ppp.core.exceptions import ToolError
from pygnss_ppp.utils.dates import GNSSDate


def _check_text(tool: str, name: str, value: str) -> None:
    if not value or any(c in value for c in "\n\r\x00"):
        raise ToolError(tool, f"Invalid value for {name}: {value!r}")


class ToolOptions:
    """Base class for option bags."""

    tool: ClassVar[str] = ""

    def validate(self) -> None:
        """Raise ToolError if the bag cannot produce a sane command."""

    def args(self) -> list[str]:
        raise NotImplementedError

    def to_argv(self, config: ToolConfig) -> list[str]:
        """Validate and serialize to a full argument vector."""
        self.validate()
        return [*config.command, *config.extra_args, *self.args()]


@dataclass(frozen=True)
class AssemblerOptions(ToolOptions):
    """Raw-to-observation conversion for one station/day."""

    tool: ClassVar[str] = "assembler"

    raw_files: tuple[Path, ...]
    output: Path
    marker_name: str
    conversion_options: tuple[str, ...] = ()
    overrides: MetadataOverride = field(default_factory=MetadataOverride)

    def validate(self) -> None:
        if not self.raw_files:
            raise ToolError(self.tool, "No raw files to assemble")
        _check_text(self.tool, "marker_name", self.marker_name)
        if self.overrides.receiver:
            _check_text(self.tool, "receiver", self.overrides.receiver)
        if self.overrides.antenna:
            _check_text(self.tool, "antenna", self.overrides.antenna)
        if self.overrides.approx_position and len(self.overrides.approx_position) != 3:
            raise ToolError(self.tool, "Approximate position needs three components")

    def args(self) -> list[str]:
        argv = [str(p) for p in self.raw_files]
        argv += ["-o", str(self.output)]
        argv += list(self.conversion_options)
        argv += ["-O.mo", self.marker_name]
        if self.overrides.receiver:
            argv += ["-O.rt", self.overrides.receiver]
        if self.overrides.antenna:
            argv += ["-O.at", self.overrides.antenna]
        if self.overrides.approx_position:
            argv += ["-O.px", *(f"{c:.4f}" for c in self.overrides.approx_position)]
        return argv


@dataclass(frozen=True)
class RetrievalOptions(ToolOptions):
    """Orbit product retrieval into the local cache."""

    tool: ClassVar[str] = "orbit_retrieval"

    cache_root: Path
    tier: OrbitTier
    day: GNSSDate

    def args(self) -> list[str]:
        return ["-dir", str(self.cache_root), "-source", self.tier.value, "-date", self.day.iso]


@dataclass(frozen=True)
class EngineOptions(ToolOptions):
    """One positioning engine run."""

    tool: ClassVar[str] = "engine"

    obs_file: Path
    orbit_source: str
    station: str
    antex_file: Path | None = None
    covariance: bool = False
    nonfiducial: bool = False
    tree: bool = False

    def validate(self) -> None:
        _check_text(self.tool, "orbit_source", self.orbit_source)
        _check_text(self.tool, "station", self.station)

    def args(self) -> list[str]:
        argv = [
            "-rnxFile", str(self.obs_file),
            "-GNSSproducts", self.orbit_source,
            "-recList", self.station,
        ]
        if self.antex_file:
            argv += ["-antexFile", str(self.antex_file)]
        if self.covariance:
            argv.append("-gdCov")
        if self.nonfiducial:
            argv.append("-nonFiducial")
        if self.tree:
            argv.append("-treeFile")
        return argv


@dataclass(frozen=True)
class WindowOptions(ToolOptions):
    """Merge daily observation files into one trailing window."""

    tool: ClassVar[str] = "window"

    inputs: tuple[Path, ...]
    output: Path
    start: datetime
    end: datetime

    def validate(self) -> None:
        if not self.inputs:
            raise ToolError(self.tool, "No observation files to window")
        if self.end <= self.start:
            raise ToolError(self.tool, f"Empty window {self.start} - {self.end}")

    def args(self) -> list[str]:
        return [
            "-start", self.start.strftime("%Y-%m-%dT%H:%M:%S"),
            "-end", self.end.strftime("%Y-%m-%dT%H:%M:%S"),
            "-o", str(self.output),
            *(str(p) for p in self.inputs),
        ]


@dataclass(frozen=True)
class FrameCorrectionOptions(ToolOptions):
    """Center-of-mass to center-of-figure correction, in place."""

    tool: ClassVar[str] = "frame_correction"

    cov_file: Path

    def args(self) -> list[str]:
        return ["-i", str(self.cov_file), "-o", str(self.cov_file)]


@dataclass(frozen=True)
class HelmertOptions(ToolOptions):
    """Non-fiducial to fiducial Helmert transform."""

    tool: ClassVar[str] = "helmert"

    cov_file: Path
    params_file: Path
    output: Path

    def validate(self) -> None:
        if self.output == self.cov_file:
            raise ToolError(self.tool, "Helmert output must not overwrite its input")

    def args(self) -> list[str]:
        return ["-i", str(self.cov_file), "-x", str(self.params_file), "-o", str(self.output)]


@dataclass(frozen=True)
class LookupOptions(ToolOptions):
    """Metadata table lookup (inventory or site log)."""

    tool: ClassVar[str] = "lookup"

    source: Path
    station: str
    key: str

    def validate(self) -> None:
        _check_text(self.tool, "station", self.station)
        _check_text(self.tool, "key", self.key)

    def args(self) -> list[str]:
        return [str(self.source), self.station, self.key]
