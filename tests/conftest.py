"""Shared fixtures: a fake tool runner and a tmp_path-based configuration."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

import pytest

from pygnss_ppp.core.config import PathsConfig, ProcessingConfig, Settings
from pygnss_ppp.core.context import DayContext, Station
from pygnss_ppp.tools.runner import ToolResult, ToolRunner, append_log
from pygnss_ppp.utils.dates import GNSSDate
from pygnss_ppp.utils.logging import StatusPrinter


FIXED_NOW = datetime(2024, 1, 20, 12, 0, tzinfo=timezone.utc)
DAY = GNSSDate(2024, 1, 15)

TDP_TEXT = """\
 758635200.0000  4027893.0000  4027893.1000  0.0040  Station.ABCD.State.Pos.X
 758635200.0000   307045.0000   307045.6000  0.0030  Station.ABCD.State.Pos.Y
 758635200.0000  4919475.0000  4919475.1000  0.0050  Station.ABCD.State.Pos.Z
 758635200.0000        0.1000        0.1123  0.0010  Station.ABCD.Trop.WetZ
 758721300.0000  4027893.0000  4027893.1234  0.0021  Station.ABCD.State.Pos.X
 758721300.0000   307045.0000   307045.6543  0.0017  Station.ABCD.State.Pos.Y
 758721300.0000  4919475.0000  4919475.1111  0.0025  Station.ABCD.State.Pos.Z
 758721300.0000        0.1000        0.1150  0.0009  Station.ABCD.Trop.WetZ
"""

COV_TEXT = """\
3 PARAMETERS ON 2024-01-15
1 ABCD.STA.X 758721300.0 4027893.1200 2.10000e-03
2 ABCD.STA.Y 758721300.0 307045.6500 1.70000e-03
3 ABCD.STA.Z 758721300.0 4919475.1100 2.50000e-03
1 2 0.123
1 3 -0.044
2 3 0.078
"""

RINEX_HEADER = """\
     2.11           OBSERVATION DATA    G (GPS)             RINEX VERSION / TYPE
ABCD                                                        MARKER NAME
123456              TRIMBLE NETR9       4.85                REC # / TYPE / VERS
654321              TRM59800.00     NONE                    ANT # / TYPE
  4027893.1000   307045.6000  4919475.1000                  APPROX POSITION XYZ
                                                            END OF HEADER
 24  1 15  0  0  0.0000000  0  8G01G03G06G11G14G17G19G22
"""


def _arg_after(argv: list[str], flag: str) -> str:
    return argv[argv.index(flag) + 1]


@dataclass
class Call:
    """One recorded tool invocation."""

    tool: str
    argv: list[str]
    cwd: Path | None


class FakeRunner(ToolRunner):
    """ToolRunner that records calls and simulates tools in-process.

    Handlers take ``(argv, cwd)`` and return a return code, a ToolResult,
    or raise ToolError. Tools without a handler succeed and do nothing.
    """

    def __init__(self) -> None:
        self.calls: list[Call] = []
        self.handlers: dict[str, Callable[[list[str], Path | None], object]] = {}

    def on(self, tool: str, handler: Callable[[list[str], Path | None], object]) -> FakeRunner:
        self.handlers[tool] = handler
        return self

    def run(self, tool, argv, cwd=None, log_file=None, timeout=3600) -> ToolResult:
        cwd = Path(cwd) if cwd else None
        self.calls.append(Call(tool, list(argv), cwd))

        handler = self.handlers.get(tool)
        outcome = handler(list(argv), cwd) if handler else 0
        if isinstance(outcome, ToolResult):
            result = outcome
        else:
            result = ToolResult(tool=tool, return_code=int(outcome or 0), stdout=f"{tool} ran\n")

        if log_file:
            append_log(log_file, list(argv), result)
        return result

    def calls_for(self, tool: str) -> list[Call]:
        return [c for c in self.calls if c.tool == tool]

    def count(self, tool: str) -> int:
        return len(self.calls_for(tool))


# ----------------------------------------------------------------------
# Tool simulations
# ----------------------------------------------------------------------


def assembler_ok(argv: list[str], cwd: Path | None) -> int:
    """Write a small observation file to the -o target."""
    Path(_arg_after(argv, "-o")).write_text(RINEX_HEADER)
    return 0


def window_ok(argv: list[str], cwd: Path | None) -> int:
    Path(_arg_after(argv, "-o")).write_text(RINEX_HEADER + "windowed\n")
    return 0


def retrieval_ok(argv: list[str], cwd: Path | None) -> int:
    """Drop the product into <dir>/<source>/<date>.eo.gz."""
    target = Path(_arg_after(argv, "-dir")) / _arg_after(argv, "-source")
    target.mkdir(parents=True, exist_ok=True)
    (target / f"{_arg_after(argv, '-date')}.eo.gz").write_bytes(b"orbit")
    return 0


def engine(
    return_code: int = 0,
    tdp: str | None = TDP_TEXT,
    cov: str | None = COV_TEXT,
    fail_on: tuple[str, ...] = (),
) -> Callable[[list[str], Path | None], int]:
    """Engine simulation writing tdp/gdcov/tree into its cwd.

    ``fail_on`` lists orbit sources (e.g. "Final") for which the engine
    exits 1 without output.
    """

    def _engine(argv: list[str], cwd: Path | None) -> int:
        source = _arg_after(argv, "-GNSSproducts")
        if any(source.endswith(name) for name in fail_on):
            return 1
        assert cwd is not None
        if tdp is not None:
            (cwd / "smoothFinal.tdp").write_text(tdp)
        if cov is not None and "-gdCov" in argv:
            (cwd / "smoothFinal.gdcov").write_text(cov)
        if "-treeFile" in argv:
            (cwd / "debug.tree").write_text("tree\n")
        return return_code

    return _engine


# ----------------------------------------------------------------------
# Fixtures
# ----------------------------------------------------------------------


@pytest.fixture
def fake_runner() -> FakeRunner:
    return (
        FakeRunner()
        .on("assembler", assembler_ok)
        .on("window", window_ok)
        .on("orbit_retrieval", retrieval_ok)
        .on("engine", engine())
    )


@pytest.fixture
def messages() -> list[str]:
    return []


@pytest.fixture
def printer(messages: list[str]) -> StatusPrinter:
    return StatusPrinter(messages.append)


def make_settings(tmp_path: Path, **processing) -> Settings:
    """Settings rooted in tmp_path; processing overrides as keywords."""
    paths = PathsConfig(
        raw_pattern=str(tmp_path / "raw" / "{station}" / "{year}" / "{station}{doy}0.{yy}d"),
        result_root=tmp_path / "results",
        work_dir=tmp_path / "work",
        lock_file=tmp_path / "ppp.lock",
    )
    processing.setdefault("max_disk_usage_percent", 100.0)
    return Settings(
        stations=["ABCD"],
        paths=paths,
        processing=ProcessingConfig(**processing),
    )


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return make_settings(tmp_path)


def make_raw(tmp_path: Path, station: str, day: GNSSDate) -> Path:
    """Create one raw file matching the default test raw_pattern."""
    s = station.lower()
    path = tmp_path / "raw" / s / f"{day.year:04d}" / f"{s}{day.doy:03d}0.{day.yy:02d}d"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("raw\n")
    return path


def make_context(settings: Settings, station: str = "ABCD", day: GNSSDate = DAY, **kwargs) -> DayContext:
    work_dir = Path(settings.paths.work_dir)
    work_dir.mkdir(parents=True, exist_ok=True)
    return DayContext(
        station=Station(station),
        day=day,
        work_dir=work_dir,
        result_root=Path(settings.paths.result_root),
        **kwargs,
    )


def fixed_clock() -> datetime:
    return FIXED_NOW
