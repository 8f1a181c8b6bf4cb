"""
Observation file assembly and real-time windowing.

The raw-to-observation conversion itself is an external tool. This module
expands the raw data path template for a station/day, hands the matching
files to the assembler, and in real-time mode stitches today's file with
the two previous days into one trailing window ending shortly before now.
"""

from __future__ import annotations

import glob
import os
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable

from pygnss_ppp.core.config import Settings
from pygnss_ppp.core.context import DayContext, Station, observation_name, path_tokens
from pygnss_ppp.core.exceptions import ConfigurationError, ToolError
from pygnss_ppp.tools.options import AssemblerOptions, WindowOptions
from pygnss_ppp.tools.runner import ToolRunner
from pygnss_ppp.utils.dates import GNSSDate
from pygnss_ppp.utils.logging import get_logger


logger = get_logger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def expand_raw_pattern(pattern: str, station: Station, day: GNSSDate) -> str:
    """Substitute station/date tokens into a raw path template.

    Raises:
        ConfigurationError: If the template uses an unknown token
    """
    try:
        return pattern.format(**path_tokens(station, day))
    except (KeyError, IndexError, ValueError) as e:
        raise ConfigurationError(f"Bad raw_pattern {pattern!r}: {e}")


def find_raw_files(pattern: str, station: Station, day: GNSSDate) -> list[Path]:
    """Raw files matching the expanded template (which may be a glob)."""
    expanded = os.path.expanduser(expand_raw_pattern(pattern, station, day))
    return [Path(p) for p in sorted(glob.glob(expanded)) if Path(p).is_file()]


def non_empty(path: Path) -> bool:
    return path.is_file() and path.stat().st_size > 0


@dataclass
class AssemblyResult:
    """Outcome of one assembler call."""

    day: GNSSDate
    output: Path
    raw_files: list[Path] = field(default_factory=list)
    return_code: int | None = None
    message: str = ""

    @property
    def no_data(self) -> bool:
        return not self.raw_files

    @property
    def success(self) -> bool:
        return self.return_code == 0 and non_empty(self.output)


class ObservationAssembler:
    """Produce one observation file per station/day."""

    def __init__(self, settings: Settings, runner: ToolRunner):
        self.settings = settings
        self.runner = runner

    def raw_files(self, station: Station, day: GNSSDate) -> list[Path]:
        return find_raw_files(self.settings.paths.raw_pattern, station, day)

    def assemble(
        self,
        ctx: DayContext,
        day: GNSSDate | None = None,
        log_file: Path | None = None,
    ) -> AssemblyResult:
        """Convert the raw files of ``day`` (default: the context's day).

        A day without raw files is reported as ``no_data`` and the tool is
        not called.
        """
        day = day or ctx.day
        output = ctx.work_dir / observation_name(ctx.station, day)
        raw = self.raw_files(ctx.station, day)
        result = AssemblyResult(day=day, output=output, raw_files=raw)

        if not raw:
            result.message = "no raw data"
            return result

        tool = self.settings.tools.assembler
        options = AssemblerOptions(
            raw_files=tuple(raw),
            output=output,
            marker_name=ctx.station.upper,
            conversion_options=tuple(self.settings.processing.conversion_options),
            overrides=ctx.overrides,
        )
        run = self.runner.run(
            "assembler",
            options.to_argv(tool),
            cwd=ctx.work_dir,
            log_file=log_file,
            timeout=tool.timeout,
        )
        result.return_code = run.return_code

        if run.return_code != 0:
            result.message = f"assembler exited with {run.return_code}"
        elif not non_empty(output):
            result.message = "assembler produced no observation file"

        logger.debug(
            "Assembled observations",
            station=ctx.station.upper,
            date=day.iso,
            files=len(raw),
            success=result.success,
        )
        return result


class RealTimeWindowBuilder:
    """Build a trailing window from today's and the two previous days' data.

    If one of the daily assemblies fails the window is built from the ones
    that succeeded, so it can end up shorter than the nominal length.
    """

    DAYS_BACK = 2

    def __init__(
        self,
        settings: Settings,
        runner: ToolRunner,
        assembler: ObservationAssembler,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.settings = settings
        self.runner = runner
        self.assembler = assembler
        self.clock = clock

    def is_active(self, ctx: DayContext) -> bool:
        """Only for real-time runs, and only for today's (UTC) day."""
        return ctx.realtime and ctx.day == GNSSDate.from_date(self.clock())

    def window(self) -> tuple[datetime, datetime]:
        """(start, end) of the trailing window."""
        proc = self.settings.processing
        end = self.clock() - timedelta(minutes=proc.realtime_delay_minutes)
        start = end - timedelta(hours=proc.realtime_window_hours)
        return start, end

    def build(self, ctx: DayContext, log_file: Path | None = None) -> list[AssemblyResult]:
        """Assemble the three days and replace the day's file with the window.

        Returns:
            The assembly results, oldest day first
        """
        results: list[AssemblyResult] = []
        for offset in range(self.DAYS_BACK, -1, -1):
            day = ctx.day.add_days(-offset)
            try:
                result = self.assembler.assemble(ctx, day, log_file=log_file)
            except ToolError as e:
                result = AssemblyResult(
                    day=day,
                    output=ctx.work_dir / observation_name(ctx.station, day),
                    message=str(e),
                )
            if not result.success:
                logger.warning(
                    "Real-time window input missing",
                    station=ctx.station.upper,
                    date=day.iso,
                    reason=result.message or "assembly failed",
                )
            results.append(result)

        inputs = tuple(r.output for r in results if r.success)
        if not inputs:
            return results

        start, end = self.window()
        merged = ctx.obs_file.with_name(ctx.obs_file.name + ".win")
        tool = self.settings.tools.window
        options = WindowOptions(inputs=inputs, output=merged, start=start, end=end)

        try:
            run = self.runner.run(
                "window",
                options.to_argv(tool),
                cwd=ctx.work_dir,
                log_file=log_file,
                timeout=tool.timeout,
            )
        except ToolError as e:
            logger.warning("Windowing tool unavailable", error=str(e))
            return results

        if run.return_code == 0 and non_empty(merged):
            os.replace(merged, ctx.obs_file)
            logger.info(
                "Built real-time window",
                station=ctx.station.upper,
                start=start.isoformat(),
                end=end.isoformat(),
                inputs=len(inputs),
            )
        else:
            logger.warning(
                "Windowing produced no output; keeping single-day observations",
                station=ctx.station.upper,
                return_code=run.return_code,
            )
        return results
