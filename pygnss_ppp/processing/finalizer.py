"""
Run finalization: idempotency gate, working directory lifecycle, and
placement of logs and archives next to the result file.

Layout per station/day under the result root:

    STATION/YEAR/YEAR-MM-DD.STATION           primary (Final tier) result
    STATION/YEAR/YEAR-MM-DD.STATION.ql        Rapid tier result
    STATION/YEAR/YEAR-MM-DD.STATION.ultra     Ultra tier result
    <result>.log.gz                           engine/transform log
    <result>.tree                             engine diagnostic tree
    <result>.gdcov                            covariance used (transforms)
    <result>.fullog.tgz                       whole working directory
"""

from __future__ import annotations

import shutil
from dataclasses import dataclass, field
from pathlib import Path

from pygnss_ppp.core.config import Settings
from pygnss_ppp.core.context import DayContext, RunOptions, observation_name
from pygnss_ppp.processing.observations import RealTimeWindowBuilder, non_empty
from pygnss_ppp.processing.orbits import ScheduleOutcome
from pygnss_ppp.utils.compression import archive_directory, compress_gzip
from pygnss_ppp.utils.logging import StatusPrinter, get_logger


logger = get_logger(__name__)

LOG_TAIL_LINES = 5


@dataclass
class FinalizeReport:
    """Files written by finalization."""

    log: Path | None = None
    tree: Path | None = None
    archive: Path | None = None
    notes: list[str] = field(default_factory=list)


class RunFinalizer:
    """Gate days, manage the working directory and store run logs."""

    def __init__(
        self,
        settings: Settings,
        options: RunOptions,
        printer: StatusPrinter | None = None,
    ):
        self.settings = settings
        self.options = options
        self.printer = printer or StatusPrinter()

    @property
    def work_dir(self) -> Path:
        return Path(self.settings.paths.work_dir)

    @property
    def log_file(self) -> Path:
        return self.work_dir / self.settings.engine.log_file

    # ------------------------------------------------------------------
    # Gates
    # ------------------------------------------------------------------

    def is_done(self, ctx: DayContext) -> bool:
        """True if the primary result exists and force mode is off."""
        return not self.options.force and non_empty(ctx.primary_path)

    # ------------------------------------------------------------------
    # Working directory lifecycle
    # ------------------------------------------------------------------

    def create_workdir(self) -> Path:
        self.work_dir.mkdir(parents=True, exist_ok=True)
        return self.work_dir

    def reset_workdir(self) -> None:
        """Empty the working directory before a day starts."""
        self.create_workdir()
        for item in self.work_dir.iterdir():
            if item.is_dir() and not item.is_symlink():
                shutil.rmtree(item)
            else:
                item.unlink()

    def cleanup_workdir(self) -> None:
        """Delete the working directory at the end of the run."""
        if not self.work_dir.exists():
            return
        if self.options.debug:
            self.printer.silent(f"debug mode: working directory kept at {self.work_dir}")
            return
        shutil.rmtree(self.work_dir)

    # ------------------------------------------------------------------
    # Per-day finalization
    # ------------------------------------------------------------------

    def finalize(self, ctx: DayContext, outcome: ScheduleOutcome) -> FinalizeReport:
        """Store log, tree and archive for a finished day."""
        report = FinalizeReport()
        artifact = outcome.artifact
        target = artifact.path if artifact else ctx.primary_path

        if outcome.errored:
            self._show_log_tail()
        elif artifact is not None:
            report.log = self._store_log(target)
            report.tree = self._store_tree(target)

        if self.options.fullog:
            report.archive = self._store_archive(ctx, target, report)

        return report

    def _store_log(self, target: Path) -> Path | None:
        if not self.log_file.is_file():
            return None
        result = compress_gzip(
            self.log_file,
            target.with_name(target.name + ".log.gz"),
            keep_original=True,
        )
        if not result.success:
            logger.warning("Could not store run log", error=result.error)
            return None
        return result.output_path

    def _store_tree(self, target: Path) -> Path | None:
        if not self.settings.processing.keep_tree:
            return None
        tree = self.work_dir / self.settings.engine.tree_file
        if not tree.is_file():
            return None
        destination = target.with_name(target.name + ".tree")
        shutil.copy2(tree, destination)
        return destination

    def _store_archive(self, ctx: DayContext, target: Path, report: FinalizeReport) -> Path | None:
        """Archive the working directory unless it only holds the input.

        The captured tool log, a leftover window file and the previous
        days assembled for a real-time window do not count as content.
        """
        if not self.work_dir.is_dir():
            return None

        inputs = {
            ctx.obs_file.name,
            ctx.obs_file.name + ".win",
            self.log_file.name,
        }
        if ctx.realtime:
            inputs.update(
                observation_name(ctx.station, ctx.day.add_days(-offset))
                for offset in range(1, RealTimeWindowBuilder.DAYS_BACK + 1)
            )
        produced = [p for p in self.work_dir.iterdir() if p.name not in inputs]
        if not produced:
            note = f"{ctx.label}: nothing besides the observation file to archive"
            self.printer.silent(note)
            report.notes.append(note)
            return None

        result = archive_directory(self.work_dir, target.with_name(target.name + ".fullog.tgz"))
        if not result.success:
            logger.warning("Could not archive working directory", error=result.error)
            return None
        return result.output_path

    def _show_log_tail(self) -> None:
        if not self.log_file.is_file():
            return
        with open(self.log_file, errors="replace") as f:
            lines = f.read().splitlines()
        for line in lines[-LOG_TAIL_LINES:]:
            self.printer.silent(line)
