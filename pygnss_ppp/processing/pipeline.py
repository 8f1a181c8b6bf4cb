"""
Daily PPP pipeline.

Runs every configured station over every requested day, strictly one
(station, day) at a time:

1. Idempotency gate: skip if the primary result already exists
2. Raw data gate: skip if no raw files match the day's pattern
3. Reset the working directory
4. Resolve metadata overrides
5. Assemble the observation file (real-time window when active)
6. Drive the engine through the orbit tiers and extract the result
7. Store logs and archives next to the result

A failure on one day never stops the other days or stations.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Callable

from pygnss_ppp.core.config import Settings
from pygnss_ppp.core.context import DayContext, OrbitTier, RunOptions, Station
from pygnss_ppp.core.exceptions import PPPError
from pygnss_ppp.core.guard import ProcessGuard, check_disk_space
from pygnss_ppp.processing.extraction import SolutionExtractor
from pygnss_ppp.processing.finalizer import RunFinalizer
from pygnss_ppp.processing.observations import (
    ObservationAssembler,
    RealTimeWindowBuilder,
    non_empty,
    utcnow,
)
from pygnss_ppp.processing.orbits import AttemptStatus, OrbitTierScheduler, TierAttempt
from pygnss_ppp.stations.metadata import MetadataResolver, load_stations
from pygnss_ppp.tools.runner import ToolRunner
from pygnss_ppp.utils.dates import GNSSDate
from pygnss_ppp.utils.logging import StatusPrinter, get_logger


logger = get_logger(__name__)


class DayStatus(str, Enum):
    """Final state of a station/day."""

    DONE = "done"                  # primary result already present
    NO_DATA = "no_data"            # no raw files
    SUCCESS = "success"
    ALREADY_DONE = "already_done"  # Rapid result already present
    UNAVAILABLE = "unavailable"    # no orbit product on any tier
    ERRORED = "errored"


_ATTEMPT_TO_DAY = {
    AttemptStatus.SUCCESS: DayStatus.SUCCESS,
    AttemptStatus.ALREADY_DONE: DayStatus.ALREADY_DONE,
    AttemptStatus.UNAVAILABLE: DayStatus.UNAVAILABLE,
    AttemptStatus.FATAL: DayStatus.ERRORED,
}


@dataclass
class DayResult:
    """Result of processing one station/day."""

    station: str
    day: GNSSDate
    status: DayStatus
    tier: OrbitTier | None = None
    artifact: Path | None = None
    message: str = ""
    attempts: list[TierAttempt] = field(default_factory=list)

    @property
    def errored(self) -> bool:
        return self.status == DayStatus.ERRORED


@dataclass
class RunSummary:
    """Result of a whole run."""

    results: list[DayResult] = field(default_factory=list)
    start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    end_time: datetime | None = None

    @property
    def duration_seconds(self) -> float:
        if self.end_time:
            return (self.end_time - self.start_time).total_seconds()
        return 0.0

    @property
    def errored(self) -> list[DayResult]:
        return [r for r in self.results if r.errored]

    def counts(self) -> dict[DayStatus, int]:
        return dict(Counter(r.status for r in self.results))


class PPPPipeline:
    """Process stations over days with orbit tier fallback.

    Usage:
        settings = load_settings("config/ppp.yaml")
        pipeline = PPPPipeline(settings, RunOptions(days=3))
        summary = pipeline.run()
    """

    def __init__(
        self,
        settings: Settings,
        options: RunOptions,
        runner: ToolRunner | None = None,
        printer: StatusPrinter | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.settings = settings
        self.options = options
        self.runner = runner or ToolRunner()
        self.printer = printer or StatusPrinter()
        self.clock = clock

        self.resolver = MetadataResolver(settings, self.runner)
        self.assembler = ObservationAssembler(settings, self.runner)
        self.window_builder = RealTimeWindowBuilder(
            settings, self.runner, self.assembler, clock=clock
        )
        self.extractor = SolutionExtractor(settings, self.runner)
        self.scheduler = OrbitTierScheduler(
            settings, self.runner, self.extractor, printer=self.printer, clock=clock
        )
        self.finalizer = RunFinalizer(settings, options, printer=self.printer)

    @property
    def tiers(self) -> tuple[OrbitTier, ...]:
        return self.options.tier_mode.tiers()

    def run(self) -> RunSummary:
        """Run all stations and days.

        Raises:
            LockError: If another run holds the lock
            PreflightError: If the output volume is nearly full
            ConfigurationError: If the raw data pattern cannot be expanded
        """
        if self.options.lock:
            with ProcessGuard(self.settings.paths.lock_file):
                return self._run()
        return self._run()

    def _run(self) -> RunSummary:
        used = check_disk_space(
            self.settings.paths.result_root,
            self.settings.processing.max_disk_usage_percent,
        )
        logger.debug("Disk usage pre-flight passed", used_percent=round(used, 1))

        stations = load_stations(self.settings)
        days = self.options.processing_days(GNSSDate.from_date(self.clock()))
        summary = RunSummary()

        if not stations:
            self.printer.warning("No stations configured")
            summary.end_time = datetime.now(timezone.utc)
            return summary

        self.printer.info(
            f"{len(stations)} station(s), {len(days)} day(s), "
            f"tiers {'/'.join(t.value for t in self.tiers)}"
        )

        self.finalizer.create_workdir()
        try:
            for station in stations:
                for day in days:
                    summary.results.append(self.process_day(station, day))
        finally:
            self.finalizer.cleanup_workdir()

        summary.end_time = datetime.now(timezone.utc)
        counts = ", ".join(f"{s.value}={n}" for s, n in summary.counts().items())
        self.printer.info(f"Run complete in {summary.duration_seconds:.1f} s ({counts})")
        return summary

    def process_day(self, station: Station, day: GNSSDate) -> DayResult:
        """Process one station/day.

        Processing and filesystem errors end the day as ERRORED and never
        reach the caller, so the remaining days and stations still run.

        Raises:
            ConfigurationError: If the raw data pattern cannot be expanded
        """
        ctx = DayContext(
            station=station,
            day=day,
            work_dir=self.finalizer.work_dir,
            result_root=Path(self.settings.paths.result_root),
            realtime=self.options.realtime,
        )

        if self.finalizer.is_done(ctx):
            self.printer.skip(f"{ctx.label}: already computed ({ctx.primary_path})")
            return DayResult(station.upper, day, DayStatus.DONE, artifact=ctx.primary_path)

        if not self.assembler.raw_files(station, day):
            self.printer.skip(f"{ctx.label}: no raw data")
            return DayResult(station.upper, day, DayStatus.NO_DATA)

        self.printer.info(f"{ctx.label}: processing")
        try:
            self.finalizer.reset_workdir()
            return self._process(ctx)
        except (PPPError, OSError) as e:
            self.printer.fatal(f"{ctx.label}: {e}")
            logger.error("Day failed", station=station.upper, date=day.iso, error=str(e))
            return DayResult(station.upper, day, DayStatus.ERRORED, message=str(e))

    def _process(self, ctx: DayContext) -> DayResult:
        ctx = ctx.with_overrides(self.resolver.resolve(ctx.station, ctx.day))
        log_file = self.finalizer.log_file
        station, day = ctx.station.upper, ctx.day

        if self.window_builder.is_active(ctx):
            self.printer.info(f"{ctx.label}: building real-time window")
            self.window_builder.build(ctx, log_file=log_file)
        else:
            assembly = self.assembler.assemble(ctx, log_file=log_file)
            if not assembly.success:
                message = f"observation assembly failed: {assembly.message}"
                self.printer.fatal(f"{ctx.label}: {message}")
                return DayResult(station, day, DayStatus.ERRORED, message=message)

        if not non_empty(ctx.obs_file):
            message = "no observation file to process"
            self.printer.fatal(f"{ctx.label}: {message}")
            return DayResult(station, day, DayStatus.ERRORED, message=message)

        outcome = self.scheduler.run(ctx, self.tiers, force=self.options.force, log_file=log_file)
        self.finalizer.finalize(ctx, outcome)

        last = outcome.last
        if last is None:
            return DayResult(station, day, DayStatus.ERRORED, message="no tier attempted")

        return DayResult(
            station=station,
            day=day,
            status=_ATTEMPT_TO_DAY.get(last.status, DayStatus.ERRORED),
            tier=last.tier,
            artifact=outcome.artifact.path if outcome.artifact else None,
            message=last.message,
            attempts=list(outcome.attempts),
        )
