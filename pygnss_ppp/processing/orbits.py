"""
Orbit tier scheduling.

For one station/day, orbit tiers are tried from the most precise (Final)
to the least precise (Ultra). A tier whose orbit product is absent is
skipped cheaply in favour of the next one; an engine failure that cannot
be blamed on a missing product stops the day, because retrying a lower
tier would only hide the problem.

Each tier attempt ends in one of these states:

    SUCCESS       engine ran, result written; no lower tier is tried
    ALREADY_DONE  the Rapid result exists already; nothing to do
    RECOVERABLE   orbit (presumably) missing; go on with the next tier
    UNAVAILABLE   orbit missing on the lowest tier; non-fatal stop
    FATAL         engine or extraction failure; the day is errored
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable

from pygnss_ppp.core.config import Settings
from pygnss_ppp.core.context import DayContext, OrbitTier
from pygnss_ppp.core.exceptions import ExtractionError, ToolError
from pygnss_ppp.processing.extraction import ResultArtifact, SolutionExtractor, TransformFlags
from pygnss_ppp.processing.observations import non_empty, utcnow
from pygnss_ppp.tools.options import EngineOptions, RetrievalOptions
from pygnss_ppp.tools.runner import ToolRunner
from pygnss_ppp.utils.dates import GNSSDate
from pygnss_ppp.utils.logging import StatusPrinter, get_logger


logger = get_logger(__name__)


class AttemptStatus(str, Enum):
    """Outcome of a single tier attempt."""

    SUCCESS = "success"
    ALREADY_DONE = "already_done"
    RECOVERABLE = "recoverable"
    UNAVAILABLE = "unavailable"
    FATAL = "fatal"


@dataclass(frozen=True)
class TierAttempt:
    """Record of one tier attempt."""

    tier: OrbitTier
    status: AttemptStatus
    message: str = ""
    flags: TransformFlags | None = None
    artifact: ResultArtifact | None = None
    engine_invoked: bool = False


@dataclass
class ScheduleOutcome:
    """All attempts made for one station/day, in order."""

    attempts: list[TierAttempt] = field(default_factory=list)
    diagnostics: list[str] = field(default_factory=list)

    @property
    def last(self) -> TierAttempt | None:
        return self.attempts[-1] if self.attempts else None

    @property
    def status(self) -> AttemptStatus | None:
        return self.last.status if self.last else None

    @property
    def errored(self) -> bool:
        return self.status == AttemptStatus.FATAL

    @property
    def artifact(self) -> ResultArtifact | None:
        return self.last.artifact if self.last else None

    @property
    def tiers_tried(self) -> list[OrbitTier]:
        return [a.tier for a in self.attempts]


def scan_header(obs_file: Path, patterns: list[str]) -> list[str]:
    """Observation header lines matching any of the diagnostic patterns."""
    if not obs_file.is_file() or not patterns:
        return []

    regexes = [re.compile(p) for p in patterns]
    matches = []
    with open(obs_file, errors="replace") as f:
        for line in f:
            if any(r.search(line) for r in regexes):
                matches.append(line.rstrip())
            if "END OF HEADER" in line:
                break
    return matches


class OrbitTierScheduler:
    """Drive the positioning engine through the orbit tiers for a day."""

    def __init__(
        self,
        settings: Settings,
        runner: ToolRunner,
        extractor: SolutionExtractor,
        printer: StatusPrinter | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.settings = settings
        self.runner = runner
        self.extractor = extractor
        self.printer = printer or StatusPrinter()
        self.clock = clock

    def orbit_file(self, tier: OrbitTier, day: GNSSDate) -> Path | None:
        """Expected cached orbit product, if a cache is configured."""
        cache = self.settings.paths.orbit_cache
        if cache is None:
            return None
        name = self.settings.paths.orbit_file_pattern.format(
            tier=tier.value, iso=day.iso, year=f"{day.year:04d}", doy=f"{day.doy:03d}"
        )
        return Path(cache) / name

    def retrieve_orbit(self, ctx: DayContext, tier: OrbitTier, log_file: Path | None) -> bool:
        """Ask the retrieval tool for the product and check it landed.

        Success is judged by the product file, not the exit code.
        """
        expected = self.orbit_file(tier, ctx.day)
        if expected is None:
            return True
        if expected.is_file():
            return True

        tool = self.settings.tools.orbit_retrieval
        options = RetrievalOptions(
            cache_root=Path(self.settings.paths.orbit_cache),
            tier=tier,
            day=ctx.day,
        )
        try:
            self.runner.run(
                "orbit_retrieval",
                options.to_argv(tool),
                log_file=log_file,
                timeout=tool.timeout,
            )
        except ToolError as e:
            logger.warning("Orbit retrieval unavailable", tier=tier.value, error=str(e))

        return expected.is_file()

    def presumed_unavailable(self, tier: OrbitTier, day: GNSSDate) -> bool:
        """Whether the day is younger than the tier's publication latency."""
        latency = self.settings.processing.orbit_latency_days.get(tier.key, 0)
        age = day.days_until(GNSSDate.from_date(self.clock()))
        return age < latency

    def run(
        self,
        ctx: DayContext,
        tiers: tuple[OrbitTier, ...],
        force: bool = False,
        log_file: Path | None = None,
    ) -> ScheduleOutcome:
        """Attempt ``tiers`` in order until one is terminal."""
        outcome = ScheduleOutcome()

        for index, tier in enumerate(tiers):
            lowest = index == len(tiers) - 1
            attempt = self.attempt(ctx, tier, lowest=lowest, force=force, log_file=log_file)
            outcome.attempts.append(attempt)
            if attempt.status != AttemptStatus.RECOVERABLE:
                break

        if outcome.errored:
            outcome.diagnostics = scan_header(ctx.obs_file, self.settings.processing.error_patterns)
            for line in outcome.diagnostics:
                self.printer.list_item(line)

        return outcome

    def attempt(
        self,
        ctx: DayContext,
        tier: OrbitTier,
        lowest: bool,
        force: bool = False,
        log_file: Path | None = None,
    ) -> TierAttempt:
        """Run a single tier."""
        if tier == OrbitTier.RAPID and not force and non_empty(ctx.artifact_path(tier)):
            self.printer.skip(f"{ctx.label}: {tier.value} solution already computed")
            return TierAttempt(tier, AttemptStatus.ALREADY_DONE, "already computed")

        orbit_source = tier.value
        unavailable = False
        if self.settings.paths.orbit_cache is not None:
            if not self.retrieve_orbit(ctx, tier, log_file):
                message = f"{tier.value} orbit not yet available"
                if lowest:
                    self.printer.warning(f"{ctx.label}: {message}, no lower tier left")
                    return TierAttempt(tier, AttemptStatus.UNAVAILABLE, message)
                self.printer.warning(f"{ctx.label}: {message}, trying next tier")
                return TierAttempt(tier, AttemptStatus.RECOVERABLE, message)
            orbit_source = str(Path(self.settings.paths.orbit_cache) / tier.value)
        else:
            unavailable = self.presumed_unavailable(tier, ctx.day)

        proc = self.settings.processing
        flags = TransformFlags.for_tier(tier, proc.nonfiducial, proc.cm2cf)
        options = EngineOptions(
            obs_file=ctx.obs_file,
            orbit_source=orbit_source,
            station=ctx.station.upper,
            antex_file=self.settings.paths.antex_file,
            covariance=flags.covariance_mode,
            nonfiducial=flags.nonfiducial,
            tree=proc.keep_tree,
        )

        self._clear_engine_outputs(ctx)
        self.printer.info(f"{ctx.label}: running engine with {tier.value} orbits")

        tool = self.settings.tools.engine
        try:
            run = self.runner.run(
                "engine",
                options.to_argv(tool),
                cwd=ctx.work_dir,
                log_file=log_file,
                timeout=tool.timeout,
            )
            return_code: int | None = run.return_code
            reason = f"engine exited with {run.return_code}"
        except ToolError as e:
            return_code = None
            reason = str(e)

        param_file = ctx.work_dir / self.settings.engine.param_file
        if return_code == 0 and non_empty(param_file):
            try:
                artifact = self.extractor.extract(ctx, tier, flags, log_file=log_file)
            except (ExtractionError, ToolError) as e:
                self.printer.fatal(f"{ctx.label}: extraction failed: {e}")
                return TierAttempt(tier, AttemptStatus.FATAL, str(e), flags, engine_invoked=True)

            self.printer.info(f"{ctx.label}: {tier.value} solution written to {artifact.path}")
            return TierAttempt(
                tier, AttemptStatus.SUCCESS, "ok", flags, artifact=artifact, engine_invoked=True
            )

        if return_code == 0:
            reason = f"empty or missing {self.settings.engine.param_file}"

        if unavailable and not lowest:
            self.printer.warning(
                f"{ctx.label}: {reason}; {tier.value} orbit not yet expected, trying next tier"
            )
            return TierAttempt(tier, AttemptStatus.RECOVERABLE, reason, flags, engine_invoked=True)

        self.printer.fatal(f"{ctx.label}: {tier.value} processing failed: {reason}")
        logger.error(
            "Engine failure",
            station=ctx.station.upper,
            date=ctx.day.iso,
            tier=tier.value,
            reason=reason,
        )
        return TierAttempt(tier, AttemptStatus.FATAL, reason, flags, engine_invoked=True)

    def _clear_engine_outputs(self, ctx: DayContext) -> None:
        """Remove outputs of a previous tier attempt in the same day."""
        engine = self.settings.engine
        for name in (engine.param_file, engine.cov_file, engine.tree_file):
            for path in ctx.work_dir.glob(f"{name}*"):
                if path.is_file():
                    path.unlink()
