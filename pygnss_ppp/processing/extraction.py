"""
Solution extraction.

Turns the positioning engine's output into one canonical result file per
station/day. Two sources are supported:

- Direct mode: the last three position rows of the time-series parameter
  file (tdp), copied unchanged.
- Covariance mode: position rows of the covariance file, optionally after
  a center-of-figure correction (in place) or a non-fiducial to fiducial
  Helmert transform (to a separate copy), reformatted into the tdp layout
  with a provenance suffix on the label.

Every row of the result file has five columns:

    epoch  nominal  value  sigma  label
"""

from __future__ import annotations

import re
import shutil
from dataclasses import dataclass, field
from pathlib import Path

from pygnss_ppp.core.config import Settings
from pygnss_ppp.core.context import DayContext, OrbitTier
from pygnss_ppp.core.exceptions import ExtractionError
from pygnss_ppp.processing.observations import non_empty
from pygnss_ppp.tools.options import FrameCorrectionOptions, HelmertOptions
from pygnss_ppp.tools.runner import ToolRunner
from pygnss_ppp.utils.logging import get_logger


logger = get_logger(__name__)

POSITION_LABEL = re.compile(r"\.State\.Pos\.[XYZ]$")
COVARIANCE_LABEL = re.compile(
    r"^(?:Station\.)?(?P<sta>[A-Za-z0-9]+)\.(?:STA|State\.Pos)\.(?P<comp>[XYZ])$",
    re.IGNORECASE,
)

CM2CF_DESCRIPTION = "applied center-of-figure correction"
NF2F_DESCRIPTION = "applied non-fiducial-to-fiducial transform"


@dataclass(frozen=True)
class TransformFlags:
    """Post-solution transforms active for one tier attempt.

    Non-fiducial processing and the center-of-figure correction are
    mutually exclusive.
    """

    nonfiducial: bool = False
    cm2cf: bool = False

    def __post_init__(self) -> None:
        if self.nonfiducial and self.cm2cf:
            raise ValueError("Non-fiducial and center-of-figure transforms are exclusive")

    @classmethod
    def for_tier(cls, tier: OrbitTier, nonfiducial: bool, cm2cf: bool) -> TransformFlags:
        """Flags permitted for ``tier`` given what was requested.

        Non-fiducial runs only on the Final tier; the center-of-figure
        correction applies whenever non-fiducial mode is not active.
        """
        nf = nonfiducial and tier == OrbitTier.FINAL
        return cls(nonfiducial=nf, cm2cf=cm2cf and not nf)

    @property
    def covariance_mode(self) -> bool:
        return self.nonfiducial or self.cm2cf

    @property
    def description(self) -> str:
        if self.nonfiducial:
            return NF2F_DESCRIPTION
        if self.cm2cf:
            return CM2CF_DESCRIPTION
        return ""

    @property
    def label_suffix(self) -> str:
        if self.nonfiducial:
            return ".nf2f"
        if self.cm2cf:
            return ".cm2cf"
        return ""


@dataclass(frozen=True)
class ResultRow:
    """One parameter row in the canonical layout."""

    epoch: str
    nominal: str
    value: str
    sigma: str
    label: str

    @classmethod
    def from_tdp(cls, line: str) -> ResultRow | None:
        """Parse a tdp line; returns None for anything that is not a row."""
        fields = line.split()
        if len(fields) < 5:
            return None
        try:
            for f in fields[:4]:
                float(f)
        except ValueError:
            return None
        return cls(*fields[:5])

    def format(self) -> str:
        return (
            f"{self.epoch:>16} {self.nominal:>22} {self.value:>22} "
            f"{self.sigma:>22} {self.label}"
        )


@dataclass
class ResultArtifact:
    """The canonical output for one station/day."""

    path: Path
    tier: OrbitTier
    rows: list[ResultRow] = field(default_factory=list)
    description: str = ""
    covariance_source: Path | None = None

    @property
    def position_rows(self) -> list[ResultRow]:
        return [r for r in self.rows if ".State.Pos." in r.label]

    def render(self) -> str:
        return "".join(row.format() + "\n" for row in self.rows)

    def write(self) -> Path:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(self.render())
        return self.path


def read_tdp(path: Path) -> list[ResultRow]:
    """All parameter rows of a tdp file, in file order."""
    rows = []
    with open(path) as f:
        for line in f:
            row = ResultRow.from_tdp(line)
            if row is not None:
                rows.append(row)
    return rows


def direct_position_rows(path: Path) -> list[ResultRow]:
    """The last three position rows of a tdp file."""
    positions = [r for r in read_tdp(path) if POSITION_LABEL.search(r.label)]
    return positions[-3:]


def covariance_position_rows(path: Path, label_suffix: str = "") -> list[ResultRow]:
    """Position rows of a covariance file, reformatted to the tdp layout.

    Parameter lines look like ``index name epoch value sigma``; correlation
    lines (``index index corr``) and headers are ignored.
    """
    rows = []
    with open(path) as f:
        for line in f:
            fields = line.split()
            if len(fields) != 5 or not fields[0].isdigit():
                continue
            match = COVARIANCE_LABEL.match(fields[1])
            if not match:
                continue
            label = f"Station.{match['sta'].upper()}.State.Pos.{match['comp'].upper()}"
            rows.append(
                ResultRow(
                    epoch=fields[2],
                    nominal="0",
                    value=fields[3],
                    sigma=fields[4],
                    label=label + label_suffix,
                )
            )
    return rows


def troposphere_rows(path: Path, pattern: str) -> list[ResultRow]:
    """tdp rows whose label matches the troposphere pattern."""
    regex = re.compile(pattern)
    return [r for r in read_tdp(path) if regex.search(r.label)]


class SolutionExtractor:
    """Build the ResultArtifact for an accepted tier attempt."""

    def __init__(self, settings: Settings, runner: ToolRunner):
        self.settings = settings
        self.runner = runner

    def extract(
        self,
        ctx: DayContext,
        tier: OrbitTier,
        flags: TransformFlags,
        log_file: Path | None = None,
    ) -> ResultArtifact:
        """Extract, write and return the artifact.

        Raises:
            ExtractionError: If no position rows could be produced
        """
        engine = self.settings.engine
        param_file = ctx.work_dir / engine.param_file
        artifact = ResultArtifact(
            path=ctx.artifact_path(tier),
            tier=tier,
            description=flags.description,
        )

        if flags.covariance_mode:
            cov_file = ctx.work_dir / engine.cov_file
            if not non_empty(cov_file):
                raise ExtractionError(f"Covariance file missing or empty: {cov_file}")

            source = cov_file
            if flags.cm2cf:
                source = self._apply_cm2cf(cov_file, log_file)
            if flags.nonfiducial:
                source = self._apply_helmert(ctx, cov_file, log_file)

            if not non_empty(source):
                raise ExtractionError(f"Transformed covariance file is empty: {source}")

            artifact.rows = covariance_position_rows(source, flags.label_suffix)
            artifact.covariance_source = source
        else:
            artifact.rows = direct_position_rows(param_file)

        if not artifact.rows:
            raise ExtractionError(f"No position rows for {ctx.label}")

        if self.settings.processing.troposphere and param_file.exists():
            artifact.rows += troposphere_rows(
                param_file, self.settings.processing.troposphere_pattern
            )

        artifact.write()
        if artifact.covariance_source is not None:
            shutil.copy2(
                artifact.covariance_source,
                artifact.path.with_name(artifact.path.name + ".gdcov"),
            )

        logger.info(
            "Wrote result",
            station=ctx.station.upper,
            date=ctx.day.iso,
            tier=tier.value,
            rows=len(artifact.rows),
            transforms=flags.description or "none",
        )
        return artifact

    def _apply_cm2cf(self, cov_file: Path, log_file: Path | None) -> Path:
        """Correct the covariance file in place, keeping pre/post copies."""
        shutil.copy2(cov_file, cov_file.with_name(cov_file.name + ".pre_cf"))

        tool = self.settings.tools.frame_correction
        options = FrameCorrectionOptions(cov_file=cov_file)
        run = self.runner.run(
            "frame_correction",
            options.to_argv(tool),
            cwd=cov_file.parent,
            log_file=log_file,
            timeout=tool.timeout,
        )
        if run.return_code != 0:
            logger.warning("Frame correction returned non-zero", return_code=run.return_code)

        if cov_file.exists():
            shutil.copy2(cov_file, cov_file.with_name(cov_file.name + ".post_cf"))
        return cov_file

    def _apply_helmert(self, ctx: DayContext, cov_file: Path, log_file: Path | None) -> Path:
        """Transform to a separate copy using the date-matched parameters."""
        paths = self.settings.paths
        if paths.helmert_dir is None:
            raise ExtractionError("Non-fiducial processing requires paths.helmert_dir")

        params = Path(paths.helmert_dir) / paths.helmert_pattern.format(**ctx.tokens)
        if not params.exists():
            raise ExtractionError(f"No transformation parameters for {ctx.day.iso}: {params}")

        output = cov_file.with_name(cov_file.name + ".nf2f")
        tool = self.settings.tools.helmert
        options = HelmertOptions(cov_file=cov_file, params_file=params, output=output)
        run = self.runner.run(
            "helmert",
            options.to_argv(tool),
            cwd=cov_file.parent,
            log_file=log_file,
            timeout=tool.timeout,
        )
        if run.return_code != 0:
            logger.warning("Helmert transform returned non-zero", return_code=run.return_code)
        return output
