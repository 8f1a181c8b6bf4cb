"""
Run and day context values.

Everything a component needs to know about the station/day it is working
on travels in an immutable DayContext built fresh for each (station, day).
Nothing about the current station or day is kept in mutable shared state.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path

from pygnss_ppp.core.config import StationEntry
from pygnss_ppp.utils.dates import GNSSDate, last_days


class OrbitTier(str, Enum):
    """Orbit product tiers, declared from highest to lowest precision."""

    FINAL = "Final"
    RAPID = "Rapid"
    ULTRA = "Ultra"

    @property
    def suffix(self) -> str:
        """Result file suffix; the Final tier owns the bare path."""
        return _TIER_SUFFIXES[self]

    @property
    def key(self) -> str:
        """Lower-case key used in configuration maps."""
        return self.name.lower()

    @classmethod
    def ordered(cls) -> tuple[OrbitTier, ...]:
        """All tiers, highest precision first."""
        return tuple(cls)


_TIER_SUFFIXES = {
    OrbitTier.FINAL: "",
    OrbitTier.RAPID: "ql",
    OrbitTier.ULTRA: "ultra",
}


class TierMode(str, Enum):
    """Tier restriction selected on the command line."""

    ALL = "all"
    FINAL = "final"
    RAPID = "rapid"
    ULTRA = "ultra"
    REALTIME = "realtime"

    def tiers(self) -> tuple[OrbitTier, ...]:
        """Tiers to attempt, in priority order."""
        if self == TierMode.ALL:
            return OrbitTier.ordered()
        if self == TierMode.REALTIME:
            return (OrbitTier.ULTRA,)
        return (OrbitTier[self.name],)

    @property
    def is_fallback(self) -> bool:
        """Whether more than one tier may be attempted."""
        return self == TierMode.ALL


@dataclass(frozen=True)
class Station:
    """A station to process. Codes are case-insensitive."""

    code: str
    receiver: str | None = None
    antenna: str | None = None
    approx_position: tuple[float, float, float] | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "code", self.code.strip().upper())

    @property
    def upper(self) -> str:
        return self.code

    @property
    def lower(self) -> str:
        return self.code.lower()

    @classmethod
    def from_entry(cls, entry: StationEntry) -> Station:
        return cls(
            code=entry.code,
            receiver=entry.receiver,
            antenna=entry.antenna,
            approx_position=entry.approx_position,
        )


@dataclass(frozen=True)
class MetadataOverride:
    """Receiver/antenna/position overrides for the observation assembler."""

    receiver: str | None = None
    antenna: str | None = None
    approx_position: tuple[float, float, float] | None = None

    @property
    def is_empty(self) -> bool:
        return not (self.receiver or self.antenna or self.approx_position)

    def merge(self, other: MetadataOverride) -> MetadataOverride:
        """Return a copy where non-empty fields of ``other`` win.

        Empty or missing values in ``other`` never clobber values
        already resolved here.
        """
        return MetadataOverride(
            receiver=other.receiver or self.receiver,
            antenna=other.antenna or self.antenna,
            approx_position=other.approx_position or self.approx_position,
        )


@dataclass(frozen=True)
class RunOptions:
    """Immutable run configuration resolved by the command line."""

    days: int = 1
    dates: tuple[GNSSDate, ...] = ()
    tier_mode: TierMode = TierMode.ALL
    force: bool = False
    debug: bool = False
    fullog: bool = False
    lock: bool = False

    @property
    def realtime(self) -> bool:
        return self.tier_mode == TierMode.REALTIME

    def processing_days(self, today: GNSSDate | None = None) -> list[GNSSDate]:
        """Days to process, oldest first.

        An explicit date list wins over the day count.
        """
        if self.dates:
            return sorted(set(self.dates))
        return last_days(self.days, today)


def observation_name(station: Station, day: GNSSDate) -> str:
    """Daily observation file name (ssssddd0.yyo)."""
    return f"{station.lower}{day.doy:03d}0.{day.yy:02d}o"


def path_tokens(station: Station, day: GNSSDate) -> dict[str, str]:
    """Template tokens for a station/day."""
    return {
        "station": station.lower,
        "STATION": station.upper,
        "year": f"{day.year:04d}",
        "yy": f"{day.yy:02d}",
        "month": f"{day.month:02d}",
        "day": f"{day.day:02d}",
        "doy": f"{day.doy:03d}",
        "gpsweek": f"{day.gps_week:04d}",
        "iso": day.iso,
    }


@dataclass(frozen=True)
class DayContext:
    """Everything known about one (station, day) unit of work."""

    station: Station
    day: GNSSDate
    work_dir: Path
    result_root: Path
    overrides: MetadataOverride = field(default_factory=MetadataOverride)
    realtime: bool = False

    @property
    def label(self) -> str:
        """Short human-readable identifier."""
        return f"{self.station.upper} {self.day.iso}"

    @property
    def tokens(self) -> dict[str, str]:
        return path_tokens(self.station, self.day)

    @property
    def result_dir(self) -> Path:
        return self.result_root / self.station.upper / f"{self.day.year:04d}"

    @property
    def primary_path(self) -> Path:
        """The unsuffixed result file that gates idempotency."""
        return self.result_dir / f"{self.day.iso}.{self.station.upper}"

    def artifact_path(self, tier: OrbitTier) -> Path:
        """Result file for an accepted tier."""
        if not tier.suffix:
            return self.primary_path
        return self.primary_path.with_name(f"{self.primary_path.name}.{tier.suffix}")

    @property
    def obs_file(self) -> Path:
        """The observation file the engine consumes."""
        return self.work_dir / observation_name(self.station, self.day)

    def with_overrides(self, overrides: MetadataOverride) -> DayContext:
        return replace(self, overrides=overrides)
