"""
Station list and metadata override resolution.

Receiver, antenna and approximate-position overrides come from three
sources, applied in order:

1. inline per-station configuration
2. inventory (station history) table, keyed by (station, YYYY-DDD)
3. site-log table, keyed by (station, YYYY-MM-DD); the only source that
   also supplies an approximate position

A later source only wins where it has a non-empty value. Lookup failures
never abort a day; they degrade to "no override" with a warning.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pygnss_ppp.core.config import Settings, ToolConfig
from pygnss_ppp.core.context import MetadataOverride, Station
from pygnss_ppp.core.exceptions import StationError, ToolError
from pygnss_ppp.tools.options import LookupOptions
from pygnss_ppp.tools.runner import ToolRunner
from pygnss_ppp.utils.dates import GNSSDate
from pygnss_ppp.utils.logging import get_logger


logger = get_logger(__name__)

_QUOTES = "\"'`"


def load_stations(settings: Settings) -> list[Station]:
    """Build the station list for a run.

    The configured list wins; otherwise every sub-directory of
    ``station_dir`` whose name is a plausible station code is used.

    Raises:
        StationError: If ``station_dir`` is configured but missing
    """
    if settings.stations:
        stations: dict[str, Station] = {}
        for entry in settings.stations:
            station = Station.from_entry(entry)
            stations.setdefault(station.code, station)
        return list(stations.values())

    if settings.station_dir is None:
        return []

    station_dir = Path(settings.station_dir)
    if not station_dir.is_dir():
        raise StationError(str(station_dir), "station directory not found")

    codes = sorted(
        {p.name.upper() for p in station_dir.iterdir() if p.is_dir() and p.name.isalnum()}
    )
    return [Station(code) for code in codes]


def clean_value(value: Any) -> str | None:
    """Strip whitespace and quoting; empty becomes None."""
    if value is None:
        return None
    text = str(value).strip().strip(_QUOTES).strip()
    return text or None


def parse_position(value: Any) -> tuple[float, float, float] | None:
    """Parse an approximate XYZ position from a list or a string."""
    if value is None:
        return None
    if isinstance(value, str):
        value = clean_value(value)
        if value is None:
            return None
        value = value.replace(",", " ").split()
    try:
        xyz = tuple(float(clean_value(v) or "nan") for v in value)
    except (TypeError, ValueError):
        return None
    if len(xyz) != 3 or any(c != c for c in xyz):
        return None
    # An all-zero position is the RINEX "unknown" placeholder
    if all(c == 0.0 for c in xyz):
        return None
    return xyz  # type: ignore[return-value]


class MetadataResolver:
    """Resolve MetadataOverride for a station/day.

    Usage:
        resolver = MetadataResolver(settings, ToolRunner())
        overrides = resolver.resolve(Station("ABCD"), GNSSDate(2024, 1, 15))
    """

    def __init__(self, settings: Settings, runner: ToolRunner):
        self.settings = settings
        self.runner = runner

    def resolve(self, station: Station, day: GNSSDate) -> MetadataOverride:
        resolved = MetadataOverride(
            receiver=clean_value(station.receiver),
            antenna=clean_value(station.antenna),
            approx_position=station.approx_position,
        )

        resolved = resolved.merge(
            self._lookup(
                "inventory_lookup",
                self.settings.tools.inventory_lookup,
                self.settings.paths.inventory_table,
                station,
                day.year_doy,
                with_position=False,
            )
        )
        resolved = resolved.merge(
            self._lookup(
                "site_log_lookup",
                self.settings.tools.site_log_lookup,
                self.settings.paths.site_log_table,
                station,
                day.iso,
                with_position=True,
            )
        )

        logger.debug(
            "Resolved metadata",
            station=station.upper,
            date=day.iso,
            receiver=resolved.receiver,
            antenna=resolved.antenna,
            approx_position=resolved.approx_position,
        )
        return resolved

    def _lookup(
        self,
        name: str,
        tool: ToolConfig,
        source: Path | None,
        station: Station,
        key: str,
        with_position: bool,
    ) -> MetadataOverride:
        if source is None:
            return MetadataOverride()

        if not Path(source).exists():
            logger.warning("Metadata table missing", tool=name, path=str(source))
            return MetadataOverride()

        options = LookupOptions(source=Path(source), station=station.upper, key=key)
        try:
            result = self.runner.run(name, options.to_argv(tool), timeout=tool.timeout)
        except ToolError as e:
            logger.warning("Metadata lookup unavailable", tool=name, error=str(e))
            return MetadataOverride()

        if not result.success:
            logger.warning(
                "Metadata lookup failed",
                tool=name,
                station=station.upper,
                key=key,
                return_code=result.return_code,
            )
            return MetadataOverride()

        if not result.stdout.strip():
            return MetadataOverride()

        try:
            data = json.loads(result.stdout)
        except json.JSONDecodeError as e:
            logger.warning("Metadata lookup returned invalid JSON", tool=name, error=str(e))
            return MetadataOverride()

        if not isinstance(data, dict):
            logger.warning("Metadata lookup returned non-object JSON", tool=name)
            return MetadataOverride()

        return MetadataOverride(
            receiver=clean_value(data.get("receiver")),
            antenna=clean_value(data.get("antenna")),
            approx_position=parse_position(data.get("approx_position")) if with_position else None,
        )
