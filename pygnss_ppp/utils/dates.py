"""
Date utilities for daily PPP processing.

Provides the conversions a station/day needs for path building:
- Modified Julian Date (MJD)
- GPS Week and Day of Week
- Year and Day of Year (DOY)
- Calendar dates
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone


# Constants
GPS_EPOCH_MJD = 44244  # January 6, 1980


def mjd_from_date(year: int, month: int, day: int) -> int:
    """Calculate Modified Julian Date (at 00:00 UTC) from calendar date.

    Args:
        year: Year (e.g., 2024)
        month: Month (1-12)
        day: Day of month (1-31)

    Returns:
        MJD as int
    """
    a = (14 - month) // 12
    y = year + 4800 - a
    m = month + 12 * a - 3

    # Julian Day Number at noon
    jdn = day + (153 * m + 2) // 5 + 365 * y + y // 4 - y // 100 + y // 400 - 32045

    return jdn - 2400001


def gps_week_from_mjd(mjd: int) -> tuple[int, int]:
    """Calculate GPS week and day of week from MJD.

    Args:
        mjd: Modified Julian Date

    Returns:
        Tuple of (GPS week, day of week) where Sunday=0
    """
    days_since_epoch = mjd - GPS_EPOCH_MJD
    return days_since_epoch // 7, days_since_epoch % 7


def doy_from_date(year: int, month: int, day: int) -> int:
    """Calculate day of year from calendar date."""
    return date(year, month, day).timetuple().tm_yday


def date_from_doy(year: int, doy: int) -> tuple[int, int]:
    """Convert year and DOY to (month, day)."""
    if not 1 <= doy <= 366:
        raise ValueError(f"DOY {doy} out of range")
    dt = date(year, 1, 1) + timedelta(days=doy - 1)
    if dt.year != year:
        raise ValueError(f"DOY {doy} out of range for {year}")
    return dt.month, dt.day


@dataclass(frozen=True, order=True)
class GNSSDate:
    """A processing day.

    Only the calendar date is stored. Every other representation
    (DOY, two-digit year, ISO form, GPS week, MJD) is derived on access.
    """

    year: int
    month: int
    day: int

    def __post_init__(self) -> None:
        """Validate date components."""
        if not 1970 <= self.year <= 2100:
            raise ValueError(f"Year {self.year} out of range")
        # Raises ValueError for impossible dates such as Feb 30
        date(self.year, self.month, self.day)

    @property
    def date(self) -> date:
        """Get as datetime.date."""
        return date(self.year, self.month, self.day)

    @property
    def doy(self) -> int:
        """Get day of year (1-366)."""
        return doy_from_date(self.year, self.month, self.day)

    @property
    def yy(self) -> int:
        """Get two-digit year."""
        return self.year % 100

    @property
    def iso(self) -> str:
        """Get dashed ISO form (YYYY-MM-DD)."""
        return f"{self.year:04d}-{self.month:02d}-{self.day:02d}"

    @property
    def year_doy(self) -> str:
        """Get YYYY-DDD form."""
        return f"{self.year:04d}-{self.doy:03d}"

    @property
    def mjd(self) -> int:
        """Get Modified Julian Date."""
        return mjd_from_date(self.year, self.month, self.day)

    @property
    def gps_week(self) -> int:
        """Get GPS week number."""
        week, _ = gps_week_from_mjd(self.mjd)
        return week

    @property
    def day_of_week(self) -> int:
        """Get GPS day of week (0=Sunday)."""
        _, dow = gps_week_from_mjd(self.mjd)
        return dow

    def start(self) -> datetime:
        """Get 00:00 UTC of this day."""
        return datetime(self.year, self.month, self.day, tzinfo=timezone.utc)

    @classmethod
    def from_date(cls, d: date) -> GNSSDate:
        """Create from a date (or datetime) object."""
        return cls(d.year, d.month, d.day)

    @classmethod
    def from_doy(cls, year: int, doy: int) -> GNSSDate:
        """Create from year and day of year."""
        month, day = date_from_doy(year, doy)
        return cls(year, month, day)

    @classmethod
    def today(cls) -> GNSSDate:
        """Create for the current UTC day."""
        return cls.from_date(datetime.now(timezone.utc))

    @classmethod
    def parse(cls, value: str) -> GNSSDate:
        """Parse YYYY-MM-DD, YYYY/DOY or YYYYDOY.

        Raises:
            ValueError: If the format is not recognized
        """
        value = value.strip()

        if "-" in value:
            parts = value.split("-")
            if len(parts) == 3:
                return cls(int(parts[0]), int(parts[1]), int(parts[2]))

        if "/" in value:
            parts = value.split("/")
            if len(parts) == 2:
                return cls.from_doy(int(parts[0]), int(parts[1]))

        if len(value) == 7 and value.isdigit():
            return cls.from_doy(int(value[:4]), int(value[4:]))

        raise ValueError(f"Invalid date format: {value}. Use YYYY-MM-DD or YYYY/DOY")

    def add_days(self, days: int) -> GNSSDate:
        """Return new GNSSDate with days added."""
        return GNSSDate.from_date(self.date + timedelta(days=days))

    def days_until(self, other: GNSSDate) -> int:
        """Number of days from this date to other."""
        return other.mjd - self.mjd

    def __str__(self) -> str:
        return self.iso


def last_days(count: int, end: GNSSDate | None = None) -> list[GNSSDate]:
    """Build the list of the last ``count`` days ending at ``end``, oldest first.

    Args:
        count: Number of days (>= 1)
        end: Last day (default: today UTC)

    Returns:
        List of GNSSDate in ascending order
    """
    if count < 1:
        raise ValueError(f"Day count must be >= 1, got {count}")
    end = end or GNSSDate.today()
    return [end.add_days(-offset) for offset in range(count - 1, -1, -1)]
