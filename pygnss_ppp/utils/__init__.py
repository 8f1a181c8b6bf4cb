"""Utility modules for PyGNSS-PPP."""

from pygnss_ppp.utils.compression import (
    CompressionResult,
    archive_directory,
    compress_gzip,
)
from pygnss_ppp.utils.dates import (
    GNSSDate,
    date_from_doy,
    doy_from_date,
    gps_week_from_mjd,
    last_days,
    mjd_from_date,
)
from pygnss_ppp.utils.logging import (
    MessageType,
    StatusPrinter,
    get_logger,
    setup_logging,
)

__all__ = [
    # Compression
    "CompressionResult",
    "archive_directory",
    "compress_gzip",
    # Dates
    "GNSSDate",
    "date_from_doy",
    "doy_from_date",
    "gps_week_from_mjd",
    "last_days",
    "mjd_from_date",
    # Logging
    "MessageType",
    "StatusPrinter",
    "get_logger",
    "setup_logging",
]
