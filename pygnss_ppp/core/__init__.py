"""Core configuration, run context and guards."""

from pygnss_ppp.core.config import Settings, load_settings
from pygnss_ppp.core.context import (
    DayContext,
    MetadataOverride,
    OrbitTier,
    RunOptions,
    Station,
    TierMode,
)
from pygnss_ppp.core.exceptions import (
    PPPError,
    ConfigurationError,
    ExtractionError,
    LockError,
    PreflightError,
    ProcessingError,
    ProductNotAvailableError,
    StationError,
    ToolError,
)
from pygnss_ppp.core.guard import ProcessGuard, check_disk_space

__all__ = [
    "Settings",
    "load_settings",
    "DayContext",
    "MetadataOverride",
    "OrbitTier",
    "RunOptions",
    "Station",
    "TierMode",
    "PPPError",
    "ConfigurationError",
    "ExtractionError",
    "LockError",
    "PreflightError",
    "ProcessingError",
    "ProductNotAvailableError",
    "StationError",
    "ToolError",
    "ProcessGuard",
    "check_disk_space",
]
