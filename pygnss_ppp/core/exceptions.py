"""
Custom exceptions for PyGNSS-PPP.

Provides a hierarchy of exceptions for different error conditions.
"""

from __future__ import annotations


class PPPError(Exception):
    """Base exception for all PyGNSS-PPP errors."""

    pass


class ConfigurationError(PPPError):
    """Configuration-related errors."""

    pass


class ProductNotAvailableError(PPPError):
    """Orbit product not available."""

    def __init__(self, tier: str, date: str, message: str | None = None):
        self.tier = tier
        self.date = date
        super().__init__(message or f"{tier} orbit not available for {date}")


class ToolError(PPPError):
    """External tool errors (missing executable, timeout, bad options)."""

    def __init__(self, tool: str, message: str, return_code: int | None = None):
        self.tool = tool
        self.return_code = return_code
        super().__init__(f"{tool} failed: {message}")


class ExtractionError(PPPError):
    """Solution extraction produced no usable rows."""

    pass


class ProcessingError(PPPError):
    """Processing pipeline errors."""

    def __init__(self, stage: str, message: str):
        self.stage = stage
        super().__init__(f"Processing failed at {stage}: {message}")


class StationError(PPPError):
    """Station configuration or data errors."""

    def __init__(self, station_id: str, message: str):
        self.station_id = station_id
        super().__init__(f"Station {station_id}: {message}")


class LockError(PPPError):
    """Another pipeline instance holds the process lock."""

    def __init__(self, lock_path: str, pid: int | None = None):
        self.lock_path = lock_path
        self.pid = pid
        holder = f" (held by PID {pid})" if pid else ""
        super().__init__(f"Lock {lock_path} is already claimed{holder}")


class PreflightError(PPPError):
    """Run-level precondition failed before any station was touched."""

    pass
