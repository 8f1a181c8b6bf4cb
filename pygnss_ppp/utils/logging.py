"""
Logging utilities for PyGNSS-PPP.

Uses structlog for structured logging with optional JSON output, plus a
status printer for the one-line human-readable messages the pipeline
echoes at every gate and decision.
"""

from __future__ import annotations

import logging
import sys
from enum import Enum
from pathlib import Path
from typing import Any, Callable

import structlog


def setup_logging(
    level: str = "INFO",
    log_dir: Path | str | None = None,
    log_to_file: bool = True,
    log_to_console: bool = True,
    json_format: bool = False,
) -> None:
    """Configure logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Directory for log files
        log_to_file: Whether to log to file
        log_to_console: Whether to log to console
        json_format: Use JSON format for logs
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    handlers: list[logging.Handler] = []

    if log_to_console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(log_level)
        handlers.append(console_handler)

    if log_to_file and log_dir:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path / "pygnss_ppp.log")
        file_handler.setLevel(log_level)
        handlers.append(file_handler)

    logging.basicConfig(
        level=log_level,
        handlers=handlers,
        format="%(message)s",
        force=True,
    )

    processors: list[Any] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured logger instance
    """
    return structlog.get_logger(name)


# =============================================================================
# Status printer
# =============================================================================


class MessageType(str, Enum):
    """Status message types.

    - INFO: Informational message
    - SKIP: Gate decided to skip work (not an error)
    - WARNING: Recoverable problem
    - FATAL: Day-level or run-level failure
    - LIST: List item
    - SILENT: Quiet message (minimal formatting)
    """

    INFO = "INFO"
    SKIP = "SKIP"
    WARNING = "WARNING"
    FATAL = "FATAL"
    LIST = "LIST"
    SILENT = "SILENT"


class StatusPrinter:
    """Formatted one-line status printer.

    Every gate and decision in the pipeline announces itself through this
    printer, so that even skips are visible to the operator.

    Usage:
        printer = StatusPrinter()
        printer.info("ABCD 2024-01-15: processing")
        printer.skip("ABCD 2024-01-15: already computed")
        printer.warning("Final orbit not yet available")
    """

    PREFIXES = {
        MessageType.INFO: "PPP INFO",
        MessageType.SKIP: "PPP SKIP",
        MessageType.WARNING: "PPP WARNING",
        MessageType.FATAL: "PPP FATAL",
    }

    def __init__(self, output_func: Callable[[str], Any] | None = None):
        """Initialize status printer.

        Args:
            output_func: Function to use for output (default: print)
        """
        self._output = output_func or print

    def print_message(self, msg_type: MessageType | str, message: str) -> None:
        """Print formatted message.

        Args:
            msg_type: Message type (from MessageType enum or string)
            message: Message text
        """
        if isinstance(msg_type, str):
            msg_type = MessageType(msg_type.upper())

        if msg_type == MessageType.SILENT:
            self._output(f"{'':<12}  ({message})")
        elif msg_type == MessageType.LIST:
            self._output(f"{'':<12}  - {message}")
        else:
            self._output(f"{self.PREFIXES[msg_type]:<12}: {message}")

    def info(self, message: str) -> None:
        """Print info message."""
        self.print_message(MessageType.INFO, message)

    def skip(self, message: str) -> None:
        """Print skip message."""
        self.print_message(MessageType.SKIP, message)

    def warning(self, message: str) -> None:
        """Print warning message."""
        self.print_message(MessageType.WARNING, message)

    def fatal(self, message: str) -> None:
        """Print fatal error message."""
        self.print_message(MessageType.FATAL, message)

    def silent(self, message: str) -> None:
        """Print silent/quiet message."""
        self.print_message(MessageType.SILENT, message)

    def list_item(self, message: str) -> None:
        """Print list item."""
        self.print_message(MessageType.LIST, message)
