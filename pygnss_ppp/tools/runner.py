"""
Synchronous runner for external tools.

Every collaborator of the pipeline (assembler, orbit retrieval, the
positioning engine, frame transforms, lookups) is a separate program. This
module runs them one at a time and blocks until each one exits.
"""

from __future__ import annotations

import shutil
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path

from pygnss_ppp.core.exceptions import ToolError
from pygnss_ppp.utils.logging import get_logger


logger = get_logger(__name__)


@dataclass
class ToolResult:
    """Result from one tool execution."""

    tool: str
    return_code: int
    stdout: str = ""
    stderr: str = ""
    runtime_seconds: float = 0.0

    @property
    def success(self) -> bool:
        return self.return_code == 0


class ToolRunner:
    """Runs external programs and optionally tees their output to a log."""

    def run(
        self,
        tool: str,
        argv: list[str],
        cwd: Path | str | None = None,
        log_file: Path | str | None = None,
        timeout: int = 3600,
    ) -> ToolResult:
        """Run a tool to completion.

        Args:
            tool: Logical tool name (e.g., 'engine', 'assembler')
            argv: Full argument vector, executable first
            cwd: Working directory
            log_file: Append the command line, stdout and stderr here
            timeout: Timeout in seconds

        Returns:
            ToolResult

        Raises:
            ToolError: If the executable is missing or the run times out
        """
        exe = argv[0]
        if shutil.which(exe) is None and not Path(exe).is_file():
            raise ToolError(tool, f"Executable not found: {exe}")

        logger.debug("Running tool", tool=tool, argv=argv, cwd=str(cwd) if cwd else None)

        start = time.monotonic()
        try:
            proc = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                timeout=timeout,
                cwd=str(cwd) if cwd else None,
            )
        except subprocess.TimeoutExpired:
            raise ToolError(tool, f"Timeout after {timeout} seconds")

        result = ToolResult(
            tool=tool,
            return_code=proc.returncode,
            stdout=proc.stdout or "",
            stderr=proc.stderr or "",
            runtime_seconds=time.monotonic() - start,
        )

        if log_file:
            append_log(log_file, argv, result)

        if not result.success:
            logger.warning(
                "Tool returned non-zero",
                tool=tool,
                return_code=result.return_code,
            )

        return result


def append_log(log_file: Path | str, argv: list[str], result: ToolResult) -> None:
    """Append one tool invocation to a run log."""
    with open(log_file, "a") as f:
        f.write(f"$ {' '.join(argv)}\n")
        if result.stdout:
            f.write(result.stdout)
            if not result.stdout.endswith("\n"):
                f.write("\n")
        if result.stderr:
            f.write(result.stderr)
            if not result.stderr.endswith("\n"):
                f.write("\n")
        f.write(f"# exit {result.return_code}\n")
