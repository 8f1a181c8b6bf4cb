"""External tool invocation."""

from pygnss_ppp.tools.options import (
    AssemblerOptions,
    EngineOptions,
    FrameCorrectionOptions,
    HelmertOptions,
    LookupOptions,
    RetrievalOptions,
    ToolOptions,
    WindowOptions,
)
from pygnss_ppp.tools.runner import ToolResult, ToolRunner, append_log

__all__ = [
    "AssemblerOptions",
    "EngineOptions",
    "FrameCorrectionOptions",
    "HelmertOptions",
    "LookupOptions",
    "RetrievalOptions",
    "ToolOptions",
    "WindowOptions",
    "ToolResult",
    "ToolRunner",
    "append_log",
]
