"""
PyGNSS-PPP: daily Precise Point Positioning pipeline

Runs an external positioning engine over a set of GNSS stations and days,
falling back from Final to Rapid to Ultra orbit products, and stores one
canonical result file per station/day.
"""

__version__ = "1.0.0"
__author__ = "PyGNSS-PPP Team"

from pygnss_ppp.core.config import Settings, load_settings
from pygnss_ppp.processing.pipeline import PPPPipeline

__all__ = ["PPPPipeline", "Settings", "load_settings", "__version__"]
