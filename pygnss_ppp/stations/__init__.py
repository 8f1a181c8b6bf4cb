"""Station list and metadata resolution."""

from pygnss_ppp.stations.metadata import (
    MetadataResolver,
    clean_value,
    load_stations,
    parse_position,
)

__all__ = [
    "MetadataResolver",
    "clean_value",
    "load_stations",
    "parse_position",
]
