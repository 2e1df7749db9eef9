"""
Speed sources: the value the link supervisor transmits.

- gps: latest location speed
- fused: accelerometer integration corrected by location speed
- disabled: always zero
"""

from typing import Optional, TYPE_CHECKING

from vss_daemon.sources.base import SpeedSample, SpeedSource
from vss_daemon.sources.disabled import DisabledSpeedSource
from vss_daemon.sources.fused import FusedSpeedSource
from vss_daemon.sources.gps import GpsSpeedSource

if TYPE_CHECKING:
    from vss_daemon.feeds.base import Feed

SOURCE_KINDS = ("gps", "fused", "disabled")

__all__ = [
    "DisabledSpeedSource",
    "FusedSpeedSource",
    "GpsSpeedSource",
    "SOURCE_KINDS",
    "SpeedSample",
    "SpeedSource",
    "create_speed_source",
]


def create_speed_source(
    kind: str, feed: Optional["Feed"], deadband_mph: float
) -> SpeedSource:
    """Build the speed source variant named by kind."""
    if kind == "gps":
        return GpsSpeedSource(feed, deadband_mph=deadband_mph)
    if kind == "fused":
        return FusedSpeedSource(feed, deadband_mph=deadband_mph)
    if kind == "disabled":
        return DisabledSpeedSource()
    raise ValueError("unknown speed source: %r" % kind)
