"""
Disabled speed source: always zero.
"""

import logging

from vss_daemon.sources.base import SpeedSample, SpeedSource

logger = logging.getLogger(__name__)

DISABLED_SAMPLE = SpeedSample(speed_mph=0.0, raw_mph=0.0, source="DISABLED")


class DisabledSpeedSource(SpeedSource):
    """Reports a zeroed sample; used when no live sensors are wired."""

    kind = "disabled"

    def start(self) -> None:
        logger.info("Speed source disabled; transmitting zero")

    def stop(self) -> None:
        logger.debug("Disabled speed source stopped")

    def latest(self) -> SpeedSample:
        return DISABLED_SAMPLE
