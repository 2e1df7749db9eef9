"""
GPS-only speed source: reports the latest absolute speed in mph.
"""

import time
from typing import Callable, Optional, TYPE_CHECKING

from vss_daemon.sources.base import (
    DISPLAY_DEADBAND_MPH,
    MPS_TO_MPH,
    FeedSpeedSource,
    SpeedSample,
    apply_deadband,
)

if TYPE_CHECKING:
    from vss_daemon.feeds.base import Feed

RATE_EMA_ALPHA = 0.2


class GpsSpeedSource(FeedSpeedSource):
    """
    Speed straight from location fixes.

    Tracks an exponentially smoothed fix rate, reported in the sample's
    source tag. Motion observations are ignored.
    """

    kind = "gps"

    def __init__(
        self,
        feed: Optional["Feed"] = None,
        deadband_mph: float = DISPLAY_DEADBAND_MPH,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__(feed)
        self._deadband_mph = deadband_mph
        self._clock = clock
        self._last_fix_s: Optional[float] = None
        self._rate_hz = 0.0
        self._latest = self._build(0.0)

    def _build(self, speed_mps: float) -> SpeedSample:
        raw_mph = speed_mps * MPS_TO_MPH
        return SpeedSample(
            speed_mph=apply_deadband(raw_mph, self._deadband_mph),
            raw_mph=raw_mph,
            source="GPS_HZ: %.1f" % self._rate_hz,
        )

    def on_location(self, speed_mps: float, course_deg: Optional[float]) -> None:
        if not self._started:
            return
        now = self._clock()
        if self._last_fix_s is not None:
            dt = max(now - self._last_fix_s, 0.001)
            hz = 1.0 / dt
            if self._rate_hz == 0.0:
                self._rate_hz = hz
            else:
                self._rate_hz = RATE_EMA_ALPHA * hz + (1.0 - RATE_EMA_ALPHA) * self._rate_hz
        self._last_fix_s = now
        self._latest = self._build(max(0.0, speed_mps))

    def _reset(self) -> None:
        self._last_fix_s = None
        self._rate_hz = 0.0
        self._latest = self._build(0.0)

    @property
    def rate_hz(self) -> float:
        """Smoothed fix rate (Hz); 0 until two fixes have arrived."""
        return self._rate_hz

    def latest(self) -> SpeedSample:
        return self._latest
