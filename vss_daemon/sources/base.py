"""
Speed source interface and the sample it produces.
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Sequence

if TYPE_CHECKING:
    from vss_daemon.feeds.base import Feed

logger = logging.getLogger(__name__)

MPS_TO_MPH = 2.23694
DISPLAY_DEADBAND_MPH = 0.5


@dataclass(frozen=True)
class SpeedSample:
    """Immutable speed snapshot."""

    speed_mph: float  # deadbanded; displayed and transmitted
    raw_mph: float  # before deadband, diagnostic
    source: str  # provenance tag, e.g. "GPS_HZ: 9.8"


def apply_deadband(raw_mph: float, deadband_mph: float = DISPLAY_DEADBAND_MPH) -> float:
    """Return 0 below the display deadband, else raw_mph."""
    return 0.0 if raw_mph < deadband_mph else raw_mph


class ObservationListener:
    """Receiver of sensor observations delivered by a feed."""

    def on_location(self, speed_mps: float, course_deg: Optional[float]) -> None:
        """
        Absolute speed observation.

        speed_mps: >= 0
        course_deg: [0, 360) or None when the provider has no course
        """

    def on_motion(
        self,
        accel: Sequence[float],
        rotation: Sequence[float],
        timestamp_ns: int,
    ) -> None:
        """
        Motion observation.

        accel: (x, y, z) in m/s^2, device frame, gravity removed
        rotation: row-major 3x3 (9 floats) mapping device -> world (x=east, y=north)
        timestamp_ns: monotonic sensor timestamp
        """


class SpeedSource(ObservationListener):
    """
    Start/stop/latest capability shared by every speed source variant.

    latest() never blocks: it returns the last published SpeedSample, which
    is replaced as a whole whenever the source updates.
    """

    kind = "base"

    def start(self) -> None:
        """Begin producing samples. Idempotent."""
        raise NotImplementedError

    def stop(self) -> None:
        """Release underlying feeds. Idempotent."""
        raise NotImplementedError

    def latest(self) -> SpeedSample:
        """Most recent sample; zeroed before the first observation."""
        raise NotImplementedError


class FeedSpeedSource(SpeedSource):
    """
    Speed source driven by an observation feed.

    start() starts the feed with this source as listener; observations that
    arrive while the source is stopped are ignored.
    """

    def __init__(self, feed: Optional["Feed"] = None) -> None:
        self._feed = feed
        self._started = False

    @property
    def started(self) -> bool:
        return self._started

    def start(self) -> None:
        if self._started:
            return
        self._started = True
        if self._feed is None:
            logger.warning("%s source has no feed; reporting zero speed", self.kind)
            return
        if not self._feed.start(self):
            logger.warning("%s feed unavailable; reporting zero speed", self.kind)
            return
        logger.info("%s source started", self.kind)

    def _reset(self) -> None:
        """Drop accumulated state so latest() reports zero after stop()."""

    def stop(self) -> None:
        if not self._started:
            return
        self._started = False
        if self._feed is not None:
            self._feed.stop()
        self._reset()
        logger.info("%s source stopped", self.kind)
