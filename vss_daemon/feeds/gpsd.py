"""
gpsd feed: location speed and course from gpsd (gpsd-py3).
"""

import logging
import threading
from typing import Any, Optional, Tuple

from vss_daemon.feeds.base import Feed
from vss_daemon.sources.base import ObservationListener

logger = logging.getLogger(__name__)


def connect_gpsd(host: str = "127.0.0.1", port: int = 2947) -> Optional[Any]:
    """
    Connect to gpsd and return the gpsd-py3 module, connected.

    Returns None on failure.
    """
    try:
        import gpsd  # type: ignore[import-untyped]

        gpsd.connect(host=host, port=port)
        return gpsd
    except Exception as e:
        logger.error("gpsd connect failed: %s", e)
        return None


def read_fix(gpsd_module: Any) -> Optional[Tuple[Any, float, Optional[float]]]:
    """
    Current fix as (fix_time, speed_mps, course_deg), or None without a 2D/3D fix.

    fix_time identifies the fix so repeated polls of the same fix can be
    dropped.
    """
    try:
        packet = gpsd_module.get_current()
    except Exception as e:
        logger.debug("gpsd get_current error: %s", e)
        return None
    if packet is None or getattr(packet, "mode", 0) < 2:
        return None
    speed = getattr(packet, "hspeed", None)
    if speed is None:
        speed = getattr(packet, "speed", None) or 0.0
    track = getattr(packet, "track", None)
    course = float(track) % 360.0 if track is not None else None
    return (getattr(packet, "time", None), max(0.0, float(speed)), course)


class GpsdFeed(Feed):
    """
    Polls gpsd and forwards each new fix as a location observation.

    Fixes are deduplicated on their timestamp; a fix without one is
    forwarded every poll.
    """

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 2947,
        poll_hz: float = 10.0,
    ) -> None:
        self._host = host
        self._port = port
        self._poll_s = 1.0 / poll_hz
        self._gpsd: Optional[Any] = None
        self._listener: Optional[ObservationListener] = None
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._last_time: Any = None

    def start(self, listener: ObservationListener) -> bool:
        self._gpsd = connect_gpsd(self._host, self._port)
        if self._gpsd is None:
            return False
        self._listener = listener
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._poll_loop, name="gpsd-feed", daemon=True
        )
        self._thread.start()
        logger.info("gpsd feed polling %s:%s", self._host, self._port)
        return True

    def stop(self) -> None:
        self._stop.set()
        if self._thread:
            self._thread.join(timeout=2.0)
            self._thread = None

    def poll_once(self) -> bool:
        """Read gpsd once; return True if a new fix was forwarded."""
        if self._gpsd is None or self._listener is None:
            return False
        fix = read_fix(self._gpsd)
        if fix is None:
            return False
        fix_time, speed_mps, course = fix
        if fix_time is not None and fix_time == self._last_time:
            return False
        self._last_time = fix_time
        self._listener.on_location(speed_mps, course)
        return True

    def _poll_loop(self) -> None:
        while not self._stop.wait(self._poll_s):
            self.poll_once()
