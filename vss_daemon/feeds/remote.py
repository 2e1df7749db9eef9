"""
Remote feed: TCP server accepting sensor JSON from a phone app.

Protocol: one JSON object per line (newline-delimited).
- Location: {"speed_ms":float,"track":float|null}  (m/s, degrees)
- Motion: {"accel":[x,y,z],"rotation":[r0..r8],"t_ns":int}
  accel m/s^2 in device frame with gravity removed; rotation row-major
  device -> world (x=east, y=north), identity if omitted; t_ns monotonic
  sensor time, receive time if omitted.
- Combined: both keys in one object.
"""

import json
import logging
import math
import socket
import threading
import time
from typing import Any, Optional, Tuple

from vss_daemon.feeds.base import Feed
from vss_daemon.sources.base import ObservationListener

logger = logging.getLogger(__name__)

IDENTITY = (1.0, 0.0, 0.0, 0.0, 1.0, 0.0, 0.0, 0.0, 1.0)
INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1

Location = Tuple[float, Optional[float]]
Motion = Tuple[Tuple[float, float, float], Tuple[float, ...], int]


def _floats(value: Any, n: int) -> Optional[Tuple[float, ...]]:
    """Convert a list of at least n finite numbers to a tuple; else None."""
    if not isinstance(value, (list, tuple)) or len(value) < n:
        return None
    try:
        out = tuple(float(v) for v in value[:n])
    except (TypeError, ValueError, OverflowError):
        return None
    if not all(math.isfinite(v) for v in out):
        return None
    return out


def _parse_location(data: dict) -> Optional[Location]:
    try:
        speed = float(data["speed_ms"])
    except (TypeError, ValueError, OverflowError):
        return None
    if not math.isfinite(speed):
        return None
    track = data.get("track")
    course: Optional[float] = None
    if track is not None and not isinstance(track, bool):
        try:
            course = float(track)
        except (TypeError, ValueError, OverflowError):
            return None
        if not math.isfinite(course):
            return None
        course %= 360.0
        if course >= 360.0:
            course = 0.0
    return (max(0.0, speed), course)


def _parse_motion(data: dict, now_ns: int) -> Optional[Motion]:
    accel = _floats(data["accel"], 3)
    if accel is None:
        return None
    rotation: Optional[Tuple[float, ...]] = IDENTITY
    if data.get("rotation") is not None:
        rotation = _floats(data["rotation"], 9)
        if rotation is None:
            return None
    t_ns = data.get("t_ns")
    if t_ns is None:
        t_ns = now_ns
    elif isinstance(t_ns, bool) or not isinstance(t_ns, int):
        return None
    elif not INT64_MIN <= t_ns <= INT64_MAX:
        return None
    return ((accel[0], accel[1], accel[2]), rotation, t_ns)


def parse_line(
    line: str, now_ns: Optional[int] = None
) -> Tuple[Optional[Location], Optional[Motion]]:
    """
    Parse one protocol line into (location, motion); either may be None.

    Invalid JSON, non-object payloads and malformed fields yield None for
    the affected observation.
    """
    try:
        data = json.loads(line)
    except (ValueError, RecursionError):
        return (None, None)
    if not isinstance(data, dict):
        return (None, None)
    location = _parse_location(data) if "speed_ms" in data else None
    motion = None
    if "accel" in data:
        motion = _parse_motion(
            data, now_ns if now_ns is not None else time.monotonic_ns()
        )
    return (location, motion)


class RemoteFeed(Feed):
    """
    Listens for one phone client at a time and forwards its observations.

    All listener calls come from the accept thread.
    """

    def __init__(self, host: str = "0.0.0.0", port: int = 2949) -> None:
        self._host = host
        self._port = port
        self._listener: Optional[ObservationListener] = None
        self._sock: Optional[socket.socket] = None
        self._thread: Optional[threading.Thread] = None
        self._shutdown = False

    def start(self, listener: ObservationListener) -> bool:
        """Bind and start the listener thread. Return True on success."""
        self._listener = listener
        self._shutdown = False
        try:
            self._sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
            self._sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            self._sock.bind((self._host, self._port))
            self._sock.listen(1)
            self._sock.settimeout(1.0)
        except OSError as e:
            logger.error("Remote feed bind failed: %s", e)
            self._close_server()
            return False
        self._thread = threading.Thread(
            target=self._accept_loop, name="remote-feed", daemon=True
        )
        self._thread.start()
        logger.info("Remote feed listening on %s:%s", self._host, self._port)
        return True

    def stop(self) -> None:
        """Stop the listener and close the socket."""
        self._shutdown = True
        self._close_server()
        if self._thread:
            self._thread.join(timeout=2.0)
            self._thread = None

    def _close_server(self) -> None:
        if self._sock:
            try:
                self._sock.close()
            except OSError as e:
                logger.debug("Remote feed close error: %s", e)
            self._sock = None

    def _accept_loop(self) -> None:
        while not self._shutdown and self._sock:
            try:
                client, addr = self._sock.accept()
            except socket.timeout:
                continue
            except OSError:
                if not self._shutdown:
                    logger.debug("Remote feed accept error")
                break
            logger.info("Phone connected from %s", addr)
            try:
                client.settimeout(5.0)
                with client.makefile(mode="r", encoding="utf-8") as f:
                    for line in f:
                        if self._shutdown:
                            break
                        line = line.strip()
                        if line:
                            self.handle_line(line)
            except (OSError, UnicodeDecodeError) as e:
                logger.debug("Phone connection error: %s", e)
            finally:
                try:
                    client.close()
                except OSError:
                    pass
                logger.info("Phone disconnected")

    def handle_line(self, line: str) -> None:
        """Parse one line and forward its observations to the listener."""
        listener = self._listener
        if listener is None:
            return
        location, motion = parse_line(line)
        if location is not None:
            listener.on_location(*location)
        if motion is not None:
            listener.on_motion(*motion)
