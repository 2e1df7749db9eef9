"""
Link supervisor: keeps a session to the ESP32 open and streams speed at 10 Hz.

States: IDLE -> CONNECTING -> STREAMING; any connect or write failure goes
back to IDLE with a retry scheduled after the current backoff interval.
The interval resets to BACKOFF_FLOOR_MS on a successful connect and grows
by BACKOFF_FACTOR (capped at BACKOFF_CEILING_MS) after each failure.

The transmit tick reads the speed source's latest sample; it never waits
for, or is paced by, sensor updates.
"""

import enum
import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional

from vss_daemon.sources.base import SpeedSource
from vss_daemon.transport import Session, Transport
from vss_daemon.wire import encode_speed_line

logger = logging.getLogger(__name__)

TX_INTERVAL_S = 0.1
BACKOFF_FLOOR_MS = 1500
BACKOFF_CEILING_MS = 15000
BACKOFF_FACTOR = 1.6


class LinkState(enum.Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    STREAMING = "streaming"


@dataclass(frozen=True)
class PeerIdentity:
    """Target peer: stable address plus display name."""

    address: str
    name: str = ""

    @property
    def label(self) -> str:
        return self.name or self.address


@dataclass(frozen=True)
class LinkStatus:
    """Published supervisor status."""

    state: LinkState
    peer: Optional[PeerIdentity] = None
    retry_in_ms: Optional[int] = None  # pending backoff delay while IDLE
    detail: str = ""


def next_backoff_ms(current_ms: int) -> int:
    """Grow a backoff interval, capped at BACKOFF_CEILING_MS."""
    return min(int(current_ms * BACKOFF_FACTOR), BACKOFF_CEILING_MS)


class LinkSupervisor:
    """
    Owns the session to one peer and the connect/transmit loop.

    The loop runs on one dedicated worker thread because connect and write
    block. Each iteration (run_once) either connects and transmits once, or
    fails and returns the backoff delay; the worker waits that long on the
    arming's stop Event, so disarm() also cuts the wait short.

    Every arm() gets a fresh stop Event. A worker that outlives its arming
    (stuck in a blocking connect) sees its own Event set, closes whatever it
    opened and exits without touching the newer arming's session.
    """

    def __init__(
        self,
        transport: Transport,
        source: SpeedSource,
        tx_interval_s: float = TX_INTERVAL_S,
        on_status: Optional[Callable[[LinkStatus], None]] = None,
    ) -> None:
        self._transport = transport
        self._source = source
        self._tx_interval_s = tx_interval_s
        self._on_status = on_status
        self._peer: Optional[PeerIdentity] = None
        self._session: Optional[Session] = None
        self._backoff_ms = BACKOFF_FLOOR_MS
        self._stop = threading.Event()
        self._stop.set()
        self._thread: Optional[threading.Thread] = None
        self._status = LinkStatus(LinkState.IDLE)
        self.lines_sent = 0
        self.connect_failures = 0
        self.write_failures = 0
        self.loop_errors = 0

    @property
    def status(self) -> LinkStatus:
        return self._status

    @property
    def state(self) -> LinkState:
        return self._status.state

    @property
    def backoff_ms(self) -> int:
        """Delay the next failure will schedule."""
        return self._backoff_ms

    @property
    def connected(self) -> bool:
        return self._session is not None

    @property
    def running(self) -> bool:
        return not self._stop.is_set()

    def _publish(
        self,
        state: LinkState,
        retry_in_ms: Optional[int] = None,
        detail: str = "",
    ) -> None:
        status = LinkStatus(state, self._peer, retry_in_ms, detail)
        if status == self._status:
            return
        self._status = status
        if retry_in_ms is not None:
            logger.info(
                "Link %s: %s, retry in %d ms", state.value, detail, retry_in_ms
            )
        else:
            label = self._peer.label if self._peer else "-"
            logger.info("Link %s (%s)", state.value, label)
        if self._on_status:
            try:
                self._on_status(status)
            except Exception:
                logger.exception("Link status callback failed")

    def arm(self, peer: PeerIdentity, background: bool = True) -> None:
        """
        Start supervising a session to peer.

        No-op if already armed for the same peer; a different peer disarms
        first. A worker left over from an earlier arming is joined before
        the new one starts. With background=False no worker is started and
        the caller drives run_once() itself.
        """
        if self.running:
            if peer == self._peer:
                return
            self.disarm()
        previous = self._thread
        if (
            previous is not None
            and previous.is_alive()
            and previous is not threading.current_thread()
        ):
            logger.info("Waiting for previous link worker to exit")
            previous.join()
        self._thread = None
        self._peer = peer
        self._backoff_ms = BACKOFF_FLOOR_MS
        stop = threading.Event()
        self._stop = stop
        logger.info("Auto mode armed for %s (%s)", peer.label, peer.address)
        if background:
            self._thread = threading.Thread(
                target=self._run, args=(stop,), name="link-supervisor", daemon=True
            )
            self._thread.start()

    def disarm(self, timeout: float = 5.0) -> None:
        """
        Stop the loop and release the session. Safe to call repeatedly.

        If the worker does not exit within timeout it is left to release its
        own session when its blocking call returns.
        """
        self._stop.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)
            if thread.is_alive():
                logger.warning("Link worker did not stop within %.1fs", timeout)
                return
        self._thread = None
        self._release()
        self._publish(LinkState.IDLE)

    def run_once(self) -> Optional[float]:
        """
        One loop iteration. Returns the delay (s) before the next one, or
        None when disarmed.
        """
        stop = self._stop
        peer = self._peer
        if stop.is_set() or peer is None:
            return None

        session = self._session
        if session is None:
            self._publish(LinkState.CONNECTING)
            try:
                session = self._transport.open(peer.address)
            except OSError as e:
                if stop.is_set():
                    return None
                self.connect_failures += 1
                logger.warning("Connect to %s failed: %s", peer.label, e)
                return self._schedule_retry("connect failed: %s" % e)
            if stop.is_set():
                logger.info("Dropping session to %s opened after disarm", peer.label)
                _close_quietly(session)
                return None
            self._session = session
            self._backoff_ms = BACKOFF_FLOOR_MS
            self._publish(LinkState.STREAMING)
            if stop.is_set():
                return None

        sample = self._source.latest()
        try:
            session.write(encode_speed_line(sample.speed_mph))
        except OSError as e:
            self.write_failures += 1
            logger.warning("Write to %s failed: %s", peer.label, e)
            self._release()
            return self._schedule_retry("write failed: %s" % e)
        self.lines_sent += 1
        return self._tx_interval_s

    def _schedule_retry(self, detail: str) -> float:
        delay_ms = self._backoff_ms
        self._backoff_ms = next_backoff_ms(delay_ms)
        self._publish(LinkState.IDLE, retry_in_ms=delay_ms, detail=detail)
        return delay_ms / 1000.0

    def _release(self) -> None:
        session = self._session
        self._session = None
        if session is not None:
            _close_quietly(session)

    def _run(self, stop: threading.Event) -> None:
        try:
            while not stop.is_set():
                try:
                    delay = self.run_once()
                except Exception as e:
                    if stop.is_set():
                        break
                    self.loop_errors += 1
                    logger.exception("Link loop error")
                    self._release()
                    delay = self._schedule_retry("error: %s" % e)
                if delay is None or stop.wait(delay):
                    break
        finally:
            # A newer arming owns the shared state once self._stop moved on.
            if self._stop is stop:
                self._release()
                self._publish(LinkState.IDLE)


def _close_quietly(session: Session) -> None:
    try:
        session.close()
    except Exception as e:
        logger.debug("Session close error: %s", e)
