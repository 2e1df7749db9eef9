"""
Main loop: run the speed source and stream its speed to the ESP32.
"""

import logging
import signal
import sys
import time
from typing import Optional

from vss_daemon.config import Config, parse_args
from vss_daemon.feeds import Feed, GpsdFeed, RemoteFeed
from vss_daemon.sources import create_speed_source
from vss_daemon.supervisor import LinkSupervisor, PeerIdentity
from vss_daemon.transport import create_transport

logger = logging.getLogger(__name__)

_shutdown = False

STATUS_LOG_INTERVAL_S = 1.0


def _signal_handler(signum: int, frame: Optional[object]) -> None:
    global _shutdown
    _shutdown = True


def create_feed(config: Config) -> Optional[Feed]:
    """Feed named by config.feed; None for the disabled speed source."""
    if config.speed_source == "disabled":
        return None
    if config.feed == "gpsd":
        return GpsdFeed(config.gpsd_host, config.gpsd_port)
    return RemoteFeed(config.remote_host, config.remote_port)


def run(config: Config) -> int:
    """
    Run the daemon until SIGINT/SIGTERM.

    Returns exit code (0 = success).
    """
    global _shutdown
    _shutdown = False
    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    log_level = logging.DEBUG if config.debug else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    source = create_speed_source(
        config.speed_source, create_feed(config), config.deadband_mph
    )
    transport = create_transport(
        config.transport,
        channel=config.rfcomm_channel,
        baudrate=config.baudrate,
        timeout=config.link_timeout,
    )
    supervisor = LinkSupervisor(
        transport,
        source,
        tx_interval_s=1.0 / config.tx_rate_hz,
    )

    source.start()
    try:
        if config.device_address:
            supervisor.arm(
                PeerIdentity(config.device_address, config.device_name or "")
            )
        else:
            logger.warning("No --device-address given; not streaming to a peer")

        last_log = 0.0
        while not _shutdown:
            time.sleep(0.2)
            now = time.monotonic()
            if now - last_log >= STATUS_LOG_INTERVAL_S:
                last_log = now
                sample = source.latest()
                logger.debug(
                    "speed=%.2f mph raw=%.2f mph src=%s link=%s sent=%d",
                    sample.speed_mph,
                    sample.raw_mph,
                    sample.source,
                    supervisor.state.value,
                    supervisor.lines_sent,
                )
    except KeyboardInterrupt:
        pass
    finally:
        supervisor.disarm()
        source.stop()

    return 0


def main() -> None:
    """Entry point for the vss-daemon script."""
    config = parse_args()
    sys.exit(run(config))


if __name__ == "__main__":
    main()
