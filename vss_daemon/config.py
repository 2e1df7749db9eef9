"""
Configuration defaults and parsing for vss-daemon.
"""

import argparse
from dataclasses import dataclass
from typing import Optional


@dataclass
class Config:
    """Runtime configuration."""

    feed: str = "remote"
    remote_host: str = "0.0.0.0"
    remote_port: int = 2949
    gpsd_host: str = "127.0.0.1"
    gpsd_port: int = 2947
    speed_source: str = "gps"
    deadband_mph: float = 0.5
    transport: str = "rfcomm"
    device_address: Optional[str] = None
    device_name: Optional[str] = None
    rfcomm_channel: int = 1
    baudrate: int = 115200
    link_timeout: float = 5.0
    tx_rate_hz: float = 10.0
    debug: bool = False


def _positive_float(value: str) -> float:
    f = float(value)
    if f <= 0:
        raise argparse.ArgumentTypeError("must be > 0")
    return f


def parse_args(args: Optional[list] = None) -> Config:
    """Parse command-line arguments into Config."""
    parser = argparse.ArgumentParser(
        description="Stream phone GPS/accelerometer speed to an ESP32 as SPEED_MPH lines."
    )
    parser.add_argument(
        "--feed",
        choices=("remote", "gpsd"),
        default="remote",
        help="Observation feed: remote (phone over TCP) or gpsd (default: remote)",
    )
    parser.add_argument(
        "--remote-host",
        default="0.0.0.0",
        help="Bind address for the phone feed (default: 0.0.0.0)",
    )
    parser.add_argument(
        "--remote-port",
        type=int,
        default=2949,
        help="Port for the phone feed (default: 2949)",
    )
    parser.add_argument(
        "--gpsd-host",
        default="127.0.0.1",
        help="gpsd host (default: 127.0.0.1)",
    )
    parser.add_argument(
        "--gpsd-port",
        type=int,
        default=2947,
        help="gpsd port (default: 2947)",
    )
    parser.add_argument(
        "--speed-source",
        choices=("gps", "fused", "disabled"),
        default="gps",
        help="Speed source: gps, fused (accel + GPS), disabled (default: gps)",
    )
    parser.add_argument(
        "--deadband-mph",
        type=float,
        default=0.5,
        help="Speeds below this are sent as 0 (default: 0.5)",
    )
    parser.add_argument(
        "--transport",
        choices=("rfcomm", "serial"),
        default="rfcomm",
        help="Link to the ESP32: rfcomm socket or serial port (default: rfcomm)",
    )
    parser.add_argument(
        "--device-address",
        default=None,
        help="ESP32 MAC (rfcomm) or port path such as /dev/rfcomm0 (serial)",
    )
    parser.add_argument(
        "--device-name",
        default=None,
        help="Display name of the ESP32 (default: the address)",
    )
    parser.add_argument(
        "--rfcomm-channel",
        type=int,
        default=1,
        help="RFCOMM channel of the SPP service (default: 1)",
    )
    parser.add_argument(
        "--baudrate",
        type=int,
        default=115200,
        help="Serial baud rate (default: 115200)",
    )
    parser.add_argument(
        "--link-timeout",
        type=_positive_float,
        default=5.0,
        help="Connect/write timeout in seconds (default: 5)",
    )
    parser.add_argument(
        "--tx-rate",
        type=_positive_float,
        default=10.0,
        help="Transmit rate in Hz (default: 10)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parsed = parser.parse_args(args)
    return Config(
        feed=parsed.feed,
        remote_host=parsed.remote_host,
        remote_port=parsed.remote_port,
        gpsd_host=parsed.gpsd_host,
        gpsd_port=parsed.gpsd_port,
        speed_source=parsed.speed_source,
        deadband_mph=parsed.deadband_mph,
        transport=parsed.transport,
        device_address=parsed.device_address,
        device_name=parsed.device_name,
        rfcomm_channel=parsed.rfcomm_channel,
        baudrate=parsed.baudrate,
        link_timeout=parsed.link_timeout,
        tx_rate_hz=parsed.tx_rate,
        debug=parsed.debug,
    )
