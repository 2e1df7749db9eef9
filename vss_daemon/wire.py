"""
Wire format sent to the ESP32: one ASCII line per transmit tick.

    SPEED_MPH:<mph with 2 decimals>\\r\\n
"""

PREFIX = "SPEED_MPH:"


def format_speed_line(speed_mph: float) -> str:
    """Build the speed line, e.g. "SPEED_MPH:23.47\\r\\n"."""
    return f"{PREFIX}{speed_mph:.2f}\r\n"


def encode_speed_line(speed_mph: float) -> bytes:
    """Speed line as bytes ready to write to the session."""
    return format_speed_line(speed_mph).encode("ascii")
