"""
Auto-calibration of world-frame acceleration: bias, heading, stop detection.

Bias is learned only while the vehicle is stopped (EMA, subtracted from
world-frame acceleration). Heading is the direction of travel as a unit
vector (x=east, y=north), taken from GPS course while moving fast enough
for the course to be meaningful.
Units: acceleration m/s^2, speed m/s, time ms, course degrees.
"""

import logging
import math
from typing import Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

Vector3 = Tuple[float, float, float]

STOP_SPEED_MPS = 0.25
STOP_ACCEL_MPS2 = 0.15
STOP_HOLD_MS = 1200
BIAS_LEARN_ALPHA = 0.02
HEADING_MIN_SPEED_MPS = 2.0


def phone_to_world(rotation: Sequence[float], accel: Sequence[float]) -> Vector3:
    """
    Rotate a device-frame vector into the world frame.

    rotation: row-major 3x3 matrix (9 floats) mapping local -> world.
    """
    r = rotation
    ax, ay, az = accel[0], accel[1], accel[2]
    return (
        r[0] * ax + r[1] * ay + r[2] * az,
        r[3] * ax + r[4] * ay + r[5] * az,
        r[6] * ax + r[7] * ay + r[8] * az,
    )


class CalibrationEngine:
    """
    Learns accelerometer bias while stopped and heading while moving.

    Mutated from a single writer (the fused speed source); not thread-safe.
    """

    __slots__ = (
        "bias",
        "heading",
        "have_heading",
        "stopped_since_ms",
        "stopped",
        "stop_speed_mps",
        "stop_accel_mps2",
        "stop_hold_ms",
        "bias_alpha",
    )

    def __init__(
        self,
        stop_speed_mps: float = STOP_SPEED_MPS,
        stop_accel_mps2: float = STOP_ACCEL_MPS2,
        stop_hold_ms: int = STOP_HOLD_MS,
        bias_alpha: float = BIAS_LEARN_ALPHA,
    ) -> None:
        self.bias: Vector3 = (0.0, 0.0, 0.0)
        self.heading: Tuple[float, float] = (0.0, 1.0)
        self.have_heading = False
        self.stopped_since_ms: Optional[int] = None
        self.stopped = False
        self.stop_speed_mps = stop_speed_mps
        self.stop_accel_mps2 = stop_accel_mps2
        self.stop_hold_ms = stop_hold_ms
        self.bias_alpha = bias_alpha

    def observe_absolute(self, speed_mps: float, course_deg: Optional[float]) -> None:
        """Take heading from GPS course; ignored below HEADING_MIN_SPEED_MPS."""
        if course_deg is None or speed_mps <= HEADING_MIN_SPEED_MPS:
            return
        rad = math.radians(course_deg)
        self.heading = (math.sin(rad), math.cos(rad))
        if not self.have_heading:
            logger.info("Heading acquired: course %.1f deg", course_deg)
        self.have_heading = True

    def update_stop_state(self, now_ms: int, speed_mps: float, world_accel: Vector3) -> bool:
        """
        Debounced stop detection. Returns the current stopped flag.

        Stillness (low speed and low acceleration) must hold continuously
        for stop_hold_ms before stopped latches; any moving sample clears it.
        """
        mag = math.sqrt(
            world_accel[0] * world_accel[0]
            + world_accel[1] * world_accel[1]
            + world_accel[2] * world_accel[2]
        )
        still = speed_mps < self.stop_speed_mps and mag < self.stop_accel_mps2
        if not still:
            if self.stopped:
                logger.debug("Stop detector: moving")
            self.stopped_since_ms = None
            self.stopped = False
            return False
        if not self.stopped:
            if self.stopped_since_ms is None:
                self.stopped_since_ms = now_ms
            if now_ms - self.stopped_since_ms >= self.stop_hold_ms:
                self.stopped = True
                logger.debug("Stop detector: stopped")
        return self.stopped

    def learn_bias(self, world_accel: Vector3) -> None:
        """EMA-update the bias toward world_accel; no-op unless stopped."""
        if not self.stopped:
            return
        a = self.bias_alpha
        bx, by, bz = self.bias
        self.bias = (
            (1.0 - a) * bx + a * world_accel[0],
            (1.0 - a) * by + a * world_accel[1],
            (1.0 - a) * bz + a * world_accel[2],
        )

    def forward_accel(self, world_accel: Vector3) -> float:
        """Bias-corrected horizontal acceleration along the heading (m/s^2)."""
        if not self.have_heading:
            return 0.0
        ax = world_accel[0] - self.bias[0]
        ay = world_accel[1] - self.bias[1]
        return ax * self.heading[0] + ay * self.heading[1]

    def to_dict(self) -> dict:
        """Diagnostic snapshot."""
        return {
            "bias": list(self.bias),
            "heading": list(self.heading),
            "have_heading": self.have_heading,
            "stopped": self.stopped,
        }
