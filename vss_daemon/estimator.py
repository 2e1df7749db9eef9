"""
Complementary-filter speed estimator.

Forward acceleration is integrated between GPS fixes (responsive); each
GPS speed is blended in with a fixed trust weight (removes drift).
"""

import logging
from typing import Optional

logger = logging.getLogger(__name__)

ACCEL_TRUST = 0.85
ACCEL_DEADBAND_MPS2 = 0.08
ACCEL_CLAMP_MPS2 = 6.0
MAX_ACCEL_GAP_S = 0.5


class SpeedEstimator:
    """
    Scalar, non-negative speed estimate in m/s.

    integrate() and correct() must be called from one writer only.
    """

    def __init__(
        self,
        accel_trust: float = ACCEL_TRUST,
        deadband_mps2: float = ACCEL_DEADBAND_MPS2,
        clamp_mps2: float = ACCEL_CLAMP_MPS2,
        max_gap_s: float = MAX_ACCEL_GAP_S,
    ) -> None:
        self._trust = accel_trust
        self._deadband = deadband_mps2
        self._clamp = clamp_mps2
        self._max_gap_s = max_gap_s
        self._v_mps = 0.0
        self._last_ns: Optional[int] = None

    def reset(self) -> None:
        """Zero the speed and forget the last acceleration timestamp."""
        self._v_mps = 0.0
        self._last_ns = None

    def integrate(self, forward_accel_mps2: float, timestamp_ns: int) -> float:
        """
        Integrate forward acceleration since the previous sample.

        The first sample only sets the time baseline. Gaps of dt <= 0 or
        dt > max_gap_s move the baseline without integrating; dt equal to
        max_gap_s integrates.
        """
        if self._last_ns is None:
            self._last_ns = timestamp_ns
            return self._v_mps

        dt = (timestamp_ns - self._last_ns) / 1_000_000_000
        self._last_ns = timestamp_ns
        if dt <= 0 or dt > self._max_gap_s:
            logger.debug("Skipping accel sample: dt=%.3fs", dt)
            return self._v_mps

        a = forward_accel_mps2
        if abs(a) < self._deadband:
            a = 0.0
        a = max(-self._clamp, min(self._clamp, a))

        self._v_mps = max(0.0, self._v_mps + a * dt)
        return self._v_mps

    def correct(self, absolute_speed_mps: float) -> float:
        """Blend in an absolute (GPS) speed."""
        gps = max(0.0, absolute_speed_mps)
        self._v_mps = self._trust * self._v_mps + (1.0 - self._trust) * gps
        return self._v_mps

    @property
    def speed_mps(self) -> float:
        """Current estimate (m/s), always >= 0."""
        return self._v_mps
