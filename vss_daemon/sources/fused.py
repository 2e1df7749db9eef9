"""
Fused speed source: accelerometer integration corrected by GPS speed.
"""

from typing import Optional, Sequence, TYPE_CHECKING

from vss_daemon.calibration import CalibrationEngine, phone_to_world
from vss_daemon.estimator import SpeedEstimator
from vss_daemon.sources.base import (
    DISPLAY_DEADBAND_MPH,
    MPS_TO_MPH,
    FeedSpeedSource,
    SpeedSample,
    apply_deadband,
)

if TYPE_CHECKING:
    from vss_daemon.feeds.base import Feed


class FusedSpeedSource(FeedSpeedSource):
    """
    Composes CalibrationEngine and SpeedEstimator.

    Location fixes correct the estimate and update the heading; each motion
    sample runs stop detection, bias learning, forward projection and
    integration, in that order. The published sample is rebuilt after
    every observation.
    """

    kind = "fused"

    def __init__(
        self,
        feed: Optional["Feed"] = None,
        deadband_mph: float = DISPLAY_DEADBAND_MPH,
        calibration: Optional[CalibrationEngine] = None,
        estimator: Optional[SpeedEstimator] = None,
    ) -> None:
        super().__init__(feed)
        self._deadband_mph = deadband_mph
        self.calibration = calibration or CalibrationEngine()
        self.estimator = estimator or SpeedEstimator()
        self._gps_mps = 0.0
        self._latest = self._build()

    def _build(self) -> SpeedSample:
        raw_mph = self.estimator.speed_mps * MPS_TO_MPH
        tag = "FUSED(stopped)" if self.calibration.stopped else "FUSED"
        return SpeedSample(
            speed_mph=apply_deadband(raw_mph, self._deadband_mph),
            raw_mph=raw_mph,
            source=tag,
        )

    def _reset(self) -> None:
        # learned bias and heading survive a restart
        self.estimator.reset()
        self._gps_mps = 0.0
        self._latest = self._build()

    def on_location(self, speed_mps: float, course_deg: Optional[float]) -> None:
        if not self._started:
            return
        self._gps_mps = max(0.0, speed_mps)
        self.estimator.correct(self._gps_mps)
        self.calibration.observe_absolute(self._gps_mps, course_deg)
        self._latest = self._build()

    def on_motion(
        self,
        accel: Sequence[float],
        rotation: Sequence[float],
        timestamp_ns: int,
    ) -> None:
        if not self._started:
            return
        world = phone_to_world(rotation, accel)
        cal = self.calibration
        cal.update_stop_state(timestamp_ns // 1_000_000, self._gps_mps, world)
        cal.learn_bias(world)
        self.estimator.integrate(cal.forward_accel(world), timestamp_ns)
        self._latest = self._build()

    def latest(self) -> SpeedSample:
        return self._latest
