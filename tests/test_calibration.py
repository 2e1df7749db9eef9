"""
Unit tests for CalibrationEngine: heading gating, stop debounce, bias, projection.
"""

import pytest

from vss_daemon.calibration import CalibrationEngine, phone_to_world

IDENTITY = (1.0, 0.0, 0.0, 0.0, 1.0, 0.0, 0.0, 0.0, 1.0)
STILL = (0.0, 0.0, 0.0)


class TestPhoneToWorld:
    """Rotation of device-frame vectors."""

    def test_identity(self) -> None:
        assert phone_to_world(IDENTITY, (1.0, 2.0, 3.0)) == (1.0, 2.0, 3.0)

    def test_rotation_about_z(self) -> None:
        # device x -> world north, device y -> world west
        rot = (0.0, -1.0, 0.0, 1.0, 0.0, 0.0, 0.0, 0.0, 1.0)
        assert phone_to_world(rot, (2.0, 0.0, 0.0)) == (0.0, 2.0, 0.0)


class TestObserveAbsolute:
    """Heading is only taken from course above 2 m/s."""

    def test_low_speed_course_ignored(self) -> None:
        cal = CalibrationEngine()
        cal.observe_absolute(1.0, 90.0)
        assert cal.have_heading is False
        assert cal.heading == (0.0, 1.0)

    def test_exactly_threshold_ignored(self) -> None:
        cal = CalibrationEngine()
        cal.observe_absolute(2.0, 90.0)
        assert cal.have_heading is False

    def test_course_90_points_east(self) -> None:
        cal = CalibrationEngine()
        cal.observe_absolute(5.0, 90.0)
        assert cal.have_heading is True
        assert cal.heading[0] == pytest.approx(1.0)
        assert cal.heading[1] == pytest.approx(0.0, abs=1e-12)

    def test_missing_course_ignored(self) -> None:
        cal = CalibrationEngine()
        cal.observe_absolute(10.0, None)
        assert cal.have_heading is False

    def test_later_course_replaces_heading(self) -> None:
        cal = CalibrationEngine()
        cal.observe_absolute(5.0, 90.0)
        cal.observe_absolute(5.0, 180.0)
        assert cal.heading[0] == pytest.approx(0.0, abs=1e-12)
        assert cal.heading[1] == pytest.approx(-1.0)


class TestStopDetector:
    """Stillness must hold for 1200 ms before stopped latches."""

    def test_held_1199ms_not_stopped(self) -> None:
        cal = CalibrationEngine()
        assert cal.update_stop_state(10_000, 0.0, STILL) is False
        assert cal.update_stop_state(11_199, 0.0, STILL) is False
        assert cal.stopped is False

    def test_held_1201ms_stopped(self) -> None:
        cal = CalibrationEngine()
        cal.update_stop_state(10_000, 0.0, STILL)
        assert cal.update_stop_state(11_201, 0.0, STILL) is True

    def test_held_from_time_zero(self) -> None:
        cal = CalibrationEngine()
        cal.update_stop_state(0, 0.0, STILL)
        assert cal.update_stop_state(1_200, 0.0, STILL) is True

    def test_moving_sample_resets_timer(self) -> None:
        cal = CalibrationEngine()
        cal.update_stop_state(0, 0.0, STILL)
        cal.update_stop_state(1_000, 0.0, (0.5, 0.0, 0.0))
        assert cal.stopped_since_ms is None
        assert cal.update_stop_state(1_500, 0.0, STILL) is False
        assert cal.update_stop_state(2_699, 0.0, STILL) is False
        assert cal.update_stop_state(2_700, 0.0, STILL) is True

    def test_speed_above_floor_is_moving(self) -> None:
        cal = CalibrationEngine()
        cal.update_stop_state(0, 0.3, STILL)
        cal.update_stop_state(5_000, 0.3, STILL)
        assert cal.stopped is False

    def test_moving_clears_latched_stop(self) -> None:
        cal = CalibrationEngine()
        cal.update_stop_state(0, 0.0, STILL)
        cal.update_stop_state(2_000, 0.0, STILL)
        assert cal.stopped is True
        cal.update_stop_state(2_100, 0.0, (0.0, 1.0, 0.0))
        assert cal.stopped is False


class TestLearnBias:
    """EMA bias learning gated on stopped."""

    def test_no_learning_while_moving(self) -> None:
        cal = CalibrationEngine()
        cal.learn_bias((0.1, 0.1, 0.1))
        assert cal.bias == (0.0, 0.0, 0.0)

    def test_learns_two_percent_per_sample(self) -> None:
        cal = CalibrationEngine()
        cal.stopped = True
        cal.learn_bias((0.1, -0.1, 0.05))
        assert cal.bias == pytest.approx((0.002, -0.002, 0.001))

    def test_converges_toward_constant_offset(self) -> None:
        cal = CalibrationEngine()
        cal.stopped = True
        for _ in range(500):
            cal.learn_bias((0.1, 0.0, 0.0))
        assert cal.bias[0] == pytest.approx(0.1, abs=1e-4)


class TestForwardAccel:
    """Projection onto the heading."""

    def test_zero_without_heading(self) -> None:
        cal = CalibrationEngine()
        assert cal.forward_accel((0.0, 3.0, 0.0)) == 0.0

    def test_projects_on_north_heading(self) -> None:
        cal = CalibrationEngine()
        cal.observe_absolute(10.0, 0.0)
        assert cal.forward_accel((1.0, 2.0, 9.0)) == pytest.approx(2.0)

    def test_bias_subtracted(self) -> None:
        cal = CalibrationEngine()
        cal.observe_absolute(10.0, 0.0)
        cal.bias = (0.0, 0.5, 0.0)
        assert cal.forward_accel((0.0, 2.0, 0.0)) == pytest.approx(1.5)

    def test_braking_is_negative(self) -> None:
        cal = CalibrationEngine()
        cal.observe_absolute(10.0, 90.0)
        assert cal.forward_accel((-1.5, 0.0, 0.0)) == pytest.approx(-1.5)

    def test_to_dict(self) -> None:
        cal = CalibrationEngine()
        data = cal.to_dict()
        assert data == {
            "bias": [0.0, 0.0, 0.0],
            "heading": [0.0, 1.0],
            "have_heading": False,
            "stopped": False,
        }
