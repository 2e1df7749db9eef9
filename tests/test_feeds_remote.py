"""
Unit tests for the remote feed protocol: valid, invalid, and edge cases.
"""

import json
import socket
import time
from typing import List, Optional, Sequence, Tuple

from vss_daemon.feeds.remote import IDENTITY, RemoteFeed, parse_line
from vss_daemon.sources import FusedSpeedSource
from vss_daemon.sources.base import ObservationListener

ROT = [0.0, -1.0, 0.0, 1.0, 0.0, 0.0, 0.0, 0.0, 1.0]


class RecordingListener(ObservationListener):
    def __init__(self) -> None:
        self.locations: List[Tuple[float, Optional[float]]] = []
        self.motions: List[Tuple[Sequence[float], Sequence[float], int]] = []

    def on_location(self, speed_mps: float, course_deg: Optional[float]) -> None:
        self.locations.append((speed_mps, course_deg))

    def on_motion(
        self, accel: Sequence[float], rotation: Sequence[float], timestamp_ns: int
    ) -> None:
        self.motions.append((accel, rotation, timestamp_ns))


class TestParseLineValid:
    """Valid protocol lines."""

    def test_location_with_track(self) -> None:
        location, motion = parse_line('{"speed_ms":12.5,"track":270}')
        assert location == (12.5, 270.0)
        assert motion is None

    def test_location_null_track(self) -> None:
        location, _ = parse_line('{"speed_ms":3,"track":null}')
        assert location == (3.0, None)

    def test_location_without_track(self) -> None:
        location, _ = parse_line('{"speed_ms":3}')
        assert location == (3.0, None)

    def test_motion_full(self) -> None:
        line = json.dumps({"accel": [0.1, 0.2, 0.3], "rotation": ROT, "t_ns": 123456789})
        location, motion = parse_line(line)
        assert location is None
        assert motion == ((0.1, 0.2, 0.3), tuple(ROT), 123456789)

    def test_motion_defaults(self) -> None:
        _, motion = parse_line('{"accel":[1,2,3]}', now_ns=42)
        assert motion == ((1.0, 2.0, 3.0), IDENTITY, 42)

    def test_combined(self) -> None:
        location, motion = parse_line(
            '{"speed_ms":5,"track":10,"accel":[0,1,0],"t_ns":7}'
        )
        assert location == (5.0, 10.0)
        assert motion == ((0.0, 1.0, 0.0), IDENTITY, 7)

    def test_numeric_strings_converted(self) -> None:
        location, motion = parse_line(
            '{"speed_ms":"4.5","accel":["0.1","0","0"],"t_ns":1}'
        )
        assert location == (4.5, None)
        assert motion is not None
        assert motion[0] == (0.1, 0.0, 0.0)


class TestParseLineEdgeCases:
    """Clamping and wrapping."""

    def test_negative_speed_clamped(self) -> None:
        location, _ = parse_line('{"speed_ms":-1.0}')
        assert location == (0.0, None)

    def test_track_wrapped(self) -> None:
        location, _ = parse_line('{"speed_ms":5,"track":360}')
        assert location == (5.0, 0.0)
        location, _ = parse_line('{"speed_ms":5,"track":-90}')
        assert location == (5.0, 270.0)

    def test_tiny_negative_track_stays_below_360(self) -> None:
        location, _ = parse_line('{"speed_ms":5,"track":-1e-20}')
        assert location == (5.0, 0.0)

    def test_extra_rotation_elements_truncated(self) -> None:
        _, motion = parse_line(json.dumps({"accel": [0, 0, 0, 9], "rotation": ROT + [5.0], "t_ns": 1}))
        assert motion is not None
        assert motion[0] == (0.0, 0.0, 0.0)
        assert len(motion[1]) == 9


class TestParseLineInvalid:
    """Invalid lines are ignored."""

    def test_not_json(self) -> None:
        assert parse_line("not json") == (None, None)

    def test_truncated_json(self) -> None:
        assert parse_line('{"speed_ms": 1') == (None, None)

    def test_not_object(self) -> None:
        assert parse_line("[1,2,3]") == (None, None)

    def test_speed_not_number(self) -> None:
        assert parse_line('{"speed_ms":"fast"}') == (None, None)

    def test_speed_nan(self) -> None:
        assert parse_line('{"speed_ms":NaN}') == (None, None)

    def test_track_not_number(self) -> None:
        assert parse_line('{"speed_ms":1,"track":"north"}') == (None, None)

    def test_accel_short(self) -> None:
        assert parse_line('{"accel":[1,2]}') == (None, None)

    def test_rotation_short(self) -> None:
        assert parse_line('{"accel":[1,2,3],"rotation":[1,0,0]}') == (None, None)

    def test_bad_timestamp(self) -> None:
        assert parse_line('{"accel":[1,2,3],"t_ns":1.5}') == (None, None)
        assert parse_line('{"accel":[1,2,3],"t_ns":true}') == (None, None)

    def test_integers_too_large_for_float(self) -> None:
        huge = "1" + "0" * 400
        assert parse_line('{"speed_ms":%s}' % huge) == (None, None)
        assert parse_line('{"speed_ms":1,"track":%s}' % huge) == (None, None)
        assert parse_line('{"accel":[%s,0,0]}' % huge) == (None, None)

    def test_timestamp_outside_int64(self) -> None:
        assert parse_line('{"accel":[0,0,0],"t_ns":%d}' % 2**63) == (None, None)
        assert parse_line('{"accel":[0,0,0],"t_ns":1%s}' % ("0" * 400)) == (
            None,
            None,
        )
        _, motion = parse_line('{"accel":[0,0,0],"t_ns":%d}' % (2**63 - 1))
        assert motion is not None

    def test_bad_motion_keeps_location(self) -> None:
        location, motion = parse_line('{"speed_ms":2,"accel":"x"}')
        assert location == (2.0, None)
        assert motion is None


class TestRemoteFeedDispatch:
    """handle_line forwards to the listener."""

    def test_dispatch_order(self) -> None:
        feed = RemoteFeed(host="127.0.0.1", port=0)
        listener = RecordingListener()
        feed._listener = listener
        feed.handle_line('{"speed_ms":5,"track":90,"accel":[1,0,0],"t_ns":9}')
        assert listener.locations == [(5.0, 90.0)]
        assert listener.motions == [((1.0, 0.0, 0.0), IDENTITY, 9)]

    def test_no_listener_ignored(self) -> None:
        feed = RemoteFeed(host="127.0.0.1", port=0)
        feed.handle_line('{"speed_ms":5}')

    def test_invalid_line_not_dispatched(self) -> None:
        feed = RemoteFeed(host="127.0.0.1", port=0)
        listener = RecordingListener()
        feed._listener = listener
        feed.handle_line("garbage")
        assert listener.locations == []
        assert listener.motions == []

    def test_oversized_timestamp_not_forwarded_to_fused_source(self) -> None:
        feed = RemoteFeed(host="127.0.0.1", port=0)
        source = FusedSpeedSource(None)
        source.start()
        feed._listener = source
        feed.handle_line('{"accel":[0,0,0],"t_ns":1000}')
        feed.handle_line('{"accel":[0,0,0],"t_ns":1%s}' % ("0" * 400))
        feed.handle_line('{"accel":[0,0,0],"t_ns":2000}')
        assert source.estimator.speed_mps == 0.0
        assert source.latest().speed_mph == 0.0


class TestRemoteFeedSocket:
    """End-to-end over a loopback socket."""

    def test_client_lines_reach_listener(self) -> None:
        probe = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        probe.bind(("127.0.0.1", 0))
        port = probe.getsockname()[1]
        probe.close()

        feed = RemoteFeed(host="127.0.0.1", port=port)
        listener = RecordingListener()
        assert feed.start(listener) is True
        try:
            with socket.create_connection(("127.0.0.1", port), timeout=2.0) as c:
                c.sendall(b'{"speed_ms":8.0,"track":45}\n\n{"accel":[0,1,0],"t_ns":5}\n')
                deadline = time.monotonic() + 3.0
                while time.monotonic() < deadline and not listener.motions:
                    time.sleep(0.01)
        finally:
            feed.stop()
        assert listener.locations == [(8.0, 45.0)]
        assert listener.motions == [((0.0, 1.0, 0.0), IDENTITY, 5)]

    def test_bind_failure_returns_false(self) -> None:
        blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        blocker.bind(("127.0.0.1", 0))
        blocker.listen(1)
        port = blocker.getsockname()[1]
        try:
            feed = RemoteFeed(host="127.0.0.1", port=port)
            assert feed.start(RecordingListener()) is False
            feed.stop()
        finally:
            blocker.close()
