#!/usr/bin/env python3
"""
LibFuzzer harness for the phone feed protocol (feeds.remote.parse_line).

Feed raw bytes (UTF-8). Fuzzer exercises JSON parsing, validation and type coercion.
Run: python fuzz/fuzz_remote_parse.py fuzz/corpus/remote_parse/ [options]
"""

import math
import sys

try:
    import atheris
except ImportError:
    print("Install atheris: pip install atheris")
    sys.exit(1)

with atheris.instrument_imports():
    from vss_daemon.feeds.remote import parse_line


def test_one_input(data: bytes) -> None:
    """Single fuzz iteration: parse one line; accepted values must be usable."""
    try:
        line = data.decode("utf-8").strip()
    except UnicodeDecodeError:
        return
    location, motion = parse_line(line, now_ns=0)
    if location is not None:
        speed, course = location
        assert speed >= 0.0 and math.isfinite(speed)
        assert course is None or 0.0 <= course < 360.0
    if motion is not None:
        accel, rotation, t_ns = motion
        assert len(accel) == 3 and len(rotation) == 9
        assert isinstance(t_ns, int)


def main() -> None:
    atheris.Setup(sys.argv, test_one_input)
    atheris.Fuzz()


if __name__ == "__main__":
    main()
