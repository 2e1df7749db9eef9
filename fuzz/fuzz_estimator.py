#!/usr/bin/env python3
"""
LibFuzzer harness for SpeedEstimator: speed must never go negative or non-finite.

Bytes are consumed as a sequence of accel / GPS updates with arbitrary timestamps.
Run: python fuzz/fuzz_estimator.py fuzz/corpus/estimator/ [options]
"""

import math
import sys

try:
    import atheris
except ImportError:
    print("Install atheris: pip install atheris")
    sys.exit(1)

with atheris.instrument_imports():
    from vss_daemon.estimator import SpeedEstimator


def test_one_input(data: bytes) -> None:
    """Single fuzz iteration: replay updates and check the invariant after each."""
    fdp = atheris.FuzzedDataProvider(data)
    est = SpeedEstimator()
    t_ns = 0
    while fdp.remaining_bytes() > 0:
        if fdp.ConsumeBool():
            est.correct(fdp.ConsumeFloatInRange(-1000.0, 1000.0))
        else:
            t_ns += fdp.ConsumeIntInRange(-10**9, 10**9)
            est.integrate(fdp.ConsumeFloatInRange(-1000.0, 1000.0), t_ns)
        assert est.speed_mps >= 0.0
        assert math.isfinite(est.speed_mps)


def main() -> None:
    atheris.Setup(sys.argv, test_one_input)
    atheris.Fuzz()


if __name__ == "__main__":
    main()
