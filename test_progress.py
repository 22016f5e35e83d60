"""
Tests for monotonic and synthetic progress reporting.
"""

import threading
import time

import pytest

from clip_tagger.progress import ProgressReporter, SyntheticProgress


def test_reporter_drops_non_increasing_values():
    seen = []
    reporter = ProgressReporter(seen.append)

    for value in [0.1, 0.05, 0.1, 0.3, 0.2, 1.0, 1.0]:
        reporter.report(value)

    assert seen == [0.1, 0.3, 1.0]
    assert reporter.value == 1.0


def test_reporter_clamps():
    seen = []
    reporter = ProgressReporter(seen.append)
    reporter.report(-1.0)
    reporter.report(7.0)
    assert seen == [1.0]


def test_reporter_without_sink():
    reporter = ProgressReporter()
    reporter.report(0.5)
    assert reporter.value == 0.5


def test_sub_range_maps_phase_fractions():
    seen = []
    reporter = ProgressReporter(seen.append)
    phase = reporter.sub_range(0.5, 0.7)

    phase(None)
    phase(0.0)
    phase(0.5)
    phase(2.0)

    assert seen == [pytest.approx(0.5), pytest.approx(0.6), pytest.approx(0.7)]


def test_synthetic_curve_stays_below_ceiling():
    synthetic = SyntheticProgress(ProgressReporter(), start=0.8)
    assert synthetic.value_at(0.0) == pytest.approx(0.8)
    assert synthetic.value_at(2.2) == pytest.approx(0.8 + 0.175 * (1 - 0.36787944), rel=1e-6)
    assert synthetic.value_at(10.0) < 0.975
    assert synthetic.value_at(1.0) < synthetic.value_at(2.0)


def test_synthetic_progress_advances_and_stops():
    seen = []
    reporter = ProgressReporter(seen.append)
    reporter.report(0.8)

    with SyntheticProgress(reporter, start=0.8, interval=0.01):
        time.sleep(0.1)

    assert len(seen) > 1
    assert all(0.8 <= value < 0.975 for value in seen)
    assert not any(t.name == "synthetic-progress" and t.is_alive() for t in threading.enumerate())

    count = len(seen)
    time.sleep(0.05)
    assert len(seen) == count


def test_synthetic_progress_stops_when_block_raises():
    reporter = ProgressReporter()

    with pytest.raises(RuntimeError):
        with SyntheticProgress(reporter, start=0.0, interval=0.01):
            raise RuntimeError("inference failed")

    assert not any(t.name == "synthetic-progress" and t.is_alive() for t in threading.enumerate())


def test_sink_may_report_again():
    seen = []
    reporter = ProgressReporter()

    def sink(value):
        seen.append(value)
        if value < 0.9:
            reporter.report(0.9)

    reporter._sink = sink
    worker = threading.Thread(target=reporter.report, args=(0.5,), daemon=True)
    worker.start()
    worker.join(timeout=2.0)

    assert not worker.is_alive()
    assert seen == [0.5, 0.9]
