import threading

import pytest

from decision_engine.scheduling import PeriodicTask


class TestPeriodicTask:
    def test_rejects_non_positive_interval(self):
        with pytest.raises(ValueError):
            PeriodicTask("noop", 0, lambda: None)

    def test_runs_immediately_and_repeats(self):
        calls = []
        twice = threading.Event()

        def tick():
            calls.append(1)
            if len(calls) >= 2:
                twice.set()

        task = PeriodicTask("counter", 0.01, tick)
        task.start()
        try:
            assert twice.wait(2)
            assert task.running
        finally:
            task.stop()
        assert not task.running

    def test_failing_tick_keeps_the_loop_alive(self):
        calls = []
        recovered = threading.Event()

        def flaky():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("upstream down")
            recovered.set()

        task = PeriodicTask("flaky", 0.01, flaky)
        task.start()
        try:
            assert recovered.wait(2)
        finally:
            task.stop()

    def test_deferred_first_run(self):
        calls = []
        task = PeriodicTask("deferred", 60, lambda: calls.append(1), run_immediately=False)
        task.start()
        task.stop()
        assert calls == []

    def test_tick_swallows_errors(self):
        def boom():
            raise ValueError("bad feed")

        PeriodicTask("boom", 1, boom).tick()
