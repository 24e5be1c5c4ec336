"""Tests for the periodic runner and delivery claims."""

import threading

from app.infrastructure.notifications import DeliveryClaims, PeriodicRunner


def test_trigger_never_overlaps_a_running_pass():
    nested_results = []
    runner = None

    def work():
        nested_results.append(runner.trigger())

    runner = PeriodicRunner(work, interval=10)

    assert runner.trigger() is True
    assert nested_results == [False]


def test_runner_keeps_going_after_a_failing_pass():
    calls = []

    def work():
        calls.append(1)
        raise RuntimeError("database unavailable")

    runner = PeriodicRunner(work, interval=10)

    assert runner.trigger() is True
    assert runner.trigger() is True
    assert len(calls) == 2


def test_background_thread_runs_and_stops():
    ran = threading.Event()
    runner = PeriodicRunner(ran.set, interval=0.01)

    runner.start()
    try:
        assert ran.wait(2)
    finally:
        runner.stop(timeout=2)

    assert not runner.is_alive


def test_delivery_claims_are_exclusive():
    claims = DeliveryClaims()

    with claims.claimed(1) as first:
        with claims.claimed(1) as second:
            assert first is True
            assert second is False
        assert claims.is_claimed(1)

    assert not claims.is_claimed(1)
