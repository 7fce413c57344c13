import threading

from siteforge.adapters.jobs import BackgroundScheduler, PeriodicTask


def test_loop_survives_failures():
    ran = threading.Event()
    attempts = []

    def flaky():
        attempts.append(1)
        if len(attempts) == 1:
            raise RuntimeError("boom")
        ran.set()

    scheduler = BackgroundScheduler([PeriodicTask("flaky", 0.01, flaky)])
    scheduler.start()
    try:
        assert ran.wait(timeout=2.0)
    finally:
        scheduler.stop()

    assert len(attempts) >= 2
    assert not scheduler.is_running


def test_start_stop_idempotent():
    scheduler = BackgroundScheduler([PeriodicTask("idle", 60, lambda: None)])

    scheduler.start()
    scheduler.start()
    assert scheduler.is_running

    scheduler.stop()
    scheduler.stop()
    assert not scheduler.is_running
