"""
Test cases for the background heartbeat scheduler.
"""

import threading

import pytest

from assist_core.core.heartbeat import HeartbeatScheduler


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scheduler(clock):
    return HeartbeatScheduler(tick_sec=0.01, clock=clock)


class TestHeartbeatRegistration:

    def test_register_task_valid(self, scheduler):
        scheduler.register_task("test_task", 30, lambda: None)
        assert scheduler.list_tasks() == ["test_task"]

    def test_register_task_invalid_func(self, scheduler):
        with pytest.raises(ValueError, match="Task function must be callable"):
            scheduler.register_task("bad_task", 30, "not_callable")

    def test_register_task_invalid_interval(self, scheduler):
        with pytest.raises(ValueError, match="Interval must be >= 1 second"):
            scheduler.register_task("bad_task", 0, lambda: None)

    def test_register_duplicate_task_replaces(self, scheduler):
        scheduler.register_task("duplicate", 30, lambda: None)
        scheduler.register_task("duplicate", 60, lambda: None)

        assert len(scheduler.list_tasks()) == 1
        assert scheduler.get_status()["tasks"]["duplicate"]["interval_sec"] == 60

    def test_unregister_task(self, scheduler):
        scheduler.register_task("test_task", 30, lambda: None)
        scheduler.unregister_task("test_task")
        scheduler.unregister_task("nonexistent")

        assert scheduler.list_tasks() == []


class TestHeartbeatScheduling:

    def test_runs_immediately_then_on_interval(self, scheduler, clock):
        calls = []
        scheduler.register_task("job", 30, lambda: calls.append(clock.now))

        assert scheduler.run_pending() == 1
        clock.now += 10
        assert scheduler.run_pending() == 0
        clock.now += 20
        assert scheduler.run_pending() == 1

        assert calls == [100.0, 130.0]

    def test_deferred_first_run(self, scheduler, clock):
        scheduler.register_task("job", 30, lambda: None, run_immediately=False)

        assert not scheduler.should_run_task("job")
        clock.now += 30
        assert scheduler.should_run_task("job")

    def test_reset_task_forces_run(self, scheduler):
        scheduler.register_task("job", 30, lambda: None)
        scheduler.run_pending()

        scheduler.reset_task("job")
        assert scheduler.should_run_task("job")


class TestHeartbeatExecution:

    def test_failing_task_is_isolated(self, scheduler, clock):
        """A raising task is recorded and rescheduled, never propagated."""
        def broken():
            raise RuntimeError("tenant db offline")

        ran = []
        scheduler.register_task("broken", 30, broken)
        scheduler.register_task("healthy", 30, lambda: ran.append(True))

        assert scheduler.run_pending() == 2
        assert ran == [True]

        status = scheduler.get_status()["tasks"]["broken"]
        assert status["failures"] == 1
        assert status["last_run"] == clock.now
        assert not scheduler.should_run_task("broken")

    def test_run_task_return_value(self, scheduler):
        scheduler.register_task("ok", 30, lambda: None)
        scheduler.register_task("bad", 30, lambda: 1 / 0)

        assert scheduler.run_task("ok") is True
        assert scheduler.run_task("bad") is False

    def test_background_thread_runs_tasks(self):
        scheduler = HeartbeatScheduler(tick_sec=0.01)
        done = threading.Event()
        scheduler.register_task("signal", 60, done.set)

        scheduler.start()
        try:
            assert done.wait(2.0)
            assert scheduler.get_status()["status"] == "running"
        finally:
            scheduler.stop()

        assert scheduler.get_status()["status"] == "stopped"

    def test_start_already_running(self):
        scheduler = HeartbeatScheduler(tick_sec=0.01)
        scheduler.start()
        try:
            with pytest.raises(RuntimeError, match="already running"):
                scheduler.start()
        finally:
            scheduler.stop()

    def test_stop_when_not_running_is_safe(self, scheduler):
        scheduler.stop()
        assert scheduler.get_status()["status"] == "stopped"
