"""Tests for the usage monitor service."""

import logging
import threading
import time
from datetime import timedelta
from unittest.mock import Mock

import pytest

from quotawake.core.errors import EnumerationError
from quotawake.domain.models import AggregateCounts
from quotawake.services.monitor import UsageMonitorService
from quotawake.services.timer import SingleShotTimer

from tests.helpers import NOW


@pytest.fixture
def update_pass():
    update_pass = Mock()
    update_pass.run.return_value = AggregateCounts(success=1, total=1)
    return update_pass


@pytest.fixture
def planner():
    planner = Mock()
    planner.next_interval.return_value = timedelta(minutes=7)
    return planner


@pytest.fixture
def service(update_pass, planner, config, fake_timer, clock):
    return UsageMonitorService(update_pass, planner, config=config, timer=fake_timer, clock=clock)


class TestLifecycle:
    """Start/stop behaviour."""

    def test_start_runs_first_cycle_inline(self, service, update_pass, planner, fake_timer):
        service.start()

        assert service.is_running
        update_pass.run.assert_called_once()
        planner.next_interval.assert_called_once()
        assert fake_timer.delays == [timedelta(minutes=7)]
        assert fake_timer.is_armed

    def test_start_twice_is_noop(self, service, update_pass, caplog):
        service.start()
        caplog.set_level(logging.WARNING)

        service.start()

        update_pass.run.assert_called_once()
        assert "already running" in caplog.text

    def test_stop_cancels_timer(self, service, fake_timer):
        service.start()

        service.stop()

        assert not service.is_running
        assert not fake_timer.is_armed

    def test_stop_twice_is_noop(self, service, fake_timer, caplog):
        service.start()
        service.stop()
        caplog.set_level(logging.WARNING)

        service.stop()

        assert fake_timer.cancel_calls == 1
        assert not fake_timer.is_armed
        assert "not running" in caplog.text

    def test_stop_without_start(self, service, fake_timer):
        service.stop()

        assert fake_timer.cancel_calls == 0
        assert not fake_timer.is_armed

    def test_close_shuts_timer_down(self, service, fake_timer):
        service.start()

        service.close()

        assert not service.is_running
        assert fake_timer.shutdown_calls == 1

    def test_restart_after_stop(self, service, update_pass, fake_timer):
        service.start()
        service.stop()

        service.start()

        assert update_pass.run.call_count == 2
        assert fake_timer.is_armed

    def test_close_releases_resources(self, update_pass, planner, config, fake_timer, clock):
        client = Mock()
        service = UsageMonitorService(
            update_pass, planner, config=config, timer=fake_timer, clock=clock, resources=[client]
        )
        service.start()

        service.close()

        client.close.assert_called_once()

    def test_close_without_start_releases_resources(self, update_pass, planner, config, fake_timer):
        client = Mock()
        service = UsageMonitorService(
            update_pass, planner, config=config, timer=fake_timer, resources=[client]
        )

        service.close()

        client.close.assert_called_once()
        update_pass.run.assert_not_called()


class TestCycles:
    """Timer-driven cycles."""

    def test_timer_fire_runs_next_cycle_and_rearms(self, service, update_pass, planner, fake_timer):
        planner.next_interval.side_effect = [timedelta(minutes=7), timedelta(minutes=20)]
        service.start()

        fake_timer.fire()

        assert update_pass.run.call_count == 2
        assert fake_timer.delays == [timedelta(minutes=7), timedelta(minutes=20)]
        assert fake_timer.is_armed

    def test_cycle_error_falls_back_to_base_interval(self, service, update_pass, planner, fake_timer):
        update_pass.run.side_effect = EnumerationError("Failed to list accounts")

        service.start()

        planner.next_interval.assert_not_called()
        assert fake_timer.delays == [timedelta(minutes=20)]
        assert service.is_running

    def test_stop_during_cycle_prevents_rearm(self, service, update_pass, fake_timer):
        service.start()

        def stop_mid_pass():
            service.stop()
            return AggregateCounts()

        update_pass.run.side_effect = stop_mid_pass
        fake_timer.fire()

        assert not service.is_running
        assert not fake_timer.is_armed
        assert len(fake_timer.delays) == 1

    def test_callback_from_before_restart_is_skipped(self, service, update_pass, fake_timer):
        service.start()
        stale = fake_timer.callback
        service.stop()
        service.start()

        stale()

        assert update_pass.run.call_count == 2
        assert len(fake_timer.delays) == 2

    def test_cycle_from_before_restart_does_not_rearm(self, service, update_pass, fake_timer):
        service.start()
        restart = threading.Thread(target=service.start)

        def restart_mid_pass():
            update_pass.run.side_effect = None
            service.stop()
            restart.start()
            return AggregateCounts()

        update_pass.run.side_effect = restart_mid_pass
        fake_timer.fire()

        # the restarted service waits for the old cycle, then runs its own
        restart.join(timeout=5)

        assert not restart.is_alive()
        assert service.is_running
        assert update_pass.run.call_count == 3
        assert len(fake_timer.delays) == 2


@pytest.fixture
def scheduler_timer():
    timer = SingleShotTimer(job_id="monitor-test")
    yield timer
    timer.shutdown()


class TestWithSchedulerTimer:
    """Cycles driven by the APScheduler-backed timer."""

    def test_timer_cycles_rearm_one_job(self, update_pass, planner, config, scheduler_timer):
        cycles = threading.Semaphore(0)

        def run():
            cycles.release()
            return AggregateCounts()

        update_pass.run.side_effect = run
        planner.next_interval.return_value = timedelta(milliseconds=50)
        service = UsageMonitorService(update_pass, planner, config=config, timer=scheduler_timer)

        service.start()
        for _ in range(3):
            assert cycles.acquire(timeout=5)

        assert service.is_running
        assert all(job.id == "monitor-test" for job in scheduler_timer.scheduler.get_jobs())
        assert len(scheduler_timer.scheduler.get_jobs()) <= 1

        service.stop()

        assert not scheduler_timer.is_armed
        service.close()

    def test_restart_waits_for_running_pass(self, update_pass, planner, config, scheduler_timer):
        guard = threading.Lock()
        state = {"calls": 0, "active": 0, "max": 0}
        in_timer_cycle = threading.Event()

        def run():
            with guard:
                state["calls"] += 1
                call = state["calls"]
                state["active"] += 1
                state["max"] = max(state["max"], state["active"])
            try:
                if call == 2:
                    in_timer_cycle.set()
                    time.sleep(0.5)
            finally:
                with guard:
                    state["active"] -= 1
            return AggregateCounts()

        def next_interval():
            if state["calls"] == 1:
                return timedelta(milliseconds=50)
            return timedelta(hours=1)

        update_pass.run.side_effect = run
        planner.next_interval.side_effect = next_interval
        service = UsageMonitorService(update_pass, planner, config=config, timer=scheduler_timer)

        service.start()
        assert in_timer_cycle.wait(timeout=5)
        service.stop()
        service.start()

        assert state["max"] == 1
        assert state["calls"] == 3
        assert scheduler_timer.is_armed
        assert len(scheduler_timer.scheduler.get_jobs()) == 1
        service.close()


class TestStatus:
    """Tests for get_status."""

    def test_status_before_start(self, service):
        status = service.get_status().to_dict()

        assert status["is_running"] is False
        assert status["base_interval_minutes"] == 20
        assert status["after_reset_minutes"] == 5
        assert status["reset_threshold_minutes"] == 10
        assert status["next_run_at"] is None
        assert status["last_counts"] is None

    def test_status_after_cycle(self, service):
        service.start()

        status = service.get_status()

        assert status.is_running is True
        assert status.next_run_at == NOW + timedelta(minutes=7)
        assert status.last_run_at == NOW
        assert status.last_counts.success == 1

    def test_status_has_no_side_effects(self, service, update_pass, fake_timer):
        service.get_status()
        service.get_status()

        update_pass.run.assert_not_called()
        assert fake_timer.delays == []
