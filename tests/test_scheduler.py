"""
Tests for the check cycle scheduler.

Tests the startup, timer and config-change triggers and the single-flight
guarantee.
"""

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest

from domain_monitor.config import MonitorConfig
from domain_monitor.exceptions import CycleError
from domain_monitor.executor import CycleSummary
from domain_monitor.metrics_store import MetricsStore
from domain_monitor.scheduler import Scheduler


def make_pool(side_effect=None):
    """Pool double whose run_cycle records the snapshots it receives."""
    pool = Mock()
    pool.store = MetricsStore()
    pool.run_cycle = AsyncMock(side_effect=side_effect, return_value=CycleSummary(total=1, succeeded=1))
    return pool


async def wait_until(predicate, timeout=2.0):
    """Poll ``predicate`` until it holds or the timeout expires."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


class TestScheduler:
    """Tests for Scheduler."""

    @pytest.mark.asyncio
    async def test_startup_cycle(self):
        """Test that a cycle runs immediately at startup."""
        pool = make_pool()
        scheduler = Scheduler(pool, lambda: MonitorConfig(domains=('a.com',)))

        task = asyncio.create_task(scheduler.run())
        await wait_until(lambda: scheduler.cycles_completed == 1)
        scheduler.stop()
        await asyncio.wait_for(task, timeout=1)

        assert pool.run_cycle.await_count == 1
        assert scheduler.last_summary.succeeded == 1

    @pytest.mark.asyncio
    async def test_timer_triggers_cycles(self):
        """Test that cycles repeat every check_interval seconds."""
        pool = make_pool()
        scheduler = Scheduler(pool, lambda: MonitorConfig(check_interval=0.02))

        task = asyncio.create_task(scheduler.run())
        await wait_until(lambda: scheduler.cycles_completed >= 3)
        scheduler.stop()
        await asyncio.wait_for(task, timeout=1)

    @pytest.mark.asyncio
    async def test_config_change_triggers_immediate_cycle(self):
        """Test that trigger() starts a cycle without waiting for the timer."""
        pool = make_pool()
        scheduler = Scheduler(pool, lambda: MonitorConfig(check_interval=3600))

        task = asyncio.create_task(scheduler.run())
        await wait_until(lambda: scheduler.cycles_completed == 1)

        scheduler.trigger()
        await wait_until(lambda: scheduler.cycles_completed == 2)

        scheduler.stop()
        await asyncio.wait_for(task, timeout=1)

    @pytest.mark.asyncio
    async def test_each_cycle_reads_current_snapshot(self):
        """Test that a cycle uses the snapshot published when it starts."""
        configs = {'current': MonitorConfig(domains=('a.com',))}
        pool = make_pool()
        scheduler = Scheduler(pool, lambda: configs['current'])

        task = asyncio.create_task(scheduler.run())
        await wait_until(lambda: scheduler.cycles_completed == 1)
        configs['current'] = MonitorConfig(domains=('b.com',))
        scheduler.trigger()
        await wait_until(lambda: scheduler.cycles_completed == 2)
        scheduler.stop()
        await asyncio.wait_for(task, timeout=1)

        first, second = [call.args[0] for call in pool.run_cycle.await_args_list]
        assert first.domains == ('a.com',)
        assert second.domains == ('b.com',)

    @pytest.mark.asyncio
    async def test_single_flight(self):
        """Test that triggers during a cycle start exactly one follow-up cycle."""
        gate = asyncio.Event()
        calls = []

        async def run_cycle(config):
            calls.append(config)
            if len(calls) == 1:
                await gate.wait()
            return CycleSummary(total=1, succeeded=1)

        pool = make_pool(side_effect=run_cycle)
        scheduler = Scheduler(pool, lambda: MonitorConfig(check_interval=3600))

        task = asyncio.create_task(scheduler.run())
        await wait_until(lambda: scheduler.cycle_running)

        scheduler.trigger()
        scheduler.trigger()
        assert await scheduler.run_cycle('manual') is None

        gate.set()
        await wait_until(lambda: scheduler.cycles_completed == 2)
        await asyncio.sleep(0.05)

        assert len(calls) == 2
        scheduler.stop()
        await asyncio.wait_for(task, timeout=1)

    @pytest.mark.asyncio
    async def test_cycle_error_does_not_stop_scheduler(self):
        """Test that a failed cycle is logged and the next trigger proceeds."""
        pool = make_pool(side_effect=[CycleError("store broken"), CycleSummary(total=1)])
        scheduler = Scheduler(pool, lambda: MonitorConfig(check_interval=3600))

        task = asyncio.create_task(scheduler.run())
        await wait_until(lambda: pool.run_cycle.await_count == 1)
        assert not scheduler.cycle_running

        scheduler.trigger()
        await wait_until(lambda: scheduler.cycles_completed == 1)

        scheduler.stop()
        await asyncio.wait_for(task, timeout=1)

    @pytest.mark.asyncio
    async def test_stop_ends_wait(self):
        """Test that stop() wakes the coordinator and ignores later triggers."""
        pool = make_pool()
        scheduler = Scheduler(pool, lambda: MonitorConfig(check_interval=3600))

        task = asyncio.create_task(scheduler.run())
        await wait_until(lambda: scheduler.cycles_completed == 1)

        scheduler.stop()
        scheduler.trigger()
        await asyncio.wait_for(task, timeout=1)

        assert scheduler.stopped
        assert pool.run_cycle.await_count == 1

    @pytest.mark.asyncio
    async def test_wait_idle(self):
        """Test that wait_idle returns once the running cycle has finished."""
        gate = asyncio.Event()

        async def run_cycle(config):
            await gate.wait()
            return CycleSummary()

        scheduler = Scheduler(make_pool(side_effect=run_cycle), lambda: MonitorConfig())
        cycle = asyncio.create_task(scheduler.run_cycle())
        await wait_until(lambda: scheduler.cycle_running)

        idle = asyncio.create_task(scheduler.wait_idle())
        await asyncio.sleep(0.01)
        assert not idle.done()

        gate.set()
        await asyncio.wait_for(idle, timeout=1)
        await cycle
