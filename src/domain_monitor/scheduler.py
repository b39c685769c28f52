"""
Check cycle scheduling.

One coordinator task runs a cycle at startup, then whenever the check
interval elapses or the configuration changes, whichever comes first. Only
one cycle runs at a time; triggers arriving during a cycle are coalesced
into a single follow-up cycle.
"""

import asyncio
import logging
from typing import Callable, Optional

from .config import MonitorConfig
from .exceptions import CycleError
from .executor import CheckerPool, CycleSummary

logger = logging.getLogger(__name__)


class Scheduler:
    """Drives check cycles from the startup, timer and config-change triggers."""

    def __init__(self, pool: CheckerPool, get_config: Callable[[], MonitorConfig]):
        """
        Initialize the scheduler.

        Args:
            pool: Pool executing the cycles
            get_config: Returns the currently published configuration snapshot
        """
        self.pool = pool
        self.get_config = get_config

        self._change_event = asyncio.Event()
        self._stop_event = asyncio.Event()
        self._cycle_running = False
        self._cycle_done = asyncio.Event()
        self._cycle_done.set()
        self.cycles_completed = 0
        self.last_summary: Optional[CycleSummary] = None

    @property
    def cycle_running(self) -> bool:
        return self._cycle_running

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def trigger(self) -> None:
        """
        Request an immediate cycle after a configuration change.

        If a cycle is running the request stays recorded and starts one
        cycle as soon as the current one ends.
        """
        if self._stop_event.is_set():
            return
        logger.info("Configuration changed, triggering immediate domain check")
        self._change_event.set()

    def stop(self) -> None:
        """Stop accepting triggers; an in-flight cycle is left to finish."""
        self._stop_event.set()

    async def wait_idle(self) -> None:
        """Wait until no cycle is running."""
        await self._cycle_done.wait()

    async def run(self) -> None:
        """Coordinator loop: startup cycle, then timer or change triggered cycles."""
        logger.info("=== Performing initial domain check ===")
        await self.run_cycle("startup")

        while not self._stop_event.is_set():
            interval = self.get_config().check_interval
            logger.debug(f"Waiting for config change or interval timeout ({interval}s)")
            reason = await self._wait_for_trigger(interval)
            if reason is None:
                break
            logger.info(f"=== {reason.capitalize()} domain check ===")
            await self.run_cycle(reason)

        logger.info("Scheduler stopped")

    async def _wait_for_trigger(self, interval: float) -> Optional[str]:
        """
        Wait for the change event, the stop event or the timer.

        Returns:
            'config change', 'scheduled', or None when stopping
        """
        change_waiter = asyncio.create_task(self._change_event.wait())
        stop_waiter = asyncio.create_task(self._stop_event.wait())
        try:
            await asyncio.wait(
                {change_waiter, stop_waiter},
                timeout=interval,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            change_waiter.cancel()
            stop_waiter.cancel()

        if self._stop_event.is_set():
            return None
        if self._change_event.is_set():
            self._change_event.clear()
            return 'config change'
        return 'scheduled'

    async def run_cycle(self, reason: str = 'manual') -> Optional[CycleSummary]:
        """
        Run one cycle unless another one is in flight.

        Args:
            reason: Trigger name used in log messages

        Returns:
            The cycle summary, or None if skipped or failed
        """
        if self._cycle_running:
            logger.debug(f"Cycle already running, recording '{reason}' trigger")
            self._change_event.set()
            return None

        self._cycle_running = True
        self._cycle_done.clear()
        try:
            config = self.get_config()
            summary = await self.pool.run_cycle(config)
            self.last_summary = summary
            self.cycles_completed += 1
            self._log_results(config)
            return summary
        except CycleError as e:
            logger.error(e.message, exc_info=True)
            return None
        except Exception as e:
            logger.error(f"Domain check cycle failed: {e}", exc_info=True)
            return None
        finally:
            self._cycle_running = False
            self._cycle_done.set()

    def _log_results(self, config: MonitorConfig) -> None:
        """Log each domain's latest result."""
        for domain, result in sorted(self.pool.store.snapshot().items()):
            if result.is_error:
                logger.debug(f"  - {domain}: FAILED ({result.error_message})")
            elif result.is_success:
                status = 'CRITICAL' if result.is_critical(config.expire_threshold_days) else 'OK'
                logger.debug(f"  - {domain}: {result.days_until_expiry} days ({status})")
