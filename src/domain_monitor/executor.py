"""
Executor layer for domain monitoring.

Runs one WHOIS probe per configured domain with bounded concurrency and a
per-cycle timeout, isolating failures and recording every result in the
metrics store.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Optional, Set

from .checkers.base_checker import BaseChecker, CheckResult
from .checkers.whois import WhoisChecker
from .config import MonitorConfig
from .exceptions import CycleError
from .metrics_store import MetricsStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CycleSummary:
    """
    Outcome of one check cycle.

    Attributes:
        total: Number of domains dispatched
        succeeded: Probes finished with SUCCESS within the cycle
        failed: Probes finished with ERROR within the cycle
        abandoned: Probes still running when the cycle timeout elapsed
        elapsed: Cycle duration in seconds
        skipped: True when there was nothing to check
    """
    total: int = 0
    succeeded: int = 0
    failed: int = 0
    abandoned: int = 0
    elapsed: float = 0.0
    skipped: bool = False


class CheckerPool:
    """
    Runs check cycles over all configured domains.

    Probes are independent tasks limited by a semaphore sized
    ``max_concurrent_checks``. Tasks still running when the cycle timeout
    elapses are not cancelled: the cycle stops waiting for them and their
    result lands in the store whenever they finish.
    """

    # Seconds to wait for all probes of a cycle
    CYCLE_TIMEOUT = 30.0

    def __init__(
        self,
        store: MetricsStore,
        checker: Optional[BaseChecker] = None,
        cycle_timeout: float = CYCLE_TIMEOUT
    ):
        """
        Initialize the pool.

        Args:
            store: Store receiving every probe result
            checker: Checker used for each domain (defaults to WhoisChecker)
            cycle_timeout: Seconds to wait for a cycle before abandoning probes
        """
        self.store = store
        self.checker = checker or WhoisChecker()
        self.cycle_timeout = cycle_timeout
        # Probes abandoned by a timed-out cycle, referenced until they finish
        self._abandoned: Set[asyncio.Task] = set()

    @property
    def abandoned_count(self) -> int:
        return len(self._abandoned)

    async def run_cycle(self, config: MonitorConfig) -> CycleSummary:
        """
        Probe every domain of the snapshot once.

        Args:
            config: Snapshot read once at cycle start

        Returns:
            CycleSummary with success, failure and abandoned counts

        Raises:
            CycleError: If orchestration itself fails
        """
        domains = config.domains
        if not domains:
            self.store.prune(domains)
            logger.info("No domains configured, skipping check cycle")
            return CycleSummary(skipped=True)

        logger.info(
            f"Starting domain check for {len(domains)} domains "
            f"(concurrency: {config.max_concurrent_checks})"
        )
        start_time = time.time()
        tasks: Set[asyncio.Task] = set()

        try:
            self.store.reconcile(domains)

            semaphore = asyncio.Semaphore(config.max_concurrent_checks)
            tasks = {
                asyncio.create_task(self._bounded_check(domain, config, semaphore), name=f"probe:{domain}")
                for domain in domains
            }

            done, pending = await asyncio.wait(tasks, timeout=self.cycle_timeout)

        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise CycleError(f"Domain check cycle failed: {e}") from e
        finally:
            for task in tasks:
                if not task.done():
                    self._abandoned.add(task)
                    task.add_done_callback(self._abandoned.discard)

        succeeded = failed = 0
        for task in done:
            if task.exception() is None and task.result().is_success:
                succeeded += 1
            else:
                failed += 1

        summary = CycleSummary(
            total=len(domains),
            succeeded=succeeded,
            failed=failed,
            abandoned=len(pending),
            elapsed=time.time() - start_time,
        )

        if pending:
            logger.warning(
                f"Cycle timeout after {self.cycle_timeout}s, "
                f"{len(pending)} probe(s) still running will report late"
            )
        logger.info(
            f"Domain check cycle completed in {summary.elapsed:.2f}s: "
            f"{succeeded}/{len(domains)} successful, {failed} failed, {len(pending)} abandoned"
        )
        return summary

    async def _bounded_check(
        self,
        domain: str,
        config: MonitorConfig,
        semaphore: asyncio.Semaphore
    ) -> CheckResult:
        """Run one probe under the concurrency limit and record its result."""
        async with semaphore:
            result = await safe_check(self.checker, domain, config)

        self.store.record(domain, result)

        if result.is_error:
            logger.warning(f"Failed to check domain {domain}: {result.error_message}")
        else:
            status = 'CRITICAL' if result.is_critical(config.expire_threshold_days) else 'OK'
            logger.debug(f"Domain {domain}: {result.days_until_expiry} days until expiry ({status})")
        return result

    async def wait_abandoned(self, timeout: Optional[float] = None) -> None:
        """Wait for probes abandoned by earlier cycles (used on shutdown)."""
        if self._abandoned:
            await asyncio.wait(set(self._abandoned), timeout=timeout)


async def safe_check(checker: BaseChecker, domain: str, config: MonitorConfig) -> CheckResult:
    """
    Wrapper turning any checker exception into an ERROR result.

    Args:
        checker: The checker instance to execute
        domain: The domain name to check
        config: Snapshot the cycle runs with

    Returns:
        CheckResult from the checker, or ERROR CheckResult on failure
    """
    try:
        return await checker.check(domain, config)
    except asyncio.CancelledError:
        raise
    except Exception as e:
        error_msg = str(e) if str(e) else f"{type(e).__name__} occurred"
        logger.error(f"Error checking domain {domain}: {error_msg}", exc_info=True)
        return CheckResult.error(domain, f"Check failed: {error_msg}", 'internal')
