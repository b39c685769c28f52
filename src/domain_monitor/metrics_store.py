"""Thread-safe store of the latest check result per domain."""

import logging
import threading
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Set

from .checkers.base_checker import CheckResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoreSummary:
    """Counts over the current store contents."""
    total: int
    succeeded: int
    failed: int
    pending: int
    critical: int


class MetricsStore:
    """
    Maps each monitored domain to its latest CheckResult.

    Probes write concurrently while the exporter reads, so every access goes
    through a single lock and readers receive copies.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._results: Dict[str, CheckResult] = {}
        # Domains of the active configuration, None until the first prune
        self._active: Optional[Set[str]] = None

    def record(self, domain: str, result: CheckResult) -> bool:
        """
        Replace the stored result of a domain.

        Results for domains that were removed from the configuration (a late
        probe abandoned by an earlier cycle) are dropped.

        Args:
            domain: Domain the result belongs to
            result: New check result

        Returns:
            True if the result was stored
        """
        with self._lock:
            if self._active is not None and domain not in self._active:
                logger.debug(f"Dropping result for {domain}: no longer configured")
                return False
            self._results[domain] = result
            return True

    def get(self, domain: str) -> Optional[CheckResult]:
        with self._lock:
            return self._results.get(domain)

    def snapshot(self) -> Dict[str, CheckResult]:
        """Point-in-time copy of all entries."""
        with self._lock:
            return dict(self._results)

    def prune(self, active_domains: Iterable[str]) -> List[str]:
        """
        Remove entries whose domain is not in ``active_domains``.

        Args:
            active_domains: Domains of the current configuration

        Returns:
            The removed domains
        """
        active = set(active_domains)
        with self._lock:
            self._active = active
            removed = [domain for domain in self._results if domain not in active]
            for domain in removed:
                del self._results[domain]

        if removed:
            logger.info(f"Removed metrics for {len(removed)} domain(s): {', '.join(removed)}")
        return removed

    def reconcile(self, domains: Iterable[str]) -> List[str]:
        """
        Align the store with the configured domain list.

        Prunes removed domains and inserts PENDING placeholders for new ones.

        Args:
            domains: Domains of the current configuration

        Returns:
            The newly added domains
        """
        domains = list(domains)
        self.prune(domains)

        added = []
        with self._lock:
            for domain in domains:
                if domain not in self._results:
                    self._results[domain] = CheckResult.pending(domain)
                    added.append(domain)

        if added:
            logger.debug(f"Added pending entries for {len(added)} new domain(s)")
        return added

    def summary(self, threshold_days: int) -> StoreSummary:
        """
        Count entries by status.

        Args:
            threshold_days: Expire threshold used for the critical count

        Returns:
            StoreSummary over a consistent snapshot
        """
        results = self.snapshot().values()
        return StoreSummary(
            total=len(results),
            succeeded=sum(1 for r in results if r.is_success),
            failed=sum(1 for r in results if r.is_error),
            pending=sum(1 for r in results if r.is_pending),
            critical=sum(1 for r in results if r.is_critical(threshold_days)),
        )

    def __len__(self) -> int:
        with self._lock:
            return len(self._results)
