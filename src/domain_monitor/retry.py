"""
Bounded retry policy for WHOIS lookups.

The policy is a plain value: deciding whether another attempt is allowed
depends only on the attempt number and the error, so it can be shared by any
number of concurrent probes.
"""

from dataclasses import dataclass

from .exceptions import WhoisTransientError


@dataclass(frozen=True)
class RetryPolicy:
    """
    Fixed-delay retry policy.

    Attributes:
        max_retries: Additional attempts allowed after the first one
        interval: Seconds to wait between attempts
    """
    max_retries: int
    interval: float

    @property
    def max_attempts(self) -> int:
        """Total number of attempts, including the first one."""
        return self.max_retries + 1

    def is_retryable(self, error: BaseException) -> bool:
        """Only transient WHOIS failures are retried."""
        return isinstance(error, WhoisTransientError)

    def should_retry(self, attempt: int, error: BaseException) -> bool:
        """
        Decide whether another attempt should be made.

        Args:
            attempt: Number of the attempt that just failed (1-based)
            error: The error raised by that attempt

        Returns:
            True if the error is transient and attempts remain
        """
        return self.is_retryable(error) and attempt < self.max_attempts

    def delay(self, attempt: int) -> float:
        """Seconds to sleep before the attempt following ``attempt``."""
        return self.interval
