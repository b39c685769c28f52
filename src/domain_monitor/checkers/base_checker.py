"""
Base checker infrastructure for domain monitoring.

Provides abstract base class and result dataclass for checker implementations.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from ..config import MonitorConfig


@dataclass(frozen=True)
class CheckResult:
    """
    Latest outcome of checking one domain.

    ``days_until_expiry`` and ``expiry_date`` are set if and only if the
    status is SUCCESS.

    Attributes:
        domain: The domain name that was checked
        status: SUCCESS, ERROR, or PENDING for a domain not checked yet
        days_until_expiry: Whole days until expiry, negative once expired
        expiry_date: Extracted expiration date
        error_message: Human-readable failure reason
        error_type: Failure category (timeout, network, no_expiry_date, internal)
        attempts: Number of WHOIS attempts made
        checked_at: When the result was produced
    """
    domain: str
    status: str
    days_until_expiry: Optional[int] = None
    expiry_date: Optional[date] = None
    error_message: Optional[str] = None
    error_type: Optional[str] = None
    attempts: int = 0
    checked_at: datetime = field(default_factory=datetime.now)

    # Status constants
    SUCCESS = "SUCCESS"
    ERROR = "ERROR"
    PENDING = "PENDING"

    def __post_init__(self):
        """Enforce that expiry data accompanies success only."""
        has_expiry = self.days_until_expiry is not None and self.expiry_date is not None
        has_any_expiry = self.days_until_expiry is not None or self.expiry_date is not None
        if self.status == self.SUCCESS and not has_expiry:
            raise ValueError("A successful result needs days_until_expiry and expiry_date")
        if self.status != self.SUCCESS and has_any_expiry:
            raise ValueError(f"A {self.status} result cannot carry expiry data")

    @property
    def is_success(self) -> bool:
        return self.status == self.SUCCESS

    @property
    def is_error(self) -> bool:
        return self.status == self.ERROR

    @property
    def is_pending(self) -> bool:
        return self.status == self.PENDING

    def is_critical(self, threshold_days: int) -> bool:
        """
        Whether the domain needs attention.

        Errors count as critical because the expiry is unknown.

        Args:
            threshold_days: Expire threshold from the active configuration

        Returns:
            True when expiring within the threshold, already expired, or failed
        """
        if self.is_error:
            return True
        if self.is_success:
            return self.days_until_expiry <= threshold_days
        return False

    @classmethod
    def success(
        cls,
        domain: str,
        expiry_date: date,
        days_until_expiry: int,
        attempts: int = 1
    ) -> 'CheckResult':
        return cls(
            domain=domain,
            status=cls.SUCCESS,
            days_until_expiry=days_until_expiry,
            expiry_date=expiry_date,
            attempts=attempts,
        )

    @classmethod
    def error(
        cls,
        domain: str,
        message: str,
        error_type: str,
        attempts: int = 0
    ) -> 'CheckResult':
        return cls(
            domain=domain,
            status=cls.ERROR,
            error_message=message,
            error_type=error_type,
            attempts=attempts,
        )

    @classmethod
    def pending(cls, domain: str) -> 'CheckResult':
        return cls(domain=domain, status=cls.PENDING)


class BaseChecker(ABC):
    """
    Abstract base class for domain checkers.

    Implementations never raise for per-domain failures: they return an
    ERROR CheckResult so one domain cannot abort a cycle.
    """

    def __init__(self, timeout: float = 15):
        """
        Initialize the checker.

        Args:
            timeout: Maximum time in seconds for a single attempt (default: 15)
        """
        self.timeout = timeout

    @abstractmethod
    async def check(self, domain: str, config: MonitorConfig) -> CheckResult:
        """
        Execute the check for the specified domain.

        Args:
            domain: The domain name to check
            config: Configuration snapshot the cycle runs with

        Returns:
            CheckResult object containing the check results
        """
        pass
