"""
Exception classes for domain monitoring.

All exceptions inherit from DomainMonitorError and carry a message plus
optional structured details for logging.
"""

from typing import Any, Dict, Optional


class DomainMonitorError(Exception):
    """Base exception for all domain monitor errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message={self.message!r})"


class ConfigFetchError(DomainMonitorError):
    """Raised when the remote configuration store cannot be reached or answers non-2xx."""


class ConfigParseError(DomainMonitorError):
    """Raised when a configuration payload is not a valid YAML mapping."""


class ConfigValidationError(DomainMonitorError):
    """Raised when a configuration value is out of range."""


class AuthenticationError(DomainMonitorError):
    """Raised when logging in to the configuration store fails."""


class WhoisTransientError(DomainMonitorError):
    """Raised for WHOIS failures worth retrying (timeouts, connection errors)."""

    def __init__(
        self,
        message: str,
        timed_out: bool = False,
        details: Optional[Dict[str, Any]] = None
    ) -> None:
        super().__init__(message, details)
        self.timed_out = timed_out


class WhoisParseError(DomainMonitorError):
    """Raised when no expiry date can be extracted from a WHOIS response."""


class CycleError(DomainMonitorError):
    """Raised when a check cycle fails outside of the individual probes."""
