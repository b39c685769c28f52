"""
Checker modules for domain monitoring.

Each checker module implements a specific domain check.
"""

from .base_checker import BaseChecker, CheckResult
from .whois import WhoisChecker

__all__ = ['BaseChecker', 'CheckResult', 'WhoisChecker']
