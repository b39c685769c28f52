"""
Domain Expiry Monitor

Periodically checks domain expiration dates over WHOIS and exposes them as
Prometheus metrics, with configuration hot-reloaded from Nacos.
"""

__version__ = "0.1.0"
__author__ = "Domain Monitor Team"

from .config import MonitorConfig, RemoteStoreConfig, load_local_config, parse_config_document
from .checkers.base_checker import BaseChecker, CheckResult
from .metrics_store import MetricsStore
from .executor import CheckerPool, CycleSummary, safe_check
from .scheduler import Scheduler
from .application import Application
from .main import main

__all__ = [
    'MonitorConfig',
    'RemoteStoreConfig',
    'load_local_config',
    'parse_config_document',
    'BaseChecker',
    'CheckResult',
    'MetricsStore',
    'CheckerPool',
    'CycleSummary',
    'safe_check',
    'Scheduler',
    'Application',
    'main',
]
