"""
Prometheus exporter.

Serves the metrics store over HTTP: ``/metrics`` in the Prometheus text
exposition format and ``/health`` for liveness probes.
"""

import logging
from typing import Callable, Iterator, Optional

from aiohttp import web
from prometheus_client import CollectorRegistry, generate_latest
from prometheus_client.core import GaugeMetricFamily

from .config import MonitorConfig
from .metrics_store import MetricsStore

logger = logging.getLogger(__name__)

CONTENT_TYPE = 'text/plain; version=0.0.4; charset=utf-8'


class DomainExpiryCollector:
    """Builds the domain gauges from a store snapshot on every scrape."""

    def __init__(self, store: MetricsStore, get_config: Callable[[], MonitorConfig]):
        self.store = store
        self.get_config = get_config

    def collect(self) -> Iterator[GaugeMetricFamily]:
        threshold = self.get_config().expire_threshold_days

        expire_days = GaugeMetricFamily(
            'domain_expire_days',
            'Days until domain expiration (-1 when the check failed)',
            labels=['domain'],
        )
        expired = GaugeMetricFamily(
            'domain_expired',
            'Whether the domain expires within the threshold or failed its check (1=yes)',
            labels=['domain'],
        )
        check_status = GaugeMetricFamily(
            'domain_check_status',
            'Whether the last domain check succeeded (1=success, 0=failure)',
            labels=['domain'],
        )

        for domain, result in sorted(self.store.snapshot().items()):
            if result.is_pending:
                continue
            days = result.days_until_expiry if result.is_success else -1
            expire_days.add_metric([domain], days)
            expired.add_metric([domain], 1 if result.is_critical(threshold) else 0)
            check_status.add_metric([domain], 1 if result.is_success else 0)

        yield expire_days
        yield expired
        yield check_status


class MetricsExporter:
    """aiohttp server exposing ``/health`` and ``/metrics``."""

    def __init__(
        self,
        store: MetricsStore,
        get_config: Callable[[], MonitorConfig],
        host: str = '0.0.0.0'
    ):
        """
        Initialize the exporter.

        Args:
            store: Store read on each scrape
            get_config: Returns the current snapshot (for the critical threshold)
            host: Interface to bind
        """
        self.host = host
        self.registry = CollectorRegistry()
        self.registry.register(DomainExpiryCollector(store, get_config))
        self._runner: Optional[web.AppRunner] = None
        self.port: Optional[int] = None

    def create_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get('/health', self.handle_health)
        app.router.add_get('/metrics', self.handle_metrics)
        return app

    async def handle_health(self, request: web.Request) -> web.Response:
        return web.Response(text='OK')

    async def handle_metrics(self, request: web.Request) -> web.Response:
        return web.Response(
            body=generate_latest(self.registry),
            headers={'Content-Type': CONTENT_TYPE},
        )

    async def start(self, port: int) -> None:
        """Bind the HTTP server to ``host:port``."""
        self._runner = web.AppRunner(self.create_app(), access_log=None)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, port)
        await site.start()
        self.port = port
        logger.info(f"Metrics server listening on {self.host}:{port}")

    async def stop(self) -> None:
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
            logger.info("Metrics server stopped")
