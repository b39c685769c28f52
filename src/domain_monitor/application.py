"""
Application composition and lifecycle.

Wires the configuration source, scheduler, checker pool, metrics store and
exporter together and runs them until shutdown is requested.
"""

import asyncio
import logging
from typing import List, Optional

from . import __version__
from .checkers.base_checker import BaseChecker
from .config import (
    MonitorConfig,
    RemoteStoreConfig,
    apply_log_level,
    apply_overrides,
    load_local_config,
)
from .config_sync import ConfigSynchronizer
from .console.output import ConsoleManager
from .executor import CheckerPool
from .exporter import MetricsExporter
from .metrics_store import MetricsStore
from .nacos_client import NacosClient
from .scheduler import Scheduler
from .shutdown import ShutdownCoordinator

logger = logging.getLogger(__name__)


class Application:
    """
    Domain expiry monitor.

    Configuration comes from Nacos when an address is configured, otherwise
    from the local YAML file, loaded once.
    """

    def __init__(
        self,
        remote: RemoteStoreConfig,
        config_file: Optional[str] = None,
        max_concurrent_checks: Optional[int] = None,
        console: Optional[ConsoleManager] = None,
        shutdown: Optional[ShutdownCoordinator] = None,
        checker: Optional[BaseChecker] = None
    ):
        """
        Initialize the application.

        Args:
            remote: Nacos connection settings (disabled when no address is set)
            config_file: Local fallback configuration path
            max_concurrent_checks: Worker-pool override applied to every snapshot
            console: Console used for the startup banner
            shutdown: Shutdown coordinator (created if None)
            checker: Domain checker (defaults to WhoisChecker)
        """
        self.remote = remote
        self.config_file = config_file
        self.max_concurrent_checks = max_concurrent_checks
        self.console = console

        self.store = MetricsStore()
        self.pool = CheckerPool(self.store, checker)
        self.scheduler = Scheduler(self.pool, self.get_config)
        self.exporter = MetricsExporter(self.store, self.get_config)
        self.shutdown = shutdown or ShutdownCoordinator()

        self.synchronizer: Optional[ConfigSynchronizer] = None
        self._local_config = apply_overrides(MonitorConfig(), max_concurrent_checks)
        self._tasks: List[asyncio.Task] = []

    def get_config(self) -> MonitorConfig:
        """The currently published configuration snapshot."""
        if self.synchronizer is not None:
            return self.synchronizer.current
        return self._local_config

    async def load_config(self) -> MonitorConfig:
        """
        Obtain the startup configuration.

        Raises:
            ConfigParseError: If the first configuration is malformed
            ConfigValidationError: If the first configuration is out of range
            AuthenticationError: If the configured Nacos credentials are rejected
        """
        if self.remote.enabled:
            self.remote.validate()
            logger.info(
                f"Using Nacos configuration at {self.remote.addr} "
                f"(dataId={self.remote.data_id}, group={self.remote.group})"
            )
            self.synchronizer = ConfigSynchronizer(
                NacosClient(self.remote),
                max_concurrent_checks=self.max_concurrent_checks,
            )
            await self.synchronizer.initialize()
            self.synchronizer.on_change(self._on_config_change)
        else:
            logger.info("NACOS_ADDR not set, using local configuration file")
            self._local_config = apply_overrides(
                load_local_config(self.config_file),
                self.max_concurrent_checks,
            )

        config = self.get_config()
        apply_log_level(config.log_level)
        logger.info(f"Configuration: {config.describe()}")
        return config

    def _on_config_change(self, config: MonitorConfig) -> None:
        # Removed domains leave /metrics now, not at the next cycle start
        self.store.prune(config.domains)
        self.scheduler.trigger()

    async def start(self) -> None:
        """Load the configuration, start the exporter and the background tasks."""
        config = await self.load_config()

        if self.console is not None:
            source = self.remote.addr if self.remote.enabled else (self.config_file or 'defaults')
            self.console.print_banner(__version__, source, config)

        await self.exporter.start(config.metrics_port)

        self._tasks.append(asyncio.create_task(self.scheduler.run(), name='scheduler'))
        if self.synchronizer is not None:
            self._tasks.append(asyncio.create_task(self.synchronizer.run(), name='config-sync'))
        logger.info("Domain expiry monitor started")

    async def stop(self) -> None:
        """Stop triggers, let an in-flight cycle finish and close the server."""
        logger.info("Stopping domain expiry monitor...")
        self.scheduler.stop()
        if self.synchronizer is not None:
            self.synchronizer.stop()

        await self.scheduler.wait_idle()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
            self._tasks.clear()
        await self.exporter.stop()

    async def run(self) -> bool:
        """
        Run until a shutdown signal arrives.

        Returns:
            True if the application stopped gracefully
        """
        self.shutdown.install()
        try:
            try:
                await self.start()
            except BaseException:
                await self.exporter.stop()
                raise

            await self.shutdown.wait()
            return await self.shutdown.run_cleanup(self.stop)
        finally:
            self.shutdown.uninstall()
