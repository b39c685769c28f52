"""
Remote configuration synchronization.

Polls Nacos, detects changes by content digest and publishes validated
configuration snapshots. Publishing is a single reference assignment, so
readers always see either the old or the new complete snapshot.
"""

import asyncio
import logging
from typing import Callable, List, Optional

from .config import (
    MonitorConfig,
    apply_log_level,
    apply_overrides,
    compute_content_hash,
    parse_config_document,
)
from .exceptions import (
    AuthenticationError,
    ConfigFetchError,
    ConfigParseError,
    ConfigValidationError,
)
from .nacos_client import NacosClient

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[MonitorConfig], None]


class ConfigSynchronizer:
    """Keeps a validated configuration snapshot in line with Nacos."""

    # Seconds to wait for the first remote configuration at startup
    INITIAL_WAIT = 30.0

    def __init__(
        self,
        client: NacosClient,
        initial: Optional[MonitorConfig] = None,
        max_concurrent_checks: Optional[int] = None
    ):
        """
        Initialize the synchronizer.

        Args:
            client: Client used to fetch the payload
            initial: Snapshot published until the first remote one arrives
            max_concurrent_checks: Worker-pool override applied to every snapshot
        """
        self.client = client
        self.max_concurrent_checks = max_concurrent_checks
        self._current = apply_overrides(initial or MonitorConfig(), max_concurrent_checks)
        self._last_hash = self._current.content_hash
        self._rejected_hash: Optional[str] = None
        self._callbacks: List[ChangeCallback] = []
        self._stop_event = asyncio.Event()
        self.updates_applied = 0

    @property
    def current(self) -> MonitorConfig:
        """The currently published snapshot."""
        return self._current

    def on_change(self, callback: ChangeCallback) -> None:
        """Register a callback invoked with each newly published snapshot."""
        self._callbacks.append(callback)

    async def sync_once(self, notify: bool = True) -> bool:
        """
        Fetch the payload once and publish it if it changed.

        Args:
            notify: Whether to invoke the change callbacks

        Returns:
            True if a new snapshot was published

        Raises:
            ConfigFetchError: If the store cannot be read
            AuthenticationError: If logging in fails
            ConfigParseError: If the payload is not valid YAML
            ConfigValidationError: If a value is out of range
        """
        payload = await self.client.fetch()

        if not payload.strip():
            logger.warning("Received empty configuration from Nacos")
            return False

        digest = compute_content_hash(payload)
        logger.debug(f"Content MD5: {digest}, Last MD5: {self._last_hash}")

        if digest == self._last_hash:
            logger.debug("Configuration unchanged (same MD5)")
            return False
        if digest == self._rejected_hash:
            logger.debug("Configuration still matches the last rejected payload")
            return False

        previous = self._current
        try:
            config = parse_config_document(payload, base=previous)
            config = apply_overrides(config, self.max_concurrent_checks)
        except (ConfigParseError, ConfigValidationError):
            self._rejected_hash = digest
            raise

        self._current = config
        self._last_hash = digest
        self._rejected_hash = None
        self.updates_applied += 1
        logger.info(f"Nacos config applied: {config.describe()}")

        if config.log_level != previous.log_level:
            apply_log_level(config.log_level)
            logger.info(f"Log level updated to: {config.log_level.upper()}")
        if config.metrics_port != previous.metrics_port:
            logger.warning(
                f"Metrics port changed to {config.metrics_port}; "
                f"the exporter keeps listening on {previous.metrics_port} until restart"
            )

        if notify:
            self._notify(config)
        return True

    def _notify(self, config: MonitorConfig) -> None:
        for callback in self._callbacks:
            try:
                callback(config)
            except Exception as e:
                logger.error(f"Config change callback failed: {e}", exc_info=True)

    async def initialize(self, timeout: float = INITIAL_WAIT, retry_delay: float = 1.0) -> bool:
        """
        Wait for the first remote configuration.

        Fetch failures are retried until ``timeout``; the defaults stay
        published if nothing arrives in time.

        Args:
            timeout: Seconds to keep trying
            retry_delay: Seconds between attempts

        Returns:
            True if a remote snapshot was published

        Raises:
            ConfigParseError: If the first payload is malformed
            ConfigValidationError: If the first payload is out of range
            AuthenticationError: If the configured credentials are rejected
        """
        logger.info("Waiting for initial configuration from Nacos...")
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        while True:
            try:
                if await self.sync_once(notify=False):
                    logger.info(f"Successfully loaded {len(self._current.domains)} domains from Nacos")
                    return True
            except ConfigFetchError as e:
                logger.warning(f"Initial configuration fetch failed: {e}")

            if loop.time() + retry_delay > deadline:
                logger.warning(
                    f"No configuration loaded from Nacos after {timeout:.0f} seconds, "
                    f"continuing with defaults"
                )
                return False
            await asyncio.sleep(retry_delay)

    async def run(self) -> None:
        """Poll loop; every failure is logged and retried on the next tick."""
        logger.info(
            f"Starting Nacos config listener (dataId={self.client.settings.data_id}, "
            f"group={self.client.settings.group}, "
            f"poll interval={self._current.nacos_poll_interval}s)"
        )
        while not self._stop_event.is_set():
            try:
                await self.sync_once()
            except (ConfigParseError, ConfigValidationError) as e:
                logger.warning(f"Rejected configuration update: {e}")
            except (ConfigFetchError, AuthenticationError) as e:
                logger.error(f"Configuration update error: {e}")
            except Exception as e:
                logger.error(f"Unexpected error while polling Nacos: {e}", exc_info=True)

            try:
                await asyncio.wait_for(
                    self._stop_event.wait(),
                    timeout=self._current.nacos_poll_interval,
                )
            except asyncio.TimeoutError:
                pass

        logger.info("Nacos config listener stopped")

    def stop(self) -> None:
        self._stop_event.set()
