"""
Two-stage shutdown.

The first SIGINT or SIGTERM asks the application to stop gracefully. A
second SIGINT, or a cleanup that outlives the grace period, terminates the
process immediately.
"""

import asyncio
import logging
import os
import signal
from enum import Enum
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class ShutdownState(Enum):
    RUNNING = 'running'
    SHUTDOWN_REQUESTED = 'shutdown_requested'
    FORCE_SHUTDOWN = 'force_shutdown'
    STOPPED = 'stopped'


class ShutdownCoordinator:
    """Tracks the shutdown state machine and owns the signal handlers."""

    # Seconds allowed for graceful cleanup
    GRACE_PERIOD = 5.0

    SIGNALS = (signal.SIGINT, signal.SIGTERM)

    def __init__(
        self,
        grace_period: float = GRACE_PERIOD,
        exit_func: Callable[[int], None] = os._exit
    ):
        """
        Initialize the coordinator.

        Args:
            grace_period: Seconds allowed for graceful cleanup
            exit_func: Called with status 1 on forced shutdown (injectable for tests)
        """
        self.grace_period = grace_period
        self.exit_func = exit_func
        self.state = ShutdownState.RUNNING
        self.shutdown_event = asyncio.Event()
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def install(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        """Register the signal handlers on the event loop."""
        self._loop = loop or asyncio.get_running_loop()
        for sig in self.SIGNALS:
            self._loop.add_signal_handler(sig, self.handle_signal, sig)

    def uninstall(self) -> None:
        if self._loop is None:
            return
        for sig in self.SIGNALS:
            self._loop.remove_signal_handler(sig)
        self._loop = None

    def handle_signal(self, signum: int) -> None:
        """React to a termination signal according to the current state."""
        name = signal.Signals(signum).name

        if self.state is ShutdownState.RUNNING:
            logger.info(f"Received {name}, shutting down gracefully (press Ctrl+C again to force)")
            self.state = ShutdownState.SHUTDOWN_REQUESTED
            self.shutdown_event.set()
        elif self.state is ShutdownState.SHUTDOWN_REQUESTED and signum == signal.SIGINT:
            logger.warning(f"Received second {name}, forcing shutdown")
            self.force()
        else:
            logger.debug(f"Ignoring {name} in state {self.state.value}")

    def force(self) -> None:
        self.state = ShutdownState.FORCE_SHUTDOWN
        self.exit_func(1)

    async def wait(self) -> None:
        """Block until a shutdown has been requested."""
        await self.shutdown_event.wait()

    async def run_cleanup(self, cleanup: Callable[[], Awaitable[None]]) -> bool:
        """
        Run the cleanup coroutine within the grace period.

        Args:
            cleanup: Coroutine function stopping the application

        Returns:
            True if the application stopped gracefully
        """
        try:
            await asyncio.wait_for(cleanup(), timeout=self.grace_period)
        except asyncio.TimeoutError:
            logger.error(f"Graceful shutdown exceeded {self.grace_period:.0f}s, forcing exit")
            self.force()
            return False
        except Exception as e:
            logger.error(f"Error during shutdown: {e}", exc_info=True)

        if self.state is ShutdownState.FORCE_SHUTDOWN:
            return False

        self.state = ShutdownState.STOPPED
        logger.info("Shutdown complete")
        return True
