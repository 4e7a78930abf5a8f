"""Graceful shutdown coordination for the StackPulse server.

Usage:
    ```python
    async def serve():
        async with GracefulShutdown(timeout=10.0) as shutdown:
            await server.start()
            shutdown.register_cleanup(server.stop)

            await shutdown.wait()
        # cleanup callbacks have run here, newest first
    ```
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from collections.abc import Callable
from contextlib import suppress
from types import FrameType
from typing import Any

logger = logging.getLogger(__name__)

# Default shutdown timeout in seconds
DEFAULT_SHUTDOWN_TIMEOUT = 30.0

# Signals to trap for graceful shutdown
SHUTDOWN_SIGNALS = (signal.SIGTERM, signal.SIGINT)


class ShutdownTimeoutError(Exception):
    """Raised when cleanup callbacks exceed the shutdown timeout."""


class GracefulShutdown:
    """Signal-driven shutdown event with ordered cleanup callbacks.

    The first SIGTERM/SIGINT sets the shutdown event; a second one exits
    the process immediately. Cleanup callbacks (sync or async) run in
    reverse registration order when the context exits and are bounded by
    ``timeout`` as a whole.
    """

    def __init__(self, timeout: float = DEFAULT_SHUTDOWN_TIMEOUT) -> None:
        """Initialize the shutdown handler.

        Args:
            timeout: Maximum time in seconds allowed for all cleanup callbacks.
        """
        self._timeout = timeout

        self._shutdown_event = asyncio.Event()
        self._shutdown_requested = False
        self._loop: asyncio.AbstractEventLoop | None = None
        self._fallback_handlers: dict[signal.Signals, Any] = {}
        self._cleanup_callbacks: list[Callable[[], Any]] = []

    @property
    def timeout(self) -> float:
        """Shutdown timeout in seconds."""
        return self._timeout

    @property
    def is_shutdown_requested(self) -> bool:
        """Check if shutdown has been requested."""
        return self._shutdown_requested

    def register_cleanup(self, callback: Callable[[], Any]) -> None:
        """Register a cleanup callback to run during shutdown.

        Args:
            callback: A callable (sync or async) to run during shutdown.
        """
        self._cleanup_callbacks.append(callback)

    def request_shutdown(self, reason: str = "programmatic request") -> None:
        """Request shutdown without a signal."""
        if not self._shutdown_requested:
            self._shutdown_requested = True
            logger.info("Shutdown requested (%s)", reason)
            self._shutdown_event.set()

    async def wait(self) -> None:
        """Block until shutdown is requested."""
        await self._shutdown_event.wait()

    # Signal handling

    def install_signal_handlers(self) -> None:
        """Trap SIGTERM and SIGINT.

        Uses the event loop's signal support, falling back to
        ``signal.signal`` where the loop has none (Windows).
        """
        self._loop = asyncio.get_running_loop()
        for sig in SHUTDOWN_SIGNALS:
            try:
                self._loop.add_signal_handler(sig, self._handle_signal, sig)
            except NotImplementedError:
                with suppress(ValueError, OSError):
                    self._fallback_handlers[sig] = signal.signal(sig, self._handle_signal_sync)
            except (ValueError, OSError) as e:
                logger.warning("Could not install handler for %s: %s", sig.name, e)
        logger.debug("Signal handlers installed")

    def remove_signal_handlers(self) -> None:
        """Remove installed signal handlers and restore originals."""
        if self._loop is not None:
            for sig in SHUTDOWN_SIGNALS:
                with suppress(NotImplementedError, ValueError, OSError):
                    self._loop.remove_signal_handler(sig)
        for sig, original in self._fallback_handlers.items():
            with suppress(ValueError, OSError):
                signal.signal(sig, original)
        self._fallback_handlers.clear()
        logger.debug("Signal handlers removed")

    def _handle_signal(self, sig: signal.Signals) -> None:
        if self._shutdown_requested:
            logger.warning("Received %s again - forcing exit!", sig.name)
            sys.exit(128 + sig.value)
        self.request_shutdown(f"received {sig.name}")

    def _handle_signal_sync(self, sig: int, _frame: FrameType | None) -> None:
        if self._loop is not None:
            self._loop.call_soon_threadsafe(self._handle_signal, signal.Signals(sig))
        else:
            self._handle_signal(signal.Signals(sig))

    # Cleanup

    async def _run_callbacks(self) -> None:
        for callback in reversed(self._cleanup_callbacks):
            try:
                result = callback()
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.error("Cleanup callback failed: %s", e)

    async def run_cleanup_callbacks(self) -> None:
        """Run all registered cleanup callbacks.

        Raises:
            ShutdownTimeoutError: If the callbacks exceed the timeout.
        """
        try:
            await asyncio.wait_for(self._run_callbacks(), timeout=self._timeout)
        except TimeoutError as e:
            raise ShutdownTimeoutError(
                f"Cleanup did not finish within {self._timeout}s"
            ) from e

    async def __aenter__(self) -> GracefulShutdown:
        self.install_signal_handlers()
        return self

    async def __aexit__(self, *_args: Any) -> None:
        self.remove_signal_handlers()
        await self.run_cleanup_callbacks()
