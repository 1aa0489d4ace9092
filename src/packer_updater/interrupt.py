"""Signal to cancellation bridge.

``asyncio.run`` already turns SIGINT into cancellation of the main task.
This handler does the same for SIGTERM and SIGHUP so that every interrupt
unwinds through the installer's rollback and cleanup blocks.
"""

import asyncio
import logging
import signal
from typing import Iterable, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_SIGNALS = tuple(
    sig for sig in (getattr(signal, "SIGTERM", None), getattr(signal, "SIGHUP", None))
    if sig is not None
)


class InterruptHandler:
    """Cancels a task when a termination signal arrives.

    Example:
        >>> async def main():
        ...     with InterruptHandler():
        ...         await installer.install(version)
    """

    def __init__(self, signals: Iterable[signal.Signals] = DEFAULT_SIGNALS):
        self.signals = tuple(signals)
        self.received: Optional[signal.Signals] = None
        self._task: Optional[asyncio.Task] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._installed: List[signal.Signals] = []

    def __enter__(self) -> "InterruptHandler":
        self.install()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.remove()

    def install(self, task: Optional[asyncio.Task] = None) -> None:
        """Register handlers on the running loop for ``task``."""
        self._loop = asyncio.get_running_loop()
        self._task = task or asyncio.current_task()

        for sig in self.signals:
            try:
                self._loop.add_signal_handler(sig, self._signal_handler, sig)
            except (NotImplementedError, RuntimeError, ValueError) as e:
                logger.debug(f"Cannot handle {sig!r} on this platform: {e}")
                continue
            self._installed.append(sig)

    def remove(self) -> None:
        if self._loop is None:
            return

        for sig in self._installed:
            self._loop.remove_signal_handler(sig)

        self._installed.clear()
        self._loop = None

    def _signal_handler(self, sig: signal.Signals) -> None:
        name = signal.Signals(sig).name
        logger.warning(f"Received signal {name}, cleaning up...")

        if self.received is not None:
            return

        self.received = sig
        if self._task is not None and not self._task.done():
            self._task.cancel()
