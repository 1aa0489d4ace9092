"""Tests for the signal to cancellation bridge."""

import asyncio
import os
import signal
import sys

import pytest

from packer_updater.interrupt import InterruptHandler

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="POSIX signals only")


class TestInterruptHandler:
    """Test InterruptHandler."""

    def test_initialization(self):
        handler = InterruptHandler(signals=[signal.SIGTERM])

        assert handler.signals == (signal.SIGTERM,)
        assert handler.received is None

    @pytest.mark.asyncio
    async def test_signal_cancels_task(self):
        """Test the handler cancels the task it was installed for."""
        cleaned_up = []

        async def work():
            handler = InterruptHandler(signals=[])
            handler.install()
            try:
                handler._signal_handler(signal.SIGTERM)
                await asyncio.sleep(10)
            finally:
                cleaned_up.append(handler.received)
                handler.remove()

        with pytest.raises(asyncio.CancelledError):
            await asyncio.create_task(work())

        assert cleaned_up == [signal.SIGTERM]

    @pytest.mark.asyncio
    async def test_second_signal_is_ignored(self):
        handler = InterruptHandler(signals=[])
        task = asyncio.create_task(asyncio.sleep(10))
        handler.install(task)

        handler._signal_handler(signal.SIGTERM)
        handler._signal_handler(signal.SIGHUP)

        assert handler.received == signal.SIGTERM
        with pytest.raises(asyncio.CancelledError):
            await task
        handler.remove()

    @posix_only
    @pytest.mark.asyncio
    async def test_real_sigterm(self):
        """Test a delivered SIGTERM cancels the guarded task."""

        async def work():
            with InterruptHandler(signals=[signal.SIGTERM]):
                os.kill(os.getpid(), signal.SIGTERM)
                await asyncio.sleep(10)

        with pytest.raises(asyncio.CancelledError):
            await asyncio.wait_for(asyncio.create_task(work()), timeout=5)

    @posix_only
    @pytest.mark.asyncio
    async def test_handlers_removed_on_exit(self):
        loop = asyncio.get_running_loop()

        with InterruptHandler(signals=[signal.SIGTERM]) as handler:
            assert handler._installed == [signal.SIGTERM]

        assert handler._installed == []
        assert loop.remove_signal_handler(signal.SIGTERM) is False
