"""
Tests for async_utils module.

Covers run_sync and run_process.
"""

import asyncio
import subprocess
import sys

import pytest

from gitmirror.core.async_utils import run_process, run_sync


def _sync_add(a: int, b: int) -> int:
    """Simple sync function for testing."""
    return a + b


def _sleeper() -> subprocess.Popen:
    return subprocess.Popen(
        [sys.executable, "-c", "import time; time.sleep(30)"]
    )


async def test_run_sync_calls_function():
    """run_sync delegates to asyncio.to_thread with correct args."""
    result = await run_sync(_sync_add, 3, 4)
    assert result == 7


async def test_run_sync_passes_kwargs():
    """run_sync forwards keyword arguments."""

    def _kw_func(*, name: str) -> str:
        return f"hello {name}"

    result = await run_sync(_kw_func, name="world")
    assert result == "hello world"


async def test_run_sync_propagates_exceptions():
    def _boom():
        raise OSError("no such file")

    with pytest.raises(OSError, match="no such file"):
        await run_sync(_boom)


async def test_run_process_returns_waiter_result():
    proc = subprocess.Popen([sys.executable, "-c", "pass"])

    assert await run_process(proc, proc.wait) == 0


async def test_run_process_terminates_on_cancel():
    """Cancelling the awaiting task terminates the child process."""
    proc = _sleeper()
    try:
        task = asyncio.create_task(run_process(proc, proc.wait))
        await asyncio.sleep(0.1)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert proc.wait(timeout=10) != 0
    finally:
        if proc.poll() is None:
            proc.kill()
            proc.wait()


async def test_run_process_terminates_on_timeout():
    proc = _sleeper()
    try:
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(run_process(proc, proc.wait), timeout=0.1)

        assert proc.wait(timeout=10) != 0
    finally:
        if proc.poll() is None:
            proc.kill()
            proc.wait()
