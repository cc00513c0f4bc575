# LifeShield - Life Insurance Issuance Service
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Interval loop for background steps."""

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from ..core.result_types import Err

logger = logging.getLogger(__name__)


class PeriodicTask:
    """Runs ``step`` every ``interval_seconds`` until stopped.

    A step that raises or returns ``Err`` is logged and the loop carries on
    after waiting at least ``failure_backoff_seconds``.
    ``stop()`` waits up to ``shutdown_grace_seconds`` for the current step,
    then cancels it.
    """

    def __init__(
        self,
        name: str,
        interval_seconds: float,
        step: Callable[[], Awaitable[Any]],
        *,
        shutdown_grace_seconds: float = 5.0,
        failure_backoff_seconds: float = 1.0,
    ) -> None:
        if interval_seconds < 0:
            raise ValueError("interval_seconds must be >= 0")
        if failure_backoff_seconds < 0:
            raise ValueError("failure_backoff_seconds must be >= 0")
        self.name = name
        self._interval = interval_seconds
        self._step = step
        self._grace = shutdown_grace_seconds
        self._failure_backoff = failure_backoff_seconds
        self._last_failed = False
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self.runs = 0
        self.failures = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> Any:
        """Execute one step; returns its result, or None if it raised."""
        self.runs += 1
        self._last_failed = False
        try:
            result = await self._step()
        except Exception as e:
            self.failures += 1
            self._last_failed = True
            logger.exception(f"Worker {self.name} step failed: {e}")
            return None
        if isinstance(result, Err):
            self.failures += 1
            self._last_failed = True
            logger.warning(f"Worker {self.name} step returned {result.error}")
        return result

    def start(self) -> None:
        """Start the loop on the running event loop."""
        if self.running:
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._loop(), name=f"worker:{self.name}")
        logger.info(f"Worker {self.name} started (every {self._interval}s)")

    async def stop(self) -> None:
        """Signal the loop to exit and wait for it."""
        self._stop_event.set()
        task = self._task
        if task is None:
            return
        try:
            await asyncio.wait_for(asyncio.shield(task), timeout=self._grace)
        except asyncio.TimeoutError:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._task = None
        logger.info(f"Worker {self.name} stopped after {self.runs} runs")

    async def _loop(self) -> None:
        while not self._stop_event.is_set():
            await self.run_once()
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(
                    self._stop_event.wait(), timeout=self._next_delay()
                )

    def _next_delay(self) -> float:
        if self._last_failed:
            return max(self._interval, self._failure_backoff)
        return self._interval
