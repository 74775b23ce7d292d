"""Cancellable background jobs for housekeeping sweeps.

Sweeps run as asyncio tasks owned by the application lifespan; ``stop``
cancels them, so they never keep the process alive on shutdown.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)

SweepFunc = Callable[[], Any]


class PeriodicSweeper:
    """Run a callable every ``interval_seconds`` until stopped.

    The callable may be sync or async. Failures are logged and the schedule
    keeps going.
    """

    def __init__(
        self,
        name: str,
        func: SweepFunc,
        interval_seconds: float,
        *,
        run_immediately: bool = False,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        self.name = name
        self._func = func
        self._interval = interval_seconds
        self._run_immediately = run_immediately
        self._task: asyncio.Task[None] | None = None
        self.runs = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> Any:
        """Invoke the sweep once, logging instead of raising on failure."""
        try:
            result = self._func()
            if inspect.isawaitable(result):
                result = await result
        except Exception as exc:  # keep the schedule alive
            logger.error(
                "sweeper.failed",
                extra={
                    "sweeper": self.name,
                    "error_type": type(exc).__name__,
                    "error_msg": str(exc),
                },
            )
            return None
        finally:
            self.runs += 1
        return result

    async def _loop(self) -> None:
        if self._run_immediately:
            await self.run_once()
        while True:
            await asyncio.sleep(self._interval)
            await self.run_once()

    def start(self) -> None:
        """Schedule the loop on the running event loop (idempotent)."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(
            self._loop(), name=f"sweeper:{self.name}"
        )
        logger.info(
            "sweeper.started",
            extra={"sweeper": self.name, "interval_s": self._interval},
        )

    async def stop(self) -> None:
        """Cancel the loop and wait for it to unwind."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("sweeper.stopped", extra={"sweeper": self.name, "runs": self.runs})
