"""Self-rescheduling polling loops with per-loop failure isolation."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable

from .mina import MiServiceError

LOGGER = logging.getLogger("mihello-assistant")

TickFunction = Callable[[], Awaitable[float]]


class PollingLoop:
    """Runs ``tick`` forever, one call at a time.

    Each tick returns the delay before the next one. Any failure is logged
    under the loop's name and replaced by the fixed cooldown.
    """

    def __init__(
        self,
        name: str,
        tick: TickFunction,
        *,
        cooldown: float,
        logger: logging.Logger | None = None,
    ) -> None:
        self.name = name
        self._tick = tick
        self.cooldown = cooldown
        self._logger = logger or LOGGER
        self._stop_event = asyncio.Event()
        self._runner: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._runner is not None and not self._runner.done()

    def start(self) -> None:
        if self._runner:
            return
        self._stop_event.clear()
        self._runner = asyncio.create_task(self.run(), name=f"mihello-{self.name}")

    async def stop(self) -> None:
        self._stop_event.set()
        runner = self._runner
        self._runner = None
        if runner:
            runner.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await runner

    async def run(self) -> None:
        while not self._stop_event.is_set():
            delay = await self.run_once()
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
            except TimeoutError:
                continue

    async def run_once(self) -> float:
        """Execute one tick and return the delay to wait afterwards."""
        try:
            return max(0.0, float(await self._tick()))
        except asyncio.CancelledError:
            raise
        except MiServiceError as exc:
            self._logger.warning("[%s] %s: %s; retrying in %.1fs", self.name, type(exc).__name__, exc, self.cooldown)
        except TimeoutError:
            self._logger.warning("[%s] Timed out; retrying in %.1fs", self.name, self.cooldown)
        except Exception:  # pylint: disable=broad-except
            self._logger.exception("[%s] Loop tick failed; retrying in %.1fs", self.name, self.cooldown)
        return self.cooldown
