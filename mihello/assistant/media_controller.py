"""Speaker playback control for the local music loop."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from .mina import MiServiceError
from .models import PlayStatus

if TYPE_CHECKING:
    from .mina import MiNAClient

LOGGER = logging.getLogger("mihello-assistant.media")


class WaitTimeoutError(TimeoutError):
    """The speaker never reported a stopped status within the allowed attempts."""


class MediaController:
    """Issues pause/speak/play commands against a single speaker."""

    def __init__(
        self,
        client: MiNAClient,
        device_id: str,
        playlist_url: str,
        *,
        wait_interval: float = 0.1,
        wait_max_attempts: int = 600,
    ) -> None:
        self.client = client
        self.device_id = device_id
        self.playlist_url = playlist_url
        self._wait_interval = max(0.0, wait_interval)
        self._wait_max_attempts = max(1, wait_max_attempts)

    async def fetch_play_status(self) -> PlayStatus:
        return await self.client.fetch_play_status(self.device_id)

    async def pause(self) -> None:
        LOGGER.debug("[media] Pausing %s", self.device_id)
        await self.client.pause(self.device_id)

    async def speak(self, text: str, *, wait: bool = True) -> None:
        """Speak ``text`` on the device, by default waiting for it to finish."""
        LOGGER.debug("[media] Speaking %r", text)
        await self.client.speak(self.device_id, text)
        if wait:
            await self.wait_until_stop()

    async def play_local_loop(self) -> None:
        LOGGER.debug("[media] Playing %s", self.playlist_url)
        await self.client.play_url(self.device_id, self.playlist_url)

    async def restart_local_loop(self) -> None:
        """Pause whatever is playing and start the local playlist again."""
        await self.pause()
        await self.play_local_loop()

    async def wait_until_stop(self) -> bool:
        """Poll until the device reports stopped.

        Returns False when every attempt was used up or the status could not be
        read; the caller proceeds either way.
        """
        for attempt in range(self._wait_max_attempts):
            try:
                status = await self.fetch_play_status()
            except MiServiceError as exc:
                LOGGER.warning("[media] Unable to read play status while waiting; continuing: %s", exc)
                return False
            if status.stopped:
                return True
            if attempt + 1 < self._wait_max_attempts:
                await asyncio.sleep(self._wait_interval)
        exc = WaitTimeoutError(f"device did not stop after {self._wait_max_attempts} checks")
        LOGGER.warning("[media] %s; continuing", exc)
        return False
