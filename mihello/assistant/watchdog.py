"""Playback guardian that restores the local music loop after sustained drift."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from .models import GUARDED_MODES, STATUS_IDLE, STATUS_PLAYING, Mode, PlayStatus

if TYPE_CHECKING:
    from .media_controller import MediaController
    from .state_machine import PlaybackStateMachine

LOGGER = logging.getLogger("mihello-assistant.watchdog")

CorrectiveListener = Callable[[Mode, PlayStatus], None]


def is_deviating(status: PlayStatus) -> bool:
    """True when the device is not quietly running the local stream."""
    return status.song_detail_present or status.status not in (STATUS_PLAYING, STATUS_IDLE)


class PlaybackWatchdog:
    """Counts consecutive deviating observations per guarded mode.

    Corrective action fires only once the count exceeds ``threshold``, which
    leaves the state machine's own pause/speak/play sequences time to settle.
    """

    def __init__(
        self,
        *,
        state_machine: PlaybackStateMachine,
        media: MediaController,
        interval: float = 1.0,
        threshold: int = 6,
        logger: logging.Logger | None = None,
    ) -> None:
        self.state_machine = state_machine
        self.media = media
        self.interval = interval
        self.threshold = threshold
        self.logger = logger or LOGGER
        self.warnings: dict[Mode, int] = {mode: 0 for mode in GUARDED_MODES}
        self._on_corrective: CorrectiveListener | None = None

    def set_corrective_callback(self, callback: CorrectiveListener) -> None:
        self._on_corrective = callback

    def reset(self) -> None:
        for mode in self.warnings:
            self.warnings[mode] = 0

    async def tick(self) -> float:
        """Run one observation and return the delay before the next one."""
        mode = self.state_machine.mode
        if mode not in GUARDED_MODES:
            self.reset()
            return self.interval

        status = await self.media.fetch_play_status()
        if self.state_machine.mode is not mode:
            # The state machine moved on while the status was in flight.
            self.reset()
            return self.interval
        if not is_deviating(status):
            self.warnings[mode] = 0
            return self.interval

        self.warnings[mode] += 1
        count = self.warnings[mode]
        self.logger.debug("[watchdog] Deviation %d/%d in %s: %s", count, self.threshold, mode.value, status)
        if count > self.threshold:
            self.logger.warning("[watchdog] Restoring local music after %d deviating checks", count)
            self.warnings[mode] = 0
            await self.media.restart_local_loop()
            if self._on_corrective:
                self._on_corrective(mode, status)
        return self.interval
