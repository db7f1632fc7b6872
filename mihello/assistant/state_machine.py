"""
Playback state machine driven by classified voice commands

Holds the assistant's belief about what the speaker should be doing and
reacts to each new utterance:

- Idle: only "play local music" matters; it starts the local playlist loop
- Playing local music: interruptions are refused, "next" restarts the loop,
  "stop" hands the speaker back, anything else resumes the loop once the
  assistant's own answer is out of the way

The mode is a single attribute written only here. The watchdog reads it from
another task without locking.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from .commands import CommandKind, classify
from .media_controller import MediaController
from .models import Mode, Utterance

LOGGER = logging.getLogger("mihello-assistant.conversation")

ACK_TEXT = "好的。"
REFUSE_INTERRUPT_TEXT = "不许打断我播放本地音乐。"

ModeListener = Callable[[Mode], None]


class PlaybackStateMachine:
    def __init__(
        self,
        media: MediaController,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self.media = media
        self.logger = logger or LOGGER
        self._mode = Mode.IDLE
        self._listeners: list[ModeListener] = []

    @property
    def mode(self) -> Mode:
        return self._mode

    def add_mode_listener(self, listener: ModeListener) -> None:
        self._listeners.append(listener)

    async def on_utterance(self, utterance: Utterance) -> CommandKind | None:
        """React to one utterance; returns the command it was classified as."""
        mode = self._mode
        command = classify(utterance.text, mode)
        if command is None:
            return None
        self.logger.info("[conversation] %s -> %s (mode=%s)", utterance.text, command.value, mode.value)
        if mode is Mode.IDLE:
            if command is CommandKind.PLAY_LOCAL_MUSIC:
                await self._start_local_music()
        elif mode is Mode.PLAYING_LOCAL_MUSIC:
            await self._handle_while_playing(command, utterance)
        return command

    async def _start_local_music(self) -> None:
        self._transition(Mode.PLAYING_LOCAL_MUSIC)
        await self.media.pause()
        await self.media.speak(ACK_TEXT)
        await self.media.play_local_loop()

    async def _handle_while_playing(self, command: CommandKind, utterance: Utterance) -> None:
        if command is CommandKind.PLAY_OTHER:
            await self.media.pause()
            await self.media.speak(REFUSE_INTERRUPT_TEXT)
            await self.media.play_local_loop()
        elif command is CommandKind.NEXT_TRACK:
            await self.media.restart_local_loop()
        elif command is CommandKind.STOP:
            self._transition(Mode.IDLE)
            if utterance.all_tts:
                await self.media.wait_until_stop()
            else:
                await self.media.pause()
        elif command is CommandKind.FALLBACK:
            if not utterance.all_tts:
                await self.media.wait_until_stop()
            await self.media.play_local_loop()

    def _transition(self, mode: Mode) -> None:
        if mode is self._mode:
            return
        previous = self._mode
        self._mode = mode
        self.logger.info("[conversation] Mode %s -> %s", previous.value, mode.value)
        for listener in list(self._listeners):
            try:
                listener(mode)
            except Exception as exc:  # pylint: disable=broad-except
                self.logger.warning("[conversation] Mode listener failed: %s", exc)
