"""Conversation history poller that feeds new utterances to the state machine."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from .mina import MalformedDataError
from .models import ConversationPage, Utterance

if TYPE_CHECKING:
    from .mina import MiNAClient
    from .state_machine import PlaybackStateMachine

LOGGER = logging.getLogger("mihello-assistant.conversation")

UtteranceObserver = Callable[[Utterance], None]


class ConversationPoller:
    """Diffs successive conversation pages and replays only unseen utterances.

    The first page establishes a baseline; history that existed before startup
    is never acted on.
    """

    def __init__(
        self,
        *,
        client: MiNAClient,
        state_machine: PlaybackStateMachine,
        hardware: str,
        device_id: str,
        base_interval: float = 1.0,
        rate_limit_scale: float = 0.03,
        logger: logging.Logger | None = None,
    ) -> None:
        self.client = client
        self.state_machine = state_machine
        self.hardware = hardware
        self.device_id = device_id
        self.base_interval = base_interval
        self.rate_limit_scale = rate_limit_scale
        self.logger = logger or LOGGER
        self._page: ConversationPage | None = None
        self._last_seen: int | None = None
        self._observers: list[UtteranceObserver] = []

    @property
    def page(self) -> ConversationPage | None:
        return self._page

    @property
    def last_seen_timestamp(self) -> int | None:
        return self._last_seen

    def add_observer(self, observer: UtteranceObserver) -> None:
        self._observers.append(observer)

    def next_delay(self, page: ConversationPage) -> float:
        """Poll faster while the API reports plenty of remaining quota."""
        return max(0.0, self.base_interval - page.rate_limit_remaining * self.rate_limit_scale)

    async def poll(self) -> float:
        """Run one polling tick and return the delay before the next one."""
        try:
            page = await self.client.fetch_conversation(self.hardware, self.device_id)
        except MalformedDataError as exc:
            self.logger.warning("[conversation] Ignoring malformed conversation data: %s", exc)
            return self.base_interval

        if self._page is None:
            self._page = page
            self._last_seen = max((utterance.timestamp for utterance in page.utterances), default=0)
            self.logger.info("[conversation] Listening for new utterances")
            return self.next_delay(page)

        if page.page_identity == self._page.page_identity:
            return self.next_delay(page)

        await self._process(page)
        self._page = page
        return self.next_delay(page)

    def unseen(self, page: ConversationPage) -> list[Utterance]:
        last_seen = self._last_seen or 0
        ordered = sorted(page.chronological(), key=lambda utterance: utterance.timestamp)
        return [utterance for utterance in ordered if utterance.timestamp > last_seen]

    async def _process(self, page: ConversationPage) -> None:
        for utterance in self.unseen(page):
            # Advance before acting so a failing command is never replayed.
            self._last_seen = utterance.timestamp
            self.logger.info("[conversation] Heard: %s", utterance.text)
            for observer in list(self._observers):
                try:
                    observer(utterance)
                except Exception as exc:  # pylint: disable=broad-except
                    self.logger.debug("[conversation] Utterance observer failed: %s", exc)
            await self.state_machine.on_utterance(utterance)
