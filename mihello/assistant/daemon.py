"""MiHello daemon wiring: login, device resolution and the two polling loops."""

from __future__ import annotations

import logging
from collections.abc import Callable

import httpx

from .config import AssistantConfig
from .conversation import ConversationPoller
from .devices import select_device
from .media_controller import MediaController
from .mina import MINA_SID, MiAccount, MiNAClient, MiTokenStore
from .mqtt import AssistantMqtt
from .scheduling import PollingLoop
from .state_machine import PlaybackStateMachine
from .watchdog import PlaybackWatchdog

LOGGER = logging.getLogger("mihello-assistant")


class MiHelloAssistant:
    def __init__(
        self,
        config: AssistantConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
        client: MiNAClient | None = None,
        prompt: Callable[[str], str] = input,
        output: Callable[[str], None] = print,
    ) -> None:
        config.validate()
        self.config = config
        self._http = http_client
        self._owns_http = False
        if client is None:
            if self._http is None:
                self._http = httpx.AsyncClient(timeout=config.request_timeout, trust_env=False)
                self._owns_http = True
            account = MiAccount(
                self._http,
                config.account.user or "",
                config.account.password or "",
                MiTokenStore(config.account.token_path),
            )
            client = MiNAClient(account)
        self.client = client
        self.mqtt = AssistantMqtt(config.mqtt, logger=logging.getLogger("mihello-assistant.mqtt"))
        self._prompt = prompt
        self._output = output

        self.media: MediaController | None = None
        self.state_machine: PlaybackStateMachine | None = None
        self.poller: ConversationPoller | None = None
        self.watchdog: PlaybackWatchdog | None = None
        self.loops: list[PollingLoop] = []

    async def start(self) -> None:
        """Log in, resolve the speaker and start both loops.

        Any failure releases what was acquired so far and is re-raised.
        """
        try:
            await self._start()
        except BaseException:
            await self.shutdown()
            raise

    async def _start(self) -> None:
        await self.client.account.login(MINA_SID)
        if not self.config.device.resolved:
            device = await select_device(self.client, prompt=self._prompt, output=self._output)
            self.config = self.config.with_device(device.device_id, device.hardware)
            LOGGER.info(
                "Using speaker %s; set MI_DID=%s MI_HW=%s to skip selection next time",
                device.name,
                device.device_id,
                device.hardware,
            )
        self.config.validate(require_device=True)
        self._build_core()
        self.mqtt.connect()
        if self.state_machine:
            self.mqtt.publish_mode(self.state_machine.mode)
        for loop in self.loops:
            loop.start()
        LOGGER.info("MiHello ready (device=%s, playlist=%s)", self.config.device.device_id, self._playlist_url)

    async def shutdown(self) -> None:
        for loop in self.loops:
            await loop.stop()
        self.mqtt.disconnect()
        if self._owns_http and self._http is not None:
            await self._http.aclose()

    @property
    def _playlist_url(self) -> str:
        return self.config.local_server.playlist_url

    def _build_core(self) -> None:
        device = self.config.device
        device_id = device.device_id or ""
        self.media = MediaController(
            self.client,
            device_id,
            self._playlist_url,
            wait_interval=self.config.wait.interval,
            wait_max_attempts=self.config.wait.max_attempts,
        )
        self.state_machine = PlaybackStateMachine(self.media)
        self.state_machine.add_mode_listener(self.mqtt.publish_mode)

        conversation_logger = logging.getLogger("mihello-assistant.conversation")
        self.poller = ConversationPoller(
            client=self.client,
            state_machine=self.state_machine,
            hardware=device.hardware or "",
            device_id=device_id,
            base_interval=self.config.listener.base_interval,
            rate_limit_scale=self.config.listener.rate_limit_scale,
            logger=conversation_logger,
        )
        self.poller.add_observer(self.mqtt.publish_utterance)

        watchdog_logger = logging.getLogger("mihello-assistant.watchdog")
        self.watchdog = PlaybackWatchdog(
            state_machine=self.state_machine,
            media=self.media,
            interval=self.config.watchdog.interval,
            threshold=self.config.watchdog.threshold,
            logger=watchdog_logger,
        )
        self.watchdog.set_corrective_callback(self.mqtt.publish_guardian_event)

        self.loops = [
            PollingLoop(
                "conversation",
                self.poller.poll,
                cooldown=self.config.listener.error_cooldown,
                logger=conversation_logger,
            ),
            PollingLoop(
                "watchdog",
                self.watchdog.tick,
                cooldown=self.config.watchdog.error_cooldown,
                logger=watchdog_logger,
            ),
        ]
