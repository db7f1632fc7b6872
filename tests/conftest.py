"""Shared test fixtures for the MiHello test suite.

This module provides reusable fixtures for common test scenarios including:
- A scripted fake of the MiNA speaker client
- Media controller / state machine construction
- Utterance and conversation page factories
- Configuration objects
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from unittest.mock import Mock

import pytest
from mihello.assistant.config import AssistantConfig
from mihello.assistant.media_controller import MediaController
from mihello.assistant.models import STATUS_STOPPED, Answer, ConversationPage, PlayStatus, Utterance
from mihello.assistant.state_machine import PlaybackStateMachine

PLAYLIST_URL = "http://192.168.1.10:8080/random.m3u8"

# ============================================================================
# Pytest Configuration
# ============================================================================


@pytest.fixture(scope="session")
def anyio_backend():
    """Configure anyio backend for async tests."""
    return "asyncio"


@pytest.fixture
def mock_logger():
    """Mock logger restricted to the logging.Logger API."""
    return Mock(spec=logging.Logger)


# ============================================================================
# Speaker fakes
# ============================================================================


class FakeSpeakerClient:
    """Records playback commands in order and replays scripted play statuses."""

    def __init__(self, statuses: Iterable[PlayStatus] | None = None) -> None:
        self.actions: list[tuple] = []
        self.statuses = list(statuses or [])
        self.default_status = PlayStatus(status=STATUS_STOPPED)
        self.status_reads = 0
        self.status_error: Exception | None = None
        self.action_error: Exception | None = None

    async def pause(self, device_id: str) -> None:
        self._record(("pause",))

    async def speak(self, device_id: str, text: str) -> None:
        self._record(("speak", text))

    async def play_url(self, device_id: str, url: str) -> None:
        self._record(("play_url", url))

    async def fetch_play_status(self, device_id: str) -> PlayStatus:
        self.status_reads += 1
        if self.status_error:
            raise self.status_error
        if self.statuses:
            return self.statuses.pop(0)
        return self.default_status

    def _record(self, action: tuple) -> None:
        if self.action_error:
            raise self.action_error
        self.actions.append(action)


@pytest.fixture
def speaker_client():
    return FakeSpeakerClient()


@pytest.fixture
def media(speaker_client):
    return MediaController(speaker_client, "device-1", PLAYLIST_URL, wait_interval=0.0, wait_max_attempts=5)


@pytest.fixture
def state_machine(media):
    return PlaybackStateMachine(media)


# ============================================================================
# Conversation factories
# ============================================================================


def make_utterance(text: str, timestamp: int, answers: Iterable[str] = ("TTS",)) -> Utterance:
    return Utterance(text=text, timestamp=timestamp, answers=tuple(Answer(kind=kind) for kind in answers))


def make_page(*utterances: Utterance, identity=None, rate_limit: int = 0) -> ConversationPage:
    """Build a page; utterances are given oldest first and stored newest first."""
    newest_first = tuple(sorted(utterances, key=lambda item: item.timestamp, reverse=True))
    if identity is None:
        identity = max((item.timestamp for item in utterances), default=0)
    return ConversationPage(utterances=newest_first, page_identity=identity, rate_limit_remaining=rate_limit)


# ============================================================================
# Configuration
# ============================================================================

BASE_ENV: dict[str, str] = {
    "MI_USER": "user@example.com",
    "MI_PASS": "secret",
    "MI_DID": "device-1",
    "MI_HW": "LX06",
    "MI_LSVR": "192.168.1.10:8080",
}


@pytest.fixture
def assistant_config(tmp_path):
    env = dict(BASE_ENV)
    env["MI_TOKEN_PATH"] = str(tmp_path / "mi.token")
    return AssistantConfig.from_env(env)
