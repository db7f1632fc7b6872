"""Tests for media_controller module."""

from __future__ import annotations

import pytest
from conftest import PLAYLIST_URL, FakeSpeakerClient
from mihello.assistant.media_controller import MediaController
from mihello.assistant.mina import TransportError
from mihello.assistant.models import STATUS_PLAYING, STATUS_STOPPED, PlayStatus

pytestmark = pytest.mark.anyio

PLAYING = PlayStatus(status=STATUS_PLAYING)
STOPPED = PlayStatus(status=STATUS_STOPPED)


def _make_controller(client, max_attempts=5):
    return MediaController(client, "device-1", PLAYLIST_URL, wait_interval=0.0, wait_max_attempts=max_attempts)


class TestPlaybackCommands:
    async def test_pause(self, speaker_client, media):
        await media.pause()
        assert speaker_client.actions == [("pause",)]

    async def test_play_local_loop_uses_playlist_url(self, speaker_client, media):
        await media.play_local_loop()
        assert speaker_client.actions == [("play_url", PLAYLIST_URL)]

    async def test_restart_pauses_before_playing(self, speaker_client, media):
        await media.restart_local_loop()
        assert speaker_client.actions == [("pause",), ("play_url", PLAYLIST_URL)]

    async def test_speak_waits_for_stop(self):
        client = FakeSpeakerClient(statuses=[PLAYING, PLAYING, STOPPED])
        await _make_controller(client).speak("好的。")
        assert client.actions == [("speak", "好的。")]
        assert client.status_reads == 3

    async def test_speak_without_wait(self, speaker_client, media):
        await media.speak("好的。", wait=False)
        assert speaker_client.status_reads == 0


class TestWaitUntilStop:
    async def test_returns_true_once_stopped(self):
        client = FakeSpeakerClient(statuses=[PLAYING, STOPPED])
        assert await _make_controller(client).wait_until_stop() is True
        assert client.status_reads == 2

    async def test_gives_up_after_max_attempts(self):
        client = FakeSpeakerClient()
        client.default_status = PLAYING
        assert await _make_controller(client, max_attempts=4).wait_until_stop() is False
        assert client.status_reads == 4

    async def test_status_error_resolves_immediately(self):
        client = FakeSpeakerClient()
        client.status_error = TransportError("timeout")
        assert await _make_controller(client).wait_until_stop() is False
        assert client.status_reads == 1
