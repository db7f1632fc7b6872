"""Tests for the playback watchdog."""

from __future__ import annotations

from unittest.mock import Mock

import pytest
from conftest import PLAYLIST_URL
from mihello.assistant.mina import TransportError
from mihello.assistant.models import STATUS_IDLE, STATUS_PLAYING, STATUS_STOPPED, Mode, PlayStatus
from mihello.assistant.watchdog import PlaybackWatchdog, is_deviating

pytestmark = pytest.mark.anyio

GUARDED = Mode.PLAYING_LOCAL_MUSIC
COMPLIANT = PlayStatus(status=STATUS_PLAYING)
DEVIATING = PlayStatus(status=STATUS_STOPPED)
CORRECTIVE = [("pause",), ("play_url", PLAYLIST_URL)]


@pytest.fixture
def watchdog(state_machine, media):
    return PlaybackWatchdog(state_machine=state_machine, media=media, interval=1.0, threshold=6)


def _guard(state_machine):
    state_machine._mode = GUARDED


class TestIsDeviating:
    def test_playing_is_compliant(self):
        assert not is_deviating(PlayStatus(status=STATUS_PLAYING))

    def test_idle_transition_is_compliant(self):
        assert not is_deviating(PlayStatus(status=STATUS_IDLE))

    def test_stopped_deviates(self):
        assert is_deviating(PlayStatus(status=STATUS_STOPPED))

    def test_unknown_status_deviates(self):
        assert is_deviating(PlayStatus(status=None))

    def test_song_detail_deviates_even_while_playing(self):
        assert is_deviating(PlayStatus(status=STATUS_PLAYING, song_detail_present=True))


class TestTick:
    async def test_idle_mode_does_not_poll(self, watchdog, speaker_client):
        watchdog.warnings[GUARDED] = 4
        assert await watchdog.tick() == 1.0
        assert speaker_client.status_reads == 0
        assert watchdog.warnings[GUARDED] == 0

    async def test_corrective_action_exactly_on_seventh_tick(self, watchdog, state_machine, speaker_client):
        _guard(state_machine)
        speaker_client.default_status = DEVIATING
        for _ in range(6):
            await watchdog.tick()
        assert speaker_client.actions == []
        assert watchdog.warnings[GUARDED] == 6

        await watchdog.tick()
        assert speaker_client.actions == CORRECTIVE
        assert watchdog.warnings[GUARDED] == 0

    async def test_compliant_observation_resets_counter(self, watchdog, state_machine, speaker_client):
        _guard(state_machine)
        speaker_client.statuses = [DEVIATING] * 5 + [COMPLIANT] + [DEVIATING] * 6
        for _ in range(12):
            await watchdog.tick()
        assert speaker_client.actions == []
        assert watchdog.warnings[GUARDED] == 6

    async def test_leaving_guarded_mode_resets_counter(self, watchdog, state_machine, speaker_client):
        _guard(state_machine)
        speaker_client.default_status = DEVIATING
        for _ in range(5):
            await watchdog.tick()
        state_machine._mode = Mode.IDLE
        await watchdog.tick()
        assert watchdog.warnings[GUARDED] == 0
        _guard(state_machine)
        for _ in range(6):
            await watchdog.tick()
        assert speaker_client.actions == []

    async def test_mode_change_during_fetch_resets(self, watchdog, state_machine, speaker_client):
        _guard(state_machine)
        watchdog.warnings[GUARDED] = 6

        async def _fetch(device_id):
            state_machine._mode = Mode.IDLE
            return DEVIATING

        speaker_client.fetch_play_status = _fetch
        await watchdog.tick()
        assert watchdog.warnings[GUARDED] == 0
        assert speaker_client.actions == []

    async def test_fetch_error_leaves_counter_untouched(self, watchdog, state_machine, speaker_client):
        _guard(state_machine)
        watchdog.warnings[GUARDED] = 3
        speaker_client.status_error = TransportError("timeout")
        with pytest.raises(TransportError):
            await watchdog.tick()
        assert watchdog.warnings[GUARDED] == 3

    async def test_corrective_callback(self, watchdog, state_machine, speaker_client):
        _guard(state_machine)
        speaker_client.default_status = DEVIATING
        callback = Mock()
        watchdog.set_corrective_callback(callback)
        for _ in range(7):
            await watchdog.tick()
        callback.assert_called_once_with(GUARDED, DEVIATING)
