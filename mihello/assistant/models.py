"""Conversation and playback snapshots parsed from the speaker's APIs."""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

# Vendor status codes reported by player_get_play_status. Only these three are
# relied upon; anything else is kept verbatim.
STATUS_IDLE = 0
STATUS_PLAYING = 1
STATUS_STOPPED = 3

TTS_ANSWER = "TTS"


class Mode(str, Enum):
    IDLE = "idle"
    PLAYING_LOCAL_MUSIC = "play_local_music"


GUARDED_MODES = frozenset({Mode.PLAYING_LOCAL_MUSIC})


@dataclass(frozen=True, slots=True)
class Answer:
    kind: str

    @property
    def is_tts(self) -> bool:
        return self.kind.upper() == TTS_ANSWER


@dataclass(frozen=True, slots=True)
class Utterance:
    text: str
    timestamp: int
    answers: tuple[Answer, ...] = ()

    @property
    def all_tts(self) -> bool:
        """True when the assistant only spoke (no cards, no media)."""
        return all(answer.is_tts for answer in self.answers)

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> Utterance:
        answers = tuple(
            Answer(kind=str(item.get("type") or ""))
            for item in record.get("answers") or ()
            if isinstance(item, Mapping)
        )
        try:
            timestamp = int(record.get("time") or 0)
        except (TypeError, ValueError):
            timestamp = 0
        return cls(text=str(record.get("query") or ""), timestamp=timestamp, answers=answers)


@dataclass(frozen=True, slots=True)
class ConversationPage:
    """One fetch of the conversation history, newest utterance first."""

    utterances: tuple[Utterance, ...]
    page_identity: Any
    rate_limit_remaining: int = 0

    def chronological(self) -> list[Utterance]:
        return list(reversed(self.utterances))

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any], rate_limit_remaining: int = 0) -> ConversationPage:
        records = payload.get("records") or ()
        if not isinstance(records, Sequence) or isinstance(records, str):
            raise ValueError("conversation records must be a list")
        utterances = tuple(Utterance.from_record(item) for item in records if isinstance(item, Mapping))
        return cls(
            utterances=utterances,
            page_identity=payload.get("nextEndTime"),
            rate_limit_remaining=rate_limit_remaining,
        )


@dataclass(frozen=True, slots=True)
class PlayStatus:
    status: int | None
    song_detail_present: bool = False

    @property
    def stopped(self) -> bool:
        return self.status == STATUS_STOPPED

    @classmethod
    def from_info(cls, info: str | None) -> PlayStatus:
        """Parse the ``info`` JSON string; a missing value reads as ``{}``."""
        payload = json.loads(info or "{}")
        if not isinstance(payload, Mapping):
            raise ValueError("play status info must be an object")
        raw_status = payload.get("status")
        try:
            status = int(raw_status) if raw_status is not None else None
        except (TypeError, ValueError):
            status = None
        return cls(status=status, song_detail_present=bool(payload.get("play_song_detail")))
