"""
Voice command classification for the local music guardian

Maps a recognized utterance to a command kind using an ordered, mode-aware
rule table. Rules are plain data so each one can be exercised on its own.

Rule order (first match wins):
- play local music: only while idle
- play anything else: an attempt to interrupt the local loop
- next track
- stop / pause / goodbye
- fallback: any other non-empty utterance while playing

All whitespace is removed before matching and matching ignores case
(for phrases such as "MP3").
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from .models import Mode


class CommandKind(str, Enum):
    PLAY_LOCAL_MUSIC = "play_local_music"
    PLAY_OTHER = "play_other"
    NEXT_TRACK = "next_track"
    STOP = "stop"
    FALLBACK = "fallback"


@dataclass(frozen=True, slots=True)
class CommandRule:
    kind: CommandKind
    modes: frozenset[Mode]
    pattern: re.Pattern[str]

    def matches(self, text: str, mode: Mode) -> bool:
        return mode in self.modes and self.pattern.fullmatch(text) is not None


_PLAY_VERB = r"(?:播放|播|放|听)"
_PHRASE_REQUEST_VERB = r"(?:我想听|我要听|给我放|给我播|帮我放|帮我播|来一首|来首|来点|播放)"
_BARE_VERB = r"(?:播|放|听)"
_REQUEST_VERB = r"(?:" + _PHRASE_REQUEST_VERB + r"|" + _BARE_VERB + r")"
# A bare verb only asks for media when an object follows it ("放点歌", not "放心吧").
_MEDIA_OBJECT = r"(?:一首|一曲|一段|首|点|些|歌|音乐|相声|评书|故事|广播|电台|有声书|.+的(?:歌曲?|音乐|专辑|相声|故事))"
_LOCAL_MEDIA = r"本地的?(?:音乐|歌曲?|文件|[mn]p3)"
_NEXT_TRACK = r"(?:下一首|下一曲|下首|换一首|换首|切歌)(?:歌曲?)?吧?"
_IDLE = frozenset({Mode.IDLE})
_PLAYING = frozenset({Mode.PLAYING_LOCAL_MUSIC})

COMMAND_RULES: tuple[CommandRule, ...] = (
    CommandRule(
        CommandKind.PLAY_LOCAL_MUSIC,
        _IDLE,
        re.compile(_PLAY_VERB + _LOCAL_MEDIA, re.IGNORECASE),
    ),
    CommandRule(
        CommandKind.PLAY_OTHER,
        _PLAYING,
        # The trigger phrase and "play the next one" are not interruptions.
        re.compile(
            r"(?!"
            + _REQUEST_VERB
            + r"(?:"
            + _LOCAL_MEDIA
            + r"|"
            + _NEXT_TRACK
            + r")$)(?:"
            + _PHRASE_REQUEST_VERB
            + r".+|"
            + _BARE_VERB
            + _MEDIA_OBJECT
            + r".*)",
            re.IGNORECASE,
        ),
    ),
    CommandRule(
        CommandKind.NEXT_TRACK,
        _PLAYING,
        re.compile(_REQUEST_VERB + "?" + _NEXT_TRACK, re.IGNORECASE),
    ),
    CommandRule(
        CommandKind.STOP,
        _PLAYING,
        re.compile(
            r"(?:停止|暂停|停下|停|关闭|关掉|退出|(?:别|不要)(?:播放|播|放)了|不听了|再见|拜拜|闭嘴)"
            r"(?:一下)?(?:播放)?(?:本地的?)?(?:音乐|歌曲?)?(?:吧|了)?",
            re.IGNORECASE,
        ),
    ),
    CommandRule(CommandKind.FALLBACK, _PLAYING, re.compile(r".+", re.DOTALL)),
)

_WHITESPACE = re.compile(r"\s+")


def normalize_utterance_text(text: str | None) -> str:
    """Remove every whitespace character from the recognized text."""
    return _WHITESPACE.sub("", text or "")


def classify(
    text: str | None,
    mode: Mode,
    rules: tuple[CommandRule, ...] = COMMAND_RULES,
) -> CommandKind | None:
    """Return the first matching command kind for ``text`` in ``mode``."""
    normalized = normalize_utterance_text(text)
    if not normalized:
        return None
    for rule in rules:
        if rule.matches(normalized, mode):
            return rule.kind
    return None
