"""
Local music guardian for XiaoAi speakers

This package provides the core MiHello functionality:

- Conversation polling: Detects new voice utterances in the speaker's history
- Command classification: Fixed, mode-aware phrase rules
- Playback state machine: Starts, protects and releases the local music loop
- Playback watchdog: Restores the loop after sustained drift
- Scheduling: Independent, self-rescheduling polling loops

Key modules:
- config: Configuration management from environment variables
- mina: Xiaomi account login and MiNA API client
- state_machine: Mode transitions and playback actions
- daemon: Wiring of all components
"""

from __future__ import annotations

__all__ = [
    "commands",
    "config",
    "conversation",
    "daemon",
    "mina",
    "state_machine",
    "watchdog",
]
