"""
MiHello - local music guardian for XiaoAi smart speakers

This is the root package for MiHello, a daemon that listens to the speaker's
conversation history, intercepts "play local music" voice commands and keeps a
locally hosted playlist looping on the device.

Core modules:
- utils: Environment parsing helpers
- assistant: Conversation poller, playback state machine and watchdog
"""

__version__ = "0.3.0"
