#!/usr/bin/env python3
"""MiHello local music guardian daemon."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
import sys

from mihello.assistant.config import AssistantConfig, ConfigError
from mihello.assistant.daemon import MiHelloAssistant
from mihello.assistant.devices import DeviceSelectionError
from mihello.assistant.mina import MiServiceError

LOGGER = logging.getLogger("mihello-assistant")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Keep a local playlist looping on a XiaoAi speaker.")
    parser.add_argument("--log-level", default="INFO")
    parser.add_argument("--user", help="Xiaomi account (MI_USER)")
    parser.add_argument("--password", help="Xiaomi password (MI_PASS)")
    parser.add_argument("--device-id", help="speaker device id (MI_DID)")
    parser.add_argument("--hardware", help="speaker hardware tag (MI_HW)")
    parser.add_argument("--local-server", help="local media server host:port (MI_LSVR)")
    return parser


async def main() -> int:
    args = _build_parser().parse_args()
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = AssistantConfig.from_env().with_overrides(
        user=args.user,
        password=args.password,
        device_id=args.device_id,
        hardware=args.hardware,
        local_server=args.local_server,
    )
    try:
        assistant = MiHelloAssistant(config)
    except ConfigError as exc:
        LOGGER.error("%s", exc)
        return 1

    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()

    def _handle_signal(signum: int) -> None:
        LOGGER.info("Received signal %s, shutting down", signum)
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _handle_signal, sig)

    try:
        await assistant.start()
    except (MiServiceError, ConfigError, DeviceSelectionError) as exc:
        LOGGER.error("Startup failed: %s", exc)
        return 1

    await stop_event.wait()
    await assistant.shutdown()
    return 0


if __name__ == "__main__":
    exit_code = 0
    with contextlib.suppress(KeyboardInterrupt):
        exit_code = asyncio.run(main())
    sys.exit(exit_code)
