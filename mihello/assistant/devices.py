"""One-time interactive speaker selection when no device is configured."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .mina import MiNAClient


class DeviceSelectionError(RuntimeError):
    """Raised when no speaker could be chosen."""


@dataclass(frozen=True, slots=True)
class SpeakerDevice:
    device_id: str
    hardware: str
    name: str

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> SpeakerDevice:
        return cls(
            device_id=str(payload.get("deviceID") or ""),
            hardware=str(payload.get("hardware") or ""),
            name=str(payload.get("alias") or payload.get("name") or "unknown"),
        )


def format_device_table(devices: Sequence[SpeakerDevice]) -> list[str]:
    return [
        f"[{index}] {device.name} (MI_DID={device.device_id}, MI_HW={device.hardware})"
        for index, device in enumerate(devices)
    ]


def choose_device(
    devices: Sequence[SpeakerDevice],
    *,
    prompt: Callable[[str], str] = input,
    output: Callable[[str], None] = print,
) -> SpeakerDevice:
    """Print the devices and ask for an index until a valid one is given."""
    if not devices:
        raise DeviceSelectionError("No speakers found on this account")
    for line in format_device_table(devices):
        output(line)
    while True:
        try:
            raw = prompt(f"Select a speaker [0-{len(devices) - 1}]: ")
        except EOFError as exc:
            raise DeviceSelectionError("No speaker selected") from exc
        try:
            index = int(raw.strip())
        except ValueError:
            output(f"Not a number: {raw!r}")
            continue
        if 0 <= index < len(devices):
            return devices[index]
        output(f"Index out of range: {index}")


async def select_device(
    client: MiNAClient,
    *,
    prompt: Callable[[str], str] = input,
    output: Callable[[str], None] = print,
) -> SpeakerDevice:
    payloads = await client.list_devices()
    devices = [device for device in map(SpeakerDevice.from_payload, payloads) if device.device_id]
    return choose_device(devices, prompt=prompt, output=output)
