"""Configuration helpers for the MiHello assistant."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path

from mihello.utils import parse_bool, parse_float, parse_int, strip_or_none

DEFAULT_PLAYLIST_PATH = "/random.m3u8"
DEFAULT_TOKEN_PATH = "~/.mi.token"


class ConfigError(ValueError):
    """Raised when required configuration values are missing."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = list(missing)
        super().__init__("Missing required configuration: " + ", ".join(self.missing))


@dataclass(frozen=True)
class AccountConfig:
    user: str | None
    password: str | None
    token_path: Path


@dataclass(frozen=True)
class DeviceConfig:
    device_id: str | None
    hardware: str | None

    @property
    def resolved(self) -> bool:
        return bool(self.device_id and self.hardware)


@dataclass(frozen=True)
class LocalServerConfig:
    address: str | None
    playlist_path: str

    @property
    def playlist_url(self) -> str:
        path = self.playlist_path if self.playlist_path.startswith("/") else f"/{self.playlist_path}"
        return f"http://{self.address}{path}"


@dataclass(frozen=True)
class ListenerConfig:
    base_interval: float
    rate_limit_scale: float
    error_cooldown: float


@dataclass(frozen=True)
class WatchdogConfig:
    interval: float
    threshold: int
    error_cooldown: float


@dataclass(frozen=True)
class WaitConfig:
    interval: float
    max_attempts: int


@dataclass(frozen=True)
class MqttConfig:
    host: str | None
    port: int
    username: str | None
    password: str | None
    tls_enabled: bool
    cert: str | None
    key: str | None
    ca_cert: str | None
    topic_base: str


@dataclass(frozen=True)
class AssistantConfig:
    account: AccountConfig
    device: DeviceConfig
    local_server: LocalServerConfig
    request_timeout: float
    listener: ListenerConfig
    watchdog: WatchdogConfig
    wait: WaitConfig
    mqtt: MqttConfig

    @staticmethod
    def from_env(env: dict[str, str] | None = None) -> AssistantConfig:
        source = env if env is not None else os.environ

        account = AccountConfig(
            user=strip_or_none(source.get("MI_USER")),
            password=source.get("MI_PASS") or None,
            token_path=Path(source.get("MI_TOKEN_PATH") or DEFAULT_TOKEN_PATH).expanduser(),
        )
        device = DeviceConfig(
            device_id=strip_or_none(source.get("MI_DID")),
            hardware=strip_or_none(source.get("MI_HW")),
        )
        local_server = LocalServerConfig(
            address=_normalize_server_address(source.get("MI_LSVR")),
            playlist_path=(source.get("MI_PLAYLIST_PATH") or DEFAULT_PLAYLIST_PATH).strip() or DEFAULT_PLAYLIST_PATH,
        )

        listener = ListenerConfig(
            base_interval=max(0.0, parse_float(source.get("MIHELLO_POLL_INTERVAL"), 1.0)),
            rate_limit_scale=max(0.0, parse_float(source.get("MIHELLO_RATE_LIMIT_SCALE"), 0.03)),
            error_cooldown=max(0.0, parse_float(source.get("MIHELLO_POLL_COOLDOWN"), 3.0)),
        )
        watchdog = WatchdogConfig(
            interval=max(0.0, parse_float(source.get("MIHELLO_WATCHDOG_INTERVAL"), 1.0)),
            threshold=max(0, parse_int(source.get("MIHELLO_WATCHDOG_THRESHOLD"), 6)),
            error_cooldown=max(0.0, parse_float(source.get("MIHELLO_WATCHDOG_COOLDOWN"), 3.0)),
        )
        wait = WaitConfig(
            interval=max(0.0, parse_float(source.get("MIHELLO_WAIT_INTERVAL"), 0.1)),
            max_attempts=max(1, parse_int(source.get("MIHELLO_WAIT_MAX_ATTEMPTS"), 600)),
        )

        topic_base = source.get("MIHELLO_TOPIC_BASE") or "mihello/assistant"
        mqtt = MqttConfig(
            host=strip_or_none(source.get("MQTT_HOST")),
            port=parse_int(source.get("MQTT_PORT"), 1883),
            username=strip_or_none(source.get("MQTT_USER") or source.get("MQTT_USERNAME")),
            password=strip_or_none(source.get("MQTT_PASS") or source.get("MQTT_PASSWORD")),
            tls_enabled=parse_bool(source.get("MQTT_TLS_ENABLED"), False),
            cert=strip_or_none(source.get("MQTT_CERT")),
            key=strip_or_none(source.get("MQTT_KEY")),
            ca_cert=strip_or_none(source.get("MQTT_CA_CERT")),
            topic_base=topic_base.rstrip("/"),
        )

        return AssistantConfig(
            account=account,
            device=device,
            local_server=local_server,
            request_timeout=max(0.1, parse_float(source.get("MIHELLO_REQUEST_TIMEOUT"), 2.0)),
            listener=listener,
            watchdog=watchdog,
            wait=wait,
            mqtt=mqtt,
        )

    def with_overrides(
        self,
        *,
        user: str | None = None,
        password: str | None = None,
        device_id: str | None = None,
        hardware: str | None = None,
        local_server: str | None = None,
    ) -> AssistantConfig:
        """Return a copy with command-line values taking precedence over the environment."""
        account = replace(
            self.account,
            user=strip_or_none(user) or self.account.user,
            password=password or self.account.password,
        )
        device = replace(
            self.device,
            device_id=strip_or_none(device_id) or self.device.device_id,
            hardware=strip_or_none(hardware) or self.device.hardware,
        )
        server = replace(
            self.local_server,
            address=_normalize_server_address(local_server) or self.local_server.address,
        )
        return replace(self, account=account, device=device, local_server=server)

    def with_device(self, device_id: str, hardware: str) -> AssistantConfig:
        return replace(self, device=DeviceConfig(device_id=device_id, hardware=hardware))

    def validate(self, *, require_device: bool = False) -> None:
        """Raise ConfigError naming every missing required field."""
        missing: list[str] = []
        if not self.account.user:
            missing.append("MI_USER")
        if not self.account.password:
            missing.append("MI_PASS")
        if not self.local_server.address:
            missing.append("MI_LSVR")
        if require_device:
            if not self.device.device_id:
                missing.append("MI_DID")
            if not self.device.hardware:
                missing.append("MI_HW")
        if missing:
            raise ConfigError(missing)


def _normalize_server_address(value: str | None) -> str | None:
    candidate = strip_or_none(value)
    if not candidate:
        return None
    lowered = candidate.lower()
    for scheme in ("http://", "https://"):
        if lowered.startswith(scheme):
            candidate = candidate[len(scheme) :]
            break
    return candidate.rstrip("/") or None
