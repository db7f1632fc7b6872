"""Tests for environment-driven configuration."""

from __future__ import annotations

from pathlib import Path

import pytest
from mihello.assistant.config import AssistantConfig, ConfigError

from conftest import BASE_ENV


class TestFromEnv:
    def test_required_values(self):
        config = AssistantConfig.from_env(BASE_ENV)
        assert config.account.user == "user@example.com"
        assert config.account.password == "secret"
        assert config.device.device_id == "device-1"
        assert config.device.hardware == "LX06"
        assert config.device.resolved
        assert config.local_server.playlist_url == "http://192.168.1.10:8080/random.m3u8"

    def test_defaults(self):
        config = AssistantConfig.from_env(BASE_ENV)
        assert config.request_timeout == 2.0
        assert config.listener.base_interval == 1.0
        assert config.listener.rate_limit_scale == 0.03
        assert config.listener.error_cooldown == 3.0
        assert config.watchdog.interval == 1.0
        assert config.watchdog.threshold == 6
        assert config.wait.interval == 0.1
        assert config.wait.max_attempts == 600
        assert config.account.token_path == Path("~/.mi.token").expanduser()
        assert config.mqtt.host is None
        assert config.mqtt.port == 1883
        assert config.mqtt.topic_base == "mihello/assistant"

    def test_server_address_is_normalized(self):
        env = {**BASE_ENV, "MI_LSVR": "http://nas.local:8000/", "MI_PLAYLIST_PATH": "music/all.m3u8"}
        config = AssistantConfig.from_env(env)
        assert config.local_server.address == "nas.local:8000"
        assert config.local_server.playlist_url == "http://nas.local:8000/music/all.m3u8"

    def test_timing_overrides(self):
        env = {
            **BASE_ENV,
            "MIHELLO_POLL_INTERVAL": "0.5",
            "MIHELLO_WATCHDOG_THRESHOLD": "3",
            "MIHELLO_REQUEST_TIMEOUT": "5",
            "MIHELLO_WAIT_MAX_ATTEMPTS": "not-a-number",
        }
        config = AssistantConfig.from_env(env)
        assert config.listener.base_interval == 0.5
        assert config.watchdog.threshold == 3
        assert config.request_timeout == 5.0
        assert config.wait.max_attempts == 600

    def test_mqtt_settings(self):
        env = {
            **BASE_ENV,
            "MQTT_HOST": "broker.local",
            "MQTT_PORT": "8883",
            "MQTT_USER": "mqtt-user",
            "MQTT_TLS_ENABLED": "true",
            "MIHELLO_TOPIC_BASE": "home/speaker/",
        }
        mqtt = AssistantConfig.from_env(env).mqtt
        assert mqtt.host == "broker.local"
        assert mqtt.port == 8883
        assert mqtt.username == "mqtt-user"
        assert mqtt.tls_enabled is True
        assert mqtt.topic_base == "home/speaker"


class TestValidate:
    def test_complete_config_passes(self):
        AssistantConfig.from_env(BASE_ENV).validate(require_device=True)

    def test_lists_every_missing_field(self):
        with pytest.raises(ConfigError) as excinfo:
            AssistantConfig.from_env({}).validate()
        assert excinfo.value.missing == ["MI_USER", "MI_PASS", "MI_LSVR"]
        assert "MI_USER, MI_PASS, MI_LSVR" in str(excinfo.value)

    def test_device_only_required_on_demand(self):
        env = {key: value for key, value in BASE_ENV.items() if key not in {"MI_DID", "MI_HW"}}
        config = AssistantConfig.from_env(env)
        config.validate()
        with pytest.raises(ConfigError) as excinfo:
            config.validate(require_device=True)
        assert excinfo.value.missing == ["MI_DID", "MI_HW"]

    def test_blank_values_count_as_missing(self):
        with pytest.raises(ConfigError) as excinfo:
            AssistantConfig.from_env({**BASE_ENV, "MI_USER": "   "}).validate()
        assert excinfo.value.missing == ["MI_USER"]


class TestOverrides:
    def test_command_line_wins(self):
        config = AssistantConfig.from_env(BASE_ENV).with_overrides(
            user="other@example.com",
            device_id="device-2",
            local_server="https://10.0.0.2:9000",
        )
        assert config.account.user == "other@example.com"
        assert config.account.password == "secret"
        assert config.device.device_id == "device-2"
        assert config.device.hardware == "LX06"
        assert config.local_server.address == "10.0.0.2:9000"

    def test_empty_overrides_keep_environment(self):
        base = AssistantConfig.from_env(BASE_ENV)
        assert base.with_overrides() == base

    def test_with_device(self):
        config = AssistantConfig.from_env({**BASE_ENV, "MI_DID": "", "MI_HW": ""})
        assert not config.device.resolved
        updated = config.with_device("device-9", "L05B")
        assert updated.device.resolved
        assert updated.device.hardware == "L05B"
