"""Optional MQTT telemetry for mode changes, utterances and guardian events."""

from __future__ import annotations

import json
import logging
import threading
import time

import paho.mqtt.client as mqtt

from .config import MqttConfig
from .models import Mode, PlayStatus, Utterance


class AssistantMqtt:
    def __init__(self, config: MqttConfig, logger: logging.Logger | None = None) -> None:
        self.config = config
        self._logger = logger or logging.getLogger(__name__)
        self._client: mqtt.Client | None = None
        self._lock = threading.Lock()
        self.mode_topic = f"{config.topic_base}/mode"
        self.utterance_topic = f"{config.topic_base}/utterance"
        self.guardian_topic = f"{config.topic_base}/guardian"

    def connect(self) -> None:
        """Connect and start the network loop; a failed connect leaves telemetry off."""
        if not self.config.host:
            self._logger.debug("[mqtt] No MQTT_HOST; telemetry disabled")
            return
        with self._lock:
            if self._client is not None:
                return
            client = self._build_client()
            try:
                client.connect(self.config.host, self.config.port, keepalive=30)
            except (OSError, ValueError) as exc:
                self._logger.warning("[mqtt] Cannot reach %s:%s: %s", self.config.host, self.config.port, exc)
                return
            client.loop_start()
            self._client = client

    def _build_client(self) -> mqtt.Client:
        client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2, client_id=f"mihello-{self.config.topic_base}")
        if self.config.username:
            client.username_pw_set(self.config.username, self.config.password)
        if self.config.tls_enabled:
            client.tls_set(ca_certs=self.config.ca_cert, certfile=self.config.cert, keyfile=self.config.key)
        return client

    def disconnect(self) -> None:
        with self._lock:
            client = self._client
            self._client = None
        if client:
            client.loop_stop()
            client.disconnect()

    def publish(self, topic: str, payload: str, retain: bool = False) -> None:
        client = self._client
        if client is None:
            return
        try:
            client.publish(topic, payload=payload, retain=retain)
        except (OSError, RuntimeError, ValueError) as exc:
            self._logger.debug("[mqtt] Dropped message for %s: %s", topic, exc)

    def publish_mode(self, mode: Mode) -> None:
        self.publish(self.mode_topic, mode.value, retain=True)

    def publish_utterance(self, utterance: Utterance) -> None:
        payload = {
            "text": utterance.text,
            "timestamp": utterance.timestamp,
            "answers": [answer.kind for answer in utterance.answers],
        }
        self.publish(self.utterance_topic, json.dumps(payload, ensure_ascii=False))

    def publish_guardian_event(self, mode: Mode, status: PlayStatus) -> None:
        payload = {
            "mode": mode.value,
            "status": status.status,
            "song_detail": status.song_detail_present,
            "at": int(time.time()),
        }
        self.publish(self.guardian_topic, json.dumps(payload))
