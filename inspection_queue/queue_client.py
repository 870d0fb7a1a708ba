from __future__ import annotations

# Request/response client used by the reception and technician
# workstations.
#
# Each workstation has its own client id and receives store replies on a
# dedicated response topic. Error replies surface as `RequestFailed`.

import time
from typing import Any, TYPE_CHECKING

from .models import ServiceType, Vehicle
from .mqtt_topics import queue_requests, queue_responses

if TYPE_CHECKING:
    from .mqtt_client import MqttClient


def make_client_id(role: str) -> str:
    # Unique id so several workstations of the same role can run at once.
    return f"{role}-{int(time.time() * 1000)}"


class QueueClient:
    def __init__(self, *, mqtt: MqttClient, namespace: str, timeout: float = 5.0) -> None:
        self.mqtt = mqtt
        self.namespace = namespace
        self.timeout = timeout
        self.reply_topic = queue_responses(mqtt.client_id, namespace)

    def _request(self, message: dict[str, Any]) -> dict[str, Any]:
        return self.mqtt.request(
            request_topic=queue_requests(self.namespace),
            response_topic=self.reply_topic,
            message=message,
            timeout=self.timeout,
        )

    def register(self, name: str, plate: str, service: ServiceType) -> Vehicle:
        resp = self._request(
            {"type": "register", "name": name, "plate": plate.strip().upper(), "service": service.value}
        )
        return Vehicle.from_message(resp["vehicle"])

    def call(self, vehicle_id: str) -> dict[str, Any]:
        return self._request({"type": "call", "vehicle_id": vehicle_id})

    def finish(self, vehicle_id: str) -> dict[str, Any]:
        return self._request({"type": "finish", "vehicle_id": vehicle_id})

    def list_vehicles(self) -> list[Vehicle]:
        resp = self._request({"type": "list_vehicles"})
        return [Vehicle.from_message(v) for v in resp.get("vehicles", [])]
