import pytest
from conftest import FakeMqtt

from inspection_queue.errors import ErrorResponse, RequestFailed
from inspection_queue.models import AlertEvent, AlertKind, ServiceType, VehicleStatus
from inspection_queue.mqtt_topics import panel_alerts, queue_roster
from inspection_queue.queue_client import QueueClient
from inspection_queue.store import MqttStoreService

NS = "test/v0"


def make_service():
    mqtt = FakeMqtt("store")
    return mqtt, MqttStoreService(mqtt=mqtt, namespace=NS)


def request(service, msg, reply_to="reply/x", corr_id="c1"):
    service._handle_message("ignored", {**msg, "reply_to": reply_to, "corr_id": corr_id})


def test_register_replies_and_publishes_roster():
    mqtt, service = make_service()
    request(service, {"type": "register", "name": "Ana", "plate": "abc1234", "service": "CIV"})

    reply = mqtt.on("reply/x")[-1]
    assert reply["type"] == "registered"
    assert reply["corr_id"] == "c1"
    assert reply["vehicle"]["plate"] == "ABC1234"
    roster = mqtt.on(queue_roster(NS))[-1]
    assert [v["driver_name"] for v in roster["vehicles"]] == ["Ana"]


def test_register_with_blank_name_is_rejected():
    mqtt, service = make_service()
    request(service, {"type": "register", "name": "  ", "plate": "ABC1234", "service": "CIV"})
    assert mqtt.on("reply/x")[-1]["code"] == "bad_request"
    assert service.store.vehicles() == []
    assert mqtt.on(queue_roster(NS)) == []


def test_register_with_null_fields_is_rejected():
    mqtt, service = make_service()
    request(service, {"type": "register", "name": None, "plate": "ABC1234", "service": "CIV"})
    request(service, {"type": "register", "name": "Ana", "plate": None, "service": "CIV"}, corr_id="c2")

    assert [r["code"] for r in mqtt.on("reply/x")] == ["bad_request", "bad_request"]
    assert service.store.vehicles() == []


def test_register_reply_carries_the_stored_vehicle():
    mqtt, service = make_service()
    request(service, {"type": "register", "name": " Ana ", "plate": "abc1234", "service": "LIT"})

    reply = mqtt.on("reply/x")[-1]
    stored = service.store.vehicles()[0]
    assert reply["vehicle"] == stored.to_message()
    assert reply["vehicle"]["driver_name"] == "Ana"


def test_call_publishes_alert_before_replying():
    mqtt, service = make_service()
    vid = service.store.register("Maria", "PRI0001", "CSV")
    request(service, {"type": "call", "vehicle_id": vid})

    topics = [t for t, _ in mqtt.published]
    assert topics.index(panel_alerts(NS)) < topics.index("reply/x")

    alert = mqtt.on(panel_alerts(NS))[-1]
    event = AlertEvent.from_message(alert["event"])
    assert event.kind == AlertKind.CALLING
    assert event.vehicle.status == VehicleStatus.IN_INSPECTION
    assert alert["response"]["painel_tv"]["prioridade"] is True
    assert mqtt.on("reply/x")[-1]["type"] == "called"


def test_unknown_vehicle_is_absorbed_without_alert():
    mqtt, service = make_service()
    request(service, {"type": "finish", "vehicle_id": "missing"})
    assert mqtt.on("reply/x")[-1]["code"] == "unknown_vehicle"
    assert mqtt.on(panel_alerts(NS)) == []


class LoopbackMqtt(FakeMqtt):
    """Routes requests straight into a store service and returns its reply."""

    def __init__(self, service):
        super().__init__("tech-1")
        self.service = service

    def request(self, *, request_topic, response_topic, message, timeout=5.0):
        msg = {**message, "reply_to": response_topic, "corr_id": "c"}
        self.service._handle_message(request_topic, msg)
        reply = self.service.mqtt.on(response_topic)[-1]
        if reply.get("type") == "error":
            raise RequestFailed(ErrorResponse.from_message(reply))
        return reply


def test_queue_client_round_trip():
    _, service = make_service()
    client = QueueClient(mqtt=LoopbackMqtt(service), namespace=NS)

    vehicle = client.register("Ana", " abc1234 ", ServiceType.LIT)
    assert vehicle.plate == "ABC1234"
    assert client.call(vehicle.id)["type"] == "called"
    assert [v.status for v in client.list_vehicles()] == [VehicleStatus.IN_INSPECTION]

    with pytest.raises(RequestFailed) as exc:
        client.finish("missing")
    assert exc.value.error.code == "unknown_vehicle"
