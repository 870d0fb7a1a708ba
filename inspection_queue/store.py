from __future__ import annotations

# The Queue Store is the only owner of vehicle state.
#
# This file contains two layers:
# 1) `QueueStore` (pure logic, easy to unit test)
# 2) `MqttStoreService` + `main()` (integration with the MQTT broker)
#
# Every register/call/finish from the reception and technician
# workstations goes through one request topic and one handler, so
# mutations are serialized at a single dispatch point. The lock covers the
# periodic roster publisher thread that reads concurrently.

import argparse
import itertools
import logging
import threading
import time
import uuid
from collections.abc import Iterable
from typing import Any, Callable, TYPE_CHECKING

from .brain import build_response
from .errors import ErrorResponse, UnknownVehicle, ValidationError
from .models import (
    ACTION_TO_KIND,
    Action,
    AlertEvent,
    ServiceType,
    SystemResponse,
    Vehicle,
    VehicleStatus,
)

if TYPE_CHECKING:
    from .mqtt_client import MqttClient

logger = logging.getLogger(__name__)


# -------------------- queries shared with roster mirrors --------------------


def vehicles_with_status(vehicles: Iterable[Vehicle], status: VehicleStatus) -> list[Vehicle]:
    """Vehicles in `status`, keeping registration order."""
    return [v for v in vehicles if v.status == status]


def count_by_service(vehicles: Iterable[Vehicle]) -> dict[ServiceType, int]:
    """Per-service counts of vehicles that have already been called.

    Waiting vehicles are not counted; every service type is present.
    """
    counts = {s: 0 for s in ServiceType}
    for v in vehicles:
        if v.status != VehicleStatus.WAITING:
            counts[v.service_type] += 1
    return counts


class QueueStore:
    """Core business logic (testable without MQTT)."""

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        self._lock = threading.Lock()
        self._clock = clock
        # dict preserves insertion order, which is the display order.
        self._vehicles: dict[str, Vehicle] = {}
        self._last_ts = 0
        self._ids = itertools.count(1)

    # -------------------- lifecycle --------------------

    def register(self, name: str, plate: str, service: ServiceType | str) -> str:
        """Add a waiting vehicle and return its id.

        Raises ValidationError (and changes nothing) when name or plate is
        blank.
        """
        name = (name or "").strip()
        plate = (plate or "").strip().upper()
        if not name:
            raise ValidationError("driver name required")
        if not plate:
            raise ValidationError("plate required")
        try:
            service_type = ServiceType(service)
        except ValueError as e:
            raise ValidationError(f"unknown service type: {service!r}") from e

        with self._lock:
            vehicle_id = f"{next(self._ids):04d}-{uuid.uuid4().hex[:6]}"
            self._vehicles[vehicle_id] = Vehicle(
                id=vehicle_id,
                driver_name=name,
                plate=plate,
                service_type=service_type,
                status=VehicleStatus.WAITING,
                registered_at=self._clock(),
            )
        logger.info("registered %s plate=%s service=%s", vehicle_id, plate, service_type.value)
        return vehicle_id

    def call(self, vehicle_id: str) -> tuple[AlertEvent, SystemResponse]:
        """Move a vehicle to inspection and build the panel announcement.

        Any known vehicle can be called, whatever its current status.
        """
        return self._transition(vehicle_id, Action.CALL)

    def finish(self, vehicle_id: str) -> tuple[AlertEvent, SystemResponse]:
        """Release a vehicle from the inspection area."""
        return self._transition(vehicle_id, Action.FINISH)

    def _transition(self, vehicle_id: str, action: Action) -> tuple[AlertEvent, SystemResponse]:
        new_status = VehicleStatus.IN_INSPECTION if action == Action.CALL else VehicleStatus.DONE
        with self._lock:
            vehicle = self._vehicles.get(vehicle_id)
            if vehicle is None:
                raise UnknownVehicle(vehicle_id)
            vehicle.status = new_status
            snapshot = vehicle.snapshot()
            event = AlertEvent(vehicle=snapshot, kind=ACTION_TO_KIND[action], timestamp=self._next_timestamp())
        logger.info("%s %s -> %s (ts=%d)", action.value, vehicle_id, new_status.value, event.timestamp)
        return event, build_response(snapshot, action)

    def _next_timestamp(self) -> int:
        # Wall-clock milliseconds, bumped when the clock stalls or goes back.
        ts = max(int(self._clock() * 1000), self._last_ts + 1)
        self._last_ts = ts
        return ts

    # -------------------- queries --------------------

    def get(self, vehicle_id: str) -> Vehicle | None:
        with self._lock:
            v = self._vehicles.get(vehicle_id)
            return v.snapshot() if v else None

    def vehicles(self) -> list[Vehicle]:
        """Snapshot of every vehicle in registration order."""
        with self._lock:
            return [v.snapshot() for v in self._vehicles.values()]

    def list_by_status(self, status: VehicleStatus) -> list[Vehicle]:
        return vehicles_with_status(self.vehicles(), status)

    def count_by_service(self) -> dict[ServiceType, int]:
        return count_by_service(self.vehicles())


def _text_field(msg: dict[str, Any], key: str) -> str:
    # JSON null or a number is not a usable name, plate or service.
    value = msg.get(key)
    return value if isinstance(value, str) else ""


class MqttStoreService:
    """MQTT adapter around the QueueStore business logic."""

    def __init__(self, *, mqtt: MqttClient, namespace: str, store: QueueStore | None = None) -> None:
        # Local imports so unit tests can import QueueStore without paho-mqtt.
        from .mqtt_topics import panel_alerts, queue_requests, queue_roster

        self._panel_alerts = panel_alerts
        self._queue_requests = queue_requests
        self._queue_roster = queue_roster

        self.mqtt = mqtt
        self.namespace = namespace
        self.store = store or QueueStore()

        # Background publisher thread control.
        self._stop_event = threading.Event()
        self._roster_thread: threading.Thread | None = None

    def start(self, *, publish_roster_every: float = 2.0) -> None:
        self.mqtt.listen(self._queue_requests(self.namespace), self._handle_message)

        # Periodic roster snapshots let a display that connects late catch up.
        self._roster_thread = threading.Thread(
            target=self._roster_publisher_loop,
            args=(publish_roster_every,),
            daemon=True,
        )
        self._roster_thread.start()

    def stop(self) -> None:
        """Stop background threads. Call before disconnecting MQTT."""
        self._stop_event.set()
        t = self._roster_thread
        if t and t.is_alive():
            t.join(timeout=1.0)

    def publish_roster(self) -> None:
        self.mqtt.publish(
            self._queue_roster(self.namespace),
            {"type": "roster", "vehicles": [v.to_message() for v in self.store.vehicles()]},
        )

    def _roster_publisher_loop(self, interval: float) -> None:
        while not self._stop_event.is_set():
            try:
                self.publish_roster()
            except Exception:
                logger.exception("roster publish failed")
            self._stop_event.wait(interval)

    def _reply(self, reply_to: str, corr_id: str | None, message: dict[str, Any]) -> None:
        msg = dict(message)
        if corr_id is not None:
            msg["corr_id"] = corr_id
        self.mqtt.publish(reply_to, msg)

    def _handle_message(self, topic: str, msg: dict[str, Any]) -> None:
        mtype = msg.get("type")

        corr_id = msg.get("corr_id") if isinstance(msg.get("corr_id"), str) else None
        reply_to = msg.get("reply_to") if isinstance(msg.get("reply_to"), str) else None

        # -------- reception --------
        if mtype == "register":
            try:
                vehicle_id = self.store.register(
                    _text_field(msg, "name"),
                    _text_field(msg, "plate"),
                    _text_field(msg, "service"),
                )
            except ValidationError as e:
                logger.info("register rejected: %s", e)
                if reply_to:
                    self._reply(reply_to, corr_id, ErrorResponse("bad_request", str(e)).to_message())
                return
            self.publish_roster()
            if reply_to:
                vehicle = self.store.get(vehicle_id)
                if vehicle is None:
                    reply = ErrorResponse("unknown_vehicle", "Registered vehicle not found").to_message()
                else:
                    reply = {"type": "registered", "vehicle": vehicle.to_message()}
                self._reply(reply_to, corr_id, reply)
            return

        # -------- technician --------
        if mtype in ("call", "finish"):
            vehicle_id = _text_field(msg, "vehicle_id")
            transition = self.store.call if mtype == "call" else self.store.finish
            try:
                event, response = transition(vehicle_id)
            except UnknownVehicle:
                logger.warning("%s for unknown vehicle %r ignored", mtype, vehicle_id)
                if reply_to:
                    self._reply(
                        reply_to,
                        corr_id,
                        ErrorResponse("unknown_vehicle", "Unknown vehicle id").to_message(),
                    )
                return

            # Panel first: the display must not wait on the operator reply.
            self.mqtt.publish(
                self._panel_alerts(self.namespace),
                {"type": "alert", "event": event.to_message(), "response": response.to_message()},
            )
            self.publish_roster()
            if reply_to:
                self._reply(
                    reply_to,
                    corr_id,
                    {
                        "type": "called" if mtype == "call" else "finished",
                        "vehicle": event.vehicle.to_message(),
                        "response": response.to_message(),
                    },
                )
            return

        if mtype == "list_vehicles":
            if reply_to:
                self._reply(
                    reply_to,
                    corr_id,
                    {"type": "vehicles", "vehicles": [v.to_message() for v in self.store.vehicles()]},
                )
            return

        # Our own broadcasts and unknown types are ignored.


def main() -> None:
    # Import MQTT dependencies only when running the real service.
    from .config import DEFAULT_MQTT_HOST, DEFAULT_MQTT_PORT, DEFAULT_NAMESPACE
    from .mqtt_client import MqttClient

    parser = argparse.ArgumentParser(description="Inspection queue store (MQTT)")
    parser.add_argument("--mqtt-host", default=DEFAULT_MQTT_HOST)
    parser.add_argument("--mqtt-port", type=int, default=DEFAULT_MQTT_PORT)
    parser.add_argument("--namespace", default=DEFAULT_NAMESPACE)
    parser.add_argument(
        "--publish-roster-every",
        type=float,
        default=2.0,
        help="seconds between roster snapshots for the display",
    )
    parser.add_argument("--log-level", default="INFO")
    args = parser.parse_args()

    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s [%(name)s] %(message)s")

    mqtt_client = MqttClient(client_id="store", host=args.mqtt_host, port=args.mqtt_port)
    mqtt_client.start()

    service = MqttStoreService(mqtt=mqtt_client, namespace=args.namespace)
    service.start(publish_roster_every=args.publish_roster_every)

    print(f"[store] connected to MQTT {args.mqtt_host}:{args.mqtt_port}, namespace={args.namespace}")

    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        pass
    finally:
        service.stop()
        mqtt_client.stop()


if __name__ == "__main__":
    main()
