from __future__ import annotations

# Technician workstation (Tkinter).
#
# Two lists fed by the store's roster broadcasts:
# - "Fila de Espera": waiting vehicles, "Chamar" calls the selected one
# - "Em Inspeção": vehicles being inspected, "Finalizar" releases one
#
# Roster snapshots arrive on paho's thread; they are queued and drained
# via `root.after(...)` like on the display.

import argparse
import logging
import queue
import tkinter as tk
from tkinter import ttk
from typing import Any, cast

from .config import DEFAULT_MQTT_HOST, DEFAULT_MQTT_PORT, DEFAULT_NAMESPACE
from .errors import RequestFailed
from .models import PRIORITY_SERVICE, Vehicle, VehicleStatus
from .mqtt_client import MqttClient
from .mqtt_topics import queue_roster
from .queue_client import QueueClient, make_client_id
from .store import vehicles_with_status

logger = logging.getLogger(__name__)


def row_values(vehicle: Vehicle) -> tuple[str, str, str, str]:
    tag = "PRIORIDADE" if vehicle.service_type == PRIORITY_SERVICE else ""
    return (vehicle.driver_name, vehicle.plate, vehicle.service_type.value, tag)


class TechnicianApp:
    def __init__(self, *, mqtt_host: str, mqtt_port: int, namespace: str, refresh_ms: int = 250) -> None:
        self.namespace = namespace
        self.refresh_ms = refresh_ms

        self.root = tk.Tk()
        self.root.title("Técnico")
        self.root.geometry("960x520")

        self.info_var = tk.StringVar(value="Connecting...")
        ttk.Label(self.root, textvariable=self.info_var).pack(fill=cast(Any, tk.X), padx=10, pady=(10, 5))

        panes = ttk.Frame(self.root)
        panes.pack(fill=cast(Any, tk.BOTH), expand=True, padx=10, pady=10)

        self.waiting_title = tk.StringVar()
        self.inspection_title = tk.StringVar()
        self.waiting_tree = self._make_list(panes, self.waiting_title, "Chamar", self.call_selected)
        self.inspection_tree = self._make_list(panes, self.inspection_title, "Finalizar", self.finish_selected)

        self._inbox: "queue.Queue[dict[str, Any]]" = queue.Queue(maxsize=5)
        self._mqtt = MqttClient(client_id=make_client_id("technician"), host=mqtt_host, port=mqtt_port)
        self._client: QueueClient | None = None

        self._render([])
        self.root.protocol("WM_DELETE_WINDOW", self.close)

    def _make_list(self, parent: ttk.Frame, title: tk.StringVar, action: str, command: Any) -> ttk.Treeview:
        frame = ttk.Frame(parent)
        frame.pack(side=cast(Any, tk.LEFT), fill=cast(Any, tk.BOTH), expand=True, padx=5)
        ttk.Label(frame, textvariable=title).pack(anchor=cast(Any, tk.W))

        cols = ("name", "plate", "service", "tag")
        tree = ttk.Treeview(frame, columns=cols, show="headings", height=14, selectmode="browse")
        tree.heading("name", text="Condutor")
        tree.heading("plate", text="Placa")
        tree.heading("service", text="Serviço")
        tree.heading("tag", text="")
        tree.column("name", width=160, anchor=cast(Any, tk.W))
        tree.column("plate", width=90, anchor=cast(Any, tk.W))
        tree.column("service", width=120, anchor=cast(Any, tk.W))
        tree.column("tag", width=90, anchor=cast(Any, tk.W))
        tree.pack(fill=cast(Any, tk.BOTH), expand=True)

        ttk.Button(frame, text=action, command=command).pack(fill=cast(Any, tk.X), pady=(6, 0))
        return tree

    def start(self) -> None:
        try:
            self._mqtt.listen(queue_roster(self.namespace), self._on_mqtt_message)
            self._mqtt.start()
            self._client = QueueClient(mqtt=self._mqtt, namespace=self.namespace)
            self.info_var.set(f"Connected | namespace={self.namespace}")
        except Exception as e:
            self.info_var.set(f"MQTT connection failed: {e}")

        self.root.after(cast(Any, self.refresh_ms), self._drain_inbox)
        self.root.mainloop()

    def close(self) -> None:
        try:
            self._mqtt.stop()
        finally:
            self.root.destroy()

    # -------------------- MQTT thread callback --------------------

    def _on_mqtt_message(self, topic: str, msg: dict[str, Any]) -> None:
        if msg.get("type") != "roster":
            return
        try:
            self._inbox.put_nowait(msg)
        except queue.Full:
            # Only the newest roster matters; drop if the UI is slow.
            pass

    # -------------------- UI thread --------------------

    def _drain_inbox(self) -> None:
        latest: dict[str, Any] | None = None
        while True:
            try:
                latest = self._inbox.get_nowait()
            except queue.Empty:
                break

        if latest is not None:
            try:
                vehicles = [Vehicle.from_message(v) for v in latest.get("vehicles", [])]
            except (KeyError, TypeError, ValueError):
                logger.warning("dropping malformed roster snapshot")
            else:
                self._render(vehicles)

        self.root.after(cast(Any, self.refresh_ms), self._drain_inbox)

    def _render(self, vehicles: list[Vehicle]) -> None:
        waiting = vehicles_with_status(vehicles, VehicleStatus.WAITING)
        inspecting = vehicles_with_status(vehicles, VehicleStatus.IN_INSPECTION)
        self.waiting_title.set(f"Fila de Espera ({len(waiting)})")
        self.inspection_title.set(f"Em Inspeção ({len(inspecting)})")

        for tree, rows in ((self.waiting_tree, waiting), (self.inspection_tree, inspecting)):
            selected = set(tree.selection())
            for item in tree.get_children():
                tree.delete(item)
            for v in rows:
                tree.insert("", cast(Any, tk.END), iid=v.id, values=row_values(v))
                if v.id in selected:
                    tree.selection_add(v.id)

    def call_selected(self) -> None:
        self._act(self.waiting_tree, "call")

    def finish_selected(self) -> None:
        self._act(self.inspection_tree, "finish")

    def _act(self, tree: ttk.Treeview, action: str) -> None:
        selection = tree.selection()
        if not selection or self._client is None:
            return
        vehicle_id = selection[0]
        try:
            if action == "call":
                self._client.call(vehicle_id)
            else:
                self._client.finish(vehicle_id)
        except (RequestFailed, TimeoutError) as e:
            logger.warning("%s %s failed: %s", action, vehicle_id, e)
            self.info_var.set(f"Falha: {e}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Technician workstation (Tkinter + MQTT)")
    parser.add_argument("--mqtt-host", default=DEFAULT_MQTT_HOST)
    parser.add_argument("--mqtt-port", type=int, default=DEFAULT_MQTT_PORT)
    parser.add_argument("--namespace", default=DEFAULT_NAMESPACE)
    parser.add_argument("--refresh-ms", type=int, default=250)
    parser.add_argument("--log-level", default="INFO")
    args = parser.parse_args()

    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s [%(name)s] %(message)s")

    app = TechnicianApp(
        mqtt_host=args.mqtt_host,
        mqtt_port=args.mqtt_port,
        namespace=args.namespace,
        refresh_ms=args.refresh_ms,
    )
    app.start()


if __name__ == "__main__":
    main()
