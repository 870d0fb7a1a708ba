from __future__ import annotations

# Reception workstation (Tkinter).
#
# A small data-entry form: driver name, plate, service type. Submitting
# sends one `register` request to the store; blank name/plate never
# leave the form.

import argparse
import logging
import tkinter as tk
from tkinter import ttk
from typing import Any, cast

from .config import DEFAULT_MQTT_HOST, DEFAULT_MQTT_PORT, DEFAULT_NAMESPACE
from .errors import RequestFailed
from .models import ServiceType
from .mqtt_client import MqttClient
from .queue_client import QueueClient, make_client_id

logger = logging.getLogger(__name__)

SERVICE_LABELS = {
    ServiceType.CIV: "CIV",
    ServiceType.CSV: "CSV (Prioridade)",
    ServiceType.CIPP: "CIPP",
    ServiceType.LIT: "LIT",
    ServiceType.LAUDOS: "LAUDOS",
    ServiceType.DESCONTAMINACAO: "DESCONTAMINAÇÃO",
}


def success_message(name: str, plate: str) -> str:
    return f"Veículo de {name} ({plate}) registrado com sucesso!"


class ReceptionApp:
    def __init__(self, *, mqtt_host: str, mqtt_port: int, namespace: str) -> None:
        self.namespace = namespace

        self.root = tk.Tk()
        self.root.title("Recepção")
        self.root.geometry("420x320")

        self.name_var = tk.StringVar()
        self.plate_var = tk.StringVar()
        self.service_var = tk.StringVar(value=SERVICE_LABELS[ServiceType.CIV])
        self.status_var = tk.StringVar()

        form = ttk.Frame(self.root, padding=16)
        form.pack(fill=cast(Any, tk.BOTH), expand=True)

        ttk.Label(form, text="Nome do Condutor").pack(anchor=cast(Any, tk.W))
        ttk.Entry(form, textvariable=self.name_var).pack(fill=cast(Any, tk.X), pady=(0, 10))
        ttk.Label(form, text="Placa do Veículo").pack(anchor=cast(Any, tk.W))
        ttk.Entry(form, textvariable=self.plate_var).pack(fill=cast(Any, tk.X), pady=(0, 10))
        ttk.Label(form, text="Serviço").pack(anchor=cast(Any, tk.W))
        ttk.Combobox(
            form,
            textvariable=self.service_var,
            values=list(SERVICE_LABELS.values()),
            state="readonly",
        ).pack(fill=cast(Any, tk.X), pady=(0, 10))
        ttk.Button(form, text="Registrar", command=self.submit).pack(fill=cast(Any, tk.X), pady=(6, 10))
        ttk.Label(form, textvariable=self.status_var, wraplength=380).pack(fill=cast(Any, tk.X))

        self._mqtt = MqttClient(client_id=make_client_id("reception"), host=mqtt_host, port=mqtt_port)
        self._client: QueueClient | None = None
        self.root.protocol("WM_DELETE_WINDOW", self.close)

    def start(self) -> None:
        try:
            self._mqtt.start()
            self._client = QueueClient(mqtt=self._mqtt, namespace=self.namespace)
        except Exception as e:
            self.status_var.set(f"MQTT connection failed: {e}")
        self.root.mainloop()

    def close(self) -> None:
        try:
            self._mqtt.stop()
        finally:
            self.root.destroy()

    def submit(self) -> None:
        name = self.name_var.get().strip()
        plate = self.plate_var.get().strip().upper()
        if not name or not plate:
            return
        if self._client is None:
            self.status_var.set("Sem conexão com o servidor.")
            return

        label = self.service_var.get()
        service = next(s for s, lbl in SERVICE_LABELS.items() if lbl == label)
        try:
            self._client.register(name, plate, service)
        except (RequestFailed, TimeoutError) as e:
            logger.warning("registration failed: %s", e)
            self.status_var.set(f"Falha no registro: {e}")
            return

        self.status_var.set(success_message(name, plate))
        self.name_var.set("")
        self.plate_var.set("")
        self.root.after(3000, lambda: self.status_var.set(""))


def main() -> None:
    parser = argparse.ArgumentParser(description="Reception workstation (Tkinter + MQTT)")
    parser.add_argument("--mqtt-host", default=DEFAULT_MQTT_HOST)
    parser.add_argument("--mqtt-port", type=int, default=DEFAULT_MQTT_PORT)
    parser.add_argument("--namespace", default=DEFAULT_NAMESPACE)
    parser.add_argument("--log-level", default="INFO")
    args = parser.parse_args()

    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s [%(name)s] %(message)s")

    app = ReceptionApp(mqtt_host=args.mqtt_host, mqtt_port=args.mqtt_port, namespace=args.namespace)
    app.start()


if __name__ == "__main__":
    main()
