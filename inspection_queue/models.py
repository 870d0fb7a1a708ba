"""Domain types shared by every workstation.

Everything here is a plain value. The only mutable record is `Vehicle`,
and only `QueueStore` mutates it; everything that leaves the store is a
copy (see `Vehicle.snapshot`).

The `to_message` / `from_message` helpers define the JSON shape used on
MQTT topics.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any


class ServiceType(str, Enum):
    CIV = "CIV"
    CSV = "CSV"
    CIPP = "CIPP"
    LIT = "LIT"
    LAUDOS = "LAUDOS"
    DESCONTAMINACAO = "DESCONTAMINAÇÃO"


# Single service type with elevated prosody and a "PRIORIDADE" label.
PRIORITY_SERVICE = ServiceType.CSV

# Single service type announced towards the decontamination area.
DECONTAMINATION_SERVICE = ServiceType.DESCONTAMINACAO


class VehicleStatus(str, Enum):
    WAITING = "aguardando"
    IN_INSPECTION = "em_inspecao"
    DONE = "finalizado"


class Action(str, Enum):
    CALL = "chamar"
    FINISH = "finalizar"


class AlertKind(str, Enum):
    CALLING = "calling"
    FINISHING = "finishing"


ACTION_TO_KIND = {Action.CALL: AlertKind.CALLING, Action.FINISH: AlertKind.FINISHING}


@dataclass
class Vehicle:
    id: str
    driver_name: str
    plate: str
    service_type: ServiceType
    status: VehicleStatus = VehicleStatus.WAITING
    registered_at: float = 0.0

    def snapshot(self) -> Vehicle:
        return replace(self)

    def to_message(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "driver_name": self.driver_name,
            "plate": self.plate,
            "service_type": self.service_type.value,
            "status": self.status.value,
            "registered_at": self.registered_at,
        }

    @classmethod
    def from_message(cls, msg: dict[str, Any]) -> Vehicle:
        return cls(
            id=str(msg["id"]),
            driver_name=str(msg.get("driver_name", "")),
            plate=str(msg.get("plate", "")),
            service_type=ServiceType(msg["service_type"]),
            status=VehicleStatus(msg.get("status", VehicleStatus.WAITING.value)),
            registered_at=float(msg.get("registered_at", 0.0) or 0.0),
        )


@dataclass(frozen=True)
class PanelMessage:
    """What the public panel shows and says for one action."""

    display_text: str
    voice_text: str
    priority: bool


@dataclass(frozen=True)
class PersistRecord:
    """Record handed to an external audit/storage collaborator."""

    name: str
    service: str
    status: str


@dataclass(frozen=True)
class SystemResponse:
    action: Action
    panel: PanelMessage
    persist: PersistRecord

    def to_message(self) -> dict[str, Any]:
        # Field names follow the format the panel integration was built on.
        return {
            "acao": self.action.value,
            "painel_tv": {
                "mensagem_texto": self.panel.display_text,
                "mensagem_voz": self.panel.voice_text,
                "prioridade": self.panel.priority,
            },
            "dados_salvar": {
                "nome": self.persist.name,
                "servico": self.persist.service,
                "status": self.persist.status,
            },
        }

    @classmethod
    def from_message(cls, msg: dict[str, Any]) -> SystemResponse:
        panel = msg.get("painel_tv") or {}
        persist = msg.get("dados_salvar") or {}
        return cls(
            action=Action(msg["acao"]),
            panel=PanelMessage(
                display_text=str(panel.get("mensagem_texto", "")),
                voice_text=str(panel.get("mensagem_voz", "")),
                priority=bool(panel.get("prioridade", False)),
            ),
            persist=PersistRecord(
                name=str(persist.get("nome", "")),
                service=str(persist.get("servico", "")),
                status=str(persist.get("status", "")),
            ),
        )


@dataclass(frozen=True)
class AlertEvent:
    """A call/finish event as seen by the panel.

    `timestamp` is an integer millisecond token that strictly increases
    within one store process. Consumers compare it, never arrival order.
    """

    vehicle: Vehicle
    kind: AlertKind
    timestamp: int

    def to_message(self) -> dict[str, Any]:
        return {
            "vehicle": self.vehicle.to_message(),
            "kind": self.kind.value,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_message(cls, msg: dict[str, Any]) -> AlertEvent:
        return cls(
            vehicle=Vehicle.from_message(msg["vehicle"]),
            kind=AlertKind(msg["kind"]),
            timestamp=int(msg["timestamp"]),
        )
