from __future__ import annotations

# Message construction rules ("the Brain").
#
# Both the panel text and the spoken text are built here, from the same
# inputs, so the screen and the voice never tell different stories.
# Pure functions only: no clock, no I/O.

from .models import (
    DECONTAMINATION_SERVICE,
    PRIORITY_SERVICE,
    Action,
    PanelMessage,
    PersistRecord,
    SystemResponse,
    Vehicle,
    VehicleStatus,
)

PRIORITY_WORD = "Prioridade"
FALLBACK_NAME = "condutor"

STATUS_AFTER = {Action.CALL: VehicleStatus.IN_INSPECTION, Action.FINISH: VehicleStatus.DONE}


def build_announcement(vehicle: Vehicle, action: Action) -> PanelMessage:
    """Return the panel text, voice text and priority flag for an action."""
    name = vehicle.driver_name
    service = vehicle.service_type

    if action == Action.FINISH:
        area = "descontaminação" if service == DECONTAMINATION_SERVICE else "inspeção"
        return PanelMessage(
            display_text=f"{name} retire seu veículo da área de {area}.",
            voice_text=f"{name}, retire seu veículo da área de {area}.",
            priority=False,
        )

    priority = service == PRIORITY_SERVICE
    display_text = f"{name} apresente seu veículo para o serviço de {service.value}."

    if service == DECONTAMINATION_SERVICE:
        voice_text = f"{name}, apresente o seu veículo à área de descontaminação."
    elif priority:
        spoken_name = name.strip() or FALLBACK_NAME
        voice_text = (
            f"{PRIORITY_WORD}, {spoken_name}, apresente seu veículo à área de inspeção "
            f"para realizar o {service.value}."
        )
    else:
        voice_text = (
            f"{name}, apresente seu veículo à área de inspeção para realizar o {service.value}."
        )

    return PanelMessage(display_text=display_text, voice_text=voice_text, priority=priority)


def build_response(vehicle: Vehicle, action: Action) -> SystemResponse:
    """Wrap the announcement with the record an audit store would keep."""
    return SystemResponse(
        action=action,
        panel=build_announcement(vehicle, action),
        persist=PersistRecord(
            name=vehicle.driver_name,
            service=vehicle.service_type.value,
            status=STATUS_AFTER[action].value,
        ),
    )
