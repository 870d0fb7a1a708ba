from inspection_queue.brain import build_announcement, build_response
from inspection_queue.models import Action, ServiceType, Vehicle, VehicleStatus


def vehicle(name="Maria", service=ServiceType.CIV, plate="ABC1D23"):
    return Vehicle(id="v1", driver_name=name, plate=plate, service_type=service)


def test_priority_call_starts_with_priority_word_and_name():
    msg = build_announcement(vehicle("Maria", ServiceType.CSV), Action.CALL)
    assert msg.priority is True
    assert msg.voice_text.startswith("Prioridade")
    assert "Maria" in msg.voice_text
    # The screen shows the generic phrasing, no priority prefix.
    assert msg.display_text == "Maria apresente seu veículo para o serviço de CSV."


def test_priority_call_with_blank_name_uses_fallback_noun():
    msg = build_announcement(vehicle("   ", ServiceType.CSV), Action.CALL)
    assert msg.voice_text.startswith("Prioridade, condutor,")


def test_standard_call_addresses_driver():
    msg = build_announcement(vehicle("João", ServiceType.CIPP), Action.CALL)
    assert msg.priority is False
    assert msg.voice_text == "João, apresente seu veículo à área de inspeção para realizar o CIPP."
    assert msg.display_text == "João apresente seu veículo para o serviço de CIPP."


def test_decontamination_call_and_finish_mention_decontamination_area():
    v = vehicle("Ana", ServiceType.DESCONTAMINACAO)
    call = build_announcement(v, Action.CALL)
    finish = build_announcement(v, Action.FINISH)
    assert "área de descontaminação" in call.voice_text
    assert "área de descontaminação" in finish.voice_text
    assert "área de descontaminação" in finish.display_text
    assert call.display_text == "Ana apresente seu veículo para o serviço de DESCONTAMINAÇÃO."
    assert call.priority is False


def test_finish_is_never_priority():
    msg = build_announcement(vehicle("Maria", ServiceType.CSV), Action.FINISH)
    assert msg.priority is False
    assert msg.display_text == "Maria retire seu veículo da área de inspeção."
    assert msg.voice_text == "Maria, retire seu veículo da área de inspeção."


def test_same_input_same_output():
    v = vehicle("Carlos", ServiceType.LIT)
    assert build_announcement(v, Action.CALL) == build_announcement(v, Action.CALL)


def test_response_carries_status_after_action():
    v = vehicle("Carlos", ServiceType.LAUDOS)
    called = build_response(v, Action.CALL)
    finished = build_response(v, Action.FINISH)
    assert called.persist.status == VehicleStatus.IN_INSPECTION.value
    assert finished.persist.status == VehicleStatus.DONE.value
    assert called.persist.service == "LAUDOS"

    wire = called.to_message()
    assert wire["acao"] == "chamar"
    assert wire["painel_tv"]["mensagem_voz"] == called.panel.voice_text
    assert wire["dados_salvar"]["nome"] == "Carlos"
