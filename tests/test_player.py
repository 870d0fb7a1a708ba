from conftest import PT_VOICE, FakeEngine

from inspection_queue.brain import build_response
from inspection_queue.config import VoiceSettings
from inspection_queue.models import Action, AlertEvent, AlertKind, ServiceType, Vehicle
from inspection_queue.player import AnnouncementPlayer, select_voice
from inspection_queue.speech import Voice


def test_plays_three_times_eight_seconds_apart(engine, timers):
    player = AnnouncementPlayer(engine=engine, timers=timers)
    job = player.announce("Ana, apresente seu veículo.")
    assert len(engine.spoken) == 1

    engine.finish_last()
    timers.advance(7_999)
    assert len(engine.spoken) == 1
    timers.advance(1)
    assert len(engine.spoken) == 2

    engine.finish_last()
    timers.advance(8_000)
    engine.finish_last()
    assert len(engine.spoken) == 3
    assert job.completed is True
    assert player.idle

    timers.advance(60_000)
    assert len(engine.spoken) == 3


def test_newer_announcement_supersedes_older_one(engine, timers):
    player = AnnouncementPlayer(engine=engine, timers=timers)
    x = player.announce("X", False)
    timers.advance(500)
    y = player.announce("Y", True)

    # A late completion for X must not start X's repeat chain.
    engine.spoken[0].on_done()
    assert x.cancelled is True
    assert x.plays == 0

    for _ in range(3):
        engine.finish_last()
        timers.advance(8_000)

    assert [u.text for u in engine.spoken] == ["X", "Y", "Y", "Y"]
    assert y.completed is True
    assert x.completed is False


def test_new_announcement_cancels_pending_repeat(engine, timers):
    player = AnnouncementPlayer(engine=engine, timers=timers)
    player.announce("X")
    engine.finish_last()
    assert len(timers.pending()) == 1

    player.announce("Y")
    assert timers.pending() == []
    timers.advance(8_000)
    assert [u.text for u in engine.spoken] == ["X", "Y"]


def test_empty_text_only_cancels(engine, timers):
    player = AnnouncementPlayer(engine=engine, timers=timers)
    job = player.announce("X")
    cancels = engine.cancels
    assert player.announce("") is None
    assert job.cancelled is True
    assert engine.cancels == cancels + 1
    assert player.idle
    assert len(engine.spoken) == 1


def test_priority_prosody(engine, timers):
    player = AnnouncementPlayer(engine=engine, timers=timers)
    player.announce("normal", False)
    player.announce("urgent", True)
    normal, urgent = engine.spoken
    assert (normal.rate, normal.pitch) == (1.0, 1.0)
    assert (urgent.rate, urgent.pitch) == (0.94, 1.2)
    assert normal.voice == urgent.voice == PT_VOICE


def test_first_playback_waits_for_voice_roster_once(timers):
    engine = FakeEngine([])
    player = AnnouncementPlayer(engine=engine, timers=timers)
    player.announce("X")
    assert engine.spoken == []

    deferred = list(engine.ready_callbacks)
    engine.load([PT_VOICE])
    assert [u.text for u in engine.spoken] == ["X"]

    # A second "roster ready" notification does not replay.
    for cb in deferred:
        cb()
    assert len(engine.spoken) == 1


def test_deferred_announcement_dropped_when_superseded(timers):
    engine = FakeEngine([])
    player = AnnouncementPlayer(engine=engine, timers=timers)
    player.announce("X")
    player.announce("")
    engine.load([PT_VOICE])
    assert engine.spoken == []


def test_stale_alerts_are_not_announced(engine, timers):
    player = AnnouncementPlayer(engine=engine, timers=timers)
    v = Vehicle(id="v", driver_name="Ana", plate="ABC1234", service_type=ServiceType.CIV)
    response = build_response(v, Action.CALL)

    assert player.on_alert(AlertEvent(v, AlertKind.CALLING, 7), response) is True
    assert player.on_alert(AlertEvent(v, AlertKind.CALLING, 7), response) is False
    assert player.on_alert(AlertEvent(v, AlertKind.CALLING, 3), response) is False
    assert [u.text for u in engine.spoken] == [response.panel.voice_text]


def test_select_voice_prefers_named_voices_then_locale_then_default():
    settings = VoiceSettings()
    english = Voice(id="en", name="Francisca English", languages=("en-us",))
    plain = Voice(id="pt1", name="Plain", languages=("pt-br",))
    luciana = Voice(id="pt2", name="Luciana", languages=("pt_BR",))
    francisca = Voice(id="pt3", name="Microsoft Francisca Online (Natural)", languages=("pt-br",))

    assert select_voice([english, plain, luciana, francisca], settings) == francisca
    assert select_voice([english, plain, luciana], settings) == luciana
    assert select_voice([english, plain], settings) == plain
    assert select_voice([english], settings) is None
    assert select_voice([], settings) is None
