from inspection_queue.models import ServiceType
from inspection_queue.panel import PanelController, describe
from inspection_queue.scheduler import AlertView, DisplayState, StatsView, WaitingView
from inspection_queue.speech import NullEngine


def alert_message(store, vid, action="call"):
    event, response = store.call(vid) if action == "call" else store.finish(vid)
    return {"type": "alert", "event": event.to_message(), "response": response.to_message()}


def roster_message(store):
    return {"type": "roster", "vehicles": [v.to_message() for v in store.vehicles()]}


def make_controller(timers, engine, renders):
    controller = PanelController(
        timers=timers,
        speech=lambda dispatch: engine,
        on_render=lambda state, view: renders.append((state, view)),
    )
    controller.start()
    return controller


def test_call_updates_screen_and_voice_from_one_message(timers, engine, store):
    renders = []
    controller = make_controller(timers, engine, renders)
    vid = store.register("Maria", "PRI0001", ServiceType.CSV)

    msg = alert_message(store, vid)
    controller.post("panel/alerts", msg)
    assert controller.scheduler.state == DisplayState.STATS  # nothing happens until drained
    assert controller.drain() == 1

    state, view = renders[-1]
    assert state == DisplayState.ALERT
    assert isinstance(view, AlertView) and view.priority and view.plate == "PRI0001"
    assert engine.spoken[-1].text == msg["response"]["painel_tv"]["mensagem_voz"]
    assert engine.spoken[-1].rate == 0.94

    # Replaying the same broadcast (e.g. a broker redelivery) is ignored.
    controller.post("panel/alerts", msg)
    controller.drain()
    assert len(engine.spoken) == 1


def test_out_of_order_delivery_is_dropped_by_timestamp(timers, engine, store):
    controller = make_controller(timers, engine, [])
    a = store.register("Ana", "AAA0001", ServiceType.CIV)
    b = store.register("Bia", "BBB0002", ServiceType.CIV)
    first = alert_message(store, a)
    second = alert_message(store, b)

    controller.post("panel/alerts", second)
    controller.post("panel/alerts", first)
    controller.drain()

    assert controller.scheduler.render().plate == "BBB0002"
    assert [u.text for u in engine.spoken] == [second["response"]["painel_tv"]["mensagem_voz"]]


def test_finish_is_spoken_but_keeps_the_cycle(timers, engine, store):
    controller = make_controller(timers, engine, [])
    vid = store.register("Ana", "AAA0001", ServiceType.DESCONTAMINACAO)
    controller.post("panel/alerts", alert_message(store, vid, "finish"))
    controller.drain()

    assert controller.scheduler.state == DisplayState.STATS
    assert "área de descontaminação" in engine.spoken[-1].text


def test_roster_updates_rerender_idle_views(timers, engine, store):
    renders = []
    controller = make_controller(timers, engine, renders)
    store.register("Ana", "AAA0001", ServiceType.CIV)
    timers.advance(60_000)

    controller.post("queue/roster", roster_message(store))
    controller.drain()
    state, view = renders[-1]
    assert state == DisplayState.WAITING
    assert isinstance(view, WaitingView)
    assert view.names[0] == "Ana"
    assert describe(view) == "PRÓXIMAS CHAMADAS | Ana"


def test_silent_engine_keeps_the_display_running(timers, store):
    renders = []
    controller = PanelController(
        timers=timers,
        speech=lambda dispatch: NullEngine(dispatch=dispatch),
        on_render=lambda state, view: renders.append((state, view)),
    )
    controller.start()
    vid = store.register("Ana", "AAA0001", ServiceType.CIV)
    controller.post("panel/alerts", alert_message(store, vid))
    controller.drain()
    assert controller.scheduler.state == DisplayState.ALERT

    # Silent "playback" completions come back through the inbox.
    controller.drain()
    timers.advance(50_000)
    assert controller.scheduler.state == DisplayState.STATS
    assert isinstance(renders[-1][1], StatsView)


def test_malformed_alert_is_ignored(timers, engine):
    controller = make_controller(timers, engine, [])
    controller.post("panel/alerts", {"type": "alert", "event": {"kind": "calling"}})
    controller.drain()
    assert controller.scheduler.state == DisplayState.STATS
    assert engine.spoken == []


def test_malformed_broadcasts_do_not_block_later_calls(timers, engine, store):
    controller = make_controller(timers, engine, [])
    a = store.register("Ana", "AAA0001", ServiceType.CIV)
    b = store.register("Bia", "BBB0002", ServiceType.CIV)
    broken = alert_message(store, a)
    broken["response"] = "garbage"

    controller.post("panel/alerts", broken)
    controller.post("queue/roster", {"type": "roster", "vehicles": ["not-a-vehicle"]})
    controller.post("panel/alerts", alert_message(store, b))
    assert controller.drain() == 3

    assert controller.scheduler.state == DisplayState.ALERT
    assert controller.scheduler.render().plate == "BBB0002"
    assert len(engine.spoken) == 1


def test_render_failure_does_not_stop_the_cycle(timers, engine, store):
    calls = []

    def flaky_render(state, view):
        calls.append(state)
        if len(calls) == 1:
            raise RuntimeError("surface gone")

    controller = PanelController(timers=timers, speech=lambda dispatch: engine, on_render=flaky_render)
    controller.start()
    vid = store.register("Ana", "AAA0001", ServiceType.CIV)

    controller.post("queue/roster", roster_message(store))
    controller.post("panel/alerts", alert_message(store, vid))
    assert controller.drain() == 2

    assert calls == [DisplayState.STATS, DisplayState.STATS, DisplayState.ALERT]
    assert controller.scheduler.state == DisplayState.ALERT
