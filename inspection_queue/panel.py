from __future__ import annotations

# Panel controller: the single consumer behind the public display.
#
# Architecture:
# - MQTT callbacks (paho's thread) and speech-engine callbacks (TTS thread)
#   never touch the scheduler or player. They only `post` into an inbox.
# - One loop (Tk's `after` in the GUI, a sleep loop when headless) calls
#   `drain()`, which handles every queued item in order.
# - Timers fire on that same loop, so scheduler, player and timers all
#   run on one thread.
#
# Inputs: alert broadcasts, roster snapshots, engine callbacks and timer
# firings. Outputs: the current display view and the current
# announcement job.

import logging
import queue
import time
from typing import Any, Callable

from .alerts import AlertChannel
from .config import PanelLayout, PanelTimings, VoiceSettings
from .player import AnnouncementPlayer
from .scheduler import AlertView, DisplayScheduler, DisplayState, PanelView, RosterMirror, StatsView
from .speech import Dispatch, SpeechEngine
from .timers import TimerQueue, Timers

logger = logging.getLogger(__name__)

RenderListener = Callable[[DisplayState, PanelView], None]


class PanelController:
    def __init__(
        self,
        *,
        timers: Timers,
        speech: Callable[[Dispatch], SpeechEngine],
        timings: PanelTimings = PanelTimings(),
        voice: VoiceSettings = VoiceSettings(),
        layout: PanelLayout = PanelLayout(),
        on_render: RenderListener | None = None,
    ) -> None:
        self._inbox: "queue.Queue[tuple[str, Any]]" = queue.Queue()
        self._on_render = on_render

        self.roster = RosterMirror()
        self.channel = AlertChannel()
        self.engine = speech(self.post_callback)
        self.scheduler = DisplayScheduler(
            timers=timers,
            roster=self.roster,
            timings=timings,
            layout=layout,
            on_change=self._state_changed,
        )
        self.player = AnnouncementPlayer(engine=self.engine, timers=timers, settings=voice)

        # Screen first: audio problems must not hold up the view.
        self.channel.subscribe(self.scheduler.on_alert)
        self.channel.subscribe(self.player.on_alert)

    def start(self) -> None:
        self.scheduler.start()

    def stop(self) -> None:
        self.scheduler.stop()
        self.player.cancel()

    # -------------------- any thread --------------------

    def post(self, topic: str, msg: dict[str, Any]) -> None:
        """MQTT handler: queue a broadcast for the panel loop."""
        self._inbox.put(("message", msg))

    def post_callback(self, fn: Callable[[], None]) -> None:
        """Speech-engine dispatch: run `fn` on the panel loop."""
        self._inbox.put(("callback", fn))

    # -------------------- panel loop only --------------------

    def drain(self) -> int:
        handled = 0
        while True:
            try:
                kind, item = self._inbox.get_nowait()
            except queue.Empty:
                return handled
            handled += 1
            if kind == "callback":
                try:
                    item()
                except Exception:
                    logger.exception("engine callback failed")
            else:
                try:
                    self.handle_message(item)
                except Exception:
                    logger.exception("dropping broadcast %r", item.get("type") if isinstance(item, dict) else item)

    def handle_message(self, msg: dict[str, Any]) -> None:
        mtype = msg.get("type")
        if mtype == "alert":
            self.channel.publish_message(msg)
            return
        if mtype == "roster":
            self.roster.update_message(msg)
            # Counts and waiting names may have changed under the same view.
            if self.scheduler.state != DisplayState.ALERT:
                self._render()
            return

    def _state_changed(self, state: DisplayState) -> None:
        self._render()

    def _render(self) -> None:
        if self._on_render is None:
            return
        # Also reached from timer callbacks, which have no caller to report to.
        try:
            self._on_render(self.scheduler.state, self.scheduler.render())
        except Exception:
            logger.exception("rendering %s failed", self.scheduler.state.value)


def run_headless(
    controller: PanelController,
    timers: TimerQueue,
    *,
    tick_seconds: float = 0.1,
    clock: Callable[[], float] = time.monotonic,
    should_stop: Callable[[], bool] = lambda: False,
) -> None:
    """Drive the panel without a screen: drain the inbox, advance timers."""
    origin = clock()
    controller.start()
    try:
        while not should_stop():
            controller.drain()
            timers.advance_to(int((clock() - origin) * 1000))
            time.sleep(tick_seconds)
    finally:
        controller.stop()


def describe(view: PanelView) -> str:
    """One-line text rendering of a view, for logs and the headless display."""
    if isinstance(view, AlertView):
        tag = " PRIORIDADE" if view.priority else ""
        return f"VEÍCULO {view.plate} | {view.service}{tag}"
    if isinstance(view, StatsView):
        rows = ", ".join(f"{r.label}={r.count}" for r in view.rows if r is not None)
        return f"ÚLTIMAS CHAMADAS | {rows}"
    names = ", ".join(n for n in view.names if n)
    more = f" (+ {view.overflow} aguardando)" if view.overflow else ""
    return f"PRÓXIMAS CHAMADAS | {names or '-'}{more}"
