from __future__ import annotations

# Public display workstation (Tkinter, full screen).
#
# Architecture (same as every Tk workstation here):
# - MQTT callbacks run on a background thread managed by paho-mqtt.
# - Tkinter must be updated from the main UI thread.
# - We therefore push incoming broadcasts into the PanelController inbox
#   and drain it via `root.after(...)`. Dwell and repeat timers are Tk
#   `after` timers too, so everything runs on the UI thread.
#
# The only operator control is the "Sair" (exit) button.

import argparse
import logging
import time
import tkinter as tk
from typing import Any, cast

from .config import DEFAULT_MQTT_HOST, DEFAULT_MQTT_PORT, DEFAULT_NAMESPACE, PanelTimings
from .mqtt_client import MqttClient
from .mqtt_topics import panel_alerts, queue_roster
from .panel import PanelController, describe, run_headless
from .scheduler import AlertView, DisplayState, PanelView, StatsView, WaitingView
from .speech import create_engine
from .timers import TimerQueue, TkTimers

logger = logging.getLogger(__name__)

BLACK = "#000000"
NAVY = "#002060"
NAVY_ALT = "#002870"
BLUE = "#0057B8"
RED = "#D32F2F"
WHITE = "#FFFFFF"
FONT = "Helvetica"


class DisplayApp:
    def __init__(
        self,
        *,
        mqtt_host: str,
        mqtt_port: int,
        namespace: str,
        timings: PanelTimings = PanelTimings(),
        silent: bool = False,
        fullscreen: bool = True,
        refresh_ms: int = 100,
    ) -> None:
        self.mqtt_host = mqtt_host
        self.mqtt_port = mqtt_port
        self.namespace = namespace
        self.refresh_ms = refresh_ms

        self.root = tk.Tk()
        self.root.title("Painel TV")
        self.root.configure(bg=BLACK)
        if fullscreen:
            self.root.attributes("-fullscreen", True)
        else:
            self.root.geometry("1280x720")

        self.content = tk.Frame(self.root, bg=BLACK)
        self.content.pack(fill=cast(Any, tk.BOTH), expand=True)

        exit_button = tk.Button(
            self.root,
            text="Sair",
            command=self.close,
            bg=NAVY_ALT,
            fg=WHITE,
            relief=cast(Any, tk.FLAT),
        )
        exit_button.place(relx=1.0, x=-16, y=16, anchor=cast(Any, tk.NE))

        self.controller = PanelController(
            timers=TkTimers(self.root),
            speech=lambda dispatch: create_engine(dispatch=dispatch, silent=silent),
            timings=timings,
            on_render=self._render,
        )

        self._mqtt = MqttClient(client_id=f"display-{int(time.time())}", host=mqtt_host, port=mqtt_port)
        self.root.protocol("WM_DELETE_WINDOW", self.close)

    def start(self) -> None:
        # If the broker isn't reachable, keep cycling the (empty) panel.
        try:
            self._mqtt.listen(panel_alerts(self.namespace), self.controller.post)
            self._mqtt.listen(queue_roster(self.namespace), self.controller.post)
            self._mqtt.start()
        except Exception:
            logger.exception("MQTT connection to %s:%d failed", self.mqtt_host, self.mqtt_port)

        self.controller.start()
        self.root.after(cast(Any, self.refresh_ms), self._drain_inbox)
        self.root.mainloop()

    def close(self) -> None:
        try:
            self.controller.stop()
            self._mqtt.stop()
        finally:
            self.root.destroy()

    # -------------------- UI thread --------------------

    def _drain_inbox(self) -> None:
        try:
            self.controller.drain()
        finally:
            self.root.after(cast(Any, self.refresh_ms), self._drain_inbox)

    def _render(self, state: DisplayState, view: PanelView) -> None:
        for child in self.content.winfo_children():
            child.destroy()

        if isinstance(view, AlertView):
            self._render_alert(view)
        elif isinstance(view, WaitingView):
            self._render_waiting(view)
        elif isinstance(view, StatsView):
            self._render_stats(view)

    def _band(self, bg: str, weight: int) -> tk.Frame:
        frame = tk.Frame(self.content, bg=bg)
        frame.pack(fill=cast(Any, tk.BOTH), expand=True, ipady=weight)
        return frame

    def _render_alert(self, view: AlertView) -> None:
        tk.Label(self._band(BLACK, 20), text="VEÍCULO", bg=BLACK, fg=WHITE, font=(FONT, 48, "bold")).pack(
            expand=True
        )
        plate_size = 110 if view.priority else 150
        tk.Label(self._band(NAVY, 80), text=view.plate, bg=NAVY, fg=WHITE, font=(FONT, plate_size, "bold")).pack(
            expand=True
        )
        tk.Label(self._band(BLUE, 50), text=view.service, bg=BLUE, fg=WHITE, font=(FONT, 80, "bold")).pack(
            expand=True
        )
        if view.priority:
            tk.Label(
                self._band(NAVY, 50),
                text="PRIORIDADE",
                bg=RED,
                fg=WHITE,
                font=(FONT, 64, "bold"),
                padx=60,
                pady=10,
            ).pack(expand=True)

    def _header(self, title: str) -> None:
        tk.Label(self.content, text=title, bg=BLACK, fg=WHITE, font=(FONT, 40, "bold"), pady=20).pack(
            fill=cast(Any, tk.X)
        )

    def _render_stats(self, view: StatsView) -> None:
        self._header("ÚLTIMAS CHAMADAS")
        for idx, row in enumerate(view.rows):
            bg = NAVY if idx % 2 == 0 else NAVY_ALT
            band = self._band(bg, 10)
            if row is None:
                continue
            tk.Label(band, text=row.label, bg=bg, fg=WHITE, font=(FONT, 40, "bold")).pack(
                side=cast(Any, tk.LEFT), padx=60
            )
            tk.Label(band, text=str(row.count), bg=bg, fg=WHITE, font=(FONT, 40, "bold")).pack(
                side=cast(Any, tk.RIGHT), padx=60
            )

    def _render_waiting(self, view: WaitingView) -> None:
        self._header("PRÓXIMAS CHAMADAS")
        for idx, name in enumerate(view.names):
            bg = NAVY if idx % 2 == 0 else NAVY_ALT
            band = self._band(bg, 10)
            tk.Label(
                band,
                text=name.upper() if name else "-",
                bg=bg,
                fg=WHITE if name else NAVY_ALT,
                font=(FONT, 44, "bold"),
            ).pack(expand=True)
        if view.overflow:
            tk.Label(
                self.content,
                text=f"+ {view.overflow} aguardando",
                bg="#DC2626",
                fg=WHITE,
                font=(FONT, 22, "bold"),
                padx=12,
                pady=6,
            ).place(relx=1.0, rely=1.0, x=-16, y=-16, anchor=cast(Any, tk.SE))


def run_console(
    *,
    mqtt_host: str,
    mqtt_port: int,
    namespace: str,
    timings: PanelTimings,
    silent: bool,
) -> None:
    """Headless display: same scheduler and voice, views printed as text."""
    timers = TimerQueue()

    def on_render(state: DisplayState, view: PanelView) -> None:
        print(f"[display] {state.value}: {describe(view)}")

    controller = PanelController(
        timers=timers,
        speech=lambda dispatch: create_engine(dispatch=dispatch, silent=silent),
        timings=timings,
        on_render=on_render,
    )
    mqtt = MqttClient(client_id=f"display-{int(time.time())}", host=mqtt_host, port=mqtt_port)
    mqtt.listen(panel_alerts(namespace), controller.post)
    mqtt.listen(queue_roster(namespace), controller.post)
    mqtt.start()
    try:
        run_headless(controller, timers)
    except KeyboardInterrupt:
        pass
    finally:
        mqtt.stop()


def main() -> None:
    parser = argparse.ArgumentParser(description="Public display (Tkinter + MQTT)")
    parser.add_argument("--mqtt-host", default=DEFAULT_MQTT_HOST)
    parser.add_argument("--mqtt-port", type=int, default=DEFAULT_MQTT_PORT)
    parser.add_argument("--namespace", default=DEFAULT_NAMESPACE)
    parser.add_argument("--alert-seconds", type=float, default=PanelTimings.alert_ms / 1000)
    parser.add_argument("--stats-seconds", type=float, default=PanelTimings.stats_ms / 1000)
    parser.add_argument("--waiting-seconds", type=float, default=PanelTimings.waiting_ms / 1000)
    parser.add_argument("--silent", action="store_true", help="no voice announcements")
    parser.add_argument("--windowed", action="store_true", help="do not go full screen")
    parser.add_argument("--headless", action="store_true", help="print views instead of opening a window")
    parser.add_argument("--log-level", default="INFO")
    args = parser.parse_args()

    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s [%(name)s] %(message)s")

    timings = PanelTimings(
        alert_ms=int(args.alert_seconds * 1000),
        stats_ms=int(args.stats_seconds * 1000),
        waiting_ms=int(args.waiting_seconds * 1000),
    )

    if args.headless:
        run_console(
            mqtt_host=args.mqtt_host,
            mqtt_port=args.mqtt_port,
            namespace=args.namespace,
            timings=timings,
            silent=args.silent,
        )
        return

    app = DisplayApp(
        mqtt_host=args.mqtt_host,
        mqtt_port=args.mqtt_port,
        namespace=args.namespace,
        timings=timings,
        silent=args.silent,
        fullscreen=not args.windowed,
    )
    app.start()


if __name__ == "__main__":
    main()
