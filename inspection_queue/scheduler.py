"""Display scheduler for the public panel.

The panel cycles STATS -> WAITING -> STATS ... on fixed dwell timers.
A `calling` alert newer than anything seen before interrupts whatever is
on screen and shows ALERT for a full ALERT dwell, after which the cycle
restarts at STATS. The remaining dwell of the interrupted view is
dropped, not resumed. `finishing` alerts are recorded but do not change
the view.

The scheduler owns exactly one pending dwell timer. Every transition
cancels it before scheduling the next one, so two timers are never live
at the same time.

Rendering is content only (`AlertView`, `StatsView`, `WaitingView`);
the Tk display decides layout and colours.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Protocol, Union

from .alerts import SequenceGuard
from .config import PanelLayout, PanelTimings
from .models import PRIORITY_SERVICE, AlertEvent, AlertKind, ServiceType, SystemResponse, Vehicle, VehicleStatus
from .store import count_by_service, vehicles_with_status
from .timers import TimerHandle, Timers

logger = logging.getLogger(__name__)


class DisplayState(str, Enum):
    ALERT = "ALERT"
    STATS = "STATS"
    WAITING = "WAITING"


NEXT_STATE = {
    DisplayState.ALERT: DisplayState.STATS,
    DisplayState.STATS: DisplayState.WAITING,
    DisplayState.WAITING: DisplayState.STATS,
}


@dataclass(frozen=True)
class AlertView:
    plate: str
    service: str
    priority: bool
    text: str


@dataclass(frozen=True)
class StatsRow:
    label: str
    count: int


@dataclass(frozen=True)
class StatsView:
    # Blank rows are None.
    rows: tuple[StatsRow | None, ...]


@dataclass(frozen=True)
class WaitingView:
    names: tuple[str | None, ...]
    overflow: int


PanelView = Union[AlertView, StatsView, WaitingView]


class Roster(Protocol):
    def vehicles(self) -> list[Vehicle]: ...


class RosterMirror:
    """Latest roster snapshot received from the store.

    Used by a display that runs in a different process from the store.
    """

    def __init__(self) -> None:
        self._vehicles: list[Vehicle] = []

    def vehicles(self) -> list[Vehicle]:
        return list(self._vehicles)

    def update(self, vehicles: list[Vehicle]) -> None:
        self._vehicles = list(vehicles)

    def update_message(self, msg: dict) -> None:
        raw = msg.get("vehicles")
        if not isinstance(raw, list):
            return
        try:
            self.update([Vehicle.from_message(v) for v in raw])
        except (KeyError, TypeError, ValueError, AttributeError):
            logger.warning("dropping malformed roster snapshot")


class DisplayScheduler:
    def __init__(
        self,
        *,
        timers: Timers,
        roster: Roster,
        timings: PanelTimings = PanelTimings(),
        layout: PanelLayout = PanelLayout(),
        on_change: Callable[[DisplayState], None] | None = None,
    ) -> None:
        self._timers = timers
        self._roster = roster
        self._timings = timings
        self._layout = layout
        self._on_change = on_change

        self._guard = SequenceGuard()
        self._timer: TimerHandle | None = None

        self.state = DisplayState.STATS
        self.current_event: AlertEvent | None = None
        self.current_response: SystemResponse | None = None

    @property
    def last_seen(self) -> int:
        return self._guard.last_seen

    def dwell_ms(self, state: DisplayState) -> int:
        if state == DisplayState.ALERT:
            return self._timings.alert_ms
        if state == DisplayState.STATS:
            return self._timings.stats_ms
        return self._timings.waiting_ms

    # -------------------- inputs --------------------

    def start(self) -> None:
        """Enter the initial STATS view and arm its timer."""
        self._enter(DisplayState.STATS)

    def stop(self) -> None:
        self._cancel_timer()

    def on_alert(self, event: AlertEvent, response: SystemResponse | None = None) -> bool:
        """Handle a call/finish alert; return True if the view changed."""
        if not self._guard.accept(event.timestamp):
            logger.debug("stale alert ts=%d dropped (last=%d)", event.timestamp, self._guard.last_seen)
            return False
        if event.kind != AlertKind.CALLING:
            return False
        self.current_event = event
        self.current_response = response
        self._enter(DisplayState.ALERT)
        return True

    def _on_timer(self, expired: DisplayState) -> None:
        self._timer = None
        self._enter(NEXT_STATE[expired])

    # -------------------- transitions --------------------

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _enter(self, state: DisplayState) -> None:
        if state == DisplayState.ALERT and self.current_event is None:
            logger.warning("ALERT without a vehicle, showing STATS instead")
            state = DisplayState.STATS

        self._cancel_timer()
        previous = self.state
        self.state = state
        self._timer = self._timers.call_later(self.dwell_ms(state), lambda: self._on_timer(state))
        logger.debug("display %s -> %s", previous.value, state.value)

        if self._on_change is not None:
            self._on_change(state)

    # -------------------- rendering --------------------

    def render(self) -> PanelView:
        if self.state == DisplayState.ALERT and self.current_event is not None:
            return self._render_alert(self.current_event, self.current_response)
        if self.state == DisplayState.WAITING:
            return self._render_waiting()
        return self._render_stats()

    def _render_alert(self, event: AlertEvent, response: SystemResponse | None) -> AlertView:
        vehicle = event.vehicle
        if response is not None:
            priority = response.panel.priority
            text = response.panel.display_text
        else:
            priority = vehicle.service_type == PRIORITY_SERVICE
            text = ""
        return AlertView(plate=vehicle.plate, service=vehicle.service_type.value, priority=priority, text=text)

    def _render_stats(self) -> StatsView:
        counts = count_by_service(self._roster.vehicles())
        rows: list[StatsRow | None] = [
            StatsRow(label=label, count=counts.get(ServiceType(value), 0))
            for value, label in self._layout.stats_order
        ]
        while len(rows) < self._layout.rows:
            rows.append(None)
        return StatsView(rows=tuple(rows))

    def _render_waiting(self) -> WaitingView:
        waiting = vehicles_with_status(self._roster.vehicles(), VehicleStatus.WAITING)
        size = self._layout.rows
        names: list[str | None] = [v.driver_name for v in waiting[:size]]
        names += [None] * (size - len(names))
        return WaitingView(names=tuple(names), overflow=max(0, len(waiting) - size))
