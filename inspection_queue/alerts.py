from __future__ import annotations

# Hand-off between the store and the panel consumers.
#
# The channel keeps the latest (event, response) pair and fans it out to
# its subscribers in subscription order. It does not filter: each
# consumer owns a `SequenceGuard` and decides for itself whether an event
# is new. Ordering is by event timestamp, never by arrival order.

import logging
from typing import Any, Callable

from .models import AlertEvent, SystemResponse

logger = logging.getLogger(__name__)

AlertListener = Callable[[AlertEvent, SystemResponse], None]


class SequenceGuard:
    """Accepts only timestamps strictly greater than the last accepted one."""

    def __init__(self) -> None:
        self.last_seen = 0

    def accept(self, timestamp: int) -> bool:
        if timestamp <= self.last_seen:
            return False
        self.last_seen = timestamp
        return True


class AlertChannel:
    def __init__(self) -> None:
        self._listeners: list[AlertListener] = []
        self.latest: tuple[AlertEvent, SystemResponse] | None = None

    def subscribe(self, listener: AlertListener) -> None:
        self._listeners.append(listener)

    def publish(self, event: AlertEvent, response: SystemResponse) -> None:
        self.latest = (event, response)
        for listener in list(self._listeners):
            try:
                listener(event, response)
            except Exception:
                # One broken consumer (e.g. audio) must not starve the others.
                logger.exception("alert listener %r failed", listener)

    def publish_message(self, msg: dict[str, Any]) -> bool:
        """Decode an `alert` broadcast and publish it.

        Returns False for payloads that do not decode.
        """
        try:
            event = AlertEvent.from_message(msg["event"])
            response = SystemResponse.from_message(msg["response"])
        except (KeyError, TypeError, ValueError, AttributeError):
            logger.warning("dropping malformed alert: %r", msg)
            return False
        self.publish(event, response)
        return True
