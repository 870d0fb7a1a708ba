"""MQTT topic helpers.

We keep topic construction in one place so all workstations agree on naming.

Topic layout (v0) under a configurable namespace (default: `inspection/v0`):

Request/response:
- `<ns>/queue/requests`
    Reception and technician send register/call/finish/list requests.
- `<ns>/queue/responses/<client_id>`
    The store replies here (one topic per requesting workstation).

Broadcast:
- `<ns>/panel/alerts`
    One message per call/finish: the event and the panel text/voice.
- `<ns>/queue/roster`
    Snapshot of every vehicle, after each change and periodically.

You can run several independent inspection sites on a shared broker by
changing the `namespace` parameter (e.g. `--namespace site/north`).
"""

from __future__ import annotations

from .config import DEFAULT_NAMESPACE


def queue_requests(namespace: str = DEFAULT_NAMESPACE) -> str:
    return f"{namespace}/queue/requests"


def queue_responses(client_id: str, namespace: str = DEFAULT_NAMESPACE) -> str:
    return f"{namespace}/queue/responses/{client_id}"


def panel_alerts(namespace: str = DEFAULT_NAMESPACE) -> str:
    """Call/finish alerts consumed by the public display."""
    return f"{namespace}/panel/alerts"


def queue_roster(namespace: str = DEFAULT_NAMESPACE) -> str:
    """Full vehicle roster snapshots.

    The display renders its stats and waiting views from the latest one.
    """
    return f"{namespace}/queue/roster"
