"""JSON messaging over paho-mqtt for the inspection queue processes.

Every process (store, reception, technician, display) holds one
`MqttClient`:
- `listen(topic, handler)` routes broadcasts by topic filter. Filters are
  remembered and subscribed again after each (re)connect, since the
  session is clean.
- `request(...)` sends a store request with `corr_id` / `reply_to` and
  blocks for the matching reply. An `error` envelope is raised as
  `RequestFailed`.

Handlers run on paho's network thread. GUI code must only queue work from
a handler and pick it up with `after()`.
"""

from __future__ import annotations

import json
import logging
import queue
import threading
import uuid
from typing import Any, Callable

import paho.mqtt.client as mqtt

from .errors import ErrorResponse, RequestFailed

logger = logging.getLogger(__name__)

Message = dict[str, Any]
MessageHandler = Callable[[str, Message], None]
ClientFactory = Callable[[str], Any]


def _paho_client(client_id: str) -> mqtt.Client:
    return mqtt.Client(mqtt.CallbackAPIVersion.VERSION2, client_id=client_id, clean_session=True)


def decode_payload(raw: bytes | str) -> Message | None:
    """JSON object carried by a publish, or None when it is not one."""
    try:
        text = raw.decode("utf-8") if isinstance(raw, bytes) else str(raw)
        data = json.loads(text)
    except (UnicodeDecodeError, json.JSONDecodeError):
        return None
    return data if isinstance(data, dict) else None


def encode_message(message: Message) -> bytes:
    # Portuguese panel text goes out as UTF-8, not \u escapes.
    return json.dumps(message, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


class MqttClient:
    def __init__(
        self,
        *,
        client_id: str,
        host: str,
        port: int,
        keepalive: int = 30,
        client_factory: ClientFactory = _paho_client,
    ) -> None:
        self.client_id = client_id
        self.host = host
        self.port = port
        self.keepalive = keepalive

        self._client = client_factory(client_id)
        self._client.on_connect = self._on_connect
        self._client.on_disconnect = self._on_disconnect
        self._client.on_message = self._on_message

        self._lock = threading.Lock()
        self._routes: list[tuple[str, MessageHandler | None]] = []
        self._replies: dict[str, "queue.Queue[Message]"] = {}
        self._connected = threading.Event()
        self._started = False

    @property
    def connected(self) -> bool:
        return self._connected.is_set()

    def start(self, *, wait: float = 5.0) -> None:
        """Connect, start the network loop and wait briefly for the broker's ack."""
        if self._started:
            return
        self._client.connect(self.host, self.port, keepalive=self.keepalive)
        self._client.loop_start()
        self._started = True
        if not self._connected.wait(wait):
            logger.warning("%s: no CONNACK from %s:%d after %.1fs", self.client_id, self.host, self.port, wait)

    def stop(self) -> None:
        if not self._started:
            return
        self._client.loop_stop()
        self._client.disconnect()
        self._connected.clear()
        self._started = False

    def listen(self, topic: str, handler: MessageHandler | None = None) -> None:
        """Subscribe to `topic` (wildcards allowed) and route its messages to `handler`."""
        with self._lock:
            known = any(t == topic for t, _ in self._routes)
            self._routes.append((topic, handler))
            connected = self._connected.is_set()
        if connected and not known:
            self._client.subscribe(topic, qos=0)

    def publish(self, topic: str, message: Message) -> None:
        self._client.publish(topic, payload=encode_message(message), qos=0)

    def request(
        self,
        *,
        request_topic: str,
        response_topic: str,
        message: Message,
        timeout: float = 5.0,
    ) -> Message:
        """Send `message` to the store and return its correlated reply.

        Raises RequestFailed for an `error` reply and TimeoutError when the
        store does not answer in time.
        """
        with self._lock:
            listening = any(t == response_topic for t, _ in self._routes)
        if not listening:
            self.listen(response_topic)

        corr_id = uuid.uuid4().hex
        slot: "queue.Queue[Message]" = queue.Queue(maxsize=1)
        with self._lock:
            self._replies[corr_id] = slot
        try:
            self.publish(request_topic, {**message, "corr_id": corr_id, "reply_to": response_topic})
            try:
                reply = slot.get(timeout=timeout)
            except queue.Empty as e:
                raise TimeoutError(f"{message.get('type')} got no reply within {timeout}s") from e
        finally:
            with self._lock:
                self._replies.pop(corr_id, None)

        if reply.get("type") == "error":
            raise RequestFailed(ErrorResponse.from_message(reply))
        return reply

    # -------------------- paho network thread --------------------

    def _on_connect(self, client: Any, userdata: Any, flags: Any, reason_code: Any, properties: Any = None) -> None:
        if getattr(reason_code, "is_failure", False):
            logger.error("%s: broker refused connection: %s", self.client_id, reason_code)
            return
        with self._lock:
            self._connected.set()
            topics = list(dict.fromkeys(t for t, _ in self._routes))
        for topic in topics:
            client.subscribe(topic, qos=0)
        logger.debug("%s connected to %s:%d, %d subscriptions", self.client_id, self.host, self.port, len(topics))

    def _on_disconnect(self, client: Any, userdata: Any, flags: Any, reason_code: Any, properties: Any = None) -> None:
        self._connected.clear()
        if self._started:
            logger.warning("%s: disconnected from broker (%s)", self.client_id, reason_code)

    def _on_message(self, client: Any, userdata: Any, msg: Any) -> None:
        data = decode_payload(msg.payload)
        if data is None:
            logger.warning("dropping non-JSON-object payload on %s", msg.topic)
            return

        corr_id = data.get("corr_id")
        if isinstance(corr_id, str):
            with self._lock:
                slot = self._replies.get(corr_id)
            if slot is not None:
                try:
                    slot.put_nowait(data)
                except queue.Full:
                    logger.debug("duplicate reply for %s ignored", corr_id)
                return

        with self._lock:
            handlers = [h for t, h in self._routes if h is not None and mqtt.topic_matches_sub(t, msg.topic)]
        for handler in handlers:
            try:
                handler(msg.topic, data)
            except Exception:
                logger.exception("handler failed for message on %s", msg.topic)
