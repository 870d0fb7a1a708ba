from dataclasses import dataclass
from typing import Any, Callable

import pytest

from inspection_queue.speech import Voice
from inspection_queue.store import QueueStore
from inspection_queue.timers import TimerQueue


@dataclass
class Utterance:
    text: str
    voice: Voice | None
    rate: float
    pitch: float
    on_done: Callable[[], None]


class FakeEngine:
    """Speech engine double: records utterances, completion is manual."""

    def __init__(self, voices: list[Voice] | None = None) -> None:
        self._voices = list(voices or [])
        self.spoken: list[Utterance] = []
        self.cancels = 0
        self.ready_callbacks: list[Callable[[], None]] = []

    def voices(self) -> list[Voice]:
        return list(self._voices)

    def on_voices_ready(self, callback: Callable[[], None]) -> None:
        self.ready_callbacks.append(callback)

    def load(self, voices: list[Voice]) -> None:
        self._voices = list(voices)
        callbacks, self.ready_callbacks = self.ready_callbacks, []
        for cb in callbacks:
            cb()

    def cancel(self) -> None:
        self.cancels += 1

    def speak(self, text: str, *, voice: Voice | None, rate: float, pitch: float, on_done: Callable[[], None]) -> None:
        self.spoken.append(Utterance(text, voice, rate, pitch, on_done))

    def finish_last(self) -> None:
        self.spoken[-1].on_done()


class FakeMqtt:
    def __init__(self, client_id: str = "fake") -> None:
        self.client_id = client_id
        self.published: list[tuple[str, dict[str, Any]]] = []
        self.routes: list[tuple[str, Callable[[str, dict[str, Any]], None] | None]] = []

    def listen(self, topic: str, handler=None) -> None:
        self.routes.append((topic, handler))

    def publish(self, topic: str, message: dict[str, Any]) -> None:
        self.published.append((topic, message))

    def on(self, topic: str) -> list[dict[str, Any]]:
        return [m for t, m in self.published if t == topic]


PT_VOICE = Voice(id="pt-br-1", name="Generic pt", languages=("pt-br",))


@pytest.fixture
def timers():
    return TimerQueue()


@pytest.fixture
def engine():
    return FakeEngine([PT_VOICE])


@pytest.fixture
def fake_mqtt():
    return FakeMqtt()


@pytest.fixture
def store():
    return QueueStore()
