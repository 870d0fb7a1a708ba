from __future__ import annotations

# Text-to-speech engines.
#
# The announcement player only talks to the `SpeechEngine` protocol:
# - voices(): current roster (may be empty until the engine has loaded it)
# - on_voices_ready(cb): call cb once the roster has been loaded
# - cancel(): stop the current utterance and drop anything queued
# - speak(...): play one utterance, then call on_done
#
# Callbacks (on_done, ready) are handed to `dispatch`, so a GUI can
# marshal them onto its own thread. With the default dispatch they run on
# whatever thread the engine uses.
#
# `Pyttsx3Engine` drives pyttsx3 from a dedicated worker thread (pyttsx3's
# runAndWait blocks). If the driver cannot start, it still loads an empty
# roster and completes every utterance without sound. `NullEngine` is the
# --silent choice: it "plays" instantly.

import logging
import queue
import threading
from dataclasses import dataclass
from typing import Any, Callable, Protocol

logger = logging.getLogger(__name__)

Dispatch = Callable[[Callable[[], None]], None]


def _call_now(fn: Callable[[], None]) -> None:
    fn()


@dataclass(frozen=True)
class Voice:
    id: str
    name: str
    languages: tuple[str, ...] = ()


class SpeechEngine(Protocol):
    def voices(self) -> list[Voice]: ...

    def on_voices_ready(self, callback: Callable[[], None]) -> None: ...

    def cancel(self) -> None: ...

    def speak(
        self,
        text: str,
        *,
        voice: Voice | None,
        rate: float,
        pitch: float,
        on_done: Callable[[], None],
    ) -> None: ...


def normalize_language(raw: Any) -> str:
    """Turn a driver language tag into `xx-yy` form.

    espeak reports bytes such as b'\\x05pt-br'; other drivers use 'pt_BR'.
    """
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="ignore")
    text = "".join(ch for ch in str(raw) if ch.isprintable()).strip()
    return text.replace("_", "-").lower()


class NullEngine:
    """Silent engine for displays without audio."""

    def __init__(self, *, dispatch: Dispatch = _call_now) -> None:
        self._dispatch = dispatch

    def voices(self) -> list[Voice]:
        return []

    def on_voices_ready(self, callback: Callable[[], None]) -> None:
        self._dispatch(callback)

    def cancel(self) -> None:
        pass

    def speak(self, text: str, *, voice: Voice | None, rate: float, pitch: float, on_done: Callable[[], None]) -> None:
        logger.info("(silent) %s", text)
        self._dispatch(on_done)


class Pyttsx3Engine:
    """pyttsx3 backend running on its own worker thread."""

    def __init__(self, *, dispatch: Dispatch = _call_now, driver_name: str | None = None) -> None:
        self._dispatch = dispatch
        self._driver_name = driver_name

        self._commands: "queue.Queue[tuple[Any, ...] | None]" = queue.Queue()
        self._lock = threading.Lock()
        self._generation = 0
        self._voices: list[Voice] = []
        self._loaded = False
        self._ready_callbacks: list[Callable[[], None]] = []
        self._engine: Any = None
        self._base_rate = 200

        self._thread = threading.Thread(target=self._run, name="tts", daemon=True)
        self._thread.start()

    # -------------------- SpeechEngine --------------------

    def voices(self) -> list[Voice]:
        with self._lock:
            return list(self._voices)

    def on_voices_ready(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if not self._loaded:
                self._ready_callbacks.append(callback)
                return
        self._dispatch(callback)

    def cancel(self) -> None:
        with self._lock:
            self._generation += 1
            engine = self._engine
        if engine is not None:
            try:
                engine.stop()
            except Exception:
                logger.debug("pyttsx3 stop failed", exc_info=True)

    def speak(self, text: str, *, voice: Voice | None, rate: float, pitch: float, on_done: Callable[[], None]) -> None:
        with self._lock:
            generation = self._generation
        self._commands.put((generation, text, voice, rate, pitch, on_done))

    def close(self) -> None:
        self.cancel()
        self._commands.put(None)

    # -------------------- worker thread --------------------

    def _run(self) -> None:
        try:
            import pyttsx3

            engine = pyttsx3.init(self._driver_name)
            base_rate = int(engine.getProperty("rate") or 200)
            voices = [
                Voice(
                    id=str(v.id),
                    name=str(getattr(v, "name", "") or v.id),
                    languages=tuple(normalize_language(lang) for lang in (getattr(v, "languages", None) or [])),
                )
                for v in (engine.getProperty("voices") or [])
            ]
        except Exception:
            logger.exception("pyttsx3 unavailable; announcements will be silent")
            engine, base_rate, voices = None, 200, []

        with self._lock:
            self._engine = engine
            self._base_rate = base_rate
            self._voices = voices
            self._loaded = True
            callbacks, self._ready_callbacks = self._ready_callbacks, []
        logger.info("tts roster loaded: %d voices", len(voices))
        for cb in callbacks:
            self._dispatch(cb)

        while True:
            cmd = self._commands.get()
            if cmd is None:
                return
            generation, text, voice, rate, pitch, on_done = cmd
            with self._lock:
                if generation != self._generation:
                    continue
            if engine is not None:
                self._play(engine, text, voice, rate, pitch)
            with self._lock:
                finished = generation == self._generation
            if finished:
                self._dispatch(on_done)

    def _play(self, engine: Any, text: str, voice: Voice | None, rate: float, pitch: float) -> None:
        try:
            if voice is not None:
                engine.setProperty("voice", voice.id)
            engine.setProperty("rate", round(self._base_rate * rate))
            try:
                engine.setProperty("pitch", pitch)
            except (KeyError, AttributeError, NotImplementedError):
                # Not every pyttsx3 driver exposes pitch.
                logger.debug("driver has no pitch control")
            engine.say(text)
            engine.runAndWait()
        except Exception:
            logger.exception("tts playback failed")


def create_engine(*, dispatch: Dispatch = _call_now, silent: bool = False) -> SpeechEngine:
    """Return the pyttsx3 engine, or the silent one when `silent` is set."""
    if silent:
        return NullEngine(dispatch=dispatch)
    return Pyttsx3Engine(dispatch=dispatch)
