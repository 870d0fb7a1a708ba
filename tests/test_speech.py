import sys
import threading
import types

from inspection_queue.speech import NullEngine, Pyttsx3Engine, Voice, normalize_language


def test_normalize_language_handles_espeak_bytes_and_underscores():
    assert normalize_language(b"\x05pt-br") == "pt-br"
    assert normalize_language("pt_BR") == "pt-br"


def test_null_engine_completes_immediately():
    done = []
    NullEngine().speak("x", voice=None, rate=1.0, pitch=1.0, on_done=lambda: done.append(True))
    assert done == [True]


class FakeDriver:
    def __init__(self):
        self.props = {}
        self.said = []

    def getProperty(self, name):
        if name == "rate":
            return 200
        if name == "voices":
            return [types.SimpleNamespace(id="brazil", name="brazil", languages=[b"\x05pt-br"])]
        raise KeyError(name)

    def setProperty(self, name, value):
        self.props[name] = value

    def say(self, text):
        self.said.append(text)

    def runAndWait(self):
        pass

    def stop(self):
        pass


def test_pyttsx3_engine_loads_roster_and_plays(monkeypatch):
    driver = FakeDriver()
    fake_module = types.SimpleNamespace(init=lambda driver_name=None: driver)
    monkeypatch.setitem(sys.modules, "pyttsx3", fake_module)

    engine = Pyttsx3Engine()
    ready = threading.Event()
    engine.on_voices_ready(ready.set)
    assert ready.wait(2)
    assert engine.voices() == [Voice(id="brazil", name="brazil", languages=("pt-br",))]

    done = threading.Event()
    engine.speak("Olá", voice=engine.voices()[0], rate=0.94, pitch=1.2, on_done=done.set)
    assert done.wait(2)
    assert driver.said == ["Olá"]
    assert driver.props["voice"] == "brazil"
    assert driver.props["rate"] == 188
    assert driver.props["pitch"] == 1.2
    engine.close()


class BlockingDriver(FakeDriver):
    """runAndWait holds until stop(), like a long utterance being cut off."""

    def __init__(self):
        super().__init__()
        self.speaking = threading.Event()
        self.stopped = threading.Event()

    def runAndWait(self):
        self.speaking.set()
        self.stopped.wait(2)

    def stop(self):
        self.stopped.set()


def test_cancelled_utterance_never_reports_done(monkeypatch):
    driver = BlockingDriver()
    monkeypatch.setitem(sys.modules, "pyttsx3", types.SimpleNamespace(init=lambda driver_name=None: driver))

    engine = Pyttsx3Engine()
    done = []
    b_done = threading.Event()

    engine.speak("A", voice=None, rate=1.0, pitch=1.0, on_done=lambda: done.append("A"))
    assert driver.speaking.wait(2)
    engine.cancel()
    engine.speak("B", voice=None, rate=1.0, pitch=1.0, on_done=lambda: (done.append("B"), b_done.set()))

    assert b_done.wait(2)
    assert done == ["B"]
    assert driver.said == ["A", "B"]
    engine.close()
