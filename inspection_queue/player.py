from __future__ import annotations

# Announcement player.
#
# Plays one voice message at a time, three times, eight seconds apart.
# A new announcement always wins: the engine is told to stop, the pending
# repeat timer is cancelled and the old job is dropped, repeat count and
# all. Completion callbacks that arrive for a dropped job are ignored.
#
# Priority announcements are slower and higher pitched; that is the only
# acoustic difference between the two kinds.

import logging
from dataclasses import dataclass

from .alerts import SequenceGuard
from .config import VoiceSettings
from .models import AlertEvent, SystemResponse
from .speech import SpeechEngine, Voice
from .timers import TimerHandle, Timers

logger = logging.getLogger(__name__)


@dataclass
class AnnouncementJob:
    text: str
    priority: bool
    max_repeats: int
    plays: int = 0
    started: bool = False
    cancelled: bool = False
    completed: bool = False


def select_voice(voices: list[Voice], settings: VoiceSettings) -> Voice | None:
    """Pick the best voice for the configured locale.

    Preference-list match first, then any locale voice, then None (the
    engine default).
    """
    locale = settings.locale.replace("_", "-").lower()

    def matches_locale(v: Voice) -> bool:
        if any(lang.replace("_", "-").lower() == locale for lang in v.languages):
            return True
        return locale in v.id.replace("_", "-").lower()

    local = [v for v in voices if matches_locale(v)]
    for preferred in settings.preferred_names:
        for v in local:
            if preferred in v.name:
                return v
    return local[0] if local else None


class AnnouncementPlayer:
    def __init__(self, *, engine: SpeechEngine, timers: Timers, settings: VoiceSettings = VoiceSettings()) -> None:
        self._engine = engine
        self._timers = timers
        self._settings = settings
        self._guard = SequenceGuard()

        self.job: AnnouncementJob | None = None
        self._repeat_timer: TimerHandle | None = None

    @property
    def idle(self) -> bool:
        return self.job is None

    def on_alert(self, event: AlertEvent, response: SystemResponse) -> bool:
        """Speak the voice text of a newer alert; drop stale ones."""
        if not self._guard.accept(event.timestamp):
            logger.debug("stale announcement ts=%d dropped", event.timestamp)
            return False
        self.announce(response.panel.voice_text, response.panel.priority)
        return True

    def announce(self, text: str, priority: bool = False) -> AnnouncementJob | None:
        """Replace whatever is playing with `text`.

        Empty text only cancels.
        """
        self.cancel()
        if not text:
            return None

        job = AnnouncementJob(text=text, priority=priority, max_repeats=self._settings.max_repeats)
        self.job = job

        if self._engine.voices():
            self._play(job)
        else:
            # Roster not loaded yet: start once the engine says it is.
            logger.debug("voice roster empty, deferring first playback")
            self._engine.on_voices_ready(lambda: self._start_deferred(job))
        return job

    def cancel(self) -> None:
        if self._repeat_timer is not None:
            self._repeat_timer.cancel()
            self._repeat_timer = None
        if self.job is not None:
            self.job.cancelled = True
            self.job = None
        try:
            self._engine.cancel()
        except Exception:
            logger.warning("speech engine cancel failed", exc_info=True)

    # -------------------- playback chain --------------------

    def _start_deferred(self, job: AnnouncementJob) -> None:
        if job is not self.job or job.started:
            return
        self._play(job)

    def _play(self, job: AnnouncementJob) -> None:
        job.started = True
        s = self._settings
        rate, pitch = (s.priority_rate, s.priority_pitch) if job.priority else (s.rate, s.pitch)
        voice = select_voice(self._engine.voices(), s)
        logger.info(
            "announce %d/%d%s: %s",
            job.plays + 1,
            job.max_repeats,
            " [priority]" if job.priority else "",
            job.text,
        )
        try:
            self._engine.speak(job.text, voice=voice, rate=rate, pitch=pitch, on_done=lambda: self._on_played(job))
        except Exception:
            # Audio trouble must never reach the display loop.
            logger.exception("speech engine failed; dropping announcement")
            if job is self.job:
                self.job = None

    def _on_played(self, job: AnnouncementJob) -> None:
        if job is not self.job:
            return
        job.plays += 1
        if job.plays < job.max_repeats:
            self._repeat_timer = self._timers.call_later(
                self._settings.repeat_interval_ms, lambda: self._repeat(job)
            )
            return
        job.completed = True
        self.job = None

    def _repeat(self, job: AnnouncementJob) -> None:
        self._repeat_timer = None
        if job is not self.job:
            return
        self._play(job)
