"""Defaults for timings, voice and transport.

Workstation entrypoints expose the interesting ones as argparse flags;
everything else reads these dataclasses directly.
"""

from __future__ import annotations

from dataclasses import dataclass, field

DEFAULT_MQTT_HOST = "127.0.0.1"
DEFAULT_MQTT_PORT = 1883
DEFAULT_NAMESPACE = "inspection/v0"


@dataclass(frozen=True)
class PanelTimings:
    """Dwell time of each display view, in milliseconds."""

    alert_ms: int = 50_000
    stats_ms: int = 60_000
    waiting_ms: int = 60_000


@dataclass(frozen=True)
class VoiceSettings:
    locale: str = "pt-BR"
    # Ordered by quality: natural/neural voices first.
    preferred_names: tuple[str, ...] = (
        "Francisca",
        "Thalita",
        "Google Português",
        "Luciana",
        "Neural",
    )
    max_repeats: int = 3
    repeat_interval_ms: int = 8_000
    rate: float = 1.0
    pitch: float = 1.0
    priority_rate: float = 0.94
    priority_pitch: float = 1.2  # about +2 semitones


@dataclass(frozen=True)
class PanelLayout:
    rows: int = 6
    # (service value, label) in the fixed order the stats view lists them.
    stats_order: tuple[tuple[str, str], ...] = field(
        default=(
            ("DESCONTAMINAÇÃO", "DESCONTAMINAÇÃO"),
            ("CIV", "CIV"),
            ("CSV", "CSV"),
            ("CIPP", "CIPP"),
            ("LIT", "LIT"),
            ("LAUDOS", "LAUDO"),
        )
    )
