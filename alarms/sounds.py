from __future__ import annotations

import io
import logging
import wave
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

import numpy as np

logger = logging.getLogger(__name__)

SAMPLE_RATE = 44100
BEEP_AMPLITUDE = 0.9
INT16_MAX = 32767
INT16_MIN = -32768


class AudioPlaybackError(RuntimeError):
    """Raised when the audio sink cannot start playback."""


ALARM_OWNER = "alarm"
PREVIEW_OWNER = "preview"


@dataclass(frozen=True)
class SoundProfile:
    name: str
    frequency: float
    beep_duration: float
    silence_duration: float

    @property
    def cycle_duration(self) -> float:
        return self.beep_duration + self.silence_duration


SOUND_PROFILES = {
    profile.name: profile
    for profile in (
        SoundProfile("Pulse", 880.0, 0.3, 0.2),  # A5
        SoundProfile("Anchor", 523.25, 0.5, 0.3),  # C5
        SoundProfile("Sparkle", 1046.5, 0.15, 0.35),  # C6
        SoundProfile("Surge", 659.25, 0.4, 0.1),  # E5
        SoundProfile("Standard", 440.0, 0.25, 0.25),  # A4
        SoundProfile("Soft", 392.0, 0.6, 0.8),  # G4
    )
}
DEFAULT_SOUND = "Pulse"


def get_profile(name: str) -> SoundProfile:
    try:
        return SOUND_PROFILES[name]
    except KeyError:
        raise ValueError(f"Unknown sound profile {name!r}, expected one of {', '.join(SOUND_PROFILES)}") from None


def synthesize_tone(profile: SoundProfile, duration: float, sample_rate: int = SAMPLE_RATE) -> np.ndarray:
    """Render ``duration`` seconds of the profile's beep/silence cadence.

    Returns mono little-endian int16 samples. A sample at time ``t`` is audible
    while ``t mod (beep + silence) < beep``; the output is a pure function of
    its arguments.
    """
    if duration < 0:
        raise ValueError("Tone duration must not be negative")
    num_samples = int(round(sample_rate * duration))
    t = np.arange(num_samples, dtype=np.float64) / sample_rate
    cycle_position = np.mod(t, profile.cycle_duration)
    amplitude = np.where(cycle_position < profile.beep_duration, BEEP_AMPLITUDE, 0.0)
    samples = np.rint(amplitude * np.sin(2 * np.pi * profile.frequency * t) * INT16_MAX)
    return np.clip(samples, INT16_MIN, INT16_MAX).astype("<i2")


def encode_wav(samples: np.ndarray, sample_rate: int = SAMPLE_RATE) -> bytes:
    """Wrap int16 mono samples into a canonical 44-byte-header RIFF/WAVE stream."""
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(sample_rate)
        wav.writeframes(np.asarray(samples, dtype="<i2").tobytes())
    return buffer.getvalue()


def tone_wav(profile: SoundProfile, duration: float) -> bytes:
    return encode_wav(synthesize_tone(profile, duration))


def write_tone_wav(path: Path, profile: SoundProfile, duration: float) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(tone_wav(profile, duration))
    logger.info("Wrote %s tone (%.1fs) to %s", profile.name, duration, path)


def read_wav(path: Path) -> Tuple[bytes, int, int]:
    """Read a 16-bit PCM asset, returning ``(frames, sample_rate, channels)``."""
    with wave.open(str(path), "rb") as wav:
        if wav.getsampwidth() != 2:
            raise wave.Error(f"{path} is not 16-bit PCM")
        frames = wav.readframes(wav.getnframes())
        return frames, wav.getframerate(), wav.getnchannels()


class AlarmSoundPlayer:
    """Plays alarm and preview sounds through a shared audio sink."""

    def __init__(
        self,
        sink,
        custom_sound_path: Optional[Path] = None,
        tone_seconds: float = 2.0,
        preview_seconds: float = 3.0,
    ):
        self.sink = sink
        self.custom_sound_path = custom_sound_path
        self.tone_seconds = tone_seconds
        self.preview_seconds = preview_seconds

    def start_loop(self, sound: str = DEFAULT_SOUND) -> str:
        """Start ringing; returns ``"asset"`` or ``"tone"`` for the source used.

        Raises AudioPlaybackError when the synthesized tone cannot be played.
        """
        if self.custom_sound_path is not None:
            try:
                frames, rate, channels = read_wav(self.custom_sound_path)
                self.sink.play(frames, rate, loop=True, owner=ALARM_OWNER, channels=channels)
                return "asset"
            except (OSError, EOFError, wave.Error, AudioPlaybackError) as exc:
                logger.warning(
                    "Custom alarm sound %s unavailable (%s), falling back to %s tone",
                    self.custom_sound_path,
                    exc,
                    sound,
                )
        samples = synthesize_tone(get_profile(sound), self.tone_seconds)
        self.sink.play(samples.tobytes(), SAMPLE_RATE, loop=True, owner=ALARM_OWNER)
        return "tone"

    def stop_loop(self) -> None:
        self.sink.stop()

    def preview(self, sound: str) -> None:
        samples = synthesize_tone(get_profile(sound), self.preview_seconds)
        self.sink.play(samples.tobytes(), SAMPLE_RATE, loop=False, owner=PREVIEW_OWNER)

    def stop_preview(self) -> bool:
        if self.sink.owner != PREVIEW_OWNER:
            return False
        self.sink.stop()
        return True
