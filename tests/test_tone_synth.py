import io
import math
import struct
import wave

import numpy as np
import pytest

from alarms.sounds import (
    SOUND_PROFILES,
    AlarmSoundPlayer,
    encode_wav,
    get_profile,
    synthesize_tone,
    tone_wav,
    write_tone_wav,
)


def test_builtin_profiles():
    assert {name: (p.frequency, p.beep_duration, p.silence_duration) for name, p in SOUND_PROFILES.items()} == {
        "Pulse": (880.0, 0.3, 0.2),
        "Anchor": (523.25, 0.5, 0.3),
        "Sparkle": (1046.5, 0.15, 0.35),
        "Surge": (659.25, 0.4, 0.1),
        "Standard": (440.0, 0.25, 0.25),
        "Soft": (392.0, 0.6, 0.8),
    }
    with pytest.raises(ValueError):
        get_profile("Klaxon")


def test_sample_count_and_values():
    profile = get_profile("Pulse")
    samples = synthesize_tone(profile, 1.0)
    assert samples.dtype == np.dtype("<i2")
    assert len(samples) == 44100
    for i in (0, 1, 50, 1000):
        expected = round(0.9 * math.sin(2 * math.pi * 880.0 * i / 44100) * 32767)
        assert samples[i] == expected


def test_silence_between_beeps():
    samples = synthesize_tone(get_profile("Pulse"), 1.0)
    # Pulse beeps 0.0-0.3s and 0.5-0.8s
    assert not samples[13300:22000].any()
    assert samples[100:13000].any()
    assert samples[22100:35000].any()
    assert np.abs(samples).max() <= round(0.9 * 32767)


def test_fractional_duration_rounds_sample_count():
    assert len(synthesize_tone(get_profile("Soft"), 0.00001)) == 0
    assert len(synthesize_tone(get_profile("Soft"), 0.5)) == 22050
    with pytest.raises(ValueError):
        synthesize_tone(get_profile("Soft"), -1)


def test_synthesis_is_deterministic():
    profile = get_profile("Sparkle")
    assert synthesize_tone(profile, 2.0).tobytes() == synthesize_tone(profile, 2.0).tobytes()
    assert tone_wav(profile, 0.25) == tone_wav(profile, 0.25)


def test_wav_layout_for_one_second():
    data = tone_wav(get_profile("Standard"), 1.0)
    data_size = 44100 * 2
    assert len(data) == 44 + data_size

    (riff, chunk_size, wave_id, fmt_id, fmt_size, audio_format, channels, rate,
     byte_rate, block_align, bits, data_id, subchunk2_size) = struct.unpack("<4sI4s4sIHHIIHH4sI", data[:44])
    assert (riff, wave_id, fmt_id, data_id) == (b"RIFF", b"WAVE", b"fmt ", b"data")
    assert chunk_size == 36 + data_size
    assert subchunk2_size == data_size
    assert (fmt_size, audio_format, channels, rate) == (16, 1, 1, 44100)
    assert (byte_rate, block_align, bits) == (88200, 2, 16)


def test_wav_is_readable_by_wave_module():
    samples = synthesize_tone(get_profile("Anchor"), 0.1)
    with wave.open(io.BytesIO(encode_wav(samples)), "rb") as wav:
        assert wav.getnchannels() == 1
        assert wav.getsampwidth() == 2
        assert wav.getframerate() == 44100
        assert wav.readframes(wav.getnframes()) == samples.tobytes()


def test_player_falls_back_to_tone_when_asset_missing(tmp_path, sink):
    player = AlarmSoundPlayer(sink, custom_sound_path=tmp_path / "missing.wav", tone_seconds=0.5)
    assert player.start_loop("Surge") == "tone"
    assert sink.calls == [("play", "alarm", True, 44100, 22050 * 2)]


def test_player_uses_custom_asset(tmp_path, sink):
    asset = tmp_path / "alarm_tone.wav"
    write_tone_wav(asset, get_profile("Soft"), 0.2)
    player = AlarmSoundPlayer(sink, custom_sound_path=asset)
    assert player.start_loop() == "asset"
    assert sink.calls == [("play", "alarm", True, 44100, 8820 * 2)]


def test_player_falls_back_when_device_rejects_asset(tmp_path, sink):
    asset = tmp_path / "alarm_tone.wav"
    write_tone_wav(asset, get_profile("Soft"), 0.2)
    sink.failures = 1
    player = AlarmSoundPlayer(sink, custom_sound_path=asset, tone_seconds=0.5)
    assert player.start_loop("Pulse") == "tone"


def test_preview_does_not_loop_and_stops_only_itself(sink):
    player = AlarmSoundPlayer(sink, preview_seconds=1.0)
    player.start_loop("Pulse")
    assert player.stop_preview() is False
    assert sink.owner == "alarm"

    player.preview("Soft")
    assert sink.calls[-1] == ("play", "preview", False, 44100, 44100 * 2)
    assert player.stop_preview() is True
    assert sink.owner is None
