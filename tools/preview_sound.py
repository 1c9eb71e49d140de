import sys
import time

from alarms.sounds import SAMPLE_RATE, SOUND_PROFILES, get_profile, synthesize_tone
from audio_io import AudioPlayer, create_pyaudio


def main():
    name = sys.argv[1] if len(sys.argv) > 1 else "Pulse"
    duration = float(sys.argv[2]) if len(sys.argv) > 2 else 3.0
    try:
        profile = get_profile(name)
    except ValueError as exc:
        print(exc)
        print("Available:", ", ".join(SOUND_PROFILES))
        return
    pa = create_pyaudio()
    player = AudioPlayer(pa)
    samples = synthesize_tone(profile, duration)
    print(f"Playing {profile.name} ({profile.frequency} Hz, {profile.beep_duration}s on / {profile.silence_duration}s off)...")
    player.play(samples.tobytes(), SAMPLE_RATE, loop=False, owner="preview")
    time.sleep(duration + 0.2)
    player.close()


if __name__ == "__main__":
    main()
