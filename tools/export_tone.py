import sys
from pathlib import Path

from alarms.sounds import SOUND_PROFILES, write_tone_wav


def main():
    out_dir = Path(sys.argv[1]) if len(sys.argv) > 1 else Path("data/sounds")
    duration = float(sys.argv[2]) if len(sys.argv) > 2 else 2.0
    for profile in SOUND_PROFILES.values():
        path = out_dir / f"{profile.name.lower()}.wav"
        write_tone_wav(path, profile, duration)
        print("Wrote", path)


if __name__ == "__main__":
    main()
