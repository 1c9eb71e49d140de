import logging
from threading import Event, Lock, Thread
from typing import Optional

import pyaudio

from alarms.sounds import AudioPlaybackError

logger = logging.getLogger(__name__)


def create_pyaudio() -> pyaudio.PyAudio:
    pa = pyaudio.PyAudio()
    return pa


class AudioPlayer:
    """Exclusive output sink: a new ``play`` stops whoever held the device before.

    pyaudio has no notion of ducking other applications, so the claim is
    process-local; ``stop`` always closes the stream so the device is free again.
    """

    def __init__(self, pa: pyaudio.PyAudio, device_index: Optional[int] = None, frames_per_buffer: int = 1024):
        self.pa = pa
        self.device_index = device_index
        self.frames_per_buffer = frames_per_buffer
        self._lock = Lock()
        self._stop_event = Event()
        self._thread: Optional[Thread] = None
        self._stream: Optional[pyaudio.Stream] = None
        self._owner: Optional[str] = None

    @property
    def owner(self) -> Optional[str]:
        with self._lock:
            return self._owner

    @property
    def is_playing(self) -> bool:
        with self._lock:
            return self._thread is not None and self._thread.is_alive()

    def play(self, audio: bytes, rate: int, loop: bool = False, owner: str = "alarm", channels: int = 1) -> None:
        self.stop()
        if not audio:
            raise AudioPlaybackError("Nothing to play: empty audio buffer")
        try:
            stream = self.pa.open(
                format=pyaudio.paInt16,
                channels=channels,
                rate=rate,
                output=True,
                output_device_index=self.device_index,
            )
        except OSError as exc:
            raise AudioPlaybackError(f"Failed to open output device: {exc}") from exc
        with self._lock:
            self._stop_event = Event()
            self._stream = stream
            self._owner = owner
            self._thread = Thread(
                target=self._play_loop,
                args=(stream, audio, loop, self._stop_event, channels),
                name=f"audio-{owner}",
                daemon=True,
            )
            self._thread.start()
        logger.debug("Audio claimed by %s (loop=%s, %d bytes @ %s Hz)", owner, loop, len(audio), rate)

    def stop(self) -> bool:
        with self._lock:
            thread, stream, owner = self._thread, self._stream, self._owner
            self._stop_event.set()
            self._thread = None
            self._stream = None
            self._owner = None
        if thread is None:
            return False
        thread.join(timeout=2)
        if stream is not None:
            try:
                stream.stop_stream()
                stream.close()
            except OSError:
                logger.debug("Failed to close output stream", exc_info=True)
        logger.debug("Audio released by %s", owner)
        return True

    def close(self) -> None:
        self.stop()
        self.pa.terminate()

    def _play_loop(self, stream, audio: bytes, loop: bool, stop_event: Event, channels: int) -> None:  # pragma: no cover - device I/O
        chunk_bytes = self.frames_per_buffer * 2 * channels
        try:
            while not stop_event.is_set():
                for offset in range(0, len(audio), chunk_bytes):
                    if stop_event.is_set():
                        return
                    stream.write(audio[offset : offset + chunk_bytes])
                if not loop:
                    return
        except OSError as exc:
            logger.error("Audio output failed: %s", exc)
