import logging
import signal
from threading import Thread

from alarms.command_router import CommandRouter
from alarms.manager import AlarmManager, FiringSession
from alarms.notifications import NotificationScheduler
from alarms.sounds import AlarmSoundPlayer
from alarms.storage import AlarmStore
from audio_io import AudioPlayer, create_pyaudio
from config import load_config, setup_logging
from time_utils import format_tz_offset, now_in_tz, resolve_timezone

logger = logging.getLogger("alarm_clock")


def graceful_exit(signum, frame) -> None:  # pragma: no cover - signal handler
    logger.info("Shutting down (signal %s)", signum)
    raise KeyboardInterrupt()


def _on_alarm_triggered(session: FiringSession) -> None:
    alarm = session.alarm
    print(f"\n*** {alarm.label} - {alarm.time_string} *** (type 'stop' or 'snooze')")
    if session.audio_error is not None:
        print(f"(no sound: {session.audio_error})")


def _read_commands(router: CommandRouter, tzinfo) -> None:
    while True:
        try:
            line = input("> ")
        except EOFError:
            return
        if line.strip().lower() in ("quit", "exit"):
            return
        result = router.handle_text(line, now=now_in_tz(tzinfo))
        if result is None:
            print("Commands: add, list, next, remove N, toggle N, stop, snooze, sounds, preview NAME, quit")
        elif result.response_text:
            print(result.response_text)


def main() -> None:
    config = load_config()
    setup_logging(config.log_level)
    signal.signal(signal.SIGINT, graceful_exit)
    tzinfo = resolve_timezone(config.timezone)
    logger.info("Starting alarm clock (UTC%s)", format_tz_offset(tzinfo))

    pa = create_pyaudio()
    sink = AudioPlayer(pa, device_index=config.output_device_index)
    sound_player = AlarmSoundPlayer(
        sink,
        custom_sound_path=config.alarm_sound_path,
        tone_seconds=config.tone_seconds,
        preview_seconds=config.preview_seconds,
    )
    notifier = NotificationScheduler(timezone=tzinfo) if config.enable_notifications else None
    manager = AlarmManager(
        store=AlarmStore(config.alarms_path),
        sound_player=sound_player,
        notifier=notifier,
        tick_interval=config.tick_interval_ms / 1000.0,
        snooze_minutes=config.snooze_minutes,
        on_alarm_triggered=_on_alarm_triggered,
        timezone=tzinfo,
    )
    router = CommandRouter(manager)

    manager.start()
    upcoming = manager.next_alarm()
    if upcoming:
        alarm, fire_at = upcoming
        logger.info("Next alarm: %s at %s", alarm.label, fire_at.isoformat())
    commands = Thread(target=_read_commands, args=(router, tzinfo), name="console", daemon=True)
    commands.start()
    try:
        while commands.is_alive():
            commands.join(timeout=0.5)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    finally:
        manager.shutdown()
        sink.close()


if __name__ == "__main__":
    main()
