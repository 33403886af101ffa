"""Main Typr application."""

from __future__ import annotations

import logging
import signal
import threading
from typing import TYPE_CHECKING

from typr.audio import prune_recordings
from typr.config import Config, GestureMode, Settings
from typr.gesture import GestureDetector, Intent
from typr.platform import Urgency, create_platform, process_alive, signal_recorder
from typr.registry import RECORDER_PID, JsonSessionRegistry
from typr.session import SessionMachine
from typr.transcribe import create_rewriter, create_transcribers

if TYPE_CHECKING:
    from typr.keys import KeyEventSource
    from typr.platform import Platform
    from typr.registry import SessionRegistry

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 0.5


def build_machine(
    config: Config,
    settings: Settings,
    platform: "Platform | None" = None,
    registry: "SessionRegistry | None" = None,
) -> SessionMachine:
    """
    Wire a session machine from configuration.

    Raises:
        ConfigurationError: No transcription engine can be used.
    """
    platform = platform or create_platform(config)
    transcribers = create_transcribers(
        settings, min_chars=config.session.min_transcript_chars
    )
    return SessionMachine(
        platform=platform,
        transcribers=transcribers,
        rewriter=create_rewriter(settings),
        settings=settings,
        config=config.session,
        registry=registry,
    )


def run_toggle(
    machine: SessionMachine,
    registry: "SessionRegistry",
    platform: "Platform",
) -> None:
    """
    One ``toggle`` invocation.

    The first invocation records until its recorder process is terminated,
    then transcribes and types. A second invocation, launched while the first
    is still recording, finds the recorder pid in the registry and signals it.
    """
    pid = registry.get(RECORDER_PID)
    if pid and pid.isdigit() and process_alive(int(pid)):
        platform.notify("⏹️ Stopping recording...", Urgency.LOW)
        platform.double_beep()
        signal_recorder(int(pid))
        return

    if pid:
        logger.info("Discarding stale recorder pid %s", pid)
    registry.clear()
    prune_recordings()

    machine.process_intent(Intent.START_RECORDING)
    if machine.session is None or machine.session.recorder is None:
        return

    code = machine.wait_for_recorder()
    logger.info("Recorder finished with code %s", code)
    machine.process_intent(Intent.STOP_RECORDING)
    machine.wait_until_idle()


class DictationApp:
    """
    Listen-mode dictation application.

    Reads key events from a source, interprets them as gestures and drives
    the session machine until the source closes.
    """

    def __init__(
        self,
        config: Config | None = None,
        settings: Settings | None = None,
        source: "KeyEventSource | None" = None,
        machine: SessionMachine | None = None,
    ) -> None:
        self._config = config or Config()
        self._settings = settings or Settings.load(self._config.settings_file)
        self._source = source
        self._machine = machine
        self._detector = GestureDetector(
            mode=self._config.gesture.mode,
            double_tap_window_ms=self._config.gesture.double_tap_window_ms,
        )
        self._stop_event = threading.Event()
        self._ready = False

    @property
    def detector(self) -> GestureDetector:
        return self._detector

    @property
    def machine(self) -> SessionMachine | None:
        return self._machine

    def setup(self) -> None:
        """Initialize all components."""
        if self._ready:
            return
        if self._machine is None:
            self._machine = build_machine(
                self._config,
                self._settings,
                registry=JsonSessionRegistry(self._config.state_file),
            )
        self._machine.start()
        prune_recordings()

        if self._source is None:
            from typr.keys import PynputKeySource

            chord = self._config.gesture.chord if self._config.gesture.mode == GestureMode.CHORD else None
            source = PynputKeySource(chord=chord)
            source.start()
            self._source = source

        self._print_instructions()
        self._ready = True

    def _print_instructions(self) -> None:
        print("=" * 60)
        print("⌨️  TYPR - Dictation")
        print("=" * 60)
        if self._config.gesture.mode == GestureMode.CHORD:
            print(f"   • Press {self._config.gesture.chord} to start, press again to stop.")
        else:
            print("   • Double-tap Shift and keep holding to talk. Release to stop.")
        print("   • Press Esc to cancel a dictation that is still being processed.")
        print("   • Ctrl+C quits.")
        print("=" * 60)

    def pump(self, timeout: float | None = POLL_INTERVAL_SECONDS) -> bool:
        """Move one key event from the source to the machine; False once closed."""
        assert self._source is not None and self._machine is not None
        event = self._source.next_event(timeout=timeout)
        if event is None:
            return not getattr(self._source, "closed", False)

        intent = self._detector.process_event(event)
        if intent is not None:
            logger.info("Gesture: %s", intent.value)
            self._machine.handle_intent(intent)
        return True

    def run(self) -> None:
        """Run until the key source closes or Ctrl+C."""
        self.setup()

        def handle_sigint(sig: int, frame: object) -> None:
            self.shutdown()
            raise SystemExit(0)

        if threading.current_thread() is threading.main_thread():
            signal.signal(signal.SIGINT, handle_sigint)

        while not self._stop_event.is_set() and self.pump():
            pass

        self.shutdown()

    def shutdown(self) -> None:
        """Shutdown the application gracefully."""
        if self._stop_event.is_set():
            return
        logger.info("Shutting down...")
        self._stop_event.set()
        if self._source is not None:
            self._source.close()
        if self._machine is not None:
            self._machine.shutdown()

