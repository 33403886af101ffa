"""Recording session state machine.

One session is one record -> transcribe -> rewrite -> type cycle. Intents are
delivered through a queue drained by a single dispatcher thread; the
post-recording pipeline runs on a single worker thread so the dispatcher stays
responsive to ``cancel``. A cancel sets the session's flag right away and the
pipeline checks it around every long-running call.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Sequence

from typr.audio import discard_recording, new_recording_path
from typr.errors import (
    InjectionError,
    InvalidTransition,
    RecorderError,
    TranscriptionError,
)
from typr.gesture import Intent
from typr.platform import RecorderHandle, Urgency
from typr.registry import AUDIO_PATH, RECORDER_PID
from typr.text import prepare_transcript, wants_rewrite

if TYPE_CHECKING:
    from typr.config import SessionConfig, Settings
    from typr.platform import Platform
    from typr.registry import SessionRegistry
    from typr.transcribe import Rewriter, Transcriber

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    STOPPING = "stopping"
    TRANSCRIBING = "transcribing"
    REWRITING = "rewriting"
    TYPING = "typing"
    CANCELLED = "cancelled"
    FAILED = "failed"


TRANSITIONS: dict[SessionState, frozenset[SessionState]] = {
    SessionState.IDLE: frozenset({SessionState.RECORDING}),
    SessionState.RECORDING: frozenset(
        {SessionState.STOPPING, SessionState.CANCELLED, SessionState.FAILED}
    ),
    SessionState.STOPPING: frozenset(
        {
            SessionState.TRANSCRIBING,
            SessionState.IDLE,
            SessionState.CANCELLED,
            SessionState.FAILED,
        }
    ),
    SessionState.TRANSCRIBING: frozenset(
        {
            SessionState.REWRITING,
            SessionState.TYPING,
            SessionState.CANCELLED,
            SessionState.FAILED,
        }
    ),
    SessionState.REWRITING: frozenset(
        {SessionState.TYPING, SessionState.CANCELLED, SessionState.FAILED}
    ),
    SessionState.TYPING: frozenset(
        {SessionState.IDLE, SessionState.CANCELLED, SessionState.FAILED}
    ),
    SessionState.CANCELLED: frozenset({SessionState.IDLE}),
    SessionState.FAILED: frozenset({SessionState.IDLE}),
}

StateCallback = Callable[[SessionState, SessionState], None]


@dataclass
class RecordingSession:
    session_id: int
    audio_path: Path
    started_at: float
    recorder: RecorderHandle | None = None
    stopped_at: float | None = None
    cancel: threading.Event = field(default_factory=threading.Event)

    @property
    def duration(self) -> float:
        if self.stopped_at is None:
            return 0.0
        return self.stopped_at - self.started_at


class SessionCancelled(Exception):
    """Internal signal: the cancel flag was observed at a suspension point."""


class SessionMachine:
    """Owns the lifecycle of recording sessions; at most one at a time."""

    def __init__(
        self,
        platform: "Platform",
        transcribers: Sequence["Transcriber"],
        rewriter: "Rewriter | None",
        settings: "Settings",
        config: "SessionConfig",
        registry: "SessionRegistry | None" = None,
        clock: Callable[[], float] = time.monotonic,
        on_state_change: StateCallback | None = None,
        recordings_dir: Path | None = None,
    ) -> None:
        self._platform = platform
        self._transcribers = list(transcribers)
        self._rewriter = rewriter
        self._settings = settings
        self._config = config
        self._registry = registry
        self._clock = clock
        self._on_state_change = on_state_change
        self._recordings_dir = recordings_dir

        self._lock = threading.RLock()
        self._state = SessionState.IDLE
        self._session: RecordingSession | None = None
        self._session_counter = 0
        self._idle = threading.Event()
        self._idle.set()
        self._muted = False

        self._intents: queue.Queue[Intent | None] = queue.Queue()
        self._dispatcher: threading.Thread | None = None
        self._pipeline = ThreadPoolExecutor(max_workers=1, thread_name_prefix="typr-session")
        self._pipeline_future: Future | None = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def session(self) -> RecordingSession | None:
        return self._session

    # ------------------------------------------------------------------
    # Intent delivery
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the dispatcher thread that drains ``handle_intent``."""
        if self._dispatcher and self._dispatcher.is_alive():
            return
        self._dispatcher = threading.Thread(
            target=self._dispatch_loop, name="typr-dispatcher", daemon=True
        )
        self._dispatcher.start()

    def handle_intent(self, intent: Intent) -> None:
        """Queue an intent; returns immediately."""
        if intent == Intent.CANCEL:
            self._flag_cancel()
        self._intents.put(intent)

    def shutdown(self, timeout: float = 2.0) -> None:
        self._intents.put(None)
        if self._dispatcher and self._dispatcher.is_alive():
            self._dispatcher.join(timeout=timeout)
        with self._lock:
            session = self._session
            if session and session.recorder and session.recorder.is_running:
                self._platform.stop_recorder(session.recorder, self._config.recorder_stop_timeout_s)
        self._pipeline.shutdown(wait=False)

    def _dispatch_loop(self) -> None:
        while True:
            intent = self._intents.get()
            if intent is None:
                break
            try:
                self.process_intent(intent)
            except Exception:
                logger.exception("Error handling intent %s", intent.value)

    def process_intent(self, intent: Intent) -> None:
        """Apply one intent synchronously in the caller's thread."""
        with self._lock:
            logger.debug("Intent %s in state %s", intent.value, self._state.value)
            if intent == Intent.START_RECORDING:
                self._on_start()
            elif intent == Intent.STOP_RECORDING:
                self._on_stop()
            elif intent == Intent.CANCEL:
                self._on_cancel()

    def wait_until_idle(self, timeout: float | None = None) -> bool:
        return self._idle.wait(timeout)

    def wait_for_recorder(self, timeout: float | None = None) -> int | None:
        """Block until the active recorder process exits on its own or is signalled."""
        session = self._session
        if session is None or session.recorder is None:
            return None
        return session.recorder.wait(timeout)

    # ------------------------------------------------------------------
    # Transitions driven by intents
    # ------------------------------------------------------------------

    def _on_start(self) -> None:
        if self._state != SessionState.IDLE:
            logger.info("Ignoring start: session is %s", self._state.value)
            return

        if self._registry is not None:
            self._registry.clear()

        self._session_counter += 1
        session = RecordingSession(
            session_id=self._session_counter,
            audio_path=new_recording_path(self._recordings_dir),
            started_at=self._clock(),
        )
        self._session = session
        self._idle.clear()
        self._transition(SessionState.RECORDING)

        if self._config.mute_while_recording:
            self._platform.mute()
            self._muted = True

        try:
            session.recorder = self._platform.start_recorder(session.audio_path)
        except RecorderError as e:
            self._fail(session, "Recording failed to start", e)
            return

        session.started_at = self._clock()
        if self._registry is not None:
            self._registry.set(RECORDER_PID, str(session.recorder.pid))
            self._registry.set(AUDIO_PATH, str(session.audio_path))

        self._platform.beep()
        self._platform.notify("🎙️ Recording started", Urgency.LOW)
        logger.info("Session %d recording to %s", session.session_id, session.audio_path)

    def _on_stop(self) -> None:
        if self._state != SessionState.RECORDING:
            logger.info("Ignoring stop: session is %s", self._state.value)
            return

        session = self._session
        assert session is not None
        session.stopped_at = self._clock()
        self._transition(SessionState.STOPPING)
        self._release_recorder(session)
        logger.info(
            "Session %d stopped recording after %.2f seconds",
            session.session_id,
            session.duration,
        )
        self._pipeline_future = self._pipeline.submit(self._finish, session)

    def _on_cancel(self) -> None:
        if self._state == SessionState.IDLE:
            logger.debug("Ignoring cancel: no active session")
            return

        session = self._session
        assert session is not None
        session.cancel.set()
        if self._state == SessionState.RECORDING:
            self._release_recorder(session)
            self._cancel(session)
        # Later states: the pipeline observes the flag at its next checkpoint.

    def _flag_cancel(self) -> None:
        session = self._session
        if session is not None:
            session.cancel.set()

    # ------------------------------------------------------------------
    # Post-recording pipeline (runs on the worker thread)
    # ------------------------------------------------------------------

    def _finish(self, session: RecordingSession) -> None:
        try:
            self._run_pipeline(session)
        except SessionCancelled:
            with self._lock:
                self._cancel(session)
        except TranscriptionError as e:
            with self._lock:
                self._fail_unless_cancelled(session, "Transcription failed", e)
        except InjectionError as e:
            with self._lock:
                self._fail_unless_cancelled(session, "Typing failed", e)
        except Exception as e:
            logger.exception("Unexpected error in session %d", session.session_id)
            with self._lock:
                if self._state not in (SessionState.IDLE, SessionState.CANCELLED, SessionState.FAILED):
                    self._fail_unless_cancelled(session, "Processing failed", e)

    def _run_pipeline(self, session: RecordingSession) -> None:
        if session.duration < self._config.min_recording_s:
            with self._lock:
                logger.info("Recording stopped after less than %.1f second", self._config.min_recording_s)
                self._platform.notify("⏹️ Recording too short, discarded", Urgency.LOW)
                self._end(session, SessionState.IDLE)
            return

        self._checkpoint(session)
        with self._lock:
            self._transition(SessionState.TRANSCRIBING)
        transcript = self._transcribe(session)
        self._checkpoint(session)

        text = prepare_transcript(transcript, self._settings.substitutions)
        timeout = self._config.adapter_timeout_s

        if self._rewriter is not None and wants_rewrite(text, self._config.rewrite_mode):
            with self._lock:
                self._transition(SessionState.REWRITING)
            try:
                text = self._rewriter.rewrite(
                    text, self._settings.rewrite_instruction_prompt, timeout=timeout
                )
            except Exception as e:
                logger.error("Rewrite failed, typing the original transcript: %s", e)
            self._checkpoint(session)

        with self._lock:
            self._checkpoint(session)
            self._transition(SessionState.TYPING)
        self._platform.inject_text(text, timeout=timeout)

        with self._lock:
            self._platform.notify("🎯 Done!", Urgency.LOW)
            logger.info(
                "Session %d typed %d characters in %.2f seconds",
                session.session_id,
                len(text),
                self._clock() - session.started_at,
            )
            self._end(session, SessionState.IDLE)

    def _transcribe(self, session: RecordingSession) -> str:
        last = len(self._transcribers) - 1
        for index, transcriber in enumerate(self._transcribers):
            self._checkpoint(session)
            try:
                return transcriber.transcribe(
                    session.audio_path,
                    self._settings.transcription_prompt,
                    timeout=self._config.adapter_timeout_s,
                )
            except TranscriptionError as e:
                if index == last:
                    raise
                logger.error("%s failed, falling back: %s", transcriber.name, e)
        raise TranscriptionError("No transcription engine configured")

    def _checkpoint(self, session: RecordingSession) -> None:
        if session.cancel.is_set():
            raise SessionCancelled()

    # ------------------------------------------------------------------
    # Terminal handling
    # ------------------------------------------------------------------

    def _release_recorder(self, session: RecordingSession) -> None:
        if session.recorder is not None:
            self._platform.stop_recorder(session.recorder, self._config.recorder_stop_timeout_s)
        if self._muted:
            self._platform.unmute()
            self._muted = False

    def _cancel(self, session: RecordingSession) -> None:
        self._transition(SessionState.CANCELLED)
        logger.info("Session %d cancelled by user", session.session_id)
        self._platform.notify("🚫 Cancelled", Urgency.LOW)
        self._end(session, SessionState.IDLE)

    def _fail_unless_cancelled(
        self, session: RecordingSession, message: str, error: Exception
    ) -> None:
        if session.cancel.is_set():
            logger.info("Session %d: %s after cancel: %s", session.session_id, message, error)
            self._cancel(session)
        else:
            self._fail(session, message, error)

    def _fail(self, session: RecordingSession, message: str, error: Exception) -> None:
        logger.error("Session %d: %s: %s", session.session_id, message, error)
        if self._state == SessionState.RECORDING:
            self._release_recorder(session)
        self._transition(SessionState.FAILED)
        self._platform.notify(f"❌ {message}", Urgency.CRITICAL)
        self._end(session, SessionState.IDLE)

    def _end(self, session: RecordingSession, state: SessionState) -> None:
        discard_recording(session.audio_path)
        session.recorder = None
        if self._registry is not None:
            try:
                self._registry.clear()
            except OSError as e:
                logger.error("Failed to clear session registry: %s", e)
        self._transition(state)
        self._session = None
        self._idle.set()

    def _transition(self, to_state: SessionState) -> None:
        from_state = self._state
        if to_state not in TRANSITIONS[from_state]:
            raise InvalidTransition(f"{from_state.value} -> {to_state.value}")
        self._state = to_state
        logger.debug("Session state %s -> %s", from_state.value, to_state.value)
        if self._on_state_change:
            self._on_state_change(from_state, to_state)
