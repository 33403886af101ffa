"""Keyboard gesture detection.

Turns a stream of raw key events into recording intents. Two modes exist:

* ``hold``: double-tap Shift and keep it held to record, release to stop.
  Escape (while not holding) cancels whatever session is still finishing.
* ``chord``: a modifier chord toggles recording on and off.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from typr.config import GestureMode

logger = logging.getLogger(__name__)

DEFAULT_DOUBLE_TAP_WINDOW_MS = 300


class KeyIdentity(str, Enum):
    SHIFT_LEFT = "shift_left"
    SHIFT_RIGHT = "shift_right"
    ESCAPE = "escape"
    CHORD = "chord"
    OTHER = "other"

    @property
    def is_shift(self) -> bool:
        return self in (KeyIdentity.SHIFT_LEFT, KeyIdentity.SHIFT_RIGHT)


class KeyTransition(str, Enum):
    DOWN = "down"
    UP = "up"


class Intent(str, Enum):
    START_RECORDING = "startRecording"
    STOP_RECORDING = "stopRecording"
    CANCEL = "cancel"


@dataclass(frozen=True)
class KeyEvent:
    key: KeyIdentity
    transition: KeyTransition
    timestamp_ms: int

    @property
    def is_down(self) -> bool:
        return self.transition == KeyTransition.DOWN


@dataclass
class GestureState:
    last_shift_down_at: int | None = None
    is_holding: bool = False
    last_release_was_shift: bool = False

    def reset(self) -> None:
        self.last_shift_down_at = None
        self.is_holding = False
        self.last_release_was_shift = False


class GestureDetector:
    """
    Stateful key-event interpreter.

    Not thread-safe: feed it from the single thread that owns the key stream.
    """

    def __init__(
        self,
        mode: GestureMode = GestureMode.HOLD,
        double_tap_window_ms: int = DEFAULT_DOUBLE_TAP_WINDOW_MS,
    ) -> None:
        self._mode = mode
        self._window_ms = double_tap_window_ms
        self._state = GestureState()
        self._last_stop_at: int | None = None

    @property
    def mode(self) -> GestureMode:
        return self._mode

    @property
    def state(self) -> GestureState:
        return self._state

    @property
    def is_holding(self) -> bool:
        return self._state.is_holding

    def process_event(self, event: KeyEvent) -> Intent | None:
        """
        Consume one key event.

        Args:
            event: The raw key event.

        Returns:
            The intent recognized by this event, if any.
        """
        if self._mode == GestureMode.CHORD:
            intent = self._process_chord(event)
        else:
            intent = self._process_hold(event)

        if intent is not None:
            logger.debug("Gesture %s at %d ms", intent.value, event.timestamp_ms)
        return intent

    def _process_hold(self, event: KeyEvent) -> Intent | None:
        state = self._state

        if event.key.is_shift:
            if event.is_down:
                if state.is_holding:
                    return None  # auto-repeat
                if (
                    state.last_release_was_shift
                    and state.last_shift_down_at is not None
                    and event.timestamp_ms - state.last_shift_down_at < self._window_ms
                ):
                    return self._start()
                # Each Shift release pairs with at most one following press.
                state.last_shift_down_at = event.timestamp_ms
                state.last_release_was_shift = False
                return None

            if state.is_holding:
                return self._stop(event.timestamp_ms)
            state.last_release_was_shift = True
            return None

        if event.key == KeyIdentity.ESCAPE:
            return self._escape(event)

        state.last_release_was_shift = False
        return None

    def _process_chord(self, event: KeyEvent) -> Intent | None:
        if event.key == KeyIdentity.CHORD:
            if event.is_down:
                if self._state.is_holding:
                    return self._stop(event.timestamp_ms)
                return self._start()
            if self._state.is_holding:
                return self._stop(event.timestamp_ms)
            return None

        if event.key == KeyIdentity.ESCAPE:
            return self._escape(event)
        return None

    def _escape(self, event: KeyEvent) -> Intent | None:
        if not event.is_down or self._state.is_holding:
            return None
        # A stop at the same instant wins over the cancel.
        if self._last_stop_at == event.timestamp_ms:
            return None
        self._state.reset()
        return Intent.CANCEL

    def _start(self) -> Intent:
        self._state.reset()
        self._state.is_holding = True
        return Intent.START_RECORDING

    def _stop(self, timestamp_ms: int) -> Intent:
        self._state.is_holding = False
        self._state.last_release_was_shift = False
        self._last_stop_at = timestamp_ms
        return Intent.STOP_RECORDING
