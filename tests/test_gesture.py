"""Tests for the gesture module."""

from __future__ import annotations

import pytest

from typr.config import GestureMode
from typr.gesture import GestureDetector, Intent, KeyEvent, KeyIdentity, KeyTransition

DOWN = KeyTransition.DOWN
UP = KeyTransition.UP
SHIFT = KeyIdentity.SHIFT_LEFT


def feed(detector: GestureDetector, *events: tuple[KeyIdentity, KeyTransition, int]) -> list[Intent]:
    """Feed events and collect the intents they produce."""
    intents = []
    for key, transition, ts in events:
        intent = detector.process_event(KeyEvent(key, transition, ts))
        if intent is not None:
            intents.append(intent)
    return intents


@pytest.fixture
def hold() -> GestureDetector:
    return GestureDetector(GestureMode.HOLD, double_tap_window_ms=300)


@pytest.fixture
def chord() -> GestureDetector:
    return GestureDetector(GestureMode.CHORD)


class TestHoldMode:
    """Tests for double-tap-and-hold Shift."""

    def test_double_tap_and_hold_starts(self, hold: GestureDetector) -> None:
        """Test the second Shift press inside the window starts recording."""
        intents = feed(hold, (SHIFT, DOWN, 0), (SHIFT, UP, 80), (SHIFT, DOWN, 200))

        assert intents == [Intent.START_RECORDING]
        assert hold.is_holding

    def test_release_stops(self, hold: GestureDetector) -> None:
        """Test releasing Shift after the gesture stops recording."""
        intents = feed(
            hold,
            (SHIFT, DOWN, 0), (SHIFT, UP, 80), (SHIFT, DOWN, 200), (SHIFT, UP, 4000),
        )

        assert intents == [Intent.START_RECORDING, Intent.STOP_RECORDING]
        assert not hold.is_holding

    def test_slow_double_tap_ignored(self, hold: GestureDetector) -> None:
        """Test a second press outside the window does not start."""
        assert feed(hold, (SHIFT, DOWN, 0), (SHIFT, UP, 80), (SHIFT, DOWN, 400)) == []

    def test_window_is_exclusive(self, hold: GestureDetector) -> None:
        """Test a press exactly at the window edge does not start."""
        assert feed(hold, (SHIFT, DOWN, 0), (SHIFT, UP, 80), (SHIFT, DOWN, 300)) == []

    def test_slow_press_becomes_first_tap(self, hold: GestureDetector) -> None:
        """Test a late press opens a new window of its own."""
        intents = feed(
            hold,
            (SHIFT, DOWN, 0), (SHIFT, UP, 80), (SHIFT, DOWN, 400),
            (SHIFT, UP, 450), (SHIFT, DOWN, 600),
        )

        assert intents == [Intent.START_RECORDING]

    def test_single_press_and_hold_does_nothing(self, hold: GestureDetector) -> None:
        """Test holding Shift for typing never records."""
        assert feed(hold, (SHIFT, DOWN, 0), (SHIFT, UP, 3000)) == []

    def test_other_key_breaks_double_tap(self, hold: GestureDetector) -> None:
        """Test typing a capital letter between taps does not start."""
        intents = feed(
            hold,
            (SHIFT, DOWN, 0), (SHIFT, UP, 50),
            (KeyIdentity.OTHER, DOWN, 80), (KeyIdentity.OTHER, UP, 100),
            (SHIFT, DOWN, 150),
        )

        assert intents == []

    def test_left_and_right_shift_combine(self, hold: GestureDetector) -> None:
        """Test either Shift key counts toward the gesture."""
        intents = feed(
            hold,
            (KeyIdentity.SHIFT_LEFT, DOWN, 0),
            (KeyIdentity.SHIFT_LEFT, UP, 50),
            (KeyIdentity.SHIFT_RIGHT, DOWN, 120),
        )

        assert intents == [Intent.START_RECORDING]

    def test_auto_repeat_ignored(self, hold: GestureDetector) -> None:
        """Test repeated key-down while holding emits nothing."""
        feed(hold, (SHIFT, DOWN, 0), (SHIFT, UP, 80), (SHIFT, DOWN, 200))
        repeats = feed(hold, (SHIFT, DOWN, 700), (SHIFT, DOWN, 730), (SHIFT, DOWN, 760))

        assert repeats == []
        assert hold.is_holding

    def test_state_reset_after_start(self, hold: GestureDetector) -> None:
        """Test the tap history is cleared once recording starts."""
        feed(hold, (SHIFT, DOWN, 0), (SHIFT, UP, 80), (SHIFT, DOWN, 200))

        assert hold.state.last_shift_down_at is None
        assert hold.state.last_release_was_shift is False

    def test_stop_then_quick_press_needs_new_double_tap(self, hold: GestureDetector) -> None:
        """Test one press right after a stop does not restart."""
        feed(hold, (SHIFT, DOWN, 0), (SHIFT, UP, 80), (SHIFT, DOWN, 200), (SHIFT, UP, 2000))

        assert feed(hold, (SHIFT, DOWN, 2100)) == []

    def test_late_press_after_stray_tap_needs_new_release(self, hold: GestureDetector) -> None:
        """Test repeated presses long after a release never start recording."""
        intents = feed(
            hold,
            (SHIFT, DOWN, 0), (SHIFT, UP, 50),
            (SHIFT, DOWN, 1000), (SHIFT, DOWN, 1500), (SHIFT, DOWN, 1533),
        )

        assert intents == []
        assert not hold.is_holding

    def test_other_shift_pressed_after_window_ignored(self, hold: GestureDetector) -> None:
        """Test pressing the second Shift while the first is held does not start."""
        intents = feed(
            hold,
            (SHIFT, DOWN, 0), (SHIFT, UP, 50),
            (KeyIdentity.SHIFT_LEFT, DOWN, 2000), (KeyIdentity.SHIFT_RIGHT, DOWN, 2100),
        )

        assert intents == []


class TestEscape:
    """Tests for the cancel gesture."""

    def test_escape_cancels(self, hold: GestureDetector) -> None:
        """Test Escape press when not holding emits cancel."""
        assert feed(hold, (KeyIdentity.ESCAPE, DOWN, 10)) == [Intent.CANCEL]

    def test_escape_release_ignored(self, hold: GestureDetector) -> None:
        """Test Escape release emits nothing."""
        assert feed(hold, (KeyIdentity.ESCAPE, UP, 10)) == []

    def test_escape_while_holding_ignored(self, hold: GestureDetector) -> None:
        """Test Escape during a hold does not cancel."""
        feed(hold, (SHIFT, DOWN, 0), (SHIFT, UP, 80), (SHIFT, DOWN, 200))

        assert feed(hold, (KeyIdentity.ESCAPE, DOWN, 500)) == []
        assert hold.is_holding

    def test_escape_resets_taps(self, hold: GestureDetector) -> None:
        """Test Escape between taps breaks the double tap."""
        intents = feed(
            hold, (SHIFT, DOWN, 0), (SHIFT, UP, 50), (KeyIdentity.ESCAPE, DOWN, 60), (SHIFT, DOWN, 100)
        )

        assert intents == [Intent.CANCEL]

    def test_stop_wins_over_escape_at_same_instant(self, hold: GestureDetector) -> None:
        """Test an Escape with the same timestamp as the stop is dropped."""
        intents = feed(
            hold,
            (SHIFT, DOWN, 0), (SHIFT, UP, 80), (SHIFT, DOWN, 200),
            (SHIFT, UP, 1000), (KeyIdentity.ESCAPE, DOWN, 1000),
        )

        assert intents == [Intent.START_RECORDING, Intent.STOP_RECORDING]

    def test_escape_after_stop_cancels(self, hold: GestureDetector) -> None:
        """Test a later Escape still cancels the finishing session."""
        intents = feed(
            hold,
            (SHIFT, DOWN, 0), (SHIFT, UP, 80), (SHIFT, DOWN, 200),
            (SHIFT, UP, 1000), (KeyIdentity.ESCAPE, DOWN, 1001),
        )

        assert intents[-1] == Intent.CANCEL


class TestChordMode:
    """Tests for chord toggling."""

    def test_chord_toggles(self, chord: GestureDetector) -> None:
        """Test two chord presses start then stop."""
        intents = feed(chord, (KeyIdentity.CHORD, DOWN, 0), (KeyIdentity.CHORD, DOWN, 3000))

        assert intents == [Intent.START_RECORDING, Intent.STOP_RECORDING]

    def test_chord_release_stops(self, chord: GestureDetector) -> None:
        """Test a chord release while recording stops."""
        intents = feed(chord, (KeyIdentity.CHORD, DOWN, 0), (KeyIdentity.CHORD, UP, 3000))

        assert intents == [Intent.START_RECORDING, Intent.STOP_RECORDING]

    def test_chord_release_while_idle_ignored(self, chord: GestureDetector) -> None:
        """Test a stray release does nothing."""
        assert feed(chord, (KeyIdentity.CHORD, UP, 0)) == []

    def test_shift_ignored(self, chord: GestureDetector) -> None:
        """Test Shift taps are not gestures in chord mode."""
        assert feed(chord, (SHIFT, DOWN, 0), (SHIFT, UP, 50), (SHIFT, DOWN, 100)) == []

    def test_escape_cancels_when_not_recording(self, chord: GestureDetector) -> None:
        """Test Escape cancels in chord mode too."""
        assert feed(chord, (KeyIdentity.ESCAPE, DOWN, 0)) == [Intent.CANCEL]

    def test_escape_while_recording_ignored(self, chord: GestureDetector) -> None:
        """Test Escape during a chord recording is ignored."""
        intents = feed(chord, (KeyIdentity.CHORD, DOWN, 0), (KeyIdentity.ESCAPE, DOWN, 100))

        assert intents == [Intent.START_RECORDING]


def test_key_identity_is_shift() -> None:
    """Test only the two Shift keys count as Shift."""
    assert KeyIdentity.SHIFT_LEFT.is_shift
    assert KeyIdentity.SHIFT_RIGHT.is_shift
    assert not KeyIdentity.ESCAPE.is_shift
    assert not KeyIdentity.OTHER.is_shift
