"""Key event sources feeding the gesture detector."""

from __future__ import annotations

import logging
import queue
import re
import subprocess
import threading
import time
from typing import TYPE_CHECKING, Protocol

from typr.gesture import KeyEvent, KeyIdentity, KeyTransition

if TYPE_CHECKING:
    from pynput import keyboard

logger = logging.getLogger(__name__)

XINPUT_COMMAND = ["xinput", "test-xi2", "--root"]

# X11 keycodes reported by xinput
XINPUT_KEYCODES = {
    50: KeyIdentity.SHIFT_LEFT,
    62: KeyIdentity.SHIFT_RIGHT,
    9: KeyIdentity.ESCAPE,
}

_EVENT_RE = re.compile(r"^EVENT type \d+ \((\w+)\)")
_DETAIL_RE = re.compile(r"^\s*detail:\s*(\d+)")


def now_ms() -> int:
    return int(time.time() * 1000)


class KeyEventSource(Protocol):
    def next_event(self, timeout: float | None = None) -> KeyEvent | None: ...

    def close(self) -> None: ...


class QueueKeySource:
    """Key source backed by a thread-safe queue; ``push`` from any thread."""

    def __init__(self) -> None:
        self._queue: queue.Queue[KeyEvent | None] = queue.Queue()
        self._closed = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def push(self, event: KeyEvent) -> None:
        if self._closed.is_set():
            return
        self._queue.put(event)

    def next_event(self, timeout: float | None = None) -> KeyEvent | None:
        if self._closed.is_set() and self._queue.empty():
            return None
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def close(self) -> None:
        if self._closed.is_set():
            return
        self._closed.set()
        self._queue.put(None)  # Unblock a waiting reader


class PynputKeySource(QueueKeySource):
    """Global keyboard hook based on pynput."""

    def __init__(self, chord: str | None = None) -> None:
        super().__init__()
        from pynput import keyboard

        self._keyboard = keyboard
        self._hotkey = (
            keyboard.HotKey(keyboard.HotKey.parse(chord), self._on_chord)
            if chord
            else None
        )
        self._listener = keyboard.Listener(
            on_press=self._on_press,
            on_release=self._on_release,
        )

    def start(self) -> None:
        self._listener.start()

    def close(self) -> None:
        self._listener.stop()
        super().close()

    def identify(self, key: "keyboard.Key | keyboard.KeyCode | None") -> KeyIdentity:
        Key = self._keyboard.Key
        if key in (Key.shift, Key.shift_l):
            return KeyIdentity.SHIFT_LEFT
        if key == Key.shift_r:
            return KeyIdentity.SHIFT_RIGHT
        if key == Key.esc:
            return KeyIdentity.ESCAPE
        return KeyIdentity.OTHER

    def _on_press(self, key: "keyboard.Key | keyboard.KeyCode | None") -> None:
        self.push(KeyEvent(self.identify(key), KeyTransition.DOWN, now_ms()))
        if self._hotkey is not None:
            self._hotkey.press(self._listener.canonical(key))

    def _on_release(self, key: "keyboard.Key | keyboard.KeyCode | None") -> None:
        self.push(KeyEvent(self.identify(key), KeyTransition.UP, now_ms()))
        if self._hotkey is not None:
            self._hotkey.release(self._listener.canonical(key))

    def _on_chord(self) -> None:
        self.push(KeyEvent(KeyIdentity.CHORD, KeyTransition.DOWN, now_ms()))


class XInputParser:
    """
    Incremental parser for ``xinput test-xi2 --root`` output.

    Each raw key event spans several lines: an ``EVENT type N (RawKeyPress)``
    header followed, a few lines later, by ``detail: <keycode>``.
    """

    def __init__(self) -> None:
        self._pending: KeyTransition | None = None

    def feed(self, line: str, timestamp_ms: int | None = None) -> KeyEvent | None:
        if match := _EVENT_RE.match(line):
            kind = match.group(1)
            if kind == "RawKeyPress":
                self._pending = KeyTransition.DOWN
            elif kind == "RawKeyRelease":
                self._pending = KeyTransition.UP
            else:
                self._pending = None
            return None

        if self._pending is None:
            return None

        if match := _DETAIL_RE.match(line):
            transition = self._pending
            self._pending = None
            key = XINPUT_KEYCODES.get(int(match.group(1)), KeyIdentity.OTHER)
            return KeyEvent(key, transition, timestamp_ms if timestamp_ms is not None else now_ms())
        return None


class XInputKeySource(QueueKeySource):
    """Reads raw key events from the X server through the xinput tool."""

    def __init__(self, command: list[str] | None = None) -> None:
        super().__init__()
        self._command = command or XINPUT_COMMAND
        self._process: subprocess.Popen[str] | None = None
        self._reader: threading.Thread | None = None

    def start(self) -> None:
        self._process = subprocess.Popen(
            self._command,
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            text=True,
        )
        self._reader = threading.Thread(target=self._read_loop, daemon=True)
        self._reader.start()

    def _read_loop(self) -> None:
        assert self._process is not None and self._process.stdout is not None
        parser = XInputParser()
        for line in self._process.stdout:
            if event := parser.feed(line):
                self.push(event)
        logger.info("xinput exited with code %s", self._process.poll())
        super().close()

    def close(self) -> None:
        if self._process and self._process.poll() is None:
            self._process.terminate()
        super().close()
