"""OS-specific external process adapter.

Every capability the session needs from the operating system goes through a
``Platform``: starting and stopping the recorder, muting output, desktop
notifications, feedback beeps and typing text into the focused window.
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import sys
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from typr.audio import play_tone
from typr.errors import ConfigurationError, RecorderError
from typr.output import OutputHandler, create_output_handler

if TYPE_CHECKING:
    from typr.config import Config, ToneConfig

logger = logging.getLogger(__name__)

APP_NAME = "Typr"
COSMETIC_TIMEOUT_SECONDS = 5


class Urgency(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    CRITICAL = "critical"


@dataclass
class RecorderHandle:
    process: subprocess.Popen
    path: Path

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def is_running(self) -> bool:
        return self.process.poll() is None

    def wait(self, timeout: float | None = None) -> int | None:
        try:
            return self.process.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            return None


def process_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


def signal_recorder(pid: int) -> bool:
    """Ask a recorder owned by another process to finish; True if signalled."""
    try:
        os.kill(pid, signal.SIGTERM)
    except OSError as e:
        logger.error("Failed to signal recorder %d: %s", pid, e)
        return False
    logger.info("Sent SIGTERM to recorder %d", pid)
    return True


class Platform(ABC):
    """Capability interface over the OS command-line tools."""

    name = "generic"

    def __init__(
        self,
        tones: "ToneConfig",
        output: OutputHandler | None = None,
    ) -> None:
        self._tones = tones
        self._output = output

    @abstractmethod
    def recorder_command(self, path: Path) -> list[str]: ...

    @abstractmethod
    def mute_command(self, muted: bool) -> list[str]: ...

    @abstractmethod
    def notify_command(self, message: str, urgency: Urgency) -> list[str]: ...

    @abstractmethod
    def type_command(self, text: str) -> list[str]: ...

    def set_output(self, output: OutputHandler) -> None:
        self._output = output

    def start_recorder(self, path: Path) -> RecorderHandle:
        command = self.recorder_command(path)
        try:
            process = subprocess.Popen(
                command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as e:
            raise RecorderError(f"Failed to start {command[0]}: {e}") from e
        logger.info("Recorder %s started (pid %d) -> %s", command[0], process.pid, path)
        return RecorderHandle(process=process, path=path)

    def stop_recorder(self, handle: RecorderHandle, timeout: float = 5.0) -> None:
        """Terminate gracefully so the recorder can flush its output file."""
        if handle.is_running:
            handle.process.terminate()
        if handle.wait(timeout) is None:
            logger.warning("Recorder %d ignored SIGTERM, killing it", handle.pid)
            handle.process.kill()
            handle.wait(timeout)
        logger.info("Recorder %d exited with code %s", handle.pid, handle.process.returncode)

    def mute(self) -> None:
        self._run_quietly(self.mute_command(True))

    def unmute(self) -> None:
        self._run_quietly(self.mute_command(False))

    def notify(self, message: str, urgency: Urgency = Urgency.NORMAL) -> None:
        if not self._run_quietly(self.notify_command(message, urgency)):
            print(f"🔔 {message}")

    def beep(self) -> None:
        try:
            play_tone(self._tones, self._tones.start_hz, blocking=True)
        except Exception as e:
            logger.warning("Failed to play beep: %s", e)

    def double_beep(self) -> None:
        try:
            play_tone(self._tones, self._tones.stop_hz, blocking=True)
            time.sleep(self._tones.gap_s)
            play_tone(self._tones, self._tones.stop_hz, blocking=True)
        except Exception as e:
            logger.warning("Failed to play double beep: %s", e)

    def inject_text(self, text: str, timeout: float | None = None) -> None:
        output = self._output or create_output_handler_for(self)
        logger.info("Typing %d characters", len(text))
        output.output(text, timeout)

    def _run_quietly(self, command: list[str]) -> bool:
        try:
            subprocess.run(
                command,
                check=True,
                capture_output=True,
                timeout=COSMETIC_TIMEOUT_SECONDS,
            )
        except (OSError, subprocess.SubprocessError) as e:
            logger.warning("%s failed: %s", command[0], e)
            return False
        return True


class LinuxPlatform(Platform):
    name = "linux"

    def recorder_command(self, path: Path) -> list[str]:
        return [
            "ffmpeg",
            "-f", "pulse",
            "-i", "default",
            "-acodec", "pcm_s16le",
            "-ar", "16000",
            "-ac", "1",
            "-y",
            str(path),
        ]

    def mute_command(self, muted: bool) -> list[str]:
        return ["pactl", "set-sink-mute", "@DEFAULT_SINK@", "1" if muted else "0"]

    def notify_command(self, message: str, urgency: Urgency) -> list[str]:
        return ["notify-send", "--urgency", urgency.value, "--app-name", APP_NAME, message]

    def type_command(self, text: str) -> list[str]:
        return ["xdotool", "type", "--clearmodifiers", "--", text]


def applescript_string(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


class MacPlatform(Platform):
    name = "darwin"

    def recorder_command(self, path: Path) -> list[str]:
        return ["rec", "-q", str(path), "rate", "16k", "channels", "1"]

    def mute_command(self, muted: bool) -> list[str]:
        state = "with" if muted else "without"
        return ["osascript", "-e", f"set volume {state} output muted"]

    def notify_command(self, message: str, urgency: Urgency) -> list[str]:
        script = (
            f"display notification {applescript_string(message)} "
            f"with title {applescript_string(APP_NAME)}"
        )
        if urgency == Urgency.CRITICAL:
            script += ' sound name "Basso"'
        return ["osascript", "-e", script]

    def type_command(self, text: str) -> list[str]:
        return [
            "osascript",
            "-e",
            f'tell application "System Events" to keystroke {applescript_string(text)}',
        ]


def create_output_handler_for(platform: Platform, mode=None) -> OutputHandler:
    from typr.config import OutputMode

    return create_output_handler(mode or OutputMode.TYPE, platform.type_command)


def create_platform(config: "Config", system: str | None = None) -> Platform:
    """
    Pick the platform implementation for the running OS.

    Args:
        config: Application configuration.
        system: Override for ``sys.platform`` (tests).

    Returns:
        A configured platform adapter.
    """
    system = system or sys.platform
    if system == "darwin":
        platform: Platform = MacPlatform(config.tones)
    elif system.startswith("linux"):
        platform = LinuxPlatform(config.tones)
    else:
        raise ConfigurationError(
            f"Unsupported OS: {system}. Only Linux and macOS are supported."
        )
    platform.set_output(create_output_handler_for(platform, config.output_mode))
    return platform
