"""Output handlers for transcribed text."""

from __future__ import annotations

import logging
import subprocess
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Callable

import pyperclip

from typr.errors import InjectionError

if TYPE_CHECKING:
    from typr.config import OutputMode

logger = logging.getLogger(__name__)


class OutputHandler(ABC):
    """Abstract base class for output handlers."""

    @abstractmethod
    def output(self, text: str, timeout: float | None = None) -> None:
        """Deliver the text; raise InjectionError if it could not be delivered."""
        ...


class ClipboardOutput(OutputHandler):
    """Outputs text to the system clipboard."""

    def output(self, text: str, timeout: float | None = None) -> None:
        try:
            pyperclip.copy(text)
        except pyperclip.PyperclipException as e:
            raise InjectionError(f"Clipboard unavailable: {e}") from e


class CommandOutput(OutputHandler):
    """Types text into the focused window through an OS typing tool."""

    def __init__(self, build_command: Callable[[str], list[str]]) -> None:
        self._build_command = build_command

    def output(self, text: str, timeout: float | None = None) -> None:
        command = self._build_command(text)
        try:
            subprocess.run(command, check=True, capture_output=True, timeout=timeout)
        except FileNotFoundError as e:
            raise InjectionError(f"{command[0]} not found") from e
        except subprocess.TimeoutExpired as e:
            raise InjectionError(f"{command[0]} timed out after {timeout}s") from e
        except subprocess.CalledProcessError as e:
            stderr = e.stderr.decode(errors="replace").strip() if e.stderr else ""
            raise InjectionError(f"{command[0]} failed: {stderr or e}") from e


class CompositeOutput(OutputHandler):
    """
    Primary handler followed by best-effort backups.

    Only the primary handler's failure is reported to the caller.
    """

    def __init__(self, primary: OutputHandler, *backups: OutputHandler) -> None:
        self._primary = primary
        self._backups = backups

    def output(self, text: str, timeout: float | None = None) -> None:
        for handler in self._backups:
            try:
                handler.output(text, timeout)
            except Exception as e:
                logger.warning("Output handler %s failed: %s", type(handler).__name__, e)
        self._primary.output(text, timeout)


def create_output_handler(
    mode: "OutputMode",
    build_command: Callable[[str], list[str]],
) -> OutputHandler:
    """
    Create an output handler based on the configured mode.

    Args:
        mode: The output mode.
        build_command: Builds the typing command for the current platform.

    Returns:
        An appropriate output handler.
    """
    from typr.config import OutputMode

    clipboard = ClipboardOutput()

    if mode == OutputMode.CLIPBOARD:
        return clipboard

    # TYPE mode: type into window + clipboard backup
    return CompositeOutput(CommandOutput(build_command), clipboard)
