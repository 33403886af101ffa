"""Exception taxonomy for Typr."""

from __future__ import annotations


class TyprError(Exception):
    """Base class for all Typr errors."""


class ConfigurationError(TyprError):
    """Raised when the application cannot be initialized from its settings."""


class RecorderError(TyprError):
    """The recorder process could not be started."""


class InjectionError(TyprError):
    """Text could not be injected into the focused application."""


class TranscriptionError(TyprError):
    """Base class for transcription failures that end a session."""


class TranscriptionFailed(TranscriptionError):
    """The engine was unreachable or returned a non-success status."""


class TranscriptionEmpty(TranscriptionError):
    """The engine answered, but with too little text to be useful."""

    def __init__(self, text: str, min_chars: int) -> None:
        super().__init__(
            f"Transcription too short ({len(text.strip())} < {min_chars} chars)"
        )
        self.text = text
        self.min_chars = min_chars


class InvalidTransition(TyprError, RuntimeError):
    """A session tried to move between two states that are not connected."""
