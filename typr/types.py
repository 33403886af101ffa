"""Type definitions for the Typr application."""

from __future__ import annotations

from typing import Literal, TypedDict


class KeyBridgeMessage(TypedDict, total=False):
    """Event posted to the HTTP key bridge."""

    isActive: bool
    type: Literal["escape"]


class HealthCheck(TypedDict):
    """Health check response."""

    status: Literal["healthy", "unhealthy"]
    accepting: bool


class SettingsFile(TypedDict, total=False):
    """Contents of the settings file."""

    apiKey: str
    transcriptionPrompt: str
    rewriteInstructionPrompt: str
    useLocalEngine: bool
    substitutions: dict[str, str]
