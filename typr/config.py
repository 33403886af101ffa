"""Configuration for the Typr application."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typr.types import SettingsFile

logger = logging.getLogger(__name__)

HOME = Path(os.environ.get("HOME") or ".")

DEFAULT_SETTINGS_FILE = HOME / ".typr-settings.json"
DEFAULT_STATE_FILE = HOME / ".typr-state.json"
DEFAULT_LOG_FILE = HOME / ".typr-log.txt"

DEFAULT_TRANSCRIPTION_PROMPT = (
    "The following is a transcription of a dictation from a speaker who is XXX. "
    "The speaker sometimes discusses the following topics: YYY. "
    "The speaker sometimes uses the following uncommon terms: ZZZ."
)

DEFAULT_REWRITE_PROMPT = (
    "You are a helpful assistant that will carefully examine the following "
    "transcription of a dictation and then carefully make the modifications "
    "requested of the editor."
)

TRUE_VALUES = ("1", "true", "yes")


class OutputMode(str, Enum):
    TYPE = "type"
    CLIPBOARD = "clipboard"


class GestureMode(str, Enum):
    HOLD = "hold"
    CHORD = "chord"


class RewriteMode(str, Enum):
    DIRECTIVE = "directive"
    ALWAYS = "always"
    NEVER = "never"


@dataclass
class GestureConfig:
    mode: GestureMode = GestureMode.HOLD
    double_tap_window_ms: int = 300
    chord: str = "<cmd>+<shift>+<space>"


@dataclass
class SessionConfig:
    min_recording_s: float = 1.0
    min_transcript_chars: int = 10
    adapter_timeout_s: float | None = 120.0
    recorder_stop_timeout_s: float = 5.0
    mute_while_recording: bool = True
    rewrite_mode: RewriteMode = RewriteMode.DIRECTIVE


@dataclass
class ToneConfig:
    enabled: bool = True
    start_hz: int = 880
    stop_hz: int = 440
    duration_s: float = 0.04
    volume: float = 0.15
    gap_s: float = 0.15


@dataclass
class Config:
    gesture: GestureConfig = field(default_factory=GestureConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    tones: ToneConfig = field(default_factory=ToneConfig)
    output_mode: OutputMode = OutputMode.TYPE
    settings_file: Path = DEFAULT_SETTINGS_FILE
    state_file: Path = DEFAULT_STATE_FILE
    log_file: Path | None = DEFAULT_LOG_FILE
    verbose: bool = False

    @classmethod
    def from_env(cls) -> "Config":
        config = cls()

        if mode := os.environ.get("TYPR_GESTURE_MODE"):
            config.gesture.mode = GestureMode(mode.lower())

        if window := os.environ.get("TYPR_DOUBLE_TAP_MS"):
            config.gesture.double_tap_window_ms = int(window)

        if chord := os.environ.get("TYPR_CHORD"):
            config.gesture.chord = chord

        if mode := os.environ.get("TYPR_OUTPUT_MODE"):
            config.output_mode = OutputMode(mode.lower())

        if mode := os.environ.get("TYPR_REWRITE_MODE"):
            try:
                config.session.rewrite_mode = RewriteMode(mode.lower())
            except ValueError:
                pass  # Keep default if invalid value

        if timeout := os.environ.get("TYPR_ADAPTER_TIMEOUT"):
            value = float(timeout)
            config.session.adapter_timeout_s = value if value > 0 else None

        if mute := os.environ.get("TYPR_MUTE"):
            config.session.mute_while_recording = mute.lower() in TRUE_VALUES

        if tones := os.environ.get("TYPR_TONES"):
            config.tones.enabled = tones.lower() in TRUE_VALUES

        if path := os.environ.get("TYPR_SETTINGS_FILE"):
            config.settings_file = Path(path).expanduser()

        if path := os.environ.get("TYPR_STATE_FILE"):
            config.state_file = Path(path).expanduser()

        if path := os.environ.get("TYPR_LOG_FILE"):
            config.log_file = None if path.lower() == "none" else Path(path).expanduser()

        if verbose := os.environ.get("TYPR_VERBOSE"):
            config.verbose = verbose.lower() in TRUE_VALUES

        return config


# JSON key <-> attribute name
SETTINGS_KEYS = {
    "apiKey": "api_key",
    "transcriptionPrompt": "transcription_prompt",
    "rewriteInstructionPrompt": "rewrite_instruction_prompt",
    "useLocalEngine": "use_local_engine",
    "substitutions": "substitutions",
}


@dataclass
class Settings:
    """User settings persisted as JSON next to the user's home directory."""

    api_key: str = ""
    transcription_prompt: str = DEFAULT_TRANSCRIPTION_PROMPT
    rewrite_instruction_prompt: str = DEFAULT_REWRITE_PROMPT
    use_local_engine: bool = False
    substitutions: dict[str, str] = field(default_factory=lambda: {"slap": "\n"})

    @property
    def effective_api_key(self) -> str:
        return self.api_key or os.environ.get("OPENAI_API_KEY", "")

    def to_json(self) -> "SettingsFile":
        values = asdict(self)
        return {key: values[attr] for key, attr in SETTINGS_KEYS.items()}

    @classmethod
    def from_json(cls, data: "SettingsFile | dict") -> "Settings":
        """Build settings from a JSON mapping, falling back to defaults per field."""
        settings = cls()
        for key, attr in SETTINGS_KEYS.items():
            if key not in data:
                continue
            value = data[key]
            default = getattr(settings, attr)
            if isinstance(default, dict):
                valid = isinstance(value, dict) and all(
                    isinstance(k, str) and isinstance(v, str) for k, v in value.items()
                )
            else:
                valid = type(value) is type(default)
            if not valid:
                logger.warning("Ignoring invalid value for setting %s: %r", key, value)
                continue
            setattr(settings, attr, value)
        return settings

    @classmethod
    def load(cls, path: Path = DEFAULT_SETTINGS_FILE) -> "Settings":
        """
        Load settings from disk, creating the file with defaults if absent.

        Args:
            path: Location of the settings JSON file.

        Returns:
            The loaded settings.
        """
        if not path.exists():
            settings = cls()
            settings.save(path)
            logger.info("Created default settings at %s", path)
            return settings

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            logger.error("Failed to read settings %s: %s", path, e)
            return cls()

        if not isinstance(data, dict):
            logger.error("Settings file %s does not hold a JSON object", path)
            return cls()
        return cls.from_json(data)

    def save(self, path: Path = DEFAULT_SETTINGS_FILE) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self.to_json(), indent=2), encoding="utf-8")
