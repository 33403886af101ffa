"""Tests for the config module."""

from __future__ import annotations

import json
import os
from pathlib import Path

import pytest

from typr.config import (
    Config,
    GestureMode,
    OutputMode,
    RewriteMode,
    SessionConfig,
    Settings,
)


class TestConfig:
    """Tests for Config defaults and environment loading."""

    def test_defaults(self) -> None:
        """Test default configuration values."""
        config = Config()
        assert config.gesture.mode == GestureMode.HOLD
        assert config.gesture.double_tap_window_ms == 300
        assert config.output_mode == OutputMode.TYPE
        assert config.session.min_recording_s == 1.0
        assert config.session.min_transcript_chars == 10
        assert config.session.rewrite_mode == RewriteMode.DIRECTIVE
        assert config.verbose is False

    def test_session_config_defaults(self) -> None:
        """Test session limits."""
        session = SessionConfig()
        assert session.mute_while_recording is True
        assert session.adapter_timeout_s == 120.0

    def test_from_env_default(self, clean_env: None) -> None:
        """Test Config.from_env with no environment variables."""
        config = Config.from_env()
        assert config.gesture.mode == GestureMode.HOLD
        assert config.output_mode == OutputMode.TYPE

    def test_from_env_gesture(self, clean_env: None) -> None:
        """Test gesture settings from the environment."""
        os.environ["TYPR_GESTURE_MODE"] = "CHORD"
        os.environ["TYPR_DOUBLE_TAP_MS"] = "450"
        os.environ["TYPR_CHORD"] = "<ctrl>+<alt>+d"

        config = Config.from_env()
        assert config.gesture.mode == GestureMode.CHORD
        assert config.gesture.double_tap_window_ms == 450
        assert config.gesture.chord == "<ctrl>+<alt>+d"

    def test_from_env_output_mode(self, clean_env: None) -> None:
        """Test output mode from the environment."""
        os.environ["TYPR_OUTPUT_MODE"] = "clipboard"
        assert Config.from_env().output_mode == OutputMode.CLIPBOARD

    def test_from_env_rewrite_mode(self, clean_env: None) -> None:
        """Test rewrite mode from the environment."""
        os.environ["TYPR_REWRITE_MODE"] = "always"
        assert Config.from_env().session.rewrite_mode == RewriteMode.ALWAYS

    def test_from_env_invalid_rewrite_mode(self, clean_env: None) -> None:
        """Test an unknown rewrite mode keeps the default."""
        os.environ["TYPR_REWRITE_MODE"] = "sometimes"
        assert Config.from_env().session.rewrite_mode == RewriteMode.DIRECTIVE

    def test_from_env_timeout(self, clean_env: None) -> None:
        """Test a non-positive timeout disables it."""
        os.environ["TYPR_ADAPTER_TIMEOUT"] = "30"
        assert Config.from_env().session.adapter_timeout_s == 30.0

        os.environ["TYPR_ADAPTER_TIMEOUT"] = "0"
        assert Config.from_env().session.adapter_timeout_s is None

    @pytest.mark.parametrize("value,expected", [("1", True), ("true", True), ("no", False)])
    def test_from_env_flags(self, clean_env: None, value: str, expected: bool) -> None:
        """Test boolean flags from the environment."""
        os.environ["TYPR_VERBOSE"] = value
        os.environ["TYPR_MUTE"] = value
        os.environ["TYPR_TONES"] = value

        config = Config.from_env()
        assert config.verbose is expected
        assert config.session.mute_while_recording is expected
        assert config.tones.enabled is expected

    def test_from_env_paths(self, clean_env: None, tmp_path: Path) -> None:
        """Test file locations from the environment."""
        os.environ["TYPR_SETTINGS_FILE"] = str(tmp_path / "settings.json")
        os.environ["TYPR_STATE_FILE"] = str(tmp_path / "state.json")
        os.environ["TYPR_LOG_FILE"] = "none"

        config = Config.from_env()
        assert config.settings_file == tmp_path / "settings.json"
        assert config.state_file == tmp_path / "state.json"
        assert config.log_file is None


class TestSettings:
    """Tests for the persisted user settings."""

    def test_defaults(self) -> None:
        """Test default settings."""
        settings = Settings()
        assert settings.api_key == ""
        assert settings.use_local_engine is False
        assert settings.substitutions == {"slap": "\n"}

    def test_load_creates_file(self, tmp_path: Path) -> None:
        """Test a missing settings file is created with defaults."""
        path = tmp_path / "settings.json"
        settings = Settings.load(path)

        assert path.exists()
        data = json.loads(path.read_text())
        assert data["apiKey"] == ""
        assert data["substitutions"] == {"slap": "\n"}
        assert settings == Settings()

    def test_load_camel_case(self, tmp_path: Path) -> None:
        """Test JSON keys map to settings fields."""
        path = tmp_path / "settings.json"
        path.write_text(
            json.dumps(
                {
                    "apiKey": "sk-test",
                    "transcriptionPrompt": "Terms: pytest",
                    "rewriteInstructionPrompt": "Be brief.",
                    "useLocalEngine": True,
                    "substitutions": {"period": "."},
                }
            )
        )

        settings = Settings.load(path)
        assert settings.api_key == "sk-test"
        assert settings.transcription_prompt == "Terms: pytest"
        assert settings.rewrite_instruction_prompt == "Be brief."
        assert settings.use_local_engine is True
        assert settings.substitutions == {"period": "."}

    def test_invalid_fields_use_defaults(self, tmp_path: Path) -> None:
        """Test fields of the wrong type are ignored one by one."""
        path = tmp_path / "settings.json"
        path.write_text(
            json.dumps({"apiKey": 42, "useLocalEngine": "yes", "substitutions": {"a": 1}, "unknown": 1})
        )

        assert Settings.load(path) == Settings()

    def test_corrupt_file_uses_defaults(self, tmp_path: Path) -> None:
        """Test unreadable JSON falls back to defaults."""
        path = tmp_path / "settings.json"
        path.write_text("{not json")

        assert Settings.load(path) == Settings()

    def test_non_object_uses_defaults(self, tmp_path: Path) -> None:
        """Test a JSON list falls back to defaults."""
        path = tmp_path / "settings.json"
        path.write_text("[1, 2]")

        assert Settings.load(path) == Settings()

    def test_save_round_trip(self, tmp_path: Path) -> None:
        """Test saved settings load back unchanged."""
        path = tmp_path / "nested" / "settings.json"
        settings = Settings(api_key="sk-x", substitutions={"slap": "\n", "comma": ","})
        settings.save(path)

        assert Settings.load(path) == settings

    def test_effective_api_key_from_env(self, clean_env: None) -> None:
        """Test OPENAI_API_KEY is used when the settings have no key."""
        os.environ["OPENAI_API_KEY"] = "sk-env"
        assert Settings().effective_api_key == "sk-env"
        assert Settings(api_key="sk-file").effective_api_key == "sk-file"
