"""Pytest configuration and fixtures."""

from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING, Generator

import numpy as np
import pytest

from tests.fakes import FakeClock, FakePlatform, FakeTranscriber
from typr.config import SessionConfig, Settings
from typr.registry import MemorySessionRegistry
from typr.session import SessionMachine
from typr.transcribe import Rewriter, Transcriber

if TYPE_CHECKING:
    from numpy.typing import NDArray


@pytest.fixture
def sample_audio_16k() -> NDArray[np.int16]:
    """Generate 1 second of sample audio at 16kHz."""
    sample_rate = 16000
    duration = 1.0
    t = np.linspace(0, duration, int(sample_rate * duration), dtype=np.float32)
    # Generate a 440Hz sine wave
    audio = np.sin(2 * np.pi * 440 * t) * 0.5
    return (audio * 32767).astype(np.int16)


@pytest.fixture
def temp_wav_file(tmp_path: Path, sample_audio_16k: NDArray[np.int16]) -> Path:
    """Create a temporary WAV file with sample audio."""
    from scipy.io.wavfile import write as wav_write

    path = tmp_path / "typr-recording-test.wav"
    wav_write(path, 16000, sample_audio_16k)
    return path


@pytest.fixture
def clean_env() -> Generator[None, None, None]:
    """Fixture to clean environment variables before/after tests."""
    env_vars = [
        "OPENAI_API_KEY",
        "TYPR_GESTURE_MODE",
        "TYPR_DOUBLE_TAP_MS",
        "TYPR_CHORD",
        "TYPR_OUTPUT_MODE",
        "TYPR_REWRITE_MODE",
        "TYPR_ADAPTER_TIMEOUT",
        "TYPR_MUTE",
        "TYPR_TONES",
        "TYPR_SETTINGS_FILE",
        "TYPR_STATE_FILE",
        "TYPR_LOG_FILE",
        "TYPR_VERBOSE",
    ]
    original_values = {var: os.environ.get(var) for var in env_vars}

    # Clear all
    for var in env_vars:
        os.environ.pop(var, None)

    yield

    # Restore original values
    for var, value in original_values.items():
        if value is not None:
            os.environ[var] = value
        else:
            os.environ.pop(var, None)


@pytest.fixture
def fake_platform() -> FakePlatform:
    return FakePlatform()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock(start=100.0)


@pytest.fixture
def registry() -> MemorySessionRegistry:
    return MemorySessionRegistry()


@pytest.fixture
def make_machine(
    tmp_path: Path,
    fake_platform: FakePlatform,
    fake_clock: FakeClock,
    registry: MemorySessionRegistry,
):
    """Factory for a session machine wired to fakes."""
    machines: list[SessionMachine] = []

    def factory(
        transcribers: list[Transcriber] | None = None,
        rewriter: Rewriter | None = None,
        settings: Settings | None = None,
        config: SessionConfig | None = None,
        on_state_change=None,
    ) -> SessionMachine:
        machine = SessionMachine(
            platform=fake_platform,
            transcribers=transcribers or [FakeTranscriber("hello slap world")],
            rewriter=rewriter,
            settings=settings or Settings(),
            config=config or SessionConfig(),
            registry=registry,
            clock=fake_clock,
            on_state_change=on_state_change,
            recordings_dir=tmp_path,
        )
        machines.append(machine)
        return machine

    yield factory

    for machine in machines:
        machine.shutdown()

