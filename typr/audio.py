from __future__ import annotations

import logging
import tempfile
import time
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from typr.config import ToneConfig

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_RATE = 16_000
FADE_DURATION_SECONDS = 0.008
RECORDING_PREFIX = "typr-recording-"
RECORDING_MAX_AGE_SECONDS = 24 * 60 * 60


def recordings_dir() -> Path:
    return Path(tempfile.gettempdir()) / "typr"


def new_recording_path(directory: Path | None = None) -> Path:
    directory = directory or recordings_dir()
    directory.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now().strftime("%Y-%m-%dT%H-%M-%S-%f")
    return directory / f"{RECORDING_PREFIX}{stamp}.wav"


def prune_recordings(
    directory: Path | None = None,
    max_age_s: float = RECORDING_MAX_AGE_SECONDS,
) -> int:
    """Delete leftover recordings older than ``max_age_s``; returns how many."""
    directory = directory or recordings_dir()
    if not directory.is_dir():
        return 0

    cutoff = time.time() - max_age_s
    removed = 0
    for path in directory.glob(f"{RECORDING_PREFIX}*.wav"):
        try:
            if path.stat().st_mtime < cutoff:
                path.unlink()
                removed += 1
        except OSError as e:
            logger.warning("Failed to prune %s: %s", path, e)
    return removed


def discard_recording(path: Path | None) -> None:
    if path is None:
        return
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning("Failed to remove recording %s: %s", path, e)


def make_tone(
    config: "ToneConfig",
    frequency_hz: int,
    sample_rate: int = DEFAULT_SAMPLE_RATE,
) -> "NDArray[np.float32]":
    n_samples = int(sample_rate * config.duration_s)
    t = np.arange(n_samples, dtype=np.float32) / sample_rate
    tone = np.sin(2.0 * np.pi * frequency_hz * t) * config.volume

    fade_samples = max(1, int(FADE_DURATION_SECONDS * sample_rate))
    if fade_samples * 2 < n_samples:
        window = np.ones(n_samples, dtype=np.float32)
        window[:fade_samples] = np.linspace(0, 1, fade_samples, dtype=np.float32)
        window[-fade_samples:] = np.linspace(1, 0, fade_samples, dtype=np.float32)
        tone *= window

    return tone.astype(np.float32)


def play_tone(
    config: "ToneConfig",
    frequency_hz: int,
    sample_rate: int = DEFAULT_SAMPLE_RATE,
    blocking: bool = False,
) -> None:
    if not config.enabled:
        return

    import sounddevice as sd

    sd.play(make_tone(config, frequency_hz, sample_rate), sample_rate, blocking=blocking)
