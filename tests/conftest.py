"""Pytest configuration and shared fixtures."""

import shutil

import numpy as np
import pytest

from ringscope.config import SAMPLE_RATE, RingConfig

TEST_FPS = 30


@pytest.fixture
def sample_rate() -> int:
    """Fixed session sample rate."""
    return SAMPLE_RATE


@pytest.fixture
def samples_per_frame(sample_rate: int) -> int:
    """Block length at 30 fps (1470, not a power of two)."""
    return sample_rate // TEST_FPS


@pytest.fixture
def make_sine(sample_rate: int):
    """
    Factory for sine blocks.

    Returns:
        Callable(frequency, n_samples, amplitude=0.5) -> float64 array.
    """
    def _make(frequency: float, n_samples: int, amplitude: float = 0.5) -> np.ndarray:
        t = np.arange(n_samples, dtype=np.float64) / sample_rate
        return amplitude * np.sin(2 * np.pi * frequency * t)

    return _make


@pytest.fixture
def silence(sample_rate: int) -> np.ndarray:
    """Two seconds of silence."""
    return np.zeros(sample_rate * 2, dtype=np.float64)


@pytest.fixture
def small_config() -> RingConfig:
    """Small canvas so raster tests stay fast."""
    return RingConfig(width=80, height=60, fps=TEST_FPS)


@pytest.fixture
def temp_audio_file(tmp_path, make_sine, sample_rate):
    """One second of a 440Hz tone as a 44.1kHz WAV file."""
    import soundfile as sf

    y = make_sine(440.0, sample_rate)
    audio_path = tmp_path / "tone.wav"
    sf.write(audio_path, y.astype(np.float32), sample_rate)
    return audio_path


@pytest.fixture
def ffmpeg_path() -> str:
    """Path to ffmpeg, skipping the test when it is not installed."""
    path = shutil.which("ffmpeg")
    if path is None:
        pytest.skip("ffmpeg not found")
    return path
