"""
Spectral analysis of fixed-size sample blocks.

Each block is windowed in place, transformed with a full-length DFT and
reduced to per-bin magnitudes. The block length is sample_rate / fps,
which is rarely a power of two, so the transform runs at the exact length.
"""

import numpy as np
from scipy import fft as scipy_fft

from ringscope.config import SAMPLE_RATE
from ringscope.core.windows import DEFAULT_WINDOW, window_table
from ringscope.errors import ContractViolation

# Magnitudes are scaled by this factor over the block length
MAGNITUDE_SCALE = 100.0


class SpectralAnalyzer:
    """
    Turns sample blocks into magnitude spectra.

    The returned spectrum is the analyzer's own output array. It is
    overwritten by the next call to analyze(); copy it to keep it.
    """

    def __init__(self, block_size: int, window: str = DEFAULT_WINDOW):
        """
        Initialize the analyzer.

        Args:
            block_size: Samples per block (N).
            window: Registered window function name.
        """
        self.block_size = block_size
        self.window = window
        self._weights = window_table(window, block_size)
        self._spectrum = np.zeros(block_size, dtype=np.float64)

    def _check_block(self, block: np.ndarray):
        if not isinstance(block, np.ndarray):
            raise ContractViolation(
                f"Expected a numpy array block, got {type(block).__name__}"
            )
        if block.shape != (self.block_size,):
            raise ContractViolation(
                f"Expected a block of shape ({self.block_size},), got {block.shape}"
            )
        if block.dtype != np.float64:
            raise ContractViolation(f"Expected float64 samples, got {block.dtype}")

    def apply_window(self, block: np.ndarray) -> np.ndarray:
        """Multiply the block by the window weights in place."""
        self._check_block(block)
        np.multiply(block, self._weights, out=block)
        return block

    def analyze(self, block: np.ndarray) -> np.ndarray:
        """
        Window the block in place and compute its magnitude spectrum.

        The block must be refilled before it is analyzed again.

        Args:
            block: float64 array of exactly block_size samples.

        Returns:
            Magnitudes for all block_size bins (mirror half included).

        Raises:
            ContractViolation: If the block has the wrong shape or dtype.
        """
        self.apply_window(block)
        ft = scipy_fft.fft(block)
        re = ft.real
        im = ft.imag
        np.sqrt(re * re + im * im, out=self._spectrum)
        self._spectrum *= MAGNITUDE_SCALE
        self._spectrum /= self.block_size
        return self._spectrum

    def bin_frequency(self, index: int) -> float:
        """Centre frequency in Hz of a spectrum bin."""
        return index * SAMPLE_RATE / self.block_size

    def nearest_bin(self, frequency: float) -> int:
        """Bin whose centre is closest to the given frequency."""
        return int(round(frequency * self.block_size / SAMPLE_RATE))

    def peak_bin(self, spectrum: np.ndarray) -> int:
        """Dominant bin below Nyquist, ignoring the mirrored upper half."""
        half = self.block_size // 2 + 1
        return int(np.argmax(spectrum[:half]))
