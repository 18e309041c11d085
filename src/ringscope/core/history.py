"""
Rotating history of recent spectra.

Each of the L layers owns one cache slot. Frame k is written to slot
k % L and styled with styles[k % L]; slot and style are separate lookups
that happen to share the same key.
"""

from dataclasses import dataclass
from typing import Iterator, Sequence

import numpy as np

from ringscope.errors import ConfigError, ContractViolation
from ringscope.visualizers.styles import LayerStyle


@dataclass
class LayerCache:
    """Scratch buffers for one layer, reused every time the slot is refreshed."""

    raw: np.ndarray
    smoothed: np.ndarray
    points: np.ndarray  # Shape: (n, 2)

    @classmethod
    def allocate(cls, n: int) -> "LayerCache":
        return cls(
            raw=np.zeros(n, dtype=np.float64),
            smoothed=np.zeros(n, dtype=np.float64),
            points=np.zeros((n, 2), dtype=np.float64),
        )

    def __len__(self) -> int:
        return len(self.raw)


def smooth_spectrum(
    raw: np.ndarray,
    margin: int,
    out: np.ndarray | None = None,
) -> np.ndarray:
    """
    Boundary-truncating moving average.

    For each index i the pairs raw[i-j] + raw[i+j] are summed for
    j = 0..margin-1, stopping at the first j that leaves the array, and
    divided by the sum of 2 * (margin - j + 1) over the same j. The centre
    sample is counted twice at j = 0. A margin of 0 copies raw unchanged.

    Args:
        raw: Input spectrum.
        margin: Smoothing radius.
        out: Optional output array of the same length.

    Returns:
        The smoothed spectrum (out, if given).
    """
    n = len(raw)
    if out is None:
        out = np.empty(n, dtype=np.float64)
    if margin == 0:
        out[:] = raw
        return out

    total = np.zeros(n, dtype=np.float64)
    denom = np.zeros(n, dtype=np.float64)
    # Index i sees offset j only when j <= i <= n-1-j, i.e. the slice [j, n-j).
    # Sums accumulate in ascending j, the same order as a per-index loop.
    for j in range(margin):
        if n - 2 * j <= 0:
            break
        total[j:n - j] += raw[0:n - 2 * j] + raw[2 * j:n]
        denom[j:n - j] += (margin - j + 1) * 2
    np.divide(total, denom, out=out)
    return out


class SpectrumHistory:
    """Fixed set of layer caches addressed by frame index modulo layer count."""

    def __init__(self, styles: Sequence[LayerStyle]):
        if not styles:
            raise ConfigError("At least one layer style is required")
        self.styles: tuple[LayerStyle, ...] = tuple(styles)
        self.layer_count = len(self.styles)
        self._slots: list[LayerCache | None] = [None] * self.layer_count
        self.frame_index = 0

    @property
    def latest_index(self) -> int:
        """Index of the most recently advanced frame (-1 before the first)."""
        return self.frame_index - 1

    def slot(self, idx: int) -> LayerCache:
        cache = self._slots[idx]
        if cache is None:
            raise LookupError(f"Layer slot {idx} has not been assigned a frame yet")
        return cache

    def is_ready(self, idx: int) -> bool:
        return self._slots[idx] is not None

    @property
    def allocated_slots(self) -> int:
        return sum(1 for cache in self._slots if cache is not None)

    def advance(self, spectrum: np.ndarray) -> int:
        """
        Store a new spectrum in the next slot and smooth it.

        Args:
            spectrum: Magnitude spectrum of the current frame. Copied, so
                the caller may reuse its array afterwards.

        Returns:
            The slot index that was written.
        """
        idx = self.frame_index % self.layer_count
        cache = self._slots[idx]
        if cache is None:
            cache = LayerCache.allocate(len(spectrum))
            self._slots[idx] = cache
        elif len(spectrum) != len(cache):
            raise ContractViolation(
                f"Spectrum length {len(spectrum)} does not match layer length {len(cache)}"
            )

        cache.raw[:] = spectrum
        smooth_spectrum(cache.raw, self.styles[idx].smoothing, out=cache.smoothed)

        self.frame_index += 1
        return idx

    def draw_order(self) -> Iterator[tuple[int, int, LayerCache, LayerStyle]]:
        """
        Yield (frame, slot, cache, style) for every drawable layer.

        The lookback window covers the last L frames, oldest first, so the
        newest frame is drawn on top.
        """
        latest = self.latest_index
        for s in range(self.layer_count):
            x = latest - (self.layer_count - 1) + s
            if x < 0:
                continue
            idx = x % self.layer_count
            yield x, idx, self.slot(idx), self.styles[idx]
