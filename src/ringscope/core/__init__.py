"""Core spectral analysis modules."""

from ringscope.core.analyzer import SpectralAnalyzer
from ringscope.core.history import LayerCache, SpectrumHistory, smooth_spectrum
from ringscope.core.windows import WINDOW_FUNCTIONS, get_window_function, window_table

__all__ = [
    "SpectralAnalyzer",
    "LayerCache",
    "SpectrumHistory",
    "smooth_spectrum",
    "WINDOW_FUNCTIONS",
    "get_window_function",
    "window_table",
]
