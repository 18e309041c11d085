"""Circular, history-layered spectrum analyzer video renderer."""

from ringscope.config import RingConfig, load_config
from ringscope.core.analyzer import SpectralAnalyzer
from ringscope.core.history import SpectrumHistory
from ringscope.io.framebuffer import FrameBuffer
from ringscope.pipeline import SpectrumPipeline
from ringscope.visualizers.spectrum_ring import PathComposer

__version__ = "0.1.0"
__all__ = [
    "RingConfig",
    "load_config",
    "SpectralAnalyzer",
    "SpectrumHistory",
    "FrameBuffer",
    "SpectrumPipeline",
    "PathComposer",
]
