"""
Window functions applied to a sample block before the transform.

The registry is fixed at import time and read-only. A session picks one
entry by name when its analyzer is built.
"""

import math
from types import MappingProxyType
from typing import Callable

import numpy as np

from ringscope.errors import ConfigError

WindowFunction = Callable[[int, int], float]

DEFAULT_WINDOW = "hamming"


def rectangle(i: int, s: int) -> float:
    return 1.0


def hamming(i: int, s: int) -> float:
    return 0.54 - 0.46 * math.cos(2 * math.pi * i / (s - 1))


def hann(i: int, s: int) -> float:
    return 0.5 * (1 - math.cos(2 * math.pi * i / (s - 1)))


WINDOW_FUNCTIONS = MappingProxyType({
    "rectangle": rectangle,
    "hamming": hamming,
    "hann": hann,
})


def get_window_function(name: str) -> WindowFunction:
    """
    Look up a window function by name.

    Raises:
        ConfigError: If the name is not registered.
    """
    try:
        return WINDOW_FUNCTIONS[name]
    except KeyError:
        known = ", ".join(sorted(WINDOW_FUNCTIONS))
        raise ConfigError(f"Unknown window function {name!r} (expected one of: {known})") from None


def window_table(name: str, size: int) -> np.ndarray:
    """
    Evaluate a window function over a whole block.

    Args:
        name: Registered window name.
        size: Block length (at least 2).

    Returns:
        float64 array of weights, one per sample index.
    """
    if size < 2:
        raise ConfigError(f"Window size must be at least 2, got {size}")
    fn = get_window_function(name)
    return np.array([fn(i, size) for i in range(size)], dtype=np.float64)
