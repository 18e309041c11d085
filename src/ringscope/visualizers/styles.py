"""
Layer styles for the spectrum ring.

Layers are drawn oldest to newest, so the table runs from the colour of
the oldest visible layer to the colour of the newest (white).
"""

from dataclasses import dataclass
from typing import Any

from ringscope.errors import ConfigError

Color = tuple[int, int, int, int]


@dataclass(frozen=True)
class LayerStyle:
    """Colour and shape of one history layer."""

    color: Color
    exponent: float  # Radial scaling exponent, > 0
    smoothing: int  # Moving-average margin, >= 0

    def __post_init__(self):
        if len(self.color) != 4 or any(not 0 <= c <= 255 for c in self.color):
            raise ConfigError(f"Layer color must be 4 channels in 0-255, got {self.color}")
        if self.exponent <= 0:
            raise ConfigError(f"Layer exponent must be > 0, got {self.exponent}")
        if self.smoothing < 0:
            raise ConfigError(f"Layer smoothing must be >= 0, got {self.smoothing}")


DEFAULT_STYLES: tuple[LayerStyle, ...] = (
    LayerStyle(color=(0x00, 0xFF, 0x00, 0xFF), exponent=1.52, smoothing=5),  # green
    LayerStyle(color=(0x33, 0xCC, 0xFF, 0xFF), exponent=1.50, smoothing=5),  # light blue
    LayerStyle(color=(0x00, 0x00, 0xFF, 0xFF), exponent=1.36, smoothing=3),  # blue
    LayerStyle(color=(0x33, 0x33, 0x99, 0xFF), exponent=1.33, smoothing=3),  # indigo
    LayerStyle(color=(0xFF, 0x66, 0xFF, 0xFF), exponent=1.30, smoothing=3),  # pink
    LayerStyle(color=(0xFF, 0x00, 0x00, 0xFF), exponent=1.14, smoothing=2),  # red
    LayerStyle(color=(0xFF, 0xFF, 0x00, 0xFF), exponent=1.12, smoothing=2),  # yellow
    LayerStyle(color=(0xFF, 0xFF, 0xFF, 0xFF), exponent=1.00, smoothing=1),  # white
)


def parse_color(value: Any) -> Color:
    """
    Parse a colour from a hex string or a 3/4-item sequence.

    "#rrggbb" and "#rrggbbaa" are accepted; a missing alpha is opaque.
    """
    if isinstance(value, str):
        text = value.lstrip("#")
        if len(text) not in (6, 8):
            raise ConfigError(f"Invalid color string: {value!r}")
        try:
            channels = [int(text[i:i + 2], 16) for i in range(0, len(text), 2)]
        except ValueError:
            raise ConfigError(f"Invalid color string: {value!r}") from None
    else:
        try:
            channels = [int(c) for c in value]
        except (TypeError, ValueError):
            raise ConfigError(f"Invalid color: {value!r}") from None
    if len(channels) == 3:
        channels.append(255)
    if len(channels) != 4:
        raise ConfigError(f"Color needs 3 or 4 channels, got {value!r}")
    return tuple(channels)


def style_from_dict(data: dict[str, Any]) -> LayerStyle:
    """Build a LayerStyle from a JSON-style mapping."""
    try:
        color, exponent, smoothing = data["color"], data["exponent"], data["smoothing"]
    except KeyError as e:
        raise ConfigError(f"Layer style is missing {e.args[0]!r}") from None
    try:
        exponent = float(exponent)
        smoothing = int(smoothing)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid layer style {data!r}: {e}") from None
    return LayerStyle(color=parse_color(color), exponent=exponent, smoothing=smoothing)
