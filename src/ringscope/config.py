"""
Session configuration.

Everything the analysis and rendering core needs is fixed when the
session starts. The sample rate is constant.
"""

import json
import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Union

from ringscope.errors import ConfigError
from ringscope.visualizers.styles import (
    DEFAULT_STYLES,
    Color,
    LayerStyle,
    parse_color,
    style_from_dict,
)

logger = logging.getLogger(__name__)

SAMPLE_RATE = 44_100  # Hz, mono
BYTES_PER_SAMPLE = 8  # big-endian float64
BYTES_PER_PIXEL = 4  # R, G, B, A
HEIGHT_MULTIPLIER = 8.0

DEFAULT_OUTPUT = Path("output") / "output.mkv"


@dataclass
class RingConfig:
    """Configuration for one rendering session."""

    width: int = 1280
    height: int = 720
    fps: int = 30

    # Analysis
    window: str = "hamming"

    # Layers, oldest colour first
    styles: tuple[LayerStyle, ...] = DEFAULT_STYLES
    height_multiplier: float = HEIGHT_MULTIPLIER
    base_radius_fraction: float = 0.25  # Of canvas height

    # Colours
    background_color: Color = (0, 0, 0, 255)
    overlay_color: Color = (255, 255, 255, 255)

    # Vertices per flattened quadratic segment
    curve_steps: int = 2

    # Transcoder
    ffmpeg_path: str = "ffmpeg"
    video_codec: tuple[str, ...] = ("libx264", "-preset", "ultrafast", "-crf", "0")
    audio_codec: tuple[str, ...] = ("copy",)

    extra: dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def samples_per_frame(self) -> int:
        """Block length N. Must divide the sample rate for audio/video sync."""
        return SAMPLE_RATE // self.fps

    @property
    def frame_size(self) -> int:
        """Bytes per rendered RGBA frame."""
        return self.width * self.height * BYTES_PER_PIXEL

    @property
    def base_radius(self) -> float:
        return self.height * self.base_radius_fraction

    @property
    def layer_count(self) -> int:
        return len(self.styles)

    def validate(self) -> "RingConfig":
        """
        Check the configuration and return it.

        Raises:
            ConfigError: On any invalid value.
        """
        from ringscope.core.windows import WINDOW_FUNCTIONS

        if self.width <= 0 or self.height <= 0:
            raise ConfigError(f"Canvas size must be positive, got {self.width}x{self.height}")
        if self.fps <= 0:
            raise ConfigError(f"fps must be positive, got {self.fps}")
        if self.samples_per_frame < 2:
            raise ConfigError(
                f"fps {self.fps} leaves fewer than 2 samples per frame at {SAMPLE_RATE} Hz"
            )
        if self.window not in WINDOW_FUNCTIONS:
            raise ConfigError(f"Unknown window function {self.window!r}")
        if not self.styles:
            raise ConfigError("At least one layer style is required")
        if self.base_radius_fraction < 0:
            raise ConfigError("base_radius_fraction must be >= 0")
        if self.curve_steps < 1:
            raise ConfigError(f"curve_steps must be >= 1, got {self.curve_steps}")
        if SAMPLE_RATE % self.fps:
            logger.warning(
                "%d fps does not divide %d Hz; video will drift from the audio",
                self.fps,
                SAMPLE_RATE,
            )
        return self

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RingConfig":
        """
        Build a configuration from a JSON-style mapping.

        Unknown keys are kept in ``extra``. Colours may be hex strings and
        styles a list of {"color", "exponent", "smoothing"} objects.
        """
        known = {f.name for f in fields(cls)} - {"extra"}
        kwargs: dict[str, Any] = {}
        extra: dict[str, Any] = {}
        for key, value in data.items():
            if key not in known:
                extra[key] = value
                continue
            if key == "styles":
                value = tuple(
                    v if isinstance(v, LayerStyle) else style_from_dict(v) for v in value
                )
            elif key in ("background_color", "overlay_color"):
                value = parse_color(value)
            elif key in ("video_codec", "audio_codec"):
                value = tuple(value)
            kwargs[key] = value
        if extra:
            logger.debug("Ignoring unknown config keys: %s", ", ".join(sorted(extra)))
        return cls(extra=extra, **kwargs)


def load_config(path: Union[str, Path], **overrides: Any) -> RingConfig:
    """
    Load a JSON config file, apply overrides and validate.

    Args:
        path: JSON file.
        **overrides: Values that replace the file's (None values are skipped).
    """
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a JSON object")
    data.update({k: v for k, v in overrides.items() if v is not None})
    return RingConfig.from_dict(data).validate()
