"""
Circular spectrum ring renderer.

Every visible history layer becomes a closed curve around the centre of
the canvas: bins are spread over the right semicircle from bottom to top,
pushed outwards by their smoothed magnitude, and mirrored onto the left.
Layers are filled oldest first and a solid disc covers the middle.
"""

import math

import numpy as np
from PIL import Image, ImageDraw

from ringscope.config import RingConfig
from ringscope.core.history import SpectrumHistory
from ringscope.errors import ContractViolation


def quad_curve_points(
    p0: np.ndarray,
    p1: np.ndarray,
    p2: np.ndarray,
    steps: int,
) -> np.ndarray:
    """
    Flatten a run of quadratic Bezier segments.

    Args:
        p0: Segment start points, shape (m, 2).
        p1: Control points, shape (m, 2).
        p2: End points, shape (m, 2).
        steps: Vertices emitted per segment; the last one is the end point.

    Returns:
        Array of shape (m * steps, 2). Start points are not repeated.
    """
    t = np.arange(1, steps + 1, dtype=np.float64)[:, None] / steps
    a = (1 - t) ** 2
    b = 2 * (1 - t) * t
    c = t ** 2
    # (m, steps, 2)
    pts = (
        a[None, :, :] * p0[:, None, :]
        + b[None, :, :] * p1[:, None, :]
        + c[None, :, :] * p2[:, None, :]
    )
    return pts.reshape(-1, 2)


def spectrum_points(
    smoothed: np.ndarray,
    base_radius: float,
    height_multiplier: float,
    exponent: float,
    out: np.ndarray | None = None,
) -> np.ndarray:
    """
    Map a smoothed spectrum to polar points on the right semicircle.

    Bin i sits at angle pi * i / (n - 1) - pi / 2 and radius
    base_radius + (smoothed[i] * height_multiplier) ** exponent.
    """
    n = len(smoothed)
    if n < 2:
        raise ContractViolation(f"Need at least 2 spectrum bins to draw, got {n}")
    if out is None:
        out = np.empty((n, 2), dtype=np.float64)
    t = math.pi * (np.arange(n, dtype=np.float64) / (n - 1)) - math.pi / 2
    r = base_radius + np.power(smoothed * height_multiplier, exponent)
    out[:, 0] = r * np.cos(t)
    out[:, 1] = r * np.sin(t)
    return out


def half_outline(points: np.ndarray, steps: int) -> np.ndarray:
    """
    Smooth curve through the right-half points, bottom to top.

    Starts on the vertical axis at the height of the first point, passes
    each interior point as a control point with the midpoints as anchors,
    and finishes on the last point.
    """
    n = len(points)
    if n < 2:
        raise ContractViolation(f"Need at least 2 points for an outline, got {n}")
    start = np.array([0.0, points[0, 1]])

    # Interior segments j = 1..n-3, then the final segment onto the last point.
    # With two points only the final segment remains.
    controls = np.vstack([points[1:n - 2], points[n - 2:n - 1]])
    ends = np.vstack([(points[1:n - 2] + points[2:n - 1]) / 2, points[n - 1:n]])
    starts = np.empty_like(controls)
    starts[0] = start
    starts[1:] = ends[:-1]

    return np.vstack([start[None, :], quad_curve_points(starts, controls, ends, steps)])


def mirrored_outline(right: np.ndarray) -> np.ndarray:
    """Close a right-half outline with its mirror image on the left."""
    left = right[::-1].copy()
    left[:, 0] = -left[:, 0]
    return np.vstack([right, left])


class PathComposer:
    """
    Draws the layered spectrum ring onto a reused RGBA canvas.

    compose() returns the composer's own image; it is redrawn on the next
    call, so copy it (or use frame_bytes()) before composing again.
    """

    def __init__(self, config: RingConfig | None = None):
        self.cfg = config or RingConfig()
        self.width = self.cfg.width
        self.height = self.cfg.height
        self.center = (self.width / 2, self.height / 2)
        self.base_radius = self.cfg.base_radius

        self.image = Image.new("RGBA", (self.width, self.height), self.cfg.background_color)
        self._draw = ImageDraw.Draw(self.image)

    def layer_outline(self, cache_points: np.ndarray, smoothed: np.ndarray, exponent: float) -> np.ndarray:
        """
        Closed outline for one layer in ring coordinates (y up, origin at centre).

        Writes the polar points into cache_points as a side effect.
        """
        spectrum_points(
            smoothed,
            self.base_radius,
            self.cfg.height_multiplier,
            exponent,
            out=cache_points,
        )
        return mirrored_outline(half_outline(cache_points, self.cfg.curve_steps))

    def to_canvas(self, outline: np.ndarray) -> list[tuple[float, float]]:
        """Convert ring coordinates to pixel coordinates."""
        cx, cy = self.center
        xs = cx + outline[:, 0]
        ys = cy - outline[:, 1]
        return list(zip(xs.tolist(), ys.tolist()))

    def clear(self):
        self._draw.rectangle(
            [0, 0, self.width, self.height],
            fill=self.cfg.background_color,
        )

    def draw_overlay(self):
        cx, cy = self.center
        r = self.base_radius
        self._draw.ellipse([cx - r, cy - r, cx + r, cy + r], fill=self.cfg.overlay_color)

    def compose(self, history: SpectrumHistory) -> Image.Image:
        """
        Render every drawable layer of the history into the canvas.

        Args:
            history: Spectrum history with at least one frame advanced.

        Returns:
            The composer's RGBA image (borrowed).
        """
        self.clear()
        for _, _, cache, style in history.draw_order():
            outline = self.layer_outline(cache.points, cache.smoothed, style.exponent)
            self._draw.polygon(self.to_canvas(outline), fill=style.color)
        self.draw_overlay()
        return self.image

    def frame_bytes(self) -> bytes:
        """Current canvas as interleaved RGBA rows."""
        return self.image.tobytes()

    def to_array(self) -> np.ndarray:
        """Copy of the current canvas as an (H, W, 4) uint8 array."""
        return np.array(self.image, dtype=np.uint8)
