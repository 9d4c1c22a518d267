"""
Compositing of accumulated trace canvases into 8-bit RGBA images.

The trace canvas is converted to a white, translucent layer and laid over an
opaque background; the optional escape-time mask is then laid over the
result. Both steps use straight alpha-over compositing.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from ..core.escape_time import ESCAPED_COLOR, TRAPPED_COLOR

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ColorRGBA:
    """8-bit RGBA color representation."""
    r: int
    g: int
    b: int
    a: int = 255

    def __post_init__(self):
        """Validate RGBA values."""
        for component in (self.r, self.g, self.b, self.a):
            if not 0 <= component <= 255:
                raise ValueError("RGBA components must be between 0 and 255")

    def to_tuple(self) -> Tuple[int, int, int, int]:
        """Convert to RGBA tuple."""
        return (self.r, self.g, self.b, self.a)

    @property
    def is_opaque(self) -> bool:
        return self.a == 255

    @classmethod
    def from_hex(cls, value: str) -> 'ColorRGBA':
        """Parse '#rrggbb' or '#rrggbbaa'."""
        value = value.strip().lstrip('#')
        if len(value) not in (6, 8):
            raise ValueError(f"Invalid hex color: {value}")
        parts = [int(value[i:i + 2], 16) for i in range(0, len(value), 2)]
        return cls(*parts)


BLACK = ColorRGBA(0, 0, 0)
ESCAPED = ColorRGBA(*ESCAPED_COLOR)
TRAPPED = ColorRGBA(*TRAPPED_COLOR)


def solid_image(width: int, height: int, color: ColorRGBA) -> np.ndarray:
    """Create an image filled with a single color."""
    image = np.empty((height, width, 4), dtype=np.uint8)
    image[:] = color.to_tuple()
    return image


def blend_rgba(background: np.ndarray, foreground: np.ndarray) -> np.ndarray:
    """
    Alpha-over composite `foreground` onto `background`.

    Fully transparent foreground pixels leave the background untouched and
    fully opaque ones replace it.

    Args:
        background: (h, w, 4) uint8 RGBA array
        foreground: (h, w, 4) uint8 RGBA array

    Returns:
        New (h, w, 4) uint8 RGBA array
    """
    if background.shape != foreground.shape:
        raise ValueError(f"Image shapes differ: {background.shape} vs {foreground.shape}")

    bg = background.astype(np.float64) / 255.0
    fg = foreground.astype(np.float64) / 255.0

    fa = fg[..., 3:4]
    ba = bg[..., 3:4]
    alpha = fa + ba - fa * ba
    safe_alpha = np.where(alpha > 0.0, alpha, 1.0)

    rgb = (fg[..., :3] * fa + bg[..., :3] * ba * (1.0 - fa)) / safe_alpha
    blended = np.concatenate([rgb, alpha], axis=-1)
    out = np.clip(np.floor(blended * 255.0 + 0.5), 0, 255).astype(np.uint8)

    transparent = foreground[..., 3] == 0
    opaque = foreground[..., 3] == 255
    out[transparent] = background[transparent]
    out[opaque] = foreground[opaque]
    return out


def canvas_to_rgba(canvas: np.ndarray) -> np.ndarray:
    """
    Convert a 16-bit luminance+alpha canvas into an 8-bit RGBA layer.

    The layer is white everywhere; only its alpha comes from the canvas,
    as the high byte of the 16-bit alpha channel.
    """
    layer = np.empty(canvas.shape[:2] + (4,), dtype=np.uint8)
    layer[..., :3] = 255
    layer[..., 3] = (canvas[..., 1] >> 8).astype(np.uint8)
    return layer


def composite(canvas: np.ndarray, background: ColorRGBA = BLACK,
              overlay: Optional[np.ndarray] = None) -> np.ndarray:
    """
    Build the final RGBA image from the accumulated canvas.

    Args:
        canvas: Accumulated (size, size, 2) uint16 canvas
        background: Opaque background color
        overlay: Optional (size, size, 4) uint8 mask drawn last

    Returns:
        (size, size, 4) uint8 RGBA image
    """
    if not background.is_opaque:
        raise ValueError("background must be fully opaque")

    height, width = canvas.shape[:2]
    image = blend_rgba(solid_image(width, height, background), canvas_to_rgba(canvas))

    if overlay is not None:
        image = blend_rgba(image, overlay)

    logger.debug(f"Composited {width}x{height} image (overlay: {overlay is not None})")
    return image
