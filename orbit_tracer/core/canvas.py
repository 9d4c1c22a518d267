"""
16-bit luminance+alpha canvases and the operations that fill them.

A canvas is a (size, size, 2) uint16 array indexed [y, x], channel 0
holding luminance and channel 1 alpha. Lines are alpha-over blended into
a canvas, and canvases are folded into each other with the same blend.
"""

import logging
from functools import reduce
from typing import Iterable, Optional

import numpy as np

from .config import RenderConfig
from ..acceleration import numba_backend

logger = logging.getLogger(__name__)

CANVAS_DTYPE = np.uint16
MAX_CHANNEL = numba_backend.MAX_CHANNEL


def new_canvas(size: int) -> np.ndarray:
    """Create a zero canvas, which is also the identity of the fold."""
    return np.zeros((size, size, 2), dtype=CANVAS_DTYPE)


def blend_canvas(accumulator: np.ndarray, canvas: np.ndarray) -> np.ndarray:
    """
    Alpha-over `canvas` onto `accumulator` in place.

    Args:
        accumulator: Canvas receiving the blend
        canvas: Canvas composited on top

    Returns:
        The accumulator
    """
    if accumulator.shape != canvas.shape:
        raise ValueError(f"Canvas shapes differ: {accumulator.shape} vs {canvas.shape}")
    return numba_backend.fold_kernel(accumulator, canvas)


def fold_canvases(canvases: Iterable[np.ndarray], size: int) -> np.ndarray:
    """Fold canvases left to right onto a fresh zero canvas."""
    return reduce(blend_canvas, canvases, new_canvas(size))


def draw_line(canvas: np.ndarray, start, end, opacity: int, luma: int = MAX_CHANNEL) -> np.ndarray:
    """
    Draw an antialiased segment between two integer pixel coordinates.

    Each touched pixel gets the colour (luma, opacity * coverage) blended
    over it. Pixels outside the canvas are ignored.
    """
    numba_backend.draw_antialiased_line(canvas, int(start[0]), int(start[1]),
                                        int(end[0]), int(end[1]), int(luma), int(opacity))
    return canvas


def render_chunk(coords: np.ndarray, config: RenderConfig,
                 canvas: Optional[np.ndarray] = None) -> np.ndarray:
    """
    Render the orbit traces of a slice of coordinates into a private canvas.

    Args:
        coords: (n, 2) array of (re, im) coordinates
        config: Render configuration
        canvas: Canvas to draw into (a new zero canvas if None)

    Returns:
        The populated canvas
    """
    canvas, _ = render_chunk_counted(coords, config, canvas)
    return canvas


def render_chunk_counted(coords: np.ndarray, config: RenderConfig,
                         canvas: Optional[np.ndarray] = None):
    """Like render_chunk, but also return the number of traces drawn."""
    if canvas is None:
        canvas = new_canvas(config.size)

    coords = np.ascontiguousarray(coords, dtype=np.float64).reshape(-1, 2)
    drawn = numba_backend.render_chunk_kernel(
        coords, canvas,
        float(config.pow), float(config.bounds), int(config.limit), config.mode.value,
        config.half_size, float(config.zoom), float(config.re_off), float(config.im_off),
        int(config.opacity),
    )
    return canvas, int(drawn)
