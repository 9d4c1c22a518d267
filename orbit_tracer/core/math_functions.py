"""
Core mathematical functions for orbit tracing.

This module provides the sampling grid, the orbit iteration of the
generalized map z -> z^pow + c, the draw-mode filter and the affine
mapping between the complex plane and image pixels.
"""

import itertools
import logging
from dataclasses import dataclass
from typing import Iterator, Tuple

import numpy as np

from .config import DrawMode, RenderConfig
from ..acceleration import numba_backend

logger = logging.getLogger(__name__)


def coordinate_axis(bound: float, delta: float) -> Iterator[float]:
    """
    Yield the sampled values -bound + k*delta for k = 0, 1, ... below bound.

    Args:
        bound: Half extent of the sampled square, > 0
        delta: Sampling step, > 0
    """
    if not delta > 0:
        raise ValueError("delta must be positive")

    for k in itertools.count():
        x = -bound + k * delta
        if not x < bound:
            return
        yield x


def coordinate_grid(bound: float, delta: float) -> np.ndarray:
    """
    Create the full sampling grid as an (N, 2) array of (re, im) pairs.

    The grid is the Cartesian product of the axis with itself in row-major
    order: the real component is the outer loop.
    """
    axis = np.fromiter(coordinate_axis(bound, delta), dtype=np.float64)
    re, im = np.meshgrid(axis, axis, indexing='ij')
    grid = np.column_stack((re.ravel(), im.ravel()))
    logger.debug(f"Coordinate grid: {len(axis)}x{len(axis)} = {len(grid)} points")
    return grid


@dataclass(frozen=True)
class OrbitTrace:
    """The recorded orbit of one coordinate."""

    points: np.ndarray
    escaped: bool

    def __len__(self) -> int:
        return len(self.points)

    def segments(self) -> Iterator[Tuple[complex, complex]]:
        """Yield consecutive (start, end) pairs of the orbit."""
        for start, end in zip(self.points[:-1], self.points[1:]):
            yield complex(start), complex(end)


def iterate_coordinate(c: complex, config: RenderConfig) -> OrbitTrace:
    """
    Iterate one coordinate through z -> z^pow + c.

    Args:
        c: Starting coordinate
        config: Render configuration (pow, bounds, limit are used)

    Returns:
        OrbitTrace with every visited value, starting at 0
    """
    c = complex(c)
    points, escaped = numba_backend.iterate_orbit(c.real, c.imag, float(config.pow),
                                                  float(config.bounds), int(config.limit))
    values = np.empty(len(points), dtype=np.complex128)
    values.real = points[:, 0]
    values.imag = points[:, 1]
    return OrbitTrace(values, bool(escaped))


def keeps_trace(mode: DrawMode, escaped: bool) -> bool:
    """Whether a trace with the given escape flag is drawn under `mode`."""
    if mode is DrawMode.ALL:
        return True
    elif mode is DrawMode.ESCAPED:
        return escaped
    elif mode is DrawMode.TRAPPED:
        return not escaped
    raise ValueError(f"Unknown draw mode: {mode}")


def to_image_coord(z: complex, config: RenderConfig) -> Tuple[int, int]:
    """Convert a complex value to integer pixel coordinates (x, y)."""
    half = config.half_size
    x = numba_backend.image_coord(float(z.real), float(config.re_off), half, float(config.zoom))
    y = numba_backend.image_coord(float(z.imag), float(config.im_off), half, float(config.zoom))
    return int(x), int(y)


def to_complex_coord(x: int, y: int, config: RenderConfig) -> complex:
    """Convert pixel coordinates back to a complex value."""
    half = config.half_size
    re = (x - half) / config.zoom - config.re_off
    im = (y - half) / config.zoom - config.im_off
    return complex(re, im)
