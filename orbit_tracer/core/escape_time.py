"""
Classic escape-time overlay.

Every output pixel is mapped back onto the complex plane and iterated
with the same map as the traces, but with the fixed |z|^2 > 4 threshold.
The result is a two-colour opaque mask drawn over the traces.
"""

import logging
import time

import numpy as np

from .config import RenderConfig
from .math_functions import to_complex_coord
from ..acceleration import numba_backend

logger = logging.getLogger(__name__)

ESCAPE_RADIUS_SQ = 4.0

ESCAPED_COLOR = (128, 0, 0, 255)
TRAPPED_COLOR = (0, 0, 0, 255)


def escapes(c: complex, config: RenderConfig) -> bool:
    """Whether `c` leaves the radius-2 disc within `limit` iterations."""
    c = complex(c)
    return bool(numba_backend.point_escapes(c.real, c.imag, float(config.pow),
                                            int(config.limit), ESCAPE_RADIUS_SQ))


def pixel_escapes(x: int, y: int, config: RenderConfig) -> bool:
    return escapes(to_complex_coord(x, y, config), config)


def escape_time_overlay(config: RenderConfig) -> np.ndarray:
    """
    Compute the escape-time mask for the whole image.

    Returns:
        (size, size, 4) uint8 RGBA array of ESCAPED_COLOR / TRAPPED_COLOR
    """
    start_time = time.time()

    mask = numba_backend.escape_time_kernel(
        int(config.size), config.half_size, float(config.zoom),
        float(config.re_off), float(config.im_off),
        float(config.pow), int(config.limit), ESCAPE_RADIUS_SQ,
        np.array(ESCAPED_COLOR, dtype=np.uint8),
        np.array(TRAPPED_COLOR, dtype=np.uint8),
    )

    logger.info(f"Escape-time overlay: {config.size}x{config.size} in {time.time() - start_time:.2f}s")
    return mask
