"""
Numba JIT kernels for orbit tracing.

This module holds the hot loops of the renderer: the generalized complex
power, orbit iteration, Xiaolin Wu line rasterization with per-pixel
alpha-over blending, the canvas fold and the escape-time overlay.
All kernels work on plain float64 pairs and numpy arrays so they compile
in nopython mode.
"""

import math
import logging

import numba
import numpy as np
from numba import njit, prange

logger = logging.getLogger(__name__)

MAX_CHANNEL = 65535
_MAX_CHANNEL_F = 65535.0

I32_MAX = 2147483647
I32_MIN = -2147483648

# Must match the DrawMode enum values
MODE_ALL = 0
MODE_ESCAPED = 1
MODE_TRAPPED = 2


@njit(cache=True)
def complex_powf(re, im, power):
    """
    Raise re + i*im to a real power using the polar form.

    Returns:
        Tuple of (real, imag)
    """
    if power == 0.0:
        return 1.0, 0.0

    r = math.hypot(re, im)
    if r == 0.0:
        # Negative powers of 0 blow up and escape on the next bound check
        if power > 0.0:
            return 0.0, 0.0
        return math.inf, 0.0

    theta = math.atan2(im, re)
    rp = r ** power
    return rp * math.cos(theta * power), rp * math.sin(theta * power)


@njit(cache=True)
def saturate_i32(value):
    """Truncate toward zero, saturating to the int32 range (NaN -> 0)."""
    if math.isnan(value):
        return 0
    if value >= I32_MAX:
        return I32_MAX
    if value <= I32_MIN:
        return I32_MIN
    return int(value)


@njit(cache=True)
def image_coord(value, offset, half_size, zoom):
    """Map one complex component to a pixel index."""
    return saturate_i32(half_size + (value + offset) * zoom)


@njit(cache=True)
def complex_coord(pixel, offset, half_size, zoom):
    """Map one pixel index back to a complex component."""
    return (pixel - half_size) / zoom - offset


@njit(cache=True)
def iterate_orbit(c_re, c_im, power, bound, limit):
    """
    Iterate z -> z^power + c from z = 0, recording every value.

    Iteration stops after `limit` steps or as soon as either component of
    z exceeds `bound` in absolute value.

    Returns:
        Tuple of (points, escaped) where points is a (n, 2) float64 array
        with 1 <= n <= limit + 1 and points[0] == (0, 0)
    """
    points = np.empty((limit + 1, 2), dtype=np.float64)
    points[0, 0] = 0.0
    points[0, 1] = 0.0

    zr = 0.0
    zi = 0.0
    count = 1
    escaped = False

    for _ in range(limit):
        pr, pi = complex_powf(zr, zi, power)
        zr = pr + c_re
        zi = pi + c_im
        points[count, 0] = zr
        points[count, 1] = zi
        count += 1

        if abs(zr) > bound or abs(zi) > bound:
            escaped = True
            break

    return points[:count], escaped


@njit(cache=True)
def keeps_trace_code(mode, escaped):
    if mode == MODE_ESCAPED:
        return escaped
    if mode == MODE_TRAPPED:
        return not escaped
    return True


@njit(cache=True)
def _to_channel(value):
    scaled = math.floor(value * _MAX_CHANNEL_F + 0.5)
    if scaled <= 0.0:
        return 0
    if scaled >= _MAX_CHANNEL_F:
        return MAX_CHANNEL
    return int(scaled)


@njit(cache=True)
def blend_over(bg_luma, bg_alpha, fg_luma, fg_alpha):
    """
    Alpha-over of a 16-bit luminance+alpha pixel onto another.

    The resulting alpha is symmetric in both operands, so blending two
    canvases is commutative.

    Returns:
        Tuple of (luma, alpha) as ints in [0, 65535]
    """
    if fg_alpha == 0:
        return bg_luma, bg_alpha

    fa = fg_alpha / _MAX_CHANNEL_F
    ba = bg_alpha / _MAX_CHANNEL_F
    alpha = fa + ba - fa * ba

    fl = fg_luma / _MAX_CHANNEL_F
    bl = bg_luma / _MAX_CHANNEL_F
    luma = (fl * fa + bl * ba * (1.0 - fa)) / alpha

    return _to_channel(luma), _to_channel(alpha)


@njit(cache=True)
def _plot(canvas, x, y, steep, luma, alpha, coverage):
    if steep:
        x, y = y, x

    if x < 0 or y < 0 or y >= canvas.shape[0] or x >= canvas.shape[1]:
        return

    # Coverage scales the incoming alpha before compositing
    scaled = int(alpha * min(coverage, 1.0))
    if scaled <= 0:
        return

    new_luma, new_alpha = blend_over(int(canvas[y, x, 0]), int(canvas[y, x, 1]), luma, scaled)
    canvas[y, x, 0] = new_luma
    canvas[y, x, 1] = new_alpha


@njit(cache=True)
def draw_antialiased_line(canvas, x0, y0, x1, y1, luma, alpha):
    """
    Draw an antialiased segment between two pixel coordinates.

    Xiaolin Wu's algorithm: every step along the major axis touches the two
    pixels straddling the ideal line, weighted by their coverage. Pixels
    outside the canvas are clipped.
    """
    steep = abs(y1 - y0) > abs(x1 - x0)
    if steep:
        x0, y0 = y0, x0
        x1, y1 = y1, x1

    if x0 > x1:
        x0, x1 = x1, x0
        y0, y1 = y1, y0

    dx = x1 - x0
    dy = y1 - y0
    gradient = dy / dx if dx != 0 else 0.0

    extent = canvas.shape[0] if steep else canvas.shape[1]
    start = max(x0, 0)
    stop = min(x1, extent - 1)

    for x in range(start, stop + 1):
        fy = y0 + (x - x0) * gradient
        iy = math.floor(fy)
        frac = fy - iy
        row = int(iy)
        _plot(canvas, x, row, steep, luma, alpha, 1.0 - frac)
        _plot(canvas, x, row + 1, steep, luma, alpha, frac)


@njit(cache=True)
def render_chunk_kernel(coords, canvas, power, bound, limit, mode,
                        half_size, zoom, re_off, im_off, opacity):
    """
    Iterate every coordinate of a chunk and draw its kept traces.

    Args:
        coords: (n, 2) float64 array of (re, im) coordinates
        canvas: (size, size, 2) uint16 canvas owned by the caller

    Returns:
        Number of traces drawn
    """
    drawn = 0

    for k in range(coords.shape[0]):
        points, escaped = iterate_orbit(coords[k, 0], coords[k, 1], power, bound, limit)
        if not keeps_trace_code(mode, escaped):
            continue

        drawn += 1
        px = image_coord(points[0, 0], re_off, half_size, zoom)
        py = image_coord(points[0, 1], im_off, half_size, zoom)

        for n in range(1, points.shape[0]):
            qx = image_coord(points[n, 0], re_off, half_size, zoom)
            qy = image_coord(points[n, 1], im_off, half_size, zoom)
            draw_antialiased_line(canvas, px, py, qx, qy, MAX_CHANNEL, opacity)
            px = qx
            py = qy

    return drawn


@njit(cache=True)
def fold_kernel(accumulator, canvas):
    """Alpha-over `canvas` onto `accumulator` in place."""
    height, width = accumulator.shape[0], accumulator.shape[1]

    for y in range(height):
        for x in range(width):
            luma, alpha = blend_over(int(accumulator[y, x, 0]), int(accumulator[y, x, 1]),
                                     int(canvas[y, x, 0]), int(canvas[y, x, 1]))
            accumulator[y, x, 0] = luma
            accumulator[y, x, 1] = alpha

    return accumulator


@njit(cache=True)
def point_escapes(c_re, c_im, power, limit, escape_radius_sq):
    """Classic escape-time test on the squared norm of z."""
    zr = 0.0
    zi = 0.0

    for _ in range(limit):
        pr, pi = complex_powf(zr, zi, power)
        zr = pr + c_re
        zi = pi + c_im

        if zr * zr + zi * zi > escape_radius_sq:
            return True

    return False


@njit(parallel=True, cache=True)
def escape_time_kernel(size, half_size, zoom, re_off, im_off, power, limit,
                       escape_radius_sq, escaped_color, trapped_color):
    """
    Compute the two-colour escape-time mask, one row per parallel task.

    Returns:
        (size, size, 4) uint8 RGBA array
    """
    out = np.empty((size, size, 4), dtype=np.uint8)

    for y in prange(size):
        ci = complex_coord(y, im_off, half_size, zoom)
        for x in range(size):
            cr = complex_coord(x, re_off, half_size, zoom)
            if point_escapes(cr, ci, power, limit, escape_radius_sq):
                for ch in range(4):
                    out[y, x, ch] = escaped_color[ch]
            else:
                for ch in range(4):
                    out[y, x, ch] = trapped_color[ch]

    return out


def numba_version() -> str:
    return numba.__version__
