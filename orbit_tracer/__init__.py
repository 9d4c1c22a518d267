"""
Orbit trace rendering library.

This library renders the orbits of the generalized Mandelbrot map
z -> z^pow + c as antialiased line traces accumulated into a 16-bit
canvas, optionally overlaid with the classic escape-time set.

Key Features:
- Real-valued exponents (pow = 2.0 is the classic Mandelbrot map)
- Draw modes for all, escaped or trapped orbits
- Chunked multiprocessing with an order-independent canvas fold
- Numba JIT kernels for iteration, rasterization and blending
- Lossless PNG/TIFF export with embedded render metadata

Example usage:
    >>> from orbit_tracer import OrbitRenderer, RenderConfig
    >>> renderer = OrbitRenderer(RenderConfig(size=800, zoom=350, delta=0.02))
    >>> result = renderer.render_to_file("traces.png")
"""

__version__ = "1.0.0"
__author__ = "Orbit Tracer Team"

from orbit_tracer.core.config import DrawMode, RenderConfig
from orbit_tracer.core.math_functions import (
    OrbitTrace,
    coordinate_grid,
    iterate_coordinate,
    to_complex_coord,
    to_image_coord,
)
from orbit_tracer.core.canvas import new_canvas, render_chunk, fold_canvases
from orbit_tracer.core.escape_time import escape_time_overlay
from orbit_tracer.acceleration.multiprocessing import ReductionAccumulator
from orbit_tracer.rendering.coloring import ColorRGBA, composite
from orbit_tracer.rendering.image_output import ImageExporter, RenderMetadata

# Main API classes
from orbit_tracer.api import OrbitRenderer, RenderResult

__all__ = [
    "OrbitRenderer",
    "RenderResult",
    "RenderConfig",
    "DrawMode",
    "OrbitTrace",
    "coordinate_grid",
    "iterate_coordinate",
    "to_complex_coord",
    "to_image_coord",
    "new_canvas",
    "render_chunk",
    "fold_canvases",
    "escape_time_overlay",
    "ReductionAccumulator",
    "ColorRGBA",
    "composite",
    "ImageExporter",
    "RenderMetadata",
]
