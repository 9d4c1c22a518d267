"""
Main API classes for orbit trace rendering.

This module ties the pipeline together: sampling grid, parallel trace
accumulation, the optional escape-time overlay and final compositing.
"""

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

import numpy as np

from .acceleration.multiprocessing import ReductionAccumulator
from .core.config import RenderConfig
from .core.escape_time import escape_time_overlay
from .core.math_functions import coordinate_axis, coordinate_grid
from .rendering.coloring import ColorRGBA, composite
from .rendering.image_output import ImageExporter, RenderMetadata

logger = logging.getLogger(__name__)


@dataclass
class RenderResult:
    """Everything produced by one render."""
    canvas: np.ndarray
    overlay: Optional[np.ndarray]
    image: np.ndarray
    metadata: RenderMetadata


class OrbitRenderer:
    """Main orbit trace rendering engine."""

    def __init__(self, config: Optional[RenderConfig] = None):
        """
        Initialize the renderer.

        Args:
            config: Rendering configuration (uses defaults if None)
        """
        self.config = (config or RenderConfig()).validate()
        self.accumulator = ReductionAccumulator(self.config.num_processes)
        self.image_exporter = ImageExporter()

        logger.info(f"OrbitRenderer initialized: {self.config.size}x{self.config.size}, "
                    f"pow={self.config.pow}, mode={self.config.mode.label}")

    def add_progress_callback(self, callback: Callable[[int, int], None]):
        """Register a (completed_chunks, total_chunks) progress callback."""
        self.accumulator.add_progress_callback(callback)

    @property
    def total_chunks(self) -> int:
        """Number of work units the render will be split into."""
        config = self.config
        axis_len = sum(1 for _ in coordinate_axis(config.bounds, config.delta))
        return -(-axis_len * axis_len // config.chunk_len)

    def render(self) -> RenderResult:
        """
        Render the configured image.

        Returns:
            RenderResult with the accumulated canvas, overlay and final image
        """
        config = self.config
        start_time = time.time()

        grid = coordinate_grid(config.bounds, config.delta)
        accumulated = self.accumulator.accumulate(grid, config)

        overlay = escape_time_overlay(config) if config.overlay_mandel else None
        image = composite(accumulated.canvas, ColorRGBA(*config.background), overlay)

        render_time = time.time() - start_time
        logger.info(f"Render complete: {render_time:.2f}s")

        metadata = RenderMetadata(
            config=config.to_dict(),
            resolution=(config.size, config.size),
            coordinates=accumulated.coordinates,
            chunks=accumulated.chunks,
            traces_drawn=accumulated.traces_drawn,
            render_time_seconds=render_time,
        )

        return RenderResult(accumulated.canvas, overlay, image, metadata)

    def save(self, result: RenderResult, filepath=None) -> Path:
        """
        Write a render result to disk.

        Args:
            result: Result returned by render()
            filepath: Output path (defaults to config.image_name)

        Returns:
            Path of the written image
        """
        filepath = Path(filepath or self.config.image_name)
        metadata = result.metadata if self.config.save_metadata else None

        path = self.image_exporter.save_image(result.image, filepath, metadata)
        if self.config.save_raw_data:
            self.image_exporter.save_raw_data(result.canvas, filepath.with_suffix('.npy'), metadata)

        return path

    def render_to_file(self, filepath=None) -> RenderResult:
        """Render and save in one step."""
        result = self.render()
        self.save(result, filepath)
        return result
