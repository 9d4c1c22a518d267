"""
Multiprocessing backend for parallel trace accumulation.

The coordinate grid is cut into fixed-size chunks. Every chunk is rendered
into its own private canvas in a worker process, and the main process folds
the finished canvases into one accumulated canvas. Canvases are folded in
chunk order, whatever order the workers finish in, so the result does not
depend on the number of processes.
"""

import logging
import multiprocessing as mp
import time
from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, List, Optional, Tuple

import numpy as np

from ..core.canvas import blend_canvas, new_canvas, render_chunk_counted
from ..core.config import RenderConfig

logger = logging.getLogger(__name__)


@dataclass
class ChunkSpec:
    """A contiguous slice of the coordinate grid."""
    chunk_id: int
    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start


@dataclass
class ChunkResult:
    """Result from rendering a single chunk."""
    chunk_id: int
    canvas: np.ndarray
    traces_drawn: int
    processing_time: float


@dataclass
class AccumulationResult:
    """The folded canvas and some bookkeeping about how it was made."""
    canvas: np.ndarray
    chunks: int
    coordinates: int
    traces_drawn: int
    processing_time: float


def partition_chunks(total: int, chunk_len: int) -> List[ChunkSpec]:
    """
    Split `total` coordinates into chunks of `chunk_len` (the last may be shorter).

    Args:
        total: Number of coordinates
        chunk_len: Coordinates per chunk, > 0

    Returns:
        List of ChunkSpec objects in grid order
    """
    if chunk_len <= 0:
        raise ValueError("chunk_len must be positive")

    chunks = [ChunkSpec(chunk_id, start, min(start + chunk_len, total))
              for chunk_id, start in enumerate(range(0, total, chunk_len))]

    logger.debug(f"Created {len(chunks)} chunks of up to {chunk_len} coordinates")
    return chunks


def process_chunk(args: Tuple[ChunkSpec, np.ndarray, RenderConfig]) -> ChunkResult:
    """
    Render a single chunk in a worker process.

    Args:
        args: Tuple of (chunk_spec, coordinates, config)

    Returns:
        ChunkResult holding the chunk's private canvas
    """
    chunk_spec, coords, config = args
    start_time = time.time()

    canvas, drawn = render_chunk_counted(coords, config)

    return ChunkResult(
        chunk_id=chunk_spec.chunk_id,
        canvas=canvas,
        traces_drawn=drawn,
        processing_time=time.time() - start_time,
    )


class ReductionAccumulator:
    """Render chunks in parallel and fold their canvases into one."""

    def __init__(self, num_processes: Optional[int] = None):
        """
        Initialize the accumulator.

        Args:
            num_processes: Number of worker processes (None for the optimal count).
                A single process renders every chunk in the calling process.
        """
        if num_processes is None:
            self.num_processes = get_optimal_process_count()
        else:
            self.num_processes = max(1, num_processes)

        self.progress_callbacks: List[Callable[[int, int], None]] = []
        logger.debug(f"Reduction accumulator: {self.num_processes} processes")

    def add_progress_callback(self, callback: Callable[[int, int], None]):
        """
        Add callback for progress updates.

        Args:
            callback: Function called with (completed_chunks, total_chunks)
                once per finished chunk
        """
        self.progress_callbacks.append(callback)

    def accumulate(self, grid: np.ndarray, config: RenderConfig) -> AccumulationResult:
        """
        Render every coordinate of `grid` and fold the chunk canvases.

        Args:
            grid: (N, 2) array of (re, im) coordinates
            config: Render configuration

        Returns:
            AccumulationResult with the accumulated canvas
        """
        start_time = time.time()

        chunks = partition_chunks(len(grid), config.chunk_len)
        tasks = [(chunk, grid[chunk.start:chunk.end], config) for chunk in chunks]

        logger.info(f"Processing {len(grid)} coordinates in {len(chunks)} chunks "
                    f"with {self.num_processes} processes")

        accumulator = new_canvas(config.size)
        pending: Dict[int, np.ndarray] = {}
        next_chunk = 0
        completed = 0
        traces_drawn = 0
        processing_time = 0.0
        log_every = max(1, len(chunks) // 10)

        for result in self._run(tasks):
            pending[result.chunk_id] = result.canvas
            while next_chunk in pending:
                blend_canvas(accumulator, pending.pop(next_chunk))
                next_chunk += 1

            completed += 1
            traces_drawn += result.traces_drawn
            processing_time += result.processing_time

            if completed % log_every == 0:
                progress = (completed / len(chunks)) * 100
                logger.info(f"Completed {completed}/{len(chunks)} chunks ({progress:.1f}%)")

            for callback in self.progress_callbacks:
                callback(completed, len(chunks))

        total_time = time.time() - start_time
        logger.info(f"Accumulation complete: {total_time:.2f}s total, "
                    f"{processing_time:.2f}s processing time, {traces_drawn} traces drawn")

        return AccumulationResult(
            canvas=accumulator,
            chunks=len(chunks),
            coordinates=len(grid),
            traces_drawn=traces_drawn,
            processing_time=processing_time,
        )

    def _run(self, tasks) -> Iterator[ChunkResult]:
        """Yield chunk results in completion order."""
        if self.num_processes == 1 or len(tasks) <= 1:
            for task in tasks:
                yield process_chunk(task)
            return

        # Workers are spawned: forking after a numba parallel kernel has run
        # deadlocks under the TBB threading layer
        with ProcessPoolExecutor(max_workers=min(self.num_processes, len(tasks)),
                                 mp_context=mp.get_context("spawn")) as executor:
            futures = {executor.submit(process_chunk, task) for task in tasks}
            try:
                for future in as_completed(futures):
                    # A finished future keeps its canvas alive
                    futures.discard(future)
                    yield future.result()
            except Exception:
                executor.shutdown(wait=False, cancel_futures=True)
                raise


def get_optimal_process_count() -> int:
    """Get optimal number of processes for trace rendering."""
    # Leave one core for the fold running in the main process
    return max(1, mp.cpu_count() - 1)
