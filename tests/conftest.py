import numpy as np
import pytest

from orbit_tracer.core.canvas import MAX_CHANNEL
from orbit_tracer.core.config import RenderConfig


@pytest.fixture
def tiny_config():
    """The 2x2 grid scenario: {-2, 0} x {-2, 0} drawn on a 10x10 canvas."""
    return RenderConfig(size=10, bounds=2.0, delta=2.0, limit=1, zoom=1.0,
                        re_off=0.0, im_off=0.0, pow=2.0, num_processes=1)


@pytest.fixture
def small_config():
    return RenderConfig(size=48, bounds=2.0, delta=0.2, limit=12, zoom=11.0,
                        re_off=0.4, im_off=0.0, chunk_len=100, opacity=4000,
                        num_processes=1)


@pytest.fixture
def make_canvas():
    """Build canvases as line drawing leaves them: white wherever alpha > 0."""
    def _make(rng, size, density=0.3):
        canvas = np.zeros((size, size, 2), dtype=np.uint16)
        alpha = rng.integers(1, MAX_CHANNEL + 1, size=(size, size))
        mask = rng.random((size, size)) < density
        canvas[..., 1] = np.where(mask, alpha, 0)
        canvas[..., 0] = np.where(mask, MAX_CHANNEL, 0)
        return canvas
    return _make
