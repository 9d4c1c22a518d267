import itertools

import numpy as np
import pytest

from orbit_tracer.acceleration.numba_backend import blend_over
from orbit_tracer.core.canvas import (
    MAX_CHANNEL,
    blend_canvas,
    draw_line,
    fold_canvases,
    new_canvas,
    render_chunk,
    render_chunk_counted,
)
from orbit_tracer.core.config import DrawMode
from orbit_tracer.core.math_functions import coordinate_grid

ALPHAS = [0, 1, 64, 1000, 30000, 65000, MAX_CHANNEL]


class TestBlendOver:

    def test_transparent_foreground_is_noop(self):
        assert blend_over(100, 200, MAX_CHANNEL, 0) == (100, 200)

    def test_onto_empty_pixel(self):
        assert blend_over(0, 0, MAX_CHANNEL, 64) == (MAX_CHANNEL, 64)

    def test_opaque_foreground_saturates(self):
        assert blend_over(MAX_CHANNEL, 1234, MAX_CHANNEL, MAX_CHANNEL) == (MAX_CHANNEL, MAX_CHANNEL)

    def test_alpha_over_value(self):
        # 0.5 over 0.5 gives 0.75
        half = MAX_CHANNEL // 2 + 1
        luma, alpha = blend_over(MAX_CHANNEL, half, MAX_CHANNEL, half)
        assert luma == MAX_CHANNEL
        assert alpha == pytest.approx(0.75 * MAX_CHANNEL, abs=2)

    @pytest.mark.parametrize("a, b", list(itertools.product(ALPHAS, ALPHAS)))
    def test_alpha_never_decreases(self, a, b):
        _, alpha = blend_over(MAX_CHANNEL if a else 0, a, MAX_CHANNEL, b)
        assert alpha >= max(a, b)

    @pytest.mark.parametrize("a, b", list(itertools.product(ALPHAS, ALPHAS)))
    def test_commutative_on_trace_pixels(self, a, b):
        bg = (MAX_CHANNEL if a else 0, a)
        fg = (MAX_CHANNEL if b else 0, b)
        assert blend_over(*bg, *fg) == blend_over(*fg, *bg)


class TestDrawLine:

    def test_horizontal_line(self):
        canvas = draw_line(new_canvas(10), (1, 2), (5, 2), opacity=1000)
        expected = new_canvas(10)
        expected[2, 1:6] = (MAX_CHANNEL, 1000)
        np.testing.assert_array_equal(canvas, expected)

    def test_vertical_line(self):
        canvas = draw_line(new_canvas(10), (3, 6), (3, 1), opacity=1000)
        expected = new_canvas(10)
        expected[1:7, 3] = (MAX_CHANNEL, 1000)
        np.testing.assert_array_equal(canvas, expected)

    def test_single_point(self):
        canvas = draw_line(new_canvas(10), (4, 4), (4, 4), opacity=1000)
        assert canvas[4, 4, 1] == 1000
        assert np.count_nonzero(canvas[..., 1]) == 1

    def test_coverage_is_split_between_neighbours(self):
        canvas = draw_line(new_canvas(10), (0, 0), (4, 2), opacity=1000)
        assert canvas[0, 1, 1] == 500
        assert canvas[1, 1, 1] == 500
        assert canvas[1, 2, 1] == 1000
        assert canvas[2, 4, 1] == 1000

    def test_clipped_diagonal(self):
        canvas = draw_line(new_canvas(10), (-50, -50), (200, 200), opacity=1000)
        for k in range(10):
            assert canvas[k, k, 1] == 1000
        assert np.count_nonzero(canvas[..., 1]) == 10

    def test_line_outside_canvas_draws_nothing(self):
        canvas = draw_line(new_canvas(10), (-100, -100), (-5, -90), opacity=1000)
        assert not canvas.any()

    def test_saturated_endpoint(self):
        canvas = draw_line(new_canvas(10), (2 ** 31 - 1, 0), (0, 0), opacity=1000)
        np.testing.assert_array_equal(canvas[0, :, 1], np.full(10, 1000))

    def test_overlapping_lines_accumulate(self):
        canvas = new_canvas(10)
        draw_line(canvas, (0, 5), (9, 5), opacity=1000)
        single = canvas[5, 5, 1]
        draw_line(canvas, (5, 0), (5, 9), opacity=1000)
        assert canvas[5, 5, 1] > single
        assert canvas[5, 0, 1] == single


class TestRenderChunk:

    def test_private_canvas_is_created(self, tiny_config):
        canvas = render_chunk(coordinate_grid(2.0, 2.0), tiny_config)
        assert canvas.shape == (10, 10, 2)
        assert canvas.dtype == np.uint16
        assert canvas[5, 5, 1] > 0

    def test_given_canvas_is_filled_in_place(self, tiny_config):
        canvas = new_canvas(10)
        result = render_chunk(np.array([[0.0, 0.0]]), tiny_config, canvas)
        assert result is canvas
        assert canvas[5, 5, 1] == tiny_config.opacity

    def test_empty_chunk(self, tiny_config):
        canvas = render_chunk(np.empty((0, 2)), tiny_config)
        assert not canvas.any()

    def test_mode_counts_partition(self, small_config):
        grid = coordinate_grid(small_config.bounds, small_config.delta)
        counts = {mode: render_chunk_counted(grid, small_config.with_overrides(mode=mode))[1]
                  for mode in DrawMode}
        assert counts[DrawMode.ALL] == len(grid)
        assert counts[DrawMode.ALL] == counts[DrawMode.ESCAPED] + counts[DrawMode.TRAPPED]

    def test_filtered_out_traces_leave_no_mark(self, tiny_config):
        # Every trace of the 2x2 grid is trapped at limit 1
        canvas = render_chunk(coordinate_grid(2.0, 2.0), tiny_config.with_overrides(mode=DrawMode.ESCAPED))
        assert not canvas.any()


class TestFold:

    def test_zero_canvas_is_identity(self, make_canvas):
        rng = np.random.default_rng(1)
        canvas = make_canvas(rng, 16)
        np.testing.assert_array_equal(blend_canvas(canvas.copy(), new_canvas(16)), canvas)
        np.testing.assert_array_equal(blend_canvas(new_canvas(16), canvas), canvas)

    def test_commutative(self, make_canvas):
        rng = np.random.default_rng(2)
        a = make_canvas(rng, 32, density=0.6)
        b = make_canvas(rng, 32, density=0.6)
        np.testing.assert_array_equal(blend_canvas(a.copy(), b), blend_canvas(b.copy(), a))

    def test_any_order_agrees_within_rounding(self, make_canvas):
        rng = np.random.default_rng(3)
        canvases = [make_canvas(rng, 24, density=0.5) for _ in range(5)]
        reference = fold_canvases(canvases, 24).astype(np.int64)

        for _ in range(10):
            order = rng.permutation(len(canvases))
            folded = fold_canvases([canvases[i] for i in order], 24).astype(np.int64)
            assert np.abs(folded - reference).max() <= len(canvases)
            np.testing.assert_array_equal(folded[..., 1] > 0, reference[..., 1] > 0)

    def test_grouping_agrees_within_rounding(self, make_canvas):
        rng = np.random.default_rng(4)
        a, b, c = (make_canvas(rng, 24, density=0.7) for _ in range(3))
        left = blend_canvas(blend_canvas(a.copy(), b), c).astype(np.int64)
        right = blend_canvas(a.copy(), blend_canvas(b.copy(), c)).astype(np.int64)
        assert np.abs(left - right).max() <= 3

    def test_shape_mismatch(self):
        with pytest.raises(ValueError):
            blend_canvas(new_canvas(4), new_canvas(5))
