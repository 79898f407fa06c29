import numpy as np
import pytest

from mandelbrot_engine import (
    PALETTE,
    PIXEL_STATE,
    EscapeTimeEngine,
    colorize,
    palette_color,
    pixel_to_complex,
)
from mandelbrot_viewport import Viewport


def assert_same_state(a, b):
    for name in PIXEL_STATE.names:
        np.testing.assert_array_equal(a.state[name], b.state[name], err_msg=name)


@pytest.fixture
def viewport():
    return Viewport.initial()


def test_pixel_mapping_corner_and_center(viewport):
    c_re, c_im = pixel_to_complex(viewport, 8, 6)
    assert (c_re[0], c_im[0]) == (-2.5, -1.0)
    center = 3 * 8 + 4
    assert (c_re[center], c_im[center]) == (-0.75, 0.0)
    # row-major: x varies fastest
    assert c_re[1] > c_re[0] and c_im[1] == c_im[0]
    assert c_im[8] > c_im[0] and c_re[8] == c_re[0]


def test_corner_pixel_escapes_fast(viewport):
    engine = EscapeTimeEngine(8, 6)
    assert engine.update(viewport, True, 64)
    assert engine.computed_depth == 32

    _, _, x_sq, y_sq, count = engine.pixel(0, 0)
    assert 1 <= count <= 2
    assert x_sq + y_sq > 4.0

    # close to the far end of the palette
    color = engine.rgba()[0, 0, :3].astype(int)
    lo = np.minimum(PALETTE[-2], PALETTE[-1])
    hi = np.maximum(PALETTE[-2], PALETTE[-1])
    assert np.all(color >= lo) and np.all(color <= hi)
    assert engine.rgba()[0, 0, 3] == 255


@pytest.mark.parametrize("depth", [32, 500, 10000])
def test_center_pixel_never_escapes(viewport, depth):
    engine = EscapeTimeEngine(8, 6)
    engine.compute(viewport, depth)
    _, _, x_sq, y_sq, count = engine.pixel(4, 3)
    assert count == depth
    assert x_sq + y_sq <= 4.0
    np.testing.assert_array_equal(engine.rgba()[3, 4], [66, 30, 15, 255])


@pytest.mark.parametrize("split", [1, 17, 32, 150])
def test_resume_matches_single_pass(viewport, split):
    single = EscapeTimeEngine(40, 24)
    single.compute(viewport, 200)

    resumed = EscapeTimeEngine(40, 24)
    resumed.compute(viewport, split)
    resumed.compute(viewport, 200)

    assert_same_state(single, resumed)
    np.testing.assert_array_equal(single.buffer, resumed.buffer)


def test_progressive_ticks_match_direct_computation(viewport):
    engine = EscapeTimeEngine(40, 24)
    engine.update(viewport, True, 300)
    while engine.update(viewport, False, 300):
        pass
    assert engine.computed_depth == 300

    direct = EscapeTimeEngine(40, 24)
    direct.compute(viewport, 300)
    assert_same_state(engine, direct)


def test_iteration_counts_never_decrease_while_refining(viewport):
    engine = EscapeTimeEngine(40, 24)
    engine.update(viewport, True, 400)
    previous = engine.iter_counts.copy()
    while engine.update(viewport, False, 400):
        current = engine.iter_counts.copy()
        assert np.all(current >= previous)
        previous = current


def test_depth_schedule():
    engine = EscapeTimeEngine(4, 4, depth_increment=32)
    engine.computed_depth = 8
    assert engine.next_depth(1000) == 16
    engine.computed_depth = 20
    assert engine.next_depth(1000) == 40
    engine.computed_depth = 100
    assert engine.next_depth(1000) == 132
    engine.computed_depth = 290
    assert engine.next_depth(300) == 300
    engine.computed_depth = 300
    assert engine.next_depth(300) is None
    engine.computed_depth = 400
    assert engine.next_depth(300) is None


def test_update_depth_sequence(viewport):
    engine = EscapeTimeEngine(10, 6)
    depths = []
    engine.update(viewport, True, 200)
    depths.append(engine.computed_depth)
    while engine.update(viewport, False, 200):
        depths.append(engine.computed_depth)
    assert depths == [32, 64, 96, 128, 160, 192, 200]


def test_steady_state_leaves_buffer_untouched(viewport):
    engine = EscapeTimeEngine(10, 6)
    engine.update(viewport, True, 64)
    assert engine.update(viewport, False, 64)
    before = engine.buffer.copy()
    state_before = engine.state.copy()

    assert not engine.update(viewport, False, 64)
    assert engine.computed_depth == 64
    np.testing.assert_array_equal(engine.buffer, before)
    for name in PIXEL_STATE.names:
        np.testing.assert_array_equal(engine.state[name], state_before[name])


def test_reset_zeroes_state(viewport):
    engine = EscapeTimeEngine(10, 6)
    engine.compute(viewport, 100)
    engine.reset()
    assert engine.computed_depth == 0
    for name in PIXEL_STATE.names:
        assert not engine.state[name].any()


def test_reset_pass_respects_low_ceiling(viewport):
    engine = EscapeTimeEngine(10, 6, initial_depth=32)
    engine.update(viewport, True, 16)
    assert engine.computed_depth == 16
    assert engine.iter_counts.max() <= 16


def test_zero_depth_pass(viewport):
    engine = EscapeTimeEngine(10, 6)
    engine.compute(viewport, 0)
    assert not engine.iter_counts.any()
    rgba = engine.rgba()
    np.testing.assert_array_equal(rgba[..., :3], np.broadcast_to(PALETTE[-1].astype(np.uint8), (6, 10, 3)))
    assert np.all(rgba[..., 3] == 255)


def test_colorize_extremes():
    rgba = colorize(np.array([0, 32]), 32)
    np.testing.assert_array_equal(rgba[0], [106, 52, 3, 255])
    np.testing.assert_array_equal(rgba[1], [66, 30, 15, 255])


def test_colorize_zero_depth_does_not_divide():
    with np.errstate(all="raise"):
        rgba = colorize(np.zeros(3, dtype=np.int64), 0)
    np.testing.assert_array_equal(rgba[:, :3], np.tile(PALETTE[-1], (3, 1)))


def test_palette_hits_stops_and_clamps():
    stops = palette_color(np.arange(16) / 15.0)
    np.testing.assert_array_equal(stops, PALETTE.astype(np.uint8))
    np.testing.assert_array_equal(palette_color(-0.5), PALETTE[0].astype(np.uint8))
    np.testing.assert_array_equal(palette_color(1.5), PALETTE[-1].astype(np.uint8))


def test_palette_is_continuous():
    depth = 250
    colors = colorize(np.arange(depth + 1), depth)[:, :3].astype(int)
    max_step = np.abs(np.diff(PALETTE, axis=0)).max()
    assert np.abs(np.diff(colors, axis=0)).max() <= max_step


def test_buffer_is_row_major(viewport):
    engine = EscapeTimeEngine(10, 6)
    engine.compute(viewport, 50)
    px, py = 7, 2
    count = engine.pixel(px, py)[4]
    offset = 4 * (py * 10 + px)
    np.testing.assert_array_equal(engine.buffer[offset:offset + 4], colorize(np.array([count]), 50)[0])


def test_rejects_empty_image():
    with pytest.raises(AssertionError):
        EscapeTimeEngine(0, 10)
