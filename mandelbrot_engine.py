"""Incremental escape-time engine for the Mandelbrot viewer.

Every pixel keeps the last iterate of z <- z**2 + c together with its
iteration count. A deeper pass picks each pixel up where the previous pass
left it instead of starting over from zero, so the image refines across
frames while each frame does a bounded amount of work:

  1. Reset pass:  state zeroed, everything iterated to a shallow depth.
                  Runs whenever the view changes.
  2. Resume pass: only pixels still bounded are iterated further, up to
                  previous_depth + min(previous_depth, increment).

The colour buffer is a flat RGBA8 array, row-major, rewritten after each pass.
"""

import logging

import numpy as np

logger = logging.getLogger(__name__)

INITIAL_DEPTH = 32
DEPTH_INCREMENT = 32
ESCAPE_RADIUS_SQ = 4.0

# Classic 16-stop gradient, index 0 is used for points that never escape.
PALETTE = np.array([
    (66, 30, 15),
    (25, 7, 26),
    (9, 1, 47),
    (4, 4, 73),
    (0, 7, 100),
    (12, 44, 138),
    (24, 82, 177),
    (57, 125, 209),
    (134, 181, 229),
    (211, 236, 248),
    (241, 233, 191),
    (248, 201, 95),
    (255, 170, 0),
    (204, 128, 0),
    (153, 87, 0),
    (106, 52, 3),
], dtype=np.float64)

# One record per pixel, indexed by y * width + x.
PIXEL_STATE = np.dtype([
    ("x", np.float64),
    ("y", np.float64),
    ("x_sq", np.float64),
    ("y_sq", np.float64),
    ("iter_count", np.int64),
])


def pixel_to_complex(viewport, width, height):
    """Map every pixel onto the viewport rectangle.

    Returns the real and imaginary parts of c as two flat arrays in
    row-major pixel order.
    """
    re = viewport.x_min + viewport.x_range * (np.arange(width, dtype=np.float64) / width)
    im = viewport.y_min + viewport.y_range * (np.arange(height, dtype=np.float64) / height)
    c_re, c_im = np.meshgrid(re, im)
    return c_re.ravel(), c_im.ravel()


def palette_color(t):
    """Interpolate the palette at t in [0, 1]; values outside are clamped."""
    t = np.clip(np.asarray(t, dtype=np.float64), 0.0, 1.0)
    last = len(PALETTE) - 1
    pos = t * last
    lo = np.floor(pos).astype(np.intp)
    hi = np.minimum(lo + 1, last)
    frac = (pos - lo)[..., np.newaxis]
    rgb = PALETTE[lo] + (PALETTE[hi] - PALETTE[lo]) * frac
    return np.rint(rgb).astype(np.uint8)


def colorize(iter_counts, depth):
    """Return an (N, 4) RGBA array for the given iteration counts.

    A depth of 0 counts as "fully escaped, progress 0".
    """
    iter_counts = np.asarray(iter_counts)
    if depth <= 0:
        progress = np.zeros(iter_counts.shape, dtype=np.float64)
    else:
        progress = iter_counts / np.float64(depth)
    rgba = np.empty(iter_counts.shape + (4,), dtype=np.uint8)
    rgba[..., :3] = palette_color(1.0 - progress)
    rgba[..., 3] = 255
    return rgba


class EscapeTimeEngine:
    """Owns the per-pixel iteration state and the colour buffer."""

    def __init__(self, width, height, initial_depth=INITIAL_DEPTH, depth_increment=DEPTH_INCREMENT):
        assert width > 0 and height > 0, "image dimensions must be positive"
        self.width = width
        self.height = height
        self.initial_depth = initial_depth
        self.depth_increment = depth_increment

        self.state = np.zeros(width * height, dtype=PIXEL_STATE)
        self.buffer = np.zeros(width * height * 4, dtype=np.uint8)
        self.computed_depth = 0

        assert self.state.shape == (width * height,)
        assert self.buffer.size == 4 * self.state.size

    @property
    def iter_counts(self):
        return self.state["iter_count"]

    def pixel(self, px, py):
        """Saved (x, y, x_sq, y_sq, iter_count) of one pixel."""
        rec = self.state[py * self.width + px]
        return (float(rec["x"]), float(rec["y"]), float(rec["x_sq"]),
                float(rec["y_sq"]), int(rec["iter_count"]))

    def rgba(self):
        """The colour buffer viewed as (height, width, 4)."""
        return self.buffer.reshape(self.height, self.width, 4)

    def reset(self):
        for name in PIXEL_STATE.names:
            self.state[name] = 0
        self.computed_depth = 0

    def next_depth(self, max_iterations):
        """Target of the next resume pass, or None once the ceiling is reached."""
        if self.computed_depth >= max_iterations:
            return None
        step = min(self.computed_depth, self.depth_increment)
        return min(self.computed_depth + step, max_iterations)

    def compute(self, viewport, depth):
        """Run every pixel's recurrence from its saved state up to depth."""
        c_re, c_im = pixel_to_complex(viewport, self.width, self.height)
        state = self.state

        active = np.flatnonzero(
            (state["x_sq"] + state["y_sq"] <= ESCAPE_RADIUS_SQ) & (state["iter_count"] < depth)
        )
        logger.debug("pass to depth %d: %d of %d pixels active", depth, active.size, state.size)

        x = state["x"][active]
        y = state["y"][active]
        x_sq = state["x_sq"][active]
        y_sq = state["y_sq"][active]
        count = state["iter_count"][active]
        x0 = c_re[active]
        y0 = c_im[active]

        while active.size:
            y = 2.0 * x * y + y0
            x = x_sq - y_sq + x0
            x_sq = x * x
            y_sq = y * y
            count += 1

            running = (x_sq + y_sq <= ESCAPE_RADIUS_SQ) & (count < depth)
            if running.all():
                continue

            # Store the pixels that stopped, keep iterating the rest
            done = ~running
            idx = active[done]
            state["x"][idx] = x[done]
            state["y"][idx] = y[done]
            state["x_sq"][idx] = x_sq[done]
            state["y_sq"][idx] = y_sq[done]
            state["iter_count"][idx] = count[done]

            active = active[running]
            x, y, x_sq, y_sq = x[running], y[running], x_sq[running], y_sq[running]
            count = count[running]
            x0, y0 = x0[running], y0[running]

        self.computed_depth = depth
        self.buffer[:] = colorize(state["iter_count"], depth).ravel()

    def update(self, viewport, reset, max_iterations):
        """Advance the computation by one tick.

        Returns True when the colour buffer was rewritten, False on a
        steady-state tick where nothing was computed.
        """
        if reset:
            self.reset()
            depth = min(self.initial_depth, max_iterations)
            logger.debug("reset pass at depth %d", depth)
        else:
            depth = self.next_depth(max_iterations)
            if depth is None:
                return False
            logger.debug("resume pass %d -> %d (ceiling %d)", self.computed_depth, depth, max_iterations)

        self.compute(viewport, depth)
        return True
