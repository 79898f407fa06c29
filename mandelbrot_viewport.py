"""Keyboard-driven viewport control.

Key state is polled once per tick. Panning, zooming and resetting move the
visible rectangle and require the engine to start over; raising the depth
ceiling only lets the current image refine further.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Protocol

logger = logging.getLogger(__name__)

PAN_STEP = 0.025
ZOOM_FACTOR = 1.25
DEPTH_STEP = 64
MAX_ITERATIONS = 64

# (x_min, x_range, y_min, y_range)
INITIAL_VIEWPORT = (-2.5, 3.5, -1.0, 2.0)


class Key(enum.Enum):
    LEFT = "left"
    RIGHT = "right"
    UP = "up"
    DOWN = "down"
    A = "a"
    D = "d"
    W = "w"
    S = "s"
    MINUS = "-"        # zoom out
    EQUALS = "="       # zoom in
    E = "e"            # raise depth ceiling
    Q = "q"            # lower depth ceiling
    R = "r"            # reset view


class InputState(Protocol):
    def is_pressed(self, key: Key) -> bool:
        ...


@dataclass
class Viewport:
    """Rectangle of the complex plane mapped onto the pixel grid."""

    x_min: float
    x_range: float
    y_min: float
    y_range: float

    def __post_init__(self):
        if not (self.x_range > 0 and self.y_range > 0):
            raise ValueError(f"viewport ranges must be positive, got {self.x_range}, {self.y_range}")

    @classmethod
    def initial(cls):
        return cls(*INITIAL_VIEWPORT)

    @property
    def center(self):
        return self.x_min + 0.5 * self.x_range, self.y_min + 0.5 * self.y_range


class ViewportController:
    """Translate held keys into viewport and depth-ceiling updates."""

    def __init__(self, pan_step=PAN_STEP, zoom_factor=ZOOM_FACTOR,
                 depth_step=DEPTH_STEP, max_iterations=MAX_ITERATIONS):
        self.pan_step = pan_step
        self.zoom_factor = zoom_factor
        self.depth_step = depth_step
        self.max_iterations = max_iterations

    # ── Individual operations ─────────────────────────────────

    def pan(self, viewport, dx, dy):
        """Shift by dx/dy steps of the current range (each -1, 0 or 1)."""
        viewport.x_min += dx * self.pan_step * viewport.x_range
        viewport.y_min += dy * self.pan_step * viewport.y_range

    def zoom_out(self, viewport):
        grow = 0.5 * (self.zoom_factor - 1.0)
        viewport.x_min -= viewport.x_range * grow
        viewport.y_min -= viewport.y_range * grow
        viewport.x_range *= self.zoom_factor
        viewport.y_range *= self.zoom_factor

    def zoom_in(self, viewport):
        # Shrink first: offsetting by half the new range keeps the center fixed
        viewport.x_range /= self.zoom_factor
        viewport.y_range /= self.zoom_factor
        shrink = 0.5 * (self.zoom_factor - 1.0)
        viewport.x_min += viewport.x_range * shrink
        viewport.y_min += viewport.y_range * shrink

    def reset_view(self, viewport):
        viewport.x_min, viewport.x_range, viewport.y_min, viewport.y_range = INITIAL_VIEWPORT
        logger.info("view reset")

    def raise_depth(self):
        self.max_iterations += self.depth_step
        logger.debug("depth ceiling raised to %d", self.max_iterations)

    def lower_depth(self):
        # Floor at one step, but a ceiling already below the step never goes up
        floor = min(self.depth_step, self.max_iterations)
        self.max_iterations = max(self.max_iterations - self.depth_step, floor)
        logger.debug("depth ceiling lowered to %d", self.max_iterations)

    # ── Per-tick input ────────────────────────────────────────

    def handle_input(self, viewport, keys: InputState) -> bool:
        """Apply every held key to viewport in place.

        Returns True when the computed image must be thrown away: any pan,
        zoom or reset, and lowering the depth ceiling. Raising the ceiling
        returns False so the engine keeps refining what it has.
        """
        reset = False

        # iterations
        if keys.is_pressed(Key.E):
            self.raise_depth()
        if keys.is_pressed(Key.Q):
            self.lower_depth()
            reset = True

        if keys.is_pressed(Key.R):
            self.reset_view(viewport)
            reset = True

        # movement
        if keys.is_pressed(Key.LEFT) or keys.is_pressed(Key.A):
            self.pan(viewport, -1, 0)
            reset = True
        if keys.is_pressed(Key.RIGHT) or keys.is_pressed(Key.D):
            self.pan(viewport, 1, 0)
            reset = True
        if keys.is_pressed(Key.UP) or keys.is_pressed(Key.W):
            self.pan(viewport, 0, -1)
            reset = True
        if keys.is_pressed(Key.DOWN) or keys.is_pressed(Key.S):
            self.pan(viewport, 0, 1)
            reset = True

        # zoom
        if keys.is_pressed(Key.MINUS):
            self.zoom_out(viewport)
            reset = True
        if keys.is_pressed(Key.EQUALS):
            self.zoom_in(viewport)
            reset = True

        return reset
