#!/usr/bin/env python3
"""Progressive Mandelbrot explorer using Pygame + NumPy.

Each frame:
  1. Input:  held keys pan/zoom the view or change the depth ceiling.
  2. Engine: either restarts every pixel at a shallow depth (view changed)
             or resumes each pixel from its saved iterate to a deeper one.
  3. Blit:   the RGBA buffer is uploaded only when the engine rewrote it.

Controls: arrows/WASD pan, '-' zoom out, '=' zoom in, E/Q raise/lower the
iteration ceiling, R reset view, Tab toggle HUD, Esc quit.
"""

import logging
from argparse import ArgumentParser
from dataclasses import dataclass, field

import numpy as np
import pygame
import pygame.surfarray

from mandelbrot_engine import DEPTH_INCREMENT, INITIAL_DEPTH, EscapeTimeEngine
from mandelbrot_viewport import (
    DEPTH_STEP,
    MAX_ITERATIONS,
    PAN_STEP,
    ZOOM_FACTOR,
    InputState,
    Key,
    Viewport,
    ViewportController,
)

logger = logging.getLogger(__name__)

SCREEN_WIDTH = 800
SCREEN_HEIGHT = 450
FPS_CAP = 60
WINDOW_TITLE = "Mandelbrot set"

KEY_BINDINGS = {
    Key.LEFT: pygame.K_LEFT,
    Key.RIGHT: pygame.K_RIGHT,
    Key.UP: pygame.K_UP,
    Key.DOWN: pygame.K_DOWN,
    Key.A: pygame.K_a,
    Key.D: pygame.K_d,
    Key.W: pygame.K_w,
    Key.S: pygame.K_s,
    Key.MINUS: pygame.K_MINUS,
    Key.EQUALS: pygame.K_EQUALS,
    Key.E: pygame.K_e,
    Key.Q: pygame.K_q,
    Key.R: pygame.K_r,
}

# ── UI constants ──────────────────────────────────────────────
COL_TEXT = (220, 220, 230)
COL_OVERLAY = (0, 0, 0, 160)


@dataclass(frozen=True)
class ViewerConfig:
    """Startup configuration; read once, never changed while running."""

    width: int = SCREEN_WIDTH
    height: int = SCREEN_HEIGHT
    pan_step: float = PAN_STEP
    zoom_factor: float = ZOOM_FACTOR
    initial_depth: int = INITIAL_DEPTH
    depth_increment: int = DEPTH_INCREMENT
    depth_step: int = DEPTH_STEP
    max_iterations: int = MAX_ITERATIONS
    fps: int = FPS_CAP

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"screen size must be positive, got {self.width}x{self.height}")
        if self.pan_step <= 0:
            raise ValueError(f"pan step must be positive, got {self.pan_step}")
        if self.zoom_factor <= 1.0:
            raise ValueError(f"zoom factor must be greater than 1, got {self.zoom_factor}")
        for name in ("initial_depth", "depth_increment", "depth_step", "max_iterations", "fps"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")


@dataclass
class SimulationState:
    """Everything one tick reads and writes."""

    engine: EscapeTimeEngine
    controller: ViewportController
    viewport: Viewport = field(default_factory=Viewport.initial)
    redraw: bool = True

    @classmethod
    def from_config(cls, config):
        engine = EscapeTimeEngine(
            config.width, config.height,
            initial_depth=config.initial_depth,
            depth_increment=config.depth_increment,
        )
        controller = ViewportController(
            pan_step=config.pan_step,
            zoom_factor=config.zoom_factor,
            depth_step=config.depth_step,
            max_iterations=config.max_iterations,
        )
        return cls(engine=engine, controller=controller)


def advance(state, keys: InputState) -> bool:
    """Run one tick: apply input, then compute or resume.

    Returns True when the engine rewrote the colour buffer.
    """
    if state.controller.handle_input(state.viewport, keys):
        state.redraw = True

    changed = state.engine.update(state.viewport, state.redraw, state.controller.max_iterations)
    state.redraw = False
    return changed


class PygameKeys:
    """InputState over the array returned by pygame.key.get_pressed()."""

    def __init__(self, pressed):
        self.pressed = pressed

    def is_pressed(self, key):
        return bool(self.pressed[KEY_BINDINGS[key]])


class MandelbrotViewer:
    """Window, frame clock and presenter around a SimulationState."""

    def __init__(self, config=None):
        self.config = config or ViewerConfig()
        self.width = self.config.width
        self.height = self.config.height
        self.state = SimulationState.from_config(self.config)

        self.running = True
        self.overlay_visible = True

        self._init_pygame()

    def _init_pygame(self):
        pygame.init()
        self.screen = pygame.display.set_mode((self.width, self.height))
        pygame.display.set_caption(WINDOW_TITLE)
        self.clock = pygame.time.Clock()
        self.font = pygame.font.SysFont("monospace", 13)
        self.surface = pygame.Surface((self.width, self.height), depth=24)

    # ── Presenting ────────────────────────────────────────────

    def render(self):
        """Upload the RGB channels of the engine's buffer to the surface."""
        rgb = self.state.engine.rgba()[:, :, :3]
        pygame.surfarray.blit_array(self.surface, np.transpose(rgb, (1, 0, 2)))

    def draw_overlay(self):
        if not self.overlay_visible:
            return

        vp = self.state.viewport
        engine = self.state.engine
        cx, cy = vp.center
        lines = [
            f"Center: ({cx:.15g}, {cy:.15g})",
            f"Range: {vp.x_range:.6e} x {vp.y_range:.6e}",
            f"Depth: {engine.computed_depth} / {self.state.controller.max_iterations}",
            f"FPS: {self.clock.get_fps():.1f}",
        ]

        padding = 6
        lh = self.font.get_linesize()
        box_h = padding * 2 + lh * len(lines)
        box_w = padding * 2 + max(self.font.size(l)[0] for l in lines)

        overlay = pygame.Surface((box_w, box_h), pygame.SRCALPHA)
        overlay.fill(COL_OVERLAY)
        for i, line in enumerate(lines):
            overlay.blit(self.font.render(line, True, COL_TEXT), (padding, padding + i * lh))
        self.screen.blit(overlay, (8, 8))

    # ── Event handling ────────────────────────────────────────

    def handle_events(self):
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                self.running = False
            elif event.type == pygame.KEYDOWN:
                if event.key == pygame.K_ESCAPE:
                    self.running = False
                elif event.key == pygame.K_TAB:
                    self.overlay_visible = not self.overlay_visible

    # ── Main loop ─────────────────────────────────────────────

    def run(self):
        try:
            while self.running:
                self.handle_events()

                keys = PygameKeys(pygame.key.get_pressed())
                if advance(self.state, keys):
                    self.render()

                self.screen.blit(self.surface, (0, 0))
                self.draw_overlay()
                pygame.display.flip()

                self.clock.tick(self.config.fps)
        finally:
            pygame.quit()


def build_parser():
    parser = ArgumentParser(description="Explore the Mandelbrot set with progressive refinement.")

    parser.add_argument('--width', type=int, dest='width', metavar='WIDTH',
                        help='window width in pixels', default=SCREEN_WIDTH)
    parser.add_argument('--height', type=int, dest='height', metavar='HEIGHT',
                        help='window height in pixels', default=SCREEN_HEIGHT)
    parser.add_argument('--max-iterations', type=int, dest='max_iterations', metavar='MAX_ITERATIONS',
                        help='starting iteration ceiling; E/Q change it in steps of %d' % DEPTH_STEP,
                        default=MAX_ITERATIONS)
    parser.add_argument('--initial-depth', type=int, dest='initial_depth', metavar='DEPTH',
                        help='depth of the first pass after the view changes', default=INITIAL_DEPTH)
    parser.add_argument('--depth-increment', type=int, dest='depth_increment', metavar='DEPTH',
                        help='largest depth increase per frame while refining', default=DEPTH_INCREMENT)
    parser.add_argument('--fps', type=int, dest='fps', metavar='FPS',
                        help='frame rate cap', default=FPS_CAP)
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='log every computed pass')

    return parser


def main(argv=None):
    parser = build_parser()
    opt = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if opt.verbose else logging.INFO,
        format="%(levelname)s - %(name)s - %(message)s",
    )

    try:
        config = ViewerConfig(
            width=opt.width,
            height=opt.height,
            initial_depth=opt.initial_depth,
            depth_increment=opt.depth_increment,
            max_iterations=opt.max_iterations,
            fps=opt.fps,
        )
    except ValueError as exc:
        parser.error(str(exc))

    logger.info("starting %dx%d viewer, iteration ceiling %d", config.width, config.height, config.max_iterations)
    viewer = MandelbrotViewer(config)
    viewer.run()


if __name__ == "__main__":
    main()
