"""
core/app.py — Pygame viewer shell

Owns the window, the frame loop, the scene stack, and the task queue.
Each frame the queue gets a slice of the frame time to run simulation
work in; the rest is left for drawing.

    app = App(title="Progression Graph")
    app.push_scene(RunnerScene("data/example_graph.toml"))
    app.run()
"""

from __future__ import annotations
import pygame
from core import settings
from core.log import RunLog
from core.scene import Scene
from simulation.scheduler import TaskQueue


class App:
    def __init__(self, title: str = "Progression Graph", width: int = 960,
                 height: int = 640, log: RunLog | None = None):
        pygame.init()
        self.screen = pygame.display.set_mode((width, height), pygame.RESIZABLE)
        pygame.display.set_caption(title)
        self.clock = pygame.time.Clock()
        self.running = True
        self.fps = 60
        self.dt = 0.0

        # Scene stack — only the top scene is active
        self._scenes: list[Scene] = []

        # Shared across all scenes
        self.queue = TaskQueue()
        self.log = log or RunLog()

        self.font = pygame.font.SysFont("monospace", 14)
        self.font_sm = pygame.font.SysFont("monospace", 11)
        self.font_lg = pygame.font.SysFont("monospace", 18)

    # -- Scene management --

    @property
    def scene(self) -> Scene | None:
        return self._scenes[-1] if self._scenes else None

    def push_scene(self, scene: Scene):
        if self._scenes:
            self._scenes[-1].on_exit(self)
        self._scenes.append(scene)
        scene.on_enter(self)

    def pop_scene(self):
        if self._scenes:
            self._scenes[-1].on_exit(self)
            self._scenes.pop()
        if self._scenes:
            self._scenes[-1].on_enter(self)
        else:
            self.running = False

    # -- Main loop --

    def run(self):
        while self.running:
            frame_ms = self.clock.tick(self.fps)
            max_ms = float(settings.get("run", "max_frame_ms", 50.0))
            if max_ms > 0 and frame_ms > max_ms:
                frame_ms = max_ms
            self.dt = frame_ms / 1000.0

            for event in pygame.event.get():
                if event.type == pygame.QUIT:
                    self.running = False
                elif event.type == pygame.VIDEORESIZE:
                    self.screen = pygame.display.set_mode(
                        (event.w, event.h), pygame.RESIZABLE)
                elif self.scene:
                    self.scene.handle_event(event, self)

            # Simulation work gets a share of the frame
            ratio = float(settings.get("run", "frame_budget_ratio", 0.5))
            self.queue.tick(frame_ms * ratio)

            if self.scene:
                self.scene.update(self.dt, self)
                self.scene.draw(self.screen, self)

            pygame.display.flip()

        self.queue.clear()
        pygame.quit()

    # -- Convenience --

    def draw_text(self, surface: pygame.Surface, text: str, x: int, y: int,
                  color=(255, 255, 255), font=None):
        """Quick text draw. Returns the rect for layout chaining."""
        f = font or self.font
        img = f.render(text, True, color)
        return surface.blit(img, (x, y))
