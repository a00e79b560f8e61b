"""
scenes/runner_scene.py — Trial runner

The viewer's only screen: a scrolling run log plus a status bar.
Runs are scheduled on ``app.queue`` and advance a little every frame.

Controls:
  D           = debug run (one trial, every step logged)
  R           = aggregate run (trial count shown in the status bar)
  + / -       = adjust trial count
  L           = reload the configuration file from disk
  F5          = reload settings
  C           = clear log
  Up/Down     = scroll log      PgUp/PgDn = fast scroll
  Escape      = quit
"""

from __future__ import annotations
import random
from pathlib import Path
import pygame
from core import settings
from core.app import App
from core.log import ERROR, INFO, WARN
from core.scene import Scene
from graph.definition import GraphDefinition
from graph.loader import load_config
from graph.modifiers import ModifierSet
from simulation.trials import (
    TrialRun, describe_run, start_aggregate_run, start_debug_run,
)

# ── UI constants ─────────────────────────────────────────────────────
_BG = (16, 20, 24)
_BORDER = (50, 60, 55)
_HEADER = (0, 255, 200)
_SUBHEADER = (100, 200, 180)
_DIM = (90, 90, 90)

_LEVEL_COLORS: dict[str, tuple[int, int, int]] = {
    INFO:  (200, 200, 200),
    WARN:  (255, 200, 80),
    ERROR: (255, 80, 80),
}

_LINE_H = 14


class RunnerScene(Scene):
    def __init__(self, config_path: str | Path | None = None,
                 graph: GraphDefinition | None = None,
                 rng: random.Random | None = None):
        self.config_path = Path(config_path) if config_path else None
        self.graph = graph
        self.modifiers: ModifierSet | None = None
        self.trials = int(settings.get("run", "trials", 1000))
        self.run: TrialRun | None = None
        self.scroll = 0
        # Shared by every run started here; None seeds from the OS
        self.rng = rng

    def on_enter(self, app: App):
        if self.graph is None and self.config_path is not None:
            self.graph = load_config(self.config_path)
        self._on_graph_loaded(app)
        app.log.write("---- Progression Graph ----")
        app.log.write("[D] debug run  [R] aggregate run  [+/-] trials  "
                      "[L] reload config  [C] clear")

    # ── input ────────────────────────────────────────────────────────

    def handle_event(self, event: pygame.event.Event, app: App):
        if event.type != pygame.KEYDOWN:
            return

        if event.key == pygame.K_ESCAPE:
            app.pop_scene()
        elif event.key == pygame.K_d:
            self._start_debug(app)
        elif event.key == pygame.K_r:
            self._start_aggregate(app)
        elif event.key in (pygame.K_PLUS, pygame.K_EQUALS, pygame.K_KP_PLUS):
            self.trials += int(settings.get("run", "trial_step", 100))
        elif event.key in (pygame.K_MINUS, pygame.K_KP_MINUS):
            self.trials = max(0, self.trials - int(settings.get("run", "trial_step", 100)))
        elif event.key == pygame.K_l:
            if self.config_path is not None:
                self.graph = load_config(self.config_path)
                self._on_graph_loaded(app)
        elif event.key == pygame.K_F5:
            settings.reload()
            self._on_graph_loaded(app)
        elif event.key == pygame.K_c:
            app.log.clear()
            self.scroll = 0
        elif event.key == pygame.K_UP:
            self.scroll += 1
        elif event.key == pygame.K_DOWN:
            self.scroll = max(0, self.scroll - 1)
        elif event.key == pygame.K_PAGEUP:
            self.scroll += 20
        elif event.key == pygame.K_PAGEDOWN:
            self.scroll = max(0, self.scroll - 20)

    def _on_graph_loaded(self, app: App):
        if self.graph is None:
            app.log.error("No configuration loaded!")
            return
        self.modifiers = ModifierSet.from_settings(self.graph,
                                                   settings.section("modifiers"))
        app.log.write(f"Loaded configuration: {len(self.graph.nodes)} nodes, "
                      f"{len(self.graph.tokens)} tokens")

    def _start_debug(self, app: App):
        if self.graph is None:
            app.log.write("No configuration loaded!")
            return
        self.run = start_debug_run(app.queue, self.graph, self.modifiers,
                                   app.log, self.run, self.rng)

    def _start_aggregate(self, app: App):
        if self.graph is None:
            app.log.write("No configuration loaded!")
            return
        self.run = start_aggregate_run(app.queue, self.graph, self.trials,
                                       self.modifiers, app.log, self.run,
                                       self.rng)

    # ── draw ─────────────────────────────────────────────────────────

    def draw(self, surface: pygame.Surface, app: App):
        surface.fill(_BG)
        sw, sh = surface.get_size()

        # ── Status bar ───────────────────────────────────────────────
        name = self.config_path.name if self.config_path else "(no config)"
        status = describe_run(self.run)
        app.draw_text(surface, f"{name}  trials:{self.trials}  {status}",
                      10, 6, _HEADER, app.font)
        app.draw_text(surface, f"queue:{app.queue.pending_count()}",
                      sw - 100, 6, _DIM, app.font_sm)
        pygame.draw.line(surface, _BORDER, (0, 26), (sw, 26), 1)

        self._draw_log(surface, app, 30, sw, sh - 30)

    def _draw_log(self, surface, app, top, sw, sh):
        entries = app.log.entries
        if not entries:
            app.draw_text(surface, "(log is empty)", 10, top + 4, _DIM,
                          app.font_sm)
            return

        max_visible = max(1, (sh - 8) // _LINE_H)
        total = len(entries)
        self.scroll = min(self.scroll, max(0, total - max_visible))
        start = max(0, total - max_visible - self.scroll)
        visible = entries[start:start + max_visible]

        y = top + 4
        max_chars = sw // 8
        for entry in visible:
            line = entry["msg"]
            if len(line) > max_chars:
                line = line[:max_chars - 3] + "..."
            color = _LEVEL_COLORS.get(entry["level"], _SUBHEADER)
            app.draw_text(surface, line, 10, y, color, app.font_sm)
            y += _LINE_H

        if total > max_visible and self.scroll:
            app.draw_text(surface, f"scrolled {self.scroll}/{total}",
                          sw - 160, top + sh - 16, _DIM, app.font_sm)
