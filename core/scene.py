"""
core/scene.py — Scene interface

Every screen of the viewer is a Scene. The app holds a stack of them.
Only the top scene gets event/update/draw calls.

    class MyScene(Scene):
        def update(self, dt, app):
            # dt is seconds since last frame; the task queue has
            # already had its share of this frame
            pass
"""

from __future__ import annotations
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import pygame
    from core.app import App


class Scene:
    def on_enter(self, app: App):
        """Called when this scene becomes active (pushed or revealed)."""
        pass

    def on_exit(self, app: App):
        """Called when this scene is removed or covered."""
        pass

    def handle_event(self, event: pygame.event.Event, app: App):
        pass

    def update(self, dt: float, app: App):
        pass

    def draw(self, surface: pygame.Surface, app: App):
        pass
