"""core package initialization.

Viewer shell, run settings and the run log.  Kept as an explicit
package so `import core.settings` works when running `main.py` from
the project root.
"""

__all__ = ["app", "scene", "settings", "log"]
