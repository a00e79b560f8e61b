"""core/settings.py — Run settings.

Trial counts, frame budgets and default token multipliers live in
``data/settings.toml`` and are loaded once at startup::

    from core import settings
    settings.load()
    trials = settings.get("run", "trials", 1000)

Call ``reload()`` to re-read the file (the viewer does this on F5).
"""

from __future__ import annotations
from pathlib import Path

try:
    import tomllib                         # Python 3.11+
except ModuleNotFoundError:
    import tomli as tomllib                # pip install tomli


DEFAULTS: dict = {
    "run": {
        "trials": 1000,
        "frame_budget_ratio": 0.5,
        "max_frame_ms": 50.0,
        "trial_step": 100,
    },
    "modifiers": {"add": {}, "consume": {}},
}

_data: dict = {}
_path: Path | None = None


def load(path: str | Path | None = None) -> None:
    """Load (or reload) settings from *path*.

    If *path* is ``None``, default to ``data/settings.toml`` relative to
    the project root.  A missing or unreadable file leaves the defaults
    in place.
    """
    global _data, _path

    if path is None:
        root = Path(__file__).resolve().parent.parent
        path = root / "data" / "settings.toml"
    else:
        path = Path(path)

    _path = path
    _data = {}

    if not path.exists():
        print(f"[SETTINGS] {path} not found — using defaults")
        return

    try:
        with open(path, "rb") as f:
            _data = tomllib.load(f)
    except tomllib.TOMLDecodeError as exc:
        print(f"[SETTINGS] {path} is not valid TOML ({exc}) — using defaults")
        return

    print(f"[SETTINGS] Loaded {path}")


def reload() -> None:
    """Re-read the settings file from disk."""
    load(_path)


def get(section_path: str, key: str, default=None):
    """Read a setting, falling back to the built-in default, then *default*.

    >>> get("run", "trials", 1000)
    1000
    """
    for source in (_data, DEFAULTS):
        node = _lookup(source, section_path)
        if isinstance(node, dict) and key in node:
            return node[key]
    return default


def section(section_path: str) -> dict:
    """Return a whole table (shallow copy) merged over its defaults."""
    merged: dict = {}
    base = _lookup(DEFAULTS, section_path)
    if isinstance(base, dict):
        merged.update(base)
    node = _lookup(_data, section_path)
    if isinstance(node, dict):
        merged.update(node)
    return merged


def _lookup(source: dict, section_path: str):
    node = source
    for part in section_path.split("."):
        if not isinstance(node, dict):
            return None
        node = node.get(part)
        if node is None:
            return None
    return node
