"""core/log.py — Run log shown by the viewer and the headless runner.

A ring-buffer of formatted lines.  Work units write into it; the
pygame viewer draws the most recent entries each frame and the
headless runner echoes them to stdout as they arrive.

Usage:
    log = RunLog(echo=True)
    log.write(f"Step {n}: {step_to_string(taken)}")
    log.warn("forge Completed: 40%")

Each entry is a dict:
    {"level": "info" | "warn" | "error", "msg": str}
"""

from __future__ import annotations
from dataclasses import dataclass, field

INFO = "info"
WARN = "warn"
ERROR = "error"


@dataclass
class RunLog:
    """Ring-buffer of report lines."""

    entries: list[dict] = field(default_factory=list)
    max_entries: int = 2000
    echo: bool = False
    # Bumped on every write so the viewer knows to re-layout
    revision: int = 0

    def write(self, msg: str = "") -> None:
        self._record(INFO, msg)

    def warn(self, msg: str) -> None:
        self._record(WARN, msg)

    def error(self, msg: str) -> None:
        self._record(ERROR, msg)

    def _record(self, level: str, msg: str) -> None:
        self.entries.append({"level": level, "msg": msg})
        if len(self.entries) > self.max_entries:
            self.entries = self.entries[-self.max_entries:]
        self.revision += 1
        if self.echo:
            prefix = "" if level == INFO else f"[{level.upper()}] "
            print(f"{prefix}{msg}")

    def clear(self) -> None:
        self.entries.clear()
        self.revision += 1

    def recent(self, n: int = 50) -> list[dict]:
        """Return the *n* most recent entries (newest last)."""
        return self.entries[-n:]

    def lines(self, level: str | None = None) -> list[str]:
        """Plain message text, optionally filtered by level."""
        return [e["msg"] for e in self.entries
                if level is None or e["level"] == level]
