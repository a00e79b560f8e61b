"""graph/modifiers.py — Per-token produce/consume multipliers.

The application owns one long-lived ``ModifierSet``; every traversal
gets its own copy at reset time so tweaking the caller's set never
leaks into a running trial.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from graph.definition import GraphDefinition


@dataclass
class ModifierSet:
    """Multipliers keyed by token id.  Unlisted tokens behave as 1.0."""
    add_multiplier: dict[str, float] = field(default_factory=dict)
    consume_multiplier: dict[str, float] = field(default_factory=dict)

    def reset_to_defaults(self, graph: GraphDefinition) -> None:
        """Drop all overrides; every known token goes back to 1.0."""
        self.add_multiplier = {tid: 1.0 for tid in graph.token_ids}
        self.consume_multiplier = {tid: 1.0 for tid in graph.token_ids}

    def fill_missing_defaults(self, graph: GraphDefinition) -> None:
        """Add 1.0 entries for tokens that have none, keeping overrides."""
        for tid in graph.token_ids:
            self.add_multiplier.setdefault(tid, 1.0)
            self.consume_multiplier.setdefault(tid, 1.0)

    def copy(self, target: ModifierSet | None = None) -> ModifierSet:
        """Deep copy into *target* (or a new set).  Returns the target."""
        if target is None:
            target = ModifierSet()
        target.add_multiplier = dict(self.add_multiplier)
        target.consume_multiplier = dict(self.consume_multiplier)
        return target

    def add_for(self, token_id: str) -> float:
        return self.add_multiplier.get(token_id, 1.0)

    def consume_for(self, token_id: str) -> float:
        return self.consume_multiplier.get(token_id, 1.0)

    @classmethod
    def from_settings(cls, graph: GraphDefinition,
                      table: dict | None) -> ModifierSet:
        """Build a set from a ``[modifiers]`` settings table::

            [modifiers.add]
            gold = 1.5
            [modifiers.consume]
            gold = 0.5
        """
        mods = cls()
        table = table or {}
        for tid, mult in (table.get("add") or {}).items():
            if not graph.is_token(tid):
                print(f"[SETTINGS] add multiplier for unknown token '{tid}' ignored")
                continue
            mods.add_multiplier[tid] = float(mult)
        for tid, mult in (table.get("consume") or {}).items():
            if not graph.is_token(tid):
                print(f"[SETTINGS] consume multiplier for unknown token '{tid}' ignored")
                continue
            mods.consume_multiplier[tid] = float(mult)
        mods.fill_missing_defaults(graph)
        return mods
