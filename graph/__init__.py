"""graph — Progression graph data: amounts, node definitions, modifiers.

Submodules
----------
amount      Flag, Quantity — the tagged amount every node carries
definition  NodeReference, NodeDefinition, GraphDefinition, UnlockKind
modifiers   ModifierSet — per-token produce/consume multipliers
loader      load_config / parse_config — JSON or TOML → GraphDefinition
"""

from graph.amount import Amount, Flag, Quantity
from graph.definition import (
    GraphDefinition, NodeDefinition, NodeReference, UnlockKind,
)
from graph.modifiers import ModifierSet
from graph.loader import load_config, parse_config

__all__ = [
    "Amount", "Flag", "Quantity",
    "GraphDefinition", "NodeDefinition", "NodeReference", "UnlockKind",
    "ModifierSet",
    "load_config", "parse_config",
]
