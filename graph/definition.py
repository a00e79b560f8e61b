"""graph/definition.py — Static progression graph data.

A ``GraphDefinition`` is built once by the loader (``graph/loader.py``)
and never mutated afterwards.  Every traversal reads from it.

    graph = GraphDefinition()
    graph.add_node(NodeDefinition(id="forge", requires=[...]))
    graph.add_node(NodeDefinition(id="gold", is_token=True))
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping

from graph.amount import Amount, Flag, Quantity, format_amount


class UnlockKind(Enum):
    """How a node becomes available."""
    TRAVERSE = "traverse"   # requirements alone
    MANUAL = "manual"       # requirements + an explicit unlock grant
    AUTO = "auto"           # visited as soon as it becomes available


# ── Node data ────────────────────────────────────────────────────────

@dataclass
class NodeReference:
    """A reference to another node, used both as a requirement (gate)
    and as a result (effect).

    Attributes
    ----------
    target_id : str
        Node or token being referenced.
    amount : Amount
        Flag to compare/set, or quantity to compare/add.
    consume : bool
        Requirement: subtract on traversal.  Result: subtract instead of add.
    unlock : bool
        Result only: grant the manual-unlock permission for ``target_id``.
    """
    target_id: str
    amount: Amount = field(default_factory=lambda: Flag(True))
    consume: bool = False
    unlock: bool = False


@dataclass
class NodeDefinition:
    id: str
    type: str | None = None
    is_token: bool = False
    disable_manual_traversal: bool = False
    unlock_kind: UnlockKind = UnlockKind.TRAVERSE
    requires: list[NodeReference] = field(default_factory=list)
    results: list[NodeReference] = field(default_factory=list)


# ── Graph ────────────────────────────────────────────────────────────

class GraphDefinition:
    """All nodes and tokens of one progression graph."""

    def __init__(self) -> None:
        self.nodes: dict[str, NodeDefinition] = {}
        self.tokens: dict[str, NodeDefinition] = {}
        self.token_ids: list[str] = []
        self.start_with: dict[str, Amount] = {}
        self.constants: dict[str, Amount] = {}
        self.disable_manual_traversal: set[str] = set()

    def add_node(self, node: NodeDefinition) -> None:
        """Register a node.  Tokens start at ``Quantity(0)`` unless
        ``start_with`` already holds a value for them."""
        if node.is_token:
            if node.id not in self.tokens:
                self.token_ids.append(node.id)
            self.tokens[node.id] = node
            self.start_with.setdefault(node.id, Quantity(0))
        else:
            self.nodes[node.id] = node
        if node.disable_manual_traversal:
            self.disable_manual_traversal.add(node.id)

    def get(self, node_id: str) -> NodeDefinition | None:
        """Return a non-token node definition, or None."""
        return self.nodes.get(node_id)

    def is_token(self, node_id: str) -> bool:
        return node_id in self.tokens

    def report_tokens(self, status: Mapping[str, Amount]) -> str:
        """One-line summary of token amounts, e.g. ``"gold: 5 / gems: 0"``."""
        if not self.token_ids:
            return "[No Tokens Defined]"
        parts = []
        for tid in self.token_ids:
            val = status.get(tid)
            parts.append(f"{tid}: {format_amount(val) if val is not None else '?'}")
        return " / ".join(parts)

    def __repr__(self) -> str:
        return (f"GraphDefinition(nodes={len(self.nodes)}, "
                f"tokens={len(self.tokens)})")
