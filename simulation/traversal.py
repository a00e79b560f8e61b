"""simulation/traversal.py — Randomized progression-graph traversal.

One ``TraversalState`` is one trial: a player who starts with
``graph.start_with`` and repeatedly picks a random available node until
nothing is left to pick.  Visiting a node consumes its requirements,
applies its results, and cascades into any node those results hand
out for free.

    state = TraversalState()
    reset(state, graph, modifiers)
    taken = step(state, graph)
    while taken is not None:
        print(step_to_string(taken))
        taken = step(state, graph)

Every non-token node is in exactly one of ``visited`` / ``available`` /
``hidden`` between calls.
"""

from __future__ import annotations
import random
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum

from graph.amount import (
    Amount, Flag, Quantity, format_number, is_truthy, js_round, negate,
    same_kind,
)
from graph.definition import GraphDefinition, NodeDefinition, UnlockKind
from graph.modifiers import ModifierSet


# ═══════════════════════════════════════════════════════════════════
#  State
# ═══════════════════════════════════════════════════════════════════

@dataclass
class StepChange:
    """One status change recorded inside a step."""
    id: str
    delta: Amount
    unlocked: bool = False


@dataclass
class TraversalStep:
    """A single pick plus everything it cascaded into."""
    trigger_id: str
    changes: list[StepChange] = field(default_factory=list)
    available_counts_by_type: dict[str, int] = field(default_factory=dict)


@dataclass
class MissingRequirements:
    manual_unlock: bool = False
    ids: list[str] = field(default_factory=list)


@dataclass
class TraversalState:
    """Mutable simulation instance — reuse across trials via ``reset``."""
    name: str = ""
    status: dict[str, Amount] = field(default_factory=dict)
    unlocked: set[str] = field(default_factory=set)
    visited: set[str] = field(default_factory=set)
    available: list[str] = field(default_factory=list)
    hidden: list[str] = field(default_factory=list)
    path: list[TraversalStep] = field(default_factory=list)
    added_tokens: dict[str, float] = field(default_factory=dict)
    consumed_tokens: dict[str, float] = field(default_factory=dict)
    modifiers: ModifierSet = field(default_factory=ModifierSet)
    rng: random.Random = field(default_factory=random.Random, repr=False)


class ApplyResult(Enum):
    NO_CHANGE = 0
    MODIFIED = 1
    NEW_ASSET = 2
    REMOVED_ASSET = 3


# ═══════════════════════════════════════════════════════════════════
#  Public API
# ═══════════════════════════════════════════════════════════════════

def reset(state: TraversalState, graph: GraphDefinition,
          modifiers: ModifierSet | None = None, name: str | None = None,
          debug: bool = False) -> None:
    """Start a fresh trial on *state*.

    Auto nodes that qualify straight away are visited here, each as
    its own step in ``path``.
    """
    state.name = name or f"{time.perf_counter():.4f}"
    state.unlocked.clear()
    state.status = dict(graph.start_with)
    state.added_tokens = {}
    state.consumed_tokens = {}
    state.visited.clear()
    state.available.clear()
    state.hidden.clear()
    state.path.clear()

    for node_id in graph.nodes:
        if is_truthy(state.status.get(node_id)):
            state.visited.add(node_id)
        else:
            state.hidden.append(node_id)

    if modifiers is not None:
        modifiers.copy(state.modifiers)
    state.modifiers.fill_missing_defaults(graph)

    scan_for_visible(state, graph, debug=debug)

    while True:
        pending = [nid for nid in state.available
                   if _kind(graph, nid) is UnlockKind.AUTO]
        if not pending:
            break
        auto_id = pending[0]
        taken = visit(state, graph, deque([auto_id]), auto_id, debug=debug)
        scan_for_visible(state, graph, debug=debug)
        if taken is not None:
            _sum_available_by_type(state, graph, taken.available_counts_by_type)


def step(state: TraversalState, graph: GraphDefinition,
         debug: bool = False) -> TraversalStep | None:
    """Pick one random available node and visit it.

    Returns the recorded step, or None once nothing is available.
    """
    if not state.available:
        return None

    state.rng.shuffle(state.available)
    root_id = state.available[0]
    taken = visit(state, graph, deque([root_id]), root_id, debug=debug)

    # Auto nodes surfaced by this pick fold into the same step
    while True:
        auto: list[str] = []
        scan_for_visible(state, graph, auto, debug=debug)
        if not auto:
            break
        visit(state, graph, deque(auto), root_id, taken, debug=debug)

    if taken is not None:
        _sum_available_by_type(state, graph, taken.available_counts_by_type)
    return taken


def satisfies_requirements(state: TraversalState, node: NodeDefinition) -> bool:
    """True if every requirement of *node* currently holds.

    Numeric thresholds are scaled by the consume multiplier even when
    the requirement is not consumed.
    """
    for req in node.requires:
        if not _requirement_met(state, req.target_id, req.amount):
            return False
    return True


def get_missing_requirements(state: TraversalState, graph: GraphDefinition,
                             node_id: str) -> MissingRequirements | None:
    """Report why *node_id* is not available.  Read-only."""
    node = graph.get(node_id)
    if node is None:
        print(f"[TRAVERSE] node with id '{node_id}' unable to be found")
        return None

    missing = MissingRequirements()
    if node.unlock_kind is UnlockKind.MANUAL and node_id not in state.unlocked:
        missing.manual_unlock = True
    for req in node.requires:
        if not _requirement_met(state, req.target_id, req.amount):
            missing.ids.append(req.target_id)
    return missing


def resolve_value(state: TraversalState, node_id: str, amount: Amount,
                  force_consume: bool = False) -> Amount:
    """Apply the token multiplier to a numeric amount.

    Negative amounts (and any amount when *force_consume* is set) use
    the consume multiplier; positive ones use the add multiplier.
    """
    if isinstance(amount, Flag):
        return amount
    if force_consume or amount.value < 0:
        mult = state.modifiers.consume_for(node_id)
    else:
        mult = state.modifiers.add_for(node_id)
    return Quantity(js_round(amount.value * mult))


def change_status(state: TraversalState, node_id: str,
                  amount: Amount) -> ApplyResult:
    """Apply *amount* to ``status[node_id]``.

    Flags toggle only when they differ.  Quantities are added and
    clamped at zero; the real difference lands in ``added_tokens`` or
    ``consumed_tokens``.
    """
    old = state.status.get(node_id)
    if isinstance(amount, Flag):
        if old is None:
            old = Flag(False)
        same_kind(old, amount)
        if old.value == amount.value:
            return ApplyResult.NO_CHANGE
        state.status[node_id] = amount
        return ApplyResult.NEW_ASSET if amount.value else ApplyResult.REMOVED_ASSET

    if old is None:
        old = Quantity(0)
    same_kind(old, amount)
    new_val = max(0.0, old.value + amount.value)
    state.status[node_id] = Quantity(new_val)
    if new_val < old.value:
        _increment(state.consumed_tokens, node_id, old.value - new_val)
        return ApplyResult.MODIFIED
    if new_val > old.value:
        _increment(state.added_tokens, node_id, new_val - old.value)
        return ApplyResult.MODIFIED
    return ApplyResult.NO_CHANGE


def scan_for_visible(state: TraversalState, graph: GraphDefinition,
                     auto: list[str] | None = None,
                     debug: bool = False) -> int:
    """Move nodes between ``hidden`` and ``available``.

    Newly available Auto nodes are appended to *auto* when given.
    Returns the number of moves.
    """
    changed = 0

    for i in range(len(state.hidden) - 1, -1, -1):
        node_id = state.hidden[i]
        node = graph.get(node_id)
        if node is None:
            print(f"[TRAVERSE] node with id '{node_id}' unable to be found")
            continue
        if node.unlock_kind is UnlockKind.MANUAL and node_id not in state.unlocked:
            continue
        if not satisfies_requirements(state, node):
            continue

        _swap_remove_at(state.hidden, i)
        state.available.append(node_id)
        if debug:
            print(f"[TRAVERSE] [{state.name}] node {node_id} became available")
        if node.unlock_kind is UnlockKind.AUTO and auto is not None:
            auto.append(node_id)
        changed += 1

    for i in range(len(state.available) - 1, -1, -1):
        node_id = state.available[i]
        node = graph.get(node_id)
        if node is None or satisfies_requirements(state, node):
            continue
        _swap_remove_at(state.available, i)
        state.hidden.append(node_id)
        if debug:
            print(f"[TRAVERSE] [{state.name}] node {node_id} became unavailable")
        changed += 1

    return changed


def visit(state: TraversalState, graph: GraphDefinition, queue: deque[str],
          root_id: str, step_taken: TraversalStep | None = None,
          debug: bool = False) -> TraversalStep | None:
    """Breadth-first visit of every id in *queue*.

    Only *root_id* pays its requirements; every visited node applies
    its results, and results that hand out a new flag enqueue that node.
    When *step_taken* is given, visits are folded into it instead of
    appending a new step.  Returns None if nothing new was visited.
    """
    had_step = step_taken is not None
    if step_taken is None:
        step_taken = TraversalStep(trigger_id=root_id)
    took = False

    while queue:
        node_id = queue.popleft()
        if node_id in state.visited:
            continue

        took = True
        state.visited.add(node_id)
        state.status[node_id] = Flag(True)
        _swap_remove(state.hidden, node_id)
        _swap_remove(state.available, node_id)
        if debug:
            print(f"[TRAVERSE] [{state.name}] node {node_id} visited!")

        if node_id != root_id and had_step:
            step_taken.changes.append(StepChange(node_id, Flag(True)))

        node = graph.get(node_id)
        if node is None:
            print(f"[TRAVERSE] node with id '{node_id}' unable to be found")
            continue
        if node_id == root_id:
            _apply_requirements(state, node, step_taken)
        _apply_results(state, node, step_taken, queue)

    if not took:
        return None
    if not had_step:
        state.path.append(step_taken)
    return step_taken


def step_to_string(taken: TraversalStep) -> str:
    """``"forge / gold - 5, sword added, armory unlocked"``"""
    text = taken.trigger_id
    if not taken.changes:
        return text
    parts = []
    for change in taken.changes:
        if change.unlocked:
            parts.append(f"{change.id} unlocked")
        elif isinstance(change.delta, Flag):
            parts.append(f"{change.id} {'added' if change.delta.value else 'removed'}")
        elif change.delta.value > 0:
            parts.append(f"{change.id} + {format_number(change.delta.value)}")
        else:
            parts.append(f"{change.id} - {format_number(-change.delta.value)}")
    return f"{text} / {', '.join(parts)}"


# ═══════════════════════════════════════════════════════════════════
#  Internals
# ═══════════════════════════════════════════════════════════════════

def _apply_requirements(state: TraversalState, node: NodeDefinition,
                        step_taken: TraversalStep) -> None:
    for req in node.requires:
        if req.consume:
            flip = resolve_value(state, req.target_id, negate(req.amount), True)
            change_status(state, req.target_id, flip)
            step_taken.changes.append(StepChange(req.target_id, flip))


def _apply_results(state: TraversalState, node: NodeDefinition,
                   step_taken: TraversalStep, queue: deque[str]) -> None:
    for res in node.results:
        if res.consume:
            flip = resolve_value(state, res.target_id, negate(res.amount), True)
            change_status(state, res.target_id, flip)
            step_taken.changes.append(StepChange(res.target_id, flip))
        elif res.unlock:
            if res.target_id not in state.unlocked:
                state.unlocked.add(res.target_id)
                step_taken.changes.append(
                    StepChange(res.target_id, Quantity(0), unlocked=True))
        else:
            val = resolve_value(state, res.target_id, res.amount)
            changed = change_status(state, res.target_id, val)
            if changed is not ApplyResult.NO_CHANGE:
                step_taken.changes.append(StepChange(res.target_id, val))
                if changed is ApplyResult.NEW_ASSET:
                    queue.append(res.target_id)


def _requirement_met(state: TraversalState, target_id: str,
                     amount: Amount) -> bool:
    current = state.status.get(target_id)
    if isinstance(amount, Flag):
        if current is None:
            current = Flag(False)
        same_kind(current, amount)
        return current.value == amount.value
    if current is None:
        current = Quantity(0)
    same_kind(current, amount)
    threshold = resolve_value(state, target_id, amount, force_consume=True)
    return current.value >= threshold.value


def _sum_available_by_type(state: TraversalState, graph: GraphDefinition,
                           counters: dict[str, int]) -> None:
    for node_id in state.available:
        node = graph.get(node_id)
        if node is not None and node.type:
            counters[node.type] = counters.get(node.type, 0) + 1


def _kind(graph: GraphDefinition, node_id: str) -> UnlockKind | None:
    node = graph.get(node_id)
    return node.unlock_kind if node else None


def _increment(totals: dict[str, float], key: str, amount: float) -> None:
    totals[key] = totals.get(key, 0.0) + amount


def _swap_remove_at(items: list[str], index: int) -> None:
    """O(1) removal — order of *items* is not preserved."""
    last = len(items) - 1
    if index != last:
        items[index] = items[last]
    items.pop()


def _swap_remove(items: list[str], value: str) -> bool:
    try:
        index = items.index(value)
    except ValueError:
        return False
    _swap_remove_at(items, index)
    return True
