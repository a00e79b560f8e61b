"""simulation/aggregate.py — Statistics over many completed trials.

Each trial is folded into keyed counters as soon as it finishes; the
traversal state can then be reset and reused.  ``process`` turns the
counters into mean / median / mode per key.

    agg = AggregateState()
    for _ in range(1000):
        reset(state, graph)
        while step(state, graph):
            pass
        aggregate_traversal(agg, state)
    stats = process(agg)

A key that a trial never touched still counts for that trial, as a
zero: value lists are padded with zeros up to the sample count before
median and mode are taken.
"""

from __future__ import annotations
from dataclasses import dataclass, field

from graph.amount import as_number
from simulation.traversal import TraversalState


@dataclass
class Counter:
    sum: float = 0.0
    values: list[float] = field(default_factory=list)

    def add(self, value: float) -> None:
        self.sum += value
        self.values.append(value)


@dataclass
class Statistic:
    mean: float = 0.0
    median: float = 0.0
    mode: float = 0.0
    # Only filled by ``process(..., extended=True)``
    min: float | None = None
    max: float | None = None


@dataclass
class AggregateState:
    """Running counters.

    ``open`` is sampled once per step (base = ``step_count``); all
    other counters once per trial (base = ``sample_count``).
    """
    steps: dict[str, Counter] = field(default_factory=dict)
    open: dict[str, Counter] = field(default_factory=dict)
    added_tokens: dict[str, Counter] = field(default_factory=dict)
    consumed_tokens: dict[str, Counter] = field(default_factory=dict)
    end_state: dict[str, Counter] = field(default_factory=dict)
    unfinished: dict[str, Counter] = field(default_factory=dict)
    sample_count: int = 0
    step_count: int = 0


@dataclass
class AggregateStatistics:
    steps: dict[str, Statistic] = field(default_factory=dict)
    open: dict[str, Statistic] = field(default_factory=dict)
    added_tokens: dict[str, Statistic] = field(default_factory=dict)
    consumed_tokens: dict[str, Statistic] = field(default_factory=dict)
    end_state: dict[str, Statistic] = field(default_factory=dict)
    unfinished: dict[str, Statistic] = field(default_factory=dict)
    sample_count: int = 0
    step_count: int = 0


# ── Accumulation ─────────────────────────────────────────────────────

def reset_aggregator(agg: AggregateState) -> None:
    agg.steps = {}
    agg.open = {}
    agg.added_tokens = {}
    agg.consumed_tokens = {}
    agg.end_state = {}
    agg.unfinished = {}
    agg.sample_count = 0
    agg.step_count = 0


def aggregate_traversal(agg: AggregateState, state: TraversalState) -> None:
    """Fold one finished trial into *agg*."""
    prev_id: str | None = None
    for taken in state.path:
        key = taken.trigger_id if prev_id is None else f"{prev_id}->{taken.trigger_id}"
        _add(agg.steps, key, 1)
        for node_type, count in taken.available_counts_by_type.items():
            _add(agg.open, node_type, count)
        agg.step_count += 1
        prev_id = taken.trigger_id

    for node_id, amount in state.status.items():
        _add(agg.end_state, node_id, as_number(amount))
    for node_id in state.hidden:
        _add(agg.unfinished, node_id, 1)
    for node_id, total in state.added_tokens.items():
        _add(agg.added_tokens, node_id, total)
    for node_id, total in state.consumed_tokens.items():
        _add(agg.consumed_tokens, node_id, total)

    agg.sample_count += 1


# ── Processing ───────────────────────────────────────────────────────

def process(agg: AggregateState,
            extended: bool = False) -> AggregateStatistics | None:
    """Compute statistics for every counter.  None if no trials ran.

    The counters themselves are left untouched.
    """
    if agg.sample_count == 0:
        return None

    stats = AggregateStatistics(sample_count=agg.sample_count,
                                step_count=agg.step_count)
    stats.steps = _summarize(agg.steps, agg.sample_count, extended)
    stats.open = _summarize(agg.open, agg.step_count, extended)
    stats.added_tokens = _summarize(agg.added_tokens, agg.sample_count, extended)
    stats.consumed_tokens = _summarize(agg.consumed_tokens, agg.sample_count, extended)
    stats.end_state = _summarize(agg.end_state, agg.sample_count, extended)
    stats.unfinished = _summarize(agg.unfinished, agg.sample_count, extended)
    return stats


def summarize_counter(counter: Counter, base: int,
                      extended: bool = False) -> Statistic:
    """Statistic for one counter over *base* samples."""
    padding = max(0, base - len(counter.values))
    values = sorted([0.0] * padding + counter.values)

    stat = Statistic(
        mean=counter.sum / base if base else 0.0,
        median=values[len(values) // 2] if values else 0.0,
        mode=find_mode(values),
    )
    if extended and values:
        stat.min = values[0]
        stat.max = values[-1]
    return stat


def find_mode(values: list[float]) -> float:
    """Most common value of a *sorted* list.

    Ties go to the run seen first, i.e. the smallest value.
    """
    best_val = 0.0
    best_count = 0
    current_val: float | None = None
    current_count = 0
    for value in values:
        if value != current_val:
            current_val = value
            current_count = 0
        current_count += 1
        if current_count > best_count:
            best_count = current_count
            best_val = value
    return best_val


def _summarize(counters: dict[str, Counter], base: int,
               extended: bool) -> dict[str, Statistic]:
    return {key: summarize_counter(counter, base, extended)
            for key, counter in counters.items()}


def _add(counters: dict[str, Counter], key: str, value: float) -> None:
    counter = counters.get(key)
    if counter is None:
        counter = counters[key] = Counter()
    counter.add(value)
