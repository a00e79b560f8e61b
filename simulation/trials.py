"""simulation/trials.py — Schedulable trial runs.

Two kinds of run, both executed by the ``TaskQueue``:

debug run        one trial, one step per resumption, every step and
                 the final state written to the ``RunLog``.
aggregate run    ``count`` silent trials folded into an
                 ``AggregateState``, then a statistics report.

    run = start_aggregate_run(queue, graph, 1000, modifiers, log)
    while queue.pending_count():
        queue.tick(8.0)
    print(run.stats.end_state["forge"].mean)
"""

from __future__ import annotations
import math
import random
from dataclasses import dataclass, field
from typing import Generator

from core.log import RunLog
from graph.amount import format_amount, format_number
from graph.definition import GraphDefinition
from graph.modifiers import ModifierSet
from simulation.aggregate import (
    AggregateState, AggregateStatistics, Statistic, aggregate_traversal, process,
)
from simulation.scheduler import NULL_TASK, TaskQueue, TaskResult
from simulation.traversal import (
    TraversalState, get_missing_requirements, reset, step, step_to_string,
)


@dataclass
class TrialRun:
    """Handle for a scheduled run; filled in as the run progresses."""
    task_id: int = NULL_TASK
    state: TraversalState = field(default_factory=TraversalState)
    aggregate: AggregateState = field(default_factory=AggregateState)
    stats: AggregateStatistics | None = None
    trials_done: int = 0
    finished: bool = False
    debug: bool = False


# ═══════════════════════════════════════════════════════════════════
#  Starting runs
# ═══════════════════════════════════════════════════════════════════

def start_debug_run(queue: TaskQueue, graph: GraphDefinition,
                    modifiers: ModifierSet | None, log: RunLog,
                    previous: TrialRun | None = None,
                    rng: random.Random | None = None) -> TrialRun:
    """Cancel *previous* and schedule a single step-by-step trial."""
    if previous is not None:
        queue.cancel(previous.task_id)

    run = TrialRun(debug=True)
    if rng is not None:
        run.state.rng = rng
    reset(run.state, graph, modifiers, debug=True)
    log.write("-- Starting traversal steps --")

    def _done(name: str | None) -> None:
        run.finished = True

    run.task_id = queue.schedule_with_context(
        run_step, (run.state, graph, log), "Debug Trial", _done)
    return run


def start_aggregate_run(queue: TaskQueue, graph: GraphDefinition, count: int,
                        modifiers: ModifierSet | None, log: RunLog,
                        previous: TrialRun | None = None,
                        rng: random.Random | None = None) -> TrialRun:
    """Cancel *previous* and schedule *count* silent trials."""
    if count < 0:
        raise ValueError(f"trial count must be >= 0, got {count}")
    if previous is not None:
        queue.cancel(previous.task_id)

    run = TrialRun()
    if rng is not None:
        run.state.rng = rng

    def _done(name: str | None) -> None:
        run.finished = True

    local_mods = modifiers.copy() if modifiers is not None else None
    run.task_id = queue.schedule(
        run_aggregate_trial(graph, count, local_mods, log, run),
        "Aggregate Trial", _done)
    return run


# ═══════════════════════════════════════════════════════════════════
#  Work units
# ═══════════════════════════════════════════════════════════════════

def run_step(state: TraversalState, graph: GraphDefinition, log: RunLog,
             debug: bool = True) -> bool:
    """Take one step of a debug trial.  False once the trial is over."""
    log.write(f"Current Status at {len(state.path)}:")
    log.write(f"> {graph.report_tokens(state.status)}")
    taken = step(state, graph, debug=debug)
    if taken is not None:
        log.write(f"Step {len(state.path)}: {step_to_string(taken)}")
        return True

    state.hidden.sort(key=str.lower)
    log.write(f"Finished with {len(state.hidden)} unvisited nodes!")
    for node_id, amount in state.status.items():
        log.write(f"State> {node_id}: {format_amount(amount)}")
    for node_id in state.hidden:
        missing = get_missing_requirements(state, graph, node_id)
        if missing is None:
            continue
        needed = ", ".join(missing.ids)
        if missing.manual_unlock:
            log.error(f"Unvisited> {node_id}: Needed Manual Unlock, {needed}")
        else:
            log.error(f"Unvisited> {node_id}: Needed {needed}")
    return False


def run_aggregate_trial(graph: GraphDefinition, count: int,
                        modifiers: ModifierSet | None, log: RunLog,
                        run: TrialRun | None = None
                        ) -> Generator[TaskResult | None, None, None]:
    """Generator work unit: *count* trials, then the report.

    Yields after every step and every trial; gives up the frame at
    each progress milestone and between report sections.
    """
    if run is None:
        run = TrialRun()
    state = run.state
    agg = run.aggregate

    if count <= 100:
        increment = 10
    elif count <= 1000:
        increment = 100
    else:
        increment = 500

    log.write("-- Starting aggregate --")

    for total in range(1, count + 1):
        reset(state, graph, modifiers)
        while step(state, graph) is not None:
            yield
        aggregate_traversal(agg, state)
        run.trials_done = total
        if total % increment == 0:
            log.write(f"Finished sample {total}")
            yield TaskResult.NEXT_FRAME
        else:
            yield

    log.write(f"Finished running {count} trials; Aggregating results...")
    yield TaskResult.NEXT_FRAME
    result = process(agg)
    run.stats = result
    if result is None:
        log.warn("No trials were run - nothing to report")
        return
    yield TaskResult.NEXT_FRAME

    log.write("")
    log.write("-- Results --")
    for node_type, stat in result.open.items():
        log.write(f"Open {node_type} nodes: Mean {stat.mean:.2f} / "
                  f"Median {stat.median:.0f} / Mode {stat.mode:.0f}")
    yield

    token_entries: list[tuple[str, Statistic]] = []
    complete_entries: list[tuple[str, int]] = []
    unfinished_entries: list[tuple[str, int]] = []
    for node_id, stat in result.end_state.items():
        if graph.is_token(node_id):
            token_entries.append((node_id, stat))
        else:
            complete_entries.append((node_id, math.floor(stat.mean * 100)))
    for node_id, stat in result.unfinished.items():
        unfinished_entries.append((node_id, math.ceil(stat.mean * 100)))
    yield

    token_entries.sort(key=lambda e: -e[1].mean)
    complete_entries.sort(key=lambda e: (-e[1], e[0].lower()))
    unfinished_entries.sort(key=lambda e: (-e[1], e[0].lower()))
    yield

    log.write("")
    for token_id, stat in token_entries:
        log.write(f"{token_id} Final: {_describe(stat)}")
        added = result.added_tokens.get(token_id)
        if added is not None:
            log.write(f"> Added: {_describe(added)}")
        consumed = result.consumed_tokens.get(token_id)
        if consumed is not None:
            log.write(f"> Consumed: {_describe(consumed)}")
    yield

    log.write("")
    log.write(f"-- {len(complete_entries)} nodes completed")
    for node_id, pct in complete_entries:
        if pct < 100:
            log.warn(f"{node_id} Completed: {pct}%")
        else:
            log.write(f"{node_id} Completed: {pct}%")
    yield

    log.write("")
    log.write(f"-- {len(unfinished_entries)} nodes unfinished")
    for node_id, pct in unfinished_entries:
        if pct < 100:
            log.warn(f"{node_id} Unfinished: {pct}%")
        else:
            log.error(f"{node_id} Unfinished: {pct}%")


def _describe(stat: Statistic) -> str:
    return (f"Mean {stat.mean:.2f} / Median {format_number(stat.median)} / "
            f"Mode {format_number(stat.mode)}")


def describe_run(run: TrialRun | None) -> str:
    """Short progress text for a status bar."""
    if run is None or run.finished:
        return "idle"
    if run.debug:
        return f"running (step {len(run.state.path)})"
    return f"running ({run.trials_done} trials done)"
