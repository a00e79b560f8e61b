"""simulation/scheduler.py — Cooperative task queue.

Long simulations (a step-by-step debug run, a batch of thousands of
trials) are split into small resumable work units.  The frame loop
gives the queue a time budget and the queue resumes the unit at the
head until the budget runs out::

    queue = TaskQueue()
    run_id = queue.schedule_with_context(run_step, (state, graph, log))
    queue.schedule(run_aggregate_trial(graph, 1000, mods, log), "aggregate")
    ...
    queue.tick(8.0)       # once per frame, milliseconds

Work runs strictly FIFO except ``priority()``, which inserts at the
front and flags an executing head as INTERRUPTED.  Nothing is ever
pre-empted: a unit that never returns starves the budget check.
"""

from __future__ import annotations
import time
import traceback
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from collections.abc import Generator
from typing import Any, Callable, Union


class TaskResult(IntEnum):
    """What a work unit wants after one resumption.

    ``DONE`` is falsy so plain functions can simply return False.
    """
    DONE = 0
    CONTINUE = 1
    NEXT_FRAME = 2


class TaskStatus(Enum):
    INVALID = 0
    SCHEDULED = 1
    EXECUTING = 2
    INTERRUPTED = 3
    ERROR = 4
    FINISHED = 5


NULL_TASK = 0
_MAX_ID = 2 ** 53 - 1

TaskCallback = Callable[[str], None]


# ═══════════════════════════════════════════════════════════════════
#  Work units
# ═══════════════════════════════════════════════════════════════════

class WorkUnit:
    """Anything the queue can resume one slice at a time."""

    def resume(self) -> TaskResult:
        raise NotImplementedError


class FunctionWork(WorkUnit):
    """Calls ``fn(*args)`` once per resumption.

    ``True`` / ``CONTINUE`` → call again; ``False`` / ``None`` / ``DONE``
    → finished; ``NEXT_FRAME`` → call again next tick.
    """

    def __init__(self, fn: Callable[..., Any], args: tuple = ()) -> None:
        self.fn = fn
        self.args = args

    def resume(self) -> TaskResult:
        return _coerce(self.fn(*self.args))


class GeneratorWork(WorkUnit):
    """Advances a generator once per resumption.

    A bare ``yield`` continues; ``yield TaskResult.NEXT_FRAME`` gives up
    the rest of the frame; returning or yielding ``False`` / ``DONE``
    finishes the unit.
    """

    def __init__(self, gen: Generator[Any, Any, Any],
                 context: tuple = ()) -> None:
        self.gen = gen
        self.context = context
        self._started = False

    def resume(self) -> TaskResult:
        try:
            if self._started:
                value = self.gen.send(self.context or None)
            else:
                self._started = True
                value = next(self.gen)
        except StopIteration:
            return TaskResult.DONE
        if value is None:
            return TaskResult.CONTINUE
        return _coerce(value)


TaskMethod = Union[WorkUnit, Callable[..., Any], Generator[Any, Any, Any]]


def as_work_unit(method: TaskMethod, context: Any = None) -> WorkUnit:
    """Wrap a callable or generator in the matching WorkUnit."""
    if isinstance(method, WorkUnit):
        return method
    args = _context_args(context)
    if isinstance(method, Generator):
        return GeneratorWork(method, args)
    if callable(method):
        return FunctionWork(method, args)
    raise TypeError(f"cannot schedule {method!r}")


def _context_args(context: Any) -> tuple:
    if context is None:
        return ()
    if isinstance(context, (list, tuple)):
        return tuple(context)
    return (context,)


def _coerce(value: Any) -> TaskResult:
    if isinstance(value, TaskResult):
        return value
    return TaskResult.CONTINUE if value else TaskResult.DONE


# ═══════════════════════════════════════════════════════════════════
#  Queue
# ═══════════════════════════════════════════════════════════════════

@dataclass(eq=False)
class ScheduledTask:
    """A single entry in the task queue."""
    id: int
    work: WorkUnit
    name: str | None = None
    status: TaskStatus = TaskStatus.SCHEDULED
    on_complete: TaskCallback | None = field(default=None, repr=False)
    resumes: int = 0


class TaskQueue:
    """FIFO queue of cooperative work units, driven by ``tick()``."""

    def __init__(self) -> None:
        self._units: list[ScheduledTask] = []
        self._current_id: int = NULL_TASK
        # Stats
        self.tasks_finished: int = 0

    # ── Scheduling ───────────────────────────────────────────────────

    def schedule(self, method: TaskMethod, name: str | None = None,
                 on_complete: TaskCallback | None = None) -> int:
        """Add a task at the back of the queue.  Returns its id."""
        return self.schedule_with_context(method, None, name, on_complete)

    def schedule_with_context(self, method: TaskMethod, context: Any,
                              name: str | None = None,
                              on_complete: TaskCallback | None = None) -> int:
        """Like ``schedule``; *context* is passed as the call arguments
        (a tuple/list is unpacked, anything else is a single argument)."""
        task = self._make_task(method, context, name, on_complete)
        self._units.append(task)
        return task.id

    def priority(self, method: TaskMethod, name: str | None = None,
                 on_complete: TaskCallback | None = None) -> int:
        """Add a task at the front of the queue."""
        return self.priority_with_context(method, None, name, on_complete)

    def priority_with_context(self, method: TaskMethod, context: Any,
                              name: str | None = None,
                              on_complete: TaskCallback | None = None) -> int:
        task = self._make_task(method, context, name, on_complete)
        if self._units and self._units[0].status is TaskStatus.EXECUTING:
            self._units[0].status = TaskStatus.INTERRUPTED
        self._units.insert(0, task)
        return task.id

    # ── Execution ────────────────────────────────────────────────────

    def tick(self, milliseconds: float) -> None:
        """Run as much work as fits in *milliseconds* of wall-clock time.

        The budget is re-checked after every resumption.  A unit that
        answers NEXT_FRAME ends processing for this tick.
        """
        deadline = time.perf_counter() + milliseconds / 1000.0
        while self._units and time.perf_counter() < deadline:
            top = self._units[0]
            top.status = TaskStatus.EXECUTING
            while time.perf_counter() < deadline:
                result = self._resume(top)
                if result is None:
                    break
                if result is TaskResult.DONE:
                    self._finish(top)
                    break
                if top.status is not TaskStatus.EXECUTING:
                    # interrupted or cancelled from inside the unit
                    break
                if result is TaskResult.NEXT_FRAME:
                    return

    def flush_top(self) -> bool:
        """Run the head task to completion, ignoring any budget.

        Returns False if the queue was empty.
        """
        if not self._units:
            return False

        top = self._units[0]
        top.status = TaskStatus.EXECUTING
        while True:
            result = self._resume(top)
            if result is None:
                return True
            if result is TaskResult.DONE:
                self._finish(top)
                return True
            if top.status is not TaskStatus.EXECUTING:
                return True

    def flush(self) -> bool:
        """Run every queued task to completion.  False if already empty."""
        if not self._units:
            return False
        while self._units:
            self.flush_top()
        return True

    # ── Cancellation ─────────────────────────────────────────────────

    def cancel(self, task: int | str | None) -> bool:
        """Cancel a task by id or name.  Returns whether it was found.

        Code already running inside the task is not stopped; it can
        notice the INVALID status through ``status_of``.
        """
        if task is None or task == NULL_TASK:
            return False
        idx = self._index_of(task)
        if idx < 0:
            return False
        self._units[idx].status = TaskStatus.INVALID
        del self._units[idx]
        return True

    def clear(self) -> None:
        """Cancel every task."""
        for unit in self._units:
            unit.status = TaskStatus.INVALID
        self._units.clear()

    # ── Queries ──────────────────────────────────────────────────────

    def status_of(self, task: int | str) -> TaskStatus:
        """Status of a queued task; INVALID once it has left the queue."""
        idx = self._index_of(task)
        if idx < 0:
            return TaskStatus.INVALID
        return self._units[idx].status

    def pending_count(self) -> int:
        return len(self._units)

    def debug_dump(self, limit: int = 20) -> list[str]:
        """Return a human-readable list of the next N tasks."""
        return [
            f"#{t.id}  {t.name or '-'}  {t.status.name}  resumes={t.resumes}"
            for t in self._units[:limit]
        ]

    # ── Internals ────────────────────────────────────────────────────

    def _make_task(self, method: TaskMethod, context: Any, name: str | None,
                   on_complete: TaskCallback | None) -> ScheduledTask:
        return ScheduledTask(
            id=self._next_id(),
            work=as_work_unit(method, context),
            name=name,
            on_complete=on_complete,
        )

    def _resume(self, task: ScheduledTask) -> TaskResult | None:
        """Resume *task* once.  A raising unit is dropped as ERROR."""
        task.resumes += 1
        try:
            return task.work.resume()
        except Exception as exc:
            print(f"[TASKS] task #{task.id} ({task.name}) failed: {exc}")
            traceback.print_exc()
            task.status = TaskStatus.ERROR
            self._remove(task)
            return None

    def _finish(self, task: ScheduledTask) -> None:
        task.status = TaskStatus.FINISHED
        self._remove(task)
        self.tasks_finished += 1
        if task.on_complete is not None:
            task.on_complete(task.name)

    def _remove(self, task: ScheduledTask) -> None:
        for i, unit in enumerate(self._units):
            if unit is task:
                del self._units[i]
                return

    def _index_of(self, task: int | str) -> int:
        for i, unit in enumerate(self._units):
            if isinstance(task, str):
                if unit.name == task:
                    return i
            elif unit.id == task:
                return i
        return -1

    def _next_id(self) -> int:
        if self._current_id >= _MAX_ID:
            self._current_id = 1
        else:
            self._current_id += 1
        return self._current_id

    def __repr__(self) -> str:
        return f"TaskQueue(pending={len(self._units)})"
