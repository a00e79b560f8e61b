"""test_trials.py — Scheduled debug and aggregate runs.

Drives full runs over the example graph through the task queue and
checks the run log, the finished statistics and the headless entry
point.

Run: python test_trials.py
"""
from __future__ import annotations
import random, sys, tempfile, traceback
from pathlib import Path
from types import SimpleNamespace

import main
from core.log import RunLog
from graph.loader import load_config
from graph.modifiers import ModifierSet
from simulation.scheduler import TaskQueue, TaskStatus
from simulation.trials import describe_run, start_aggregate_run, start_debug_run

DATA = Path(__file__).resolve().parent / "data"

passed = 0
failed = 0

def ok(label: str):
    global passed
    passed += 1
    print(f"  [PASS] {label}")

def fail(label: str, detail: str = ""):
    global failed
    failed += 1
    print(f"  [FAIL] {label}")
    if detail:
        for line in detail.strip().splitlines():
            print(f"         {line}")


def _graph():
    return load_config(DATA / "example_graph.toml")


# ════════════════════════════════════════════════════════════════════════

def test_aggregate_run_flush():
    print("\n=== Aggregate run, flushed ===")
    graph = _graph()
    log = RunLog()
    queue = TaskQueue()
    run = start_aggregate_run(queue, graph, 50, None, log, rng=random.Random(1))
    assert queue.pending_count() == 1 and not run.finished
    queue.flush()

    assert run.finished and run.trials_done == 50
    assert run.stats is not None and run.stats.sample_count == 50
    lines = log.lines()
    assert "-- Starting aggregate --" in lines
    assert "Finished sample 10" in lines and "Finished sample 50" in lines
    assert "-- Results --" in lines
    assert any(l.startswith("gold Final: Mean ") for l in lines)
    assert "> Consumed: Mean 10.00 / Median 10 / Mode 10" in lines
    assert "forge Completed: 100%" in lines
    assert any(l.startswith("armory Unfinished: 100%") for l in log.lines("error"))
    ok("report written, stats kept on the run")


def test_aggregate_run_ticked():
    print("\n=== Aggregate run, ticked ===")
    graph = _graph()
    log = RunLog()
    queue = TaskQueue()
    run = start_aggregate_run(queue, graph, 30, ModifierSet(), log,
                              rng=random.Random(2))
    ticks = 0
    while queue.pending_count() and ticks < 10_000:
        queue.tick(5.0)
        ticks += 1
    assert run.finished and run.stats.sample_count == 30
    # milestones and report sections each give up the frame
    assert ticks > 1
    ok(f"finished after {ticks} ticks")


def test_modifiers_reach_the_run():
    print("\n=== Modifiers ===")
    graph = _graph()
    mods = ModifierSet.from_settings(graph, {"add": {"gold": 2}})
    log = RunLog()
    queue = TaskQueue()
    run = start_aggregate_run(queue, graph, 20, mods, log, rng=random.Random(4))
    mods.add_multiplier["gold"] = 100.0
    queue.flush()
    # camp start 2 + mine 8 + market 12, minus forge 10
    assert run.stats.end_state["gold"].mean == 12.0
    assert run.stats.added_tokens["gold"].mean == 20.0
    ok("run copies the caller's modifiers at start")


def test_debug_run():
    print("\n=== Debug run ===")
    graph = _graph()
    log = RunLog()
    queue = TaskQueue()
    run = start_debug_run(queue, graph, None, log, rng=random.Random(5))
    queue.flush()

    lines = log.lines()
    assert lines[0] == "-- Starting traversal steps --"
    assert "Current Status at 0:" in lines
    assert "> gold: 2 / ore: 0" in lines
    assert any(l.startswith("Step 1: ") for l in lines)
    assert any(l.startswith("Finished with ") for l in lines)
    assert "State> forge: true" in lines
    errors = log.lines("error")
    assert any(l.startswith("Unvisited> armory: Needed ") for l in errors)
    assert any(l.startswith("Unvisited> knighted: Needed armory") for l in errors)
    assert run.finished
    ok("every step and the final state logged")


def test_empty_and_invalid_counts():
    print("\n=== Zero and negative trial counts ===")
    graph = _graph()
    log = RunLog()
    queue = TaskQueue()
    run = start_aggregate_run(queue, graph, 0, None, log)
    queue.flush()
    assert run.finished and run.stats is None
    assert "No trials were run - nothing to report" in log.lines("warn")
    ok("zero trials warn instead of reporting")

    try:
        start_aggregate_run(queue, graph, -1, None, log)
        raise AssertionError("expected ValueError")
    except ValueError:
        pass
    assert queue.pending_count() == 0
    ok("negative count rejected before scheduling")


def test_restart_cancels_previous():
    print("\n=== Restarting a run ===")
    graph = _graph()
    log = RunLog()
    queue = TaskQueue()
    first = start_aggregate_run(queue, graph, 1000, None, log)
    queue.tick(1.0)
    second = start_debug_run(queue, graph, None, log, previous=first)
    assert queue.pending_count() == 1
    assert queue.status_of(first.task_id) is TaskStatus.INVALID
    queue.flush()
    assert second.finished and not first.finished
    ok("previous run cancelled, new one completes")


def test_headless_main():
    print("\n=== Headless entry point ===")
    config = str(DATA / "example_graph.toml")
    assert main.main([config, "--headless", "--trials", "15", "--seed", "3"]) == 0
    assert main.main([config, "--headless", "--debug", "--seed", "3"]) == 0
    assert main.main([str(DATA / "missing.toml"), "--headless"]) == 1
    ok("exit codes")

    with tempfile.TemporaryDirectory() as tmp:
        broken = Path(tmp) / "broken.json"
        broken.write_text('{"nodes": {"a": {"requires": 5}}}', encoding="utf-8")
        assert main.main([str(broken), "--headless"]) == 1
        binary = Path(tmp) / "binary.json"
        binary.write_bytes(b"\xff\xfe{")
        assert main.main([str(binary), "--headless"]) == 1
    ok("malformed configs exit 1 instead of raising")


def test_run_status_text():
    print("\n=== Status text ===")
    graph = _graph()
    log = RunLog()
    queue = TaskQueue()
    assert describe_run(None) == "idle"

    debug = start_debug_run(queue, graph, None, log, rng=random.Random(6))
    assert describe_run(debug) == "running (step 0)"
    queue.flush_top()
    assert describe_run(debug) == "idle"
    assert debug.debug

    agg = start_aggregate_run(queue, graph, 20, None, log, rng=random.Random(6))
    while agg.trials_done < 10:
        queue.tick(1000.0)
    assert describe_run(agg) == f"running ({agg.trials_done} trials done)"
    queue.flush()
    assert describe_run(agg) == "idle" and not agg.debug
    ok("debug runs report steps, aggregate runs report trials")


def test_viewer_runs_use_the_seed():
    print("\n=== Viewer runs are seedable ===")
    from scenes.runner_scene import RunnerScene

    def _debug_lines(seed: int) -> list[str]:
        app = SimpleNamespace(queue=TaskQueue(), log=RunLog())
        scene = RunnerScene(graph=_graph(), rng=random.Random(seed))
        scene._start_debug(app)
        app.queue.flush()
        return app.log.lines()

    first = _debug_lines(11)
    assert first == _debug_lines(11)
    assert any(l.startswith("Step 1: ") for l in first)
    ok("same seed, same debug run")


# ════════════════════════════════════════════════════════════════════════
#  MAIN
# ════════════════════════════════════════════════════════════════════════

if __name__ == "__main__":
    tests = [v for k, v in list(globals().items()) if k.startswith("test_")]
    for fn in tests:
        try:
            fn()
        except Exception:
            fail(fn.__name__, traceback.format_exc())

    print(f"\n{'=' * 60}")
    print(f"  Trial Tests: {passed} passed, {failed} failed")
    print(f"{'=' * 60}")
    sys.exit(1 if failed else 0)
