"""
main.py — Bootstrap

1. Load settings
2. Load the progression graph
3. Either flush the requested run synchronously (--headless)
   or open the viewer and let the frame loop drive the task queue

    python main.py data/example_graph.toml --headless --trials 500
    python main.py data/example_graph.json --debug --headless --seed 7
    python main.py data/example_graph.toml
"""

from __future__ import annotations
import argparse
import random
import sys

from core import settings
from core.log import RunLog
from graph.loader import load_config
from graph.modifiers import ModifierSet
from simulation.scheduler import TaskQueue
from simulation.trials import start_aggregate_run, start_debug_run


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Simulate random traversals of a progression graph.")
    parser.add_argument("config", help="graph configuration (.json or .toml)")
    parser.add_argument("--trials", type=int, default=None,
                        help="number of aggregate trials (default from settings)")
    parser.add_argument("--debug", action="store_true",
                        help="run a single step-by-step trial instead")
    parser.add_argument("--headless", action="store_true",
                        help="run without a window and print the report")
    parser.add_argument("--seed", type=int, default=None,
                        help="seed for the traversal random source")
    parser.add_argument("--settings", default=None,
                        help="settings TOML (default data/settings.toml)")
    args = parser.parse_args(argv)

    settings.load(args.settings)
    trials = args.trials if args.trials is not None else int(
        settings.get("run", "trials", 1000))
    if trials < 0:
        parser.error("--trials must be >= 0")
    rng = random.Random(args.seed) if args.seed is not None else None

    if not args.headless:
        # pygame only needed for the viewer
        from core.app import App
        from scenes.runner_scene import RunnerScene
        app = App(title="Progression Graph")
        scene = RunnerScene(config_path=args.config, rng=rng)
        scene.trials = trials
        app.push_scene(scene)
        app.run()
        return 0

    graph = load_config(args.config)
    if graph is None:
        print(f"[MAIN] No configuration loaded from {args.config}")
        return 1

    modifiers = ModifierSet.from_settings(graph, settings.section("modifiers"))
    log = RunLog(echo=True)
    queue = TaskQueue()

    if args.debug:
        start_debug_run(queue, graph, modifiers, log, rng=rng)
    else:
        start_aggregate_run(queue, graph, trials, modifiers, log, rng=rng)
    queue.flush()
    return 0


if __name__ == "__main__":
    sys.exit(main())
