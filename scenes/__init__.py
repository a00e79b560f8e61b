"""scenes — Viewer screens (pygame).

runner_scene    RunnerScene — run log, debug / aggregate run controls
"""
