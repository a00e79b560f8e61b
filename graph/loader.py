"""
graph/loader.py — JSON / TOML → GraphDefinition

Reads a progression file and builds the immutable graph every
traversal runs against.  Named constants are resolved here, once, so
the engine only ever sees concrete amounts.

File shape (JSON shown, TOML uses the same keys):

    {
      "nodes": {
        "forge":  {"type": "building",
                   "requires": [{"id": "gold", "amount": "FORGE_COST",
                                 "consume": true}],
                   "results":  [{"id": "sword"}]},
        "gold":   {"isToken": true}
      },
      "startWith": {"gold": 10},
      "constants": {"FORGE_COST": 5}
    }

Usage:
    graph = load_config("data/example_graph.toml")
    if graph is None:
        ...   # unreadable file, already reported on the console
"""

from __future__ import annotations
import json
try:
    import tomllib
except ModuleNotFoundError:  # Python < 3.11
    import tomli as tomllib
from pathlib import Path
from typing import Any

from graph.amount import Amount, Flag, from_raw
from graph.definition import (
    GraphDefinition, NodeDefinition, NodeReference, UnlockKind,
)



class ConfigError(ValueError):
    """A configuration document with the wrong shape."""


def load_config(path: str | Path) -> GraphDefinition | None:
    """Read and parse a configuration file.

    ``.toml`` files go through tomllib, everything else is treated as
    JSON.  Returns None if the file is missing, unreadable or malformed.
    """
    path = Path(path)
    if not path.exists():
        print(f"[CONFIG] {path} not found")
        return None
    fmt = "toml" if path.suffix.lower() == ".toml" else "json"
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        print(f"[CONFIG] could not read {path}: {exc}")
        return None
    graph = parse_config(text, fmt)
    if graph is not None:
        print(f"[CONFIG] Loaded {path}: {len(graph.nodes)} nodes, "
              f"{len(graph.tokens)} tokens")
    return graph


def parse_config(text: str, fmt: str = "json") -> GraphDefinition | None:
    """Parse configuration text into a GraphDefinition.

    Fails closed: any syntax error or malformed table prints a warning
    and returns None rather than raising.
    """
    try:
        if fmt == "toml":
            data = tomllib.loads(text)
        else:
            data = json.loads(text)
    except (json.JSONDecodeError, tomllib.TOMLDecodeError) as exc:
        print(f"[CONFIG] could not parse {fmt} configuration: {exc}")
        return None

    if not isinstance(data, dict) or not isinstance(data.get("nodes"), dict):
        print("[CONFIG] Unrecognized format (expected a 'nodes' table)")
        return None

    try:
        return _build_graph(data)
    except ConfigError as exc:
        print(f"[CONFIG] {exc}")
        return None


# ── Graph building ───────────────────────────────────────────────────

def _build_graph(data: dict[str, Any]) -> GraphDefinition:
    graph = GraphDefinition()

    for key, value in _table(data, "constants").items():
        graph.constants[key] = _literal_amount(value, f"constant '{key}'")

    for key, value in _table(data, "startWith").items():
        graph.start_with[key] = _compute_amount(value, graph.constants,
                                                f"startWith '{key}'")

    for key, section in data["nodes"].items():
        if not isinstance(section, dict):
            raise ConfigError(f"node '{key}' is not a table")
        graph.add_node(_build_node(key, section, graph.constants))

    return graph


def _table(data: dict[str, Any], key: str) -> dict[str, Any]:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"'{key}' must be a table, got {type(value).__name__}")
    return value


def _build_node(key: str, section: dict[str, Any],
                constants: dict[str, Amount]) -> NodeDefinition:
    node_id = section.get("id", key)
    if not isinstance(node_id, str):
        raise ConfigError(f"node '{key}' has a non-string id {node_id!r}")
    raw_kind = section.get("unlockType", UnlockKind.TRAVERSE.value)
    try:
        kind = UnlockKind(raw_kind)
    except ValueError:
        print(f"[CONFIG] node '{node_id}' has unknown unlockType "
              f"{raw_kind!r}, using 'traverse'")
        kind = UnlockKind.TRAVERSE

    return NodeDefinition(
        id=node_id,
        type=section.get("type"),
        is_token=bool(section.get("isToken", False)),
        disable_manual_traversal=bool(section.get("disableTraversal", False)),
        unlock_kind=kind,
        requires=_build_refs(node_id, "requires", section.get("requires"), constants),
        results=_build_refs(node_id, "results", section.get("results"), constants),
    )


def _build_refs(owner: str, field_name: str, raw: Any,
                constants: dict[str, Amount]) -> list[NodeReference]:
    refs: list[NodeReference] = []
    if raw is None:
        return refs
    if not isinstance(raw, list):
        raise ConfigError(f"node '{owner}' {field_name} must be a list, "
                          f"got {type(raw).__name__}")
    for entry in raw:
        if not isinstance(entry, dict) or "id" not in entry:
            print(f"[CONFIG] node '{owner}' has a reference without an id, skipped")
            continue
        target = entry["id"]
        refs.append(NodeReference(
            target_id=str(target),
            amount=_compute_amount(entry.get("amount", True), constants,
                                   f"node '{owner}' {field_name} '{target}'"),
            consume=bool(entry.get("consume", False)),
            unlock=bool(entry.get("unlock", False)),
        ))
    return refs


def _compute_amount(value: Any, constants: dict[str, Amount],
                    where: str) -> Amount:
    """Resolve a literal or named-constant amount."""
    if isinstance(value, str):
        const = constants.get(value)
        if const is None:
            print(f"[CONFIG] constant with id '{value}' unable to be found")
            return Flag(True)
        return const
    return _literal_amount(value, where)


def _literal_amount(value: Any, where: str) -> Amount:
    try:
        return from_raw(value)
    except TypeError:
        raise ConfigError(f"{where} has unsupported amount {value!r}") from None
