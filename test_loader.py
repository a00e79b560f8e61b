"""test_loader.py — Configuration loading, modifiers and settings.

Tests JSON and TOML parsing, constant resolution, fail-closed handling
of malformed files, the bundled example graphs, modifier tables and
the settings fallback chain.

Run: python test_loader.py
"""
from __future__ import annotations
import sys, tempfile, traceback
from pathlib import Path

from core import settings
from graph.amount import Flag, Quantity
from graph.definition import UnlockKind
from graph.loader import load_config, parse_config
from graph.modifiers import ModifierSet

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


_JSON = """
{
  "constants": {"COST": 5, "OPEN": true},
  "startWith": {"gold": "COST", "camp": true},
  "nodes": {
    "gold": {"isToken": true},
    "camp": {},
    "forge": {
      "type": "building",
      "unlockType": "manual",
      "disableTraversal": true,
      "requires": [{"id": "gold", "amount": "COST", "consume": true}],
      "results": [{"id": "sword"}, {"id": "vault", "unlock": true}]
    },
    "gate": {"requires": [{"id": "forge", "amount": "OPEN"}]}
  }
}
"""

_TOML = """
[constants]
COST = 5

[startWith]
gold = 7

[nodes.gold]
isToken = true

[nodes.forge]
type = "building"
unlockType = "auto"
requires = [{ id = "gold", amount = "COST", consume = true }]
"""


# ════════════════════════════════════════════════════════════════════════

def test_parse_json():
    print("\n=== JSON parsing ===")
    g = parse_config(_JSON, "json")
    assert g is not None
    assert set(g.nodes) == {"camp", "forge", "gate"}
    assert g.token_ids == ["gold"] and g.is_token("gold")
    assert g.start_with["gold"] == Quantity(5)
    assert g.start_with["camp"] == Flag(True)
    ok("nodes, tokens and start values")

    forge = g.get("forge")
    assert forge.type == "building"
    assert forge.unlock_kind is UnlockKind.MANUAL
    assert forge.disable_manual_traversal and "forge" in g.disable_manual_traversal
    req = forge.requires[0]
    assert (req.target_id, req.amount, req.consume) == ("gold", Quantity(5), True)
    assert forge.results[0].amount == Flag(True)
    assert forge.results[1].unlock is True
    assert g.get("gate").requires[0].amount == Flag(True)
    assert g.get("camp").unlock_kind is UnlockKind.TRAVERSE
    ok("references, defaults and constants resolved")


def test_parse_toml():
    print("\n=== TOML parsing ===")
    g = parse_config(_TOML, "toml")
    assert g is not None
    assert g.start_with["gold"] == Quantity(7)
    forge = g.get("forge")
    assert forge.unlock_kind is UnlockKind.AUTO
    assert forge.requires[0].amount == Quantity(5)
    ok("same keys as JSON")


def test_unknown_constant_and_kind():
    print("\n=== Unknown names ===")
    g = parse_config("""{"nodes": {
        "a": {"unlockType": "sometimes",
              "requires": [{"id": "b", "amount": "MISSING"},
                           {"amount": 3}]}}}""")
    a = g.get("a")
    assert a.unlock_kind is UnlockKind.TRAVERSE
    assert len(a.requires) == 1
    assert a.requires[0].amount == Flag(True)
    ok("unknown constant → true, unknown unlockType → traverse, id-less ref skipped")


def test_fail_closed():
    print("\n=== Malformed input ===")
    assert parse_config("{not json", "json") is None
    assert parse_config("nodes = [", "toml") is None
    assert parse_config("[1, 2, 3]", "json") is None
    assert parse_config('{"constants": {}}', "json") is None
    assert parse_config('{"nodes": [1]}', "json") is None
    ok("syntax errors and missing node tables return None")


def test_fail_closed_on_bad_shapes():
    print("\n=== Malformed tables and amounts ===")
    bad = [
        '{"nodes": {"a": {"requires": [{"id": "b", "amount": null}]}}}',
        '{"nodes": {"a": {"results": [{"id": "b", "amount": [1, 2]}]}}}',
        '{"nodes": {"a": {"results": [{"id": "b", "amount": {"x": 1}}]}}}',
        '{"nodes": {"a": {}}, "startWith": [1]}',
        '{"nodes": {"a": {}}, "startWith": {"a": null}}',
        '{"nodes": {"a": {}}, "constants": "COST"}',
        '{"nodes": {"a": {}}, "constants": {"COST": [5]}}',
        '{"nodes": {"a": {"requires": 5}}}',
        '{"nodes": {"a": {"results": {"id": "b"}}}}',
        '{"nodes": {"a": 3}}',
        '{"nodes": {"a": {"id": 7}}}',
    ]
    for text in bad:
        assert parse_config(text, "json") is None, text
    assert parse_config('[nodes.a]\nrequires = "b"\n', "toml") is None
    ok("every malformed shape returns None")

    # null sections are the same as absent ones
    g = parse_config('{"nodes": {"a": {"requires": null}}, "startWith": null}')
    assert g is not None and g.get("a").requires == []
    ok("null sections read as empty")


def test_unreadable_files():
    print("\n=== Unreadable files ===")
    with tempfile.TemporaryDirectory() as tmp:
        binary = Path(tmp) / "bad.json"
        binary.write_bytes(b"\xff\xfe{")
        assert load_config(binary) is None

        bad_shape = Path(tmp) / "shape.toml"
        bad_shape.write_text("startWith = 3\n[nodes.a]\n", encoding="utf-8")
        assert load_config(bad_shape) is None

        # a directory exists but cannot be read as a file
        assert load_config(Path(tmp)) is None
    ok("decode errors, bad shapes and OS errors return None")


def test_tokens_report():
    print("\n=== Token report ===")
    g = parse_config('{"nodes": {"a": {}}}')
    assert g.report_tokens({}) == "[No Tokens Defined]"
    g = parse_config('{"nodes": {"gold": {"isToken": true},'
                     ' "gems": {"isToken": true}}}')
    line = g.report_tokens({"gold": Quantity(5), "gems": Quantity(0)})
    assert line == "gold: 5 / gems: 0", line
    ok("declaration order, integral amounts")


def test_example_files():
    print("\n=== Bundled examples ===")
    toml_graph = load_config(DATA / "example_graph.toml")
    assert toml_graph is not None
    assert toml_graph.token_ids == ["gold", "ore"]
    assert toml_graph.start_with["gold"] == Quantity(2)
    assert toml_graph.start_with["ore"] == Quantity(0)
    assert toml_graph.get("forge").requires[0].amount == Quantity(10)
    assert toml_graph.get("armory").unlock_kind is UnlockKind.MANUAL

    json_graph = load_config(DATA / "example_graph.json")
    assert json_graph is not None
    assert json_graph.get("plant").requires[0].amount == Quantity(2)
    assert json_graph.get("harvest").unlock_kind is UnlockKind.AUTO
    assert load_config(DATA / "does_not_exist.json") is None
    ok("both formats load; missing file returns None")


def test_modifiers_from_settings():
    print("\n=== Modifier tables ===")
    g = parse_config(_TOML, "toml")
    mods = ModifierSet.from_settings(g, {"add": {"gold": 2, "ghost": 3},
                                         "consume": {"gold": 0.5}})
    assert mods.add_multiplier == {"gold": 2.0}
    assert mods.consume_for("gold") == 0.5
    assert mods.add_for("unknown") == 1.0
    empty = ModifierSet.from_settings(g, None)
    assert empty.add_multiplier == {"gold": 1.0}
    ok("unknown tokens dropped, missing tokens default to 1.0")


def test_settings_fallbacks():
    print("\n=== Settings ===")
    with tempfile.TemporaryDirectory() as tmp:
        path = Path(tmp) / "settings.toml"
        path.write_text("[run]\ntrials = 25\n\n[modifiers.add]\ngold = 3\n",
                        encoding="utf-8")
        settings.load(path)
        assert settings.get("run", "trials") == 25
        assert settings.get("run", "max_frame_ms") == 50.0
        assert settings.get("run", "missing", "x") == "x"
        assert settings.section("modifiers.add") == {"gold": 3}
        assert settings.section("run")["trial_step"] == 100

        path.write_text("[run\n", encoding="utf-8")
        settings.reload()
        assert settings.get("run", "trials") == 1000

        settings.load(Path(tmp) / "nowhere.toml")
        assert settings.get("run", "frame_budget_ratio") == 0.5
    settings.load()
    assert settings.get("run", "trials") == 1000
    ok("file values over defaults; bad or missing files use defaults")


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
    print(f"  Loader Tests: {passed} passed, {failed} failed")
    print(f"{'=' * 60}")
    sys.exit(1 if failed else 0)
