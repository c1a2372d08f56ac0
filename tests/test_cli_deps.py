import json
import shutil
from pathlib import Path

import yaml
from typer.testing import CliRunner

from workgraph.cli import app

runner = CliRunner()


def _copy(tmp_path: Path, name: str) -> Path:
    dst = tmp_path / name
    shutil.copy(Path("examples") / name, dst)
    return dst


def _deps(p: Path) -> dict[str, list[str]]:
    doc = yaml.safe_load(p.read_text(encoding="utf-8"))
    return {i["id"]: i.get("depends_on", []) for i in doc["items"]}


def test_check_edge_would_cycle():
    # s3 -> s2 -> s1 already; s1 depending on s3 closes the loop.
    r = runner.invoke(app, ["check-edge", "examples/basic-items.yaml", "s1", "s3"])
    assert r.exit_code == 2
    assert "CYCLE:" in r.stdout


def test_check_edge_ok_json():
    r = runner.invoke(app, ["check-edge", "examples/basic-items.yaml", "s4", "s3", "--format", "json"])
    assert r.exit_code == 0
    payload = json.loads(r.stdout)
    assert payload == {
        "command": "check-edge",
        "from": "s4",
        "to": "s3",
        "tool": "workgraph",
        "would_create_cycle": False,
    }


def test_check_edge_self_and_unknown():
    r = runner.invoke(app, ["check-edge", "examples/basic-items.yaml", "s1", "s1"])
    assert r.exit_code == 2
    assert "E_SELF_DEPENDENCY" in r.output

    r = runner.invoke(app, ["check-edge", "examples/basic-items.yaml", "s1", "ghost"])
    assert r.exit_code == 2
    assert "E_ITEM_NOT_FOUND" in r.output


def test_add_dep_in_place(tmp_path: Path):
    p = _copy(tmp_path, "basic-items.yaml")
    r = runner.invoke(app, ["add-dep", str(p), "s4", "s2"])
    assert r.exit_code == 0, r.output
    assert _deps(p)["s4"] == ["s1", "s2"]

    # Other fields survive the rewrite.
    doc = yaml.safe_load(p.read_text(encoding="utf-8"))
    assert doc["scope"] == "SPEC-1"
    assert doc["items"][4]["status"] == "approved"


def test_add_dep_out(tmp_path: Path):
    p = _copy(tmp_path, "basic-items.yaml")
    out = tmp_path / "out" / "items.yaml"
    r = runner.invoke(app, ["add-dep", str(p), "E1", "s3", "--out", str(out)])
    assert r.exit_code == 0, r.output
    assert _deps(out)["E1"] == ["s3"]
    assert _deps(p)["E1"] == []


def test_add_dep_rejects_cycle(tmp_path: Path):
    p = _copy(tmp_path, "basic-items.yaml")
    before = p.read_text(encoding="utf-8")
    r = runner.invoke(app, ["add-dep", str(p), "s1", "s3"])
    assert r.exit_code == 2
    assert "E_CYCLE_DETECTED" in r.output
    assert p.read_text(encoding="utf-8") == before


def test_add_dep_rejects_duplicate_and_cross_scope(tmp_path: Path):
    p = _copy(tmp_path, "basic-items.yaml")
    r = runner.invoke(app, ["add-dep", str(p), "s2", "s1"])
    assert r.exit_code == 2
    assert "E_DUPLICATE_DEPENDENCY" in r.output

    m = _copy(tmp_path, "multi-scope-items.yaml")
    r = runner.invoke(app, ["add-dep", str(m), "a2", "b1"])
    assert r.exit_code == 2
    assert "E_CROSS_SCOPE" in r.output


def test_remove_dep(tmp_path: Path):
    p = _copy(tmp_path, "basic-items.yaml")
    r = runner.invoke(app, ["remove-dep", str(p), "s3", "s2"])
    assert r.exit_code == 0, r.output
    assert _deps(p)["s3"] == []

    r = runner.invoke(app, ["remove-dep", str(p), "s3", "s2"])
    assert r.exit_code == 2
    assert "E_DEPENDENCY_NOT_FOUND" in r.output


def test_check_edge_cross_scope():
    r = runner.invoke(app, ["check-edge", "examples/multi-scope-items.yaml", "a2", "b1"])
    assert r.exit_code == 2
    assert "E_CROSS_SCOPE" in r.output


def test_add_dep_does_not_add_missing_keys(tmp_path: Path):
    p = tmp_path / "items.yaml"
    p.write_text(
        "items:\n"
        "  - {id: a, title: A, type: story}\n"
        "  - {id: b, title: B, type: story}\n",
        encoding="utf-8",
    )
    r = runner.invoke(app, ["add-dep", str(p), "b", "a"])
    assert r.exit_code == 0, r.output
    doc = yaml.safe_load(p.read_text(encoding="utf-8"))
    assert set(doc) == {"items"}
    assert _deps(p)["b"] == ["a"]
