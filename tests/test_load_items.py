import json

import yaml

from workgraph.core.errors import GraphLoadError
from workgraph.core.io.load_items import dump_items, load_items


def test_load_yaml_success():
    doc = load_items("examples/basic-items.yaml")
    assert doc["schema_version"] == "0.1.0"
    assert doc["scope"] == "SPEC-1"
    assert isinstance(doc["items"], list)
    assert doc["__file__"].endswith("basic-items.yaml")


def test_load_json_success():
    doc = load_items("examples/basic-items.json")
    assert [i["id"] for i in doc["items"]] == ["s1", "s2"]


def test_load_missing_file():
    try:
        load_items("examples/does-not-exist.yaml")
        assert False, "expected GraphLoadError"
    except GraphLoadError as e:
        assert e.code == "E_FILE_NOT_FOUND"


def test_load_unsupported_format(tmp_path):
    p = tmp_path / "items.txt"
    p.write_text("hello", encoding="utf-8")
    try:
        load_items(str(p))
        assert False, "expected GraphLoadError"
    except GraphLoadError as e:
        assert e.code == "E_UNSUPPORTED_FORMAT"


def test_load_bad_json(tmp_path):
    p = tmp_path / "items.json"
    p.write_text("{not json", encoding="utf-8")
    try:
        load_items(str(p))
        assert False, "expected GraphLoadError"
    except GraphLoadError as e:
        assert e.code == "E_JSON_PARSE"


def test_load_top_level_list(tmp_path):
    p = tmp_path / "items.yaml"
    p.write_text("- a\n- b\n", encoding="utf-8")
    try:
        load_items(str(p))
        assert False, "expected GraphLoadError"
    except GraphLoadError as e:
        assert e.code == "E_INVALID_TOP_LEVEL"


def test_dump_drops_internal_keys(tmp_path):
    doc = load_items("examples/basic-items.yaml")

    out_yaml = tmp_path / "nested" / "out.yaml"
    dump_items(doc, str(out_yaml))
    written = yaml.safe_load(out_yaml.read_text(encoding="utf-8"))
    assert "__file__" not in written
    assert written["items"][2]["depends_on"] == ["s1"]

    out_json = tmp_path / "out.json"
    dump_items(doc, str(out_json))
    assert json.loads(out_json.read_text(encoding="utf-8"))["scope"] == "SPEC-1"


def test_load_keeps_keys_as_written(tmp_path):
    p = tmp_path / "items.yaml"
    p.write_text("items:\n  - {id: a, title: A, type: story}\nowner: team-x\n", encoding="utf-8")
    doc = load_items(str(p))
    assert "schema_version" not in doc
    assert doc["owner"] == "team-x"

    out = tmp_path / "again.yaml"
    dump_items(doc, str(out))
    again = load_items(str(out))
    assert {k: v for k, v in again.items() if k != "__file__"} == {
        "items": [{"id": "a", "title": "A", "type": "story"}],
        "owner": "team-x",
    }
