from workgraph.core.io.load_items import load_items
from workgraph.core.validate.validate_items import summarize_items, validate_items


def test_validate_happy_path():
    doc = load_items("examples/basic-items.yaml")
    records, errors = validate_items(doc)
    assert errors == []
    assert records is not None
    assert [r.id for r in records] == ["E1", "s1", "s2", "s3", "s4"]
    assert all(r.scope == "SPEC-1" for r in records)
    assert records[0].status == "draft"
    assert records[0].size_estimate is None
    assert records[2].depends_on == ["s1"]


def test_validate_bad_type_shape():
    doc = load_items("examples/invalid-bad-type.yaml")
    records, errors = validate_items(doc)
    assert records is None
    codes = {e.code for e in errors}
    assert "E_INVALID_ENUM" in codes
    assert "E_INVALID_TYPE" in codes


def test_validate_missing_items():
    records, errors = validate_items({"schema_version": "0.1.0"})
    assert records is None
    assert [e.code for e in errors] == ["E_REQUIRED_FIELD"]


def test_validate_duplicate_id():
    doc = {
        "items": [
            {"id": "s1", "title": "A", "type": "story"},
            {"id": "s1", "title": "B", "type": "story"},
        ]
    }
    records, errors = validate_items(doc)
    assert records is None
    assert errors[0].code == "E_DUPLICATE_ID"
    assert errors[0].path == "items[1].id"


def test_validate_bad_size_and_status():
    doc = {"items": [{"id": "s1", "title": "A", "type": "story", "size_estimate": "XXL", "status": "done"}]}
    _, errors = validate_items(doc)
    assert [e.path for e in errors] == ["items[0].size_estimate", "items[0].status"]


def test_unresolved_references_are_allowed_by_default():
    doc = load_items("examples/basic-items.json")
    records, errors = validate_items(doc)
    assert errors == []
    assert records is not None
    assert records[1].depends_on == ["s1", "outside"]


def test_unresolved_references_error_mode():
    doc = load_items("examples/basic-items.json")
    records, errors = validate_items(doc, unresolved_references="error")
    assert records is None
    assert [(e.code, e.path) for e in errors] == [("E_UNRESOLVED_REFERENCE", "items[1].depends_on[1]")]


def test_item_scope_overrides_file_scope():
    doc = {"scope": "SPEC-1", "items": [{"id": "s1", "title": "A", "type": "story", "scope": "SPEC-2"}]}
    records, _ = validate_items(doc)
    assert records is not None
    assert records[0].scope == "SPEC-2"


def test_summarize_items():
    records, _ = validate_items(load_items("examples/multi-scope-items.yaml"))
    assert records is not None
    text = summarize_items(records)
    assert text.startswith("OK: 4 items (epic=0, feature=1, story=3), 3 dependency references")
    assert "Scopes: SPEC-A, SPEC-B" in text


def test_validate_non_string_size_and_status():
    doc = {
        "items": [
            {"id": "s1", "title": "A", "type": "story", "size_estimate": ["M"]},
            {"id": "s2", "title": "B", "type": "story", "status": {"x": 1}},
        ]
    }
    records, errors = validate_items(doc)
    assert records is None
    assert [(e.code, e.path) for e in errors] == [
        ("E_INVALID_ENUM", "items[0].size_estimate"),
        ("E_INVALID_ENUM", "items[1].status"),
    ]


def test_unresolved_references_error_mode_is_per_scope():
    # b2 (SPEC-B) depends on a1, which exists only in SPEC-A.
    doc = load_items("examples/multi-scope-items.yaml")
    records, errors = validate_items(doc, unresolved_references="error")
    assert records is None
    assert [(e.code, e.path) for e in errors] == [("E_UNRESOLVED_REFERENCE", "items[3].depends_on[1]")]
    assert "SPEC-B" in errors[0].message


def test_schema_version_is_optional_but_typed():
    records, errors = validate_items({"items": []})
    assert records == [] and errors == []

    _, errors = validate_items({"schema_version": 1, "items": []})
    assert [(e.code, e.path) for e in errors] == [("E_INVALID_TYPE", "schema_version")]
