import json

from typer.testing import CliRunner

from workgraph.cli import app

runner = CliRunner()


def test_cli_validate_success():
    r = runner.invoke(app, ["validate", "examples/basic-items.yaml"])
    assert r.exit_code == 0, r.output
    assert "OK: 5 items (epic=1, feature=0, story=4)" in r.stdout
    assert "Scopes: SPEC-1" in r.stdout


def test_cli_validate_missing_file():
    r = runner.invoke(app, ["validate", "examples/nope.yaml"])
    assert r.exit_code == 1
    assert "E_FILE_NOT_FOUND" in r.output


def test_cli_validate_invalid():
    r = runner.invoke(app, ["validate", "examples/invalid-bad-type.yaml"])
    assert r.exit_code == 2
    assert "E_INVALID_ENUM" in r.output


def test_cli_validate_unknown_format():
    r = runner.invoke(app, ["validate", "examples/basic-items.yaml", "--format", "xml"])
    assert r.exit_code == 2
    assert "E_VALIDATE_UNKNOWN_FORMAT" in r.output


def test_cli_validate_json_success():
    r = runner.invoke(app, ["validate", "examples/basic-items.yaml", "--format", "json"])
    assert r.exit_code == 0
    payload = json.loads(r.stdout)
    assert payload["command"] == "validate"
    assert payload["ok"] is True
    assert payload["error_count"] == 0
    assert payload["summary"]["item_count"] == 5
    assert payload["summary"]["scopes"] == ["SPEC-1"]


def test_cli_validate_json_failure_contains_codes():
    r = runner.invoke(app, ["validate", "examples/invalid-bad-type.yaml", "--format", "json"])
    assert r.exit_code == 2
    payload = json.loads(r.stdout)
    assert payload["ok"] is False
    codes = {e["code"] for e in payload["errors"]}
    assert codes == {"E_INVALID_ENUM", "E_INVALID_TYPE"}
    assert all(e["source"] == "validate" for e in payload["errors"])


def test_cli_validate_unresolved_error_mode_from_env():
    r = runner.invoke(
        app,
        ["validate", "examples/basic-items.json"],
        env={"WORKGRAPH_UNRESOLVED_REFERENCES": "error"},
    )
    assert r.exit_code == 2
    assert "E_UNRESOLVED_REFERENCE" in r.output


def test_cli_invalid_settings_file():
    r = runner.invoke(app, ["--config", "examples/settings-invalid.yaml", "validate", "examples/basic-items.yaml"])
    assert r.exit_code == 2
    assert "E_SETTINGS_INVALID" in r.output


def test_cli_missing_settings_file():
    r = runner.invoke(app, ["--config", "examples/nope.yaml", "validate", "examples/basic-items.yaml"])
    assert r.exit_code == 1
    assert "E_SETTINGS_FILE_NOT_FOUND" in r.output
