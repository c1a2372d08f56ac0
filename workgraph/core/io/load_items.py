from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable

import yaml

from workgraph.core.errors import GraphLoadError

# suffix -> (parse error code, parser)
_PARSERS: dict[str, tuple[str, Callable[[str], Any]]] = {
    ".yaml": ("E_YAML_PARSE", yaml.safe_load),
    ".yml": ("E_YAML_PARSE", yaml.safe_load),
    ".json": ("E_JSON_PARSE", json.loads),
}


def load_items(path: str) -> dict[str, Any]:
    """Load a YAML/JSON work-item file.

    Every top-level key is kept as written, so a document loaded here and
    passed to dump_items comes back with the same keys. The only addition
    is ``__file__``, which dump_items strips. Shape checks belong to the
    validator.
    """

    p = Path(path)
    parser = _PARSERS.get(p.suffix.lower())
    if parser is None:
        raise GraphLoadError(
            code="E_UNSUPPORTED_FORMAT",
            message="supported formats are .yaml/.yml and .json",
            file=str(p),
        )
    parse_code, parse = parser

    try:
        raw_text = p.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise GraphLoadError(code="E_FILE_NOT_FOUND", message="file does not exist", file=str(p)) from e
    except OSError as e:
        raise GraphLoadError(code="E_FILE_READ", message=str(e), file=str(p)) from e

    try:
        data = parse(raw_text)
    except (yaml.YAMLError, ValueError) as e:
        raise GraphLoadError(code=parse_code, message=str(e), file=str(p)) from e

    if not isinstance(data, dict):
        raise GraphLoadError(
            code="E_INVALID_TOP_LEVEL",
            message="top-level document must be a mapping/object",
            file=str(p),
        )

    return {**data, "__file__": str(p)}


def dump_items(doc: dict[str, Any], path: str) -> None:
    """Write a work-item document back out, in JSON or YAML by suffix."""
    p = Path(path)
    if str(p.parent) not in (".", ""):
        p.parent.mkdir(parents=True, exist_ok=True)

    out = {k: v for k, v in doc.items() if not k.startswith("__")}
    if p.suffix.lower() == ".json":
        p.write_text(json.dumps(out, indent=2) + "\n", encoding="utf-8")
        return
    with open(p, "w", encoding="utf-8") as f:
        yaml.safe_dump(out, f, sort_keys=False, default_flow_style=False, allow_unicode=True)
