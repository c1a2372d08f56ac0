from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Literal, Optional

import yaml

from workgraph.core.errors import SettingsError


TieBreak = Literal["lexicographic", "insertion"]
UnresolvedPolicy = Literal["drop", "error"]

ALLOWED_TIE_BREAKS: set[str] = {"lexicographic", "insertion"}
ALLOWED_UNRESOLVED: set[str] = {"drop", "error"}

ENV_TIE_BREAK = "WORKGRAPH_TIE_BREAK"
ENV_UNRESOLVED = "WORKGRAPH_UNRESOLVED_REFERENCES"


@dataclass(frozen=True)
class EngineSettings:
    # Which end node wins when several share the longest chain.
    tie_break: TieBreak = "lexicographic"
    # What to do with depends_on ids that are not in the scope.
    unresolved_references: UnresolvedPolicy = "drop"


DEFAULT_SETTINGS = EngineSettings()


def load_settings_file(path: str | Path) -> dict[str, Any]:
    """Load settings overrides from a YAML file.

    Format:
      tie_break: lexicographic|insertion
      unresolved_references: drop|error

    Unknown keys are rejected so typos do not silently fall back to defaults.
    """
    p = Path(path)
    raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise SettingsError("settings file must be a mapping")

    known = {"tie_break", "unresolved_references"}
    unknown = sorted(str(k) for k in raw.keys() if k not in known)
    if unknown:
        raise SettingsError(f"unknown settings: {', '.join(unknown)}")
    return dict(raw)


def _env_overrides() -> dict[str, Any]:
    out: dict[str, Any] = {}
    tie_break = (os.getenv(ENV_TIE_BREAK, "") or "").strip()
    if tie_break:
        out["tie_break"] = tie_break
    unresolved = (os.getenv(ENV_UNRESOLVED, "") or "").strip()
    if unresolved:
        out["unresolved_references"] = unresolved
    return out


def _apply(base: EngineSettings, overrides: dict[str, Any]) -> EngineSettings:
    tie_break = overrides.get("tie_break", base.tie_break)
    if tie_break not in ALLOWED_TIE_BREAKS:
        raise SettingsError(
            f"tie_break must be one of {sorted(ALLOWED_TIE_BREAKS)}, got {tie_break!r}"
        )
    unresolved = overrides.get("unresolved_references", base.unresolved_references)
    if unresolved not in ALLOWED_UNRESOLVED:
        raise SettingsError(
            f"unresolved_references must be one of {sorted(ALLOWED_UNRESOLVED)}, got {unresolved!r}"
        )
    return replace(base, tie_break=tie_break, unresolved_references=unresolved)


def resolve_settings(settings_file: Optional[str] = None) -> EngineSettings:
    """Return engine settings.

    Resolution order:
      1) defaults
      2) settings_file (YAML), when given
      3) WORKGRAPH_TIE_BREAK / WORKGRAPH_UNRESOLVED_REFERENCES
    """
    settings = DEFAULT_SETTINGS
    if settings_file:
        settings = _apply(settings, load_settings_file(settings_file))
    return _apply(settings, _env_overrides())
