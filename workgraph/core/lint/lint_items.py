from __future__ import annotations

from collections import Counter
from typing import Any, Optional

from workgraph.core.errors import GraphValidationError
from workgraph.core.graph.find_cycles import find_cycles_in_adjacency, format_cycle


# Lint rules report what the graph engine tolerates silently:
# - L_DUPLICATE_ID: duplicate item IDs
# - L_SELF_DEPENDENCY: item lists itself in depends_on
# - L_DUPLICATE_DEPENDENCY: the same id appears twice in one depends_on
# - L_UNRESOLVED_REFERENCE: depends_on id not present in the file
# - L_CROSS_SCOPE_DEPENDENCY: depends_on id belongs to a different scope
# - L_CYCLE_DETECTED: dependency cycle exists within a scope


def lint_items(doc: dict[str, Any]) -> list[GraphValidationError]:
    """Lint a work-item document.

    Lint runs *in addition to* schema validation. It is allowed to operate on
    partially-invalid inputs (best effort).
    """

    file = _cast_optional_str(doc.get("__file__"))

    items = doc.get("items")
    if not isinstance(items, list):
        # Let validator handle shape.
        return []

    default_scope = _cast_optional_str(doc.get("scope"))

    id_to_index: dict[str, int] = {}
    id_to_raw: dict[str, dict[str, Any]] = {}
    ids: list[str] = []

    for i, raw in enumerate(items):
        if not isinstance(raw, dict):
            continue
        iid = raw.get("id")
        if not isinstance(iid, str):
            continue
        ids.append(iid)
        id_to_index.setdefault(iid, i)
        id_to_raw.setdefault(iid, raw)

    errors: list[GraphValidationError] = []

    # Rule: duplicate IDs
    counts = Counter(ids)
    dupes = {k: v for k, v in counts.items() if v > 1}
    if dupes:
        seen: set[str] = set()
        for i, raw in enumerate(items):
            if not isinstance(raw, dict):
                continue
            iid = raw.get("id")
            if not isinstance(iid, str) or iid not in dupes:
                continue
            if iid not in seen:
                seen.add(iid)
                continue
            errors.append(
                GraphValidationError(
                    code="L_DUPLICATE_ID",
                    message=f"duplicate item id: {iid} (count={dupes[iid]})",
                    file=file,
                    path=f"items[{i}].id",
                )
            )

    id_to_scope: dict[str, Optional[str]] = {}
    for iid, raw in id_to_raw.items():
        scope = raw.get("scope", default_scope)
        id_to_scope[iid] = scope if isinstance(scope, str) else None

    # Same-scope, resolved, non-self edges feed cycle detection.
    adjacency: dict[str, list[str]] = {iid: [] for iid in id_to_raw}

    for iid, raw in id_to_raw.items():
        deps_raw = raw.get("depends_on")
        if not isinstance(deps_raw, list):
            continue
        base = f"items[{id_to_index[iid]}].depends_on"
        listed: set[str] = set()
        for di, dep in enumerate(deps_raw):
            if not isinstance(dep, str):
                continue
            path = f"{base}[{di}]"
            if dep in listed:
                errors.append(
                    GraphValidationError(
                        code="L_DUPLICATE_DEPENDENCY",
                        message=f"dependency listed more than once: {dep}",
                        file=file,
                        path=path,
                    )
                )
                continue
            listed.add(dep)

            if dep == iid:
                errors.append(
                    GraphValidationError(
                        code="L_SELF_DEPENDENCY",
                        message="item depends on itself",
                        file=file,
                        path=path,
                    )
                )
            elif dep not in id_to_raw:
                errors.append(
                    GraphValidationError(
                        code="L_UNRESOLVED_REFERENCE",
                        message=f"depends_on references unknown id: {dep} (dropped from the graph)",
                        file=file,
                        path=path,
                    )
                )
            elif id_to_scope[dep] != id_to_scope[iid]:
                errors.append(
                    GraphValidationError(
                        code="L_CROSS_SCOPE_DEPENDENCY",
                        message=(
                            f"depends_on references {dep} in scope {id_to_scope[dep]!r}, "
                            f"item is in scope {id_to_scope[iid]!r}"
                        ),
                        file=file,
                        path=path,
                    )
                )
            else:
                adjacency[iid].append(dep)

    # Rule: cycle detection
    for cycle in find_cycles_in_adjacency(adjacency):
        errors.append(
            GraphValidationError(
                code="L_CYCLE_DETECTED",
                message="dependency cycle detected: " + format_cycle(cycle),
                file=file,
                path=f"items[{id_to_index.get(cycle[-1], 0)}].depends_on",
            )
        )

    return _sorted(errors)


def _sorted(errors: list[GraphValidationError]) -> list[GraphValidationError]:
    return sorted(errors, key=lambda e: (e.file or "", e.path or "", e.code))


def _cast_optional_str(v: Any) -> Optional[str]:
    return v if isinstance(v, str) else None
