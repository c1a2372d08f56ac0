from __future__ import annotations

from collections import Counter, defaultdict
from typing import Any, Iterable, Optional, cast

from workgraph.core.errors import GraphValidationError
from workgraph.core.graph.build_graph import unresolved_references as _dangling
from workgraph.core.model import SizeEstimate, WorkItemRecord, WorkItemStatus, WorkItemType
from workgraph.core.settings import UnresolvedPolicy


ALLOWED_TYPES: set[str] = {"epic", "feature", "story"}
ALLOWED_SIZES: set[str] = {"XS", "S", "M", "L", "XL"}
ALLOWED_STATUSES: set[str] = {"draft", "ready_for_review", "approved", "exported"}


def _is_list_of_str(v: Any) -> bool:
    return isinstance(v, list) and all(isinstance(x, str) for x in v)


def validate_items(
    doc: dict[str, Any],
    *,
    unresolved_references: UnresolvedPolicy = "drop",
) -> tuple[Optional[list[WorkItemRecord]], list[GraphValidationError]]:
    """Validate a work-item document.

    Returns (records, errors). Records is None when errors exist.

    Dependency ids that point outside the document are allowed by default
    (the graph builder drops them); with unresolved_references="error" they
    are reported as E_UNRESOLVED_REFERENCE.
    """

    file = cast(Optional[str], doc.get("__file__"))
    errors: list[GraphValidationError] = []

    if "schema_version" in doc:
        sv = doc["schema_version"]
        if not isinstance(sv, str) or not sv.strip():
            errors.append(
                GraphValidationError(
                    code="E_INVALID_TYPE",
                    message="schema_version must be a non-empty string when present",
                    file=file,
                    path="schema_version",
                )
            )

    default_scope = doc.get("scope")
    if default_scope is not None and not isinstance(default_scope, str):
        errors.append(
            GraphValidationError(
                code="E_INVALID_TYPE",
                message="scope must be a string",
                file=file,
                path="scope",
            )
        )
        default_scope = None

    items = doc.get("items")
    if not isinstance(items, list):
        errors.append(
            GraphValidationError(
                code="E_REQUIRED_FIELD",
                message="items is required and must be an array",
                file=file,
                path="items",
            )
        )
        return None, _sorted(errors)

    records: list[WorkItemRecord] = []
    record_index: dict[str, int] = {}
    seen_ids: set[str] = set()

    for i, raw in enumerate(items):
        item_path = f"items[{i}]"
        if not isinstance(raw, dict):
            errors.append(
                GraphValidationError(
                    code="E_INVALID_TYPE",
                    message="item must be an object",
                    file=file,
                    path=item_path,
                )
            )
            continue

        iid = raw.get("id")
        if not isinstance(iid, str) or not iid.strip():
            errors.append(
                GraphValidationError(
                    code="E_REQUIRED_FIELD",
                    message="id is required and must be a non-empty string",
                    file=file,
                    path=f"{item_path}.id",
                )
            )
            continue

        if iid in seen_ids:
            errors.append(
                GraphValidationError(
                    code="E_DUPLICATE_ID",
                    message=f"duplicate item id: {iid}",
                    file=file,
                    path=f"{item_path}.id",
                )
            )
            continue
        seen_ids.add(iid)

        title = raw.get("title")
        if not isinstance(title, str) or not title.strip():
            errors.append(
                GraphValidationError(
                    code="E_REQUIRED_FIELD",
                    message="title is required and must be a non-empty string",
                    file=file,
                    path=f"{item_path}.title",
                )
            )
            continue

        itype = raw.get("type")
        if not isinstance(itype, str) or itype not in ALLOWED_TYPES:
            errors.append(
                GraphValidationError(
                    code="E_INVALID_ENUM",
                    message=f"type must be one of {sorted(ALLOWED_TYPES)}",
                    file=file,
                    path=f"{item_path}.type",
                )
            )
            continue

        deps = raw.get("depends_on", [])
        if deps is None:
            deps = []
        if not _is_list_of_str(deps):
            errors.append(
                GraphValidationError(
                    code="E_INVALID_TYPE",
                    message="depends_on must be an array of strings",
                    file=file,
                    path=f"{item_path}.depends_on",
                )
            )
            continue

        size = raw.get("size_estimate")
        if size is not None and (not isinstance(size, str) or size not in ALLOWED_SIZES):
            errors.append(
                GraphValidationError(
                    code="E_INVALID_ENUM",
                    message=f"size_estimate must be one of {sorted(ALLOWED_SIZES)} or null",
                    file=file,
                    path=f"{item_path}.size_estimate",
                )
            )

        status = raw.get("status", "draft")
        if not isinstance(status, str) or status not in ALLOWED_STATUSES:
            errors.append(
                GraphValidationError(
                    code="E_INVALID_ENUM",
                    message=f"status must be one of {sorted(ALLOWED_STATUSES)}",
                    file=file,
                    path=f"{item_path}.status",
                )
            )

        scope = raw.get("scope", default_scope)
        if scope is not None and not isinstance(scope, str):
            errors.append(
                GraphValidationError(
                    code="E_INVALID_TYPE",
                    message="scope must be a string",
                    file=file,
                    path=f"{item_path}.scope",
                )
            )

        record_index[iid] = i
        records.append(
            WorkItemRecord(
                id=iid,
                title=title,
                type=cast(WorkItemType, itype),
                depends_on=list(cast(list[str], deps)),
                size_estimate=cast(Optional[SizeEstimate], size),
                status=cast(WorkItemStatus, status),
                scope=cast(Optional[str], scope),
            )
        )

    if unresolved_references == "error":
        # References resolve inside the item's own scope, as in the graph builder.
        by_scope: dict[Optional[str], list[WorkItemRecord]] = defaultdict(list)
        for r in records:
            by_scope[r.scope].append(r)
        for scope, scoped in by_scope.items():
            dangling = set(_dangling(scoped))
            for r in scoped:
                for di, dep in enumerate(r.depends_on):
                    if (r.id, dep) not in dangling:
                        continue
                    where = f"scope {scope}" if scope is not None else "the unscoped items"
                    errors.append(
                        GraphValidationError(
                            code="E_UNRESOLVED_REFERENCE",
                            message=f"depends_on references an id not found in {where}: {dep}",
                            file=file,
                            path=f"items[{record_index[r.id]}].depends_on[{di}]",
                        )
                    )

    if errors:
        return None, _sorted(errors)
    return records, []


def summarize_items(records: list[WorkItemRecord]) -> str:
    counts = Counter([r.type for r in records])
    parts = [f"{t}={counts.get(t, 0)}" for t in ("epic", "feature", "story")]
    scopes = sorted({r.scope for r in records if r.scope is not None})
    dep_count = sum(len(r.depends_on) for r in records)
    return (
        f"OK: {len(records)} items ("
        + ", ".join(parts)
        + f"), {dep_count} dependency references"
        + "\nScopes: "
        + (", ".join(scopes) if scopes else "<none>")
    )


def _sorted(errors: Iterable[GraphValidationError]) -> list[GraphValidationError]:
    return sorted(
        list(errors),
        key=lambda e: (
            e.file or "",
            e.path or "",
            e.code,
        ),
    )
