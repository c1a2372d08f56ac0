from __future__ import annotations

import logging
from typing import Iterable

from workgraph.core.model import DependencyEdge, DependencyGraph, WorkItemNode, WorkItemRecord

logger = logging.getLogger(__name__)


def build_graph(items: Iterable[WorkItemRecord]) -> DependencyGraph:
    """Assemble a dependency graph from a flat, scoped list of work items.

    One node per item; one edge (item.id, dep) per depends_on reference whose
    target is also in `items`. References to ids outside the list are dropped
    without error. If an id repeats, the first record wins.
    """
    records = list(items)

    nodes_by_id: dict[str, WorkItemNode] = {}
    for r in records:
        if r.id in nodes_by_id:
            continue
        nodes_by_id[r.id] = WorkItemNode(
            id=r.id,
            title=r.title,
            type=r.type,
            size_estimate=r.size_estimate,
            status=r.status,
        )

    edges: list[DependencyEdge] = []
    dropped = 0
    seen: set[str] = set()
    for r in records:
        if r.id in seen:
            continue
        seen.add(r.id)
        for dep in r.depends_on:
            if dep in nodes_by_id:
                edges.append(DependencyEdge(from_id=r.id, to_id=dep))
            else:
                dropped += 1

    logger.debug(
        "built graph: %d nodes, %d edges, %d unresolved references dropped",
        len(nodes_by_id),
        len(edges),
        dropped,
    )
    return DependencyGraph(nodes_by_id=nodes_by_id, edges=edges)


def unresolved_references(items: Iterable[WorkItemRecord]) -> list[tuple[str, str]]:
    """(item_id, dep_id) pairs that build_graph would drop."""
    records = list(items)
    ids = {r.id for r in records}
    return [(r.id, dep) for r in records for dep in r.depends_on if dep not in ids]
