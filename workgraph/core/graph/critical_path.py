from __future__ import annotations

import logging
from collections import deque
from typing import Iterable, Optional, Union

from workgraph.core.model import DependencyEdge, WorkItemNode
from workgraph.core.settings import TieBreak

logger = logging.getLogger(__name__)


def _node_id(n: Union[WorkItemNode, str]) -> str:
    return n.id if isinstance(n, WorkItemNode) else n


def critical_path(
    nodes: Iterable[Union[WorkItemNode, str]],
    edges: Iterable[DependencyEdge],
    *,
    tie_break: TieBreak = "lexicographic",
) -> tuple[list[str], list[DependencyEdge]]:
    """Longest dependency chain through an acyclic graph.

    Returns (path, annotated_edges). The path runs source to sink: each id
    blocks the next one. annotated_edges is a copy of `edges` with
    is_critical set on the edges the path uses; the input is not modified.

    An empty path means either no dependencies at all or a cyclic input.
    Cyclic input is detected by a short topological order, not raised.
    """
    edge_list = list(edges)
    unmarked = [e.marked(False) for e in edge_list]

    ids = list(dict.fromkeys(_node_id(n) for n in nodes))
    if not ids:
        return [], unmarked

    # Scheduling direction: if A depends on B, B blocks A, so B -> A.
    blocks: dict[str, list[str]] = {nid: [] for nid in ids}
    in_degree: dict[str, int] = {nid: 0 for nid in ids}
    for e in edge_list:
        if e.from_id not in blocks or e.to_id not in blocks:
            continue
        blocks[e.to_id].append(e.from_id)
        in_degree[e.from_id] += 1

    # Kahn's algorithm.
    q: deque[str] = deque(nid for nid in ids if in_degree[nid] == 0)
    order: list[str] = []
    while q:
        cur = q.popleft()
        order.append(cur)
        for nxt in blocks[cur]:
            in_degree[nxt] -= 1
            if in_degree[nxt] == 0:
                q.append(nxt)

    if len(order) < len(ids):
        logger.debug(
            "graph is cyclic: topological order covers %d of %d nodes", len(order), len(ids)
        )
        return [], unmarked

    distance: dict[str, int] = {nid: 0 for nid in order}
    predecessor: dict[str, Optional[str]] = {nid: None for nid in order}
    for u in order:
        for v in blocks[u]:
            if distance[u] + 1 > distance[v]:
                distance[v] = distance[u] + 1
                predecessor[v] = u

    longest = max(distance.values())
    if longest == 0:
        # No dependency edges; a lone item is not critical.
        return [], unmarked

    candidates = [nid for nid in ids if distance[nid] == longest]
    end = min(candidates) if tie_break == "lexicographic" else candidates[0]

    path: list[str] = []
    cur: Optional[str] = end
    while cur is not None:
        path.append(cur)
        cur = predecessor[cur]
    path.reverse()

    # path[i] blocks path[i + 1], i.e. edge (path[i + 1], path[i]).
    on_path = {(path[i + 1], path[i]) for i in range(len(path) - 1)}
    annotated = [e.marked((e.from_id, e.to_id) in on_path) for e in edge_list]

    logger.debug("critical path of %d nodes ends at %s", len(path), end)
    return path, annotated
