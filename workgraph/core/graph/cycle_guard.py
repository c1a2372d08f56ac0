from __future__ import annotations

import logging
from collections import defaultdict, deque
from typing import Iterable, Union

from workgraph.core.model import DependencyEdge

logger = logging.getLogger(__name__)

EdgeLike = Union[DependencyEdge, tuple[str, str]]


def _pair(e: EdgeLike) -> tuple[str, str]:
    if isinstance(e, DependencyEdge):
        return e.from_id, e.to_id
    return e[0], e[1]


def would_create_cycle(from_id: str, to_id: str, edges: Iterable[EdgeLike]) -> bool:
    """Would adding `from_id` depends-on `to_id` close a loop?

    True iff `from_id` is reachable from `to_id` over the existing edges
    (the candidate edge is not inserted). Breadth-first, O(V+E), pure.

    Self-dependencies are not special-cased: callers reject them before
    asking.
    """
    adjacency: dict[str, list[str]] = defaultdict(list)
    for e in edges:
        src, dst = _pair(e)
        adjacency[src].append(dst)

    q: deque[str] = deque([to_id])
    seen: set[str] = set()
    while q:
        cur = q.popleft()
        if cur == from_id:
            logger.debug("edge %s -> %s would close a cycle", from_id, to_id)
            return True
        if cur in seen:
            continue
        seen.add(cur)
        for nxt in adjacency.get(cur, []):
            if nxt not in seen:
                q.append(nxt)
    return False
