from __future__ import annotations

import logging
from typing import Iterator

from workgraph.core.model import DependencyGraph

logger = logging.getLogger(__name__)

WHITE, GRAY, BLACK = 0, 1, 2


def find_cycles(graph: DependencyGraph) -> list[list[str]]:
    """Enumerate the cycles a depth-first traversal runs into.

    Every unvisited node (in node order) starts a DFS over the depends-on
    adjacency. An edge back to a node on the active path yields the path
    slice from that node through the current one; the closing edge runs
    from the last id back to the first. Disjoint cycles are all reported.
    Cycles sharing nodes are reported only as the traversal meets them.

    Iterative, so path depth is not bounded by the recursion limit.
    """
    return find_cycles_in_adjacency(graph.adjacency())


def find_cycles_in_adjacency(adjacency: dict[str, list[str]]) -> list[list[str]]:
    """Same traversal over a plain depends-on adjacency; targets outside its keys are skipped."""
    state: dict[str, int] = {nid: WHITE for nid in adjacency}
    cycles: list[list[str]] = []

    for start in adjacency:
        if state[start] != WHITE:
            continue

        path: list[str] = [start]
        on_path: dict[str, int] = {start: 0}
        frames: list[tuple[str, Iterator[str]]] = [(start, iter(adjacency[start]))]
        state[start] = GRAY

        while frames:
            u, neighbors = frames[-1]
            descended = False
            for v in neighbors:
                if v not in state:
                    continue
                if state[v] == GRAY:
                    # cycle: v ... u -> v
                    cycles.append(path[on_path[v] :])
                elif state[v] == WHITE:
                    state[v] = GRAY
                    on_path[v] = len(path)
                    path.append(v)
                    frames.append((v, iter(adjacency[v])))
                    descended = True
                    break
            if descended:
                continue
            frames.pop()
            path.pop()
            del on_path[u]
            state[u] = BLACK

    logger.debug("found %d cycles across %d nodes", len(cycles), len(adjacency))
    return cycles


def format_cycle(cycle: list[str]) -> str:
    return " -> ".join(cycle + cycle[:1])
