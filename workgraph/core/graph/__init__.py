"""Dependency graph engine.

Pure functions over a snapshot of work items: build the graph, guard a
candidate edge, enumerate cycles, and compute the critical path. Nothing
here performs I/O or keeps state between calls.
"""

from workgraph.core.graph.build_graph import build_graph, unresolved_references
from workgraph.core.graph.critical_path import critical_path
from workgraph.core.graph.cycle_guard import would_create_cycle
from workgraph.core.graph.find_cycles import find_cycles, find_cycles_in_adjacency, format_cycle

__all__ = [
    "build_graph",
    "critical_path",
    "find_cycles",
    "find_cycles_in_adjacency",
    "format_cycle",
    "unresolved_references",
    "would_create_cycle",
]
