from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Literal, Optional


WorkItemType = Literal["epic", "feature", "story"]
SizeEstimate = Literal["XS", "S", "M", "L", "XL"]
WorkItemStatus = Literal["draft", "ready_for_review", "approved", "exported"]


@dataclass(frozen=True)
class WorkItemRecord:
    id: str
    title: str
    type: WorkItemType
    depends_on: list[str]

    size_estimate: Optional[SizeEstimate] = None
    status: WorkItemStatus = "draft"
    scope: Optional[str] = None


@dataclass(frozen=True)
class WorkItemNode:
    id: str
    title: str
    type: WorkItemType
    size_estimate: Optional[SizeEstimate]
    status: WorkItemStatus

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "type": self.type,
            "size_estimate": self.size_estimate,
            "status": self.status,
        }


@dataclass(frozen=True)
class DependencyEdge:
    """`from_id` depends on `to_id`: `to_id` must complete before `from_id` can start."""

    from_id: str
    to_id: str
    is_critical: bool = False

    def marked(self, is_critical: bool) -> DependencyEdge:
        return replace(self, is_critical=is_critical)

    def to_dict(self) -> dict[str, Any]:
        return {"from": self.from_id, "to": self.to_id, "is_critical": self.is_critical}


@dataclass(frozen=True)
class DependencyGraph:
    nodes_by_id: dict[str, WorkItemNode]
    edges: list[DependencyEdge]  # item order, then depends_on order

    @property
    def nodes(self) -> list[WorkItemNode]:
        return list(self.nodes_by_id.values())

    def adjacency(self) -> dict[str, list[str]]:
        """Depends-on adjacency: node id -> ids it depends on."""
        adj: dict[str, list[str]] = {nid: [] for nid in self.nodes_by_id}
        for e in self.edges:
            adj[e.from_id].append(e.to_id)
        return adj


@dataclass(frozen=True)
class GraphView:
    scope: Optional[str]
    nodes: list[WorkItemNode]
    edges: list[DependencyEdge]
    critical_path: list[str]
    cycles: list[list[str]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "scope": self.scope,
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
            "critical_path": list(self.critical_path),
            "cycles": [list(c) for c in self.cycles],
        }
