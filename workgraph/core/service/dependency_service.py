from __future__ import annotations

import logging
import threading
import weakref
from dataclasses import replace
from typing import Iterable, Optional, Protocol

from workgraph.core.errors import DependencyRejected
from workgraph.core.graph.build_graph import build_graph
from workgraph.core.graph.critical_path import critical_path
from workgraph.core.graph.cycle_guard import EdgeLike
from workgraph.core.graph.cycle_guard import would_create_cycle as _would_create_cycle
from workgraph.core.graph.find_cycles import find_cycles
from workgraph.core.model import GraphView, WorkItemRecord
from workgraph.core.settings import DEFAULT_SETTINGS, EngineSettings

logger = logging.getLogger(__name__)


class WorkItemRepository(Protocol):
    def get(self, item_id: str) -> Optional[WorkItemRecord]: ...

    def list_scope(self, scope: Optional[str]) -> list[WorkItemRecord]: ...

    def set_depends_on(self, item_id: str, depends_on: list[str]) -> None: ...


class InMemoryWorkItemRepository:
    """Work items held in a dict, in insertion order. First record wins on repeated ids."""

    def __init__(self, records: Iterable[WorkItemRecord] = ()) -> None:
        self._items: dict[str, WorkItemRecord] = {}
        self._lock = threading.Lock()
        for r in records:
            self._items.setdefault(r.id, r)

    def get(self, item_id: str) -> Optional[WorkItemRecord]:
        with self._lock:
            return self._items.get(item_id)

    def list_scope(self, scope: Optional[str]) -> list[WorkItemRecord]:
        with self._lock:
            return [r for r in self._items.values() if r.scope == scope]

    def set_depends_on(self, item_id: str, depends_on: list[str]) -> None:
        with self._lock:
            current = self._items.get(item_id)
            if current is None:
                raise KeyError(item_id)
            self._items[item_id] = replace(current, depends_on=list(depends_on))

    def all(self) -> list[WorkItemRecord]:
        with self._lock:
            return list(self._items.values())


class DependencyService:
    """Graph views and dependency mutations over a work-item repository.

    Mutations within one scope are serialized with a per-scope lock, so the
    cycle check and the write happen against the same snapshot. Graph views
    are rebuilt from the repository on every call.
    """

    def __init__(
        self,
        repository: WorkItemRepository,
        settings: EngineSettings = DEFAULT_SETTINGS,
    ) -> None:
        self.repository = repository
        self.settings = settings
        # A scope lock lives only while some mutation holds it.
        self._scope_locks: weakref.WeakValueDictionary[Optional[str], threading.Lock] = (
            weakref.WeakValueDictionary()
        )
        self._scope_locks_guard = threading.Lock()

    def _lock_for(self, scope: Optional[str]) -> threading.Lock:
        with self._scope_locks_guard:
            lock = self._scope_locks.get(scope)
            if lock is None:
                lock = threading.Lock()
                self._scope_locks[scope] = lock
            return lock

    def get_graph(self, scope: Optional[str]) -> GraphView:
        items = self.repository.list_scope(scope)
        graph = build_graph(items)
        path, edges = critical_path(graph.nodes, graph.edges, tie_break=self.settings.tie_break)
        cycles = find_cycles(graph)
        return GraphView(
            scope=scope,
            nodes=graph.nodes,
            edges=edges,
            critical_path=path,
            cycles=cycles,
        )

    def add_dependency(self, item_id: str, depends_on_id: str) -> None:
        item = self.repository.get(item_id)
        if item is None:
            raise DependencyRejected(
                code="E_ITEM_NOT_FOUND",
                message=f"work item not found: {item_id}",
                path="item_id",
            )
        target = self.repository.get(depends_on_id)
        if target is None:
            raise DependencyRejected(
                code="E_TARGET_NOT_FOUND",
                message=f"dependency target not found: {depends_on_id}",
                path="depends_on_id",
            )
        if item.scope != target.scope:
            raise DependencyRejected(
                code="E_CROSS_SCOPE",
                message=(
                    f"cannot add dependency across scopes: {item_id} is in {item.scope!r}, "
                    f"{depends_on_id} is in {target.scope!r}"
                ),
                path="depends_on_id",
            )
        if item_id == depends_on_id:
            raise DependencyRejected(
                code="E_SELF_DEPENDENCY",
                message=f"cannot add self-dependency: {item_id}",
                path="depends_on_id",
            )

        with self._lock_for(item.scope):
            # Re-read under the lock; another mutation may have landed.
            item = self.repository.get(item_id)
            assert item is not None
            if depends_on_id in item.depends_on:
                raise DependencyRejected(
                    code="E_DUPLICATE_DEPENDENCY",
                    message=f"dependency already exists: {item_id} -> {depends_on_id}",
                    path="depends_on_id",
                )

            graph = build_graph(self.repository.list_scope(item.scope))
            if _would_create_cycle(item_id, depends_on_id, graph.edges):
                logger.info("rejected %s -> %s: would create a cycle", item_id, depends_on_id)
                raise DependencyRejected(
                    code="E_CYCLE_DETECTED",
                    message="adding this dependency would create a circular dependency",
                    path="depends_on_id",
                )

            self.repository.set_depends_on(item_id, [*item.depends_on, depends_on_id])

        logger.info("added dependency %s -> %s (scope=%s)", item_id, depends_on_id, item.scope)

    def remove_dependency(self, item_id: str, depends_on_id: str) -> None:
        item = self.repository.get(item_id)
        if item is None:
            raise DependencyRejected(
                code="E_ITEM_NOT_FOUND",
                message=f"work item not found: {item_id}",
                path="item_id",
            )

        with self._lock_for(item.scope):
            item = self.repository.get(item_id)
            assert item is not None
            if depends_on_id not in item.depends_on:
                raise DependencyRejected(
                    code="E_DEPENDENCY_NOT_FOUND",
                    message=f"dependency does not exist: {item_id} -> {depends_on_id}",
                    path="depends_on_id",
                )
            self.repository.set_depends_on(
                item_id, [d for d in item.depends_on if d != depends_on_id]
            )

        logger.info("removed dependency %s -> %s (scope=%s)", item_id, depends_on_id, item.scope)

    def would_create_cycle(self, from_id: str, to_id: str, edges: Iterable[EdgeLike]) -> bool:
        return _would_create_cycle(from_id, to_id, edges)
