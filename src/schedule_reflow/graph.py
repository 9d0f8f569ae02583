"""Layer 2: DependencyGraph, precedence between work orders.

Edges run parent -> child: a child may not start until every parent has
finished. The graph answers cycle queries, a deterministic processing order,
and parent/child/readiness lookups.
"""

from __future__ import annotations

import heapq
import logging
from dataclasses import dataclass
from typing import Iterable

from schedule_reflow.types import (
    CycleError,
    DuplicateWorkOrderError,
    UnknownDependencyError,
    UnknownWorkOrderError,
    WorkOrder,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SortedOrder:
    """Topological order: every work order after all of its parents."""

    work_orders: tuple[WorkOrder, ...]


@dataclass(frozen=True)
class CyclicOrder:
    """No order exists. cycle is the id path of one loop (may be empty)."""

    cycle: tuple[str, ...]

    def describe(self) -> str:
        if not self.cycle:
            return "Circular dependency detected"
        path = " -> ".join(self.cycle + self.cycle[:1])
        return f"Circular dependency detected: {path}"


class DependencyGraph:
    """Directed graph over one batch of work orders.

    Construction raises UnknownDependencyError when a work order depends on
    an id outside the batch, and DuplicateWorkOrderError on repeated ids.
    """

    def __init__(self, work_orders: Iterable[WorkOrder]) -> None:
        self._nodes: dict[str, WorkOrder] = {}
        self._position: dict[str, int] = {}
        self._parents: dict[str, list[str]] = {}
        self._children: dict[str, list[str]] = {}
        self._in_degree: dict[str, int] = {}

        for wo in work_orders:
            if wo.id in self._nodes:
                raise DuplicateWorkOrderError(wo.id)
            self._position[wo.id] = len(self._nodes)
            self._nodes[wo.id] = wo
            self._children[wo.id] = []

        for wo in self._nodes.values():
            # A parent listed twice is still one edge
            parent_ids = list(dict.fromkeys(wo.depends_on))
            for parent_id in parent_ids:
                if parent_id not in self._nodes:
                    raise UnknownDependencyError(wo.id, parent_id)
                self._children[parent_id].append(wo.id)
            self._parents[wo.id] = parent_ids
            self._in_degree[wo.id] = len(parent_ids)

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, work_order_id: object) -> bool:
        return work_order_id in self._nodes

    # ------------------------------------------------------------------
    # Cycle detection
    # ------------------------------------------------------------------

    def get_cycle(self) -> list[str] | None:
        """Return one cycle as an id path, or None if the graph is acyclic.

        Depth-first search with an explicit stack. When an edge reaches a
        node that is still on the current path, the path slice from that
        node to the current one is the cycle: each consecutive pair is an
        edge and the first node is the last node's child.
        """
        visited: set[str] = set()

        for root in self._nodes:
            if root in visited:
                continue

            path = [root]
            on_path = {root}
            visited.add(root)
            pending = [iter(self._children[root])]

            while pending:
                child = next(pending[-1], None)
                if child is None:
                    pending.pop()
                    on_path.discard(path.pop())
                    continue
                if child in on_path:
                    return path[path.index(child):]
                if child not in visited:
                    visited.add(child)
                    path.append(child)
                    on_path.add(child)
                    pending.append(iter(self._children[child]))

        return None

    def has_cycles(self) -> bool:
        return self.get_cycle() is not None

    # ------------------------------------------------------------------
    # Ordering
    # ------------------------------------------------------------------

    def resolve_order(self) -> SortedOrder | CyclicOrder:
        """Kahn's algorithm, returning the order or the cycle that blocks it.

        Ready nodes are released by (planned start, input position), so the
        order is deterministic and chronological where precedence allows.
        """
        cycle = self.get_cycle()
        if cycle is not None:
            logger.warning("Dependency cycle: %s", " -> ".join(cycle))
            return CyclicOrder(tuple(cycle))

        in_degree = dict(self._in_degree)
        ready: list[tuple] = []
        for node_id, degree in in_degree.items():
            if degree == 0:
                heapq.heappush(ready, self._ready_key(node_id))

        result: list[WorkOrder] = []
        while ready:
            *_, node_id = heapq.heappop(ready)
            result.append(self._nodes[node_id])
            for child_id in self._children[node_id]:
                in_degree[child_id] -= 1
                if in_degree[child_id] == 0:
                    heapq.heappush(ready, self._ready_key(child_id))

        if len(result) != len(self._nodes):
            return CyclicOrder(())
        return SortedOrder(tuple(result))

    def _ready_key(self, node_id: str) -> tuple:
        return (self._nodes[node_id].start_date, self._position[node_id], node_id)

    def topological_sort(self) -> list[WorkOrder]:
        """Work orders with every parent before its children.

        Raises CycleError if the dependencies are circular.
        """
        match self.resolve_order():
            case SortedOrder(work_orders=work_orders):
                return list(work_orders)
            case CyclicOrder(cycle=cycle):
                raise CycleError(cycle)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _require(self, work_order_id: str) -> WorkOrder:
        try:
            return self._nodes[work_order_id]
        except KeyError:
            raise UnknownWorkOrderError(work_order_id) from None

    def get_parents(self, work_order_id: str) -> list[WorkOrder]:
        self._require(work_order_id)
        return [self._nodes[pid] for pid in self._parents[work_order_id]]

    def get_children(self, work_order_id: str) -> list[WorkOrder]:
        self._require(work_order_id)
        return [self._nodes[cid] for cid in self._children[work_order_id]]

    def can_start(self, work_order_id: str, completed_ids: set[str]) -> bool:
        """True iff every parent is in completed_ids."""
        self._require(work_order_id)
        return all(pid in completed_ids for pid in self._parents[work_order_id])
