"""Bidirectional owner/child adjacency.

Both directions are updated together, so ``child in children(parent)``
holds exactly when ``parent in parents(child)``. Buckets are dicts used as
insertion-ordered sets, which keeps traversal order deterministic.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterator

from kubesim.graph.models import GraphEdge, TraversalResult


class OwnerGraph:
    def __init__(self) -> None:
        self._children: dict[str, dict[str, None]] = {}
        self._parents: dict[str, dict[str, None]] = {}

    @property
    def edge_count(self) -> int:
        return sum(len(bucket) for bucket in self._children.values())

    def add_edge(self, parent: str, child: str) -> None:
        self._children.setdefault(parent, {})[child] = None
        self._parents.setdefault(child, {})[parent] = None

    def remove_edge(self, parent: str, child: str) -> None:
        _discard(self._children, parent, child)
        _discard(self._parents, child, parent)

    def remove_node(self, uid: str) -> None:
        """Drop every edge touching *uid*, in both directions."""
        for child in list(self._children.get(uid, ())):
            self.remove_edge(uid, child)
        for parent in list(self._parents.get(uid, ())):
            self.remove_edge(parent, uid)

    def children(self, uid: str) -> list[str]:
        return list(self._children.get(uid, ()))

    def parents(self, uid: str) -> list[str]:
        return list(self._parents.get(uid, ()))

    def has_edge(self, parent: str, child: str) -> bool:
        return child in self._children.get(parent, ())

    def descendants(self, uid: str, max_depth: int | None = None) -> TraversalResult:
        """Breadth-first walk below *uid*; the start node is not included."""
        result = TraversalResult()
        seen = {uid}
        queue: deque[tuple[str, int]] = deque([(uid, 0)])
        while queue:
            current, depth = queue.popleft()
            for child in self._children.get(current, ()):
                if child in seen:
                    continue
                if max_depth is not None and depth >= max_depth:
                    result.truncated = True
                    continue
                seen.add(child)
                result.uids.append(child)
                result.depth_reached = max(result.depth_reached, depth + 1)
                queue.append((child, depth + 1))
        return result

    def edges(self) -> Iterator[GraphEdge]:
        for parent, bucket in self._children.items():
            for child in bucket:
                yield GraphEdge(parent=parent, child=child)

    def clear(self) -> None:
        self._children.clear()
        self._parents.clear()


def _discard(table: dict[str, dict[str, None]], key: str, member: str) -> None:
    bucket = table.get(key)
    if bucket is None:
        return
    bucket.pop(member, None)
    if not bucket:
        del table[key]
