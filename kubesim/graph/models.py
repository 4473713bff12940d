"""Data structures for the owner relationship graph."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class GraphEdge:
    """An owner edge: *parent* controls *child* (both are uids)."""

    parent: str
    child: str


@dataclass
class TraversalResult:
    """Result of a breadth-first walk from one resource."""

    uids: list[str] = field(default_factory=list)
    depth_reached: int = 0
    truncated: bool = False  # True if max_depth hit before exhausting graph
