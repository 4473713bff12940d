"""Owner relationship graph for cross-resource traversal.

Built from ``ownerReferences``; the cluster store keeps it in sync on every
add, commit and removal.
"""

from kubesim.graph.models import GraphEdge, TraversalResult
from kubesim.graph.owner_graph import OwnerGraph

__all__ = [
    "GraphEdge",
    "OwnerGraph",
    "TraversalResult",
]
