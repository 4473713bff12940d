"""Cluster store: resources, indices, owner relationships and quota.

Exports:
    ClusterStore          -- In-memory source of truth for simulated state.
    QueryFilter           -- Declarative filter accepted by ``ClusterStore.query``.
    parse_selector        -- ``"app=web,tier=db"`` to a label mapping.
    InvalidResourceError  -- A non-Resource handed to the store.
    ResourceConflictError -- Duplicate (kind, namespace, name).
"""

from __future__ import annotations

from kubesim.store.cluster_store import (
    DEFAULT_NAMESPACES,
    ClusterStore,
    InvalidResourceError,
    ResourceConflictError,
)
from kubesim.store.query import QueryFilter, parse_selector

__all__ = [
    "DEFAULT_NAMESPACES",
    "ClusterStore",
    "InvalidResourceError",
    "QueryFilter",
    "ResourceConflictError",
    "parse_selector",
]
