"""Resource query filter used by ``ClusterStore.query``."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from kubesim.models.resources import Kind, Resource


@dataclass
class QueryFilter:
    """All criteria are ANDed; ``None`` leaves a criterion unconstrained.

    ``field_selector`` maps dotted camelCase paths (``spec.nodeName``) to
    expected values, compared as strings. ``sort_by`` takes the same kind of
    path.
    """

    kind: Kind | str | None = None
    namespace: str | None = None
    selector: Mapping[str, str] | None = None
    field_selector: Mapping[str, str] | None = None
    phase: str | None = None
    name_contains: str | None = None
    sort_by: str | None = None
    descending: bool = False
    limit: int | None = None

    def matches(self, resource: Resource) -> bool:
        if self.kind is not None and resource.kind != self.kind:
            return False
        if self.namespace is not None and resource.namespace != self.namespace:
            return False
        if not resource.matches_selector(self.selector):
            return False
        if self.phase is not None and resource.status.phase != self.phase:
            return False
        if self.name_contains and self.name_contains not in resource.name:
            return False
        if self.field_selector:
            for path, expected in self.field_selector.items():
                if _as_text(resource.field_value(path)) != str(expected):
                    return False
        return True

    def apply(self, candidates: Iterable[Resource]) -> list[Resource]:
        results = [r for r in candidates if self.matches(r)]
        if self.sort_by:
            path = self.sort_by
            results.sort(key=lambda r: _sort_key(r.field_value(path)), reverse=self.descending)
        if self.limit is not None and self.limit >= 0:
            results = results[: self.limit]
        return results


def parse_selector(text: str | None) -> dict[str, str]:
    """Parse ``"app=web,tier=frontend"`` into a selector mapping."""
    selector: dict[str, str] = {}
    if not text:
        return selector
    for term in text.split(","):
        term = term.strip()
        if not term:
            continue
        key, sep, value = term.partition("=")
        if not sep or not key.strip():
            raise ValueError(f"Invalid selector term: {term!r}")
        selector[key.strip()] = value.strip().lstrip("=")
    return selector


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _sort_key(value: Any) -> tuple[int, Any]:
    if value is None:
        return (2, "")
    if isinstance(value, int | float) and not isinstance(value, bool):
        return (0, value)
    return (1, str(value))
