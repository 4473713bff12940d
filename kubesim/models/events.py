"""Resource event-log models."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class EventType(StrEnum):
    """Severity of an entry in a resource's own event log."""

    NORMAL = "Normal"
    WARNING = "Warning"


class ChangeType(StrEnum):
    """Kind of mutation carried by a resource change notification."""

    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"


@dataclass
class ResourceEvent:
    """One entry in a resource's event log.

    Repeats of the same (reason, message) pair bump ``count`` and
    ``last_timestamp`` instead of appending a new entry.
    """

    type: EventType
    reason: str
    message: str
    first_timestamp: float
    last_timestamp: float
    count: int = 1

    def to_dict(self) -> dict[str, object]:
        return {
            "type": self.type.value,
            "reason": self.reason,
            "message": self.message,
            "firstTimestamp": self.first_timestamp,
            "lastTimestamp": self.last_timestamp,
            "count": self.count,
        }
