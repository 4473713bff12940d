"""Notification bus for the simulation kernel.

Exports:
    EventBus     -- Typed publish/subscribe with per-handler fault isolation.
    Publication  -- History entry recorded for every publish.
    Topic        -- Enumerated notification topics.
    TOPIC_PAYLOADS -- Payload dataclass expected on each topic.
"""

from __future__ import annotations

from kubesim.notifications.bus import EventBus, Publication
from kubesim.notifications.topics import TOPIC_PAYLOADS, Topic

__all__ = [
    "TOPIC_PAYLOADS",
    "EventBus",
    "Publication",
    "Topic",
]
