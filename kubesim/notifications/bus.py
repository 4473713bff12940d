"""Typed publish/subscribe bus shared by the store and both engines.

EventBus -- Routes a payload to the subscribers of its ``Topic``; an
            optional qualifier (the resource kind for lifecycle topics)
            reaches per-kind subscribers as well as the generic ones.

* Payload types are checked at publish time against ``TOPIC_PAYLOADS``;
  a mismatch is a programming error and raises ``TypeError``.
* Never raises from a subscriber -- exceptions are caught, logged and
  counted so one faulty observer cannot halt the tick loop.
* Keeps a bounded history of recent publications for late inspection.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import structlog

from kubesim.notifications.topics import TOPIC_PAYLOADS, Topic
from kubesim.observability.metrics import bus_handler_errors_total

_log = structlog.get_logger(component="notifications.bus")

Handler = Callable[[Any], None]

_HISTORY_SIZE = 200


@dataclass(frozen=True)
class Publication:
    """One delivered notification, as kept in the bus history."""

    sequence: int
    topic: Topic
    qualifier: str | None
    payload: Any


class EventBus:
    def __init__(self, history_size: int = _HISTORY_SIZE) -> None:
        self._handlers: dict[tuple[Topic, str | None], list[Handler]] = {}
        self._history: deque[Publication] = deque(maxlen=history_size)
        self._sequence = 0

    def subscribe(self, topic: Topic, handler: Handler, *, qualifier: str | None = None) -> Callable[[], None]:
        """Register *handler*; returns a callable that unsubscribes it."""
        key = (Topic(topic), qualifier)
        self._handlers.setdefault(key, []).append(handler)

        def _unsubscribe() -> None:
            self.unsubscribe(topic, handler, qualifier=qualifier)

        return _unsubscribe

    def once(self, topic: Topic, handler: Handler, *, qualifier: str | None = None) -> Callable[[], None]:
        """Register *handler* for the next matching publication only."""
        unsubscribe: Callable[[], None] | None = None

        def _wrapper(payload: Any) -> None:
            if unsubscribe is not None:
                unsubscribe()
            handler(payload)

        unsubscribe = self.subscribe(topic, _wrapper, qualifier=qualifier)
        return unsubscribe

    def unsubscribe(self, topic: Topic, handler: Handler, *, qualifier: str | None = None) -> bool:
        handlers = self._handlers.get((Topic(topic), qualifier))
        if not handlers or handler not in handlers:
            return False
        handlers.remove(handler)
        return True

    def publish(self, topic: Topic, payload: Any, *, qualifier: str | None = None) -> None:
        expected = TOPIC_PAYLOADS[topic]
        if not isinstance(payload, expected):
            raise TypeError(f"Topic {topic.value!r} expects {expected.__name__}, got {type(payload).__name__}")

        self._sequence += 1
        self._history.append(Publication(self._sequence, topic, qualifier, payload))

        handlers = list(self._handlers.get((topic, None), ()))
        if qualifier is not None:
            handlers.extend(self._handlers.get((topic, qualifier), ()))
        for handler in handlers:
            self._deliver(topic, handler, payload)

    def _deliver(self, topic: Topic, handler: Handler, payload: Any) -> None:
        try:
            handler(payload)
        except Exception as exc:  # noqa: BLE001
            bus_handler_errors_total.labels(topic=topic.value).inc()
            _log.error(
                "bus_handler_error",
                topic=topic.value,
                handler=getattr(handler, "__qualname__", repr(handler)),
                error=str(exc),
            )

    def history(self, topic: Topic | None = None) -> list[Publication]:
        if topic is None:
            return list(self._history)
        return [entry for entry in self._history if entry.topic == topic]

    def listener_count(self, topic: Topic, qualifier: str | None = None) -> int:
        return len(self._handlers.get((topic, qualifier), ()))

    def clear(self) -> None:
        self._handlers.clear()
        self._history.clear()
