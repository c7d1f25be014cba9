import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable, List, Optional, Set, Tuple

logger = logging.getLogger(__name__)


class Topic(str, Enum):
    ITEMS = "items"
    PINBOARDS = "pinboards"
    RULES = "rules"
    SETTINGS = "settings"
    SEARCH = "search"


@dataclass(frozen=True)
class StoreEvent:
    topic: Topic
    action: str
    ids: Tuple[str, ...] = field(default_factory=tuple)


Listener = Callable[[StoreEvent], None]


class EventBus:
    """Synchronous publish/subscribe used by the stores to announce mutations."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._listeners: List[Tuple[Listener, Optional[Set[Topic]]]] = []

    def subscribe(self, callback: Listener,
                  topics: Optional[Iterable[Topic]] = None) -> Callable[[], None]:
        entry = (callback, set(topics) if topics is not None else None)
        with self._lock:
            self._listeners.append(entry)

        def unsubscribe() -> None:
            with self._lock:
                if entry in self._listeners:
                    self._listeners.remove(entry)

        return unsubscribe

    def publish(self, event: StoreEvent) -> None:
        with self._lock:
            listeners = list(self._listeners)

        for callback, topics in listeners:
            if topics is not None and event.topic not in topics:
                continue
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Event listener failed for {event.topic.value}.{event.action}: {e}")

    def emit(self, topic: Topic, action: str, ids: Iterable[str] = ()) -> None:
        self.publish(StoreEvent(topic=topic, action=action, ids=tuple(ids)))
