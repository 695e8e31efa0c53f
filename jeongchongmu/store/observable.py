"""
Publish/subscribe for cache change notifications.
"""
import logging
from typing import Callable, FrozenSet, Iterable, List

logger = logging.getLogger(__name__)

Subscriber = Callable[[FrozenSet[str]], None]


class Observable:
    """Calls subscribers with the names of the cache slices that changed."""

    def __init__(self):
        self._subscribers: List[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback. Returns a function that unregisters it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def notify(self, changed: Iterable[str]) -> None:
        changed = frozenset(changed)
        if not changed:
            return
        # copy: a subscriber may unsubscribe while being notified
        for callback in list(self._subscribers):
            try:
                callback(changed)
            except Exception as e:
                logger.error(f"Subscriber {callback!r} failed on {sorted(changed)}: {e}", exc_info=True)

    def __len__(self) -> int:
        return len(self._subscribers)
