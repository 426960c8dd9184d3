from __future__ import annotations

from threading import Lock, RLock
from typing import Callable, List, Optional

import structlog

from .result_index import ResultIndex

log = structlog.get_logger("result_workbench.store")

Subscriber = Callable[[ResultIndex], None]
Commit = Callable[[], None]
Preparer = Callable[[ResultIndex], Commit]


class ResultStore:
    """Owner of the currently loaded result.

    Publishing happens in two phases. Preparers derive their state from the
    new index first and hand back a commit callable; if any of them raises,
    nothing is published. Only then is the index swapped, the commits run
    and subscribers are notified in the order they subscribed. Publications
    from an older load generation than the last accepted one are rejected.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._publish_lock = RLock()
        self._current: Optional[ResultIndex] = None
        self._generation = -1
        self._preparers: List[Preparer] = []
        self._subscribers: List[Subscriber] = []

    @property
    def current(self) -> Optional[ResultIndex]:
        return self._current

    @property
    def generation(self) -> int:
        return self._generation

    def add_preparer(self, preparer: Preparer) -> None:
        with self._lock:
            self._preparers.append(preparer)

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        with self._lock:
            self._subscribers.append(subscriber)

        def _unsubscribe() -> None:
            with self._lock:
                if subscriber in self._subscribers:
                    self._subscribers.remove(subscriber)

        return _unsubscribe

    def publish(self, index: ResultIndex, generation: int) -> bool:
        with self._publish_lock:
            with self._lock:
                if generation < self._generation:
                    log.info("store.stale_publish_rejected", generation=generation, current=self._generation)
                    return False
                preparers = list(self._preparers)

            commits = [prepare(index) for prepare in preparers]

            with self._lock:
                previous, self._current = self._current, index
                self._generation = generation
                subscribers = list(self._subscribers)

            for commit in commits:
                commit()
            if previous is not None and previous is not index:
                previous.license_cache.clear()
            log.info("store.published", generation=generation, subscribers=len(subscribers))
            for subscriber in subscribers:
                subscriber(index)
        return True
