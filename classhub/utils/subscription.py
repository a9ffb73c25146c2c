"""Handles for live Firestore listeners.

A handle owns one ``on_snapshot`` watch. Once ``unsubscribe()`` returns the
callback is never invoked again, even if the watch thread already had a
snapshot in flight.
"""

import logging
import threading


logger = logging.getLogger(__name__)


class Subscription:
    def __init__(self, name: str):
        self.name = name
        self._watch = None
        self._closed = False
        self._lock = threading.RLock()

    def attach(self, watch) -> None:
        with self._lock:
            if self._closed:
                watch.unsubscribe()
                return
            self._watch = watch

    @property
    def active(self) -> bool:
        return not self._closed

    def deliver(self, callback, *args) -> bool:
        """Invoke ``callback`` unless the subscription has been released."""
        with self._lock:
            if self._closed:
                return False
            callback(*args)
            return True

    def unsubscribe(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            watch, self._watch = self._watch, None

        if watch is not None:
            watch.unsubscribe()
        logger.debug(f"Released subscription {self.name}")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.unsubscribe()


class SubscriptionGroup:
    """Several subscriptions released together, e.g. one per enrolled course."""

    def __init__(self, name: str):
        self.name = name
        self._members: list[Subscription] = []
        self._closed = False
        self._lock = threading.Lock()

    def add(self, subscription: Subscription) -> None:
        with self._lock:
            closed = self._closed
            if not closed:
                self._members.append(subscription)
        if closed:
            subscription.unsubscribe()

    @property
    def active(self) -> bool:
        return not self._closed

    def __len__(self) -> int:
        return len(self._members)

    def unsubscribe(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            members, self._members = self._members, []

        for subscription in members:
            subscription.unsubscribe()
        logger.debug(f"Released subscription group {self.name} ({len(members)} members)")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.unsubscribe()
