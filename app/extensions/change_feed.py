"""Live queries over store collections.

A ``ChangeFeed`` wraps one query. Every subscription to it receives the
full, ordered result set: once when it subscribes and again after each
committed change to one of the collections the feed watches. Change
notices that arrive while a snapshot is being delivered are coalesced, so
a slow subscriber always catches up to the most recent state instead of
replaying every intermediate one.
"""

import logging
from collections import defaultdict
from threading import Lock, RLock


logger = logging.getLogger(__name__)


class Subscription:
    """Handle returned by ``ChangeFeed.subscribe``.

    ``unsubscribe`` may be called any number of times, from any thread,
    including from inside the callback. Once it returns, the callback is
    never invoked again.
    """

    def __init__(self, feed, callback):
        self._feed = feed
        self._callback = callback
        self._delivery_lock = RLock()
        self._state_lock = Lock()
        self._active = True
        self._pending = False
        self._delivering = False

    @property
    def active(self) -> bool:
        return self._active

    @property
    def feed(self):
        return self._feed

    def refresh(self):
        with self._state_lock:
            if not self._active:
                return
            self._pending = True
            if self._delivering:
                return
            self._delivering = True

        while True:
            with self._state_lock:
                if not self._active or not self._pending:
                    self._delivering = False
                    return
                self._pending = False

            try:
                snapshot = self._feed.snapshot()
            except Exception:
                logger.exception(
                    "Snapshot query for feed on %s failed", self._feed.collection
                )
                # A notice that came in during the failed load still gets a snapshot.
                continue

            with self._delivery_lock:
                if not self._active:
                    continue
                try:
                    self._callback(snapshot)
                except Exception:
                    logger.exception(
                        "Subscriber of feed on %s raised", self._feed.collection
                    )

    def unsubscribe(self):
        with self._delivery_lock:
            with self._state_lock:
                if not self._active:
                    return
                self._active = False
                self._pending = False
        self._feed.release(self)


class ChangeFeed:
    def __init__(self, hub, collection: str, loader, watch=()):
        self._hub = hub
        self.collection = collection
        self.watched = (collection, *[name for name in watch if name != collection])
        self._loader = loader

    def snapshot(self) -> list:
        return self._loader()

    def subscribe(self, callback) -> Subscription:
        subscription = Subscription(self, callback)
        self._hub.register(self.watched, subscription)
        subscription.refresh()
        return subscription

    def release(self, subscription: Subscription):
        self._hub.unregister(self.watched, subscription)


class ChangeFeedHub:
    """Routes change notices for collections to the live subscriptions."""

    def __init__(self):
        self._lock = Lock()
        self._subscriptions = defaultdict(list)

    def register(self, collections, subscription):
        with self._lock:
            for collection in collections:
                self._subscriptions[collection].append(subscription)

    def unregister(self, collections, subscription):
        with self._lock:
            for collection in collections:
                subscribers = self._subscriptions.get(collection, [])
                if subscription in subscribers:
                    subscribers.remove(subscription)
                if not subscribers:
                    self._subscriptions.pop(collection, None)

    def subscription_count(self, collection=None) -> int:
        with self._lock:
            if collection is not None:
                return len(self._subscriptions.get(collection, []))
            return len({
                id(subscription)
                for subscribers in self._subscriptions.values()
                for subscription in subscribers
            })

    def publish(self, collections):
        with self._lock:
            targets = []
            seen = set()
            for collection in collections:
                for subscription in self._subscriptions.get(collection, []):
                    if id(subscription) not in seen:
                        seen.add(id(subscription))
                        targets.append(subscription)

        for subscription in targets:
            subscription.refresh()


change_feeds = ChangeFeedHub()
