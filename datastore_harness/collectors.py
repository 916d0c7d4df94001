"""Collect change notifications into a single awaitable result.

Each collector subscribes as soon as it is constructed, so it can be created
before the write it is waiting for::

    pending = wait_for_observe(store, BasicModel)
    await store.save(BasicModel(body="hello"))
    events = await pending

The result is held in one future. Whichever side settles it first (the
event stream or the timer) wins; settling cancels the timer and unsubscribes
exactly once. Cancelling the awaiting task disposes the same way through a
done-callback on the future.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Generator

from pydantic import BaseModel

from .datastore import DataStore, Observable, PredicateBuilder, Subscription
from .exceptions import CollectorTimeoutError

logger = logging.getLogger(__name__)

DEFAULT_OBSERVE_TIMEOUT = 5.0
DEFAULT_SNAPSHOT_WINDOW = 3.0


class _Collector:
    def __init__(self, source: Observable, delay: float):
        loop = asyncio.get_running_loop()
        self._future: asyncio.Future = loop.create_future()
        self._future.add_done_callback(self._dispose)
        self._subscription: Subscription | None = None
        self._unsubscribed = False
        self._timer = loop.call_later(delay, self._on_timer)
        try:
            self._subscription = source.subscribe(self._on_item)
        except Exception:
            self._timer.cancel()
            raise
        # An observable may deliver synchronously inside subscribe(); if that
        # already settled the future, disposal ran before there was a
        # subscription to cancel.
        if self._future.done():
            self._dispose()

    @property
    def done(self) -> bool:
        return self._future.done()

    def cancel(self) -> None:
        self._future.cancel()

    def _dispose(self, _future: asyncio.Future | None = None) -> None:
        self._timer.cancel()
        if self._subscription is not None and not self._unsubscribed:
            self._unsubscribed = True
            self._subscription.unsubscribe()

    def _resolve(self, result: Any) -> None:
        self._future.set_result(result)
        self._dispose()

    def _reject(self, error: Exception) -> None:
        self._future.set_exception(error)
        self._dispose()

    def _on_item(self, item: Any) -> None:
        raise NotImplementedError

    def _on_timer(self) -> None:
        raise NotImplementedError

    def __await__(self) -> Generator[Any, None, Any]:
        return self._future.__await__()


class EventCollector(_Collector):
    """Resolves with the first ``count`` accepted events, or raises on timeout."""

    def __init__(
        self,
        source: Observable,
        count: int = 1,
        timeout: float = DEFAULT_OBSERVE_TIMEOUT,
        accept: Callable[[Any], bool] | None = None,
    ):
        if count < 1:
            raise ValueError("count must be at least 1")
        self.count = count
        self.timeout = timeout
        self._accept = accept
        self.events: list[Any] = []
        super().__init__(source, timeout)

    def _on_item(self, event: Any) -> None:
        if self._future.done():
            return
        if self._accept is not None and not self._accept(event):
            return
        self.events.append(event)
        if len(self.events) == self.count:
            self._resolve(list(self.events))

    def _on_timer(self) -> None:
        if self._future.done():
            return
        logger.debug(
            "observe() timed out with %d/%d events", len(self.events), self.count
        )
        self._reject(
            CollectorTimeoutError(
                f"observe() timed out after {self.timeout}s "
                f"({len(self.events)}/{self.count} events)"
            )
        )


class SnapshotCollector(_Collector):
    """Accumulates every snapshot until ``duration`` elapses. Never raises on timeout."""

    def __init__(
        self,
        source: Observable,
        duration: float = DEFAULT_SNAPSHOT_WINDOW,
        select: Callable[[Any], Any] | None = None,
    ):
        self.duration = duration
        self._select = select
        self.snapshots: list[Any] = []
        super().__init__(source, duration)

    def _on_item(self, snapshot: Any) -> None:
        if self._future.done():
            return
        self.snapshots.append(self._select(snapshot) if self._select else snapshot)

    def _on_timer(self) -> None:
        if not self._future.done():
            self._resolve(list(self.snapshots))


def _items(snapshot: Any) -> Any:
    return getattr(snapshot, "items", snapshot)


def wait_for_observe(
    store: DataStore,
    model: type[BaseModel],
    predicate: PredicateBuilder | None = None,
    count: int = 1,
    timeout: float = DEFAULT_OBSERVE_TIMEOUT,
) -> EventCollector:
    """Collect ``count`` MutationEvents for ``model`` from ``store.observe()``."""
    return EventCollector(store.observe(model, predicate), count=count, timeout=timeout)


def wait_for_snapshots(
    store: DataStore,
    model: type[BaseModel],
    predicate: PredicateBuilder | None = None,
    duration: float = DEFAULT_SNAPSHOT_WINDOW,
) -> SnapshotCollector:
    """Collect the item lists of every observe_query() snapshot seen within ``duration``."""
    return SnapshotCollector(
        store.observe_query(model, predicate), duration=duration, select=_items
    )
