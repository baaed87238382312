"""Observer bookkeeping for registry change notifications."""

from __future__ import annotations

import itertools
import logging
import threading
from typing import Any, Callable, Generic, Sequence, TypeVar

from .records import BaseOperation

logger = logging.getLogger(__name__)

T = TypeVar("T")

GlobalCallback = Callable[[list[BaseOperation]], Any]
ProgressCallback = Callable[[BaseOperation], Any]


class SubscriberRegistry(Generic[T]):
    """Callbacks keyed by integer handles.

    Handles come from a shared counter and are never reused, so removing one
    subscriber cannot affect another that happens to wrap the same function.
    """

    _handles = itertools.count(1)

    def __init__(self, name: str = "subscribers") -> None:
        self._name = name
        self._callbacks: dict[int, Callable[[T], Any]] = {}
        self._lock = threading.RLock()

    def add(self, callback: Callable[[T], Any]) -> int:
        with self._lock:
            handle = next(self._handles)
            self._callbacks[handle] = callback
        return handle

    def remove(self, handle: int) -> bool:
        with self._lock:
            return self._callbacks.pop(handle, None) is not None

    def notify_all(self, payload: T) -> int:
        """Invoke every callback with ``payload`` and return how many raised."""

        return self.notify_each(lambda: payload)

    def notify_each(self, make_payload: Callable[[], T]) -> int:
        """Like :meth:`notify_all`, but builds the payload right before each call.

        Callbacks that change the source during the pass are then seen by the
        callbacks after them.
        """

        with self._lock:
            handles = list(self._callbacks)

        failures = 0
        for handle in handles:
            # A callback earlier in this pass may have unsubscribed this one.
            callback = self._callbacks.get(handle)
            if callback is None:
                continue
            try:
                callback(make_payload())
            except Exception:
                failures += 1
                logger.exception(
                    "Progress subscriber failed",
                    extra={"subscribers": self._name, "handle": handle},
                )
        return failures

    def __len__(self) -> int:
        return len(self._callbacks)


class SubscriptionFanout:
    """Delivers registry changes to global and per-operation observers."""

    def __init__(self) -> None:
        self._global: SubscriberRegistry[list[BaseOperation]] = SubscriberRegistry("global")
        self._per_operation: dict[str, SubscriberRegistry[BaseOperation]] = {}
        self._lock = threading.RLock()

    def subscribe(self, callback: GlobalCallback) -> Callable[[], None]:
        """Register ``callback`` for every change; returns an idempotent unsubscribe."""

        handle = self._global.add(callback)
        logger.debug("Global subscriber added", extra={"handle": handle})

        def unsubscribe() -> None:
            if self._global.remove(handle):
                logger.debug("Global subscriber removed", extra={"handle": handle})

        return unsubscribe

    def subscribe_to_progress(
        self, operation_id: str, callback: ProgressCallback
    ) -> Callable[[], None]:
        """Register ``callback`` for changes to a single operation.

        The id does not need to exist yet. Nothing fires until the operation
        changes, and a subscription on a removed operation never fires.
        """

        with self._lock:
            subscribers = self._per_operation.get(operation_id)
            if subscribers is None:
                subscribers = SubscriberRegistry(f"operation:{operation_id}")
                self._per_operation[operation_id] = subscribers
            handle = subscribers.add(callback)
        logger.debug(
            "Progress subscriber added",
            extra={"operation_id": operation_id, "handle": handle},
        )

        def unsubscribe() -> None:
            with self._lock:
                current = self._per_operation.get(operation_id)
                if current is None or not current.remove(handle):
                    return
                if not len(current):
                    del self._per_operation[operation_id]
            logger.debug(
                "Progress subscriber removed",
                extra={"operation_id": operation_id, "handle": handle},
            )

        return unsubscribe

    def publish(
        self,
        snapshot: Callable[[], Sequence[BaseOperation]],
        changed: BaseOperation | None = None,
    ) -> None:
        """Notify global observers and, if given, observers of ``changed``.

        ``snapshot`` is called once per callback, so a callback that mutates
        the registry mid-pass never leaves later callbacks with an older view.
        Per-operation observers get the newest record with ``changed.id``, or
        ``changed`` itself once that record has been cleared.
        """

        self._global.notify_each(lambda: list(snapshot()))
        if changed is None:
            return
        with self._lock:
            subscribers = self._per_operation.get(changed.id)
        if subscribers is None:
            return

        def latest() -> BaseOperation:
            for record in snapshot():
                if record.id == changed.id:
                    return record
            return changed

        subscribers.notify_each(latest)

    def subscriber_count(self, operation_id: str | None = None) -> int:
        if operation_id is None:
            return len(self._global)
        subscribers = self._per_operation.get(operation_id)
        return len(subscribers) if subscribers is not None else 0


__all__ = ["SubscriberRegistry", "SubscriptionFanout"]
