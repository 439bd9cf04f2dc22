"""Observer plumbing for engine events.

The engine publishes :class:`DomainEvent` instances from its synchronous
completion block.  :class:`EventBus` fans each one out to the observers
subscribed to its type, plus any catch-all observers (a transport relaying
everything to clients, an :class:`EventStore`).  A broken observer is
logged and skipped so it can never stall transaction processing.

:class:`EventStore` keeps a bounded tail of recent events.  A late
subscriber can :meth:`~EventStore.replay` it to catch up.
"""

from __future__ import annotations

import logging
import threading
from collections import Counter, defaultdict, deque
from collections.abc import Callable, Sequence

from smart_payment_router.domain.events import DomainEvent

logger = logging.getLogger(__name__)

EventHandler = Callable[[DomainEvent], None]
Unsubscribe = Callable[[], bool]


# ===================================================================== #
#  Event Bus                                                             #
# ===================================================================== #

class EventBus:
    """Synchronous pub-sub keyed by event class.

    Catch-all observers run before typed ones; within each group observers
    run in subscription order.  Subscription changes are guarded by a lock
    so observers may attach from other threads.

    Usage::

        bus = EventBus()
        detach = bus.subscribe(TransactionCompleted, relay)
        ...
        detach()
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._typed: dict[type[DomainEvent], list[EventHandler]] = defaultdict(list)
        self._catch_all: list[EventHandler] = []
        self._error_count = 0

    # -- subscription -------------------------------------------------------

    def subscribe(self, event_type: type[DomainEvent], handler: EventHandler) -> Unsubscribe:
        """Deliver events of exactly *event_type* to *handler*.

        Returns a callable that detaches the handler again.
        """
        with self._lock:
            self._typed[event_type].append(handler)
        return lambda: self.unsubscribe(event_type, handler)

    def subscribe_all(self, handler: EventHandler) -> Unsubscribe:
        """Deliver every event to *handler*.  Returns a detach callable."""
        with self._lock:
            self._catch_all.append(handler)
        return lambda: self.unsubscribe_all(handler)

    def unsubscribe(self, event_type: type[DomainEvent], handler: EventHandler) -> bool:
        """Detach a typed handler.  ``False`` if it was not subscribed."""
        with self._lock:
            handlers = self._typed.get(event_type)
            if not handlers or handler not in handlers:
                return False
            handlers.remove(handler)
            return True

    def unsubscribe_all(self, handler: EventHandler) -> bool:
        """Detach a catch-all handler.  ``False`` if it was not subscribed."""
        with self._lock:
            if handler not in self._catch_all:
                return False
            self._catch_all.remove(handler)
            return True

    # -- publishing ---------------------------------------------------------

    def publish(self, event: DomainEvent) -> int:
        """Dispatch *event* and return how many handlers accepted it."""
        with self._lock:
            handlers = [*self._catch_all, *self._typed.get(type(event), ())]

        delivered = 0
        for handler in handlers:
            try:
                handler(event)
            except Exception:
                self._error_count += 1
                logger.exception(
                    "Observer %r failed on %s", handler, type(event).__name__
                )
            else:
                delivered += 1
        return delivered

    def publish_many(self, events: Sequence[DomainEvent]) -> int:
        """Publish *events* in order; returns the total deliveries."""
        return sum(self.publish(event) for event in events)

    # -- introspection ------------------------------------------------------

    @property
    def error_count(self) -> int:
        """Number of handler invocations that raised since creation."""
        return self._error_count

    def handler_count(self, event_type: type[DomainEvent] | None = None) -> int:
        """Handlers for *event_type*, or every handler when ``None``."""
        with self._lock:
            if event_type is not None:
                return len(self._typed.get(event_type, ()))
            return len(self._catch_all) + sum(len(h) for h in self._typed.values())

    def clear(self) -> None:
        """Detach every handler."""
        with self._lock:
            self._typed.clear()
            self._catch_all.clear()


# ===================================================================== #
#  Event Store                                                           #
# ===================================================================== #

class EventStore:
    """Bounded, append-only tail of recently published events.

    Attach it as a catch-all observer::

        store = EventStore(max_size=500)
        engine.event_bus.subscribe_all(store.append)
    """

    def __init__(self, max_size: int = 0) -> None:
        """*max_size* caps the tail; ``0`` keeps everything."""
        self._events: deque[DomainEvent] = deque(maxlen=max_size or None)
        self._lock = threading.Lock()

    def append(self, event: DomainEvent) -> None:
        """Store *event*, dropping the oldest one when full."""
        with self._lock:
            self._events.append(event)

    def query(
        self,
        event_type: type[DomainEvent] | None = None,
        since: float | None = None,
        limit: int = 0,
        source_id: str | None = None,
    ) -> list[DomainEvent]:
        """Stored events, oldest first, filtered by the given criteria.

        *event_type* matches subclasses; *since* is inclusive; *limit* keeps
        the newest matches (``0`` means no limit).
        """
        with self._lock:
            events = list(self._events)
        matched = [
            e for e in events
            if (event_type is None or isinstance(e, event_type))
            and (since is None or e.timestamp >= since)
            and (source_id is None or e.source_id == source_id)
        ]
        return matched[-limit:] if limit > 0 else matched

    def replay(self, handler: EventHandler, event_type: type[DomainEvent] | None = None) -> int:
        """Feed stored events to *handler* in order; returns how many."""
        events = self.query(event_type)
        for event in events:
            handler(event)
        return len(events)

    def counts(self) -> Counter[str]:
        """Stored events tallied by class name."""
        with self._lock:
            return Counter(type(e).__name__ for e in self._events)

    @property
    def latest(self) -> DomainEvent | None:
        """The newest stored event, if any."""
        with self._lock:
            return self._events[-1] if self._events else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def __bool__(self) -> bool:
        return len(self) > 0

    def clear(self) -> None:
        with self._lock:
            self._events.clear()
