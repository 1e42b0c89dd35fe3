"""
Process-wide event bus for cross-component notifications.

Two events travel on the bus: AuthErrorEvent (the token is unusable and
the user probably has to revisit the settings) and ApiErrorEvent (a
request failed for any other reason). Producers are the retry policy and
the token refresher, which run on worker threads; consumers are the UI
layer's notification and navigation handlers.

Delivery is synchronous on the publishing thread and best-effort:
    - events published while nobody is subscribed are simply lost
    - a failing handler is logged and does not affect other handlers
    - handlers run without any bus lock held, so a handler may publish
      in turn and a slow handler never blocks other publishing threads
    - events from one publisher reach every subscriber in the order
      they were issued

Subscribers are held weakly by default (weakref.WeakMethod for bound
methods), so a dead UI object silently drops out of the bus instead
of being kept alive by it. Pass weak=False for handlers nothing else
owns.

Lifecycle:
    init_event_bus() at startup, get_event_bus() anywhere,
    shutdown_event_bus() at exit.
"""

import threading
import uuid
import weakref
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from spot_browser.core.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class BusEvent:
    """Base class for everything published on the bus."""
    message: str
    timestamp: datetime = field(default_factory=datetime.now, compare=False)


@dataclass(frozen=True)
class AuthErrorEvent(BusEvent):
    """Authorization failed; the UI should notify and go to settings."""
    pass


@dataclass(frozen=True)
class ApiErrorEvent(BusEvent):
    """A non-auth API failure the user should hear about."""
    pass


@dataclass
class Subscription:
    """Handle returned by subscribe(); call cancel() to stop delivery."""
    event_type: type
    handler_ref: Callable[[], Callable | None]
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    active: bool = True

    def cancel(self) -> None:
        self.active = False

    def resolve(self) -> Callable | None:
        if not self.active:
            return None
        return self.handler_ref()


class EventBus:
    """Thread-safe synchronous broadcast channel keyed by event type."""

    def __init__(self) -> None:
        self._handlers: dict[type, list[Subscription]] = defaultdict(list)
        self._lock = threading.Lock()
        self._closed = False

    def subscribe(
        self,
        event_type: type,
        handler: Callable[[BusEvent], None],
        weak: bool = True
    ) -> Subscription:
        """
        Register a handler for one event type (and its subclasses).

        Args:
            event_type: BusEvent subclass to listen for.
            handler: Callable taking the event.
            weak: Hold the handler weakly, so it drops out once nothing
                  else references it. Pass False for lambdas, closures
                  and builtins such as list.append that have no other
                  owner.

        Returns:
            Subscription handle.

        Raises:
            TypeError: If weak is True and the handler does not support
                       weak references.
        """
        if weak:
            try:
                if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
                    ref = weakref.WeakMethod(handler)
                else:
                    ref = weakref.ref(handler)
            except TypeError as e:
                raise TypeError(
                    f"Cannot hold {handler!r} weakly, subscribe it with weak=False"
                ) from e
        else:
            ref = _StrongRef(handler)

        sub = Subscription(event_type=event_type, handler_ref=ref)
        with self._lock:
            self._handlers[event_type].append(sub)
        return sub

    def unsubscribe(self, subscription: Subscription) -> None:
        subscription.cancel()
        with self._lock:
            subs = self._handlers.get(subscription.event_type, [])
            if subscription in subs:
                subs.remove(subscription)

    def subscriber_count(self, event_type: type) -> int:
        with self._lock:
            return sum(1 for s in self._handlers.get(event_type, []) if s.resolve() is not None)

    def publish(self, event: BusEvent) -> int:
        """
        Deliver an event to every live subscriber of its type.

        Returns:
            Number of handlers that were invoked.
        """
        if self._closed:
            logger.debug(f"Event bus closed, dropping {type(event).__name__}: {event.message}")
            return 0

        with self._lock:
            subs = [
                sub
                for event_type, registered in self._handlers.items()
                if isinstance(event, event_type)
                for sub in registered
            ]

        # Handlers run without the lock held and may publish or subscribe
        delivered = 0
        dead = []
        for sub in subs:
            handler = sub.resolve()
            if handler is None:
                dead.append(sub)
                continue
            try:
                handler(event)
                delivered += 1
            except Exception as e:
                logger.error(f"Event handler failed for {type(event).__name__}: {e}", exc_info=True)

        if dead:
            with self._lock:
                for sub in dead:
                    registered = self._handlers.get(sub.event_type, [])
                    if sub in registered:
                        registered.remove(sub)

        if delivered == 0:
            logger.debug(f"No subscriber for {type(event).__name__}: {event.message}")
        return delivered

    def close(self) -> None:
        self._closed = True
        with self._lock:
            self._handlers.clear()


class _StrongRef:
    """Mimics a weakref that never dies."""

    def __init__(self, obj: Callable) -> None:
        self._obj = obj

    def __call__(self) -> Callable:
        return self._obj


_bus: EventBus | None = None
_bus_lock = threading.Lock()


def init_event_bus() -> EventBus:
    """Create the process-wide bus, replacing any previous one."""
    global _bus
    with _bus_lock:
        if _bus is not None:
            _bus.close()
        _bus = EventBus()
        return _bus


def get_event_bus() -> EventBus:
    """Return the process-wide bus, creating it lazily."""
    global _bus
    with _bus_lock:
        if _bus is None:
            _bus = EventBus()
        return _bus


def shutdown_event_bus() -> None:
    global _bus
    with _bus_lock:
        if _bus is not None:
            _bus.close()
        _bus = None
