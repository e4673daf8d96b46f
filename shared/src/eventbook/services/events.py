"""In-process publish/subscribe for domain events.

Subscribers are isolated from each other and from the publisher: an
exception in one handler is logged and the remaining handlers still run.
Publishing never raises because of a subscriber.
"""

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Executor
from typing import TypeVar

from eventbook.models.events import DomainEvent

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=DomainEvent)
EventHandler = Callable[[E], None]


class InProcessEventBus:
    """Typed event bus keyed by event class.

    With an executor, handlers run in the background and ``publish`` returns
    immediately (fire-and-forget). Without one they run inline in
    subscription order, which keeps tests deterministic.
    """

    def __init__(self, executor: Executor | None = None) -> None:
        self._executor = executor
        self._lock = threading.Lock()
        self._handlers: dict[type[DomainEvent], list[Callable[[DomainEvent], None]]] = {}

    def subscribe(self, event_type: type[E], handler: "EventHandler[E]") -> None:
        """Register a handler for an event class (and its subclasses)."""
        with self._lock:
            self._handlers.setdefault(event_type, []).append(handler)  # type: ignore[arg-type]

    def handlers_for(self, event: DomainEvent) -> list[Callable[[DomainEvent], None]]:
        with self._lock:
            return [
                handler
                for event_type, handlers in self._handlers.items()
                if isinstance(event, event_type)
                for handler in handlers
            ]

    def publish(self, event: DomainEvent) -> None:
        """Dispatch an event to every matching subscriber.

        Args:
            event: Event instance
        """
        handlers = self.handlers_for(event)
        logger.debug("Publishing %s to %d handlers", type(event).__name__, len(handlers))

        for handler in handlers:
            if self._executor is not None:
                self._executor.submit(self._run, handler, event)
            else:
                self._run(handler, event)

    @staticmethod
    def _run(handler: Callable[[DomainEvent], None], event: DomainEvent) -> None:
        try:
            handler(event)
        except Exception:
            logger.exception(
                "Event handler %s failed for %s",
                getattr(handler, "__qualname__", repr(handler)),
                type(event).__name__,
            )

    def clear(self) -> None:
        """Drop all subscriptions."""
        with self._lock:
            self._handlers.clear()
